"""Dashboard figures for admins and barbers."""

from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional

from models.appointment import Appointment, AppointmentStatus
from utils.datetime_utils import business_tz

from .clock import SystemClock
from .interfaces import Clock


def revenue(
    appointments: Iterable[Appointment],
    predicate: Optional[Callable[[Appointment], bool]] = None,
) -> Decimal:
    """Sum of service prices of approved appointments matching predicate."""
    total = Decimal("0")
    for appointment in appointments:
        if appointment.status != AppointmentStatus.APPROVED:
            continue
        if predicate is None or predicate(appointment):
            total += appointment.service_price
    return total


def dashboard_stats(
    appointments: Iterable[Appointment],
    clock: Optional[Clock] = None,
    tz: Optional[tzinfo] = None,
) -> Dict[str, object]:
    """
    Headline numbers shown on the dashboards.

    Days and weeks are business-local; weeks start on Monday.
    """
    appointments = list(appointments)
    tz = tz or business_tz()
    today = (clock or SystemClock()).now().astimezone(tz).date()
    week_start = today - timedelta(days=today.weekday())

    def local_day(appointment: Appointment) -> date:
        return appointment.starts_at.astimezone(tz).date()

    def is_today(appointment: Appointment) -> bool:
        return local_day(appointment) == today

    def is_this_week(appointment: Appointment) -> bool:
        return week_start <= local_day(appointment) < week_start + timedelta(days=7)

    def is_this_month(appointment: Appointment) -> bool:
        day = local_day(appointment)
        return (day.year, day.month) == (today.year, today.month)

    customers = {
        appointment.client_id if appointment.client_id is not None else appointment.client_phone
        for appointment in appointments
    }

    return {
        "today_appointments": sum(1 for appointment in appointments if is_today(appointment)),
        "today_revenue": revenue(appointments, is_today),
        "week_revenue": revenue(appointments, is_this_week),
        "month_revenue": revenue(appointments, is_this_month),
        "total_customers": len(customers - {None}),
    }


def upcoming(
    appointments: Iterable[Appointment],
    clock: Optional[Clock] = None,
    statuses: Iterable[AppointmentStatus] = (AppointmentStatus.APPROVED,),
) -> list[Appointment]:
    """Appointments not yet started in the given statuses, soonest first."""
    now: datetime = (clock or SystemClock()).now()
    wanted = set(statuses)
    return sorted(
        (a for a in appointments if a.status in wanted and a.starts_at >= now),
        key=lambda a: a.starts_at,
    )
