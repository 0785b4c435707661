"""
Slot generation for the booking flow.

The shop offers a fixed daily catalog of start times. For today only the
slots not yet past are offered; past days offer nothing.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, List, Optional, Sequence, Tuple

from config import settings
from models.slot import Slot
from utils.datetime_utils import business_tz, to_canonical

from .clock import SystemClock
from .interfaces import Clock


def parse_intervals(spec: str) -> List[Tuple[Slot, Slot]]:
    """
    Parse "08:00-11:30,14:00-19:00" into (start, end) slot pairs.

    Raises:
        ValueError: If an interval is malformed or ends before it starts
    """
    intervals = []
    for chunk in spec.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            start_label, end_label = chunk.split("-")
        except ValueError as e:
            raise ValueError(f"Invalid interval: {chunk!r}") from e
        start, end = Slot.parse(start_label), Slot.parse(end_label)
        if end < start:
            raise ValueError(f"Interval ends before it starts: {chunk!r}")
        intervals.append((start, end))
    return intervals


def build_catalog(
    intervals: Iterable[Tuple[Slot, Slot]], step_minutes: int
) -> List[Slot]:
    """
    Build the ordered slot catalog from open intervals.

    Both interval ends are bookable start times. Intervals are emitted in the
    order given, so the midday closure is simply the gap between them.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")

    catalog: List[Slot] = []
    for start, end in intervals:
        minute = start.minutes_of_day
        while minute <= end.minutes_of_day:
            catalog.append(Slot(hour=minute // 60, minute=minute % 60))
            minute += step_minutes
    return catalog


def default_catalog() -> List[Slot]:
    """Catalog configured in settings."""
    return build_catalog(
        parse_intervals(settings.slot_intervals), settings.slot_step_minutes
    )


def compose_instant(day: date, slot: Slot, tz: Optional[tzinfo] = None) -> datetime:
    """Canonical instant of slot on day, in business wall-clock time."""
    local = datetime.combine(day, slot.as_time(), tzinfo=tz or business_tz())
    return to_canonical(local)


def generate_slots(
    day: date,
    catalog: Optional[Sequence[Slot]] = None,
    clock: Optional[Clock] = None,
    tz: Optional[tzinfo] = None,
) -> List[Slot]:
    """
    Slots bookable on day, in catalog order.

    Future days get the whole catalog, today gets the slots at or after the
    current instant, past days get nothing.
    """
    if catalog is None:
        catalog = default_catalog()
    clock = clock or SystemClock()
    tz = tz or business_tz()

    now = clock.now()
    today = now.astimezone(tz).date()

    if day > today:
        return list(catalog)
    if day < today:
        return []

    return [slot for slot in catalog if compose_instant(day, slot, tz) >= now]


def upcoming_days(clock: Optional[Clock] = None, days: int = 30, tz: Optional[tzinfo] = None) -> List[date]:
    """Calendar days offered for booking, starting today in business time."""
    clock = clock or SystemClock()
    today = clock.now().astimezone(tz or business_tz()).date()
    return [today + timedelta(days=offset) for offset in range(days)]
