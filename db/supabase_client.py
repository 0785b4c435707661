"""
Supabase client backing the availability source and the appointment store.

Tables:
- services: id, name, description, price, duration_minutes, active
- barbers: id, name, email, phone, specialties, bio, active, avatar_url
- appointments: id, client_id, barber_id, service_id, datetime, status, notes,
  client_name, client_phone, client_email, barber_name, service_name,
  service_price, service_duration, decided_at, created_at

A unique index on appointments (barber_id, datetime) restricted to
PENDING/APPROVED rows lets the database reject a double booking that slips
past the overlap check below.

This client uses the service key which bypasses RLS; public reads of
services and barbers should still be allowed by RLS policies.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClientType
from supabase import create_client

from booking.clock import SystemClock
from booking.interfaces import Clock
from booking.state_machine import transition as apply_transition
from config import settings
from models.appointment import Appointment, AppointmentStatus, ClientInfo
from models.barber import Barber, BarberProfile
from models.service import Service
from utils.constants import BLOCKING_STATUSES, UNIQUE_VIOLATION_CODE
from utils.datetime_utils import parse_iso_datetime, to_canonical, to_iso_string
from utils.exceptions import (
    AppointmentNotFoundError,
    DuplicateSlotError,
    InvalidTransitionError,
    UnavailableError,
    UnreachableError,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Longest service the overlap lookup has to reach back for
MAX_SERVICE_DURATION = timedelta(hours=10)


class SupabaseClient:
    """
    Supabase database client wrapper.

    Implements AvailabilitySource (list_eligible_providers, list_services)
    and AppointmentStore (create, transition), plus admin reads.
    Services are cached in memory since every booking reads them.
    """

    def __init__(
        self,
        client: Optional[SupabaseClientType] = None,
        clock: Optional[Clock] = None,
    ):
        if client is None:
            settings.validate_all_required()
            client = create_client(settings.supabase_url, settings.supabase_key)
        self.client = client
        self.clock = clock or SystemClock()

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(seconds=settings.services_cache_ttl_seconds)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if self.clock.now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        expiry = self.clock.now() + self._cache_ttl
        self._cache[key] = (value, expiry)

    def _clear_cache(self, pattern: Optional[str] = None) -> None:
        """Clear cache entries matching pattern, or all if pattern is None."""
        if pattern is None:
            self._cache.clear()
        else:
            for key in [k for k in self._cache if pattern in k]:
                del self._cache[key]

    # ========== Query Helper ==========

    def _execute(self, query, action: str):
        """
        Run a PostgREST query, mapping failures to booking errors.

        Raises:
            DuplicateSlotError: On a unique violation
            UnreachableError: On any other failure
        """
        try:
            return query.execute()
        except APIError as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION_CODE:
                raise DuplicateSlotError(f"Failed to {action}: slot already taken") from e
            raise UnreachableError(f"Failed to {action}: {e}") from e
        except Exception as e:
            raise UnreachableError(f"Failed to {action}: {e}") from e

    # ========== Services ==========

    async def list_services(self) -> List[Service]:
        """All services, active or not."""
        cache_key = "services:all"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        response = self._execute(
            self.client.table("services").select("*").order("id", desc=False),
            "list services",
        )
        services = [Service(**item) for item in response.data]
        self._set_cache(cache_key, services)
        return services

    async def get_service(self, service_id: int) -> Optional[Service]:
        for service in await self.list_services():
            if service.id == service_id:
                return service
        return None

    def invalidate_services(self) -> None:
        self._clear_cache("services:")

    # ========== Barbers ==========

    async def list_barbers(self, active_only: bool = False) -> List[Barber]:
        query = self.client.table("barbers").select("*")
        if active_only:
            query = query.eq("active", True)
        response = self._execute(query.order("id", desc=False), "list barbers")
        return [self._parse_barber(item) for item in response.data]

    async def get_barber(self, barber_id: int) -> Optional[Barber]:
        response = self._execute(
            self.client.table("barbers").select("*").eq("id", barber_id),
            "get barber",
        )
        if response.data:
            return self._parse_barber(response.data[0])
        return None

    # ========== Availability ==========

    async def _busy_barber_ids(self, start: datetime, end: datetime) -> Set[int]:
        """Barbers holding a PENDING/APPROVED appointment overlapping [start, end)."""
        response = self._execute(
            self.client.table("appointments")
            .select("*")
            .in_("status", list(BLOCKING_STATUSES))
            .gte("datetime", to_iso_string(start - MAX_SERVICE_DURATION))
            .lt("datetime", to_iso_string(end)),
            "check barber schedules",
        )

        busy = set()
        for item in response.data:
            appointment = self._parse_appointment(item)
            if appointment.overlaps(start, end):
                busy.add(appointment.barber_id)
        return busy

    async def list_eligible_providers(self, instant: datetime, service_id: int) -> List[Barber]:
        """
        Active barbers free for the whole service window starting at instant.

        An unknown or inactive service has no eligible barbers.
        """
        service = await self.get_service(service_id)
        if service is None or not service.active:
            logger.info(f"Service {service_id} is not bookable")
            return []

        start = to_canonical(instant)
        end = start + timedelta(minutes=service.duration_minutes)
        busy = await self._busy_barber_ids(start, end)

        barbers = await self.list_barbers(active_only=True)
        return [barber for barber in barbers if barber.is_active and barber.id not in busy]

    # ========== Appointments ==========

    async def create(
        self,
        client: ClientInfo,
        barber_id: int,
        service_id: int,
        instant: datetime,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Create a PENDING appointment with client, barber and service snapshots.

        Raises:
            UnavailableError: If the instant has passed or the service or
                barber cannot be booked
            DuplicateSlotError: If the barber is already booked for the window
            UnreachableError: If Supabase cannot be reached
        """
        start = to_canonical(instant)
        if start < self.clock.now():
            raise UnavailableError(f"Cannot book {start.isoformat()}, it is already in the past")

        service = await self.get_service(service_id)
        if service is None or not service.active:
            raise UnavailableError(f"Service {service_id} is not available")

        barber = await self.get_barber(barber_id)
        if barber is None or not barber.is_active:
            raise UnavailableError(f"Barber {barber_id} is not available")

        end = start + timedelta(minutes=service.duration_minutes)
        if barber_id in await self._busy_barber_ids(start, end):
            raise DuplicateSlotError(
                f"Barber {barber.name} is already booked at {start.isoformat()}"
            )

        data = {
            "barber_id": barber_id,
            "service_id": service_id,
            "datetime": to_iso_string(start),
            "status": AppointmentStatus.PENDING.value,
            "notes": notes,
            "client_name": client.name,
            "client_phone": client.phone,
            "client_email": client.email,
            "barber_name": barber.name,
            "service_name": service.name,
            "service_price": str(service.price),
            "service_duration": service.duration_minutes,
            "created_at": to_iso_string(self.clock.now()),
        }

        response = self._execute(self.client.table("appointments").insert(data), "create appointment")
        if not response.data:
            raise UnreachableError("Failed to create appointment: no data returned")

        appointment = self._parse_appointment(response.data[0])
        logger.info(
            f"Created appointment {appointment.id}: barber {barber_id}, "
            f"service {service_id}, {appointment.starts_at.isoformat()}"
        )
        return appointment

    async def get_appointment(self, appointment_id: int) -> Optional[Appointment]:
        response = self._execute(
            self.client.table("appointments").select("*").eq("id", appointment_id),
            "get appointment",
        )
        if response.data:
            return self._parse_appointment(response.data[0])
        return None

    async def transition(self, appointment_id: int, target: AppointmentStatus) -> Appointment:
        """
        Move an appointment to target status.

        Repeating a change already applied (e.g. a second approve) succeeds
        without writing.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidTransitionError: If the change is not allowed
        """
        try:
            target = AppointmentStatus(target)
        except ValueError:
            raise InvalidTransitionError(None, target) from None

        appointment = await self.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

        if appointment.status == target:
            logger.info(f"Appointment {appointment_id} already {target.value}")
            return appointment

        updated = apply_transition(appointment, target, self.clock)

        # Guard on the status we validated against
        response = self._execute(
            self.client.table("appointments")
            .update(
                {
                    "status": updated.status.value,
                    "decided_at": to_iso_string(updated.decided_at),
                }
            )
            .eq("id", appointment_id)
            .eq("status", appointment.status.value),
            "update appointment status",
        )

        if response.data:
            return self._parse_appointment(response.data[0])

        # Someone else changed it first
        current = await self.get_appointment(appointment_id)
        if current is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        if current.status == target:
            return current
        raise InvalidTransitionError(current.status.value, target.value)

    async def list_appointments(
        self,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Appointment]:
        """
        All appointments (admin operation), soonest first.

        Args:
            status: Filter by appointment status
            start_date: Only appointments starting at or after this instant
            end_date: Only appointments starting before this instant
            limit: Maximum number of appointments to return
        """
        query = self.client.table("appointments").select("*")

        if status:
            query = query.eq("status", AppointmentStatus(status).value)
        if start_date:
            query = query.gte("datetime", to_iso_string(start_date))
        if end_date:
            query = query.lt("datetime", to_iso_string(end_date))

        query = query.order("datetime", desc=False).limit(limit)
        response = self._execute(query, "list appointments")
        return [self._parse_appointment(item) for item in response.data]

    async def list_barber_appointments(self, barber_id: int, limit: int = 100) -> List[Appointment]:
        response = self._execute(
            self.client.table("appointments")
            .select("*")
            .eq("barber_id", barber_id)
            .order("datetime", desc=False)
            .limit(limit),
            "list barber appointments",
        )
        return [self._parse_appointment(item) for item in response.data]

    # ========== Helper Methods ==========

    def _parse_barber(self, item: dict) -> Barber:
        """Build a Barber from a flat barbers row (or one with a nested profile)."""
        item = item.copy()
        profile = item.pop("profile", None) or {
            "specialties": item.pop("specialties", None),
            "bio": item.pop("bio", None),
            "active": item.pop("active", True),
            "avatar_url": item.pop("avatar_url", None),
        }
        return Barber(profile=BarberProfile(**profile), **item)

    def _parse_appointment(self, item: dict) -> Appointment:
        item = item.copy()
        for field in ["datetime", "decided_at", "created_at"]:
            if isinstance(item.get(field), str):
                item[field] = parse_iso_datetime(item[field])
        return Appointment(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
