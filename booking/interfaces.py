"""
Contracts of the collaborators the booking core talks to.

db.supabase_client.SupabaseClient implements both the availability source
and the appointment store; tests substitute mocks.
"""

from datetime import datetime
from typing import Optional, Protocol, Sequence, runtime_checkable

from models.appointment import Appointment, AppointmentStatus, ClientInfo
from models.barber import Barber
from models.service import Service


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware."""
        ...


class AvailabilitySource(Protocol):
    async def list_eligible_providers(
        self, instant: datetime, service_id: int
    ) -> Sequence[Barber]:
        """
        Barbers free to perform the service starting at instant.

        Raises:
            UnreachableError: If the source cannot be queried
        """
        ...

    async def list_services(self) -> Sequence[Service]:
        ...


class AppointmentStore(Protocol):
    async def create(
        self,
        client: ClientInfo,
        barber_id: int,
        service_id: int,
        instant: datetime,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Persist a new PENDING appointment.

        Raises:
            DuplicateSlotError: If the barber was booked in the meantime
            UnreachableError: If the store cannot be reached
        """
        ...

    async def transition(
        self, appointment_id: int, target: AppointmentStatus
    ) -> Appointment:
        """
        Move an appointment to target status.

        Raises:
            InvalidTransitionError: If the change is not allowed
            AppointmentNotFoundError: If the appointment does not exist
        """
        ...
