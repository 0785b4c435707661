"""Appointment models."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.datetime_utils import to_business, to_canonical


class AppointmentStatus(str, Enum):
    """Appointment status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ClientInfo(BaseModel):
    """Contact details of the person booking."""

    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None


class Appointment(BaseModel):
    """
    Appointment record.

    Client, barber and service values are snapshots taken at booking time and
    never follow later edits of the underlying records. The model is frozen:
    status changes go through booking.state_machine.transition.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    client_id: Optional[int] = None
    barber_id: int
    service_id: int
    starts_at: datetime = Field(..., alias="datetime")
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None
    client_name: str
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    barber_name: str
    service_name: str
    service_price: Decimal = Field(..., ge=0)
    service_duration: int = Field(..., gt=0, description="Minutes")
    decided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("starts_at", "decided_at", "created_at")
    @classmethod
    def validate_canonical(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Keep every instant in UTC."""
        if v is None:
            return None
        return to_canonical(v)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.service_duration)

    @property
    def appointment_date(self) -> str:
        """Business-local date, "YYYY-MM-DD"."""
        return to_business(self.starts_at).strftime("%Y-%m-%d")

    @property
    def appointment_time(self) -> str:
        """Business-local start time, "HH:MM"."""
        return to_business(self.starts_at).strftime("%H:%M")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """True if this appointment's window intersects [start, end)."""
        return self.starts_at < end and start < self.ends_at


class AppointmentCreate(BaseModel):
    """Appointment creation payload."""

    client: ClientInfo
    barber_id: int
    service_id: int
    starts_at: datetime
    notes: Optional[str] = None

    @field_validator("starts_at")
    @classmethod
    def validate_canonical(cls, v: datetime) -> datetime:
        return to_canonical(v)
