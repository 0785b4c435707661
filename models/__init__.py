"""Pydantic models for data validation and serialization."""

from .appointment import Appointment, AppointmentCreate, AppointmentStatus, ClientInfo
from .barber import Barber, BarberProfile
from .service import Service
from .slot import Slot

__all__ = [
    "Appointment",
    "AppointmentCreate",
    "AppointmentStatus",
    "ClientInfo",
    "Barber",
    "BarberProfile",
    "Service",
    "Slot",
]
