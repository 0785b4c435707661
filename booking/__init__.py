"""Scheduling and availability core of the booking flow."""

from .assignment import assign_provider
from .availability import AvailabilityResolver, Resolution
from .clock import FixedClock, SystemClock
from .session import BookingDraft, BookingSession, BookingStage
from .slots import build_catalog, compose_instant, default_catalog, generate_slots
from .state_machine import can_transition, transition

__all__ = [
    "assign_provider",
    "AvailabilityResolver",
    "Resolution",
    "FixedClock",
    "SystemClock",
    "BookingDraft",
    "BookingSession",
    "BookingStage",
    "build_catalog",
    "compose_instant",
    "default_catalog",
    "generate_slots",
    "can_transition",
    "transition",
]
