"""
Exception classes for the booking core.
Every error here is recoverable: callers correct input, retry or re-resolve.
"""

from typing import Optional


class BookingError(Exception):
    """Base exception for booking operations."""

    pass


class MissingFieldError(BookingError):
    """Raised when a booking stage is confirmed with a required field absent."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class UnavailableError(BookingError):
    """Raised when no eligible barber (or slot) is available at assignment time."""

    pass


class InvalidTransitionError(BookingError):
    """Raised when an appointment status change is not allowed."""

    def __init__(self, current, target, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot change appointment status from {current} to {target}"
        )


class UnreachableError(BookingError):
    """Raised when the availability source or appointment store cannot be reached."""

    pass


class DuplicateSlotError(BookingError):
    """Raised when the slot was taken between resolution and creation."""

    pass


class AppointmentNotFoundError(BookingError):
    """Raised when an appointment is not found."""

    pass


class RequestInFlightError(BookingError):
    """Raised when a session already has an outstanding request."""

    pass
