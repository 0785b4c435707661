"""
Appointment status lifecycle.

PENDING is entered at creation only. An administrator approves or rejects a
pending appointment; a pending or approved one can be cancelled. REJECTED
and CANCELLED are terminal.
"""

from typing import Dict, FrozenSet, Optional

from models.appointment import Appointment, AppointmentStatus
from utils.datetime_utils import to_canonical
from utils.exceptions import InvalidTransitionError
from utils.logging_config import get_logger

from .clock import SystemClock
from .interfaces import Clock

logger = get_logger(__name__)

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.APPROVED, AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.APPROVED: frozenset({AppointmentStatus.CANCELLED}),
    AppointmentStatus.REJECTED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

# Action names used by the admin surface
ACTIONS: Dict[str, AppointmentStatus] = {
    "approve": AppointmentStatus.APPROVED,
    "reject": AppointmentStatus.REJECTED,
    "cancel": AppointmentStatus.CANCELLED,
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def allowed_targets(current: AppointmentStatus) -> FrozenSet[AppointmentStatus]:
    return TRANSITIONS[AppointmentStatus(current)]


def is_terminal(status: AppointmentStatus) -> bool:
    return not TRANSITIONS[AppointmentStatus(status)]


def status_for_action(action: str) -> AppointmentStatus:
    """Map "approve" / "reject" / "cancel" to the target status."""
    try:
        return ACTIONS[action.strip().lower()]
    except (AttributeError, KeyError):
        raise InvalidTransitionError(
            None, action, f"Unknown status action: {action!r}"
        ) from None


def action_for_status(status: AppointmentStatus) -> str:
    for action, target in ACTIONS.items():
        if target == status:
            return action
    raise InvalidTransitionError(None, status, f"No action leads to {status}")


def transition(
    appointment: Appointment,
    target: AppointmentStatus,
    clock: Optional[Clock] = None,
) -> Appointment:
    """
    Return a copy of appointment moved to target, stamped with decided_at.

    Raises:
        InvalidTransitionError: If target is not reachable from the current status
    """
    try:
        target = AppointmentStatus(target)
    except ValueError:
        raise InvalidTransitionError(appointment.status, target) from None

    current = AppointmentStatus(appointment.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    decided_at = to_canonical((clock or SystemClock()).now())
    logger.info(f"Appointment {appointment.id}: {current.value} -> {target.value}")
    return appointment.model_copy(update={"status": target, "decided_at": decided_at})
