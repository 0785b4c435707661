"""Barber assignment for a booking submission."""

import random
from typing import Optional, Sequence, Union

from models.barber import Barber
from utils.constants import NO_PREFERENCE
from utils.exceptions import MissingFieldError, UnavailableError
from utils.logging_config import get_logger

logger = get_logger(__name__)

ProviderChoice = Union[int, str]


def is_no_preference(choice: Optional[ProviderChoice]) -> bool:
    return isinstance(choice, str) and choice.strip().lower() == NO_PREFERENCE


def assign_provider(
    choice: Optional[ProviderChoice],
    eligible: Sequence[Barber],
    rng: Optional[random.Random] = None,
) -> int:
    """
    Turn the customer's barber choice into a concrete barber id.

    An explicit id is used as given; the store has the final word on
    conflicts. "No preference" picks uniformly among the barbers eligible
    right now.

    Raises:
        UnavailableError: No preference was chosen and nobody is eligible
        MissingFieldError: The choice is empty or not a barber id
    """
    if is_no_preference(choice):
        if not eligible:
            raise UnavailableError("No barber available for the selected time")
        barber = (rng or random).choice(list(eligible))
        logger.info(f"No preference: assigned barber {barber.id} out of {len(eligible)}")
        return barber.id

    if isinstance(choice, bool) or choice is None:
        raise MissingFieldError("provider")
    try:
        return int(choice)
    except (TypeError, ValueError) as e:
        raise MissingFieldError("provider", f"Invalid barber choice: {choice!r}") from e
