"""Clock implementations for the booking core."""

from datetime import datetime

from utils.datetime_utils import to_canonical, utc_now


class SystemClock:
    """Wall clock, always UTC."""

    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """Clock frozen at a given instant."""

    def __init__(self, instant: datetime):
        self._instant = to_canonical(instant)

    def now(self) -> datetime:
        return self._instant
