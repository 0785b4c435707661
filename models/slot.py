"""Slot model for bookable times of day."""

from datetime import time
from functools import total_ordering

from pydantic import BaseModel, ConfigDict, Field


@total_ordering
class Slot(BaseModel):
    """A bookable time of day drawn from the shop's daily catalog."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)

    @classmethod
    def parse(cls, value: str) -> "Slot":
        """Parse an "HH:MM" label."""
        try:
            hours, minutes = value.strip().split(":")
            return cls(hour=int(hours), minute=int(minutes))
        except (AttributeError, ValueError) as e:
            raise ValueError(f"Invalid slot: {value!r}") from e

    @classmethod
    def from_time(cls, value: time) -> "Slot":
        return cls(hour=value.hour, minute=value.minute)

    def as_time(self) -> time:
        return time(self.hour, self.minute)

    @property
    def minutes_of_day(self) -> int:
        return self.hour * 60 + self.minute

    def __lt__(self, other: "Slot") -> bool:
        if not isinstance(other, Slot):
            return NotImplemented
        return self.minutes_of_day < other.minutes_of_day

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"
