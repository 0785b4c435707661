"""
Availability resolution: which barbers can be offered for a slot and service.

The source holds the scheduling truth. The resolver only validates the
query, shapes the response and keeps "not yet determined" apart from
"nobody available".
"""

from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from config import settings
from models.barber import Barber
from models.service import Service
from utils.exceptions import UnreachableError
from utils.logging_config import get_logger

from .interfaces import AvailabilitySource

logger = get_logger(__name__)

MISSING_INPUT = "missing_input"
UNREACHABLE = "unreachable"


class Resolution(BaseModel):
    """Outcome of an availability query."""

    determined: bool
    providers: List[Barber] = Field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def undetermined(cls, reason: str) -> "Resolution":
        return cls(determined=False, reason=reason)

    @classmethod
    def of(cls, providers: Iterable[Barber]) -> "Resolution":
        return cls(determined=True, providers=list(providers))

    @property
    def is_empty(self) -> bool:
        """Nobody available. Only true once the query actually ran."""
        return self.determined and not self.providers

    @property
    def provider_ids(self) -> List[int]:
        return [barber.id for barber in self.providers]


def _valid_service_id(service_id) -> bool:
    if isinstance(service_id, bool):
        return False
    try:
        return int(service_id) > 0
    except (TypeError, ValueError):
        return False


class AvailabilityResolver:
    """Resolves eligible barbers through an availability source."""

    def __init__(
        self,
        source: AvailabilitySource,
        media_base_url: Optional[str] = None,
        default_specialty: Optional[str] = None,
    ):
        self.source = source
        self.media_base_url = (media_base_url or settings.media_base_url).rstrip("/")
        self.default_specialty = default_specialty or settings.default_specialty_label

    async def resolve(self, instant: Optional[datetime], service_id) -> Resolution:
        """
        Eligible barbers for service_id starting at instant.

        Returns an undetermined resolution when an input is missing (the
        source is not queried) or when the source is unreachable.
        """
        if instant is None or not _valid_service_id(service_id):
            return Resolution.undetermined(MISSING_INPUT)

        try:
            barbers = await self.source.list_eligible_providers(instant, int(service_id))
        except UnreachableError as e:
            logger.warning(f"Availability source unreachable for {instant.isoformat()}: {e}")
            return Resolution.undetermined(UNREACHABLE)

        providers = self.normalize(barbers)
        logger.info(
            f"Resolved {len(providers)} barber(s) for service {service_id} at {instant.isoformat()}"
        )
        return Resolution.of(providers)

    async def list_services(self, active_only: bool = True) -> List[Service]:
        services = await self.source.list_services()
        if active_only:
            return [service for service in services if service.active]
        return list(services)

    def normalize(self, barbers: Iterable[Barber]) -> List[Barber]:
        """Drop repeated ids (first wins) and fill display fields."""
        seen = set()
        normalized = []
        for barber in barbers:
            if barber.id in seen:
                continue
            seen.add(barber.id)
            normalized.append(self._display(barber))
        return normalized

    def _display(self, barber: Barber) -> Barber:
        profile = barber.profile
        specialty = ", ".join(profile.specialties) or self.default_specialty

        avatar_url = profile.avatar_url
        if avatar_url and not avatar_url.startswith("http"):
            separator = "" if avatar_url.startswith("/") else "/"
            avatar_url = f"{self.media_base_url}{separator}{avatar_url}"

        return barber.model_copy(
            update={
                "specialty": specialty,
                "profile": profile.model_copy(update={"avatar_url": avatar_url}),
            }
        )
