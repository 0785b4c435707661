"""
Booking session: one customer's multi-step booking attempt.

Stages run in order: service, date and slot selection; barber choice;
customer details; submission. The session lives in memory only and is
reset after a successful submission or when the customer walks away.
"""

import random
from contextlib import asynccontextmanager
from datetime import date, datetime, tzinfo
from enum import IntEnum
from typing import Optional, Sequence, Union

from pydantic import BaseModel

from models.appointment import Appointment, ClientInfo
from models.slot import Slot
from utils.constants import MAX_NAME_LENGTH, MAX_NOTES_LENGTH, MAX_PHONE_LENGTH
from utils.datetime_utils import business_tz
from utils.exceptions import (
    BookingError,
    DuplicateSlotError,
    MissingFieldError,
    RequestInFlightError,
    UnavailableError,
    UnreachableError,
)
from utils.logging_config import get_logger
from utils.validation import is_blank, sanitize_text, validate_email

from .assignment import ProviderChoice, assign_provider, is_no_preference
from .availability import MISSING_INPUT, AvailabilityResolver, Resolution
from .clock import SystemClock
from .interfaces import AppointmentStore, Clock
from .slots import compose_instant, default_catalog, generate_slots

logger = get_logger(__name__)


class BookingStage(IntEnum):
    SELECTION = 1
    PROVIDER = 2
    DETAILS = 3
    SUBMISSION = 4


class BookingDraft(BaseModel):
    """Everything the customer has entered so far."""

    service_id: Optional[int] = None
    day: Optional[date] = None
    slot: Optional[Slot] = None
    provider_choice: Optional[str] = None  # barber id or NO_PREFERENCE
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    notes: Optional[str] = None

    def missing_for_selection(self) -> Optional[str]:
        if not self.service_id:
            return "service"
        if self.day is None:
            return "date"
        if self.slot is None:
            return "slot"
        return None

    def missing_for_provider(self) -> Optional[str]:
        return "provider" if is_blank(self.provider_choice) else None

    def missing_for_details(self) -> Optional[str]:
        if is_blank(self.name):
            return "name"
        if is_blank(self.phone):
            return "phone"
        return None


class BookingSession:
    """Drives slot generation, availability, assignment and creation."""

    def __init__(
        self,
        resolver: AvailabilityResolver,
        store: AppointmentStore,
        clock: Optional[Clock] = None,
        catalog: Optional[Sequence[Slot]] = None,
        rng: Optional[random.Random] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.resolver = resolver
        self.store = store
        self.clock = clock or SystemClock()
        self.catalog = list(catalog) if catalog is not None else default_catalog()
        self.rng = rng
        self.tz = tz or business_tz()
        self._generation = 0
        self._in_flight: Optional[int] = None
        self._reset()

    def _reset(self) -> None:
        self.stage = BookingStage.SELECTION
        self.draft = BookingDraft()
        self.resolution = Resolution.undetermined(MISSING_INPUT)
        self.last_error: Optional[BookingError] = None

    @asynccontextmanager
    async def _request(self):
        """Allow a single outstanding request per session generation."""
        if self._in_flight == self._generation:
            raise RequestInFlightError("A request is already in progress for this booking")
        generation = self._generation
        self._in_flight = generation
        try:
            yield generation
        finally:
            if self._in_flight == generation:
                self._in_flight = None

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    @property
    def busy(self) -> bool:
        return self._in_flight == self._generation

    # ========== Stage 1: Selection ==========

    def _reopen_selection(self) -> None:
        """Selection edits make any barber choice stale."""
        if self.stage > BookingStage.SELECTION:
            self.stage = BookingStage.SELECTION
            self.draft.provider_choice = None
            self.resolution = Resolution.undetermined(MISSING_INPUT)

    def select_service(self, service_id: int) -> None:
        self._reopen_selection()
        self.draft.service_id = service_id

    def select_date(self, day: date) -> None:
        self._reopen_selection()
        if day != self.draft.day:
            # Slot availability depends on the date
            self.draft.slot = None
        self.draft.day = day

    def available_slots(self) -> list[Slot]:
        if self.draft.day is None:
            return []
        return generate_slots(self.draft.day, self.catalog, self.clock, self.tz)

    def select_slot(self, slot: Union[Slot, str]) -> None:
        """
        Raises:
            MissingFieldError: If no date was chosen yet
            UnavailableError: If the slot is not offered on the chosen date
        """
        if isinstance(slot, str):
            slot = Slot.parse(slot)
        if self.draft.day is None:
            raise MissingFieldError("date")
        if slot not in self.available_slots():
            raise UnavailableError(f"Slot {slot} is not available on {self.draft.day}")
        self._reopen_selection()
        self.draft.slot = slot

    @property
    def instant(self) -> Optional[datetime]:
        if self.draft.day is None or self.draft.slot is None:
            return None
        return compose_instant(self.draft.day, self.draft.slot, self.tz)

    async def confirm_selection(self) -> Resolution:
        """
        Move to barber choice, resolving who can take the slot.

        Raises:
            MissingFieldError: Names the first of service, date, slot still absent
        """
        missing = self.draft.missing_for_selection()
        if missing:
            raise MissingFieldError(missing)

        async with self._request() as generation:
            resolution = await self.resolver.resolve(self.instant, self.draft.service_id)
            if self._is_stale(generation):
                logger.info("Discarding availability result of an abandoned booking")
                return resolution
            self.resolution = resolution
            self.stage = BookingStage.PROVIDER
        return resolution

    # ========== Stage 2: Barber choice ==========

    def _require_stage(self, stage: BookingStage) -> None:
        if self.stage >= stage:
            return
        if self.stage == BookingStage.SELECTION:
            missing = self.draft.missing_for_selection() or "selection"
        elif self.stage == BookingStage.PROVIDER:
            missing = self.draft.missing_for_provider() or "provider"
        else:
            missing = self.draft.missing_for_details() or "details"
        raise MissingFieldError(
            missing, f"Booking step {self.stage.value} is not complete yet"
        )

    async def refresh_providers(self) -> Resolution:
        """Resolve the eligible barbers again for the current selection."""
        self._require_stage(BookingStage.PROVIDER)
        async with self._request() as generation:
            resolution = await self.resolver.resolve(self.instant, self.draft.service_id)
            if not self._is_stale(generation):
                self.resolution = resolution
        return resolution

    def choose_provider(self, choice: ProviderChoice) -> None:
        """Pick a barber id or NO_PREFERENCE."""
        self._require_stage(BookingStage.PROVIDER)
        if isinstance(choice, bool) or is_blank(str(choice) if choice is not None else None):
            raise MissingFieldError("provider")
        if not is_no_preference(choice):
            try:
                int(choice)
            except (TypeError, ValueError) as e:
                raise MissingFieldError("provider", f"Invalid barber choice: {choice!r}") from e
        self.draft.provider_choice = str(choice).strip()

    def confirm_provider(self) -> None:
        self._require_stage(BookingStage.PROVIDER)
        missing = self.draft.missing_for_provider()
        if missing:
            raise MissingFieldError(missing)
        self.stage = max(self.stage, BookingStage.DETAILS)

    # ========== Stage 3: Customer details ==========

    def set_customer_details(
        self,
        name: str,
        phone: str,
        email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        self.draft.name = sanitize_text(name, MAX_NAME_LENGTH)
        self.draft.phone = sanitize_text(phone, MAX_PHONE_LENGTH)
        self.draft.email = sanitize_text(email) or None
        self.draft.notes = sanitize_text(notes, MAX_NOTES_LENGTH) or None

    def _check_details(self) -> None:
        missing = self.draft.missing_for_details()
        if missing:
            raise MissingFieldError(missing)
        if self.draft.email and not validate_email(self.draft.email):
            raise MissingFieldError("email", f"Invalid email: {self.draft.email}")

    def confirm_details(self) -> None:
        """
        Raises:
            MissingFieldError: If name or phone is blank, or email is malformed
        """
        self._require_stage(BookingStage.DETAILS)
        self._check_details()
        self.stage = BookingStage.SUBMISSION

    # ========== Stage 4: Submission ==========

    async def _assign(self) -> int:
        choice = self.draft.provider_choice
        if not is_no_preference(choice):
            return assign_provider(choice, self.resolution.providers, self.rng)

        # Eligibility may have changed since the list was shown
        resolution = await self.resolver.resolve(self.instant, self.draft.service_id)
        if not resolution.determined:
            raise UnreachableError("Could not determine available barbers, try again")
        self.resolution = resolution
        return assign_provider(choice, resolution.providers, self.rng)

    async def _reoffer_providers(self, generation: int) -> None:
        resolution = await self.resolver.resolve(self.instant, self.draft.service_id)
        if self._is_stale(generation):
            return
        self.resolution = resolution
        self.draft.provider_choice = None
        self.stage = BookingStage.PROVIDER

    async def submit(self) -> Appointment:
        """
        Create the appointment.

        On success the session starts over. When the slot was taken or no
        barber is left, the session goes back to barber choice keeping the
        customer details. Details edited after confirmation send the session
        back to the details step, and a slot that has passed in the meantime
        sends it back to selection. Any other failure leaves the session
        untouched at the submission step. Errors are re-raised after being
        recorded.
        """
        self._require_stage(BookingStage.SUBMISSION)

        try:
            self._check_details()
        except MissingFieldError as e:
            self.last_error = e
            self.stage = BookingStage.DETAILS
            raise

        if self.draft.slot not in self.available_slots():
            error = UnavailableError(f"Slot {self.draft.slot} on {self.draft.day} is no longer available")
            logger.warning(str(error))
            self._reopen_selection()
            self.draft.slot = None
            self.last_error = error
            raise error

        async with self._request() as generation:
            try:
                barber_id = await self._assign()
                appointment = await self.store.create(
                    ClientInfo(
                        name=self.draft.name,
                        phone=self.draft.phone,
                        email=self.draft.email,
                    ),
                    barber_id,
                    self.draft.service_id,
                    self.instant,
                    self.draft.notes,
                )
            except (DuplicateSlotError, UnavailableError) as e:
                logger.warning(f"Booking at {self.instant} needs a new barber choice: {e}")
                if not self._is_stale(generation):
                    self.last_error = e
                    await self._reoffer_providers(generation)
                raise
            except BookingError as e:
                logger.error(f"Booking submission failed: {e}")
                if not self._is_stale(generation):
                    self.last_error = e
                raise

            logger.info(f"Appointment {appointment.id} created for barber {barber_id}")
            if not self._is_stale(generation):
                self._reset()
        return appointment

    # ========== Navigation ==========

    def back(self) -> None:
        if self.stage > BookingStage.SELECTION:
            self.stage = BookingStage(self.stage - 1)

    def abandon(self) -> None:
        """Start over; results of requests still in flight are discarded."""
        self._generation += 1
        self._reset()
