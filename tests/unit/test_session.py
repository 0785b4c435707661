"""
Unit tests for the booking session workflow.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from booking.availability import AvailabilityResolver
from booking.clock import FixedClock
from booking.session import BookingDraft, BookingSession, BookingStage
from models.appointment import ClientInfo
from models.slot import Slot
from utils.constants import MAX_PHONE_LENGTH, NO_PREFERENCE
from utils.exceptions import (
    DuplicateSlotError,
    MissingFieldError,
    RequestInFlightError,
    UnavailableError,
    UnreachableError,
)

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


@pytest.fixture
def session(mock_source, mock_store, clock, short_catalog, tz):
    resolver = AvailabilityResolver(mock_source, media_base_url="http://localhost:3000")
    return BookingSession(
        resolver, mock_store, clock=clock, catalog=short_catalog, rng=random.Random(3), tz=tz
    )


@pytest.fixture
def tomorrow(today):
    return today + timedelta(days=1)


async def fill_to_submission(session, day, choice=10):
    session.select_service(1)
    session.select_date(day)
    session.select_slot("09:00")
    await session.confirm_selection()
    session.choose_provider(choice)
    session.confirm_provider()
    session.set_customer_details("Carlos", "(11) 99999-9999", "carlos@example.com", "Degradê baixo")
    session.confirm_details()


# ========== Stage 1 ==========


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "service_id, with_date, slot, missing",
    [(None, True, "09:00", "service"), (1, False, None, "date"), (1, True, None, "slot")],
)
async def test_selection_names_missing_field(session, tomorrow, service_id, with_date, slot, missing):
    if service_id:
        session.select_service(service_id)
    if with_date:
        session.select_date(tomorrow)
    if slot:
        session.select_slot(slot)

    with pytest.raises(MissingFieldError) as exc_info:
        await session.confirm_selection()

    assert exc_info.value.field == missing
    assert session.stage == BookingStage.SELECTION


def test_changing_date_clears_slot(session, tomorrow):
    session.select_date(tomorrow)
    session.select_slot("08:30")

    session.select_date(tomorrow + timedelta(days=1))

    assert session.draft.slot is None


def test_same_date_keeps_slot(session, tomorrow):
    session.select_date(tomorrow)
    session.select_slot("08:30")

    session.select_date(tomorrow)

    assert session.draft.slot == Slot.parse("08:30")


def test_available_slots_follow_the_date(session, today, tomorrow):
    assert session.available_slots() == []
    session.select_date(today)
    assert [str(s) for s in session.available_slots()] == ["08:30", "09:00"]
    session.select_date(tomorrow)
    assert len(session.available_slots()) == 3


def test_past_slot_cannot_be_selected(session, today):
    session.select_date(today)
    with pytest.raises(UnavailableError):
        session.select_slot("08:00")


def test_slot_needs_date(session):
    with pytest.raises(MissingFieldError) as exc_info:
        session.select_slot("08:30")
    assert exc_info.value.field == "date"


def test_instant_is_composed_in_business_time(session, tomorrow):
    session.select_date(tomorrow)
    session.select_slot("09:00")
    assert session.instant == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_confirm_selection_resolves_barbers(session, mock_source, tomorrow):
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")

    resolution = await session.confirm_selection()

    assert session.stage == BookingStage.PROVIDER
    assert resolution.provider_ids == [10, 20]
    mock_source.list_eligible_providers.assert_awaited_once_with(session.instant, 1)


@pytest.mark.asyncio
async def test_unreachable_source_still_reaches_provider_step(session, mock_source, tomorrow):
    """The caller sees "not yet determined" rather than "nobody free"."""
    mock_source.list_eligible_providers.side_effect = UnreachableError("down")
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")

    resolution = await session.confirm_selection()

    assert session.stage == BookingStage.PROVIDER
    assert not resolution.determined
    assert not resolution.is_empty


# ========== Stages 2 and 3 ==========


@pytest.mark.asyncio
async def test_provider_step_requires_choice(session, tomorrow):
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")
    await session.confirm_selection()

    with pytest.raises(MissingFieldError) as exc_info:
        session.confirm_provider()

    assert exc_info.value.field == "provider"
    assert session.stage == BookingStage.PROVIDER


def test_provider_choice_needs_selection_first(session):
    with pytest.raises(MissingFieldError) as exc_info:
        session.choose_provider(10)
    assert exc_info.value.field == "service"


@pytest.mark.asyncio
async def test_invalid_provider_choice(session, tomorrow):
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")
    await session.confirm_selection()

    with pytest.raises(MissingFieldError):
        session.choose_provider("nobody")


@pytest.mark.asyncio
@pytest.mark.parametrize("name, phone, missing", [("", "11999", "name"), ("Carlos", "  ", "phone")])
async def test_details_require_name_and_phone(session, tomorrow, name, phone, missing):
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")
    await session.confirm_selection()
    session.choose_provider(10)
    session.confirm_provider()
    session.set_customer_details(name, phone)

    with pytest.raises(MissingFieldError) as exc_info:
        session.confirm_details()

    assert exc_info.value.field == missing
    assert session.stage == BookingStage.DETAILS


@pytest.mark.asyncio
async def test_malformed_email_is_rejected(session, tomorrow):
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")
    await session.confirm_selection()
    session.choose_provider(10)
    session.confirm_provider()
    session.set_customer_details("Carlos", "11999", email="carlos@")

    with pytest.raises(MissingFieldError) as exc_info:
        session.confirm_details()
    assert exc_info.value.field == "email"


def test_customer_details_are_trimmed_to_limits(session):
    session.set_customer_details("  Carlos  ", "9" * (MAX_PHONE_LENGTH + 10))

    assert session.draft.name == "Carlos"
    assert len(session.draft.phone) == MAX_PHONE_LENGTH


@pytest.mark.asyncio
async def test_editing_selection_reopens_step_one(session, tomorrow):
    await fill_to_submission(session, tomorrow)

    session.select_service(2)

    assert session.stage == BookingStage.SELECTION
    assert session.draft.provider_choice is None
    assert session.draft.name == "Carlos"


@pytest.mark.asyncio
async def test_back_keeps_everything(session, tomorrow):
    await fill_to_submission(session, tomorrow)

    session.back()

    assert session.stage == BookingStage.DETAILS
    assert session.draft.provider_choice == "10"
    assert session.draft.phone == "(11) 99999-9999"


# ========== Stage 4 ==========


@pytest.mark.asyncio
async def test_submit_success_resets_session(session, mock_store, tomorrow, make_appointment):
    created = make_appointment(id=55)
    mock_store.create.return_value = created
    await fill_to_submission(session, tomorrow)
    instant = session.instant

    result = await session.submit()

    assert result is created
    mock_store.create.assert_awaited_once_with(
        ClientInfo(name="Carlos", phone="(11) 99999-9999", email="carlos@example.com"),
        10,
        1,
        instant,
        "Degradê baixo",
    )
    assert session.stage == BookingStage.SELECTION
    assert session.draft == BookingDraft()
    assert not session.resolution.determined


@pytest.mark.asyncio
async def test_no_preference_resolves_again_at_submission(
    session, mock_source, mock_store, tomorrow, barber_b, make_appointment
):
    """Whoever is still free at submission time gets the booking."""
    mock_store.create.return_value = make_appointment()
    await fill_to_submission(session, tomorrow, choice=NO_PREFERENCE)
    mock_source.list_eligible_providers.return_value = [barber_b]

    await session.submit()

    assert mock_source.list_eligible_providers.await_count == 2
    assert mock_store.create.await_args.args[1] == 20


@pytest.mark.asyncio
async def test_no_preference_with_nobody_left(session, mock_source, mock_store, tomorrow):
    await fill_to_submission(session, tomorrow, choice=NO_PREFERENCE)
    mock_source.list_eligible_providers.return_value = []

    with pytest.raises(UnavailableError):
        await session.submit()

    mock_store.create.assert_not_called()
    assert session.stage == BookingStage.PROVIDER
    assert session.resolution.is_empty
    assert session.draft.name == "Carlos"


@pytest.mark.asyncio
async def test_duplicate_slot_returns_to_provider_choice(session, mock_store, tomorrow):
    mock_store.create.side_effect = DuplicateSlotError("taken")
    await fill_to_submission(session, tomorrow)

    with pytest.raises(DuplicateSlotError):
        await session.submit()

    assert session.stage == BookingStage.PROVIDER
    assert session.draft.provider_choice is None
    assert session.draft.slot == Slot.parse("09:00")
    assert session.draft.phone == "(11) 99999-9999"
    assert isinstance(session.last_error, DuplicateSlotError)


@pytest.mark.asyncio
async def test_store_failure_keeps_submission_state(session, mock_store, tomorrow, make_appointment):
    mock_store.create.side_effect = UnreachableError("store down")
    await fill_to_submission(session, tomorrow)
    draft_before = session.draft.model_copy()

    with pytest.raises(UnreachableError):
        await session.submit()

    assert session.stage == BookingStage.SUBMISSION
    assert session.draft == draft_before
    assert isinstance(session.last_error, UnreachableError)

    # Retry without re-entering anything
    mock_store.create.side_effect = None
    mock_store.create.return_value = make_appointment()
    await session.submit()
    assert session.stage == BookingStage.SELECTION


@pytest.mark.asyncio
async def test_no_preference_with_unreachable_source_stays_at_submission(
    session, mock_source, mock_store, tomorrow
):
    await fill_to_submission(session, tomorrow, choice=NO_PREFERENCE)
    mock_source.list_eligible_providers.side_effect = UnreachableError("down")

    with pytest.raises(UnreachableError):
        await session.submit()

    mock_store.create.assert_not_called()
    assert session.stage == BookingStage.SUBMISSION


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, phone, email, missing",
    [("", "", None, "name"), ("Carlos", " ", None, "phone"), ("Carlos", "11999", "carlos@", "email")],
)
async def test_details_edited_after_confirmation_are_checked_again(
    session, mock_store, tomorrow, name, phone, email, missing
):
    await fill_to_submission(session, tomorrow)
    session.set_customer_details(name, phone, email)

    with pytest.raises(MissingFieldError) as exc_info:
        await session.submit()

    assert exc_info.value.field == missing
    assert session.stage == BookingStage.DETAILS
    assert session.last_error is exc_info.value
    mock_store.create.assert_not_called()


@pytest.mark.asyncio
async def test_slot_that_passed_before_submission_is_not_booked(
    session, mock_source, mock_store, today
):
    session.select_service(1)
    session.select_date(today)
    session.select_slot("08:30")
    await session.confirm_selection()
    session.choose_provider(10)
    session.confirm_provider()
    session.set_customer_details("Carlos", "(11) 99999-9999")
    session.confirm_details()

    session.clock = FixedClock(datetime(2026, 10, 18, 10, 0, tzinfo=SAO_PAULO))

    with pytest.raises(UnavailableError):
        await session.submit()

    mock_store.create.assert_not_called()
    assert session.stage == BookingStage.SELECTION
    assert session.draft.slot is None
    assert session.draft.provider_choice is None
    assert session.draft.name == "Carlos"
    assert isinstance(session.last_error, UnavailableError)
    assert session.available_slots() == []


@pytest.mark.asyncio
async def test_submit_requires_all_steps(session, tomorrow):
    session.select_service(1)
    with pytest.raises(MissingFieldError):
        await session.submit()


# ========== Concurrency ==========


@pytest.mark.asyncio
async def test_one_request_at_a_time(session, mock_source, tomorrow):
    release = asyncio.Event()

    async def slow_resolve(instant, service_id):
        await release.wait()
        return []

    mock_source.list_eligible_providers = AsyncMock(side_effect=slow_resolve)
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")

    first = asyncio.create_task(session.confirm_selection())
    for _ in range(3):
        await asyncio.sleep(0)
    assert session.busy

    with pytest.raises(RequestInFlightError):
        await session.confirm_selection()

    release.set()
    await first
    assert not session.busy


@pytest.mark.asyncio
async def test_abandoned_session_discards_late_result(session, mock_source, tomorrow):
    release = asyncio.Event()

    async def slow_resolve(instant, service_id):
        await release.wait()
        return []

    mock_source.list_eligible_providers = AsyncMock(side_effect=slow_resolve)
    session.select_service(1)
    session.select_date(tomorrow)
    session.select_slot("09:00")

    pending = asyncio.create_task(session.confirm_selection())
    for _ in range(3):
        await asyncio.sleep(0)
    session.abandon()
    assert not session.busy

    release.set()
    await pending

    assert session.stage == BookingStage.SELECTION
    assert not session.resolution.determined
    assert session.draft == BookingDraft()


def test_sessions_are_isolated(mock_source, mock_store, clock, short_catalog, tz, tomorrow):
    resolver = AvailabilityResolver(mock_source)
    first = BookingSession(resolver, mock_store, clock=clock, catalog=short_catalog, tz=tz)
    second = BookingSession(resolver, mock_store, clock=clock, catalog=short_catalog, tz=tz)

    first.select_date(tomorrow)

    assert second.draft.day is None
