"""
Pytest configuration and shared fixtures.
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from booking.clock import FixedClock
from models.appointment import Appointment, AppointmentStatus
from models.barber import Barber, BarberProfile
from models.service import Service
from models.slot import Slot

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


@pytest.fixture
def tz():
    return SAO_PAULO


@pytest.fixture
def today():
    return date(2026, 10, 18)


@pytest.fixture
def clock(today):
    """Clock at 08:15 shop time on the test day."""
    return FixedClock(datetime(today.year, today.month, today.day, 8, 15, tzinfo=SAO_PAULO))


@pytest.fixture
def short_catalog():
    return [Slot.parse("08:00"), Slot.parse("08:30"), Slot.parse("09:00")]


@pytest.fixture
def haircut():
    return Service(id=1, name="Corte", price=Decimal("45.00"), duration_minutes=30)


@pytest.fixture
def beard():
    return Service(id=2, name="Barba", price=Decimal("30.00"), duration_minutes=60)


@pytest.fixture
def barber_a():
    return Barber(
        id=10,
        name="Ana",
        profile=BarberProfile(specialties=["Degradê", "Barba"], avatar_url="/uploads/ana.png"),
    )


@pytest.fixture
def barber_b():
    return Barber(id=20, name="Bruno", profile=BarberProfile())


@pytest.fixture
def make_appointment():
    """Factory for appointments with sensible snapshot defaults."""

    def _make(**overrides) -> Appointment:
        data = {
            "id": 1,
            "barber_id": 10,
            "service_id": 1,
            "datetime": datetime(2026, 10, 18, 14, 0, tzinfo=SAO_PAULO),
            "status": AppointmentStatus.PENDING,
            "client_name": "Carlos",
            "client_phone": "(11) 99999-9999",
            "barber_name": "Ana",
            "service_name": "Corte",
            "service_price": Decimal("45.00"),
            "service_duration": 30,
        }
        data.update(overrides)
        return Appointment(**data)

    return _make


@pytest.fixture
def mock_source(barber_a, barber_b, haircut, beard):
    """Availability source returning both barbers."""
    source = MagicMock()
    source.list_eligible_providers = AsyncMock(return_value=[barber_a, barber_b])
    source.list_services = AsyncMock(return_value=[haircut, beard])
    return source


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.create = AsyncMock()
    store.transition = AsyncMock()
    return store


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table
