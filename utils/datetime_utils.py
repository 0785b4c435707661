"""
Datetime utilities for consistent timezone handling across the booking core.

Instants are stored and compared in UTC. Wall-clock values (a calendar day
plus a slot) are interpreted in the business time zone from settings.
"""

from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from config import settings


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def business_tz(name: Optional[str] = None) -> tzinfo:
    """Time zone the shop's calendar is kept in."""
    return ZoneInfo(name or settings.timezone)


def to_canonical(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """
    Convert a datetime to the canonical (UTC) zone.

    Naive datetimes are taken as business wall-clock time.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz or business_tz())
    return dt.astimezone(timezone.utc)


def to_business(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Express an instant in business wall-clock time."""
    return to_canonical(dt, tz).astimezone(tz or business_tz())


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to a canonical (UTC) datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e

    # Values coming back from the store without offset are UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_string(dt: datetime) -> str:
    """Convert datetime to a canonical ISO format string."""
    return to_canonical(dt).isoformat()
