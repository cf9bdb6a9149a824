"""Datetime utilities for listing dates."""

from datetime import datetime, date, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import re

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = "%Y-%m-%d"
EPOCH_DATE = "1970-01-01"


def now(tz_name: str = "UTC") -> datetime:
    """Get current datetime in the given timezone (UTC when unknown)."""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, falling back to UTC")
        tz = timezone.utc
    return datetime.now(tz)


def site_today(tz_name: str = "UTC") -> date:
    """Get the current date as seen by the site."""
    return now(tz_name).date()


def format_date(dt: datetime | date, format_str: str = CANONICAL_FORMAT) -> str:
    """Format a date as ``YYYY-MM-DD`` unless told otherwise."""
    return dt.strftime(format_str)


def add_days(dt: date, days: int) -> date:
    """
    Add days to a date.

    Args:
        dt: Date
        days: Number of days to add (can be negative)

    Returns:
        New date
    """
    return dt + timedelta(days=days)


_RELATIVE_WORDS = {
    "today": 0,
    "now": 0,
    "tomorrow": 1,
    "yesterday": -1,
}

_RELATIVE_OFFSET = re.compile(r"^([+-]?\d+)\s*(day|week)s?$", re.IGNORECASE)


def parse_date(date_str: str, today: Optional[date] = None) -> Optional[date]:
    """
    Parse a date string in the formats people type into a datepicker.

    Slash-separated dates are read month first and dash-separated dates day
    first, the same way ``strtotime`` reads them.

    Args:
        date_str: Date string to parse
        today: Reference date for relative expressions

    Returns:
        Parsed date or None if invalid
    """
    text = (date_str or "").strip()
    if not text:
        return None

    reference = today or site_today()
    lowered = text.lower()
    if lowered in _RELATIVE_WORDS:
        return add_days(reference, _RELATIVE_WORDS[lowered])

    match = _RELATIVE_OFFSET.match(lowered)
    if match:
        amount = int(match.group(1))
        if match.group(2).lower() == "week":
            amount *= 7
        return add_days(reference, amount)

    formats = [
        "%Y-%m-%d",
        "%Y/%m/%d",
        "%m/%d/%Y",
        "%d-%m-%Y",
        "%d.%m.%Y",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M",
        "%B %d, %Y",
        "%b %d, %Y",
        "%d %B %Y",
        "%d %b %Y",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def canonical_date(date_str: str, today: Optional[date] = None) -> str:
    """
    Normalize a submitted date to ``YYYY-MM-DD``.

    Text that cannot be read as a date coerces to the epoch date instead of
    raising.
    """
    parsed = parse_date(date_str, today=today)
    if parsed is None:
        logger.warning(f"Unparseable date {date_str!r}, storing {EPOCH_DATE}")
        return EPOCH_DATE
    return format_date(parsed)
