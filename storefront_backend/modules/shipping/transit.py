"""
Transit time (TAT) helpers.

The partner's expected-TAT API answers with free text or numbers
("2", "1 business day", "3-5 days"). These helpers turn that into whole
days, business-day delivery dates and the pickup-date format the partner
expects ("YYYY-MM-DD 10:00").
"""
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

PICKUP_TIME = "10:00"

# Ranges first so "3-5 days" resolves to the upper bound
_TAT_PATTERNS = (
    re.compile(r"(\d+)\s*-\s*(\d+)\s*(?:business\s*)?days?"),
    re.compile(r"(\d+)\s*(?:business\s*)?days?"),
    re.compile(r"(\d+)"),
)


def parse_tat_days(tat: Any) -> Optional[int]:
    """
    Extract a number of days from a partner TAT value.

    Returns the upper bound for ranges, None when nothing numeric is present.
    """
    if tat is None or isinstance(tat, bool):
        return None
    if isinstance(tat, (int, float)):
        return int(tat) if tat >= 0 else None

    text = str(tat).strip().lower()
    for pattern in _TAT_PATTERNS:
        match = pattern.search(text)
        if match:
            groups = [g for g in match.groups() if g is not None]
            return int(groups[-1])
    return None


def format_tat(tat: Any, fallback: str) -> str:
    """Human readable TAT for display, e.g. '2 business days'."""
    if tat is None or str(tat).strip() == "":
        return fallback

    text = str(tat).strip()
    if "day" in text.lower():
        return text

    try:
        days = int(float(text))
    except ValueError:
        return text
    return f"{days} business day{'s' if days != 1 else ''}"


def add_business_days(start: date, days: int) -> date:
    """Add working days to a date, skipping Saturdays and Sundays."""
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse 'YYYY-MM-DD', 'YYYY-MM-DD HH:MM' or an ISO timestamp. None if invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def default_pickup_date(today: Optional[date] = None) -> date:
    """Tomorrow."""
    return (today or date.today()) + timedelta(days=1)


def resolve_pickup_date(
    requested: Union[str, date, None],
    today: Optional[date] = None,
) -> date:
    """Requested pickup date if valid and not in the past, otherwise tomorrow."""
    today = today or date.today()
    pickup = parse_date(requested)
    if pickup is None or pickup < today:
        return default_pickup_date(today)
    return pickup


def format_pickup_for_partner(pickup: date) -> str:
    return f"{pickup.isoformat()} {PICKUP_TIME}"


def fallback_delivery_date(days: int, today: Optional[date] = None) -> date:
    return (today or date.today()) + timedelta(days=days)
