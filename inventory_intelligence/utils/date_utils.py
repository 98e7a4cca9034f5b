# inventory_intelligence/utils/date_utils.py
from datetime import date, datetime, timedelta
from typing import Tuple, Optional, Union

DateLike = Union[date, datetime, str]

def convert_to_date(value: Optional[DateLike]) -> Optional[date]:
    """Convert a date, datetime or ISO string into a date.

    Args:
        value: Value to convert

    Returns:
        Date object, or None when value is None or empty
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        # Timestamps from PostgREST look like 2024-12-15T08:00:00+00:00
        return date.fromisoformat(value[:10])

    raise ValueError(f"Cannot convert {value!r} to date")

def convert_to_datetime(value: Optional[Union[datetime, date, str]]) -> Optional[datetime]:
    """Convert a datetime, date or ISO string into a naive datetime."""
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed

    raise ValueError(f"Cannot convert {value!r} to datetime")

def resolve_today(today: Optional[DateLike] = None) -> date:
    """Return the given calendar day, defaulting to the local date."""
    resolved = convert_to_date(today)
    return resolved if resolved is not None else date.today()

def add_days(start: date, days: int) -> date:
    """Add a whole number of days to a date."""
    return start + timedelta(days=int(days))

def month_day(value: DateLike) -> Tuple[int, int]:
    """Get the (month, day) pair of a date, ignoring the year."""
    d = convert_to_date(value)
    return (d.month, d.day)

def month_index(value: DateLike) -> int:
    """Zero based month index (0 = January) used for seasonal multipliers."""
    return convert_to_date(value).month - 1

def format_date(value: Optional[date]) -> Optional[str]:
    """Serialize a date as YYYY-MM-DD."""
    return value.isoformat() if value is not None else None
