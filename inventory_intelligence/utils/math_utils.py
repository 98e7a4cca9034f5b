# inventory_intelligence/utils/math_utils.py
import math
from typing import Any

def is_valid_number(value: Any) -> bool:
    """Check that a value is a finite real number (bools excluded)."""
    if isinstance(value, bool) or value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False

def safe_float(value: Any, default: float = 0.0) -> float:
    """Convert to float, falling back to default for missing or malformed values.

    Numeric columns read through PostgREST arrive as strings.
    """
    if not is_valid_number(value):
        return default
    return float(value)

def safe_int(value: Any, default: int = 0) -> int:
    """Convert to int, falling back to default for missing or malformed values."""
    if not is_valid_number(value):
        return default
    return int(float(value))

def round_half_up(value: float, places: int = 2) -> float:
    """Round to the given places with halves going up.

    round() rounds halves to even, which would move stored values by one
    unit in the last place compared with existing rows.
    """
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor

