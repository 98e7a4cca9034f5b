# inventory_intelligence/core/urgency.py
"""Urgency classification and stock-cover arithmetic.

Every function here is pure. "Today" is always a parameter that defaults to
the local calendar day at the call boundary, and malformed numeric input
degrades to the unbounded / zero result instead of raising.
"""
import math
from datetime import date
from typing import Dict, List, Optional, Union

from inventory_intelligence.models import SuggestionUrgency, ThresholdType
from inventory_intelligence.utils.date_utils import add_days, month_index, resolve_today, format_date
from inventory_intelligence.utils.math_utils import is_valid_number, safe_float, safe_int, round_half_up
from inventory_intelligence.utils.validation import has_monthly_multipliers

# Serialized form of "no foreseeable stockout"
UNBOUNDED_DAYS = 999

DEFAULT_THRESHOLDS = {
    'critical_days': 3,
    'warning_days': 7,
    'planned_days': 14,
}

DEFAULT_SAFETY_STOCK_DAYS = 14

# A stored seasonal multiplier of exactly 0 reads as "not configured" and
# falls back to this value. Existing data depends on it.
UNSET_MULTIPLIER_FALLBACK = 1.0


class DaysOfStock:
    """Days of stock remaining: either a finite whole number of days or unbounded.

    Unbounded means the effective daily rate is zero or negative, so no
    stockout can be projected. ``to_value()`` produces the legacy integer
    form where unbounded is 999.
    """

    __slots__ = ('_days',)

    def __init__(self, days: Optional[int] = None):
        self._days = None if days is None else max(0, int(days))

    @classmethod
    def unbounded(cls) -> 'DaysOfStock':
        return cls(None)

    @classmethod
    def from_value(cls, value) -> 'DaysOfStock':
        """Parse the legacy integer form (None or >= 999 is unbounded)."""
        if not is_valid_number(value) or float(value) >= UNBOUNDED_DAYS:
            return cls.unbounded()
        return cls(int(value))

    @property
    def is_unbounded(self) -> bool:
        return self._days is None

    @property
    def days(self) -> Optional[int]:
        return self._days

    def to_value(self) -> int:
        return UNBOUNDED_DAYS if self._days is None else self._days

    def __eq__(self, other):
        if isinstance(other, DaysOfStock):
            return self._days == other._days
        return NotImplemented

    def __hash__(self):
        return hash(self._days)

    def __repr__(self):
        return 'DaysOfStock(unbounded)' if self._days is None else f'DaysOfStock({self._days})'


def _thresholds(thresholds: Optional[Dict[str, int]]) -> Dict[str, int]:
    resolved = dict(DEFAULT_THRESHOLDS)
    if thresholds:
        resolved.update({k: v for k, v in thresholds.items() if v is not None})
    return resolved

def classify_urgency(
    days_remaining: Union[int, float, DaysOfStock],
    thresholds: Optional[Dict[str, int]] = None
) -> SuggestionUrgency:
    """Classify urgency based on days of stock remaining.

    Bands are inclusive at their upper edge: with the default thresholds
    3 is critical, 4-7 warning, 8-14 planned and 15+ monitor. Negative days
    are a data anomaly and classify as critical.

    Args:
        days_remaining: Days of stock remaining (int or DaysOfStock)
        thresholds: Optional dict with critical_days, warning_days, planned_days

    Returns:
        SuggestionUrgency value
    """
    if isinstance(days_remaining, DaysOfStock):
        if days_remaining.is_unbounded:
            return SuggestionUrgency.MONITOR
        days_remaining = days_remaining.days

    if not is_valid_number(days_remaining):
        return SuggestionUrgency.MONITOR

    limits = _thresholds(thresholds)

    if days_remaining <= limits['critical_days']:
        return SuggestionUrgency.CRITICAL
    if days_remaining <= limits['warning_days']:
        return SuggestionUrgency.WARNING
    if days_remaining <= limits['planned_days']:
        return SuggestionUrgency.PLANNED
    return SuggestionUrgency.MONITOR

def calculate_days_of_stock(
    available_stock: float,
    daily_rate: float,
    in_transit: float = 0,
    include_in_transit: bool = False
) -> int:
    """Calculate whole days of stock remaining.

    Args:
        available_stock: Current available stock
        daily_rate: Daily sales rate
        in_transit: In-transit quantity
        include_in_transit: Whether in-transit stock counts towards cover

    Returns:
        Days of stock remaining, 999 when the rate is zero, negative or malformed
    """
    if not is_valid_number(daily_rate) or float(daily_rate) <= 0:
        return UNBOUNDED_DAYS

    total_stock = safe_float(available_stock)
    if include_in_transit:
        total_stock += safe_float(in_transit)

    return max(0, math.floor(total_stock / float(daily_rate)))

def project_days_of_stock(
    available_stock: float,
    daily_rate: float,
    in_transit: float = 0,
    include_in_transit: bool = False
) -> DaysOfStock:
    """Same as calculate_days_of_stock but returns a DaysOfStock.

    A large finite cover stays finite here; only a non-positive rate is
    unbounded.
    """
    if not is_valid_number(daily_rate) or float(daily_rate) <= 0:
        return DaysOfStock.unbounded()
    return DaysOfStock(calculate_days_of_stock(available_stock, daily_rate, in_transit, include_in_transit))

def calculate_stockout_date(
    days_remaining: Union[int, float, DaysOfStock],
    today: Optional[date] = None
) -> Optional[str]:
    """Calculate the projected stockout date.

    Args:
        days_remaining: Days of stock remaining
        today: Local calendar day to project from (defaults to today)

    Returns:
        ISO date string, or None when no stockout is expected
    """
    if isinstance(days_remaining, DaysOfStock):
        if days_remaining.is_unbounded:
            return None
        days_remaining = days_remaining.days
    elif not is_valid_number(days_remaining) or days_remaining >= UNBOUNDED_DAYS:
        return None

    return format_date(add_days(resolve_today(today), max(0, int(days_remaining))))

def calculate_recommended_qty(
    daily_rate: float,
    days_of_cover: float,
    current_stock: float,
    in_transit: float = 0,
    min_order_qty: int = 1
) -> int:
    """Calculate recommended replenishment quantity.

    The result is always 0 or a positive multiple of min_order_qty.

    Args:
        daily_rate: Daily sales rate
        days_of_cover: Target days of coverage
        current_stock: Current stock level
        in_transit: In-transit quantity
        min_order_qty: Minimum order quantity

    Returns:
        Recommended quantity to order
    """
    if not is_valid_number(daily_rate) or float(daily_rate) <= 0:
        return 0
    if not is_valid_number(days_of_cover) or float(days_of_cover) <= 0:
        return 0

    min_order_qty = max(1, safe_int(min_order_qty, 1))

    target_stock = math.ceil(float(daily_rate) * float(days_of_cover))
    needed = target_stock - safe_float(current_stock) - safe_float(in_transit)
    if needed <= 0:
        return 0

    return max(min_order_qty, math.ceil(needed / min_order_qty) * min_order_qty)

def get_seasonal_multiplier(multipliers: Optional[List[float]], on_date: date) -> float:
    """Get the seasonal multiplier for the month of a date.

    Args:
        multipliers: Array of 12 monthly multipliers (index 0 = January)
        on_date: Date to get the multiplier for

    Returns:
        Multiplier value, 1 for a missing or malformed array
    """
    if not has_monthly_multipliers(multipliers):
        return 1.0

    value = safe_float(multipliers[month_index(on_date)], 0.0)
    return value or UNSET_MULTIPLIER_FALLBACK

def calculate_estimated_arrival(transit_days: int, today: Optional[date] = None) -> str:
    """Calculate estimated arrival date as an ISO string."""
    return format_date(add_days(resolve_today(today), max(0, safe_int(transit_days, 0))))

def calculate_safety_stock(
    threshold_type: Optional[Union[str, ThresholdType]],
    threshold_value: Optional[float],
    daily_rate: float,
    default_days: float = DEFAULT_SAFETY_STOCK_DAYS
) -> Union[int, float]:
    """Calculate the safety stock threshold in units.

    A units rule is returned as configured, fractional values included.

    Args:
        threshold_type: 'units' or 'days-of-cover'
        threshold_value: Threshold value
        daily_rate: Daily sales rate (used for days-of-cover)
        default_days: Days of cover used when no rule applies

    Returns:
        Safety stock threshold in units
    """
    if isinstance(threshold_type, ThresholdType):
        threshold_type = threshold_type.value

    rate = max(0.0, safe_float(daily_rate))
    has_value = is_valid_number(threshold_value)

    if threshold_type == ThresholdType.UNITS.value and has_value:
        value = float(threshold_value)
        return int(value) if value.is_integer() else value
    if threshold_type == ThresholdType.DAYS_OF_COVER.value and has_value:
        return math.ceil(rate * float(threshold_value))
    return math.ceil(rate * safe_float(default_days, DEFAULT_SAFETY_STOCK_DAYS))

def calculate_seasonal_safety_stock(
    threshold_type: Optional[Union[str, ThresholdType]],
    threshold_value: Optional[float],
    seasonal_multipliers: Optional[List[float]],
    daily_rate: float,
    on_date: date,
    default_days: float = DEFAULT_SAFETY_STOCK_DAYS
) -> int:
    """Safety stock threshold with the rule's monthly multiplier applied to its value.

    Unlike get_seasonal_multiplier, a configured 0 here is honoured.
    """
    if threshold_type is None or not is_valid_number(threshold_value):
        return calculate_safety_stock(None, None, daily_rate, default_days)

    multiplier = 1.0
    if has_monthly_multipliers(seasonal_multipliers):
        month_value = seasonal_multipliers[month_index(on_date)]
        if is_valid_number(month_value):
            multiplier = float(month_value)

    adjusted_value = float(threshold_value) * multiplier

    if isinstance(threshold_type, ThresholdType):
        threshold_type = threshold_type.value
    if threshold_type == ThresholdType.UNITS.value:
        return int(round_half_up(adjusted_value, 0))

    return calculate_safety_stock(threshold_type, adjusted_value, daily_rate, default_days)
