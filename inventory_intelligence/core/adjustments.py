# inventory_intelligence/core/adjustments.py
from datetime import date
from typing import List, Dict, Any, Optional, Set

from inventory_intelligence.models import AdjustmentEffect
from inventory_intelligence.core.urgency import get_seasonal_multiplier
from inventory_intelligence.utils.date_utils import convert_to_date, month_day
from inventory_intelligence.utils.math_utils import is_valid_number

def recurring_window_contains(start_date: date, end_date: date, on_date: date) -> bool:
    """Check a yearly window using only the month/day of each date.

    A window whose start month/day falls after its end month/day (for
    example Dec 15 - Jan 15) is not treated as recurring: the absolute
    start and end dates are compared instead, so it only matches in the
    year it was entered.
    """
    start_md = month_day(start_date)
    end_md = month_day(end_date)

    if start_md <= end_md:
        return start_md <= month_day(on_date) <= end_md

    return start_date <= on_date <= end_date

def is_date_in_window(start_date, end_date, is_recurring: bool, on_date) -> bool:
    """Check whether an adjustment window covers a date (bounds inclusive)."""
    start = convert_to_date(start_date)
    end = convert_to_date(end_date)
    current = convert_to_date(on_date)

    if start is None or end is None or current is None:
        return False

    if is_recurring:
        return recurring_window_contains(start, end, current)
    return start <= current <= end

def _covers(adjustment: Dict[str, Any], on_date) -> bool:
    return is_date_in_window(
        adjustment.get('start_date'),
        adjustment.get('end_date'),
        bool(adjustment.get('is_recurring')),
        on_date
    )

def active_account_adjustments(account_adjustments: List[Dict[str, Any]], on_date) -> List[Dict[str, Any]]:
    """Account adjustments whose window covers the date."""
    return [a for a in account_adjustments if _covers(a, on_date)]

def opted_out_account_ids(product_adjustments: List[Dict[str, Any]], product_id: str, on_date) -> Set[str]:
    """Account adjustment ids the product has opted out of on the date."""
    return {
        a['account_adjustment_id']
        for a in product_adjustments
        if a.get('product_id') == product_id
        and a.get('is_opted_out')
        and a.get('account_adjustment_id')
        and _covers(a, on_date)
    }

def active_product_adjustments(product_adjustments: List[Dict[str, Any]], product_id: str, on_date) -> List[Dict[str, Any]]:
    """Product adjustments that apply on the date, excluding opt-out markers."""
    return [
        a for a in product_adjustments
        if a.get('product_id') == product_id
        and not a.get('is_opted_out')
        and _covers(a, on_date)
    ]

def adjustment_factor(adjustments: List[Dict[str, Any]]) -> float:
    """Combined multiplicative effect of simultaneous adjustments.

    Exclusions contribute 0 and multiplications their multiplier, so the
    result does not depend on the order adjustments are applied in.
    """
    factor = 1.0
    for adjustment in adjustments:
        effect = adjustment.get('effect')
        if effect == AdjustmentEffect.EXCLUDE.value:
            factor = 0.0
        elif effect == AdjustmentEffect.MULTIPLY.value and is_valid_number(adjustment.get('multiplier')):
            factor *= float(adjustment['multiplier'])
    return factor

def resolve_effective_rate(
    forecast: Dict[str, Any],
    account_adjustments: List[Dict[str, Any]],
    product_adjustments: List[Dict[str, Any]],
    on_date
) -> Dict[str, Any]:
    """Compute the effective daily rate of a forecast for a date.

    The base is the manual override when set, otherwise the calculated
    daily rate scaled by the seasonal multiplier for the date's month.

    Args:
        forecast: Sales forecast row
        account_adjustments: All account-wide adjustments
        product_adjustments: Product adjustments (any product)
        on_date: Date to evaluate

    Returns:
        Dictionary with the effective rate and the factors behind it
    """
    product_id = forecast.get('product_id')
    manual_override = forecast.get('manual_override')

    if is_valid_number(manual_override):
        seasonal_multiplier = 1.0
        base_rate = float(manual_override)
    else:
        seasonal_multiplier = get_seasonal_multiplier(forecast.get('seasonal_multipliers'), convert_to_date(on_date))
        daily_rate = forecast.get('daily_rate')
        base_rate = float(daily_rate) * seasonal_multiplier if is_valid_number(daily_rate) else 0.0

    opted_out = opted_out_account_ids(product_adjustments, product_id, on_date)
    applied = [
        a for a in active_account_adjustments(account_adjustments, on_date)
        if a.get('id') not in opted_out
    ]
    applied.extend(active_product_adjustments(product_adjustments, product_id, on_date))

    factor = adjustment_factor(applied)

    return {
        'effective_rate': max(0.0, base_rate * factor),
        'base_rate': base_rate,
        'seasonal_multiplier': seasonal_multiplier,
        'manual_override': float(manual_override) if is_valid_number(manual_override) else None,
        'adjustment_factor': factor,
        'applied_adjustments': applied,
        'opted_out_adjustment_ids': sorted(opted_out),
    }

def calculate_effective_rate(
    forecast: Dict[str, Any],
    account_adjustments: List[Dict[str, Any]],
    product_adjustments: List[Dict[str, Any]],
    on_date
) -> float:
    """Effective daily rate of a forecast for a date."""
    return resolve_effective_rate(forecast, account_adjustments, product_adjustments, on_date)['effective_rate']
