from typing import Any, Dict, List, Optional

from inventory_intelligence.models import AdjustmentEffect, ThresholdType
from inventory_intelligence.utils.date_utils import convert_to_date
from inventory_intelligence.utils.math_utils import is_valid_number

MONTHS_IN_YEAR = 12

def has_monthly_multipliers(multipliers: Optional[List[Any]]) -> bool:
    """Check whether a multiplier array carries one entry per calendar month."""
    return isinstance(multipliers, (list, tuple)) and len(multipliers) == MONTHS_IN_YEAR

def validate_adjustment(adjustment: Dict[str, Any]) -> Dict[str, str]:
    """Validate an account or product forecast adjustment row.

    Args:
        adjustment: Adjustment row

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not adjustment.get('name'):
        errors['name'] = 'Adjustment name is required'

    try:
        start = convert_to_date(adjustment.get('start_date'))
        end = convert_to_date(adjustment.get('end_date'))
    except ValueError:
        errors['dates'] = 'Start and end dates must be ISO dates'
        return errors

    if start is None:
        errors['start_date'] = 'Start date is required'
    if end is None:
        errors['end_date'] = 'End date is required'
    if start and end and not adjustment.get('is_recurring') and start > end:
        errors['end_date'] = 'End date must not be before start date'

    effect = adjustment.get('effect')
    valid_effects = [e.value for e in AdjustmentEffect]
    if effect not in valid_effects:
        errors['effect'] = f"Effect must be one of: {', '.join(valid_effects)}"
    elif effect == AdjustmentEffect.MULTIPLY.value:
        multiplier = adjustment.get('multiplier')
        if not is_valid_number(multiplier) or float(multiplier) < 0:
            errors['multiplier'] = 'A non-negative multiplier is required for multiply adjustments'

    return errors

def validate_safety_stock_rule(rule: Dict[str, Any]) -> Dict[str, str]:
    """Validate a safety stock rule row.

    Args:
        rule: Safety stock rule row

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if not rule.get('product_id'):
        errors['product_id'] = 'Product ID is required'

    if not rule.get('location_id'):
        errors['location_id'] = 'Location ID is required'

    valid_types = [t.value for t in ThresholdType]
    if rule.get('threshold_type') not in valid_types:
        errors['threshold_type'] = f"Threshold type must be one of: {', '.join(valid_types)}"

    value = rule.get('threshold_value')
    if not is_valid_number(value) or float(value) < 0:
        errors['threshold_value'] = 'Threshold value must be a non-negative number'

    multipliers = rule.get('seasonal_multipliers')
    if multipliers and not has_monthly_multipliers(multipliers):
        errors['seasonal_multipliers'] = 'Seasonal multipliers must be empty or have 12 entries'

    return errors
