from .date_utils import convert_to_date, convert_to_datetime, resolve_today, add_days
from .math_utils import round_half_up, safe_float, safe_int, is_valid_number
from .validation import validate_adjustment, validate_safety_stock_rule, has_monthly_multipliers

__all__ = [
    'convert_to_date',
    'convert_to_datetime',
    'resolve_today',
    'add_days',
    'round_half_up',
    'safe_float',
    'safe_int',
    'is_valid_number',
    'validate_adjustment',
    'validate_safety_stock_rule',
    'has_monthly_multipliers'
]
