from .urgency import (
    classify_urgency, calculate_days_of_stock, project_days_of_stock,
    calculate_stockout_date, calculate_recommended_qty, get_seasonal_multiplier,
    calculate_estimated_arrival, calculate_safety_stock, calculate_seasonal_safety_stock,
    DaysOfStock, DEFAULT_THRESHOLDS, UNBOUNDED_DAYS
)
from .forecast import (
    calculate_forecast, exponential_smoothing, calculate_seasonal_multipliers,
    calculate_trend_rate, calculate_mape, calculate_forecast_accuracy,
    determine_confidence, generate_forecast, backtest_forecast
)
from .adjustments import (
    is_date_in_window, resolve_effective_rate, calculate_effective_rate
)

__all__ = [
    'classify_urgency',
    'calculate_days_of_stock',
    'project_days_of_stock',
    'calculate_stockout_date',
    'calculate_recommended_qty',
    'get_seasonal_multiplier',
    'calculate_estimated_arrival',
    'calculate_safety_stock',
    'calculate_seasonal_safety_stock',
    'DaysOfStock',
    'DEFAULT_THRESHOLDS',
    'UNBOUNDED_DAYS',
    'calculate_forecast',
    'exponential_smoothing',
    'calculate_seasonal_multipliers',
    'calculate_trend_rate',
    'calculate_mape',
    'calculate_forecast_accuracy',
    'determine_confidence',
    'generate_forecast',
    'backtest_forecast',
    'is_date_in_window',
    'resolve_effective_rate',
    'calculate_effective_rate'
]
