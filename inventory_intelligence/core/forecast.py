# inventory_intelligence/core/forecast.py
import math
from datetime import date
from typing import List, Dict, Optional, Any, Tuple

import numpy as np
import pandas as pd

from inventory_intelligence.models import ForecastConfidence
from inventory_intelligence.core.urgency import get_seasonal_multiplier
from inventory_intelligence.utils.date_utils import convert_to_date, add_days, format_date
from inventory_intelligence.utils.math_utils import round_half_up, safe_float

SMOOTHING_ALPHA = 0.3
RECENT_WINDOW_DAYS = 30
MOVING_AVERAGE_WINDOW = 7

# Trend needs daily data spanning at least two calendar months
MIN_DATA_POINTS_FOR_TREND = 60

def build_sales_series(entries: List[Dict[str, Any]]) -> pd.Series:
    """Build a chronologically sorted daily units-sold series.

    Args:
        entries: Sales history rows with 'date' and 'units_sold'

    Returns:
        Series of floats indexed by Timestamp
    """
    if not entries:
        return pd.Series(dtype=float)

    dates = [convert_to_date(e['date']) for e in entries]
    units = [safe_float(e.get('units_sold'), 0.0) for e in entries]
    series = pd.Series(units, index=pd.to_datetime(dates), dtype=float)
    return series.sort_index(kind='stable')

def exponential_smoothing(values: List[float], alpha: float = SMOOTHING_ALPHA) -> float:
    """Single exponential smoothing; returns the final smoothed value.

    S_1 = x_1, S_t = alpha * x_t + (1 - alpha) * S_{t-1}
    """
    if len(values) == 0:
        return 0.0

    result = float(values[0])
    for value in values[1:]:
        result = alpha * float(value) + (1.0 - alpha) * result
    return result

def calculate_seasonal_multipliers(series: pd.Series, overall_average: float) -> List[float]:
    """Calculate one multiplier per calendar month (index 0 = January).

    Each multiplier is the month's average daily sales over the overall
    average. Months without data, or an overall average of zero, give 1.0.
    """
    monthly_averages = series.groupby(series.index.month).mean() if len(series) else {}

    multipliers = []
    for month in range(1, 13):
        if month in monthly_averages and overall_average > 0:
            multipliers.append(float(monthly_averages[month]) / overall_average)
        else:
            multipliers.append(1.0)
    return multipliers

def calculate_trend_rate(series: pd.Series, min_data_points: int = MIN_DATA_POINTS_FOR_TREND) -> float:
    """Average month-over-month growth of total units sold.

    Pairs whose earlier month sold nothing are skipped.
    """
    if len(series) < min_data_points:
        return 0.0

    monthly_totals = series.groupby(series.index.to_period('M')).sum().sort_index()
    if len(monthly_totals) < 2:
        return 0.0

    values = monthly_totals.tolist()
    growth_rates = [
        (values[i] - values[i - 1]) / values[i - 1]
        for i in range(1, len(values))
        if values[i - 1] > 0
    ]

    return sum(growth_rates) / len(growth_rates) if growth_rates else 0.0

def moving_average_predictions(values: List[float], window: int = MOVING_AVERAGE_WINDOW) -> Tuple[List[float], List[float]]:
    """Pair each day after the first `window` days with the trailing average.

    Returns:
        Tuple of (actuals, predictions)
    """
    actuals = []
    predictions = []
    for i in range(window, len(values)):
        predictions.append(sum(values[i - window:i]) / window)
        actuals.append(values[i])
    return actuals, predictions

def _paired(actuals, forecasts):
    if len(actuals) != len(forecasts) or len(actuals) == 0:
        return None, None
    return np.asarray(actuals, dtype=float), np.asarray(forecasts, dtype=float)

def calculate_mape(actuals: List[float], forecasts: List[float]) -> float:
    """Mean Absolute Percentage Error over days with positive actuals, as a percentage."""
    a, f = _paired(actuals, forecasts)
    if a is None:
        return 0.0

    mask = a > 0
    if not mask.any():
        return 0.0
    return float(np.mean(np.abs((a[mask] - f[mask]) / a[mask])) * 100.0)

def calculate_mae(actuals: List[float], forecasts: List[float]) -> float:
    """Mean Absolute Error."""
    a, f = _paired(actuals, forecasts)
    if a is None:
        return 0.0
    return float(np.mean(np.abs(a - f)))

def calculate_rmse(actuals: List[float], forecasts: List[float]) -> float:
    """Root Mean Square Error."""
    a, f = _paired(actuals, forecasts)
    if a is None:
        return 0.0
    return float(np.sqrt(np.mean((a - f) ** 2)))

def calculate_bias(actuals: List[float], forecasts: List[float]) -> float:
    """Mean forecast error; positive means over-forecasting."""
    a, f = _paired(actuals, forecasts)
    if a is None:
        return 0.0
    return float(np.mean(f - a))

def coefficient_of_variation(values: List[float]) -> float:
    """Population standard deviation over mean (0 for empty or zero-mean input)."""
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=float)
    avg = arr.mean()
    if avg == 0:
        return 0.0
    return float(arr.std() / avg)

def determine_confidence(data_point_count: int, mape: float, variation: float) -> ForecastConfidence:
    """Determine the confidence tier of a calculated forecast.

    Args:
        data_point_count: Number of daily history records
        mape: Moving-average MAPE as a percentage
        variation: Coefficient of variation of the recent window

    Returns:
        ForecastConfidence value
    """
    if data_point_count >= 90 and mape < 20 and variation < 0.5:
        return ForecastConfidence.HIGH
    if data_point_count >= 30 and mape < 40:
        return ForecastConfidence.MEDIUM
    return ForecastConfidence.LOW

def calculate_forecast(
    entries: List[Dict[str, Any]],
    alpha: float = SMOOTHING_ALPHA,
    recent_window: int = RECENT_WINDOW_DAYS,
    moving_average_window: int = MOVING_AVERAGE_WINDOW,
    min_data_points_for_trend: int = MIN_DATA_POINTS_FOR_TREND
) -> Optional[Dict[str, Any]]:
    """Calculate the forecast parameters for one (product, location) pair.

    Args:
        entries: Sales history rows for a single pair
        alpha: Smoothing factor for the daily rate
        recent_window: Number of most recent data points used for the rate
        moving_average_window: Trailing window used as the accuracy baseline
        min_data_points_for_trend: Records required before a trend is attempted

    Returns:
        Dictionary with forecast fields, or None when there is no history
    """
    if not entries:
        return None

    series = build_sales_series(entries)
    daily_values = series.tolist()

    recent_values = daily_values[-min(recent_window, len(daily_values)):]
    daily_rate = exponential_smoothing(recent_values, alpha)

    overall_average = sum(daily_values) / len(daily_values)
    seasonal_multipliers = calculate_seasonal_multipliers(series, overall_average)
    trend_rate = calculate_trend_rate(series, min_data_points_for_trend)

    actuals, predictions = moving_average_predictions(daily_values, moving_average_window)
    mape = calculate_mape(actuals, predictions)

    variation = coefficient_of_variation(recent_values)
    confidence = determine_confidence(len(entries), mape, variation)

    return {
        'product_id': entries[0].get('product_id'),
        'location_id': entries[0].get('location_id'),
        'daily_rate': round_half_up(daily_rate, 2),
        'confidence': confidence,
        'accuracy_mape': round_half_up(mape, 2),
        'seasonal_multipliers': [round_half_up(m, 2) for m in seasonal_multipliers],
        'trend_rate': round_half_up(trend_rate, 3),
        'data_points': len(entries),
    }

def calculate_forecast_accuracy(actuals: List[float], forecasts: List[float]) -> Dict[str, Any]:
    """Calculate the full set of accuracy metrics for a forecast.

    Confidence here depends on sample size and MAPE only: high needs 30+
    samples and MAPE <= 20, low is fewer than 14 samples or MAPE > 40.
    """
    mape = calculate_mape(actuals, forecasts)
    accuracy = max(0.0, min(100.0, 100.0 - mape))

    confidence = ForecastConfidence.MEDIUM
    if len(actuals) >= 30 and mape <= 20:
        confidence = ForecastConfidence.HIGH
    elif len(actuals) < 14 or mape > 40:
        confidence = ForecastConfidence.LOW

    return {
        'mape': mape,
        'mae': calculate_mae(actuals, forecasts),
        'rmse': calculate_rmse(actuals, forecasts),
        'bias': calculate_bias(actuals, forecasts),
        'accuracy': accuracy,
        'confidence': confidence,
        'sample_size': len(actuals),
    }

def generate_forecast(
    base_rate: float,
    seasonal_multipliers: Optional[List[float]],
    trend_rate: float,
    start_date: date,
    days: int
) -> List[Dict[str, Any]]:
    """Project daily demand forward from a base rate.

    Day i is base * multiplier[month] * (1 + trend) ** (i // 30).
    """
    start = convert_to_date(start_date)
    projections = []

    for i in range(days):
        day = add_days(start, i)
        multiplier = get_seasonal_multiplier(seasonal_multipliers, day)
        trend_multiplier = math.pow(1.0 + trend_rate, i // 30)

        projections.append({
            'date': format_date(day),
            'forecast': round_half_up(base_rate * multiplier * trend_multiplier, 2),
        })

    return projections

def backtest_forecast(
    entries: List[Dict[str, Any]],
    base_rate: float,
    seasonal_multipliers: Optional[List[float]],
    trend_rate: float,
    test_days: int = 30
) -> Dict[str, Any]:
    """Walk-forward check of forecast parameters against the last test_days of history."""
    if len(entries) <= test_days:
        return {
            'mape': 0.0,
            'mae': 0.0,
            'rmse': 0.0,
            'bias': 0.0,
            'accuracy': 0.0,
            'confidence': ForecastConfidence.LOW,
            'sample_size': 0,
        }

    series = build_sales_series(entries)
    test_set = series.iloc[-test_days:]

    projections = generate_forecast(
        base_rate,
        seasonal_multipliers,
        trend_rate,
        test_set.index[0].date(),
        test_days
    )

    return calculate_forecast_accuracy(
        test_set.tolist(),
        [p['forecast'] for p in projections]
    )
