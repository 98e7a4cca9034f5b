from .forecast_service import ForecastService
from .adjustment_service import AdjustmentService
from .stock_service import StockService
from .safety_stock_service import SafetyStockService
from .suggestion_service import SuggestionService

__all__ = [
    'ForecastService',
    'AdjustmentService',
    'StockService',
    'SafetyStockService',
    'SuggestionService'
]
