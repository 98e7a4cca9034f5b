# inventory_intelligence/services/forecast_service.py
from datetime import date, datetime, timedelta
from typing import List, Dict, Tuple, Optional, Any

from inventory_intelligence.config import config
from inventory_intelligence.core.forecast import calculate_forecast, backtest_forecast
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.exceptions import DatabaseError, ForecastError, NotFoundError
from inventory_intelligence.models import ForecastConfidence
from inventory_intelligence.utils.date_utils import convert_to_date, convert_to_datetime, resolve_today
from inventory_intelligence.utils.math_utils import safe_float, safe_int, is_valid_number
from inventory_intelligence.logging_setup import get_logger

logger = get_logger(__name__)

PAIR_KEY = ['product_id', 'location_id']

class ForecastService:
    """Service for calculating and storing sales forecasts."""

    def __init__(self, interface: DatabaseInterface):
        """Initialize the forecast service.

        Args:
            interface: Database interface
        """
        self.interface = interface
        self.params = config.forecast_config

    def fetch_sales_history(
        self,
        product_id: Optional[str] = None,
        location_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Fetch sales history ordered by date.

        Raises:
            ForecastError if the history cannot be read
        """
        filters = {}
        if product_id:
            filters['product_id'] = product_id
        if location_id:
            filters['location_id'] = location_id

        try:
            rows = self.interface.select(
                'sales_history',
                filters=filters,
                gte={'date': start_date} if start_date else None,
                lte={'date': end_date} if end_date else None,
                order_by='date'
            )
        except DatabaseError as e:
            raise ForecastError(f"Failed to fetch sales history: {e.message}")

        return [
            {
                'product_id': row['product_id'],
                'location_id': row['location_id'],
                'date': convert_to_date(row['date']),
                'units_sold': safe_int(row.get('units_sold'), 0),
            }
            for row in rows
        ]

    @staticmethod
    def group_by_pair(entries: List[Dict[str, Any]]) -> Dict[Tuple[str, str], List[Dict[str, Any]]]:
        """Group sales history rows by (product_id, location_id)."""
        grouped = {}
        for entry in entries:
            grouped.setdefault((entry['product_id'], entry['location_id']), []).append(entry)
        return grouped

    def _display_names(self) -> Tuple[Dict[str, Dict], Dict[str, Dict]]:
        """Load product and location rows for denormalized names."""
        try:
            products = {p['id']: p for p in self.interface.select('products')}
            locations = {l['id']: l for l in self.interface.select('locations')}
        except DatabaseError as e:
            logger.warning(f"Could not load product/location names: {e.message}")
            return {}, {}
        return products, locations

    def upsert_forecast(
        self,
        result: Dict[str, Any],
        product: Optional[Dict] = None,
        location: Optional[Dict] = None,
        now: Optional[datetime] = None
    ) -> int:
        """Insert or update the forecast row of one pair in a single statement.

        is_enabled and manual_override are not part of the payload, so hand
        edits survive recalculation and new rows take the column defaults.
        """
        now = now or datetime.now()
        confidence = result['confidence']

        payload = {
            'product_id': result['product_id'],
            'location_id': result['location_id'],
            'sku': (product or {}).get('sku') or '',
            'product_name': (product or {}).get('name') or '',
            'location_name': (location or {}).get('name') or '',
            'daily_rate': result['daily_rate'],
            'confidence': confidence.value if isinstance(confidence, ForecastConfidence) else confidence,
            'accuracy_mape': result['accuracy_mape'],
            'seasonal_multipliers': result['seasonal_multipliers'],
            'trend_rate': result['trend_rate'],
            'last_calculated_at': now,
            'updated_at': now,
        }

        return self.interface.upsert('sales_forecasts', payload, on_conflict=PAIR_KEY)

    def calculate_all_forecasts(self, today: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Recalculate forecasts for every pair with sales in the history window.

        Pairs are independent: a failed write is recorded in `errors` and the
        run continues. Failing to read the sales history aborts the run.

        Returns:
            Dictionary with forecasts_calculated, forecasts_upserted and errors
        """
        today = resolve_today(today)
        start_date = today - timedelta(days=self.params['history_days'])
        errors = []

        results = {
            'success': True,
            'forecasts_calculated': 0,
            'forecasts_upserted': 0,
            'errors': None,
        }

        try:
            history = self.fetch_sales_history(start_date=start_date)
        except ForecastError as e:
            logger.error(str(e))
            results['success'] = False
            results['errors'] = [e.message]
            return results

        if not history:
            logger.info("No sales history data found")
            return results

        grouped = self.group_by_pair(history)
        products, locations = self._display_names()

        logger.info(f"Calculating forecasts for {len(grouped)} product-location pairs")

        for (product_id, location_id), entries in grouped.items():
            try:
                forecast = calculate_forecast(
                    entries,
                    alpha=self.params['smoothing_alpha'],
                    recent_window=self.params['recent_window'],
                    moving_average_window=self.params['moving_average_window'],
                    min_data_points_for_trend=self.params['min_data_points_for_trend']
                )
            except Exception as e:
                logger.error(f"Error calculating forecast for {product_id}/{location_id}: {str(e)}", exc_info=True)
                errors.append(f"Failed to calculate forecast for {product_id} at {location_id}: {str(e)}")
                continue

            if forecast is None:
                continue

            results['forecasts_calculated'] += 1

            try:
                self.upsert_forecast(forecast, products.get(product_id), locations.get(location_id), now)
                results['forecasts_upserted'] += 1
            except DatabaseError as e:
                logger.error(f"Failed to upsert forecast for {product_id}/{location_id}: {e.message}")
                errors.append(f"Failed to upsert forecast for {product_id} at {location_id}: {e.message}")

        if errors:
            results['errors'] = errors

        logger.info(
            f"Calculated {results['forecasts_calculated']} forecasts, "
            f"upserted {results['forecasts_upserted']}"
        )
        return results

    @staticmethod
    def normalize_forecast(row: Dict[str, Any]) -> Dict[str, Any]:
        """Coerce a stored forecast row into native types."""
        forecast = dict(row)
        forecast['daily_rate'] = safe_float(row.get('daily_rate'), 0.0)
        forecast['manual_override'] = (
            float(row['manual_override']) if is_valid_number(row.get('manual_override')) else None
        )
        forecast['accuracy_mape'] = (
            float(row['accuracy_mape']) if is_valid_number(row.get('accuracy_mape')) else None
        )
        forecast['trend_rate'] = safe_float(row.get('trend_rate'), 0.0)
        forecast['confidence'] = row.get('confidence') or ForecastConfidence.LOW.value
        forecast['is_enabled'] = bool(row.get('is_enabled', True))
        forecast['last_calculated_at'] = convert_to_datetime(row.get('last_calculated_at'))
        return forecast

    def get_forecasts(
        self,
        enabled_only: bool = True,
        product_id: Optional[str] = None,
        location_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get stored forecasts."""
        filters = {}
        if enabled_only:
            filters['is_enabled'] = True
        if product_id:
            filters['product_id'] = product_id
        if location_id:
            filters['location_id'] = location_id

        return [self.normalize_forecast(row) for row in self.interface.select('sales_forecasts', filters=filters)]

    def get_forecast(self, product_id: str, location_id: str) -> Dict[str, Any]:
        """Get the forecast of one pair.

        Raises:
            NotFoundError if the pair has no forecast
        """
        rows = self.get_forecasts(enabled_only=False, product_id=product_id, location_id=location_id)
        if not rows:
            raise NotFoundError(f"No forecast for product {product_id} at location {location_id}")
        return rows[0]

    def set_manual_override(self, product_id: str, location_id: str, value: Optional[float]) -> int:
        """Set or clear (value=None) the hand override of a forecast's daily rate."""
        if value is not None and (not is_valid_number(value) or float(value) < 0):
            raise ForecastError(f"Manual override must be a non-negative number, got {value!r}")

        updated = self.interface.update(
            'sales_forecasts',
            {'manual_override': value, 'updated_at': datetime.now()},
            {'product_id': product_id, 'location_id': location_id}
        )
        if not updated:
            raise NotFoundError(f"No forecast for product {product_id} at location {location_id}")
        return updated

    def set_enabled(self, product_id: str, location_id: str, enabled: bool) -> int:
        """Enable or disable a forecast for suggestion generation."""
        updated = self.interface.update(
            'sales_forecasts',
            {'is_enabled': bool(enabled), 'updated_at': datetime.now()},
            {'product_id': product_id, 'location_id': location_id}
        )
        if not updated:
            raise NotFoundError(f"No forecast for product {product_id} at location {location_id}")
        return updated

    def backtest(self, product_id: str, location_id: str, test_days: int = 30,
                 today: Optional[date] = None) -> Dict[str, Any]:
        """Backtest a stored forecast against its recent sales history."""
        forecast = self.get_forecast(product_id, location_id)
        today = resolve_today(today)
        history = self.fetch_sales_history(
            product_id=product_id,
            location_id=location_id,
            start_date=today - timedelta(days=self.params['history_days'])
        )
        return backtest_forecast(
            history,
            forecast['manual_override'] if forecast['manual_override'] is not None else forecast['daily_rate'],
            forecast.get('seasonal_multipliers'),
            forecast['trend_rate'],
            test_days
        )
