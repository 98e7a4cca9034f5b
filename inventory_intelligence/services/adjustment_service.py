# inventory_intelligence/services/adjustment_service.py
from datetime import date, datetime
from typing import List, Dict, Optional, Any

from inventory_intelligence.core.adjustments import resolve_effective_rate
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.exceptions import AdjustmentError, NotFoundError
from inventory_intelligence.models import AdjustmentEffect
from inventory_intelligence.utils.date_utils import convert_to_date, resolve_today
from inventory_intelligence.utils.validation import validate_adjustment
from inventory_intelligence.logging_setup import get_logger

logger = get_logger(__name__)

class AdjustmentService:
    """Service for account and product forecast adjustments."""

    def __init__(self, interface: DatabaseInterface):
        self.interface = interface
        self._account_adjustments = None
        self._product_adjustments = None

    @staticmethod
    def _valid_rows(rows: List[Dict[str, Any]], kind: str) -> List[Dict[str, Any]]:
        valid = []
        for row in rows:
            # Opt-out markers only reference an account adjustment
            if row.get('is_opted_out'):
                valid.append(row)
                continue

            errors = validate_adjustment(row)
            if errors:
                logger.warning(f"Ignoring invalid {kind} adjustment {row.get('id')}: {errors}")
                continue
            valid.append(row)
        return valid

    def get_account_adjustments(self, refresh: bool = False) -> List[Dict[str, Any]]:
        """Get all valid account-wide adjustments."""
        if self._account_adjustments is None or refresh:
            rows = self.interface.select('account_forecast_adjustments')
            self._account_adjustments = self._valid_rows(rows, 'account')
        return self._account_adjustments

    def get_product_adjustments(self, product_id: Optional[str] = None, refresh: bool = False) -> List[Dict[str, Any]]:
        """Get valid product adjustments, optionally for one product."""
        if self._product_adjustments is None or refresh:
            rows = self.interface.select('product_forecast_adjustments')
            self._product_adjustments = self._valid_rows(rows, 'product')

        if product_id:
            return [a for a in self._product_adjustments if a.get('product_id') == product_id]
        return self._product_adjustments

    def _prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        errors = validate_adjustment(data)
        if errors:
            raise AdjustmentError("Invalid forecast adjustment", details=errors)

        row = dict(data)
        row['start_date'] = convert_to_date(row['start_date'])
        row['end_date'] = convert_to_date(row['end_date'])
        row['is_recurring'] = bool(row.get('is_recurring', False))
        if row['effect'] == AdjustmentEffect.EXCLUDE.value:
            row['multiplier'] = None
        return row

    def create_account_adjustment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an account-wide adjustment.

        Raises:
            AdjustmentError if the adjustment is invalid
        """
        row = self.interface.insert('account_forecast_adjustments', self._prepare(data))
        self._account_adjustments = None
        logger.info(f"Created account adjustment '{row.get('name')}'")
        return row

    def create_product_adjustment(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a product-specific adjustment.

        Raises:
            AdjustmentError if the adjustment is invalid
        """
        row = self._prepare(data)
        row['product_id'] = product_id
        row['is_opted_out'] = False

        created = self.interface.insert('product_forecast_adjustments', row)
        self._product_adjustments = None
        logger.info(f"Created product adjustment '{created.get('name')}' for product {product_id}")
        return created

    def opt_out(self, product_id: str, account_adjustment_id: str) -> Dict[str, Any]:
        """Opt a product out of an account-wide adjustment.

        The marker row copies the account adjustment's window so the opt-out
        is in force exactly while the account adjustment is.

        Raises:
            NotFoundError if the account adjustment does not exist
        """
        rows = self.interface.select('account_forecast_adjustments', {'id': account_adjustment_id}, limit=1)
        if not rows:
            raise NotFoundError(f"Account adjustment {account_adjustment_id} not found")
        account = rows[0]

        existing = self.interface.select('product_forecast_adjustments', {
            'product_id': product_id,
            'account_adjustment_id': account_adjustment_id,
            'is_opted_out': True,
        }, limit=1)
        if existing:
            return existing[0]

        marker = self.interface.insert('product_forecast_adjustments', {
            'product_id': product_id,
            'account_adjustment_id': account_adjustment_id,
            'name': f"Opt-out: {account.get('name')}",
            'start_date': convert_to_date(account.get('start_date')),
            'end_date': convert_to_date(account.get('end_date')),
            'effect': account.get('effect'),
            'multiplier': account.get('multiplier'),
            'is_recurring': bool(account.get('is_recurring')),
            'is_opted_out': True,
            'updated_at': datetime.now(),
        })
        self._product_adjustments = None
        logger.info(f"Product {product_id} opted out of account adjustment {account_adjustment_id}")
        return marker

    def effective_rate(self, forecast: Dict[str, Any], on_date: Optional[date] = None) -> Dict[str, Any]:
        """Effective daily rate of a forecast on a date, with the factors behind it."""
        return resolve_effective_rate(
            forecast,
            self.get_account_adjustments(),
            self.get_product_adjustments(forecast.get('product_id')),
            resolve_today(on_date)
        )
