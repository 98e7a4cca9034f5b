# inventory_intelligence/services/safety_stock_service.py
from datetime import date
from typing import Dict, Tuple, Optional, Any, List

from inventory_intelligence.core.urgency import calculate_seasonal_safety_stock, DEFAULT_SAFETY_STOCK_DAYS
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.exceptions import ValidationError
from inventory_intelligence.utils.validation import validate_safety_stock_rule
from inventory_intelligence.logging_setup import get_logger

logger = get_logger(__name__)

class SafetyStockService:
    """Service for safety stock rules."""

    def __init__(self, interface: DatabaseInterface):
        self.interface = interface

    def get_active_rules(self) -> Dict[Tuple[str, str], Dict[str, Any]]:
        """Active rules keyed by (product_id, location_id).

        When a pair has more than one active rule, the first one read is used.
        """
        rules = {}
        for rule in self.interface.select('safety_stock_rules', {'is_active': True}):
            errors = validate_safety_stock_rule(rule)
            if errors:
                logger.warning(f"Ignoring invalid safety stock rule {rule.get('id')}: {errors}")
                continue

            key = (rule['product_id'], rule['location_id'])
            if key in rules:
                logger.warning(f"Multiple active safety stock rules for {key[0]} at {key[1]}, using {rules[key].get('id')}")
                continue
            rules[key] = rule
        return rules

    @staticmethod
    def resolve_threshold(
        rule: Optional[Dict[str, Any]],
        daily_rate: float,
        on_date: date,
        default_days: float = DEFAULT_SAFETY_STOCK_DAYS
    ) -> int:
        """Safety stock threshold in units for a pair on a date."""
        if not rule:
            return calculate_seasonal_safety_stock(None, None, None, daily_rate, on_date, default_days)

        return calculate_seasonal_safety_stock(
            rule.get('threshold_type'),
            rule.get('threshold_value'),
            rule.get('seasonal_multipliers'),
            daily_rate,
            on_date,
            default_days
        )

    def set_rule(
        self,
        product_id: str,
        location_id: str,
        threshold_type: str,
        threshold_value: float,
        seasonal_multipliers: Optional[List[float]] = None
    ) -> Dict[str, Any]:
        """Replace the active rule of a pair.

        Raises:
            ValidationError if the rule is invalid
        """
        rule = {
            'product_id': product_id,
            'location_id': location_id,
            'threshold_type': threshold_type,
            'threshold_value': threshold_value,
            'seasonal_multipliers': seasonal_multipliers or [],
            'is_active': True,
        }

        errors = validate_safety_stock_rule(rule)
        if errors:
            raise ValidationError("Invalid safety stock rule", details=errors)

        self.interface.update(
            'safety_stock_rules',
            {'is_active': False},
            {'product_id': product_id, 'location_id': location_id, 'is_active': True}
        )
        return self.interface.insert('safety_stock_rules', rule)
