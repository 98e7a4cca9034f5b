# inventory_intelligence/services/suggestion_service.py
from datetime import date, datetime
from typing import List, Dict, Tuple, Optional, Any

from inventory_intelligence.config import config
from inventory_intelligence.core.urgency import (
    classify_urgency, project_days_of_stock, calculate_stockout_date,
    calculate_recommended_qty, calculate_estimated_arrival, DaysOfStock
)
from inventory_intelligence.db.interface import DatabaseInterface
from inventory_intelligence.exceptions import (
    ConfigError, DatabaseError, NotFoundError, SuggestionError
)
from inventory_intelligence.models import (
    SuggestionType, SuggestionUrgency, SuggestionStatus, ThresholdType
)
from inventory_intelligence.services.adjustment_service import AdjustmentService
from inventory_intelligence.services.forecast_service import ForecastService
from inventory_intelligence.services.safety_stock_service import SafetyStockService
from inventory_intelligence.services.stock_service import StockService
from inventory_intelligence.utils.date_utils import convert_to_date, convert_to_datetime, resolve_today
from inventory_intelligence.utils.math_utils import safe_int, is_valid_number, round_half_up
from inventory_intelligence.logging_setup import get_logger

logger = get_logger(__name__)

# intelligence_settings column -> INTELLIGENCE config key
SETTINGS_FIELDS = {
    'critical_threshold_days': 'critical_days',
    'warning_threshold_days': 'warning_days',
    'planned_threshold_days': 'planned_days',
    'default_safety_stock_days': 'default_safety_stock_days',
    'target_coverage_days': 'target_coverage_days',
    'include_in_transit_in_calculations': 'include_in_transit',
}

URGENCY_ORDER = [u.value for u in SuggestionUrgency]

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

class SuggestionService:
    """Service for generating and managing replenishment suggestions."""

    def __init__(self, interface: DatabaseInterface):
        """Initialize the suggestion service.

        Args:
            interface: Database interface
        """
        self.interface = interface
        self.forecast_service = ForecastService(interface)
        self.adjustment_service = AdjustmentService(interface)
        self.stock_service = StockService(interface)
        self.safety_stock_service = SafetyStockService(interface)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Dict[str, Any]:
        """Merge the INTELLIGENCE config defaults with the intelligence_settings row.

        Raises:
            ConfigError if the urgency thresholds are not ordered
        """
        settings = dict(config.intelligence_config)
        settings['settings_id'] = None

        rows = self.interface.select('intelligence_settings', limit=1)
        if rows:
            row = rows[0]
            settings['settings_id'] = row.get('id')
            for column, key in SETTINGS_FIELDS.items():
                value = row.get(column)
                if value is None:
                    continue
                settings[key] = bool(value) if key == 'include_in_transit' else safe_int(value, settings[key])

        if not (0 <= settings['critical_days'] <= settings['warning_days'] <= settings['planned_days']):
            raise ConfigError(
                "Urgency thresholds must satisfy critical <= warning <= planned",
                details={k: settings[k] for k in ('critical_days', 'warning_days', 'planned_days')}
            )
        return settings

    @staticmethod
    def thresholds(settings: Dict[str, Any]) -> Dict[str, int]:
        return {
            'critical_days': settings['critical_days'],
            'warning_days': settings['warning_days'],
            'planned_days': settings['planned_days'],
        }

    def stamp_last_calculated(self, settings: Dict[str, Any], now: datetime) -> None:
        """Record when suggestions were last generated."""
        if settings.get('settings_id'):
            self.interface.update(
                'intelligence_settings',
                {'last_calculated_at': now},
                {'id': settings['settings_id']}
            )
        else:
            self.interface.insert('intelligence_settings', {'last_calculated_at': now})

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    @staticmethod
    def is_replenishment_location(location_type: str, location_types: List[str]) -> bool:
        """Check a location type against the configured type filter (empty means all)."""
        if not location_types:
            return True
        location_type = (location_type or '').lower()
        return any(t.lower() in location_type for t in location_types)

    def get_active_routes(self) -> List[Dict[str, Any]]:
        return self.interface.select('shipping_routes', {'is_active': True})

    def get_suppliers(self) -> Dict[str, Dict[str, Any]]:
        return {s['id']: s for s in self.interface.select('suppliers')}

    @staticmethod
    def find_transfer_source(
        product_id: str,
        destination_id: str,
        required_qty: int,
        positions: Dict[Tuple[str, str], Dict[str, Any]],
        routes: List[Dict[str, Any]],
        default_transit_days: int
    ) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """Pick the location to transfer from.

        A candidate needs an active route to the destination and enough
        available stock to cover the required quantity. Default routes come
        first, then the shortest typical transit, then the most stock.

        Returns:
            Tuple of (route, source position), or None
        """
        candidates = []
        for route in routes:
            source_id = route.get('from_location_id')
            if route.get('to_location_id') != destination_id or source_id == destination_id:
                continue

            source = positions.get((product_id, source_id))
            if not source or source['available_stock'] <= 0:
                continue
            if source['available_stock'] < required_qty:
                continue

            candidates.append((route, source))

        if not candidates:
            return None

        candidates.sort(key=lambda c: (
            0 if c[0].get('is_default') else 1,
            safe_int(c[0].get('transit_days_typical'), default_transit_days),
            -c[1]['available_stock']
        ))
        return candidates[0]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def build_suggestion(
        self,
        position: Dict[str, Any],
        forecast: Dict[str, Any],
        settings: Dict[str, Any],
        positions: Dict[Tuple[str, str], Dict[str, Any]],
        routes: List[Dict[str, Any]],
        suppliers: Dict[str, Dict[str, Any]],
        rule: Optional[Dict[str, Any]],
        today: date
    ) -> Dict[str, Any]:
        """Build the suggestion for one stock position.

        A transfer when another location can cover the recommendation,
        otherwise a purchase order, with or without a known supplier.
        """
        product_id = position['product_id']
        location_id = position['location_id']

        effective = self.adjustment_service.effective_rate(forecast, today)
        rate = effective['effective_rate']

        safety_threshold = self.safety_stock_service.resolve_threshold(
            rule, rate, today, settings['default_safety_stock_days']
        )

        include_in_transit = settings['include_in_transit']
        available = position['available_stock']
        in_transit = position['in_transit_quantity']

        days = project_days_of_stock(available, rate, in_transit, include_in_transit)
        urgency = classify_urgency(days, self.thresholds(settings))

        days_of_cover = self._days_of_cover(rule, settings)
        counted_in_transit = in_transit if include_in_transit else 0
        recommended = calculate_recommended_qty(rate, days_of_cover, available, counted_in_transit)

        reasoning = self._base_reasoning(position, effective, days, safety_threshold, settings, today)

        row = {
            'urgency': urgency.value,
            'product_id': product_id,
            'sku': position['sku'],
            'product_name': position['product_name'],
            'destination_location_id': location_id,
            'destination_location_name': position['location_name'],
            'current_stock': position['quantity'],
            'in_transit_quantity': in_transit,
            'reserved_quantity': position['reserved_quantity'],
            'available_stock': available,
            'daily_sales_rate': round_half_up(rate, 2),
            'weekly_sales_rate': round_half_up(rate * 7, 2),
            'days_of_stock_remaining': days.days,
            'stockout_date': convert_to_date(calculate_stockout_date(days, today)),
            'safety_stock_threshold': safety_threshold,
            'source_location_id': None,
            'source_location_name': None,
            'source_available_qty': None,
            'supplier_id': None,
            'supplier_name': None,
            'supplier_lead_time_days': None,
            'route_id': None,
            'route_name': None,
            'route_method': None,
            'route_transit_days': None,
        }

        transfer = self.find_transfer_source(
            product_id, location_id, recommended, positions, routes, settings['default_transit_days']
        )

        if transfer:
            route, source = transfer
            transit_days = safe_int(route.get('transit_days_typical'), settings['default_transit_days'])

            row.update({
                'type': SuggestionType.TRANSFER.value,
                'recommended_qty': recommended,
                'estimated_arrival': convert_to_date(calculate_estimated_arrival(transit_days, today)),
                'source_location_id': source['location_id'],
                'source_location_name': source['location_name'],
                'source_available_qty': source['available_stock'],
                'route_id': route.get('id'),
                'route_name': route.get('name') or f"{source['location_name']} to {position['location_name']}",
                'route_method': route.get('method'),
                'route_transit_days': transit_days,
            })
            reasoning.append(self._reason(
                'info',
                f"Transfer from {source['location_name']} ({source['available_stock']} available, {transit_days} day transit)",
                source['available_stock']
            ))
        else:
            row['type'] = SuggestionType.PURCHASE_ORDER.value
            supplier = suppliers.get(position.get('supplier_id'))

            if supplier:
                lead_time = safe_int(supplier.get('lead_time_days'), settings['default_lead_time_days'])
                min_order_qty = max(1, safe_int(supplier.get('min_order_qty'), 1))
                row.update({
                    'supplier_id': supplier['id'],
                    'supplier_name': supplier.get('name'),
                    'supplier_lead_time_days': lead_time,
                })
                reasoning.append(self._reason(
                    'info',
                    f"Purchase from {supplier.get('name')} ({lead_time} day lead time)",
                    lead_time
                ))
            else:
                # supplier_id stays None; the buyer picks one when acting on it
                lead_time = settings['default_lead_time_days']
                min_order_qty = 1
                logger.warning(
                    f"No transfer source or supplier for {position['sku'] or product_id} "
                    f"at {position['location_name'] or location_id}"
                )
                reasoning.append(self._reason(
                    'warning',
                    f"No supplier configured, assuming {lead_time} day lead time",
                    lead_time
                ))

            row['recommended_qty'] = calculate_recommended_qty(
                rate, days_of_cover, available, counted_in_transit, min_order_qty
            )
            row['estimated_arrival'] = convert_to_date(calculate_estimated_arrival(lead_time, today))
            if min_order_qty > 1:
                reasoning.append(self._reason('info', f"Minimum order quantity: {min_order_qty} units", min_order_qty))

        reasoning.append(self._reason('info', f"Recommended replenishment: {row['recommended_qty']} units", row['recommended_qty']))
        row['reasoning'] = reasoning
        return row

    @staticmethod
    def _days_of_cover(rule: Optional[Dict[str, Any]], settings: Dict[str, Any]) -> float:
        """Coverage window for the recommendation.

        The planning horizon, widened to the safety stock's own days of
        cover when that is longer.
        """
        safety_days = settings['default_safety_stock_days']
        if rule and rule.get('threshold_type') == ThresholdType.DAYS_OF_COVER.value and is_valid_number(rule.get('threshold_value')):
            safety_days = float(rule['threshold_value'])
        elif rule and rule.get('threshold_type') == ThresholdType.UNITS.value:
            safety_days = 0
        return max(settings['target_coverage_days'], safety_days)

    @staticmethod
    def _reason(reason_type: str, message: str, value=None) -> Dict[str, Any]:
        item = {'type': reason_type, 'message': message}
        if value is not None:
            item['value'] = value
        return item

    def _base_reasoning(
        self,
        position: Dict[str, Any],
        effective: Dict[str, Any],
        days: DaysOfStock,
        safety_threshold: int,
        settings: Dict[str, Any],
        today: date
    ) -> List[Dict[str, Any]]:
        reasoning = [
            self._reason('calculation', f"Current stock: {position['quantity']} units", position['quantity']),
        ]

        if position['reserved_quantity'] > 0:
            reasoning.append(self._reason('info', f"Reserved: {position['reserved_quantity']} units", position['reserved_quantity']))
        if position['in_transit_quantity'] > 0:
            reasoning.append(self._reason('info', f"In transit: {position['in_transit_quantity']} units", position['in_transit_quantity']))

        rate = effective['effective_rate']
        if effective['manual_override'] is not None:
            reasoning.append(self._reason('info', f"Manual override: {effective['manual_override']:.1f} units/day", effective['manual_override']))
        elif effective['seasonal_multiplier'] != 1:
            reasoning.append(self._reason(
                'info',
                f"Seasonal multiplier {effective['seasonal_multiplier']:g}x applied for {MONTH_NAMES[today.month - 1]}",
                effective['seasonal_multiplier']
            ))

        for adjustment in effective['applied_adjustments']:
            if adjustment.get('effect') == 'exclude':
                message = f"Adjustment '{adjustment.get('name')}' excludes demand"
            else:
                message = f"Adjustment '{adjustment.get('name')}' applies {float(adjustment.get('multiplier')):g}x"
            reasoning.append(self._reason('info', message, adjustment.get('multiplier')))

        reasoning.append(self._reason('calculation', f"Daily sales rate: {rate:.1f} units/day", round_half_up(rate, 2)))

        if days.is_unbounded:
            reasoning.append(self._reason('calculation', "Days of stock remaining: no stockout projected", days.to_value()))
        else:
            reasoning.append(self._reason('calculation', f"Days of stock remaining: {days.days}", days.days))
            if days.days <= settings['critical_days']:
                reasoning.append(self._reason('warning', f"CRITICAL: Stock will run out in {days.days} days"))
            elif days.days <= settings['warning_days']:
                reasoning.append(self._reason('warning', f"WARNING: Stock below {settings['warning_days']}-day threshold"))

        reasoning.append(self._reason('calculation', f"Safety stock threshold: {safety_threshold} units", safety_threshold))
        return reasoning

    def reactivate_expired_snoozes(self, now: Optional[datetime] = None) -> int:
        """Move snoozed suggestions whose snooze has lapsed back to pending."""
        now = now or datetime.now()
        reactivated = 0

        for row in self.interface.select('replenishment_suggestions', {'status': SuggestionStatus.SNOOZED.value}):
            until = convert_to_datetime(row.get('snoozed_until'))
            if until is not None and until > now:
                continue

            reactivated += self.interface.update(
                'replenishment_suggestions',
                {'status': SuggestionStatus.PENDING.value, 'snoozed_until': None, 'updated_at': now},
                {'id': row['id']}
            )

        if reactivated:
            logger.info(f"Reactivated {reactivated} snoozed suggestions")
        return reactivated

    def notify_critical(self, row: Dict[str, Any], now: datetime) -> bool:
        """Write an in-app notification for a suggestion that just turned critical.

        Returns:
            True if the notification was stored
        """
        days = row['days_of_stock_remaining']
        notification = {
            'type': 'critical_stock',
            'title': f"Critical: {row['sku'] or 'Unknown'} at {row['destination_location_name'] or 'Unknown'}",
            'message': f"Stock will run out in {days} days. Recommend {row['recommended_qty']} units.",
            'entity_type': 'product',
            'entity_id': row['product_id'],
            'data': {
                'daysRemaining': days,
                'recommendedQty': row['recommended_qty'],
                'locationId': row['destination_location_id'],
            },
            'created_at': now,
        }

        try:
            self.interface.insert('inventory_notifications', notification)
        except DatabaseError as e:
            logger.warning(f"Could not store critical notification for {row['product_id']}: {e.message}")
            return False
        return True

    def _open_suggestions(self) -> Tuple[Dict[Tuple[str, str], Dict], set]:
        """Pending suggestions by stock position, and the positions held by a snooze.

        A position has at most one open suggestion whatever its type, so a
        transfer that becomes a purchase order is refreshed in place.
        """
        rows = self.interface.select(
            'replenishment_suggestions',
            {'status': [SuggestionStatus.PENDING.value, SuggestionStatus.SNOOZED.value]}
        )

        pending = {}
        snoozed = set()
        for row in rows:
            key = (row['product_id'], row['destination_location_id'])
            if row['status'] == SuggestionStatus.SNOOZED.value:
                snoozed.add(key)
            else:
                pending.setdefault(key, row)
        return pending, snoozed

    def generate_suggestions(self, today: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Generate suggestions for every stock position with an enabled forecast.

        Returns:
            Dictionary with generation results
        """
        today = resolve_today(today)
        now = now or datetime.now()

        results = {
            'success': True,
            'suggestions_generated': 0,
            'inserted': 0,
            'updated': 0,
            'skipped': 0,
            'reactivated': 0,
            'notifications': 0,
            'by_urgency': {u: 0 for u in URGENCY_ORDER},
            'by_type': {t.value: 0 for t in SuggestionType},
            'errors': None,
        }
        errors = []

        try:
            settings = self.get_settings()
            results['reactivated'] = self.reactivate_expired_snoozes(now)

            forecasts = {
                (f['product_id'], f['location_id']): f
                for f in self.forecast_service.get_forecasts(enabled_only=True)
            }
            self.adjustment_service.get_account_adjustments(refresh=True)
            self.adjustment_service.get_product_adjustments(refresh=True)
            positions = self.stock_service.get_stock_positions()
            rules = self.safety_stock_service.get_active_rules()
            routes = self.get_active_routes()
            suppliers = self.get_suppliers()
            pending, snoozed = self._open_suggestions()
        except (ConfigError, DatabaseError) as e:
            logger.error(f"Cannot generate suggestions: {e.message}")
            results['success'] = False
            results['errors'] = [e.message]
            return results

        location_types = settings['replenishment_location_types']

        for key, position in positions.items():
            if not self.is_replenishment_location(position['location_type'], location_types):
                continue

            forecast = forecasts.get(key)
            if not forecast:
                continue

            if key in snoozed:
                results['skipped'] += 1
                continue

            product_id, location_id = key
            try:
                row = self.build_suggestion(
                    position, forecast, settings, positions, routes, suppliers, rules.get(key), today
                )

                row['generated_at'] = now
                row['updated_at'] = now

                existing = pending.get(key)
                if existing:
                    self.interface.update('replenishment_suggestions', row, {'id': existing['id']})
                    was_critical = existing.get('urgency') == SuggestionUrgency.CRITICAL.value
                    pending[key] = {**existing, **row}
                    results['updated'] += 1
                else:
                    row['status'] = SuggestionStatus.PENDING.value
                    pending[key] = self.interface.insert('replenishment_suggestions', row)
                    was_critical = False
                    results['inserted'] += 1

                if row['urgency'] == SuggestionUrgency.CRITICAL.value and not was_critical:
                    if self.notify_critical(row, now):
                        results['notifications'] += 1

                results['suggestions_generated'] += 1
                results['by_urgency'][row['urgency']] += 1
                results['by_type'][row['type']] += 1

            except Exception as e:
                logger.error(f"Error generating suggestion for {product_id}/{location_id}: {str(e)}", exc_info=True)
                errors.append(f"Failed to generate suggestion for {product_id} at {location_id}: {str(e)}")

        try:
            self.stamp_last_calculated(settings, now)
        except DatabaseError as e:
            logger.warning(f"Could not stamp settings last_calculated_at: {e.message}")

        if errors:
            results['errors'] = errors

        logger.info(
            f"Generated {results['suggestions_generated']} suggestions "
            f"({results['inserted']} new, {results['updated']} refreshed, {results['skipped']} skipped, "
            f"{results['notifications']} critical notifications)"
        )
        return results

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_suggestion(self, suggestion_id: str) -> Dict[str, Any]:
        """Get a suggestion by ID.

        Raises:
            NotFoundError if the suggestion does not exist
        """
        rows = self.interface.select('replenishment_suggestions', {'id': suggestion_id}, limit=1)
        if not rows:
            raise NotFoundError(f"Suggestion {suggestion_id} not found")
        return rows[0]

    def list_suggestions(
        self,
        status: Optional[str] = SuggestionStatus.PENDING.value,
        urgency: Optional[str] = None,
        suggestion_type: Optional[str] = None,
        product_id: Optional[str] = None,
        location_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """List suggestions, most urgent first."""
        filters = {}
        if status:
            filters['status'] = SuggestionStatus.from_string(status).value
        if urgency:
            filters['urgency'] = urgency
        if suggestion_type:
            filters['type'] = suggestion_type
        if product_id:
            filters['product_id'] = product_id
        if location_id:
            filters['destination_location_id'] = location_id

        rows = self.interface.select('replenishment_suggestions', filters=filters)

        def sort_key(row):
            urgency_rank = URGENCY_ORDER.index(row['urgency']) if row.get('urgency') in URGENCY_ORDER else len(URGENCY_ORDER)
            return (urgency_rank, DaysOfStock.from_value(row.get('days_of_stock_remaining')).to_value())

        return sorted(rows, key=sort_key)

    def urgency_summary(self) -> Dict[str, Any]:
        """Counts of pending suggestions by urgency and type."""
        rows = self.interface.select('replenishment_suggestions', {'status': SuggestionStatus.PENDING.value})

        summary = {
            'total': len(rows),
            'by_urgency': {u: 0 for u in URGENCY_ORDER},
            'by_type': {t.value: 0 for t in SuggestionType},
        }
        for row in rows:
            if row.get('urgency') in summary['by_urgency']:
                summary['by_urgency'][row['urgency']] += 1
            if row.get('type') in summary['by_type']:
                summary['by_type'][row['type']] += 1
        return summary

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def _transition(self, suggestion_id: str, status: SuggestionStatus, fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        suggestion = self.get_suggestion(suggestion_id)
        current = suggestion.get('status')

        if current in (SuggestionStatus.ACCEPTED.value, SuggestionStatus.DISMISSED.value):
            raise SuggestionError(
                f"Suggestion {suggestion_id} is already {current}",
                details={'status': current, 'requested': status.value}
            )

        data = {
            'status': status.value,
            'accepted_at': None,
            'dismissed_reason': None,
            'snoozed_until': None,
            'updated_at': now,
        }
        data.update(fields)

        self.interface.update('replenishment_suggestions', data, {'id': suggestion_id})
        logger.info(f"Suggestion {suggestion_id} {current} -> {status.value}")

        suggestion.update(data)
        return suggestion

    def accept(
        self,
        suggestion_id: str,
        linked_entity_id: Optional[str] = None,
        linked_entity_type: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Accept a suggestion, optionally linking the transfer or PO created from it."""
        now = now or datetime.now()
        return self._transition(suggestion_id, SuggestionStatus.ACCEPTED, {
            'accepted_at': now,
            'linked_entity_id': linked_entity_id,
            'linked_entity_type': linked_entity_type,
        }, now)

    def dismiss(self, suggestion_id: str, reason: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Dismiss a suggestion."""
        now = now or datetime.now()
        return self._transition(suggestion_id, SuggestionStatus.DISMISSED, {'dismissed_reason': reason}, now)

    def snooze(self, suggestion_id: str, until, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Snooze a suggestion until a point in time.

        A time already in the past is accepted; the suggestion comes back on
        the next generation run.

        Raises:
            SuggestionError if no snooze time is given
        """
        if until is None or until == '':
            raise SuggestionError("A snooze time is required")

        try:
            snoozed_until = convert_to_datetime(until)
        except ValueError:
            raise SuggestionError(f"Invalid snooze time: {until!r}")

        now = now or datetime.now()
        return self._transition(suggestion_id, SuggestionStatus.SNOOZED, {'snoozed_until': snoozed_until}, now)
