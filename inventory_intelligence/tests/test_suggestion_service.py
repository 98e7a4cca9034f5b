"""
Tests for suggestion generation, regeneration and status transitions.
"""
import unittest
from datetime import date, datetime, timedelta

from inventory_intelligence.exceptions import NotFoundError, SuggestionError
from inventory_intelligence.services.suggestion_service import SuggestionService
from inventory_intelligence.tests.fixtures import make_sqlite_interface, patch_settings

TODAY = date(2024, 12, 15)
NOW = datetime(2024, 12, 15, 3, 0)

class SuggestionTestCase(unittest.TestCase):
    """Seeds one supplier, two products, a warehouse and an FBA location.

    p1 sells 10/day at FBA with 20 on hand and 500 in the warehouse, which
    has a 5 day route to FBA. p2 has no supplier and no warehouse stock.
    """

    intelligence_overrides = None

    def setUp(self):
        self.patchers = patch_settings(self.intelligence_overrides)
        self.interface, self.session = make_sqlite_interface()
        insert = self.interface.insert

        insert('suppliers', {'id': 's1', 'name': 'Acme Mfg', 'lead_time_days': 30, 'min_order_qty': 50})
        insert('products', {'id': 'p1', 'sku': 'SKU-1', 'name': 'Widget', 'supplier_id': 's1'})
        insert('products', {'id': 'p2', 'sku': 'SKU-2', 'name': 'Gadget'})
        insert('locations', {'id': 'wh', 'name': 'Main Warehouse', 'type': 'warehouse'})
        insert('locations', {'id': 'fba', 'name': 'FBA East', 'type': 'amazon-fba'})

        insert('inventory_batches', {'id': 'b1', 'product_id': 'p1', 'location_id': 'fba', 'quantity': 20})
        insert('inventory_batches', {'id': 'b2', 'product_id': 'p1', 'location_id': 'wh', 'quantity': 500})
        insert('inventory_batches', {'id': 'b3', 'product_id': 'p2', 'location_id': 'fba', 'quantity': 5})

        insert('shipping_routes', {
            'id': 'r1', 'from_location_id': 'wh', 'to_location_id': 'fba', 'method': 'ground',
            'transit_days_typical': 5, 'is_default': True, 'is_active': True
        })

        self.add_forecast('p1', 'fba', 10.0)
        self.add_forecast('p2', 'fba', 1.0)

        self.service = SuggestionService(self.interface)

    def tearDown(self):
        self.session.close()
        for patcher in self.patchers:
            patcher.stop()

    def add_forecast(self, product_id, location_id, daily_rate, **fields):
        row = {
            'product_id': product_id, 'location_id': location_id, 'daily_rate': daily_rate,
            'confidence': 'medium', 'is_enabled': True
        }
        row.update(fields)
        self.interface.insert('sales_forecasts', row)

    def set_quantity(self, batch_id, quantity):
        self.interface.update('inventory_batches', {'quantity': quantity}, {'id': batch_id})

    def suggestions(self, **filters):
        return self.interface.select('replenishment_suggestions', filters)


class TestGenerateSuggestions(SuggestionTestCase):

    def test_critical_transfer_from_warehouse(self):
        results = self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertTrue(results['success'])
        self.assertEqual(results['suggestions_generated'], 2)
        self.assertEqual(results['inserted'], 2)
        self.assertEqual(results['skipped'], 0)
        self.assertEqual(results['by_urgency']['critical'], 1)
        self.assertEqual(results['by_type']['transfer'], 1)
        self.assertIsNone(results['errors'])

        rows = self.suggestions(product_id='p1')
        self.assertEqual(len(rows), 1)
        row = rows[0]

        self.assertEqual(row['type'], 'transfer')
        self.assertEqual(row['urgency'], 'critical')
        self.assertEqual(row['status'], 'pending')
        self.assertEqual(row['product_id'], 'p1')
        self.assertEqual(row['sku'], 'SKU-1')
        self.assertEqual(row['destination_location_name'], 'FBA East')
        self.assertEqual(row['available_stock'], 20)
        self.assertEqual(row['daily_sales_rate'], 10.0)
        self.assertEqual(row['weekly_sales_rate'], 70.0)
        self.assertEqual(row['days_of_stock_remaining'], 2)
        self.assertEqual(row['stockout_date'], date(2024, 12, 17))
        self.assertEqual(row['safety_stock_threshold'], 140)
        # 30 days of cover = 300 units, 20 on hand
        self.assertEqual(row['recommended_qty'], 280)
        self.assertEqual(row['source_location_id'], 'wh')
        self.assertEqual(row['source_available_qty'], 500)
        self.assertEqual(row['route_id'], 'r1')
        self.assertEqual(row['route_transit_days'], 5)
        self.assertEqual(row['estimated_arrival'], date(2024, 12, 20))
        self.assertEqual(row['generated_at'], NOW)
        self.assertEqual(row['reasoning'][0], {'type': 'calculation', 'message': 'Current stock: 20 units', 'value': 20})
        self.assertTrue(any('Transfer from Main Warehouse' in r['message'] for r in row['reasoning']))

    def test_purchase_order_when_warehouse_is_short(self):
        self.set_quantity('b2', 100)

        self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['type'], 'purchase-order')
        # 280 needed, rounded up to the supplier's 50 unit minimum
        self.assertEqual(row['recommended_qty'], 300)
        self.assertEqual(row['supplier_id'], 's1')
        self.assertEqual(row['supplier_name'], 'Acme Mfg')
        self.assertEqual(row['supplier_lead_time_days'], 30)
        self.assertEqual(row['estimated_arrival'], date(2025, 1, 14))
        self.assertIsNone(row['source_location_id'])

    def test_purchase_order_without_supplier(self):
        results = self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertEqual(results['by_type']['purchase-order'], 1)
        rows = self.suggestions(product_id='p2')
        self.assertEqual(len(rows), 1)
        row = rows[0]

        self.assertEqual(row['type'], 'purchase-order')
        self.assertEqual(row['status'], 'pending')
        self.assertEqual(row['urgency'], 'warning')
        self.assertEqual(row['days_of_stock_remaining'], 5)
        self.assertIsNone(row['supplier_id'])
        self.assertIsNone(row['supplier_name'])
        self.assertIsNone(row['supplier_lead_time_days'])
        self.assertIsNone(row['source_location_id'])
        # 30 days at 1/day, 5 on hand, no minimum order
        self.assertEqual(row['recommended_qty'], 25)
        # default 30 day lead time
        self.assertEqual(row['estimated_arrival'], date(2025, 1, 14))
        self.assertTrue(any('No supplier configured' in r['message'] for r in row['reasoning']))

    def test_in_transit_counts_towards_cover(self):
        self.interface.insert('transfers', {'id': 't1', 'destination_location_id': 'fba', 'status': 'in_transit'})
        self.interface.insert('transfers', {'id': 't2', 'destination_location_id': 'fba', 'status': 'received'})
        self.interface.insert('transfer_line_items', {'transfer_id': 't1', 'product_id': 'p1', 'quantity': 60})
        self.interface.insert('transfer_line_items', {'transfer_id': 't2', 'product_id': 'p1', 'quantity': 1000})

        self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['in_transit_quantity'], 60)
        self.assertEqual(row['days_of_stock_remaining'], 8)
        self.assertEqual(row['urgency'], 'planned')
        self.assertEqual(row['recommended_qty'], 220)

    def test_reserved_stock_is_not_available(self):
        self.interface.update('inventory_batches', {'quantity': 80, 'reserved_quantity': 50}, {'id': 'b1'})

        self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['current_stock'], 80)
        self.assertEqual(row['reserved_quantity'], 50)
        self.assertEqual(row['available_stock'], 30)
        self.assertEqual(row['days_of_stock_remaining'], 3)

    def test_well_stocked_position_is_monitor(self):
        self.set_quantity('b1', 1000)

        results = self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['urgency'], 'monitor')
        self.assertEqual(row['days_of_stock_remaining'], 100)
        self.assertEqual(row['recommended_qty'], 0)
        self.assertEqual(results['by_urgency']['monitor'], 1)

    def test_zero_rate_is_unbounded(self):
        self.interface.update('sales_forecasts', {'manual_override': 0.0}, {'product_id': 'p1'})

        self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['urgency'], 'monitor')
        self.assertIsNone(row['days_of_stock_remaining'])
        self.assertIsNone(row['stockout_date'])
        self.assertEqual(row['recommended_qty'], 0)

    def test_exclusion_adjustment_silences_demand(self):
        self.interface.insert('account_forecast_adjustments', {
            'name': 'Listing suppressed', 'start_date': date(2024, 12, 1), 'end_date': date(2024, 12, 31),
            'effect': 'exclude', 'is_recurring': False
        })

        self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['urgency'], 'monitor')
        self.assertTrue(any('Listing suppressed' in r['message'] for r in row['reasoning']))

    def test_seasonal_multiplier_raises_rate(self):
        self.interface.update(
            'sales_forecasts', {'seasonal_multipliers': [1] * 11 + [2]}, {'product_id': 'p1'}
        )

        self.service.generate_suggestions(today=TODAY, now=NOW)

        row = self.suggestions(product_id='p1')[0]
        self.assertEqual(row['daily_sales_rate'], 20.0)
        self.assertEqual(row['days_of_stock_remaining'], 1)
        self.assertTrue(any('applied for December' in r['message'] for r in row['reasoning']))

    def test_units_safety_rule(self):
        self.interface.insert('safety_stock_rules', {
            'product_id': 'p1', 'location_id': 'fba', 'threshold_type': 'units',
            'threshold_value': 75, 'is_active': True
        })

        self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertEqual(self.suggestions(product_id='p1')[0]['safety_stock_threshold'], 75)

    def test_disabled_forecast_is_skipped(self):
        self.interface.update('sales_forecasts', {'is_enabled': False}, {'product_id': 'p1'})

        results = self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertEqual(results['suggestions_generated'], 1)
        self.assertEqual(self.suggestions(product_id='p1'), [])

    def test_settings_row_overrides_thresholds_and_is_stamped(self):
        self.interface.insert('intelligence_settings', {
            'id': 'set-1', 'critical_threshold_days': 1, 'warning_threshold_days': 2, 'planned_threshold_days': 3
        })

        self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertEqual(self.suggestions(product_id='p1')[0]['urgency'], 'warning')
        settings = self.interface.select('intelligence_settings')
        self.assertEqual(len(settings), 1)
        self.assertEqual(settings[0]['last_calculated_at'], NOW)

    def test_settings_row_created_when_missing(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)

        settings = self.interface.select('intelligence_settings')
        self.assertEqual(len(settings), 1)
        self.assertEqual(settings[0]['last_calculated_at'], NOW)

    def test_unordered_thresholds_fail_the_run(self):
        self.interface.insert('intelligence_settings', {
            'critical_threshold_days': 10, 'warning_threshold_days': 5, 'planned_threshold_days': 14
        })

        results = self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertFalse(results['success'])
        self.assertEqual(len(results['errors']), 1)
        self.assertEqual(self.suggestions(), [])


class TestLocationTypeFilter(SuggestionTestCase):

    intelligence_overrides = {'replenishment_location_types': ['amazon', 'fba']}

    def test_only_matching_locations_are_evaluated(self):
        self.add_forecast('p1', 'wh', 50.0)

        self.service.generate_suggestions(today=TODAY, now=NOW)

        destinations = {row['destination_location_id'] for row in self.suggestions()}
        self.assertEqual(destinations, {'fba'})

    def test_is_replenishment_location(self):
        types = ['amazon', 'fba']
        self.assertTrue(SuggestionService.is_replenishment_location('amazon-fba', types))
        self.assertTrue(SuggestionService.is_replenishment_location('FBA', types))
        self.assertFalse(SuggestionService.is_replenishment_location('warehouse', types))
        self.assertFalse(SuggestionService.is_replenishment_location(None, types))
        self.assertTrue(SuggestionService.is_replenishment_location('warehouse', []))


class TestFindTransferSource(unittest.TestCase):

    def position(self, location_id, available):
        return {'location_id': location_id, 'location_name': location_id, 'available_stock': available}

    def test_default_route_first_then_transit_then_stock(self):
        positions = {
            ('p1', 'a'): self.position('a', 100),
            ('p1', 'b'): self.position('b', 300),
            ('p1', 'c'): self.position('c', 200),
            ('p1', 'd'): self.position('d', 900),
        }
        routes = [
            {'id': 'ra', 'from_location_id': 'a', 'to_location_id': 'x', 'transit_days_typical': 3},
            {'id': 'rb', 'from_location_id': 'b', 'to_location_id': 'x', 'transit_days_typical': 3},
            {'id': 'rc', 'from_location_id': 'c', 'to_location_id': 'x', 'transit_days_typical': 9, 'is_default': True},
            {'id': 'rd', 'from_location_id': 'd', 'to_location_id': 'y', 'transit_days_typical': 1},
        ]

        route, source = SuggestionService.find_transfer_source('p1', 'x', 50, positions, routes, 7)
        self.assertEqual(route['id'], 'rc')

        routes[2]['is_default'] = False
        route, source = SuggestionService.find_transfer_source('p1', 'x', 50, positions, routes, 7)
        self.assertEqual(route['id'], 'rb')
        self.assertEqual(source['available_stock'], 300)

    def test_source_must_cover_required_quantity(self):
        positions = {('p1', 'a'): self.position('a', 40)}
        routes = [{'id': 'ra', 'from_location_id': 'a', 'to_location_id': 'x', 'transit_days_typical': 3}]

        self.assertIsNone(SuggestionService.find_transfer_source('p1', 'x', 50, positions, routes, 7))
        self.assertIsNotNone(SuggestionService.find_transfer_source('p1', 'x', 40, positions, routes, 7))

    def test_missing_transit_uses_default(self):
        positions = {('p1', 'a'): self.position('a', 100), ('p1', 'b'): self.position('b', 100)}
        routes = [
            {'id': 'ra', 'from_location_id': 'a', 'to_location_id': 'x', 'transit_days_typical': None},
            {'id': 'rb', 'from_location_id': 'b', 'to_location_id': 'x', 'transit_days_typical': 8},
        ]

        route, _ = SuggestionService.find_transfer_source('p1', 'x', 10, positions, routes, 7)
        self.assertEqual(route['id'], 'ra')


class TestRegeneration(SuggestionTestCase):

    def test_pending_suggestion_is_refreshed_in_place(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)
        original_id = self.suggestions(product_id='p1')[0]['id']

        self.set_quantity('b1', 60)
        later = NOW + timedelta(days=1)
        results = self.service.generate_suggestions(today=TODAY + timedelta(days=1), now=later)

        self.assertEqual(results['inserted'], 0)
        self.assertEqual(results['updated'], 2)

        rows = self.suggestions(product_id='p1')
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['id'], original_id)
        self.assertEqual(rows[0]['urgency'], 'warning')
        self.assertEqual(rows[0]['days_of_stock_remaining'], 6)
        self.assertEqual(rows[0]['generated_at'], later)

    def test_type_change_replaces_pending_suggestion(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)
        transfer = self.suggestions(product_id='p1')[0]
        self.assertEqual(transfer['type'], 'transfer')

        self.set_quantity('b2', 100)
        results = self.service.generate_suggestions(today=TODAY, now=NOW + timedelta(hours=1))

        self.assertEqual(results['inserted'], 0)
        rows = self.suggestions(product_id='p1', status='pending')
        self.assertEqual(len(rows), 1)
        row = rows[0]
        self.assertEqual(row['id'], transfer['id'])
        self.assertEqual(row['type'], 'purchase-order')
        self.assertEqual(row['recommended_qty'], 300)
        self.assertEqual(row['supplier_id'], 's1')
        self.assertIsNone(row['route_id'])
        self.assertIsNone(row['source_location_id'])

        summary = self.service.urgency_summary()
        self.assertEqual(summary['total'], 2)
        self.assertEqual(summary['by_type'], {'transfer': 0, 'purchase-order': 2})

    def test_snoozed_transfer_holds_back_purchase_order(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)
        transfer_id = self.suggestions(product_id='p1')[0]['id']
        self.service.snooze(transfer_id, NOW + timedelta(days=2), now=NOW)

        self.set_quantity('b2', 100)
        results = self.service.generate_suggestions(today=TODAY + timedelta(days=1), now=NOW + timedelta(days=1))

        self.assertEqual(results['skipped'], 1)
        self.assertEqual(results['inserted'], 0)
        rows = self.suggestions(product_id='p1')
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['type'], 'transfer')
        self.assertEqual(rows[0]['status'], 'snoozed')

    def test_accepted_suggestion_is_untouched(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)
        accepted_id = self.suggestions(product_id='p1')[0]['id']
        self.service.accept(accepted_id, 'transfer-9', 'transfer', now=NOW)

        self.set_quantity('b1', 60)
        self.service.generate_suggestions(today=TODAY, now=NOW + timedelta(hours=1))

        accepted = self.service.get_suggestion(accepted_id)
        self.assertEqual(accepted['status'], 'accepted')
        self.assertEqual(accepted['urgency'], 'critical')
        self.assertEqual(len(self.suggestions(product_id='p1', status='pending')), 1)

    def test_snoozed_suggestion_waits_for_its_window(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)
        suggestion_id = self.suggestions(product_id='p1')[0]['id']
        self.service.snooze(suggestion_id, NOW + timedelta(days=2), now=NOW)

        results = self.service.generate_suggestions(today=TODAY + timedelta(days=1), now=NOW + timedelta(days=1))
        self.assertEqual(results['reactivated'], 0)
        self.assertEqual(results['inserted'], 0)
        self.assertEqual(len(self.suggestions(product_id='p1')), 1)
        self.assertEqual(self.service.get_suggestion(suggestion_id)['status'], 'snoozed')

        results = self.service.generate_suggestions(today=TODAY + timedelta(days=3), now=NOW + timedelta(days=3))
        self.assertEqual(results['reactivated'], 1)
        self.assertEqual(results['updated'], 2)

        row = self.service.get_suggestion(suggestion_id)
        self.assertEqual(row['status'], 'pending')
        self.assertIsNone(row['snoozed_until'])
        self.assertEqual(len(self.suggestions(product_id='p1')), 1)


class TestCriticalNotifications(SuggestionTestCase):

    def notifications(self):
        return self.interface.select('inventory_notifications')

    def test_new_critical_suggestion_notifies(self):
        results = self.service.generate_suggestions(today=TODAY, now=NOW)

        self.assertEqual(results['notifications'], 1)
        notifications = self.notifications()
        self.assertEqual(len(notifications), 1)
        notification = notifications[0]
        self.assertEqual(notification['type'], 'critical_stock')
        self.assertEqual(notification['title'], 'Critical: SKU-1 at FBA East')
        self.assertEqual(notification['message'], 'Stock will run out in 2 days. Recommend 280 units.')
        self.assertEqual(notification['entity_type'], 'product')
        self.assertEqual(notification['entity_id'], 'p1')
        self.assertEqual(notification['data'], {'daysRemaining': 2, 'recommendedQty': 280, 'locationId': 'fba'})
        self.assertIsNone(notification['read_at'])

    def test_refreshed_critical_suggestion_does_not_notify_again(self):
        self.service.generate_suggestions(today=TODAY, now=NOW)
        results = self.service.generate_suggestions(today=TODAY, now=NOW + timedelta(hours=1))

        self.assertEqual(results['notifications'], 0)
        self.assertEqual(len(self.notifications()), 1)

    def test_suggestion_turning_critical_notifies(self):
        self.set_quantity('b1', 60)
        self.service.generate_suggestions(today=TODAY, now=NOW)
        self.assertEqual(self.notifications(), [])

        self.set_quantity('b1', 20)
        results = self.service.generate_suggestions(today=TODAY, now=NOW + timedelta(hours=1))

        self.assertEqual(results['updated'], 2)
        self.assertEqual(results['notifications'], 1)
        self.assertEqual(len(self.notifications()), 1)


class TestStatusTransitions(SuggestionTestCase):

    def setUp(self):
        super().setUp()
        self.service.generate_suggestions(today=TODAY, now=NOW)
        self.suggestion_id = self.suggestions(product_id='p1')[0]['id']

    def test_accept(self):
        result = self.service.accept(self.suggestion_id, 'po-1', 'purchase-order', now=NOW)

        self.assertEqual(result['status'], 'accepted')
        row = self.service.get_suggestion(self.suggestion_id)
        self.assertEqual(row['accepted_at'], NOW)
        self.assertEqual(row['linked_entity_id'], 'po-1')
        self.assertEqual(row['linked_entity_type'], 'purchase-order')
        self.assertIsNone(row['snoozed_until'])

    def test_dismiss(self):
        self.service.dismiss(self.suggestion_id, 'Manual restock planned', now=NOW)

        row = self.service.get_suggestion(self.suggestion_id)
        self.assertEqual(row['status'], 'dismissed')
        self.assertEqual(row['dismissed_reason'], 'Manual restock planned')
        self.assertIsNone(row['accepted_at'])

    def test_terminal_states_reject_transitions(self):
        self.service.accept(self.suggestion_id, now=NOW)

        with self.assertRaises(SuggestionError):
            self.service.dismiss(self.suggestion_id)
        with self.assertRaises(SuggestionError):
            self.service.snooze(self.suggestion_id, NOW + timedelta(days=1))

    def test_snoozed_suggestion_can_be_accepted(self):
        self.service.snooze(self.suggestion_id, '2024-12-20T09:00:00', now=NOW)
        row = self.service.get_suggestion(self.suggestion_id)
        self.assertEqual(row['snoozed_until'], datetime(2024, 12, 20, 9, 0))

        self.service.accept(self.suggestion_id, now=NOW)
        row = self.service.get_suggestion(self.suggestion_id)
        self.assertEqual(row['status'], 'accepted')
        self.assertIsNone(row['snoozed_until'])

    def test_snooze_requires_time(self):
        with self.assertRaises(SuggestionError):
            self.service.snooze(self.suggestion_id, None)
        with self.assertRaises(SuggestionError):
            self.service.snooze(self.suggestion_id, 'next week')

    def test_snooze_in_the_past_is_accepted(self):
        self.service.snooze(self.suggestion_id, NOW - timedelta(days=1), now=NOW)
        self.assertEqual(self.service.get_suggestion(self.suggestion_id)['status'], 'snoozed')

    def test_unknown_suggestion(self):
        with self.assertRaises(NotFoundError):
            self.service.accept('missing')


class TestQueries(SuggestionTestCase):

    def test_list_and_summary(self):
        self.add_forecast('p1', 'wh', 1.0)
        self.service.generate_suggestions(today=TODAY, now=NOW)

        pending = self.service.list_suggestions()
        self.assertEqual([row['urgency'] for row in pending], ['critical', 'warning', 'monitor'])

        critical = self.service.list_suggestions(urgency='critical')
        self.assertEqual(len(critical), 1)

        summary = self.service.urgency_summary()
        self.assertEqual(summary['total'], 3)
        self.assertEqual(summary['by_urgency'], {'critical': 1, 'warning': 1, 'planned': 0, 'monitor': 1})
        self.assertEqual(summary['by_type'], {'transfer': 1, 'purchase-order': 2})

    def test_invalid_status_filter(self):
        with self.assertRaises(ValueError):
            self.service.list_suggestions(status='archived')

if __name__ == '__main__':
    unittest.main()
