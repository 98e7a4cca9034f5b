"""
Unit tests for urgency classification and stock-cover arithmetic.
"""
import unittest
from datetime import date

from inventory_intelligence.core.urgency import (
    classify_urgency,
    calculate_days_of_stock,
    project_days_of_stock,
    calculate_stockout_date,
    calculate_recommended_qty,
    get_seasonal_multiplier,
    calculate_estimated_arrival,
    calculate_safety_stock,
    calculate_seasonal_safety_stock,
    DaysOfStock,
    UNBOUNDED_DAYS,
    UNSET_MULTIPLIER_FALLBACK
)
from inventory_intelligence.models import SuggestionUrgency

SEASONAL = [1.2, 1, 1, 1.1, 1, 0.9, 0.8, 0.9, 1, 1.1, 1.2, 1.5]

class TestClassifyUrgency(unittest.TestCase):
    """Test cases for urgency bands."""

    def test_default_band_boundaries(self):
        """Each boundary day falls in exactly one band."""
        expected = {
            0: SuggestionUrgency.CRITICAL,
            3: SuggestionUrgency.CRITICAL,
            4: SuggestionUrgency.WARNING,
            7: SuggestionUrgency.WARNING,
            8: SuggestionUrgency.PLANNED,
            14: SuggestionUrgency.PLANNED,
            15: SuggestionUrgency.MONITOR,
            998: SuggestionUrgency.MONITOR,
        }
        for days, urgency in expected.items():
            self.assertEqual(classify_urgency(days), urgency, f"days={days}")

    def test_bands_cover_every_day_without_gaps(self):
        thresholds = {'critical_days': 2, 'warning_days': 5, 'planned_days': 9}
        previous_rank = 0
        order = list(SuggestionUrgency)
        for days in range(0, 30):
            rank = order.index(classify_urgency(days, thresholds))
            self.assertGreaterEqual(rank, previous_rank)
            previous_rank = rank
        self.assertEqual(classify_urgency(2, thresholds), SuggestionUrgency.CRITICAL)
        self.assertEqual(classify_urgency(3, thresholds), SuggestionUrgency.WARNING)
        self.assertEqual(classify_urgency(9, thresholds), SuggestionUrgency.PLANNED)
        self.assertEqual(classify_urgency(10, thresholds), SuggestionUrgency.MONITOR)

    def test_negative_days_are_critical(self):
        self.assertEqual(classify_urgency(-4), SuggestionUrgency.CRITICAL)

    def test_unbounded_and_malformed_are_monitor(self):
        self.assertEqual(classify_urgency(DaysOfStock.unbounded()), SuggestionUrgency.MONITOR)
        self.assertEqual(classify_urgency(UNBOUNDED_DAYS), SuggestionUrgency.MONITOR)
        self.assertEqual(classify_urgency(float('nan')), SuggestionUrgency.MONITOR)
        self.assertEqual(classify_urgency(None), SuggestionUrgency.MONITOR)

    def test_accepts_finite_days_of_stock(self):
        self.assertEqual(classify_urgency(DaysOfStock(5)), SuggestionUrgency.WARNING)

    def test_partial_thresholds_fall_back_to_defaults(self):
        self.assertEqual(classify_urgency(5, {'critical_days': 5}), SuggestionUrgency.CRITICAL)
        self.assertEqual(classify_urgency(12, {'critical_days': 5}), SuggestionUrgency.PLANNED)


class TestDaysOfStock(unittest.TestCase):
    """Test cases for days of stock remaining."""

    def test_scenario_planned(self):
        """100 units at 10/day lasts 10 days, which is planned."""
        days = calculate_days_of_stock(100, 10)
        self.assertEqual(days, 10)
        self.assertEqual(classify_urgency(days), SuggestionUrgency.PLANNED)

    def test_zero_or_negative_rate_is_unbounded(self):
        for stock in (0, 1, 250):
            self.assertEqual(calculate_days_of_stock(stock, 0), UNBOUNDED_DAYS)
            self.assertEqual(calculate_days_of_stock(stock, -5), UNBOUNDED_DAYS)

    def test_malformed_rate_is_unbounded(self):
        self.assertEqual(calculate_days_of_stock(10, float('nan')), UNBOUNDED_DAYS)
        self.assertEqual(calculate_days_of_stock(10, None), UNBOUNDED_DAYS)
        self.assertEqual(calculate_days_of_stock(10, 'abc'), UNBOUNDED_DAYS)

    def test_floors_partial_days(self):
        self.assertEqual(calculate_days_of_stock(15, 4), 3)

    def test_in_transit_only_counts_when_included(self):
        self.assertEqual(calculate_days_of_stock(10, 4, in_transit=6), 2)
        self.assertEqual(calculate_days_of_stock(10, 4, in_transit=6, include_in_transit=True), 4)

    def test_negative_stock_clamps_to_zero(self):
        self.assertEqual(calculate_days_of_stock(-20, 5), 0)

    def test_project_days_of_stock(self):
        self.assertTrue(project_days_of_stock(10, 0).is_unbounded)
        self.assertEqual(project_days_of_stock(100, 10), DaysOfStock(10))
        # A large finite cover stays finite
        projected = project_days_of_stock(5000, 1)
        self.assertFalse(projected.is_unbounded)
        self.assertEqual(projected.days, 5000)

    def test_serialized_form(self):
        self.assertEqual(DaysOfStock.unbounded().to_value(), 999)
        self.assertEqual(DaysOfStock(12).to_value(), 12)
        self.assertTrue(DaysOfStock.from_value(999).is_unbounded)
        self.assertTrue(DaysOfStock.from_value(None).is_unbounded)
        self.assertEqual(DaysOfStock.from_value(12).days, 12)


class TestStockoutAndArrival(unittest.TestCase):
    """Test cases for projected dates."""

    def test_unbounded_has_no_stockout(self):
        self.assertIsNone(calculate_stockout_date(999, date(2024, 5, 1)))
        self.assertIsNone(calculate_stockout_date(DaysOfStock.unbounded(), date(2024, 5, 1)))

    def test_zero_days_is_today(self):
        self.assertEqual(calculate_stockout_date(0, date(2024, 5, 1)), '2024-05-01')

    def test_crosses_year_boundary(self):
        self.assertEqual(calculate_stockout_date(10, date(2024, 12, 25)), '2025-01-04')
        self.assertEqual(calculate_stockout_date(DaysOfStock(10), date(2024, 12, 25)), '2025-01-04')

    def test_estimated_arrival(self):
        self.assertEqual(calculate_estimated_arrival(7, date(2024, 1, 1)), '2024-01-08')
        self.assertEqual(calculate_estimated_arrival(None, date(2024, 1, 1)), '2024-01-01')


class TestRecommendedQty(unittest.TestCase):
    """Test cases for recommended replenishment quantity."""

    def test_scenario_rounds_up_to_min_order_qty(self):
        """Target 40, need 25, next multiple of 10 is 30."""
        self.assertEqual(calculate_recommended_qty(4, 10, 15, 0, 10), 30)

    def test_zero_rate_or_cover(self):
        self.assertEqual(calculate_recommended_qty(0, 30, 10), 0)
        self.assertEqual(calculate_recommended_qty(-1, 30, 10), 0)
        self.assertEqual(calculate_recommended_qty(5, 0, 10), 0)

    def test_enough_stock_needs_nothing(self):
        self.assertEqual(calculate_recommended_qty(5, 10, 40, 10), 0)

    def test_in_transit_reduces_need(self):
        self.assertEqual(calculate_recommended_qty(5, 10, 20, 10), 20)

    def test_result_is_zero_or_multiple_of_min_order_qty(self):
        for rate in (0.5, 1.3, 7, 12.25):
            for stock in (0, 3, 17, 60):
                for moq in (1, 6, 25):
                    qty = calculate_recommended_qty(rate, 14, stock, 0, moq)
                    self.assertEqual(qty % moq, 0)
                    self.assertGreaterEqual(qty, 0)

    def test_invalid_min_order_qty_treated_as_one(self):
        self.assertEqual(calculate_recommended_qty(2, 10, 5, 0, 0), 15)


class TestSeasonalMultiplier(unittest.TestCase):
    """Test cases for monthly multipliers."""

    def test_december(self):
        self.assertEqual(get_seasonal_multiplier(SEASONAL, date(2024, 12, 15)), 1.5)

    def test_january_is_index_zero(self):
        self.assertEqual(get_seasonal_multiplier(SEASONAL, date(2024, 1, 31)), 1.2)

    def test_missing_or_wrong_length(self):
        self.assertEqual(get_seasonal_multiplier(None, date(2024, 12, 15)), 1)
        self.assertEqual(get_seasonal_multiplier([], date(2024, 12, 15)), 1)
        self.assertEqual(get_seasonal_multiplier(SEASONAL[:11], date(2024, 12, 15)), 1)

    def test_zero_reads_as_unset(self):
        multipliers = list(SEASONAL)
        multipliers[11] = 0
        self.assertEqual(get_seasonal_multiplier(multipliers, date(2024, 12, 15)), UNSET_MULTIPLIER_FALLBACK)
        self.assertEqual(UNSET_MULTIPLIER_FALLBACK, 1.0)


class TestSafetyStock(unittest.TestCase):
    """Test cases for safety stock thresholds."""

    def test_units_is_rate_independent(self):
        for rate in (0, 1, 37.5):
            self.assertEqual(calculate_safety_stock('units', 100, rate, 21), 100)

    def test_fractional_units_are_not_rounded(self):
        self.assertEqual(calculate_safety_stock('units', 100.5, 3), 100.5)
        self.assertIsInstance(calculate_safety_stock('units', 40.0, 3), int)

    def test_days_of_cover(self):
        self.assertEqual(calculate_safety_stock('days-of-cover', 14, 2.5), 35)
        self.assertEqual(calculate_safety_stock('days-of-cover', 10, 1.05), 11)

    def test_default_days_without_rule(self):
        self.assertEqual(calculate_safety_stock(None, None, 3), 42)
        self.assertEqual(calculate_safety_stock(None, None, 3, 7), 21)

    def test_seasonal_rule_scales_value(self):
        multipliers = [1] * 11 + [1.5]
        self.assertEqual(
            calculate_seasonal_safety_stock('units', 100, multipliers, 5, date(2024, 12, 1)), 150
        )
        self.assertEqual(
            calculate_seasonal_safety_stock('days-of-cover', 10, multipliers, 4, date(2024, 12, 1)), 60
        )
        self.assertEqual(
            calculate_seasonal_safety_stock('units', 100, multipliers, 5, date(2024, 6, 1)), 100
        )

    def test_seasonal_rule_honours_zero(self):
        multipliers = [1] * 11 + [0]
        self.assertEqual(
            calculate_seasonal_safety_stock('units', 100, multipliers, 5, date(2024, 12, 1)), 0
        )

    def test_seasonal_without_rule_uses_default(self):
        self.assertEqual(
            calculate_seasonal_safety_stock(None, None, None, 2, date(2024, 12, 1), 14), 28
        )

if __name__ == '__main__':
    unittest.main()
