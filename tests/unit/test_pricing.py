#!/usr/bin/env python3
"""
Pricing Engine Unit Tests

Tests for occupancy-based price interpolation and fee accrual.
"""

import unittest

from parkledger.domain.arithmetic import CAPACITY_MAX, U64_MAX
from parkledger.domain.exceptions import (
    ArithmeticOverflowError, ArithmeticUnderflowError, FeeOverflowError,
    InvalidPriceRangeError, PricingError, TimeOrderingViolationError
)
from parkledger.domain.models import Coordinates, ParkingLot, PriceQuote
from parkledger.domain.strategies import OccupancyPricingStrategy, compute_new_fee


def make_lot(capacity=10, remain=10, min_price=100, max_price=200):
    return ParkingLot(
        lot_hash="lot-1",
        owner="owner",
        coordinates=Coordinates(0, 0),
        capacity=capacity,
        remain=remain,
        min_price=min_price,
        max_price=max_price,
        current_price=min_price,
    )


class TestComputeNewFee(unittest.TestCase):
    """Unit tests for compute_new_fee"""

    def test_one_of_ten_occupied_for_a_minute(self):
        """capacity=10, 100..200, one car for 60s costs 60 * 110"""
        quote = compute_new_fee(10, 9, 100, 200, 0, 60_000)
        self.assertEqual(quote, PriceQuote(fee=6600, current_price=110))

    def test_empty_lot_prices_at_minimum(self):
        quote = compute_new_fee(10, 10, 100, 200, 0, 5_000)
        self.assertEqual(quote.current_price, 100)
        self.assertEqual(quote.fee, 500)

    def test_full_lot_prices_at_maximum(self):
        quote = compute_new_fee(10, 0, 100, 200, 0, 1_000)
        self.assertEqual(quote.current_price, 200)

    def test_same_moment_has_no_fee(self):
        quote = compute_new_fee(10, 3, 100, 200, 42_000, 42_000)
        self.assertEqual(quote.fee, 0)
        self.assertEqual(quote.current_price, 170)

    def test_partial_seconds_are_truncated(self):
        self.assertEqual(compute_new_fee(10, 9, 100, 200, 0, 1_999).fee, 110)
        self.assertEqual(compute_new_fee(10, 9, 100, 200, 0, 999).fee, 0)

    def test_interpolation_truncates(self):
        # 1 * 100 / 3 = 33.33 -> 33
        self.assertEqual(compute_new_fee(3, 2, 100, 200, 0, 0).current_price, 133)

    def test_price_stays_within_bounds(self):
        """min_price <= current_price <= max_price for every occupancy"""
        for capacity in (1, 2, 3, 7, 10, 64, 1000):
            for min_price, max_price in ((0, 0), (0, 1), (5, 5), (100, 200), (1, 10 ** 12)):
                for remain in range(0, capacity + 1, max(1, capacity // 16)):
                    price = compute_new_fee(capacity, remain, min_price, max_price, 0, 0).current_price
                    self.assertGreaterEqual(price, min_price)
                    self.assertLessEqual(price, max_price)

    def test_price_is_monotonic_in_occupancy(self):
        for capacity in (1, 3, 10, 97):
            prices = [
                compute_new_fee(capacity, capacity - occupied, 100, 1_000, 0, 0).current_price
                for occupied in range(capacity + 1)
            ]
            self.assertEqual(prices, sorted(prices))

    def test_time_ordering_violation(self):
        with self.assertRaises(TimeOrderingViolationError):
            compute_new_fee(10, 9, 100, 200, 60_000, 59_999)

    def test_remain_above_capacity_underflows(self):
        with self.assertRaises(ArithmeticUnderflowError):
            compute_new_fee(10, 11, 100, 200, 0, 1_000)

    def test_inverted_price_range(self):
        with self.assertRaises(InvalidPriceRangeError):
            compute_new_fee(10, 9, 200, 100, 0, 1_000)

    def test_zero_capacity_is_rejected(self):
        with self.assertRaises(ArithmeticOverflowError):
            compute_new_fee(0, 0, 100, 200, 0, 1_000)

    def test_moment_outside_range_overflows(self):
        with self.assertRaises(ArithmeticOverflowError):
            compute_new_fee(10, 9, 100, 200, 0, U64_MAX + 1)

    def test_fee_beyond_a_balance_fails_narrowing(self):
        """The widened product fits, narrowing it back to a balance does not"""
        with self.assertRaises(ArithmeticOverflowError):
            compute_new_fee(10, 9, 10 ** 6, 10 ** 6, 0, U64_MAX)

    def test_fee_overflowing_the_widened_product(self):
        # 2**29 units at 2**100 per unit is past 2**128
        with self.assertRaises(FeeOverflowError):
            compute_new_fee(1, 0, 2 ** 100, 2 ** 100, 0, 2 ** 29 * 1_000)

    def test_largest_balance_inputs_stay_within_the_widened_product(self):
        with self.assertRaises(ArithmeticOverflowError):
            compute_new_fee(1, 0, U64_MAX, U64_MAX, 0, U64_MAX, time_unit_ms=1)

    def test_price_that_does_not_fit_a_balance(self):
        with self.assertRaises(ArithmeticOverflowError):
            compute_new_fee(10, 9, U64_MAX + 1, U64_MAX + 1, 0, 0)

    def test_extreme_capacity_is_exact(self):
        """u32::MAX capacity with u64 bounds interpolates without wrapping"""
        quote = compute_new_fee(CAPACITY_MAX, 0, 0, U64_MAX, 0, 1_000)
        self.assertEqual(quote.current_price, U64_MAX)
        self.assertEqual(quote.fee, U64_MAX)

        with self.assertRaises(ArithmeticOverflowError):
            compute_new_fee(CAPACITY_MAX, 0, 0, U64_MAX, 0, 2_000)

    def test_all_failures_are_pricing_errors(self):
        for args in (
            (10, 11, 100, 200, 0, 0),
            (10, 9, 100, 200, 1, 0),
            (10, 9, 200, 100, 0, 0),
            (0, 0, 100, 200, 0, 0),
        ):
            with self.assertRaises(PricingError):
                compute_new_fee(*args)


class TestOccupancyPricingStrategy(unittest.TestCase):
    """Unit tests for the strategy wrapper"""

    def setUp(self):
        self.strategy = OccupancyPricingStrategy()

    def test_quote_reads_lot_state(self):
        quote = self.strategy.quote(make_lot(remain=9), 0, 60_000)
        self.assertEqual(quote.fee, 6600)
        self.assertEqual(quote.current_price, 110)

    def test_quote_unit_price(self):
        self.assertEqual(self.strategy.quote_unit_price(make_lot(remain=5)), 150)

    def test_custom_billing_unit(self):
        per_minute = OccupancyPricingStrategy(time_unit_ms=60_000)
        self.assertEqual(per_minute.quote(make_lot(remain=9), 0, 119_000).fee, 110)

    def test_billed_until_drops_partial_units(self):
        self.assertEqual(self.strategy.billed_until(10_000, 40_500), 40_000)
        self.assertEqual(self.strategy.billed_until(10_000, 10_999), 10_000)

    def test_invalid_billing_unit(self):
        with self.assertRaises(ValueError):
            OccupancyPricingStrategy(time_unit_ms=0)

    def test_strategy_name(self):
        self.assertEqual(str(self.strategy), "OccupancyPricing Strategy")


if __name__ == '__main__':
    unittest.main()
