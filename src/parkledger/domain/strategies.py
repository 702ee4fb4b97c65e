# File: src/parkledger/domain/strategies.py
"""
Pricing Strategies for the Parking Ledger

The pricing engine is a pure computation over a lot's occupancy and two
moments. It never touches the store; the lifecycle service reads a lot,
asks a strategy for a quote and writes the result back itself.

Occupancy pricing:
    current_price = min_price + (occupied * (max_price - min_price)) / capacity
    fee           = elapsed_seconds * current_price

Every step is a separate checked operation (see domain.arithmetic). Any
step that does not fit its representation is rejected with a specific
PricingError instead of wrapping or rounding.
"""

from abc import ABC, abstractmethod
import logging

from .arithmetic import (
    BALANCE_MAX, MOMENT_MAX, WIDE_MAX,
    checked_add, checked_div, checked_mul, checked_sub, fits_unsigned, narrow
)
from .exceptions import (
    ArithmeticOverflowError, ArithmeticUnderflowError, FeeOverflowError,
    InvalidPriceRangeError, TimeOrderingViolationError
)
from .models import ParkingLot, PriceQuote

MILLIS_PER_SECOND = 1000


def compute_new_fee(
    capacity: int,
    remain: int,
    min_price: int,
    max_price: int,
    old_time: int,
    new_time: int,
    time_unit_ms: int = MILLIS_PER_SECOND
) -> PriceQuote:
    """
    Compute the current unit price and the fee accrued between two moments

    Args:
        capacity: total slots of the lot
        remain: free slots of the lot
        min_price, max_price: price bounds of the lot
        old_time, new_time: moments in milliseconds, old_time <= new_time
        time_unit_ms: length of one billing unit, 1000 bills per whole second

    Returns: PriceQuote(fee, current_price)

    Raises:
        ArithmeticUnderflowError: remain > capacity
        TimeOrderingViolationError: new_time < old_time
        InvalidPriceRangeError: max_price < min_price
        FeeOverflowError: elapsed units times price overflows the widened product
        ArithmeticOverflowError: any other step, or narrowing the fee to a balance, does not fit
    """
    # Step 1: occupied slots
    current_num = checked_sub(capacity, remain)
    if current_num is None:
        raise ArithmeticUnderflowError(
            f"Free slots ({remain}) exceed capacity ({capacity})"
        )

    # Step 2: elapsed billing units, truncated
    if new_time < old_time:
        raise TimeOrderingViolationError(
            f"New time {new_time} is earlier than previous time {old_time}"
        )
    if not fits_unsigned(old_time, MOMENT_MAX) or not fits_unsigned(new_time, MOMENT_MAX):
        raise ArithmeticOverflowError("Moments must fit an unsigned 64-bit value")
    elapsed_ms = checked_sub(new_time, old_time, MOMENT_MAX)
    if elapsed_ms is None:
        raise ArithmeticOverflowError("Elapsed time does not fit a moment")
    elapsed = checked_div(elapsed_ms, time_unit_ms)
    if elapsed is None:
        raise ArithmeticOverflowError(f"Invalid billing unit: {time_unit_ms}ms")

    # Step 3: price range
    if max_price < min_price:
        raise InvalidPriceRangeError(
            f"Maximum price {max_price} is below minimum price {min_price}"
        )
    price_range = checked_sub(max_price, min_price, WIDE_MAX)
    if price_range is None:
        raise ArithmeticOverflowError("Price range does not fit")

    # Step 4: interpolate by occupancy, widened
    scaled = checked_mul(current_num, price_range, WIDE_MAX)
    if scaled is None:
        raise ArithmeticOverflowError("Occupancy scaling overflowed")
    share = checked_div(scaled, capacity)
    if share is None:
        raise ArithmeticOverflowError(f"Cannot interpolate over capacity {capacity}")
    current_price = checked_add(min_price, share, WIDE_MAX)
    if current_price is None:
        raise ArithmeticOverflowError("Unit price overflowed")

    # Step 5: fee for the elapsed units
    fee = checked_mul(elapsed, current_price, WIDE_MAX)
    if fee is None:
        raise FeeOverflowError(
            f"Fee for {elapsed} units at price {current_price} overflowed the widened product"
        )

    # Step 6: narrow back to the balance representation
    narrow_fee = narrow(fee, BALANCE_MAX)
    narrow_price = narrow(current_price, BALANCE_MAX)
    if narrow_fee is None or narrow_price is None:
        raise ArithmeticOverflowError("Result does not fit the balance representation")

    return PriceQuote(fee=narrow_fee, current_price=narrow_price)


# ============================================================================
# STRATEGY INTERFACE
# ============================================================================

class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Defines the interface for fee calculation algorithms
    """
    time_unit_ms = MILLIS_PER_SECOND

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def billed_until(self, old_time: int, new_time: int) -> int:
        """
        Latest moment up to which a quote from old_time to new_time has
        billed, i.e. old_time plus the whole units elapsed
        """
        whole_units = (new_time - old_time) // self.time_unit_ms
        return old_time + whole_units * self.time_unit_ms

    @abstractmethod
    def quote(self, lot: ParkingLot, old_time: int, new_time: int) -> PriceQuote:
        """
        Price a lot in its current occupancy and the fee accrued between
        old_time and new_time
        """
        pass

    def quote_unit_price(self, lot: ParkingLot) -> int:
        """Unit price for the lot's current occupancy, without any elapsed time"""
        return self.quote(lot, 0, 0).current_price

    def get_strategy_name(self) -> str:
        return self.__class__.__name__.replace("Strategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Strategy"


class OccupancyPricingStrategy(PricingStrategy):
    """
    Congestion pricing: the unit price rises linearly from min_price to
    max_price as the lot fills up
    """

    def __init__(self, time_unit_ms: int = MILLIS_PER_SECOND):
        super().__init__()
        if time_unit_ms <= 0:
            raise ValueError("Billing unit must be a positive number of milliseconds")
        self.time_unit_ms = time_unit_ms

    def quote(self, lot: ParkingLot, old_time: int, new_time: int) -> PriceQuote:
        self.logger.debug(
            f"Quoting lot {lot.lot_hash} ({lot.occupied}/{lot.capacity} occupied) "
            f"from {old_time} to {new_time}"
        )
        return compute_new_fee(
            capacity=lot.capacity,
            remain=lot.remain,
            min_price=lot.min_price,
            max_price=lot.max_price,
            old_time=old_time,
            new_time=new_time,
            time_unit_ms=self.time_unit_ms,
        )
