# File: src/parkledger/domain/arithmetic.py
"""
Checked Integer Arithmetic

Python integers never wrap, so the ledger bounds every value explicitly to
the fixed-width representation it is stored in. Each helper returns None
when the result does not fit, mirroring a checked operation; the caller
decides which domain error that maps to.

Representations:
- Capacity: unsigned 32-bit
- Moment (milliseconds): unsigned 64-bit
- Balance / price: unsigned 64-bit
- Intermediate products: unsigned 128-bit
- Coordinates: signed 32-bit
"""

from typing import Optional

U32_MAX = 2 ** 32 - 1
U64_MAX = 2 ** 64 - 1
U128_MAX = 2 ** 128 - 1
I32_MIN = -(2 ** 31)
I32_MAX = 2 ** 31 - 1

CAPACITY_MAX = U32_MAX
MOMENT_MAX = U64_MAX
BALANCE_MAX = U64_MAX
WIDE_MAX = U128_MAX


def fits_unsigned(value: int, limit: int) -> bool:
    """Check that value is an int in [0, limit]"""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= limit


def fits_signed32(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and I32_MIN <= value <= I32_MAX


def checked_add(a: int, b: int, limit: int = WIDE_MAX) -> Optional[int]:
    result = a + b
    if result < 0 or result > limit:
        return None
    return result


def checked_sub(a: int, b: int, limit: int = WIDE_MAX) -> Optional[int]:
    result = a - b
    if result < 0 or result > limit:
        return None
    return result


def checked_mul(a: int, b: int, limit: int = WIDE_MAX) -> Optional[int]:
    result = a * b
    if result < 0 or result > limit:
        return None
    return result


def checked_div(a: int, b: int) -> Optional[int]:
    """Truncating division of non-negative operands; None on a zero divisor"""
    if b == 0 or a < 0 or b < 0:
        return None
    return a // b


def narrow(value: int, limit: int) -> Optional[int]:
    """Convert a widened value back to a narrower representation"""
    if not fits_unsigned(value, limit):
        return None
    return value
