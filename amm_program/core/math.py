"""
Fixed-point integer arithmetic for token amounts.

Token amounts are u64; intermediate products are carried in u128, which is
enough for `reserve * amount` with both operands in u64. Every helper checks
its result against the declared bound and raises `ArithmeticOverflow` instead
of wrapping. No floating point anywhere.
"""

from __future__ import annotations

import math

from ..errors import AmmError, ErrorCode


U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1

BPS_DENOM = 10_000


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _overflow(message: str) -> AmmError:
    return AmmError(ErrorCode.ARITHMETIC_OVERFLOW, message)


def require_u64(name: str, value: int) -> int:
    """Check that `value` is a valid u64 and return it."""
    _require_int(name, value)
    if value < 0 or value > U64_MAX:
        raise _overflow(f"{name} out of u64 range: {value}")
    return value


def checked_add(a: int, b: int, *, bound: int = U64_MAX) -> int:
    _require_int("a", a)
    _require_int("b", b)
    out = a + b
    if out < 0 or out > bound:
        raise _overflow(f"{a} + {b} exceeds bound")
    return out


def checked_sub(a: int, b: int) -> int:
    _require_int("a", a)
    _require_int("b", b)
    out = a - b
    if out < 0:
        raise _overflow(f"{a} - {b} underflows")
    return out


def checked_mul(a: int, b: int, *, bound: int = U128_MAX) -> int:
    _require_int("a", a)
    _require_int("b", b)
    if a < 0 or b < 0:
        raise _overflow("operands must be non-negative")
    out = a * b
    if out > bound:
        raise _overflow(f"{a} * {b} exceeds bound")
    return out


def floor_div(numerator: int, denominator: int) -> int:
    _require_int("numerator", numerator)
    _require_int("denominator", denominator)
    if denominator <= 0:
        raise _overflow("division by zero")
    if numerator < 0:
        raise _overflow("numerator must be non-negative")
    return numerator // denominator


def mul_div_floor(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with a u128 intermediate and a u64 result."""
    product = checked_mul(a, b, bound=U128_MAX)
    out = floor_div(product, denominator)
    if out > U64_MAX:
        raise _overflow(f"{a} * {b} / {denominator} exceeds u64")
    return out


def isqrt(value: int) -> int:
    """Integer square root (floor)."""
    _require_int("value", value)
    if value < 0:
        raise _overflow("isqrt of a negative value")
    return math.isqrt(value)


def apply_fee(amount: int, fee_bps: int) -> int:
    """amount * (10_000 - fee_bps) // 10_000."""
    _require_int("fee_bps", fee_bps)
    if not (0 <= fee_bps <= BPS_DENOM):
        raise AmmError(ErrorCode.INVALID_FEE, f"fee_bps must be in [0, {BPS_DENOM}]: {fee_bps}")
    return mul_div_floor(amount, BPS_DENOM - fee_bps, BPS_DENOM)
