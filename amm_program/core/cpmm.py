"""
Constant Product Market Maker (CPMM) invariant engine.

Pure functions only: no account access, no side effects. The handlers feed in
vault balances and the LP mint supply and get back exact integer quotes.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Floor Rounding
- Time Complexity: O(1) per operation
- Invariant: after each swap, x' * y' >= x * y (fees stay in the pool)

Rounding rule: every division floors, and any non-zero input whose result
floors to zero is rejected with `DustResult` rather than succeeding with no
effect.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..errors import AmmError, ErrorCode
from .math import (
    U64_MAX,
    apply_fee,
    checked_add,
    checked_mul,
    checked_sub,
    floor_div,
    isqrt,
    mul_div_floor,
    require_u64,
)


@dataclass(frozen=True)
class SwapQuote:
    amount_in: int
    amount_in_after_fee: int
    fee: int
    amount_out: int
    new_reserve_in: int
    new_reserve_out: int
    k_before: int
    k_after: int


@dataclass(frozen=True)
class LiquidityQuote:
    lp_amount: int
    amount_a_used: int
    amount_b_used: int
    amount_a_refund: int
    amount_b_refund: int


def compute_swap_output(
    reserve_in: int,
    reserve_out: int,
    amount_in: int,
    fee_bps: int,
) -> SwapQuote:
    """
    Quote an exact-in swap.

        amount_in_after_fee = floor(amount_in * (10_000 - fee_bps) / 10_000)
        amount_out = floor(reserve_out * amount_in_after_fee / (reserve_in + amount_in_after_fee))

    Post-swap reserves:
        new_reserve_in = reserve_in + amount_in   (fee stays in pool)
        new_reserve_out = reserve_out - amount_out

    Raises:
        AmmError(ZeroAmount): amount_in == 0
        AmmError(EmptyPool): either reserve is zero
        AmmError(DustResult): after-fee input or output floors to zero
        AmmError(ArithmeticOverflow): any intermediate leaves its integer range
    """
    require_u64("reserve_in", reserve_in)
    require_u64("reserve_out", reserve_out)
    require_u64("amount_in", amount_in)

    if amount_in == 0:
        raise AmmError(ErrorCode.ZERO_AMOUNT, "amount_in must be positive")
    if reserve_in == 0 or reserve_out == 0:
        raise AmmError(ErrorCode.EMPTY_POOL, f"cannot swap against empty reserves ({reserve_in}, {reserve_out})")

    amount_in_after_fee = apply_fee(amount_in, fee_bps)
    if amount_in_after_fee == 0:
        raise AmmError(ErrorCode.DUST_RESULT, f"amount_in {amount_in} is consumed entirely by the fee")

    denominator = checked_add(reserve_in, amount_in_after_fee)
    amount_out = mul_div_floor(reserve_out, amount_in_after_fee, denominator)
    if amount_out == 0:
        raise AmmError(ErrorCode.DUST_RESULT, f"amount_out is zero for amount_in {amount_in}")
    if amount_out >= reserve_out:
        # Unreachable with floor rounding, kept as a hard stop.
        raise AmmError(ErrorCode.INVARIANT_VIOLATION, "swap would drain reserve_out")

    new_reserve_in = checked_add(reserve_in, amount_in)
    new_reserve_out = checked_sub(reserve_out, amount_out)

    k_before = checked_mul(reserve_in, reserve_out)
    k_after = checked_mul(new_reserve_in, new_reserve_out)
    if k_after < k_before:
        raise AmmError(ErrorCode.INVARIANT_VIOLATION, f"k decreased: {k_after} < {k_before}")

    return SwapQuote(
        amount_in=amount_in,
        amount_in_after_fee=amount_in_after_fee,
        fee=amount_in - amount_in_after_fee,
        amount_out=amount_out,
        new_reserve_in=new_reserve_in,
        new_reserve_out=new_reserve_out,
        k_before=k_before,
        k_after=k_after,
    )


def compute_lp_mint_amount(
    amount_a: int,
    amount_b: int,
    reserve_a: int,
    reserve_b: int,
    total_lp_supply: int,
) -> LiquidityQuote:
    """
    Compute LP shares for a deposit.

    First deposit (total_lp_supply == 0):
        lp = isqrt(amount_a * amount_b); both amounts are used in full.

    Subsequent deposits are clipped to the reserve ratio: the side that is
    over-supplied is recomputed from the other one (floor) and the excess is
    reported as a refund, i.e. never taken from the depositor.
        lp = min(floor(used_a * S / reserve_a), floor(used_b * S / reserve_b))
    """
    for name, value in (
        ("amount_a", amount_a),
        ("amount_b", amount_b),
        ("reserve_a", reserve_a),
        ("reserve_b", reserve_b),
        ("total_lp_supply", total_lp_supply),
    ):
        require_u64(name, value)

    if amount_a == 0 or amount_b == 0:
        raise AmmError(ErrorCode.ZERO_AMOUNT, f"deposit amounts must be positive: ({amount_a}, {amount_b})")

    if total_lp_supply == 0:
        # A pool whose shares were all burned may still hold dust; the next
        # depositor re-seeds the price and the dust accrues to them.
        lp = isqrt(checked_mul(amount_a, amount_b))
        if lp == 0:
            raise AmmError(ErrorCode.DUST_RESULT, "initial deposit mints zero shares")
        if lp > U64_MAX:
            raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, "initial LP amount exceeds u64")
        return LiquidityQuote(
            lp_amount=lp,
            amount_a_used=amount_a,
            amount_b_used=amount_b,
            amount_a_refund=0,
            amount_b_refund=0,
        )

    if reserve_a == 0 or reserve_b == 0:
        raise AmmError(ErrorCode.EMPTY_POOL, "cannot price a deposit against an empty reserve")

    # Pick the binding side on u128 cross-products; only the clipped side is
    # ever divided out, so an over-supplied side cannot overflow u64.
    if checked_mul(amount_a, reserve_b) <= checked_mul(amount_b, reserve_a):
        amount_a_used = amount_a
        amount_b_used = mul_div_floor(amount_a, reserve_b, reserve_a)
    else:
        amount_a_used = mul_div_floor(amount_b, reserve_a, reserve_b)
        amount_b_used = amount_b

    if amount_a_used == 0 or amount_b_used == 0:
        raise AmmError(
            ErrorCode.DUST_RESULT,
            f"deposit ({amount_a}, {amount_b}) rounds to zero on one side at the current ratio",
        )

    lp_a = floor_div(checked_mul(amount_a_used, total_lp_supply), reserve_a)
    lp_b = floor_div(checked_mul(amount_b_used, total_lp_supply), reserve_b)
    lp = min(lp_a, lp_b)
    if lp == 0:
        raise AmmError(ErrorCode.DUST_RESULT, "deposit mints zero shares")
    if lp > U64_MAX:
        raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"LP amount {lp} exceeds u64")

    return LiquidityQuote(
        lp_amount=lp,
        amount_a_used=amount_a_used,
        amount_b_used=amount_b_used,
        amount_a_refund=amount_a - amount_a_used,
        amount_b_refund=amount_b - amount_b_used,
    )


def compute_withdraw_amounts(
    lp_amount: int,
    reserve_a: int,
    reserve_b: int,
    total_lp_supply: int,
) -> Tuple[int, int]:
    """
    Proportional redemption (floor rounding):

        amount_a = floor(reserve_a * lp_amount / total_lp_supply)
        amount_b = floor(reserve_b * lp_amount / total_lp_supply)
    """
    for name, value in (
        ("lp_amount", lp_amount),
        ("reserve_a", reserve_a),
        ("reserve_b", reserve_b),
        ("total_lp_supply", total_lp_supply),
    ):
        require_u64(name, value)

    if lp_amount == 0:
        raise AmmError(ErrorCode.ZERO_AMOUNT, "lp_amount must be positive")
    if lp_amount > total_lp_supply:
        raise AmmError(
            ErrorCode.INSUFFICIENT_BALANCE,
            f"cannot redeem more than the total supply: {lp_amount} > {total_lp_supply}",
        )

    amount_a = mul_div_floor(reserve_a, lp_amount, total_lp_supply)
    amount_b = mul_div_floor(reserve_b, lp_amount, total_lp_supply)
    if amount_a == 0 or amount_b == 0:
        raise AmmError(ErrorCode.DUST_RESULT, f"withdrawal of {lp_amount} shares rounds to ({amount_a}, {amount_b})")

    return amount_a, amount_b
