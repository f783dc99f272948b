# [TESTER] v1

from __future__ import annotations

import pytest

from amm_program.core.math import (
    U64_MAX,
    U128_MAX,
    apply_fee,
    checked_add,
    checked_mul,
    checked_sub,
    floor_div,
    isqrt,
    mul_div_floor,
    require_u64,
)
from amm_program.errors import AmmError, ErrorCode


def test_require_u64_bounds() -> None:
    assert require_u64("x", 0) == 0
    assert require_u64("x", U64_MAX) == U64_MAX
    for bad in (-1, U64_MAX + 1):
        with pytest.raises(AmmError) as exc:
            require_u64("x", bad)
        assert exc.value.code is ErrorCode.ARITHMETIC_OVERFLOW


def test_bool_is_not_an_amount() -> None:
    with pytest.raises(TypeError):
        require_u64("x", True)
    with pytest.raises(TypeError):
        checked_add(1, False)


def test_checked_add_and_sub_never_wrap() -> None:
    assert checked_add(U64_MAX - 1, 1) == U64_MAX
    with pytest.raises(AmmError) as exc:
        checked_add(U64_MAX, 1)
    assert exc.value.code is ErrorCode.ARITHMETIC_OVERFLOW

    assert checked_sub(5, 5) == 0
    with pytest.raises(AmmError) as exc:
        checked_sub(4, 5)
    assert exc.value.code is ErrorCode.ARITHMETIC_OVERFLOW


def test_checked_mul_u128_bound() -> None:
    assert checked_mul(U64_MAX, U64_MAX) <= U128_MAX
    with pytest.raises(AmmError):
        checked_mul(U128_MAX, 2)


def test_mul_div_floor_uses_wide_intermediate() -> None:
    assert mul_div_floor(U64_MAX, U64_MAX, U64_MAX) == U64_MAX
    assert mul_div_floor(7, 3, 2) == 10
    with pytest.raises(AmmError) as exc:
        mul_div_floor(U64_MAX, U64_MAX, 1)
    assert exc.value.code is ErrorCode.ARITHMETIC_OVERFLOW


def test_floor_div_rejects_zero_denominator() -> None:
    with pytest.raises(AmmError):
        floor_div(1, 0)


def test_isqrt_is_exact_floor_for_large_values() -> None:
    # Float sqrt loses precision here.
    n = (1 << 70) + 12345
    r = isqrt(n)
    assert r * r <= n < (r + 1) * (r + 1)
    assert isqrt(4_000_000) == 2000


def test_apply_fee() -> None:
    assert apply_fee(1000, 30) == 997
    assert apply_fee(1000, 0) == 1000
    assert apply_fee(1000, 10_000) == 0
    assert apply_fee(1, 30) == 0
    with pytest.raises(AmmError) as exc:
        apply_fee(1000, 10_001)
    assert exc.value.code is ErrorCode.INVALID_FEE
