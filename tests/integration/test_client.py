# [TESTER] v1

from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from amm_program.core.authority import derive_lp_mint_address, derive_vault_addresses
from amm_program.core.handlers import DEFAULT_PROGRAM_ID
from amm_program.errors import AmmError, ErrorCode
from amm_program.integration.client import AmmClient, minimum_out_with_slippage
from amm_program.state.ledger import Ledger


def test_get_pool_state(market) -> None:
    state = market.client.get_pool_state(market.pool)
    assert (state.mint_a, state.mint_b) == (market.mint_a, market.mint_b)
    assert (state.vault_a, state.vault_b) == derive_vault_addresses(market.pool, DEFAULT_PROGRAM_ID)
    assert state.lp_mint == derive_lp_mint_address(market.pool, DEFAULT_PROGRAM_ID)
    assert state.fee_bps == 30


def test_get_pool_state_of_missing_pool() -> None:
    client = AmmClient(Ledger(), Pubkey.new_unique())
    with pytest.raises(AmmError) as exc:
        client.get_pool_state(Pubkey.new_unique())
    assert exc.value.code is ErrorCode.POOL_NOT_ACTIVE


def test_find_pool_auth_pda(market) -> None:
    expected, _ = Pubkey.find_program_address([b"pool_auth", bytes(market.pool)], DEFAULT_PROGRAM_ID)
    assert market.client.find_pool_auth_pda(market.pool) == expected


def test_liquidity_and_swap_flow(market) -> None:
    client = market.client
    start_a = market.balance(market.mint_a)
    start_b = market.balance(market.mint_b)

    result = client.add_liquidity(market.pool, 1000, 4000)
    assert result.ok, result.error
    assert result.effects.lp_amount == 2000
    reserves = client.get_pool_reserves(market.pool)
    assert (reserves.reserve_a, reserves.reserve_b, reserves.lp_supply) == (1000, 4000, 2000)

    quote = client.quote_swap(market.pool, market.mint_b, 400)
    result = client.swap(market.pool, market.mint_b, 400, quote.amount_out)
    assert result.ok, result.error
    assert result.effects.amount_out == quote.amount_out
    reserves = client.get_pool_reserves(market.pool)
    assert reserves.reserve_b == 4400
    assert reserves.reserve_a == 1000 - quote.amount_out
    assert reserves.reserve_a * reserves.reserve_b >= 1000 * 4000

    result = client.remove_liquidity(market.pool, 2000)
    assert result.ok, result.error
    reserves = client.get_pool_reserves(market.pool)
    assert (reserves.reserve_a, reserves.reserve_b, reserves.lp_supply) == (0, 0, 0)
    # The only provider also paid the fee, so the round trip is neutral overall.
    assert market.balance(market.mint_a) == start_a
    assert market.balance(market.mint_b) == start_b


def test_failed_submission_keeps_client_ledger(market) -> None:
    assert market.client.add_liquidity(market.pool, 1_000_000, 1_000_000).ok
    before = market.ledger
    result = market.client.swap(market.pool, market.mint_a, 1000, 997)
    assert result.code is ErrorCode.SLIPPAGE_EXCEEDED
    assert market.ledger is before


def test_swap_with_foreign_mint_fails_before_submission(market) -> None:
    with pytest.raises(AmmError) as exc:
        market.client.swap(market.pool, Pubkey.new_unique(), 1000, 0)
    assert exc.value.code is ErrorCode.INVALID_MINT


def test_remove_more_lp_than_supply(market) -> None:
    assert market.client.add_liquidity(market.pool, 1000, 4000).ok
    result = market.client.remove_liquidity(market.pool, 2001)
    assert result.code is ErrorCode.INSUFFICIENT_BALANCE


def test_find_token_account_prefers_associated_address(market) -> None:
    payer = market.client.payer
    extra = Pubkey.new_unique()
    market.ledger.create_token_account(extra, market.mint_a, payer)
    assert market.client.find_token_account(market.mint_a) == market.ata(market.mint_a)


def test_find_token_account_does_not_create_accounts(market) -> None:
    other_mint = Pubkey.new_unique()
    market.ledger.create_mint(other_mint, market.mint_authority)
    with pytest.raises(AmmError) as exc:
        market.client.find_token_account(other_mint)
    assert exc.value.code is ErrorCode.ACCOUNT_MISMATCH
    assert market.ledger.find_token_accounts(market.client.payer, other_mint) == []


def test_submit_all_runs_instructions_together(market) -> None:
    client = market.client
    result = client.submit_all(
        [
            client.build_add_liquidity(market.pool, 1_000_000, 1_000_000),
            client.build_swap(market.pool, market.mint_a, 1000, 996),
        ]
    )
    assert result.ok, result.error
    assert client.ledger is result.ledger
    reserves = client.get_pool_reserves(market.pool)
    assert (reserves.reserve_a, reserves.reserve_b) == (1_001_000, 999_004)


def test_minimum_out_with_slippage() -> None:
    assert minimum_out_with_slippage(996, 50) == 991
    assert minimum_out_with_slippage(996, 0) == 996
    with pytest.raises(ValueError):
        minimum_out_with_slippage(996, 10_001)
