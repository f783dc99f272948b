# [TESTER] v1

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

import pytest
from solders.pubkey import Pubkey

from amm_program.core.accounts import (
    AddLiquidityAccounts,
    InitializePoolAccounts,
    RemoveLiquidityAccounts,
    SwapAccounts,
    SwapDirection,
)
from amm_program.core.authority import derive_authority, derive_lp_mint_address, derive_vault_addresses
from amm_program.core.handlers import (
    DEFAULT_PROGRAM_ID,
    InstructionContext,
    ProgramConfig,
    add_liquidity,
    initialize_pool,
    load_pool,
    remove_liquidity,
    swap_token,
)
from amm_program.errors import AmmError, ErrorCode
from amm_program.state.ledger import TOKEN_PROGRAM_ID, Ledger
from amm_program.state.pools import PoolStatus

CONFIG = ProgramConfig()


@dataclass
class Harness:
    ledger: Ledger
    pool: Pubkey
    user: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    mint_authority: Pubkey
    ata_a: Pubkey
    ata_b: Pubkey
    ata_lp: Optional[Pubkey] = None

    @property
    def pool_auth(self) -> Pubkey:
        return derive_authority(self.pool, DEFAULT_PROGRAM_ID)

    @property
    def vaults(self):
        return derive_vault_addresses(self.pool, DEFAULT_PROGRAM_ID)

    @property
    def lp_mint(self) -> Pubkey:
        return derive_lp_mint_address(self.pool, DEFAULT_PROGRAM_ID)

    def ctx(self, *signers: Pubkey, config: ProgramConfig = CONFIG) -> InstructionContext:
        return InstructionContext(ledger=self.ledger, signers=frozenset(signers or (self.user,)), config=config)

    def init_ctx(self, config: ProgramConfig = CONFIG) -> InstructionContext:
        return self.ctx(self.user, self.pool, config=config)

    def init_accounts(self) -> InitializePoolAccounts:
        vault_a, vault_b = self.vaults
        return InitializePoolAccounts(
            pool=self.pool,
            payer=self.user,
            mint_a=self.mint_a,
            mint_b=self.mint_b,
            vault_a=vault_a,
            vault_b=vault_b,
            lp_mint=self.lp_mint,
            pool_auth=self.pool_auth,
            token_program=TOKEN_PROGRAM_ID,
        )

    def swap_accounts(self, input_mint: Pubkey) -> SwapAccounts:
        vault_a, vault_b = self.vaults
        return SwapAccounts(
            pool=self.pool,
            signer=self.user,
            vault_a=vault_a,
            vault_b=vault_b,
            user_ata_a=self.ata_a,
            user_ata_b=self.ata_b,
            pool_auth=self.pool_auth,
            token_program=TOKEN_PROGRAM_ID,
            input_mint=input_mint,
        )

    def add_accounts(self) -> AddLiquidityAccounts:
        vault_a, vault_b = self.vaults
        assert self.ata_lp is not None
        return AddLiquidityAccounts(
            pool=self.pool,
            signer=self.user,
            vault_a=vault_a,
            vault_b=vault_b,
            user_ata_a=self.ata_a,
            user_ata_b=self.ata_b,
            lp_mint=self.lp_mint,
            user_lp_ata=self.ata_lp,
            pool_auth=self.pool_auth,
            token_program=TOKEN_PROGRAM_ID,
        )

    def remove_accounts(self) -> RemoveLiquidityAccounts:
        vault_a, vault_b = self.vaults
        assert self.ata_lp is not None
        return RemoveLiquidityAccounts(
            pool=self.pool,
            payer=self.user,
            vault_a=vault_a,
            vault_b=vault_b,
            user_ata_a=self.ata_a,
            user_ata_b=self.ata_b,
            user_lp_ata=self.ata_lp,
            lp_mint=self.lp_mint,
            pool_auth=self.pool_auth,
            token_program=TOKEN_PROGRAM_ID,
        )

    def reserves(self):
        vault_a, vault_b = self.vaults
        return self.ledger.balance(vault_a), self.ledger.balance(vault_b)

    def lp_supply(self) -> int:
        return self.ledger.get_mint(self.lp_mint).supply


def _harness(*, initialized: bool = True, fee_bps: int = 30, funded: int = 10**9) -> Harness:
    ledger = Ledger()
    mint_authority = Pubkey.new_unique()
    mint_a = Pubkey.new_unique()
    mint_b = Pubkey.new_unique()
    ledger.create_mint(mint_a, mint_authority)
    ledger.create_mint(mint_b, mint_authority)
    user = Pubkey.new_unique()
    ata_a = Pubkey.new_unique()
    ata_b = Pubkey.new_unique()
    ledger.create_token_account(ata_a, mint_a, user)
    ledger.create_token_account(ata_b, mint_b, user)
    ledger.deposit(ata_a, funded)
    ledger.deposit(ata_b, funded)

    h = Harness(
        ledger=ledger,
        pool=Pubkey.new_unique(),
        user=user,
        mint_a=mint_a,
        mint_b=mint_b,
        mint_authority=mint_authority,
        ata_a=ata_a,
        ata_b=ata_b,
    )
    if initialized:
        initialize_pool(h.init_ctx(), h.init_accounts(), fee_bps)
        h.ata_lp = Pubkey.new_unique()
        ledger.create_token_account(h.ata_lp, h.lp_mint, user)
    return h


def _seeded(amount_a: int = 1_000_000, amount_b: int = 1_000_000, **kwargs) -> Harness:
    h = _harness(**kwargs)
    add_liquidity(h.ctx(), h.add_accounts(), amount_a, amount_b)
    return h


def _rejects(code: ErrorCode, fn, *args) -> None:
    with pytest.raises(AmmError) as exc:
        fn(*args)
    assert exc.value.code is code


# -- initialize_pool -----------------------------------------------------------


def test_initialize_pool_creates_vaults_and_lp_mint_under_authority() -> None:
    h = _harness(initialized=False)
    effects = initialize_pool(h.init_ctx(), h.init_accounts(), 30)

    assert effects.pool_auth == h.pool_auth
    vault_a, vault_b = h.vaults
    for vault, mint in ((vault_a, h.mint_a), (vault_b, h.mint_b)):
        acct = h.ledger.get_token_account(vault)
        assert acct.owner == h.pool_auth
        assert acct.mint == mint
        assert acct.amount == 0
    lp_mint = h.ledger.get_mint(h.lp_mint)
    assert lp_mint.mint_authority == h.pool_auth
    assert lp_mint.supply == 0
    assert lp_mint.decimals == CONFIG.lp_decimals

    state = load_pool(h.ctx(), h.pool)
    assert state.status is PoolStatus.ACTIVE
    assert state.fee_bps == 30
    assert (state.mint_a, state.mint_b) == (h.mint_a, h.mint_b)
    assert h.ledger.get_data_account(h.pool).owner == DEFAULT_PROGRAM_ID


def test_initialize_pool_rejections() -> None:
    h = _harness(initialized=False)
    same_mint = replace(h.init_accounts(), mint_b=h.mint_a)
    _rejects(ErrorCode.INVALID_MINT, initialize_pool, h.init_ctx(), same_mint, 30)

    not_a_mint = replace(h.init_accounts(), mint_b=h.ata_b)
    _rejects(ErrorCode.INVALID_MINT, initialize_pool, h.init_ctx(), not_a_mint, 30)

    _rejects(ErrorCode.INVALID_FEE, initialize_pool, h.init_ctx(), h.init_accounts(), 10_001)
    capped = ProgramConfig(max_fee_bps=100)
    _rejects(ErrorCode.INVALID_FEE, initialize_pool, h.init_ctx(config=capped), h.init_accounts(), 101)

    _rejects(ErrorCode.MISSING_SIGNER, initialize_pool, h.ctx(Pubkey.new_unique()), h.init_accounts(), 30)

    foreign_vault = replace(h.init_accounts(), vault_a=Pubkey.new_unique())
    _rejects(ErrorCode.ACCOUNT_MISMATCH, initialize_pool, h.init_ctx(), foreign_vault, 30)
    foreign_auth = replace(h.init_accounts(), pool_auth=h.user)
    _rejects(ErrorCode.ACCOUNT_MISMATCH, initialize_pool, h.init_ctx(), foreign_auth, 30)

    # Nothing was created by any rejected attempt.
    assert h.ledger.get_data_account(h.pool) is None
    assert not h.ledger.exists(h.lp_mint)


def test_initialize_pool_twice_is_rejected() -> None:
    h = _harness()
    _rejects(ErrorCode.ALREADY_INITIALIZED, initialize_pool, h.init_ctx(), h.init_accounts(), 30)


def test_initialize_pool_requires_pool_signature() -> None:
    h = _harness(initialized=False)
    _rejects(ErrorCode.MISSING_SIGNER, initialize_pool, h.ctx(h.user), h.init_accounts(), 10_000)
    assert h.ledger.get_data_account(h.pool) is None
    assert not h.ledger.exists(h.lp_mint)


# -- add_liquidity ---------------------------------------------------------------


def test_first_deposit_mints_geometric_mean() -> None:
    h = _harness()
    effects = add_liquidity(h.ctx(), h.add_accounts(), 1000, 4000)
    assert effects.lp_amount == 2000
    assert h.reserves() == (1000, 4000)
    assert h.lp_supply() == 2000
    assert h.ledger.balance(h.ata_lp) == 2000


def test_unbalanced_deposit_leaves_excess_with_user() -> None:
    h = _seeded(1000, 4000)
    before_b = h.ledger.balance(h.ata_b)
    effects = add_liquidity(h.ctx(), h.add_accounts(), 100, 1000)
    assert (effects.amount_a, effects.amount_b) == (100, 400)
    assert effects.amount_b_refund == 600
    assert effects.lp_amount == 200
    assert h.ledger.balance(h.ata_b) == before_b - 400
    assert h.reserves() == (1100, 4400)


def test_lopsided_deposit_is_clipped_without_overflow() -> None:
    h = _seeded(1000, 10**15, funded=2 * 10**15)
    before_a = h.ledger.balance(h.ata_a)
    effects = add_liquidity(h.ctx(), h.add_accounts(), 10**8, 10**15)
    assert (effects.amount_a, effects.amount_b) == (1000, 10**15)
    assert effects.amount_a_refund == 99_999_000
    assert effects.lp_amount == 10**9
    assert h.ledger.balance(h.ata_a) == before_a - 1000
    assert h.reserves() == (2000, 2 * 10**15)


def test_add_liquidity_rejections() -> None:
    h = _seeded(1000, 4000)
    _rejects(ErrorCode.ZERO_AMOUNT, add_liquidity, h.ctx(), h.add_accounts(), 0, 100)
    _rejects(ErrorCode.DUST_RESULT, add_liquidity, h.ctx(), h.add_accounts(), 1, 1)
    _rejects(ErrorCode.INSUFFICIENT_BALANCE, add_liquidity, h.ctx(), h.add_accounts(), 10**9, 4 * 10**9)
    _rejects(ErrorCode.MISSING_SIGNER, add_liquidity, h.ctx(Pubkey.new_unique()), h.add_accounts(), 10, 40)


# -- swap_token ------------------------------------------------------------------


def test_swap_a_to_b_on_balanced_pool() -> None:
    h = _seeded()
    before_a = h.ledger.balance(h.ata_a)
    before_b = h.ledger.balance(h.ata_b)
    effects = swap_token(h.ctx(), h.swap_accounts(h.mint_a), 1000, 996)

    assert effects.direction is SwapDirection.A_TO_B
    assert effects.amount_out == 996
    assert effects.fee == 3
    assert h.reserves() == (1_001_000, 999_004)
    assert h.ledger.balance(h.ata_a) == before_a - 1000
    assert h.ledger.balance(h.ata_b) == before_b + 996


def test_swap_b_to_a() -> None:
    h = _seeded()
    effects = swap_token(h.ctx(), h.swap_accounts(h.mint_b), 1000, 0)
    assert effects.direction is SwapDirection.B_TO_A
    assert h.reserves() == (999_004, 1_001_000)


def test_swap_slippage_leaves_state_untouched() -> None:
    h = _seeded()
    snapshot = h.ledger.copy()
    _rejects(ErrorCode.SLIPPAGE_EXCEEDED, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 1000, 997)
    assert h.ledger == snapshot


def test_swap_rejections() -> None:
    h = _seeded()
    _rejects(ErrorCode.ZERO_AMOUNT, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 0, 0)
    _rejects(ErrorCode.INVALID_MINT, swap_token, h.ctx(), h.swap_accounts(Pubkey.new_unique()), 1000, 0)
    _rejects(ErrorCode.INSUFFICIENT_BALANCE, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 10**10, 0)
    _rejects(ErrorCode.DUST_RESULT, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 1, 0)
    _rejects(ErrorCode.MISSING_SIGNER, swap_token, h.ctx(Pubkey.new_unique()), h.swap_accounts(h.mint_a), 1000, 0)

    swapped_atas = replace(h.swap_accounts(h.mint_a), user_ata_a=h.ata_b, user_ata_b=h.ata_a)
    _rejects(ErrorCode.ACCOUNT_MISMATCH, swap_token, h.ctx(), swapped_atas, 1000, 0)


def test_swap_against_empty_pool() -> None:
    h = _harness()
    _rejects(ErrorCode.EMPTY_POOL, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 1000, 0)


def test_swap_on_missing_pool() -> None:
    h = _harness(initialized=False)
    _rejects(ErrorCode.POOL_NOT_ACTIVE, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 1000, 0)


def test_swap_rejects_pool_owned_by_another_program() -> None:
    h = _seeded()
    other = ProgramConfig(program_id=Pubkey.new_unique())
    _rejects(ErrorCode.ACCOUNT_MISMATCH, swap_token, h.ctx(config=other), h.swap_accounts(h.mint_a), 1000, 0)


# -- substituted accounts --------------------------------------------------------


def test_substituted_vault_is_rejected() -> None:
    h = _seeded()
    attacker = Pubkey.new_unique()
    fake_vault = Pubkey.new_unique()
    h.ledger.create_token_account(fake_vault, h.mint_b, attacker)
    accounts = replace(h.swap_accounts(h.mint_a), vault_b=fake_vault)
    _rejects(ErrorCode.ACCOUNT_MISMATCH, swap_token, h.ctx(), accounts, 1000, 0)


def test_substituted_authority_is_rejected() -> None:
    h = _seeded()
    accounts = replace(h.remove_accounts(), pool_auth=h.user)
    _rejects(ErrorCode.ACCOUNT_MISMATCH, remove_liquidity, h.ctx(), accounts, 100)


def test_substituted_lp_mint_is_rejected() -> None:
    h = _seeded()
    fake_lp = Pubkey.new_unique()
    h.ledger.create_mint(fake_lp, h.user)
    fake_lp_ata = Pubkey.new_unique()
    h.ledger.create_token_account(fake_lp_ata, fake_lp, h.user)
    accounts = replace(h.add_accounts(), lp_mint=fake_lp, user_lp_ata=fake_lp_ata)
    _rejects(ErrorCode.ACCOUNT_MISMATCH, add_liquidity, h.ctx(), accounts, 1000, 1000)


def test_substituted_token_program_is_rejected() -> None:
    h = _seeded()
    accounts = replace(h.swap_accounts(h.mint_a), token_program=Pubkey.new_unique())
    _rejects(ErrorCode.ACCOUNT_MISMATCH, swap_token, h.ctx(), accounts, 1000, 0)


# -- remove_liquidity ------------------------------------------------------------


def test_remove_liquidity_is_proportional() -> None:
    h = _seeded(1000, 4000)
    before = (h.ledger.balance(h.ata_a), h.ledger.balance(h.ata_b))
    effects = remove_liquidity(h.ctx(), h.remove_accounts(), 1000)
    assert (effects.amount_a, effects.amount_b) == (500, 2000)
    assert h.reserves() == (500, 2000)
    assert h.lp_supply() == 1000
    assert h.ledger.balance(h.ata_lp) == 1000
    assert (h.ledger.balance(h.ata_a), h.ledger.balance(h.ata_b)) == (before[0] + 500, before[1] + 2000)


def test_remove_more_than_supply() -> None:
    h = _seeded(1000, 4000)
    _rejects(ErrorCode.INSUFFICIENT_BALANCE, remove_liquidity, h.ctx(), h.remove_accounts(), 2001)


def test_remove_more_than_held() -> None:
    h = _seeded(1000, 4000)
    # A second provider holds the rest of the supply.
    other = Pubkey.new_unique()
    other_lp = Pubkey.new_unique()
    h.ledger.create_token_account(other_lp, h.lp_mint, other)
    h.ledger.transfer(h.ata_lp, other_lp, h.user, 1500)
    _rejects(ErrorCode.INSUFFICIENT_BALANCE, remove_liquidity, h.ctx(), h.remove_accounts(), 501)


def test_remove_zero() -> None:
    h = _seeded(1000, 4000)
    _rejects(ErrorCode.ZERO_AMOUNT, remove_liquidity, h.ctx(), h.remove_accounts(), 0)


def test_remove_requires_lp_owner_signature() -> None:
    h = _seeded(1000, 4000)
    _rejects(ErrorCode.MISSING_SIGNER, remove_liquidity, h.ctx(Pubkey.new_unique()), h.remove_accounts(), 100)


def test_inactive_pool_is_rejected_by_every_handler() -> None:
    h = _seeded(1000, 4000)
    state = load_pool(h.ctx(), h.pool)
    h.ledger.set_data(h.pool, DEFAULT_PROGRAM_ID, replace(state, status=PoolStatus.UNINITIALIZED).encode())
    snapshot = h.ledger.copy()

    _rejects(ErrorCode.POOL_NOT_ACTIVE, swap_token, h.ctx(), h.swap_accounts(h.mint_a), 100, 0)
    _rejects(ErrorCode.POOL_NOT_ACTIVE, add_liquidity, h.ctx(), h.add_accounts(), 100, 400)
    _rejects(ErrorCode.POOL_NOT_ACTIVE, remove_liquidity, h.ctx(), h.remove_accounts(), 100)
    assert h.ledger == snapshot
