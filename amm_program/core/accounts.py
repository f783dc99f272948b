"""
Account sets for each instruction and the cross-checks every handler runs.

The ledger passes accounts by address with no static ownership guarantee, so
every handler compares what the caller supplied against what the pool record
stores, and compares the authority against the value derived from the pool's
own address. Nothing supplied by the caller is trusted on its own.

Field order of each account set is the wire order of the instruction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, TypeVar, Union

from solders.pubkey import Pubkey

from ..errors import AmmError, ErrorCode
from ..state.pools import PoolState
from .authority import derive_authority, is_pool_authority


T = TypeVar("T")


@dataclass(frozen=True)
class InitializePoolAccounts:
    pool: Pubkey
    payer: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    lp_mint: Pubkey
    pool_auth: Pubkey
    token_program: Pubkey


@dataclass(frozen=True)
class SwapAccounts:
    pool: Pubkey
    signer: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    user_ata_a: Pubkey
    user_ata_b: Pubkey
    pool_auth: Pubkey
    token_program: Pubkey
    input_mint: Pubkey


@dataclass(frozen=True)
class AddLiquidityAccounts:
    pool: Pubkey
    signer: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    user_ata_a: Pubkey
    user_ata_b: Pubkey
    lp_mint: Pubkey
    user_lp_ata: Pubkey
    pool_auth: Pubkey
    token_program: Pubkey


@dataclass(frozen=True)
class RemoveLiquidityAccounts:
    pool: Pubkey
    payer: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    user_ata_a: Pubkey
    user_ata_b: Pubkey
    user_lp_ata: Pubkey
    lp_mint: Pubkey
    pool_auth: Pubkey
    token_program: Pubkey


TradingAccounts = Union[SwapAccounts, AddLiquidityAccounts, RemoveLiquidityAccounts]


class SwapDirection(Enum):
    A_TO_B = "A_TO_B"
    B_TO_A = "B_TO_A"

    @classmethod
    def resolve(cls, pool: PoolState, input_mint: Pubkey) -> "SwapDirection":
        """Resolve the direction once from the input mint."""
        if not pool.has_mint(input_mint):
            raise AmmError(
                ErrorCode.INVALID_MINT,
                f"input mint {input_mint} matches neither {pool.mint_a} nor {pool.mint_b}",
            )
        return cls.A_TO_B if input_mint == pool.mint_a else cls.B_TO_A

    def order(self, side_a: T, side_b: T) -> Tuple[T, T]:
        """Return (input side, output side) from an (A, B) pair."""
        if self is SwapDirection.A_TO_B:
            return side_a, side_b
        return side_b, side_a


def _mismatch(what: str, supplied: Pubkey, expected: Pubkey) -> AmmError:
    return AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{what}: supplied {supplied}, expected {expected}")


def validate_accounts(
    pool_address: Pubkey,
    pool: PoolState,
    accounts: TradingAccounts,
    *,
    program_id: Pubkey,
    token_program_id: Pubkey,
) -> None:
    """
    Cross-check a trading instruction's accounts against the pool record.

    Raises:
        AmmError(PoolNotActive): the pool is not ACTIVE
        AmmError(AccountMismatch): any vault, LP mint, authority or program differs
    """
    if not pool.is_active:
        raise AmmError(ErrorCode.POOL_NOT_ACTIVE, f"pool {pool_address} is {pool.status.name}")
    if accounts.pool != pool_address:
        raise _mismatch("pool", accounts.pool, pool_address)
    if accounts.vault_a != pool.vault_a:
        raise _mismatch("vault_a", accounts.vault_a, pool.vault_a)
    if accounts.vault_b != pool.vault_b:
        raise _mismatch("vault_b", accounts.vault_b, pool.vault_b)

    lp_mint: Optional[Pubkey] = getattr(accounts, "lp_mint", None)
    if lp_mint is not None and lp_mint != pool.lp_mint:
        raise _mismatch("lp_mint", lp_mint, pool.lp_mint)

    if not is_pool_authority(accounts.pool_auth, pool_address, program_id):
        raise _mismatch("pool_auth", accounts.pool_auth, derive_authority(pool_address, program_id))
    if accounts.token_program != token_program_id:
        raise _mismatch("token_program", accounts.token_program, token_program_id)
