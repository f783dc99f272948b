"""
Thin client over the local ledger.

Mirrors what a wallet-side SDK does against a cluster: read the pool record,
derive the pool authority, look up the caller's existing token accounts, build
the instruction and submit it. Submission goes through the atomic processor;
the client keeps the resulting ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..core.accounts import (
    AddLiquidityAccounts,
    InitializePoolAccounts,
    RemoveLiquidityAccounts,
    SwapAccounts,
    SwapDirection,
)
from ..core.authority import derive_authority, derive_lp_mint_address, derive_vault_addresses
from ..core.cpmm import SwapQuote, compute_swap_output
from ..core.handlers import ProgramConfig
from ..core.math import BPS_DENOM, mul_div_floor
from ..errors import AmmError, ErrorCode
from ..state.ledger import Ledger
from ..state.pools import PoolState, decode_pool
from .instructions import build_instruction
from .processor import ProcessResult, process_instruction, process_transaction

logger = logging.getLogger(__name__)

ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")


@dataclass(frozen=True)
class PoolReserves:
    reserve_a: int
    reserve_b: int
    lp_supply: int


def associated_token_address(owner: Pubkey, mint: Pubkey, token_program_id: Pubkey) -> Pubkey:
    ata, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(token_program_id), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return ata


def minimum_out_with_slippage(amount_out: int, slippage_bps: int) -> int:
    """floor(amount_out * (10_000 - slippage_bps) / 10_000)."""
    if not isinstance(slippage_bps, int) or isinstance(slippage_bps, bool):
        raise TypeError("slippage_bps must be an int")
    if not (0 <= slippage_bps <= BPS_DENOM):
        raise ValueError(f"slippage_bps must be in [0, {BPS_DENOM}]: {slippage_bps}")
    return mul_div_floor(amount_out, BPS_DENOM - slippage_bps, BPS_DENOM)


class AmmClient:
    """
    Client bound to one payer.

    `payer` signs every instruction the client builds; it must be a regular
    (on-curve) key.
    """

    def __init__(self, ledger: Ledger, payer: Pubkey, config: Optional[ProgramConfig] = None) -> None:
        self.ledger = ledger
        self.payer = payer
        self.config = config or ProgramConfig()

    # -- reads ----------------------------------------------------------------

    def get_pool_state(self, pool: Pubkey) -> PoolState:
        account = self.ledger.get_data_account(pool)
        if account is None:
            raise AmmError(ErrorCode.POOL_NOT_ACTIVE, f"pool {pool} does not exist")
        if account.owner != self.config.program_id:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"pool {pool} is not owned by {self.config.program_id}")
        return decode_pool(account.data)

    def get_pool_reserves(self, pool: Pubkey) -> PoolReserves:
        state = self.get_pool_state(pool)
        return PoolReserves(
            reserve_a=self.ledger.balance(state.vault_a),
            reserve_b=self.ledger.balance(state.vault_b),
            lp_supply=self.ledger.get_mint(state.lp_mint).supply,
        )

    def find_pool_auth_pda(self, pool: Pubkey) -> Pubkey:
        return derive_authority(pool, self.config.program_id)

    def quote_swap(self, pool: Pubkey, input_mint: Pubkey, amount_in: int) -> SwapQuote:
        state = self.get_pool_state(pool)
        direction = SwapDirection.resolve(state, input_mint)
        reserves = self.get_pool_reserves(pool)
        reserve_in, reserve_out = direction.order(reserves.reserve_a, reserves.reserve_b)
        return compute_swap_output(reserve_in, reserve_out, amount_in, state.fee_bps)

    def find_token_account(self, mint: Pubkey) -> Pubkey:
        """
        The payer's token account for `mint`.

        Prefers the associated token account; otherwise the first account the
        payer owns for that mint. Creating accounts is left to the caller.
        """
        found = self.ledger.find_token_accounts(self.payer, mint)
        if not found:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{self.payer} holds no token account for {mint}")
        associated = associated_token_address(self.payer, mint, self.config.token_program_id)
        for acct in found:
            if acct.address == associated:
                return associated
        return found[0].address

    # -- instruction builders -------------------------------------------------

    def build_initialize_pool(self, pool: Pubkey, mint_a: Pubkey, mint_b: Pubkey, fee_bps: int) -> Instruction:
        """`pool` is a fresh keypair's public key; it co-signs with the payer."""
        program_id = self.config.program_id
        vault_a, vault_b = derive_vault_addresses(pool, program_id)
        accounts = InitializePoolAccounts(
            pool=pool,
            payer=self.payer,
            mint_a=mint_a,
            mint_b=mint_b,
            vault_a=vault_a,
            vault_b=vault_b,
            lp_mint=derive_lp_mint_address(pool, program_id),
            pool_auth=self.find_pool_auth_pda(pool),
            token_program=self.config.token_program_id,
        )
        return build_instruction(program_id, "initialize_pool", {"fee_bps": fee_bps}, accounts)

    def build_swap(self, pool: Pubkey, input_mint: Pubkey, amount_in: int, minimum_amount_out: int) -> Instruction:
        state = self.get_pool_state(pool)
        direction = SwapDirection.resolve(state, input_mint)
        source = self.find_token_account(input_mint)
        output_mint = direction.order(state.mint_a, state.mint_b)[1]
        destination = self.find_token_account(output_mint)
        user_ata_a, user_ata_b = direction.order(source, destination)
        accounts = SwapAccounts(
            pool=pool,
            signer=self.payer,
            vault_a=state.vault_a,
            vault_b=state.vault_b,
            user_ata_a=user_ata_a,
            user_ata_b=user_ata_b,
            pool_auth=self.find_pool_auth_pda(pool),
            token_program=self.config.token_program_id,
            input_mint=input_mint,
        )
        args = {"amount_in": amount_in, "minimum_amount_out": minimum_amount_out}
        return build_instruction(self.config.program_id, "swap_token", args, accounts)

    def build_add_liquidity(self, pool: Pubkey, amount_a: int, amount_b: int) -> Instruction:
        state = self.get_pool_state(pool)
        accounts = AddLiquidityAccounts(
            pool=pool,
            signer=self.payer,
            vault_a=state.vault_a,
            vault_b=state.vault_b,
            user_ata_a=self.find_token_account(state.mint_a),
            user_ata_b=self.find_token_account(state.mint_b),
            lp_mint=state.lp_mint,
            user_lp_ata=self.find_token_account(state.lp_mint),
            pool_auth=self.find_pool_auth_pda(pool),
            token_program=self.config.token_program_id,
        )
        args = {"amount_a": amount_a, "amount_b": amount_b}
        return build_instruction(self.config.program_id, "add_liquidity", args, accounts)

    def build_remove_liquidity(self, pool: Pubkey, lp_amount: int) -> Instruction:
        state = self.get_pool_state(pool)
        accounts = RemoveLiquidityAccounts(
            pool=pool,
            payer=self.payer,
            vault_a=state.vault_a,
            vault_b=state.vault_b,
            user_ata_a=self.find_token_account(state.mint_a),
            user_ata_b=self.find_token_account(state.mint_b),
            user_lp_ata=self.find_token_account(state.lp_mint),
            lp_mint=state.lp_mint,
            pool_auth=self.find_pool_auth_pda(pool),
            token_program=self.config.token_program_id,
        )
        return build_instruction(self.config.program_id, "remove_liquidity", {"lp_amount": lp_amount}, accounts)

    # -- submission -----------------------------------------------------------

    def submit(self, instruction: Instruction) -> ProcessResult:
        result = process_instruction(self.ledger, instruction, self.config)
        if result.ok:
            self.ledger = result.ledger
        else:
            logger.debug("submission failed: %s", result.error)
        return result

    def submit_all(self, instructions: List[Instruction]) -> ProcessResult:
        result = process_transaction(self.ledger, instructions, self.config)
        if result.ok:
            self.ledger = result.ledger
        return result

    def initialize_pool(self, pool: Pubkey, mint_a: Pubkey, mint_b: Pubkey, fee_bps: int) -> ProcessResult:
        return self.submit(self.build_initialize_pool(pool, mint_a, mint_b, fee_bps))

    def swap(self, pool: Pubkey, input_mint: Pubkey, amount_in: int, minimum_amount_out: int) -> ProcessResult:
        return self.submit(self.build_swap(pool, input_mint, amount_in, minimum_amount_out))

    def add_liquidity(self, pool: Pubkey, amount_a: int, amount_b: int) -> ProcessResult:
        return self.submit(self.build_add_liquidity(pool, amount_a, amount_b))

    def remove_liquidity(self, pool: Pubkey, lp_amount: int) -> ProcessResult:
        return self.submit(self.build_remove_liquidity(pool, lp_amount))
