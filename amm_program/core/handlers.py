"""
Instruction handlers: the pool state machine.

Each handler is a synchronous transition over the ledger:

    validate accounts and amounts -> compute via the invariant engine -> mutate

All checks (including overflow of every balance that will change) happen
before the first mutation, so a rejected instruction never leaves an
intermediate state behind. The processor additionally runs handlers against a
ledger copy.

Vault and mint operations are always signed with the authority derived from
the pool address, never with the account the caller supplied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from solders.pubkey import Pubkey

from ..errors import AmmError, ErrorCode
from ..state.ledger import TOKEN_PROGRAM_ID, Ledger, TokenAccount
from ..state.pools import PoolState, PoolStatus, decode_pool
from .accounts import (
    AddLiquidityAccounts,
    InitializePoolAccounts,
    RemoveLiquidityAccounts,
    SwapAccounts,
    SwapDirection,
    validate_accounts,
)
from .authority import derive_authority, derive_lp_mint_address, derive_vault_addresses
from .cpmm import compute_lp_mint_amount, compute_swap_output, compute_withdraw_amounts
from .math import BPS_DENOM, U64_MAX, require_u64

logger = logging.getLogger(__name__)


DEFAULT_PROGRAM_ID = Pubkey.from_string("BBFDagoxxEadDkckRhXwRH2TmycytSjws4cErd6qKTYY")


@dataclass(frozen=True)
class ProgramConfig:
    """Runtime config for the program core."""

    program_id: Pubkey = DEFAULT_PROGRAM_ID
    token_program_id: Pubkey = TOKEN_PROGRAM_ID
    # Upper bound accepted by initialize_pool; fees are fixed per pool afterwards.
    max_fee_bps: int = BPS_DENOM
    lp_decimals: int = 6

    def __post_init__(self) -> None:
        if not isinstance(self.max_fee_bps, int) or isinstance(self.max_fee_bps, bool):
            raise TypeError("max_fee_bps must be an int")
        if not (0 <= self.max_fee_bps <= BPS_DENOM):
            raise ValueError(f"max_fee_bps must be in [0, {BPS_DENOM}]: {self.max_fee_bps}")
        if not isinstance(self.lp_decimals, int) or isinstance(self.lp_decimals, bool):
            raise TypeError("lp_decimals must be an int")
        if not (0 <= self.lp_decimals <= 255):
            raise ValueError(f"lp_decimals must fit in u8: {self.lp_decimals}")


@dataclass(frozen=True)
class InstructionContext:
    ledger: Ledger
    signers: FrozenSet[Pubkey]
    config: ProgramConfig = ProgramConfig()

    def require_signer(self, key: Pubkey, *, role: str) -> None:
        if key not in self.signers:
            raise AmmError(ErrorCode.MISSING_SIGNER, f"{role} {key} did not sign")


@dataclass(frozen=True)
class InitializePoolEffects:
    pool: Pubkey
    pool_auth: Pubkey
    state: PoolState


@dataclass(frozen=True)
class SwapEffects:
    direction: SwapDirection
    amount_in: int
    amount_out: int
    fee: int


@dataclass(frozen=True)
class LiquidityEffects:
    amount_a: int
    amount_b: int
    lp_amount: int
    amount_a_refund: int = 0
    amount_b_refund: int = 0


def load_pool(ctx: InstructionContext, pool_address: Pubkey) -> PoolState:
    """Read and decode the pool record; it must be owned by this program."""
    account = ctx.ledger.get_data_account(pool_address)
    if account is None:
        raise AmmError(ErrorCode.POOL_NOT_ACTIVE, f"pool {pool_address} is not initialized")
    if account.owner != ctx.config.program_id:
        raise AmmError(
            ErrorCode.ACCOUNT_MISMATCH,
            f"pool {pool_address} is owned by {account.owner}, not {ctx.config.program_id}",
        )
    return decode_pool(account.data)


def _user_account(
    ctx: InstructionContext,
    address: Pubkey,
    *,
    mint: Pubkey,
    owner: Optional[Pubkey] = None,
    role: str,
) -> TokenAccount:
    acct = ctx.ledger.get_token_account(address)
    if acct.mint != mint:
        raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{role} {address} holds {acct.mint}, expected {mint}")
    if owner is not None and acct.owner != owner:
        raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{role} {address} is not owned by {owner}")
    return acct


def _require_room(balance: int, delta: int, *, what: str) -> None:
    if balance + delta > U64_MAX:
        raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"{what} would exceed u64")


def _reserves(ctx: InstructionContext, pool: PoolState) -> Tuple[int, int]:
    return ctx.ledger.balance(pool.vault_a), ctx.ledger.balance(pool.vault_b)


def initialize_pool(
    ctx: InstructionContext,
    accounts: InitializePoolAccounts,
    fee_bps: int,
) -> InitializePoolEffects:
    """
    Create vaults and the LP mint for a new pool and mark it ACTIVE.

    Raises:
        AmmError(MissingSigner): payer or the new pool account did not sign
        AmmError(InvalidFee): fee_bps above the configured maximum
        AmmError(InvalidMint): mints identical or not mints
        AmmError(AlreadyInitialized): pool, vault or LP mint account already exists
        AmmError(AccountMismatch): supplied addresses differ from the derived ones
    """
    if not isinstance(fee_bps, int) or isinstance(fee_bps, bool):
        raise TypeError("fee_bps must be an int")
    config = ctx.config
    ledger = ctx.ledger

    ctx.require_signer(accounts.payer, role="payer")
    # The new pool account signs, as an Anchor `init` keypair account does.
    ctx.require_signer(accounts.pool, role="pool")
    if not (0 <= fee_bps <= config.max_fee_bps):
        raise AmmError(ErrorCode.INVALID_FEE, f"fee_bps must be in [0, {config.max_fee_bps}]: {fee_bps}")

    if ledger.exists(accounts.pool):
        raise AmmError(ErrorCode.ALREADY_INITIALIZED, f"pool account {accounts.pool} is already in use")

    if accounts.mint_a == accounts.mint_b:
        raise AmmError(ErrorCode.INVALID_MINT, f"pool mints must differ: {accounts.mint_a}")
    for mint in (accounts.mint_a, accounts.mint_b):
        if not ledger.is_mint(mint):
            raise AmmError(ErrorCode.INVALID_MINT, f"{mint} is not a mint")

    pool_auth = derive_authority(accounts.pool, config.program_id)
    vault_a, vault_b = derive_vault_addresses(accounts.pool, config.program_id)
    lp_mint = derive_lp_mint_address(accounts.pool, config.program_id)
    for role, supplied, expected in (
        ("pool_auth", accounts.pool_auth, pool_auth),
        ("vault_a", accounts.vault_a, vault_a),
        ("vault_b", accounts.vault_b, vault_b),
        ("lp_mint", accounts.lp_mint, lp_mint),
        ("token_program", accounts.token_program, config.token_program_id),
    ):
        if supplied != expected:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{role}: supplied {supplied}, expected {expected}")

    for address in (vault_a, vault_b, lp_mint):
        if ledger.exists(address):
            raise AmmError(ErrorCode.ALREADY_INITIALIZED, f"account {address} already exists")

    state = PoolState(
        mint_a=accounts.mint_a,
        mint_b=accounts.mint_b,
        vault_a=vault_a,
        vault_b=vault_b,
        lp_mint=lp_mint,
        fee_bps=fee_bps,
        status=PoolStatus.ACTIVE,
    )

    ledger.create_token_account(vault_a, accounts.mint_a, pool_auth)
    ledger.create_token_account(vault_b, accounts.mint_b, pool_auth)
    ledger.create_mint(lp_mint, pool_auth, decimals=config.lp_decimals)
    ledger.set_data(accounts.pool, config.program_id, state.encode())

    logger.info("initialize_pool: pool=%s mints=(%s, %s) fee_bps=%d", accounts.pool, state.mint_a, state.mint_b, fee_bps)
    return InitializePoolEffects(pool=accounts.pool, pool_auth=pool_auth, state=state)


def swap_token(
    ctx: InstructionContext,
    accounts: SwapAccounts,
    amount_in: int,
    minimum_amount_out: int,
) -> SwapEffects:
    """
    Exact-in swap against the pool.

    Raises:
        AmmError(InvalidMint): input mint is neither pool asset
        AmmError(ZeroAmount): amount_in == 0
        AmmError(InsufficientBalance): caller holds less than amount_in
        AmmError(SlippageExceeded): amount_out < minimum_amount_out
    """
    require_u64("amount_in", amount_in)
    require_u64("minimum_amount_out", minimum_amount_out)
    config = ctx.config
    ledger = ctx.ledger

    pool = load_pool(ctx, accounts.pool)
    validate_accounts(
        accounts.pool, pool, accounts,
        program_id=config.program_id, token_program_id=config.token_program_id,
    )
    ctx.require_signer(accounts.signer, role="signer")

    direction = SwapDirection.resolve(pool, accounts.input_mint)
    mint_in, mint_out = direction.order(pool.mint_a, pool.mint_b)
    vault_in, vault_out = direction.order(pool.vault_a, pool.vault_b)
    user_in_addr, user_out_addr = direction.order(accounts.user_ata_a, accounts.user_ata_b)

    user_in = _user_account(ctx, user_in_addr, mint=mint_in, owner=accounts.signer, role="source account")
    user_out = _user_account(ctx, user_out_addr, mint=mint_out, role="destination account")

    if amount_in == 0:
        raise AmmError(ErrorCode.ZERO_AMOUNT, "amount_in must be positive")
    if user_in.amount < amount_in:
        raise AmmError(
            ErrorCode.INSUFFICIENT_BALANCE,
            f"source account holds {user_in.amount}, swap needs {amount_in}",
        )

    reserve_in = ledger.balance(vault_in)
    reserve_out = ledger.balance(vault_out)
    quote = compute_swap_output(reserve_in, reserve_out, amount_in, pool.fee_bps)
    if quote.amount_out < minimum_amount_out:
        raise AmmError(
            ErrorCode.SLIPPAGE_EXCEEDED,
            f"amount_out {quote.amount_out} < minimum_amount_out {minimum_amount_out}",
        )
    _require_room(user_out.amount, quote.amount_out, what="destination balance")

    pool_auth = derive_authority(accounts.pool, config.program_id)
    ledger.transfer(user_in_addr, vault_in, accounts.signer, amount_in)
    ledger.transfer(vault_out, user_out_addr, pool_auth, quote.amount_out)

    logger.info(
        "swap_token: pool=%s direction=%s amount_in=%d amount_out=%d fee=%d",
        accounts.pool, direction.value, amount_in, quote.amount_out, quote.fee,
    )
    return SwapEffects(direction=direction, amount_in=amount_in, amount_out=quote.amount_out, fee=quote.fee)


def add_liquidity(
    ctx: InstructionContext,
    accounts: AddLiquidityAccounts,
    amount_a: int,
    amount_b: int,
) -> LiquidityEffects:
    """
    Deposit both assets and mint LP shares.

    Non-first deposits are clipped to the reserve ratio; only the used amounts
    leave the caller's accounts.
    """
    require_u64("amount_a", amount_a)
    require_u64("amount_b", amount_b)
    config = ctx.config
    ledger = ctx.ledger

    pool = load_pool(ctx, accounts.pool)
    validate_accounts(
        accounts.pool, pool, accounts,
        program_id=config.program_id, token_program_id=config.token_program_id,
    )
    ctx.require_signer(accounts.signer, role="signer")

    user_a = _user_account(ctx, accounts.user_ata_a, mint=pool.mint_a, owner=accounts.signer, role="user_ata_a")
    user_b = _user_account(ctx, accounts.user_ata_b, mint=pool.mint_b, owner=accounts.signer, role="user_ata_b")
    user_lp = _user_account(ctx, accounts.user_lp_ata, mint=pool.lp_mint, role="user_lp_ata")

    if amount_a == 0 or amount_b == 0:
        raise AmmError(ErrorCode.ZERO_AMOUNT, f"deposit amounts must be positive: ({amount_a}, {amount_b})")

    reserve_a, reserve_b = _reserves(ctx, pool)
    lp_supply = ledger.get_mint(pool.lp_mint).supply
    quote = compute_lp_mint_amount(amount_a, amount_b, reserve_a, reserve_b, lp_supply)

    if user_a.amount < quote.amount_a_used:
        raise AmmError(ErrorCode.INSUFFICIENT_BALANCE, f"user_ata_a holds {user_a.amount}, needs {quote.amount_a_used}")
    if user_b.amount < quote.amount_b_used:
        raise AmmError(ErrorCode.INSUFFICIENT_BALANCE, f"user_ata_b holds {user_b.amount}, needs {quote.amount_b_used}")
    _require_room(reserve_a, quote.amount_a_used, what="vault_a balance")
    _require_room(reserve_b, quote.amount_b_used, what="vault_b balance")
    _require_room(lp_supply, quote.lp_amount, what="LP supply")
    _require_room(user_lp.amount, quote.lp_amount, what="user LP balance")

    pool_auth = derive_authority(accounts.pool, config.program_id)
    ledger.transfer(accounts.user_ata_a, pool.vault_a, accounts.signer, quote.amount_a_used)
    ledger.transfer(accounts.user_ata_b, pool.vault_b, accounts.signer, quote.amount_b_used)
    ledger.mint_to(pool.lp_mint, accounts.user_lp_ata, pool_auth, quote.lp_amount)

    logger.info(
        "add_liquidity: pool=%s used=(%d, %d) refund=(%d, %d) lp_minted=%d",
        accounts.pool, quote.amount_a_used, quote.amount_b_used,
        quote.amount_a_refund, quote.amount_b_refund, quote.lp_amount,
    )
    return LiquidityEffects(
        amount_a=quote.amount_a_used,
        amount_b=quote.amount_b_used,
        lp_amount=quote.lp_amount,
        amount_a_refund=quote.amount_a_refund,
        amount_b_refund=quote.amount_b_refund,
    )


def remove_liquidity(
    ctx: InstructionContext,
    accounts: RemoveLiquidityAccounts,
    lp_amount: int,
) -> LiquidityEffects:
    """Burn LP shares and return the proportional share of both reserves."""
    require_u64("lp_amount", lp_amount)
    config = ctx.config
    ledger = ctx.ledger

    pool = load_pool(ctx, accounts.pool)
    validate_accounts(
        accounts.pool, pool, accounts,
        program_id=config.program_id, token_program_id=config.token_program_id,
    )
    ctx.require_signer(accounts.payer, role="payer")

    user_lp = _user_account(ctx, accounts.user_lp_ata, mint=pool.lp_mint, owner=accounts.payer, role="user_lp_ata")
    user_a = _user_account(ctx, accounts.user_ata_a, mint=pool.mint_a, role="user_ata_a")
    user_b = _user_account(ctx, accounts.user_ata_b, mint=pool.mint_b, role="user_ata_b")

    if lp_amount == 0:
        raise AmmError(ErrorCode.ZERO_AMOUNT, "lp_amount must be positive")

    lp_supply = ledger.get_mint(pool.lp_mint).supply
    if lp_amount > lp_supply:
        raise AmmError(ErrorCode.INSUFFICIENT_BALANCE, f"lp_amount {lp_amount} exceeds LP supply {lp_supply}")
    if user_lp.amount < lp_amount:
        raise AmmError(ErrorCode.INSUFFICIENT_BALANCE, f"user_lp_ata holds {user_lp.amount}, needs {lp_amount}")

    reserve_a, reserve_b = _reserves(ctx, pool)
    amount_a, amount_b = compute_withdraw_amounts(lp_amount, reserve_a, reserve_b, lp_supply)
    _require_room(user_a.amount, amount_a, what="user_ata_a balance")
    _require_room(user_b.amount, amount_b, what="user_ata_b balance")

    pool_auth = derive_authority(accounts.pool, config.program_id)
    ledger.burn(accounts.user_lp_ata, pool.lp_mint, accounts.payer, lp_amount)
    ledger.transfer(pool.vault_a, accounts.user_ata_a, pool_auth, amount_a)
    ledger.transfer(pool.vault_b, accounts.user_ata_b, pool_auth, amount_b)

    logger.info(
        "remove_liquidity: pool=%s lp_burned=%d out=(%d, %d)",
        accounts.pool, lp_amount, amount_a, amount_b,
    )
    return LiquidityEffects(amount_a=amount_a, amount_b=amount_b, lp_amount=lp_amount)
