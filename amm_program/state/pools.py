"""
Pool account model and its persisted binary layout.

Reserves and LP supply are *not* part of the record: reserves are the vault
balances and the LP supply is the LP mint's supply. The record only pins the
addresses a handler must cross-check, plus the fee.

Layout (little-endian, fixed size):

    offset  0  discriminator  8 bytes   sha256("account:Pool")[:8]
    offset  8  version        u8
    offset  9  status         u8        0 = UNINITIALIZED, 1 = ACTIVE
    offset 10  fee_bps        u16
    offset 12  mint_a         32 bytes
    offset 44  mint_b         32 bytes
    offset 76  vault_a        32 bytes
    offset 108 vault_b        32 bytes
    offset 140 lp_mint        32 bytes
    offset 172 reserved       64 bytes  (zero; room for future fields)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from construct import Const, ConstructError, Int8ul, Int16ul, Padding, Struct
from solders.pubkey import Pubkey

from ..errors import AmmError, ErrorCode
from .canonical import PUBKEY, account_discriminator


BPS_DENOM = 10_000
POOL_ACCOUNT_VERSION = 1
POOL_RESERVED_BYTES = 64
POOL_DISCRIMINATOR = account_discriminator("Pool")


class PoolStatus(Enum):
    """Pool status enumeration."""
    UNINITIALIZED = 0
    ACTIVE = 1


POOL_LAYOUT = Struct(
    "discriminator" / Const(POOL_DISCRIMINATOR),
    "version" / Int8ul,
    "status" / Int8ul,
    "fee_bps" / Int16ul,
    "mint_a" / PUBKEY,
    "mint_b" / PUBKEY,
    "vault_a" / PUBKEY,
    "vault_b" / PUBKEY,
    "lp_mint" / PUBKEY,
    Padding(POOL_RESERVED_BYTES),
)

POOL_ACCOUNT_SIZE = POOL_LAYOUT.sizeof()


@dataclass(frozen=True)
class PoolState:
    """
    Persistent record describing one trading pair.

    Attributes:
        mint_a: Mint of asset A
        mint_b: Mint of asset B (distinct from mint_a)
        vault_a: Token account holding the A reserve, owned by the pool authority
        vault_b: Token account holding the B reserve, owned by the pool authority
        lp_mint: Mint of the LP share token; mint authority is the pool authority
        fee_bps: Swap fee in basis points (0-10000)
        status: Lifecycle status
        version: Layout version this record was decoded from
    """
    mint_a: Pubkey
    mint_b: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    lp_mint: Pubkey
    fee_bps: int
    status: PoolStatus = PoolStatus.ACTIVE
    version: int = POOL_ACCOUNT_VERSION

    def __post_init__(self):
        if self.mint_a == self.mint_b:
            raise AmmError(ErrorCode.INVALID_MINT, f"pool mints must differ: {self.mint_a}")
        if not isinstance(self.fee_bps, int) or isinstance(self.fee_bps, bool):
            raise TypeError("fee_bps must be an int")
        if not (0 <= self.fee_bps <= BPS_DENOM):
            raise AmmError(ErrorCode.INVALID_FEE, f"fee_bps must be in [0, {BPS_DENOM}]: {self.fee_bps}")

    @property
    def is_active(self) -> bool:
        return self.status == PoolStatus.ACTIVE

    def has_mint(self, mint: Pubkey) -> bool:
        return mint == self.mint_a or mint == self.mint_b

    def encode(self) -> bytes:
        return POOL_LAYOUT.build(
            {
                "version": self.version,
                "status": self.status.value,
                "fee_bps": self.fee_bps,
                "mint_a": self.mint_a,
                "mint_b": self.mint_b,
                "vault_a": self.vault_a,
                "vault_b": self.vault_b,
                "lp_mint": self.lp_mint,
            }
        )

    def __repr__(self) -> str:
        return (
            f"PoolState(mints=({self.mint_a}, {self.mint_b}), "
            f"fee_bps={self.fee_bps}, status={self.status.name})"
        )


def decode_pool(data: bytes) -> PoolState:
    """
    Decode a pool record.

    Raises:
        AmmError(PoolNotActive): the account holds no pool record
        AmmError(AccountMismatch): wrong size, discriminator or version
    """
    if not data:
        raise AmmError(ErrorCode.POOL_NOT_ACTIVE, "pool account is empty")
    if len(data) != POOL_ACCOUNT_SIZE:
        raise AmmError(
            ErrorCode.ACCOUNT_MISMATCH,
            f"pool account has {len(data)} bytes, expected {POOL_ACCOUNT_SIZE}",
        )
    try:
        parsed = POOL_LAYOUT.parse(data)
    except ConstructError as exc:
        raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"not a pool account: {exc}") from exc

    if parsed.version != POOL_ACCOUNT_VERSION:
        raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"unsupported pool layout version {parsed.version}")
    try:
        status = PoolStatus(parsed.status)
    except ValueError as exc:
        raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"unknown pool status {parsed.status}") from exc

    return PoolState(
        mint_a=parsed.mint_a,
        mint_b=parsed.mint_b,
        vault_a=parsed.vault_a,
        vault_b=parsed.vault_b,
        lp_mint=parsed.lp_mint,
        fee_bps=parsed.fee_bps,
        status=status,
        version=parsed.version,
    )
