"""
Instruction wire codec.

Data is an 8-byte discriminator (sha256("global:<snake_name>")[:8]) followed by
the little-endian arguments. Accounts are positional; the order is the field
order of the matching account set in `core.accounts`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, FrozenSet, Mapping, Tuple, Type

from construct import ConstructError, Int16ul, Int64ul, Struct
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..core.accounts import (
    AddLiquidityAccounts,
    InitializePoolAccounts,
    RemoveLiquidityAccounts,
    SwapAccounts,
)
from ..core.math import require_u64
from ..errors import AmmError, ErrorCode
from ..state.canonical import DISCRIMINATOR_LEN, instruction_discriminator


@dataclass(frozen=True)
class InstructionLayout:
    name: str
    args: Struct
    accounts: Type[Any]
    # Account-set fields that must sign / that the instruction writes.
    signers: FrozenSet[str]
    writable: FrozenSet[str]

    @property
    def discriminator(self) -> bytes:
        return instruction_discriminator(self.name)

    @property
    def account_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self.accounts))


INITIALIZE_POOL = InstructionLayout(
    name="initialize_pool",
    args=Struct("fee_bps" / Int16ul),
    accounts=InitializePoolAccounts,
    signers=frozenset({"pool", "payer"}),
    writable=frozenset({"pool", "payer", "vault_a", "vault_b", "lp_mint"}),
)

SWAP_TOKEN = InstructionLayout(
    name="swap_token",
    args=Struct("amount_in" / Int64ul, "minimum_amount_out" / Int64ul),
    accounts=SwapAccounts,
    signers=frozenset({"signer"}),
    writable=frozenset({"vault_a", "vault_b", "user_ata_a", "user_ata_b"}),
)

ADD_LIQUIDITY = InstructionLayout(
    name="add_liquidity",
    args=Struct("amount_a" / Int64ul, "amount_b" / Int64ul),
    accounts=AddLiquidityAccounts,
    signers=frozenset({"signer"}),
    writable=frozenset({"vault_a", "vault_b", "user_ata_a", "user_ata_b", "lp_mint", "user_lp_ata"}),
)

REMOVE_LIQUIDITY = InstructionLayout(
    name="remove_liquidity",
    args=Struct("lp_amount" / Int64ul),
    accounts=RemoveLiquidityAccounts,
    signers=frozenset({"payer"}),
    writable=frozenset({"vault_a", "vault_b", "user_ata_a", "user_ata_b", "user_lp_ata", "lp_mint"}),
)

INSTRUCTIONS: Dict[str, InstructionLayout] = {
    layout.name: layout for layout in (INITIALIZE_POOL, SWAP_TOKEN, ADD_LIQUIDITY, REMOVE_LIQUIDITY)
}
_BY_DISCRIMINATOR: Dict[bytes, InstructionLayout] = {layout.discriminator: layout for layout in INSTRUCTIONS.values()}


@dataclass(frozen=True)
class DecodedInstruction:
    name: str
    args: Dict[str, int]
    accounts: Any
    signers: FrozenSet[Pubkey]


def _check_args(layout: InstructionLayout, args: Mapping[str, int]) -> Dict[str, int]:
    expected = [sc.name for sc in layout.args.subcons]
    if set(args) != set(expected):
        raise ValueError(f"{layout.name} takes args {expected}, got {sorted(args)}")
    out: Dict[str, int] = {}
    for name in expected:
        out[name] = require_u64(name, args[name])
    return out


def encode_data(name: str, args: Mapping[str, int]) -> bytes:
    layout = INSTRUCTIONS.get(name)
    if layout is None:
        raise ValueError(f"unknown instruction: {name!r}")
    checked = _check_args(layout, args)
    try:
        body = layout.args.build(checked)
    except ConstructError as exc:
        raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"{name} argument out of range: {exc}") from exc
    return layout.discriminator + body


def build_instruction(program_id: Pubkey, name: str, args: Mapping[str, int], accounts: Any) -> Instruction:
    """Encode an instruction for `accounts` (an account-set dataclass instance)."""
    layout = INSTRUCTIONS.get(name)
    if layout is None:
        raise ValueError(f"unknown instruction: {name!r}")
    if not isinstance(accounts, layout.accounts):
        raise TypeError(f"{name} expects {layout.accounts.__name__}, got {type(accounts).__name__}")
    metas = [
        AccountMeta(
            pubkey=getattr(accounts, field_name),
            is_signer=field_name in layout.signers,
            is_writable=field_name in layout.writable,
        )
        for field_name in layout.account_names
    ]
    return Instruction(program_id, encode_data(name, args), metas)


def decode_instruction(ix: Instruction) -> DecodedInstruction:
    """
    Decode data and accounts of `ix`.

    Raises:
        AmmError(InvalidInstruction): unknown discriminator, bad data length or
            wrong number of accounts
    """
    data = bytes(ix.data)
    if len(data) < DISCRIMINATOR_LEN:
        raise AmmError(ErrorCode.INVALID_INSTRUCTION, f"instruction data too short: {len(data)} bytes")
    layout = _BY_DISCRIMINATOR.get(data[:DISCRIMINATOR_LEN])
    if layout is None:
        raise AmmError(ErrorCode.INVALID_INSTRUCTION, f"unknown discriminator {data[:DISCRIMINATOR_LEN].hex()}")

    body = data[DISCRIMINATOR_LEN:]
    if len(body) != layout.args.sizeof():
        raise AmmError(
            ErrorCode.INVALID_INSTRUCTION,
            f"{layout.name} expects {layout.args.sizeof()} argument bytes, got {len(body)}",
        )
    parsed = layout.args.parse(body)
    args = {sc.name: int(parsed[sc.name]) for sc in layout.args.subcons}

    metas = list(ix.accounts)
    names = layout.account_names
    if len(metas) != len(names):
        raise AmmError(
            ErrorCode.INVALID_INSTRUCTION,
            f"{layout.name} expects {len(names)} accounts, got {len(metas)}",
        )
    accounts = layout.accounts(**{n: m.pubkey for n, m in zip(names, metas)})
    signers = frozenset(m.pubkey for m in metas if m.is_signer)
    return DecodedInstruction(name=layout.name, args=args, accounts=accounts, signers=signers)
