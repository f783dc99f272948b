"""
Atomic instruction processor.

Decodes an instruction, dispatches it to its handler and applies the result
all-or-nothing: handlers run against a copy of the ledger and the copy is
returned only when the handler completes.

Two entrypoints:
- `process_instruction`: returns a `ProcessResult` (never raises on rejection)
- `process_instruction_or_raise`: raises `AmmError` on rejection
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

from solders.instruction import Instruction

from ..core import handlers
from ..core.handlers import InstructionContext, ProgramConfig
from ..errors import AmmError, ErrorCode
from ..state.ledger import Ledger
from .instructions import DecodedInstruction, decode_instruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    ok: bool
    ledger: Ledger
    effects: Any = None
    error: Optional[str] = None
    code: Optional[ErrorCode] = None


_Handler = Callable[[InstructionContext, DecodedInstruction], Any]

_DISPATCH: Dict[str, _Handler] = {
    "initialize_pool": lambda ctx, d: handlers.initialize_pool(ctx, d.accounts, d.args["fee_bps"]),
    "swap_token": lambda ctx, d: handlers.swap_token(
        ctx, d.accounts, d.args["amount_in"], d.args["minimum_amount_out"]
    ),
    "add_liquidity": lambda ctx, d: handlers.add_liquidity(ctx, d.accounts, d.args["amount_a"], d.args["amount_b"]),
    "remove_liquidity": lambda ctx, d: handlers.remove_liquidity(ctx, d.accounts, d.args["lp_amount"]),
}


def _execute(ledger: Ledger, instruction: Instruction, config: ProgramConfig) -> Any:
    if instruction.program_id != config.program_id:
        raise AmmError(
            ErrorCode.INVALID_INSTRUCTION,
            f"instruction targets {instruction.program_id}, not {config.program_id}",
        )
    decoded = decode_instruction(instruction)
    for key in decoded.signers:
        # Program-derived addresses have no private key and cannot sign.
        if not key.is_on_curve():
            raise AmmError(ErrorCode.MISSING_SIGNER, f"{key} is off-curve and cannot sign")
    logger.debug("dispatch %s args=%s", decoded.name, decoded.args)
    ctx = InstructionContext(ledger=ledger, signers=decoded.signers, config=config)
    return _DISPATCH[decoded.name](ctx, decoded)


def process_instruction(
    ledger: Ledger,
    instruction: Instruction,
    config: Optional[ProgramConfig] = None,
) -> ProcessResult:
    """
    Run one instruction atomically.

    On success the result carries the updated ledger (a new object); on
    rejection it carries the input ledger unchanged plus the error.
    """
    cfg = config or ProgramConfig()
    work = ledger.copy()
    try:
        effects = _execute(work, instruction, cfg)
    except AmmError as exc:
        logger.info("instruction rejected: %s", exc)
        return ProcessResult(ok=False, ledger=ledger, error=str(exc), code=exc.code)
    return ProcessResult(ok=True, ledger=work, effects=effects)


def process_instruction_or_raise(
    ledger: Ledger,
    instruction: Instruction,
    config: Optional[ProgramConfig] = None,
) -> ProcessResult:
    cfg = config or ProgramConfig()
    work = ledger.copy()
    effects = _execute(work, instruction, cfg)
    return ProcessResult(ok=True, ledger=work, effects=effects)


def process_transaction(
    ledger: Ledger,
    instructions: Iterable[Instruction],
    config: Optional[ProgramConfig] = None,
) -> ProcessResult:
    """
    Run instructions in order as one atomic unit.

    `effects` is the list of per-instruction effects. The first rejection
    discards every earlier instruction's changes.
    """
    cfg = config or ProgramConfig()
    work = ledger.copy()
    all_effects = []
    for index, instruction in enumerate(instructions):
        try:
            all_effects.append(_execute(work, instruction, cfg))
        except AmmError as exc:
            logger.info("transaction rejected at instruction %d: %s", index, exc)
            return ProcessResult(ok=False, ledger=ledger, error=f"instruction {index}: {exc}", code=exc.code)
    return ProcessResult(ok=True, ledger=work, effects=all_effects)
