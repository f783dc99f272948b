"""Error kinds for the AMM program.

Every rejection raised by the core is an ``AmmError`` carrying an ``ErrorCode``.
Codes are numbered from 6000 so they line up with on-chain custom program errors.
All of them are terminal for the current instruction.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    INVALID_MINT = 6000
    SLIPPAGE_EXCEEDED = 6001
    INSUFFICIENT_BALANCE = 6002
    ZERO_AMOUNT = 6003
    ARITHMETIC_OVERFLOW = 6004
    ACCOUNT_MISMATCH = 6005
    POOL_NOT_ACTIVE = 6006
    DUST_RESULT = 6007
    EMPTY_POOL = 6008
    INVALID_FEE = 6009
    ALREADY_INITIALIZED = 6010
    MISSING_SIGNER = 6011
    INVALID_INSTRUCTION = 6012
    INVARIANT_VIOLATION = 6013

    @property
    def label(self) -> str:
        """CamelCase name, e.g. ``SlippageExceeded``."""
        return "".join(part.capitalize() for part in self.name.split("_"))


class AmmError(Exception):
    """Raised when an instruction is rejected."""

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        self.code = code
        self.message = message
        text = code.label if not message else f"{code.label}: {message}"
        super().__init__(text)
