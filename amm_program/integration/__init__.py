"""
Wire codec, processor and client for the AMM program
"""

from .instructions import build_instruction, decode_instruction, encode_data
from .processor import (
    ProcessResult,
    process_instruction,
    process_instruction_or_raise,
    process_transaction,
)
from .client import AmmClient
from .config import Settings, load_settings, configure_logging

__all__ = [
    "build_instruction",
    "decode_instruction",
    "encode_data",
    "ProcessResult",
    "process_instruction",
    "process_instruction_or_raise",
    "process_transaction",
    "AmmClient",
    "Settings",
    "load_settings",
    "configure_logging",
]
