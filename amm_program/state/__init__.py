"""
Account state for the AMM program
"""

from .ledger import Ledger, TokenAccount, Mint, DataAccount, TOKEN_PROGRAM_ID
from .pools import PoolState, PoolStatus, decode_pool, POOL_ACCOUNT_SIZE

__all__ = [
    "Ledger",
    "TokenAccount",
    "Mint",
    "DataAccount",
    "TOKEN_PROGRAM_ID",
    "PoolState",
    "PoolStatus",
    "decode_pool",
    "POOL_ACCOUNT_SIZE",
]
