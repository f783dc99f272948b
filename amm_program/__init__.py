"""
Constant-product AMM program core
"""

from .errors import AmmError, ErrorCode

__all__ = [
    "AmmError",
    "ErrorCode",
]
