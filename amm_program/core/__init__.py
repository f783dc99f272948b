"""
Core AMM algorithms and instruction handlers
"""

from .cpmm import (
    compute_swap_output,
    compute_lp_mint_amount,
    compute_withdraw_amounts,
    SwapQuote,
    LiquidityQuote,
)
from .authority import (
    derive_authority,
    derive_vault_addresses,
    derive_lp_mint_address,
    find_pool_authority,
)
from .accounts import (
    InitializePoolAccounts,
    SwapAccounts,
    AddLiquidityAccounts,
    RemoveLiquidityAccounts,
    SwapDirection,
    validate_accounts,
)
from .handlers import (
    ProgramConfig,
    InstructionContext,
    initialize_pool,
    swap_token,
    add_liquidity,
    remove_liquidity,
)

__all__ = [
    "compute_swap_output",
    "compute_lp_mint_amount",
    "compute_withdraw_amounts",
    "SwapQuote",
    "LiquidityQuote",
    "derive_authority",
    "derive_vault_addresses",
    "derive_lp_mint_address",
    "find_pool_authority",
    "InitializePoolAccounts",
    "SwapAccounts",
    "AddLiquidityAccounts",
    "RemoveLiquidityAccounts",
    "SwapDirection",
    "validate_accounts",
    "ProgramConfig",
    "InstructionContext",
    "initialize_pool",
    "swap_token",
    "add_liquidity",
    "remove_liquidity",
]
