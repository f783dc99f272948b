"""
Program-derived addresses for a pool.

The pool authority is never stored: it is recomputed from the pool address
and the program id whenever a handler needs it, and any client can reproduce
it with the same call. The vaults and the LP mint are derived the same way so
that `initialize_pool` can check the addresses it is handed.
"""

from __future__ import annotations

from typing import Tuple

from solders.pubkey import Pubkey


POOL_AUTH_SEED = b"pool_auth"
VAULT_A_SEED = b"vault_a"
VAULT_B_SEED = b"vault_b"
LP_MINT_SEED = b"lp_mint"


def _find(tag: bytes, pool: Pubkey, program_id: Pubkey) -> Tuple[Pubkey, int]:
    if not isinstance(pool, Pubkey):
        raise TypeError("pool must be a Pubkey")
    if not isinstance(program_id, Pubkey):
        raise TypeError("program_id must be a Pubkey")
    return Pubkey.find_program_address([tag, bytes(pool)], program_id)


def find_pool_authority(pool: Pubkey, program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Return (authority, bump) for `pool`."""
    return _find(POOL_AUTH_SEED, pool, program_id)


def derive_authority(pool: Pubkey, program_id: Pubkey) -> Pubkey:
    return find_pool_authority(pool, program_id)[0]


def derive_vault_addresses(pool: Pubkey, program_id: Pubkey) -> Tuple[Pubkey, Pubkey]:
    vault_a, _ = _find(VAULT_A_SEED, pool, program_id)
    vault_b, _ = _find(VAULT_B_SEED, pool, program_id)
    return vault_a, vault_b


def derive_lp_mint_address(pool: Pubkey, program_id: Pubkey) -> Pubkey:
    return _find(LP_MINT_SEED, pool, program_id)[0]


def is_pool_authority(candidate: Pubkey, pool: Pubkey, program_id: Pubkey) -> bool:
    """True iff `candidate` is the authority derived for `pool` under `program_id`."""
    return candidate == derive_authority(pool, program_id)
