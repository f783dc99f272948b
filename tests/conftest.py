# [TESTER] v1

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from amm_program.integration.client import AmmClient, associated_token_address
from amm_program.state.ledger import Ledger

FUNDED = 10**12


@dataclass
class Market:
    client: AmmClient
    pool: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    mint_authority: Pubkey

    @property
    def ledger(self) -> Ledger:
        return self.client.ledger

    def ata(self, mint: Pubkey) -> Pubkey:
        return associated_token_address(self.client.payer, mint, self.client.config.token_program_id)

    def balance(self, mint: Pubkey) -> int:
        return self.ledger.balance(self.ata(mint))


def new_market(*, fee_bps: int = 30, funded: int = FUNDED) -> Market:
    ledger = Ledger()
    mint_authority = Pubkey.new_unique()
    mint_a = Pubkey.new_unique()
    mint_b = Pubkey.new_unique()
    ledger.create_mint(mint_a, mint_authority)
    ledger.create_mint(mint_b, mint_authority)

    payer = Keypair().pubkey()
    client = AmmClient(ledger, payer)
    token_program = client.config.token_program_id
    for mint in (mint_a, mint_b):
        ata = associated_token_address(payer, mint, token_program)
        ledger.create_token_account(ata, mint, payer)
        ledger.deposit(ata, funded)

    pool = Keypair().pubkey()
    result = client.initialize_pool(pool, mint_a, mint_b, fee_bps)
    assert result.ok, result.error
    lp_mint = client.get_pool_state(pool).lp_mint
    client.ledger.create_token_account(associated_token_address(payer, lp_mint, token_program), lp_mint, payer)
    return Market(client=client, pool=pool, mint_a=mint_a, mint_b=mint_b, mint_authority=mint_authority)


@pytest.fixture
def market() -> Market:
    return new_market()


@pytest.fixture
def market_factory() -> Callable[..., Market]:
    return new_market
