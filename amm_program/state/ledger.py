"""
In-memory ledger: token accounts, mints and program-owned data accounts.

This is the slice of the external ledger environment the AMM handlers talk
to. It implements the token-program operations the handlers invoke
(`transfer`, `mint_to`, `burn`) with the same authority rules a token program
enforces, so a handler can only move vault funds when it presents the pool's
derived authority.

Execution is atomic at the instruction level because the processor runs each
instruction against `copy()` and keeps the copy only on success.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from solders.pubkey import Pubkey

from ..errors import AmmError, ErrorCode


U64_MAX = (1 << 64) - 1

# SPL Token program id.
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")


@dataclass(frozen=True)
class TokenAccount:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int = 0


@dataclass(frozen=True)
class Mint:
    address: Pubkey
    mint_authority: Optional[Pubkey]
    supply: int = 0
    decimals: int = 6


@dataclass(frozen=True)
class DataAccount:
    address: Pubkey
    owner: Pubkey
    data: bytes


class Ledger:
    """
    Deterministic account store keyed by address.

    Token balances and supplies are u64. Records are immutable; every mutation
    replaces the stored record, which keeps `copy()` a cheap shallow copy.
    """

    def __init__(self) -> None:
        self._token_accounts: Dict[Pubkey, TokenAccount] = {}
        self._mints: Dict[Pubkey, Mint] = {}
        self._data_accounts: Dict[Pubkey, DataAccount] = {}

    # -- account creation ---------------------------------------------------

    def _require_unused(self, address: Pubkey) -> None:
        if self.exists(address):
            raise AmmError(ErrorCode.ALREADY_INITIALIZED, f"account {address} already exists")

    def exists(self, address: Pubkey) -> bool:
        return (
            address in self._token_accounts
            or address in self._mints
            or address in self._data_accounts
        )

    def create_mint(self, address: Pubkey, mint_authority: Optional[Pubkey], decimals: int = 6) -> Mint:
        self._require_unused(address)
        if not isinstance(decimals, int) or isinstance(decimals, bool) or not (0 <= decimals <= 255):
            raise ValueError(f"decimals must fit in u8: {decimals!r}")
        mint = Mint(address=address, mint_authority=mint_authority, supply=0, decimals=decimals)
        self._mints[address] = mint
        return mint

    def create_token_account(self, address: Pubkey, mint: Pubkey, owner: Pubkey) -> TokenAccount:
        self._require_unused(address)
        if mint not in self._mints:
            raise AmmError(ErrorCode.INVALID_MINT, f"mint {mint} does not exist")
        account = TokenAccount(address=address, mint=mint, owner=owner, amount=0)
        self._token_accounts[address] = account
        return account

    def set_data(self, address: Pubkey, owner: Pubkey, data: bytes) -> None:
        """Write a program-owned account. Only the owning program may overwrite it."""
        current = self._data_accounts.get(address)
        if current is None:
            if address in self._token_accounts or address in self._mints:
                raise AmmError(ErrorCode.ALREADY_INITIALIZED, f"account {address} already exists")
        elif current.owner != owner:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"account {address} is owned by {current.owner}")
        self._data_accounts[address] = DataAccount(address=address, owner=owner, data=bytes(data))

    # -- reads ----------------------------------------------------------------

    def get_token_account(self, address: Pubkey) -> TokenAccount:
        account = self._token_accounts.get(address)
        if account is None:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{address} is not a token account")
        return account

    def get_mint(self, address: Pubkey) -> Mint:
        mint = self._mints.get(address)
        if mint is None:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{address} is not a mint")
        return mint

    def is_mint(self, address: Pubkey) -> bool:
        return address in self._mints

    def get_data_account(self, address: Pubkey) -> Optional[DataAccount]:
        return self._data_accounts.get(address)

    def balance(self, address: Pubkey) -> int:
        return self.get_token_account(address).amount

    def find_token_accounts(self, owner: Pubkey, mint: Pubkey) -> List[TokenAccount]:
        """All token accounts of `mint` owned by `owner`, sorted by address."""
        found = [
            acct for acct in self._token_accounts.values()
            if acct.owner == owner and acct.mint == mint
        ]
        found.sort(key=lambda acct: bytes(acct.address))
        return found

    # -- token program operations -------------------------------------------

    def transfer(self, source: Pubkey, destination: Pubkey, authority: Pubkey, amount: int) -> None:
        """
        Move `amount` from `source` to `destination`.

        Raises:
            AmmError(AccountMismatch): authority is not the source owner, or mints differ
            AmmError(InsufficientBalance): source holds less than amount
        """
        _require_amount(amount)
        src = self.get_token_account(source)
        dst = self.get_token_account(destination)
        if src.owner != authority:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{authority} is not the owner of {source}")
        if src.mint != dst.mint:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"mint mismatch: {src.mint} != {dst.mint}")
        if src.amount < amount:
            raise AmmError(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"{source} holds {src.amount}, needs {amount}",
            )
        if source == destination:
            return
        new_dst = dst.amount + amount
        if new_dst > U64_MAX:
            raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"balance of {destination} exceeds u64")
        self._token_accounts[source] = replace(src, amount=src.amount - amount)
        self._token_accounts[destination] = replace(dst, amount=new_dst)

    def mint_to(self, mint: Pubkey, destination: Pubkey, authority: Pubkey, amount: int) -> None:
        _require_amount(amount)
        m = self.get_mint(mint)
        dst = self.get_token_account(destination)
        if m.mint_authority is None or m.mint_authority != authority:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{authority} is not the mint authority of {mint}")
        if dst.mint != mint:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{destination} does not hold mint {mint}")
        new_supply = m.supply + amount
        new_balance = dst.amount + amount
        if new_supply > U64_MAX or new_balance > U64_MAX:
            raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"minting {amount} of {mint} exceeds u64")
        self._mints[mint] = replace(m, supply=new_supply)
        self._token_accounts[destination] = replace(dst, amount=new_balance)

    def burn(self, account: Pubkey, mint: Pubkey, owner: Pubkey, amount: int) -> None:
        _require_amount(amount)
        m = self.get_mint(mint)
        acct = self.get_token_account(account)
        if acct.mint != mint:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{account} does not hold mint {mint}")
        if acct.owner != owner:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"{owner} is not the owner of {account}")
        if acct.amount < amount:
            raise AmmError(ErrorCode.INSUFFICIENT_BALANCE, f"{account} holds {acct.amount}, needs {amount}")
        if m.supply < amount:
            raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"supply of {mint} would underflow")
        self._mints[mint] = replace(m, supply=m.supply - amount)
        self._token_accounts[account] = replace(acct, amount=acct.amount - amount)

    # -- test / bootstrap helper ----------------------------------------------

    def deposit(self, address: Pubkey, amount: int) -> None:
        """Credit a token account by minting under the mint's authority (faucet)."""
        acct = self.get_token_account(address)
        mint = self.get_mint(acct.mint)
        if mint.mint_authority is None:
            raise AmmError(ErrorCode.ACCOUNT_MISMATCH, f"mint {acct.mint} has no authority")
        self.mint_to(acct.mint, address, mint.mint_authority, amount)

    def copy(self) -> "Ledger":
        copied = Ledger()
        copied._token_accounts = dict(self._token_accounts)
        copied._mints = dict(self._mints)
        copied._data_accounts = dict(self._data_accounts)
        return copied

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ledger):
            return NotImplemented
        return (
            self._token_accounts == other._token_accounts
            and self._mints == other._mints
            and self._data_accounts == other._data_accounts
        )

    def __repr__(self) -> str:
        return (
            f"Ledger({len(self._mints)} mints, {len(self._token_accounts)} token accounts, "
            f"{len(self._data_accounts)} data accounts)"
        )


def _require_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError("amount must be an int")
    if amount < 0 or amount > U64_MAX:
        raise AmmError(ErrorCode.ARITHMETIC_OVERFLOW, f"amount out of u64 range: {amount}")
