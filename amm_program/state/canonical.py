"""
Deterministic encoding primitives shared by the account layout and the
instruction codec.

Discriminators follow the Anchor convention so that accounts and instructions
are recognisable by any client that knows the names:
- account:     sha256("account:<TypeName>")[:8]
- instruction: sha256("global:<snake_case_name>")[:8]
"""

from __future__ import annotations

import hashlib
import re

from construct import Adapter, Bytes
from solders.pubkey import Pubkey


DISCRIMINATOR_LEN = 8

_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _sighash(namespace: str, name: str) -> bytes:
    if not isinstance(name, str) or not name:
        raise TypeError("name must be a non-empty str")
    preimage = f"{namespace}:{name}".encode("ascii")
    return hashlib.sha256(preimage).digest()[:DISCRIMINATOR_LEN]


def account_discriminator(type_name: str) -> bytes:
    return _sighash("account", type_name)


def to_snake_case(name: str) -> str:
    """``swapToken`` -> ``swap_token``."""
    return _CAMEL_BOUNDARY_RE.sub("_", name).lower()


def instruction_discriminator(name: str) -> bytes:
    """Discriminator for an instruction; accepts camelCase or snake_case names."""
    return _sighash("global", to_snake_case(name))


class PubkeyAdapter(Adapter):
    """32 raw bytes <-> solders Pubkey."""

    def _decode(self, obj, context, path):
        return Pubkey.from_bytes(obj)

    def _encode(self, obj, context, path):
        if not isinstance(obj, Pubkey):
            raise TypeError("expected a Pubkey")
        return bytes(obj)


PUBKEY = PubkeyAdapter(Bytes(32))
