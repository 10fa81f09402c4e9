"""swapvault.identity

32-byte ledger identities.

Profile / invariants:
- An identity is exactly 32 raw bytes. Its text form is base58 (Bitcoin
  alphabet); 32 zero bytes encode as 32 '1' characters.
- Program-derived addresses are a pure function of (seeds, program id). They
  have no private key; the bump byte is found by searching downward from 255
  and must be persisted by whoever needs to re-derive the address.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from swapvault.hardening import IDENTITY_LENGTH


# Base58 implementation (no external deps)
B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
B58_MAP = {c: i for i, c in enumerate(B58_ALPHABET)}

PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16


def b58decode(s: Union[str, bytes]) -> bytes:
    if isinstance(s, str):
        s_bytes = s.encode("ascii")
    else:
        s_bytes = s
    num = 0
    for c in s_bytes:
        if c not in B58_MAP:
            raise ValueError("Invalid base58 character")
        num = num * 58 + B58_MAP[c]
    # Count leading zeros
    n_pad = 0
    for c in s_bytes:
        if c == B58_ALPHABET[0]:
            n_pad += 1
        else:
            break
    full = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    return b"\x00" * n_pad + full


def b58encode(b: bytes) -> str:
    n_pad = 0
    for c in b:
        if c == 0:
            n_pad += 1
        else:
            break
    num = int.from_bytes(b, "big")
    out = bytearray()
    while num > 0:
        num, rem = divmod(num, 58)
        out.append(B58_ALPHABET[rem])
    out.extend(B58_ALPHABET[0] for _ in range(n_pad))
    out.reverse()
    return out.decode("ascii")


@dataclass(frozen=True)
class Pubkey:
    """A 32-byte ledger identity (account, asset mint, or program)."""
    raw: bytes

    def __post_init__(self):
        if isinstance(self.raw, bytearray):
            object.__setattr__(self, "raw", bytes(self.raw))
        if not isinstance(self.raw, bytes):
            raise TypeError(f"Pubkey expects bytes, got {type(self.raw).__name__}")
        if len(self.raw) != IDENTITY_LENGTH:
            raise ValueError(
                f"Pubkey must be {IDENTITY_LENGTH} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_base58(cls, text: str) -> 'Pubkey':
        """Parse the base58 text form."""
        text = text.strip()
        if not text:
            raise ValueError("Empty public key")
        return cls(b58decode(text))

    @classmethod
    def parse(cls, value: Union['Pubkey', str, bytes]) -> 'Pubkey':
        """Coerce a Pubkey, base58 string, or 32 raw bytes."""
        if isinstance(value, Pubkey):
            return value
        if isinstance(value, str):
            return cls.from_base58(value)
        return cls(bytes(value))

    @classmethod
    def new_unique(cls) -> 'Pubkey':
        """A fresh random identity (for record accounts and tests)."""
        return cls(secrets.token_bytes(IDENTITY_LENGTH))

    @classmethod
    def default(cls) -> 'Pubkey':
        return cls(b"\x00" * IDENTITY_LENGTH)

    def to_base58(self) -> str:
        return b58encode(self.raw)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.to_base58()

    def __repr__(self) -> str:
        return f"Pubkey({self.to_base58()})"


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """Hash seeds and program id into an address."""
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"At most {MAX_SEEDS} seeds allowed")
    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ValueError(f"Seed longer than {MAX_SEED_LENGTH} bytes")
        hasher.update(seed)
    hasher.update(program_id.raw)
    hasher.update(PDA_MARKER)
    return Pubkey(hasher.digest())


def find_program_address(
    seeds: Iterable[bytes],
    program_id: Pubkey,
    is_viable: Optional[Callable[[Pubkey], bool]] = None,
) -> Tuple[Pubkey, int]:
    """
    Derive the canonical (address, bump) pair for seeds under program_id.

    Candidates are tried from bump 255 downward; the first one accepted by
    is_viable wins. Without a predicate the canonical bump is 255.
    """
    seeds = list(seeds)
    for bump in range(255, -1, -1):
        candidate = create_program_address(seeds + [bytes([bump])], program_id)
        if is_viable is None or is_viable(candidate):
            return candidate, bump
    raise ValueError("Unable to find a viable program address bump seed")
