"""
SWAPVAULT Account Layouts

Byte-exact persisted layouts for the two account types owned by the swap
vault program. Every account body is prefixed by an 8-byte type
discriminator, the first 8 bytes of SHA256("account:<TypeName>").

    Vault       = disc(8) | bump u8(1)                                   =   9 bytes
    SwapRecord  = disc(8) | proof_digest(32) | output_asset(32)
                | output_amount u64 LE(8) | recipient(32) | executed(1)  = 113 bytes

Fields are fixed width with no padding. The type names are the on-ledger
names, so digests of existing accounts keep matching.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict

from swapvault.errors import AccountLayoutError
from swapvault.hardening import Validators
from swapvault.identity import Pubkey


DISCRIMINATOR_LENGTH = 8


def account_discriminator(type_name: str) -> bytes:
    """Compute the 8-byte discriminator for an account type."""
    return hashlib.sha256(f"account:{type_name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


def _split(data: bytes, type_name: str, expected_len: int) -> bytes:
    """Check discriminator and length, return the body."""
    if len(data) != expected_len:
        raise AccountLayoutError(
            f"{type_name} account must be {expected_len} bytes, got {len(data)}"
        )
    disc = data[:DISCRIMINATOR_LENGTH]
    if disc != account_discriminator(type_name):
        raise AccountLayoutError(f"Account discriminator does not match {type_name}")
    return data[DISCRIMINATOR_LENGTH:]


# =============================================================================
# VAULT
# =============================================================================

@dataclass(frozen=True)
class VaultAccount:
    """Singleton vault state: only the derivation bump is stored."""
    bump: int

    TYPE_NAME: ClassVar[str] = "Vault"
    BODY: ClassVar[struct.Struct] = struct.Struct("<B")
    SPACE: ClassVar[int] = DISCRIMINATOR_LENGTH + 1

    def __post_init__(self):
        Validators.validate_u8(self.bump, "bump").raise_if_invalid()

    def pack(self) -> bytes:
        return account_discriminator(self.TYPE_NAME) + self.BODY.pack(self.bump)

    @classmethod
    def unpack(cls, data: bytes) -> 'VaultAccount':
        body = _split(data, cls.TYPE_NAME, cls.SPACE)
        (bump,) = cls.BODY.unpack(body)
        return cls(bump=bump)


# =============================================================================
# SWAP RECORD
# =============================================================================

@dataclass(frozen=True)
class SwapRecord:
    """
    Per-swap record binding a commitment digest to a release.

    The digest is carried as metadata; nothing recomputes it unless a
    settlement verifier is configured.
    """
    proof_digest: bytes
    output_asset: Pubkey
    output_amount: int
    recipient: Pubkey
    executed: bool = False

    TYPE_NAME: ClassVar[str] = "SwapResult"
    BODY: ClassVar[struct.Struct] = struct.Struct("<32s32sQ32sB")
    SPACE: ClassVar[int] = DISCRIMINATOR_LENGTH + 32 + 32 + 8 + 32 + 1

    def __post_init__(self):
        digest = Validators.validate_bytes32(self.proof_digest, "proof_digest").unwrap()
        object.__setattr__(self, "proof_digest", digest)
        Validators.validate_u64(self.output_amount, "output_amount").raise_if_invalid()

    def pack(self) -> bytes:
        return account_discriminator(self.TYPE_NAME) + self.BODY.pack(
            self.proof_digest,
            self.output_asset.raw,
            self.output_amount,
            self.recipient.raw,
            1 if self.executed else 0,
        )

    @classmethod
    def unpack(cls, data: bytes) -> 'SwapRecord':
        body = _split(data, cls.TYPE_NAME, cls.SPACE)
        digest, asset, amount, recipient, executed = cls.BODY.unpack(body)
        if executed not in (0, 1):
            raise AccountLayoutError(f"Invalid bool byte for executed: {executed}")
        return cls(
            proof_digest=digest,
            output_asset=Pubkey(asset),
            output_amount=amount,
            recipient=Pubkey(recipient),
            executed=bool(executed),
        )

    def mark_executed(self) -> 'SwapRecord':
        return replace(self, executed=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof_digest": self.proof_digest.hex(),
            "output_asset": self.output_asset.to_base58(),
            "output_amount": self.output_amount,
            "recipient": self.recipient.to_base58(),
            "executed": self.executed,
        }
