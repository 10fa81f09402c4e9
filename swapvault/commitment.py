"""
SWAPVAULT Commitment Function

Pure mapping from swap parameters to a 32-byte digest:

    SHA256( u64_le(input_amount) || u64_le(output_amount)
            || input_asset[32] || output_asset[32] || recipient[32] )

The 112-byte preimage layout is load-bearing. Existing on-ledger records hold
digests computed over exactly these bytes in exactly this order.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import Any, Dict, Union

from swapvault.hardening import Validators
from swapvault.identity import Pubkey


PREIMAGE = struct.Struct("<QQ32s32s32s")
PREIMAGE_LENGTH = PREIMAGE.size  # 112


@dataclass(frozen=True)
class SwapParameters:
    """
    Off-ledger swap terms. Never stored on the ledger.

    Only representability is checked here (u64 range, 32-byte identities).
    Semantic checks (non-zero amounts, distinct assets) belong to the guest
    program, not to the parameters themselves.
    """
    input_amount: int
    output_amount: int
    input_asset: Pubkey
    output_asset: Pubkey
    recipient: Pubkey

    def __post_init__(self):
        Validators.validate_u64(self.input_amount, "input_amount").raise_if_invalid()
        Validators.validate_u64(self.output_amount, "output_amount").raise_if_invalid()
        for name in ("input_asset", "output_asset", "recipient"):
            object.__setattr__(self, name, Pubkey.parse(getattr(self, name)))

    def encode(self) -> bytes:
        """Canonical 112-byte preimage."""
        return PREIMAGE.pack(
            self.input_amount,
            self.output_amount,
            self.input_asset.raw,
            self.output_asset.raw,
            self.recipient.raw,
        )

    @classmethod
    def decode(cls, data: bytes) -> 'SwapParameters':
        if len(data) != PREIMAGE_LENGTH:
            raise ValueError(f"Expected {PREIMAGE_LENGTH} bytes, got {len(data)}")
        input_amount, output_amount, input_asset, output_asset, recipient = PREIMAGE.unpack(data)
        return cls(
            input_amount=input_amount,
            output_amount=output_amount,
            input_asset=Pubkey(input_asset),
            output_asset=Pubkey(output_asset),
            recipient=Pubkey(recipient),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_amount": self.input_amount,
            "output_amount": self.output_amount,
            "input_asset": self.input_asset.to_base58(),
            "output_asset": self.output_asset.to_base58(),
            "recipient": self.recipient.to_base58(),
        }


def commitment_digest(preimage: bytes) -> bytes:
    """Hash a canonical preimage."""
    return hashlib.sha256(preimage).digest()


def compute_commitment(params: Union[SwapParameters, bytes]) -> bytes:
    """Commitment digest for params (or for an already-encoded preimage)."""
    preimage = params.encode() if isinstance(params, SwapParameters) else bytes(params)
    return commitment_digest(preimage)
