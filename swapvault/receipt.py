"""swapvault.receipt

Attestation receipts for verifiable guest execution.

Profile / invariants:
- A receipt binds a journal (the guest's committed output) to an image id
  (the guest program identity).
- The seal is a raw Ed25519 signature by the executor key over
  `RECEIPT_DOMAIN || image_id || journal`, encoded base64url (no padding)
  in the dict form.
- For the swap commitment guest the journal is exactly the 32-byte digest.
- The receipt proves that *some* input made the guest commit this journal.
  It does not disclose or bind the swap parameters themselves.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from jsonschema import Draft202012Validator

from swapvault.errors import AttestationError
from swapvault.hardening import DIGEST_LENGTH, CryptoUtils


RECEIPT_DOMAIN = b"swapvault-receipt-v1"

_B64URL = r"^[A-Za-z0-9_-]+$"
_HEX64 = r"^[a-f0-9]{64}$"

RECEIPT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "swapvault receipt",
    "type": "object",
    "required": ["image_id", "journal", "seal", "executor_key"],
    "additionalProperties": False,
    "properties": {
        "image_id": {"type": "string", "pattern": _HEX64},
        "journal": {"type": "string", "pattern": r"^([a-f0-9]{2})*$"},
        "seal": {"type": "string", "pattern": _B64URL},
        "executor_key": {"type": "string", "pattern": _HEX64},
    },
}

_receipt_validator = Draft202012Validator(RECEIPT_SCHEMA)


def b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    pad = "=" * ((4 - len(s) % 4) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("ascii"))


def signing_input(image_id: bytes, journal: bytes) -> bytes:
    return RECEIPT_DOMAIN + image_id + journal


# ---------------------------------------------------------------------------
# Executor key
# ---------------------------------------------------------------------------


class ExecutorKey:
    """Ed25519 key the isolated executor seals receipts with."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key

    @classmethod
    def generate(cls) -> 'ExecutorKey':
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> 'ExecutorKey':
        if len(seed) != 32:
            raise ValueError("Ed25519 seed must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def public_bytes(self) -> bytes:
        return self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def seal(self, image_id: bytes, journal: bytes) -> 'Receipt':
        signature = self._private_key.sign(signing_input(image_id, journal))
        return Receipt(
            image_id=image_id,
            journal=journal,
            seal=signature,
            executor_key=self.public_bytes,
        )


# ---------------------------------------------------------------------------
# Receipt
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Receipt:
    image_id: bytes
    journal: bytes
    seal: bytes
    executor_key: bytes

    @property
    def digest(self) -> bytes:
        """The committed digest. Raises if the journal is not one digest."""
        if len(self.journal) != DIGEST_LENGTH:
            raise AttestationError(
                f"Journal must hold one {DIGEST_LENGTH}-byte digest, got {len(self.journal)} bytes"
            )
        return self.journal

    def verify(
        self,
        image_id: bytes,
        trusted_keys: Optional[Iterable[bytes]] = None,
    ) -> None:
        """
        Check the seal and the image binding.

        trusted_keys restricts which executor keys are accepted; None accepts
        any key whose signature verifies (self-attested, as a local executor
        produces). Raises AttestationError on any mismatch.
        """
        if not CryptoUtils.secure_compare(self.image_id, image_id):
            raise AttestationError("Receipt was produced by a different guest image")

        if trusted_keys is not None:
            if not any(CryptoUtils.secure_compare(self.executor_key, k) for k in trusted_keys):
                raise AttestationError("Receipt sealed by an untrusted executor key")

        try:
            public_key = Ed25519PublicKey.from_public_bytes(self.executor_key)
            public_key.verify(self.seal, signing_input(self.image_id, self.journal))
        except (InvalidSignature, ValueError) as e:
            raise AttestationError(f"Receipt seal does not verify: {type(e).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_id": self.image_id.hex(),
            "journal": self.journal.hex(),
            "seal": b64url_encode(self.seal),
            "executor_key": self.executor_key.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Receipt':
        errors = sorted(_receipt_validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            where = "/".join(str(p) for p in first.path) or "<root>"
            raise AttestationError(f"Malformed receipt at {where}: {first.message}")
        return cls(
            image_id=bytes.fromhex(data["image_id"]),
            journal=bytes.fromhex(data["journal"]),
            seal=b64url_decode(data["seal"]),
            executor_key=bytes.fromhex(data["executor_key"]),
        )
