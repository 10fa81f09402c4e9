"""
SWAPVAULT Security Capabilities

Pluggable checks injected into the Swap Controller:

1. Registration policy - who may create a SwapRecord
       OpenRegistration      any signer (current behavior)
       RelayerAllowList      only configured relayer identities
2. Settlement verifier - what must hold before a release
       TrustRegistrant       nothing beyond the record itself (current behavior)
       AttestationVerifier   a receipt from the expected guest image, sealed
                             by a trusted executor, committing exactly the
                             stored digest
3. Audit logging - tamper-evident, hash-chained trail of swap events

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol, Tuple

from swapvault import guest
from swapvault.errors import AttestationError, InvalidProofHash, UnauthorizedRelayer
from swapvault.hardening import AtomicCounter, CryptoUtils
from swapvault.identity import Pubkey
from swapvault.layout import SwapRecord
from swapvault.observability import Layer, get_logger
from swapvault.receipt import Receipt


logger = get_logger("security", Layer.SECURITY)


# =============================================================================
# REGISTRATION POLICY
# =============================================================================

class RegistrationPolicy(Protocol):
    name: str

    def authorize(self, relayer: Pubkey) -> None:
        """Raise UnauthorizedRelayer when relayer may not register swaps."""
        ...


class OpenRegistration:
    """Any party with ledger write access may register."""

    name = "open"

    def authorize(self, relayer: Pubkey) -> None:
        return None


class RelayerAllowList:
    """Registration limited to a fixed set of relayer identities."""

    name = "allowlist"

    def __init__(self, relayers: Iterable[Pubkey]):
        self._relayers: FrozenSet[Pubkey] = frozenset(Pubkey.parse(r) for r in relayers)

    @property
    def relayers(self) -> FrozenSet[Pubkey]:
        return self._relayers

    def authorize(self, relayer: Pubkey) -> None:
        if relayer not in self._relayers:
            logger.warning(
                "registration refused",
                operation="authorize",
                error_code=str(UnauthorizedRelayer.code),
                relayer=str(relayer),
            )
            raise UnauthorizedRelayer(relayer=relayer)


# =============================================================================
# SETTLEMENT VERIFIER
# =============================================================================

class SettlementVerifier(Protocol):
    name: str

    def verify(self, record: SwapRecord, receipt: Optional[Receipt]) -> None:
        """Raise InvalidProofHash when the record must not settle."""
        ...


class TrustRegistrant:
    """The stored digest is metadata only; nothing is checked."""

    name = "trust"

    def verify(self, record: SwapRecord, receipt: Optional[Receipt]) -> None:
        return None


class AttestationVerifier:
    """
    Require an attestation receipt binding the stored digest.

    The receipt must come from the swap commitment guest image, be sealed by
    one of trusted_keys, and commit a journal equal to record.proof_digest.
    """

    name = "attestation"

    def __init__(self, trusted_keys: Iterable[bytes], image_id: bytes = guest.IMAGE_ID):
        self.trusted_keys: Tuple[bytes, ...] = tuple(bytes(k) for k in trusted_keys)
        self.image_id = image_id

    def verify(self, record: SwapRecord, receipt: Optional[Receipt]) -> None:
        if receipt is None:
            raise InvalidProofHash("Settlement requires an attestation receipt")
        try:
            receipt.verify(self.image_id, trusted_keys=self.trusted_keys)
            digest = receipt.digest
        except AttestationError as e:
            raise InvalidProofHash(f"Receipt rejected: {e.message}")
        if not CryptoUtils.secure_compare(digest, record.proof_digest):
            raise InvalidProofHash(
                "Receipt commits a different digest",
                stored=record.proof_digest.hex(),
                attested=digest.hex(),
            )


# =============================================================================
# AUDIT LOGGING
# =============================================================================

class AuditEventType(Enum):
    """Types of audit events."""
    VAULT_INITIALIZED = "vault_initialized"
    DEPOSIT = "deposit"
    SWAP_REGISTERED = "swap_registered"
    SWAP_SETTLED = "swap_settled"
    WITHDRAW_REJECTED = "withdraw_rejected"
    REGISTRATION_DENIED = "registration_denied"


@dataclass
class AuditEvent:
    """An audit log entry."""
    event_id: str
    event_type: AuditEventType
    timestamp: str
    actor: str
    resource_id: str
    outcome: str  # success, failure
    details: Dict[str, Any] = field(default_factory=dict)

    # Tamper evidence
    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self._compute_digest()

    def _compute_digest(self) -> str:
        content = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "resource_id": self.resource_id,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "resource_id": self.resource_id,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
            "event_digest": self.event_digest,
        }


class AuditLogger:
    """
    Tamper-evident audit logger.

    Each event includes a hash chain linking to the previous event,
    making it possible to detect log tampering.
    """

    def __init__(self):
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()
        self._event_counter = AtomicCounter(0)

    def log(
        self,
        event_type: AuditEventType,
        actor: Any,
        resource_id: Any,
        outcome: str,
        **details: Any,
    ) -> AuditEvent:
        """Log an audit event."""
        with self._lock:
            event_num = self._event_counter.increment()
            previous_digest = self._events[-1].event_digest if self._events else None

            event = AuditEvent(
                event_id=f"evt-{event_num:012d}",
                event_type=event_type,
                timestamp=datetime.now(timezone.utc).isoformat(),
                actor=str(actor),
                resource_id=str(resource_id),
                outcome=outcome,
                details={k: str(v) for k, v in details.items()},
                previous_event_digest=previous_digest,
            )
            self._events.append(event)
            return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the audit log chain integrity.

        Returns (valid, first_invalid_index).
        """
        with self._lock:
            for i, event in enumerate(self._events):
                if event._compute_digest() != event.event_digest:
                    return (False, i)
                if i > 0:
                    expected_prev = self._events[i - 1].event_digest
                    if event.previous_event_digest != expected_prev:
                        return (False, i)
            return (True, None)

    def get_events(
        self,
        actor: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        resource_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events."""
        with self._lock:
            events = list(self._events)

        if actor:
            events = [e for e in events if e.actor == actor]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if resource_id:
            events = [e for e in events if e.resource_id == resource_id]

        return events[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


# =============================================================================
# FACTORIES
# =============================================================================

def registration_policy_from_config() -> RegistrationPolicy:
    from swapvault.config import get_config

    cfg = get_config().security
    if cfg.registration.get() == "allowlist":
        return RelayerAllowList(cfg.relayer_identities())
    return OpenRegistration()


def settlement_verifier_from_config(trusted_keys: Iterable[bytes] = ()) -> SettlementVerifier:
    """Configured executor keys are trusted alongside trusted_keys."""
    from swapvault.config import get_config

    cfg = get_config().security
    if cfg.settlement.get() == "attestation":
        return AttestationVerifier([*trusted_keys, *cfg.executor_keys()])
    return TrustRegistrant()
