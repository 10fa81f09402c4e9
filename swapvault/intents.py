"""
SWAPVAULT Intent Queue

Swap intents waiting for a relayer, in arrival order.

    PENDING ──claim──▶ PROCESSING ──▶ COMPLETED
                           │
                           └────────▶ FAILED

A relayer claims the oldest pending intent, proves and registers it, and
records the outcome on the intent. Finished intents stay in the queue until
removed or dequeued so operators can inspect failures.

When the queue has a path, every change is written to that JSON file
(write to a sibling temp file, then replace) and the file is reloaded on
construction. A file that fails INTENT_QUEUE_SCHEMA is refused rather than
silently emptied.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jsonschema import Draft202012Validator

from swapvault.commitment import SwapParameters
from swapvault.errors import IntentQueueError
from swapvault.hardening import InvariantChecker, InvariantViolation
from swapvault.observability import Layer, get_logger


logger = get_logger("intent_queue", Layer.RELAYER)


class IntentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


INTENT_TRANSITIONS = {
    IntentStatus.PENDING.value: (IntentStatus.PROCESSING.value,),
    IntentStatus.PROCESSING.value: (IntentStatus.COMPLETED.value, IntentStatus.FAILED.value),
    IntentStatus.COMPLETED.value: (),
    IntentStatus.FAILED.value: (),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# INTENT
# =============================================================================

@dataclass(frozen=True)
class SwapIntent:
    """Agreed swap terms plus where they are in the relay pipeline."""
    intent_id: str
    params: SwapParameters
    status: IntentStatus = IntentStatus.PENDING
    created_at: str = field(default_factory=_now)
    updated_at: str = ""
    swap_id: str = ""
    digest: str = ""
    verified: Optional[bool] = None
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "intent_id": self.intent_id,
            "params": self.params.to_dict(),
            "status": self.status.value,
            "created_at": self.created_at,
        }
        if self.updated_at:
            d["updated_at"] = self.updated_at
        if self.swap_id:
            d["swap_id"] = self.swap_id
            d["digest"] = self.digest
            d["verified"] = self.verified
        if self.error:
            d["error"] = self.error
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SwapIntent':
        return cls(
            intent_id=data["intent_id"],
            params=SwapParameters(**data["params"]),
            status=IntentStatus(data["status"]),
            created_at=data["created_at"],
            updated_at=data.get("updated_at", ""),
            swap_id=data.get("swap_id", ""),
            digest=data.get("digest", ""),
            verified=data.get("verified"),
            error=data.get("error", ""),
        )


_BASE58 = r"^[1-9A-HJ-NP-Za-km-z]{32,44}$"
_U64 = {"type": "integer", "minimum": 0, "maximum": 2**64 - 1}

INTENT_QUEUE_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "swapvault intent queue",
    "type": "array",
    "items": {
        "type": "object",
        "required": ["intent_id", "params", "status", "created_at"],
        "additionalProperties": False,
        "properties": {
            "intent_id": {"type": "string", "minLength": 1},
            "params": {
                "type": "object",
                "required": [
                    "input_amount", "output_amount", "input_asset", "output_asset", "recipient",
                ],
                "additionalProperties": False,
                "properties": {
                    "input_amount": _U64,
                    "output_amount": _U64,
                    "input_asset": {"type": "string", "pattern": _BASE58},
                    "output_asset": {"type": "string", "pattern": _BASE58},
                    "recipient": {"type": "string", "pattern": _BASE58},
                },
            },
            "status": {"enum": [s.value for s in IntentStatus]},
            "created_at": {"type": "string"},
            "updated_at": {"type": "string"},
            "swap_id": {"type": "string", "pattern": _BASE58},
            "digest": {"type": "string", "pattern": r"^[a-f0-9]{64}$"},
            "verified": {"type": "boolean"},
            "error": {"type": "string"},
        },
    },
}

_queue_validator = Draft202012Validator(INTENT_QUEUE_SCHEMA)


# =============================================================================
# QUEUE
# =============================================================================

class IntentQueue:
    """
    FIFO of swap intents, optionally backed by a JSON file.

    Thread-safe: claim_next hands each pending intent to exactly one caller.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        self._intents: List[SwapIntent] = []
        self._lock = threading.RLock()
        if self.path is not None and self.path.exists():
            self._load()

    @classmethod
    def from_config(cls) -> 'IntentQueue':
        from swapvault.config import get_config

        return cls(get_config().relayer.queue_path.get() or None)

    # -- persistence ---------------------------------------------------------

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise IntentQueueError(f"Cannot read intent queue {self.path}: {e}")

        errors = sorted(_queue_validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            where = "/".join(str(p) for p in first.path) or "<root>"
            raise IntentQueueError(
                f"Invalid intent queue {self.path} at {where}: {first.message}"
            )

        self._intents = [SwapIntent.from_dict(item) for item in data]
        logger.info(
            "intent queue loaded",
            operation="load",
            path=str(self.path),
            intents=len(self._intents),
        )

    def _persist(self) -> None:
        if self.path is None:
            return
        payload = json.dumps([i.to_dict() for i in self._intents], indent=2, ensure_ascii=False)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(payload + "\n", encoding="utf-8")
        tmp.replace(self.path)

    # -- queue operations ----------------------------------------------------

    def enqueue(self, params: SwapParameters, intent_id: Optional[str] = None) -> SwapIntent:
        """Append a pending intent. Raises IntentQueueError on a duplicate id."""
        intent_id = intent_id or f"intent-{uuid.uuid4().hex[:12]}"
        intent = SwapIntent(intent_id=intent_id, params=params)
        with self._lock:
            if self._index(intent.intent_id) is not None:
                raise IntentQueueError("Intent already queued", intent_id=intent_id)
            self._intents.append(intent)
            self._persist()
        logger.info("intent enqueued", operation="enqueue", intent_id=intent.intent_id)
        return intent

    def dequeue(self) -> Optional[SwapIntent]:
        """Remove and return the oldest intent, whatever its status."""
        with self._lock:
            if not self._intents:
                return None
            intent = self._intents.pop(0)
            self._persist()
        logger.info("intent dequeued", operation="dequeue", intent_id=intent.intent_id)
        return intent

    def peek(self) -> Optional[SwapIntent]:
        with self._lock:
            return self._intents[0] if self._intents else None

    def get(self, intent_id: str) -> Optional[SwapIntent]:
        with self._lock:
            index = self._index(intent_id)
            return self._intents[index] if index is not None else None

    def remove(self, intent_id: str) -> bool:
        with self._lock:
            index = self._index(intent_id)
            if index is None:
                return False
            del self._intents[index]
            self._persist()
        logger.info("intent removed", operation="remove", intent_id=intent_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._intents = []
            self._persist()

    def update_status(self, intent_id: str, status: IntentStatus, **outcome: Any) -> SwapIntent:
        """
        Move an intent to status, recording outcome fields (swap_id, digest,
        verified, error) alongside.

        Raises IntentQueueError for an unknown intent or a move the
        lifecycle does not allow.
        """
        with self._lock:
            index = self._index(intent_id)
            if index is None:
                raise IntentQueueError("Unknown intent", intent_id=intent_id)
            current = self._intents[index]
            try:
                InvariantChecker.check_state_transition(
                    current.status.value, status.value, INTENT_TRANSITIONS
                )
            except InvariantViolation as e:
                raise IntentQueueError(str(e), intent_id=intent_id)

            updated = replace(current, status=status, updated_at=_now(), **outcome)
            self._intents[index] = updated
            self._persist()

        logger.info(
            "intent status updated",
            operation="update_status",
            intent_id=intent_id,
            status=status.value,
        )
        return updated

    def claim_next(self) -> Optional[SwapIntent]:
        """Mark the oldest pending intent processing and return it."""
        with self._lock:
            for intent in self._intents:
                if intent.status is IntentStatus.PENDING:
                    return self.update_status(intent.intent_id, IntentStatus.PROCESSING)
        return None

    # -- views ---------------------------------------------------------------

    def by_status(self, status: IntentStatus) -> List[SwapIntent]:
        with self._lock:
            return [i for i in self._intents if i.status is status]

    def pending(self) -> List[SwapIntent]:
        return self.by_status(IntentStatus.PENDING)

    def processing(self) -> List[SwapIntent]:
        return self.by_status(IntentStatus.PROCESSING)

    def failed(self) -> List[SwapIntent]:
        return self.by_status(IntentStatus.FAILED)

    def all(self) -> List[SwapIntent]:
        with self._lock:
            return list(self._intents)

    def __len__(self) -> int:
        with self._lock:
            return len(self._intents)

    def _index(self, intent_id: str) -> Optional[int]:
        for index, intent in enumerate(self._intents):
            if intent.intent_id == intent_id:
                return index
        return None
