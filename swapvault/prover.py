"""
SWAPVAULT Proof Generator

Orchestrates commitment generation over the two backends:

    1. Try the verifiable backend (isolated, bounded, attested).
    2. On any failure (disabled, guest panic, timeout, bad receipt) fall
       back to the direct backend and continue without a receipt.
    3. When the verifiable path succeeded and the cross-check is enabled,
       recompute directly and confirm the digests are identical. A
       mismatch raises BackendDivergence, the one error the fallback never
       absorbs.

Each call logs exactly one diagnostic record carrying `verified` and
`backend`, and is recorded as a tracing span. Calls share no state.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from swapvault.backends import CommitmentBackend, DirectBackend, VerifiableBackend
from swapvault.commitment import SwapParameters
from swapvault.errors import BackendDivergence, BackendUnavailable
from swapvault.hardening import CryptoUtils
from swapvault.observability import Layer, get_logger, get_tracer
from swapvault.receipt import ExecutorKey, Receipt
from swapvault.resilience import Fallback


logger = get_logger("proof_generator", Layer.PROVER)


@dataclass(frozen=True)
class ProofResult:
    """Digest plus how it was obtained."""
    digest: bytes
    verified: bool
    backend: str
    receipt: Optional[Receipt] = None
    fallback_reason: str = ""

    @property
    def digest_hex(self) -> str:
        return self.digest.hex()

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "digest": self.digest_hex,
            "verified": self.verified,
            "backend": self.backend,
        }
        if self.receipt is not None:
            d["receipt"] = self.receipt.to_dict()
        if self.fallback_reason:
            d["fallback_reason"] = self.fallback_reason
        return d


@dataclass
class _Attempt:
    """Per-call scratch state shared between primary and fallback paths."""
    failures: List[str] = field(default_factory=list)


class ProofGenerator:
    """
    Verifiable-first, direct-fallback commitment generation.

    Example:
        prover = ProofGenerator(VerifiableBackend(isolation="thread"))
        result = prover.generate(params)
        if not result.verified:
            ...  # propagate the downgrade to consumers
    """

    def __init__(
        self,
        verifiable: Optional[CommitmentBackend] = None,
        direct: Optional[CommitmentBackend] = None,
        cross_check: bool = True,
    ):
        self.verifiable = verifiable
        self.direct = direct or DirectBackend()
        self.cross_check = cross_check

    @classmethod
    def from_config(cls, executor_key: Optional[ExecutorKey] = None) -> 'ProofGenerator':
        from swapvault.config import get_config

        cfg = get_config().prover
        verifiable = VerifiableBackend(
            executor_key=executor_key,
            isolation=cfg.isolation.get(),
            timeout_seconds=cfg.timeout_seconds.get(),
            enabled=cfg.verifiable_enabled.get(),
        )
        return cls(verifiable=verifiable, cross_check=cfg.cross_check.get())

    def generate(self, params: SwapParameters) -> ProofResult:
        attempt = _Attempt()
        start = time.monotonic()

        with get_tracer().span("proof.generate", Layer.PROVER) as span:
            fallback = Fallback(
                fallback_func=lambda: self._direct(params),
                exceptions=(Exception,),
                on_fallback=lambda e: self._record_failure(attempt, e),
            )
            result = fallback.execute(lambda: self._verifiable(params))
            if attempt.failures:
                result = replace(result, fallback_reason="; ".join(attempt.failures))
            span.set_attribute("backend", result.backend)
            span.set_attribute("verified", result.verified)

            if self.cross_check and result.verified:
                self._check_equivalence(params, result.digest)

        duration_ms = (time.monotonic() - start) * 1000
        if result.verified:
            logger.info(
                "commitment produced by verifiable backend",
                operation="generate",
                duration_ms=duration_ms,
                verified=True,
                backend=result.backend,
                digest=result.digest_hex,
            )
        else:
            logger.warning(
                "commitment produced without attestation",
                operation="generate",
                duration_ms=duration_ms,
                verified=False,
                backend=result.backend,
                digest=result.digest_hex,
                reason=result.fallback_reason,
            )
        return result

    def _verifiable(self, params: SwapParameters) -> ProofResult:
        if self.verifiable is None:
            raise BackendUnavailable("No verifiable backend configured")
        digest, receipt = self.verifiable.commit(params)
        return ProofResult(
            digest=digest,
            verified=receipt is not None,
            backend=self.verifiable.name,
            receipt=receipt,
        )

    def _direct(self, params: SwapParameters) -> ProofResult:
        digest, _ = self.direct.commit(params)
        return ProofResult(
            digest=digest,
            verified=False,
            backend=self.direct.name,
        )

    def _record_failure(self, attempt: _Attempt, error: BaseException) -> None:
        attempt.failures.append(f"{type(error).__name__}: {error}")

    def _check_equivalence(self, params: SwapParameters, digest: bytes) -> None:
        expected, _ = self.direct.commit(params)
        if not CryptoUtils.secure_compare(expected, digest):
            logger.error(
                "backends disagree on commitment",
                error_code=str(BackendDivergence.code),
                operation="cross_check",
                verifiable=digest.hex(),
                direct=expected.hex(),
            )
            raise BackendDivergence(verifiable=digest.hex(), direct=expected.hex())
