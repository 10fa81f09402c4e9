"""
SWAPVAULT Commitment Backends

Two interchangeable implementations of one contract: given SwapParameters,
produce the 32-byte commitment digest.

    VerifiableBackend   Runs the guest program in an isolated executor
                        (a worker process, or a worker thread), under a hard
                        time bound. The guest validates its input before
                        committing. The committed journal is sealed into a
                        Receipt bound to the guest image id and verified
                        before the digest is returned.

    DirectBackend       Computes the commitment in-process. No validation,
                        no receipt. Degenerate parameters (zero amounts,
                        identical assets) are hashed like any others.

For every input the guest accepts, both return the same digest.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import multiprocessing
import time
from typing import Iterable, List, Optional, Protocol, Tuple

from swapvault import guest
from swapvault.commitment import SwapParameters, compute_commitment
from swapvault.errors import BackendUnavailable, ProverTimeout
from swapvault.observability import Layer, get_logger
from swapvault.receipt import ExecutorKey, Receipt
from swapvault.resilience import Timeout


logger = get_logger("backends", Layer.COMMITMENT)

ISOLATION_MODES = ("process", "thread")

BackendResult = Tuple[bytes, Optional[Receipt]]


class CommitmentBackend(Protocol):
    """What the Proof Generator needs from a backend."""

    name: str

    def commit(self, params: SwapParameters) -> BackendResult:
        ...


# =============================================================================
# DIRECT BACKEND
# =============================================================================


class DirectBackend:
    """Plain in-process hashing."""

    name = "direct"

    def commit(self, params: SwapParameters) -> BackendResult:
        return compute_commitment(params), None


# =============================================================================
# VERIFIABLE BACKEND
# =============================================================================


class VerifiableBackend:
    """
    Isolated, attested execution of the guest program.

    Args:
        executor_key: key the executor seals receipts with. A fresh key is
            generated when omitted.
        isolation: "process" runs the guest in a spawned worker process that
            is terminated when the bound elapses; "thread" runs it in a
            worker thread that is abandoned instead.
        timeout_seconds: hard bound on one guest execution.
        enabled: when False every call raises BackendUnavailable.
        trusted_keys: executor keys whose receipts are accepted. Defaults to
            this backend's own key.
    """

    name = "verifiable"

    def __init__(
        self,
        executor_key: Optional[ExecutorKey] = None,
        isolation: str = "process",
        timeout_seconds: float = 300.0,
        enabled: bool = True,
        trusted_keys: Optional[Iterable[bytes]] = None,
    ):
        if isolation not in ISOLATION_MODES:
            raise ValueError(f"Unknown isolation mode: {isolation!r}")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.executor_key = executor_key or ExecutorKey.generate()
        self.isolation = isolation
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled
        self.image_id = guest.IMAGE_ID
        keys: List[bytes] = list(trusted_keys) if trusted_keys is not None else []
        self.trusted_keys = keys or [self.executor_key.public_bytes]

    def commit(self, params: SwapParameters) -> BackendResult:
        if not self.enabled:
            raise BackendUnavailable("Verifiable execution is disabled")

        start = time.monotonic()
        journal = self._execute(params.encode())
        receipt = self.executor_key.seal(self.image_id, journal)
        receipt.verify(self.image_id, trusted_keys=self.trusted_keys)

        logger.debug(
            "guest execution sealed",
            operation="verifiable_commit",
            duration_ms=(time.monotonic() - start) * 1000,
            isolation=self.isolation,
        )
        return receipt.digest, receipt

    def _execute(self, payload: bytes) -> bytes:
        if self.isolation == "thread":
            return Timeout(self.timeout_seconds, name="guest").execute(
                lambda: guest.execute(payload)
            )
        return self._execute_in_process(payload)

    def _execute_in_process(self, payload: bytes) -> bytes:
        ctx = multiprocessing.get_context("spawn")
        try:
            pool = ctx.Pool(processes=1)
        except OSError as e:
            raise BackendUnavailable(f"Cannot start guest executor: {e}")

        try:
            pending = pool.apply_async(guest.execute, (payload,))
            try:
                return pending.get(timeout=self.timeout_seconds)
            except multiprocessing.TimeoutError:
                raise ProverTimeout(
                    f"Guest execution timed out after {self.timeout_seconds}s",
                    operation="guest",
                    timeout_seconds=self.timeout_seconds,
                )
        finally:
            pool.terminate()
            pool.join()
