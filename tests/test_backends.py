"""
Commitment backend tests.

The two backends must agree on every input the guest accepts, and must
disagree on acceptance for degenerate inputs: the direct backend hashes
them, the verifiable backend refuses them. Both halves are asserted here.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import threading

import pytest

from swapvault import guest
from swapvault.backends import DirectBackend, VerifiableBackend
from swapvault.commitment import SwapParameters, compute_commitment
from swapvault.errors import AttestationError, BackendUnavailable, GuestPanic, ProverTimeout
from swapvault.hardening import U64_MAX
from swapvault.identity import Pubkey
from swapvault.receipt import ExecutorKey, Receipt


A = Pubkey(b"\x0a" * 32)
B = Pubkey(b"\x0b" * 32)
R = Pubkey(b"\x0c" * 32)

VALID = [
    SwapParameters(1_000_000, 950_000, A, B, R),
    SwapParameters(1, 1, A, B, R),
    SwapParameters(U64_MAX, U64_MAX, B, A, A),
    SwapParameters(42, 7, Pubkey.default(), B, Pubkey.default()),
]

DEGENERATE = [
    SwapParameters(0, 950_000, A, B, R),
    SwapParameters(1_000_000, 0, A, B, R),
    SwapParameters(1_000_000, 950_000, A, A, R),
]


@pytest.fixture
def verifiable():
    return VerifiableBackend(
        executor_key=ExecutorKey.from_seed(b"\x07" * 32),
        isolation="thread",
        timeout_seconds=5.0,
    )


# =============================================================================
# EQUIVALENCE
# =============================================================================

class TestBackendEquivalence:
    """Both backends produce the same digest for accepted inputs."""

    @pytest.mark.parametrize("p", VALID)
    def test_same_digest(self, verifiable, p):
        direct_digest, direct_receipt = DirectBackend().commit(p)
        verified_digest, receipt = verifiable.commit(p)

        assert verified_digest == direct_digest == compute_commitment(p)
        assert direct_receipt is None
        assert receipt is not None
        assert receipt.journal == verified_digest


class TestBackendDivergence:
    """Direct hashes degenerate inputs; verifiable rejects them."""

    @pytest.mark.parametrize("p", DEGENERATE)
    def test_direct_accepts(self, p):
        digest, receipt = DirectBackend().commit(p)
        assert digest == compute_commitment(p)
        assert receipt is None

    @pytest.mark.parametrize("p", DEGENERATE)
    def test_verifiable_rejects(self, verifiable, p):
        with pytest.raises(GuestPanic):
            verifiable.commit(p)


# =============================================================================
# VERIFIABLE BACKEND
# =============================================================================

class TestVerifiableBackend:
    """Isolation, time bounds and receipts."""

    def test_receipt_binds_image_and_key(self, verifiable):
        _, receipt = verifiable.commit(VALID[0])
        assert receipt.image_id == guest.IMAGE_ID
        assert receipt.executor_key == verifiable.executor_key.public_bytes
        receipt.verify(guest.IMAGE_ID, trusted_keys=[verifiable.executor_key.public_bytes])

    def test_receipt_survives_dict_form(self, verifiable):
        _, receipt = verifiable.commit(VALID[0])
        restored = Receipt.from_dict(receipt.to_dict())
        assert restored == receipt
        restored.verify(guest.IMAGE_ID)

    def test_disabled_backend_is_unavailable(self):
        backend = VerifiableBackend(isolation="thread", enabled=False)
        with pytest.raises(BackendUnavailable):
            backend.commit(VALID[0])

    def test_untrusted_executor_key_rejected(self):
        backend = VerifiableBackend(
            isolation="thread",
            trusted_keys=[ExecutorKey.generate().public_bytes],
        )
        with pytest.raises(AttestationError):
            backend.commit(VALID[0])

    def test_hung_guest_times_out(self, monkeypatch):
        release = threading.Event()

        def hang(payload):
            release.wait(5)
            return b""

        monkeypatch.setattr(guest, "execute", hang)
        backend = VerifiableBackend(isolation="thread", timeout_seconds=0.05)
        try:
            with pytest.raises(ProverTimeout):
                backend.commit(VALID[0])
        finally:
            release.set()

    def test_journal_of_wrong_size_rejected(self, monkeypatch):
        monkeypatch.setattr(guest, "execute", lambda payload: b"\x00" * 31)
        backend = VerifiableBackend(isolation="thread")
        with pytest.raises(AttestationError):
            backend.commit(VALID[0])

    def test_invalid_settings_rejected(self):
        with pytest.raises(ValueError):
            VerifiableBackend(isolation="enclave")
        with pytest.raises(ValueError):
            VerifiableBackend(timeout_seconds=0)

    @pytest.mark.slow
    def test_process_isolation_matches_direct(self):
        backend = VerifiableBackend(isolation="process", timeout_seconds=60.0)
        digest, receipt = backend.commit(VALID[0])
        assert digest == compute_commitment(VALID[0])
        assert receipt is not None

    @pytest.mark.slow
    def test_process_isolation_propagates_guest_panic(self):
        backend = VerifiableBackend(isolation="process", timeout_seconds=60.0)
        with pytest.raises(GuestPanic) as exc:
            backend.commit(DEGENERATE[0])
        assert exc.value.message == "Input amount must be positive"
