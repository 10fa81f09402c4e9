"""
Commitment function and guest program tests.

Digest vectors are fixed: they are the values already stored in on-ledger
records, so any change to the preimage layout must break these tests.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import hashlib
import struct

import pytest

from swapvault.commitment import (
    PREIMAGE_LENGTH,
    SwapParameters,
    commitment_digest,
    compute_commitment,
)
from swapvault.errors import GuestPanic
from swapvault.guest import GUEST_NAME, GUEST_VERSION, IMAGE_ID, GuestEnv, execute
from swapvault.hardening import U64_MAX, ValidationErrors
from swapvault.identity import Pubkey


A = Pubkey(b"\x01" * 32)
B = Pubkey(b"\x02" * 32)
R = Pubkey(b"\x03" * 32)


def params(input_amount=1_000_000, output_amount=950_000, input_asset=A, output_asset=B, recipient=R):
    return SwapParameters(
        input_amount=input_amount,
        output_amount=output_amount,
        input_asset=input_asset,
        output_asset=output_asset,
        recipient=recipient,
    )


# =============================================================================
# ENCODING
# =============================================================================

class TestPreimage:
    """Tests for the canonical 112-byte preimage."""

    def test_length(self):
        assert PREIMAGE_LENGTH == 112
        assert len(params().encode()) == 112

    def test_field_order_and_endianness(self):
        encoded = params().encode()
        assert encoded[0:8] == struct.pack("<Q", 1_000_000)
        assert encoded[8:16] == struct.pack("<Q", 950_000)
        assert encoded[16:48] == A.raw
        assert encoded[48:80] == B.raw
        assert encoded[80:112] == R.raw

    def test_decode_inverts_encode(self):
        p = params(input_amount=U64_MAX, output_amount=1)
        assert SwapParameters.decode(p.encode()) == p

    def test_decode_rejects_wrong_length(self):
        with pytest.raises(ValueError):
            SwapParameters.decode(b"\x00" * 111)

    def test_amounts_must_fit_u64(self):
        with pytest.raises(ValidationErrors):
            params(input_amount=U64_MAX + 1)
        with pytest.raises(ValidationErrors):
            params(output_amount=-1)

    def test_identities_accept_base58_and_bytes(self):
        p = params(input_asset=A.to_base58(), output_asset=B.raw)
        assert p.input_asset == A
        assert p.output_asset == B


# =============================================================================
# DIGEST VECTORS
# =============================================================================

class TestCommitmentDigest:
    """Known-answer tests for the commitment digest."""

    def test_reference_vector(self):
        digest = compute_commitment(params())
        assert digest.hex() == "6b2ef9179c85754f6fedaf90b71dd8bc7c2d8f10f21bebc4c5964fce5c649ea9"

    def test_all_zero_vector(self):
        zero = Pubkey.default()
        digest = compute_commitment(params(0, 0, zero, zero, zero))
        assert digest.hex() == "b5fdab78d8947eacc864bfeecb4d2100780e5afe1cd8efafb124887913ac49fa"

    def test_u64_max_vector(self):
        digest = compute_commitment(params(input_amount=U64_MAX, output_amount=1))
        assert digest.hex() == "7757606c93fa9e8551bc975c96e9f6269ba8f1d674eeeefab28dcb87f90f4b80"

    def test_matches_plain_sha256(self):
        p = params()
        assert compute_commitment(p) == hashlib.sha256(p.encode()).digest()
        assert commitment_digest(p.encode()) == compute_commitment(p.encode())

    def test_every_field_is_bound(self):
        base = compute_commitment(params())
        variants = [
            params(input_amount=1_000_001),
            params(output_amount=949_999),
            params(input_asset=R),
            params(output_asset=R),
            params(recipient=A),
        ]
        digests = {compute_commitment(v) for v in variants}
        assert base not in digests
        assert len(digests) == len(variants)

    def test_swapping_assets_changes_digest(self):
        assert compute_commitment(params(input_asset=A, output_asset=B)) != \
            compute_commitment(params(input_asset=B, output_asset=A))


# =============================================================================
# GUEST PROGRAM
# =============================================================================

class TestGuestProgram:
    """Tests for the guest's validation and journal."""

    def test_image_id_names_the_program(self):
        assert IMAGE_ID == hashlib.sha256(f"{GUEST_NAME}@{GUEST_VERSION}".encode()).digest()
        assert IMAGE_ID.hex() == "cba497c20b50c15c167c6f9eb58df3939c9f69b9ef82030d564ab011c6794d3f"

    def test_journal_is_the_digest(self):
        p = params()
        assert execute(p.encode()) == compute_commitment(p)

    @pytest.mark.parametrize("bad, message", [
        (dict(input_amount=0), "Input amount must be positive"),
        (dict(output_amount=0), "Output amount must be positive"),
        (dict(output_asset=A), "Input and output assets must be different"),
    ])
    def test_rejects_degenerate_swaps(self, bad, message):
        with pytest.raises(GuestPanic) as exc:
            execute(params(**bad).encode())
        assert exc.value.message == message

    def test_panic_commits_nothing(self):
        from swapvault import guest

        env = GuestEnv(params(input_amount=0).encode())
        with pytest.raises(GuestPanic):
            guest.main(env)
        assert env.journal == b""

    def test_malformed_input_panics(self):
        with pytest.raises(GuestPanic):
            execute(b"\x00" * 10)
