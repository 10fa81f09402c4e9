"""
SWAPVAULT Guest Program

The logic run inside the isolated executor. It reads the encoded swap
parameters from its input, rejects degenerate swaps, computes the commitment
and commits the digest to its journal. A rejected input panics: the journal
stays empty and no receipt is produced.

The image id names this exact program; receipts are bound to it.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
from typing import List

from swapvault.commitment import SwapParameters, compute_commitment
from swapvault.errors import GuestPanic


GUEST_NAME = "swapvault/guest/swap-commitment"
GUEST_VERSION = 1
IMAGE_ID = hashlib.sha256(f"{GUEST_NAME}@{GUEST_VERSION}".encode()).digest()


class GuestEnv:
    """Input/journal channel between host and guest."""

    def __init__(self, input_bytes: bytes):
        self._input = bytes(input_bytes)
        self._journal: List[bytes] = []

    def read(self) -> SwapParameters:
        try:
            return SwapParameters.decode(self._input)
        except ValueError as e:
            raise GuestPanic(f"Malformed guest input: {e}")

    def commit(self, data: bytes) -> None:
        self._journal.append(bytes(data))

    @property
    def journal(self) -> bytes:
        return b"".join(self._journal)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise GuestPanic(message)


def main(env: GuestEnv) -> None:
    params = env.read()

    _require(params.input_amount > 0, "Input amount must be positive")
    _require(params.output_amount > 0, "Output amount must be positive")
    _require(
        params.input_asset != params.output_asset,
        "Input and output assets must be different",
    )

    env.commit(compute_commitment(params))


def execute(input_bytes: bytes) -> bytes:
    """
    Run the guest over input_bytes and return its journal.

    Module-level so process-based executors can pickle it.
    """
    env = GuestEnv(input_bytes)
    main(env)
    return env.journal
