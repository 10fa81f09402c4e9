"""
SWAPVAULT Relayer

Off-ledger party that turns agreed swap terms into a registered swap:
prove the commitment, then submit it with the release terms. Terms arrive
either directly (register_swap) or as queued intents (process_next).

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from swapvault.commitment import SwapParameters
from swapvault.errors import SwapVaultError
from swapvault.identity import Pubkey
from swapvault.intents import IntentQueue, IntentStatus, SwapIntent
from swapvault.observability import Layer, get_correlation_id, get_logger
from swapvault.prover import ProofGenerator, ProofResult
from swapvault.receipt import Receipt
from swapvault.swap import SwapController


logger = get_logger("relayer", Layer.RELAYER)


@dataclass(frozen=True)
class SwapTicket:
    """What a relayer hands back to the parties after registration."""
    swap_id: Pubkey
    digest: bytes
    verified: bool
    backend: str
    receipt: Optional[Receipt] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "swap_id": str(self.swap_id),
            "digest": self.digest.hex(),
            "verified": self.verified,
            "backend": self.backend,
        }
        if self.receipt is not None:
            d["receipt"] = self.receipt.to_dict()
        return d


class Relayer:
    def __init__(self, identity: Pubkey, prover: ProofGenerator, controller: SwapController):
        self.identity = identity
        self.prover = prover
        self.controller = controller

    def prove(self, params: SwapParameters) -> ProofResult:
        return self.prover.generate(params)

    def register_swap(
        self,
        params: SwapParameters,
        swap_id: Optional[Pubkey] = None,
    ) -> SwapTicket:
        """
        Prove params and register the resulting digest.

        The record releases params.output_amount of params.output_asset to
        params.recipient. An unverified digest is still registered; the
        ticket carries verified=False so consumers can tell.
        """
        proof = self.prove(params)
        swap_id = self.controller.submit_proof(
            relayer=self.identity,
            proof_digest=proof.digest,
            output_asset=params.output_asset,
            output_amount=params.output_amount,
            recipient=params.recipient,
            swap_id=swap_id,
        )
        logger.info(
            "swap relayed",
            operation="register_swap",
            correlation_id=get_correlation_id(),
            swap_id=str(swap_id),
            verified=proof.verified,
        )
        return SwapTicket(
            swap_id=swap_id,
            digest=proof.digest,
            verified=proof.verified,
            backend=proof.backend,
            receipt=proof.receipt,
        )

    def process_next(self, queue: IntentQueue) -> Optional[SwapIntent]:
        """
        Claim the oldest pending intent, register it and record the outcome.

        Returns the finished intent (completed or failed), or None when
        nothing is pending. A SwapVaultError marks the intent failed and is
        not re-raised; any other exception marks it failed and propagates.
        """
        intent = queue.claim_next()
        if intent is None:
            return None

        try:
            ticket = self.register_swap(intent.params)
        except SwapVaultError as e:
            return self._fail(queue, intent, f"{e.name}: {e.message}")
        except Exception as e:
            self._fail(queue, intent, f"{type(e).__name__}: {e}")
            raise

        return queue.update_status(
            intent.intent_id,
            IntentStatus.COMPLETED,
            swap_id=str(ticket.swap_id),
            digest=ticket.digest.hex(),
            verified=ticket.verified,
        )

    def process_pending(self, queue: IntentQueue) -> List[SwapIntent]:
        """Drain every pending intent in arrival order."""
        finished = []
        while True:
            intent = self.process_next(queue)
            if intent is None:
                return finished
            finished.append(intent)

    def _fail(self, queue: IntentQueue, intent: SwapIntent, reason: str) -> SwapIntent:
        logger.warning(
            "intent failed",
            operation="process_next",
            intent_id=intent.intent_id,
            reason=reason,
        )
        return queue.update_status(intent.intent_id, IntentStatus.FAILED, error=reason)
