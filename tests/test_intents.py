"""
Intent queue tests: ordering, lifecycle, file persistence and relayer
processing.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import json
import threading

import pytest

from swapvault.backends import VerifiableBackend
from swapvault.commitment import SwapParameters, compute_commitment
from swapvault.errors import IntentQueueError
from swapvault.identity import Pubkey
from swapvault.intents import IntentQueue, IntentStatus
from swapvault.prover import ProofGenerator
from swapvault.receipt import ExecutorKey
from swapvault.relayer import Relayer
from swapvault.security import RelayerAllowList
from swapvault.swap import SwapController

from tests.helpers import PROGRAM_ID, SOL_MINT, USDC_MINT


def terms(output_amount=950_000):
    return SwapParameters(1_000_000, output_amount, SOL_MINT, USDC_MINT, Pubkey(b"\x03" * 32))


@pytest.fixture
def queue_path(tmp_path):
    return tmp_path / "intent_queue.json"


@pytest.fixture
def prover():
    backend = VerifiableBackend(
        executor_key=ExecutorKey.from_seed(b"\x5a" * 32), isolation="thread", timeout_seconds=10.0
    )
    return ProofGenerator(backend)


# =============================================================================
# QUEUE
# =============================================================================

class TestIntentQueue:
    def test_fifo(self):
        queue = IntentQueue()
        first = queue.enqueue(terms(1), intent_id="a")
        queue.enqueue(terms(2), intent_id="b")

        assert queue.peek() == first
        assert len(queue) == 2
        assert queue.dequeue().intent_id == "a"
        assert queue.dequeue().intent_id == "b"
        assert queue.dequeue() is None
        assert queue.peek() is None

    def test_generated_ids_are_unique(self):
        queue = IntentQueue()
        ids = {queue.enqueue(terms()).intent_id for _ in range(20)}
        assert len(ids) == 20

    def test_duplicate_id_rejected(self):
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")
        with pytest.raises(IntentQueueError):
            queue.enqueue(terms(), intent_id="a")
        assert len(queue) == 1

    def test_remove_and_clear(self):
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")
        queue.enqueue(terms(), intent_id="b")

        assert queue.remove("a") is True
        assert queue.remove("a") is False
        assert [i.intent_id for i in queue.all()] == ["b"]
        queue.clear()
        assert len(queue) == 0


class TestIntentLifecycle:
    def test_claim_marks_processing(self):
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")
        queue.enqueue(terms(), intent_id="b")

        claimed = queue.claim_next()
        assert claimed.intent_id == "a"
        assert claimed.status is IntentStatus.PROCESSING
        assert [i.intent_id for i in queue.pending()] == ["b"]
        assert [i.intent_id for i in queue.processing()] == ["a"]

    def test_outcome_recorded(self):
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")
        queue.claim_next()

        done = queue.update_status("a", IntentStatus.FAILED, error="boom")
        assert done.status is IntentStatus.FAILED
        assert done.error == "boom"
        assert queue.failed() == [done]
        assert queue.get("a") == done

    @pytest.mark.parametrize("start,target", [
        (IntentStatus.PENDING, IntentStatus.COMPLETED),
        (IntentStatus.PROCESSING, IntentStatus.PENDING),
        (IntentStatus.COMPLETED, IntentStatus.FAILED),
    ])
    def test_out_of_order_moves_refused(self, start, target):
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")
        if start is not IntentStatus.PENDING:
            queue.claim_next()
        if start is IntentStatus.COMPLETED:
            queue.update_status("a", IntentStatus.COMPLETED)

        with pytest.raises(IntentQueueError):
            queue.update_status("a", target)
        assert queue.get("a").status is start

    def test_unknown_intent(self):
        with pytest.raises(IntentQueueError):
            IntentQueue().update_status("missing", IntentStatus.PROCESSING)

    def test_claims_are_exclusive(self):
        queue = IntentQueue()
        for n in range(40):
            queue.enqueue(terms(), intent_id=f"i{n}")
        claimed = []
        lock = threading.Lock()

        def worker():
            while True:
                intent = queue.claim_next()
                if intent is None:
                    return
                with lock:
                    claimed.append(intent.intent_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(claimed) == sorted(f"i{n}" for n in range(40))


# =============================================================================
# PERSISTENCE
# =============================================================================

class TestPersistence:
    def test_survives_reload(self, queue_path):
        queue = IntentQueue(queue_path)
        queue.enqueue(terms(1), intent_id="a")
        queue.enqueue(terms(2), intent_id="b")
        queue.claim_next()
        queue.update_status("a", IntentStatus.FAILED, error="UnauthorizedRelayer: refused")

        reloaded = IntentQueue(queue_path)
        assert reloaded.all() == queue.all()
        assert reloaded.get("a").error == "UnauthorizedRelayer: refused"
        assert reloaded.get("b").params == terms(2)

    def test_file_is_plain_json(self, queue_path):
        IntentQueue(queue_path).enqueue(terms(), intent_id="a")

        data = json.loads(queue_path.read_text())
        assert data[0]["intent_id"] == "a"
        assert data[0]["status"] == "pending"
        assert data[0]["params"] == terms().to_dict()
        assert not queue_path.with_name(queue_path.name + ".tmp").exists()

    def test_dequeue_persists(self, queue_path):
        queue = IntentQueue(queue_path)
        queue.enqueue(terms(), intent_id="a")
        queue.dequeue()
        assert IntentQueue(queue_path).all() == []

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps({"intent_id": "a"}),
        json.dumps([{"intent_id": "a", "status": "lost", "created_at": "", "params": {}}]),
    ])
    def test_bad_file_refused(self, queue_path, content):
        queue_path.write_text(content)
        with pytest.raises(IntentQueueError):
            IntentQueue(queue_path)
        assert queue_path.read_text() == content

    def test_from_config(self, queue_path, monkeypatch):
        IntentQueue(queue_path).enqueue(terms(), intent_id="a")
        monkeypatch.setenv("SWAPVAULT_INTENT_QUEUE", str(queue_path))

        assert [i.intent_id for i in IntentQueue.from_config().all()] == ["a"]

    def test_from_config_defaults_to_memory(self):
        assert IntentQueue.from_config().path is None


# =============================================================================
# RELAYER PROCESSING
# =============================================================================

class TestRelayerProcessing:
    def test_nothing_pending(self, controller, prover):
        assert Relayer(Pubkey.new_unique(), prover, controller).process_next(IntentQueue()) is None

    def test_completed_intent_carries_registration(self, controller, prover, queue_path):
        queue = IntentQueue(queue_path)
        queue.enqueue(terms(), intent_id="a")

        done = Relayer(Pubkey.new_unique(), prover, controller).process_next(queue)
        assert done.status is IntentStatus.COMPLETED
        assert done.digest == compute_commitment(terms()).hex()
        assert done.verified is True

        record = controller.get_record(Pubkey.from_base58(done.swap_id))
        assert record.output_amount == 950_000
        assert IntentQueue(queue_path).get("a").swap_id == done.swap_id

    def test_refused_registration_marks_failed(self, ledger, vault, prover):
        allowed = Pubkey.new_unique()
        controller = SwapController(
            ledger, PROGRAM_ID, vault.grant_release(), registration=RelayerAllowList([allowed])
        )
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")

        done = Relayer(Pubkey.new_unique(), prover, controller).process_next(queue)
        assert done.status is IntentStatus.FAILED
        assert done.error.startswith("UnauthorizedRelayer")
        assert controller.pending_swaps() == []

    def test_unexpected_error_marks_failed_and_propagates(self, controller, prover, monkeypatch):
        relayer = Relayer(Pubkey.new_unique(), prover, controller)
        queue = IntentQueue()
        queue.enqueue(terms(), intent_id="a")

        def broken(params, swap_id=None):
            raise RuntimeError("disk full")

        monkeypatch.setattr(relayer, "register_swap", broken)
        with pytest.raises(RuntimeError):
            relayer.process_next(queue)
        assert queue.get("a").status is IntentStatus.FAILED
        assert queue.get("a").error == "RuntimeError: disk full"

    def test_process_pending_drains_in_order(self, controller, prover):
        queue = IntentQueue()
        for n in range(3):
            queue.enqueue(terms(100 + n), intent_id=f"i{n}")

        done = Relayer(Pubkey.new_unique(), prover, controller).process_pending(queue)
        assert [i.intent_id for i in done] == ["i0", "i1", "i2"]
        assert all(i.status is IntentStatus.COMPLETED for i in done)
        assert len(controller.pending_swaps()) == 3
