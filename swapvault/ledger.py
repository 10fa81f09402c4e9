"""
SWAPVAULT Host Ledger

In-process model of the host ledger the swap vault program runs on. It owns
the two things the program treats as external collaborators:

    Account store      address -> (owner program, raw data bytes)
    Asset holdings     holding address -> (mint, owner, u64 amount)

and provides the execution guarantee the program relies on: every
instruction runs inside a transaction that either applies fully or is rolled
back to the exact prior state.

Concurrency Model:
    A transaction declares the addresses it may write. Per-address locks are
    acquired in a fixed (byte) order before the instruction body runs and held
    until commit or rollback, so two transactions touching the same swap
    record are serialized while unrelated ones proceed in parallel.
    A lock entry lives only while some transaction holds or awaits it.

    Writes are journaled per transaction. Rollback restores only the journaled
    entries, which is safe because no other transaction can hold the same
    write locks.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Set,
    Tuple,
)

from swapvault.errors import (
    AccountNotFound,
    AlreadyInitialized,
    ArithmeticOverflow,
    InsufficientFunds,
    InvalidTokenMint,
    MissingAuthority,
    SwapVaultError,
)
from swapvault.hardening import (
    AtomicCounter,
    InvariantChecker,
    InvariantViolation,
    Validators,
)
from swapvault.identity import Pubkey, find_program_address
from swapvault.observability import Layer, get_logger


logger = get_logger("host_ledger", Layer.LEDGER)

TOKEN_PROGRAM_ID = Pubkey.from_base58("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_base58("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

_MISSING = object()


def associated_holding_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    """Deterministic holding address for (owner, mint)."""
    address, _ = find_program_address(
        [owner.raw, TOKEN_PROGRAM_ID.raw, mint.raw],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address


# =============================================================================
# STATE
# =============================================================================

@dataclass(frozen=True)
class Account:
    """A program-owned account."""
    owner: Pubkey
    data: bytes


@dataclass(frozen=True)
class AssetHolding:
    """Balance of one asset held by one owner."""
    mint: Pubkey
    owner: Pubkey
    amount: int = 0


@dataclass
class TransactionRecord:
    """Outcome of one transaction, kept for inspection."""
    signature: str
    slot: int
    instruction: str
    status: str
    error: Optional[Dict[str, Any]] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature": self.signature,
            "slot": self.slot,
            "instruction": self.instruction,
            "status": self.status,
            "error": self.error,
            "timestamp": self.timestamp,
        }


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction:
    """
    Handle passed to an instruction body.

    Reads are unrestricted. Writes must target an address declared writable
    when the transaction was opened; anything else is a programming error.
    """

    def __init__(
        self,
        ledger: 'HostLedger',
        instruction: str,
        writable: FrozenSet[Pubkey],
        signers: Iterable[Pubkey],
    ):
        self.ledger = ledger
        self.instruction = instruction
        self.writable = writable
        self.signers: Set[Pubkey] = set(signers)
        self._journal: List[Tuple[str, Pubkey, Any]] = []
        self._journaled: Set[Tuple[str, Pubkey]] = set()

    # -- bookkeeping ---------------------------------------------------------

    def _check_writable(self, address: Pubkey) -> None:
        if address not in self.writable:
            raise InvariantViolation(
                f"{self.instruction}: write to undeclared address {address}"
            )

    def _remember(self, table: str, address: Pubkey) -> None:
        key = (table, address)
        if key in self._journaled:
            return
        store = self.ledger._table(table)
        self._journal.append((table, address, store.get(address, _MISSING)))
        self._journaled.add(key)

    def _rollback(self) -> None:
        for table, address, old in reversed(self._journal):
            store = self.ledger._table(table)
            if old is _MISSING:
                store.pop(address, None)
            else:
                store[address] = old
        self._journal.clear()
        self._journaled.clear()

    # -- accounts ------------------------------------------------------------

    def get_account(self, address: Pubkey) -> Optional[Account]:
        return self.ledger._accounts.get(address)

    def require_account(self, address: Pubkey, owner: Pubkey) -> Account:
        account = self.get_account(address)
        if account is None or account.owner != owner:
            raise AccountNotFound(address=address)
        return account

    def create_account(self, address: Pubkey, owner: Pubkey, data: bytes) -> Account:
        self._check_writable(address)
        if address in self.ledger._accounts:
            raise AlreadyInitialized(address=address)
        self._remember("accounts", address)
        account = Account(owner=owner, data=bytes(data))
        self.ledger._accounts[address] = account
        return account

    def write_account(self, address: Pubkey, data: bytes) -> Account:
        self._check_writable(address)
        current = self.ledger._accounts.get(address)
        if current is None:
            raise AccountNotFound(address=address)
        if len(data) != len(current.data):
            raise InvariantViolation("Account data length is fixed at creation")
        self._remember("accounts", address)
        account = replace(current, data=bytes(data))
        self.ledger._accounts[address] = account
        return account

    def close_account(self, address: Pubkey) -> None:
        self._check_writable(address)
        if address not in self.ledger._accounts:
            raise AccountNotFound(address=address)
        self._remember("accounts", address)
        del self.ledger._accounts[address]

    # -- assets --------------------------------------------------------------

    def get_holding(self, address: Pubkey) -> Optional[AssetHolding]:
        return self.ledger._holdings.get(address)

    def _put_holding(self, address: Pubkey, holding: AssetHolding) -> None:
        self._check_writable(address)
        self._remember("holdings", address)
        self.ledger._holdings[address] = holding

    def ensure_holding(self, owner: Pubkey, mint: Pubkey) -> Pubkey:
        """Return the associated holding for (owner, mint), creating it empty."""
        address = associated_holding_address(owner, mint)
        existing = self.get_holding(address)
        if existing is None:
            self._put_holding(address, AssetHolding(mint=mint, owner=owner))
        elif existing.mint != mint or existing.owner != owner:
            raise InvalidTokenMint(address=address)
        return address

    def credit(self, address: Pubkey, mint: Pubkey, amount: int) -> AssetHolding:
        holding = self.get_holding(address)
        if holding is None:
            raise AccountNotFound(address=address)
        if holding.mint != mint:
            raise InvalidTokenMint(expected=holding.mint, got=mint)
        total = InvariantChecker.checked_add_u64(holding.amount, amount)
        if total is None:
            raise ArithmeticOverflow(address=address, balance=holding.amount, amount=amount)
        updated = replace(holding, amount=total)
        self._put_holding(address, updated)
        return updated

    def transfer(
        self,
        source: Pubkey,
        destination: Pubkey,
        mint: Pubkey,
        amount: int,
        authority: Pubkey,
    ) -> None:
        """
        Move amount of mint from source to destination holding.

        authority must own the source holding and must be among the
        transaction's signers (a user signature, or a program-derived
        address added through signed invocation).
        """
        amount = Validators.validate_u64(amount, "amount").unwrap()
        src = self.get_holding(source)
        dst = self.get_holding(destination)
        if src is None:
            raise AccountNotFound(address=source)
        if dst is None:
            raise AccountNotFound(address=destination)
        if src.mint != mint or dst.mint != mint:
            raise InvalidTokenMint(source_mint=src.mint, destination_mint=dst.mint, mint=mint)
        if src.owner != authority or authority not in self.signers:
            raise MissingAuthority(source=source, authority=authority)

        remaining = InvariantChecker.checked_sub_u64(src.amount, amount)
        if remaining is None:
            raise InsufficientFunds(source=source, balance=src.amount, amount=amount)

        if source == destination:
            return

        credited = InvariantChecker.checked_add_u64(dst.amount, amount)
        if credited is None:
            raise ArithmeticOverflow(address=destination, balance=dst.amount, amount=amount)

        self._put_holding(source, replace(src, amount=remaining))
        self._put_holding(destination, replace(dst, amount=credited))

    @contextmanager
    def signed_by(self, address: Pubkey) -> Iterator[None]:
        """Temporarily add a program-derived signer (signed invocation)."""
        added = address not in self.signers
        self.signers.add(address)
        try:
            yield
        finally:
            if added:
                self.signers.discard(address)


# =============================================================================
# ADDRESS LOCKS
# =============================================================================

class _AddressLock:
    """Write lock for one address plus the number of transactions holding or awaiting it."""

    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


# =============================================================================
# HOST LEDGER
# =============================================================================

class HostLedger:
    """
    Account store plus atomic, per-address serialized transactions.

    The ledger is the sole owner of mutable state; programs only see it
    through a Transaction.
    """

    def __init__(self, max_history: int = 10_000):
        self._accounts: Dict[Pubkey, Account] = {}
        self._holdings: Dict[Pubkey, AssetHolding] = {}
        self._locks: Dict[Pubkey, _AddressLock] = {}
        self._locks_guard = threading.Lock()
        self._slot = AtomicCounter(0)
        self._history: deque = deque(maxlen=max_history)
        self._history_lock = threading.Lock()
        self._program_addresses: Set[Pubkey] = set()

    def register_program_address(self, address: Pubkey) -> None:
        """Mark address as program-derived: no transaction may list it as a signer."""
        self._program_addresses.add(address)

    def _table(self, name: str) -> Dict[Pubkey, Any]:
        if name == "accounts":
            return self._accounts
        if name == "holdings":
            return self._holdings
        raise KeyError(name)

    def _acquire(self, ordered: List[Pubkey]) -> List[_AddressLock]:
        with self._locks_guard:
            entries = []
            for address in ordered:
                entry = self._locks.get(address)
                if entry is None:
                    entry = self._locks[address] = _AddressLock()
                entry.holders += 1
                entries.append(entry)
        for entry in entries:
            entry.lock.acquire()
        return entries

    def _release(self, ordered: List[Pubkey], entries: List[_AddressLock]) -> None:
        for entry in reversed(entries):
            entry.lock.release()
        # Drop entries nobody holds or awaits.
        with self._locks_guard:
            for address, entry in zip(ordered, entries):
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[address]

    @contextmanager
    def transaction(
        self,
        instruction: str,
        writable: Iterable[Pubkey],
        signers: Iterable[Pubkey] = (),
    ) -> Iterator[Transaction]:
        """
        Run one instruction atomically.

        Any exception raised in the body rolls back every write made through
        the transaction and is re-raised unchanged.
        """
        signers = list(signers)
        for signer in signers:
            if signer in self._program_addresses:
                raise MissingAuthority(
                    "Program-derived addresses sign only through their program",
                    signer=signer,
                )

        write_set = frozenset(writable)
        ordered = sorted(write_set, key=lambda p: p.raw)
        entries = self._acquire(ordered)
        try:
            tx = Transaction(self, instruction, write_set, signers)
            slot = self._slot.increment()
            try:
                yield tx
            except BaseException as exc:
                tx._rollback()
                self._record(slot, instruction, exc)
                raise
            else:
                self._record(slot, instruction, None)
        finally:
            self._release(ordered, entries)

    def _record(self, slot: int, instruction: str, exc: Optional[BaseException]) -> None:
        signature = hashlib.sha256(f"{slot}:{instruction}".encode()).hexdigest()
        if exc is None:
            record = TransactionRecord(signature, slot, instruction, "ok")
            logger.debug("transaction committed", operation=instruction, slot=slot)
        else:
            error = exc.to_dict() if isinstance(exc, SwapVaultError) else {
                "error": type(exc).__name__, "message": str(exc),
            }
            record = TransactionRecord(signature, slot, instruction, "failed", error)
            logger.info(
                "transaction rolled back",
                operation=instruction,
                error_code=str(error.get("code", "")),
                slot=slot,
                error=error["error"],
            )
        with self._history_lock:
            self._history.append(record)

    # -- read-only views -----------------------------------------------------

    def get_account(self, address: Pubkey) -> Optional[Account]:
        return self._accounts.get(address)

    def get_holding(self, address: Pubkey) -> Optional[AssetHolding]:
        return self._holdings.get(address)

    def balance_of(self, owner: Pubkey, mint: Pubkey) -> int:
        holding = self._holdings.get(associated_holding_address(owner, mint))
        return holding.amount if holding else 0

    def accounts_owned_by(self, owner: Pubkey) -> List[Tuple[Pubkey, Account]]:
        return [(k, v) for k, v in list(self._accounts.items()) if v.owner == owner]

    def history(self, limit: int = 100) -> List[TransactionRecord]:
        with self._history_lock:
            return list(self._history)[-limit:]

    # -- asset-transfer service conveniences --------------------------------

    def mint_to(self, owner: Pubkey, mint: Pubkey, amount: int) -> int:
        """Issue new units of mint to owner. Returns the new balance."""
        amount = Validators.validate_u64(amount, "amount").unwrap()
        address = associated_holding_address(owner, mint)
        with self.transaction("mint_to", writable=[address]) as tx:
            tx.ensure_holding(owner, mint)
            return tx.credit(address, mint, amount).amount
