"""
SWAPVAULT Swap Controller

Ledger-resident state machine binding a commitment digest to one release.

    PENDING ──withdraw()──▶ SETTLED
    (record exists,          (record closed; nothing remains at the
     executed = false)        swap identity)

submit_proof creates the record at a fresh swap identity. withdraw runs
validation, the vault release and the record closure as one transaction
holding the record's lock, so at most one withdraw per record succeeds.
A later withdraw finds no record (AccountNotFound); a record found with
executed = true is refused (AlreadyExecuted).

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from swapvault.errors import (
    AccountNotFound,
    AlreadyExecuted,
    InvalidRecipient,
    InvalidTokenMint,
    LedgerError,
    SwapAlreadyExists,
    UnauthorizedRelayer,
)
from swapvault.hardening import InvariantChecker, Validators
from swapvault.identity import Pubkey
from swapvault.layout import SwapRecord
from swapvault.ledger import HostLedger
from swapvault.observability import Layer, get_logger
from swapvault.receipt import Receipt
from swapvault.security import (
    AuditEventType,
    AuditLogger,
    OpenRegistration,
    RegistrationPolicy,
    SettlementVerifier,
    TrustRegistrant,
    registration_policy_from_config,
    settlement_verifier_from_config,
)
from swapvault.vault import ReleaseCapability, VaultCustody


logger = get_logger("swap_controller", Layer.SWAP)


class SwapState:
    PENDING = "pending"
    SETTLED = "settled"


SWAP_TRANSITIONS = {
    SwapState.PENDING: (SwapState.SETTLED,),
    SwapState.SETTLED: (),
}


@dataclass(frozen=True)
class Settlement:
    """Outcome of a successful withdraw."""
    swap_id: Pubkey
    recipient: Pubkey
    asset: Pubkey
    amount: int
    proof_digest: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "swap_id": str(self.swap_id),
            "recipient": str(self.recipient),
            "asset": str(self.asset),
            "amount": self.amount,
            "proof_digest": self.proof_digest.hex(),
        }


class SwapController:
    """Swap Controller program surface: submit_proof, withdraw."""

    def __init__(
        self,
        ledger: HostLedger,
        program_id: Pubkey,
        release: ReleaseCapability,
        registration: Optional[RegistrationPolicy] = None,
        settlement: Optional[SettlementVerifier] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.ledger = ledger
        self.program_id = program_id
        self._release = release
        self.registration = registration or OpenRegistration()
        self.settlement = settlement or TrustRegistrant()
        self.audit = audit or AuditLogger()

    @classmethod
    def from_config(
        cls,
        ledger: HostLedger,
        vault: VaultCustody,
        trusted_keys: Iterable[bytes] = (),
    ) -> 'SwapController':
        """
        Controller at the configured program identity, holding the vault's
        release capability and sharing its audit trail. Registration and
        settlement follow the security section.
        """
        from swapvault.config import get_config

        return cls(
            ledger,
            get_config().ledger.program_identity(),
            vault.grant_release(),
            registration=registration_policy_from_config(),
            settlement=settlement_verifier_from_config(trusted_keys),
            audit=vault.audit,
        )

    # -- instructions --------------------------------------------------------

    def submit_proof(
        self,
        relayer: Pubkey,
        proof_digest: bytes,
        output_asset: Pubkey,
        output_amount: int,
        recipient: Pubkey,
        swap_id: Optional[Pubkey] = None,
    ) -> Pubkey:
        """
        Register a pending swap and return its identity.

        swap_id defaults to a fresh identity. Raises SwapAlreadyExists when
        an account already lives at swap_id, UnauthorizedRelayer when the
        registration policy refuses relayer.
        """
        swap_id = swap_id or Pubkey.new_unique()
        record = SwapRecord(
            proof_digest=proof_digest,
            output_asset=Pubkey.parse(output_asset),
            output_amount=Validators.validate_u64(output_amount, "output_amount").unwrap(),
            recipient=Pubkey.parse(recipient),
        )

        try:
            self.registration.authorize(relayer)
        except UnauthorizedRelayer:
            self.audit.log(AuditEventType.REGISTRATION_DENIED, relayer, swap_id, "failure")
            raise

        with self.ledger.transaction("submit_proof", writable=[swap_id], signers=[relayer]) as tx:
            if tx.get_account(swap_id) is not None:
                raise SwapAlreadyExists(swap_id=swap_id)
            tx.create_account(swap_id, self.program_id, record.pack())

        self.audit.log(
            AuditEventType.SWAP_REGISTERED,
            relayer,
            swap_id,
            "success",
            proof_digest=record.proof_digest.hex(),
            output_amount=record.output_amount,
        )
        logger.info(
            "swap registered",
            operation="submit_proof",
            swap_id=str(swap_id),
            relayer=str(relayer),
            output_asset=str(record.output_asset),
            output_amount=record.output_amount,
        )
        return swap_id

    def withdraw(
        self,
        caller: Pubkey,
        swap_id: Pubkey,
        receipt: Optional[Receipt] = None,
    ) -> Settlement:
        """
        Settle a pending swap to its recipient.

        Checks, in order: the record exists (AccountNotFound), the caller is
        the recipient (InvalidRecipient), the record is not executed
        (AlreadyExecuted), and the settlement verifier accepts it. Then
        marks it executed, releases output_amount of output_asset from the
        vault to the caller, and closes the record. Any failure rolls back
        everything.
        """
        current = self._peek(swap_id)
        writable = [swap_id]
        if current is not None:
            writable += self._release.accounts(current.output_asset, caller)

        try:
            with self.ledger.transaction("withdraw", writable=writable, signers=[caller]) as tx:
                account = tx.require_account(swap_id, self.program_id)
                record = SwapRecord.unpack(account.data)

                if record.recipient != caller:
                    raise InvalidRecipient(swap_id=swap_id, caller=caller)
                if record.executed:
                    raise AlreadyExecuted(swap_id=swap_id)
                if current is None:
                    # Created after the accounts were declared.
                    raise AccountNotFound(swap_id=swap_id)
                if record.output_asset != current.output_asset:
                    raise InvalidTokenMint(
                        "Record asset changed after accounts were declared",
                        swap_id=swap_id,
                        expected=current.output_asset,
                        got=record.output_asset,
                    )
                InvariantChecker.check_state_transition(
                    SwapState.PENDING, SwapState.SETTLED, SWAP_TRANSITIONS
                )
                self.settlement.verify(record, receipt)

                tx.write_account(swap_id, record.mark_executed().pack())
                self._release.release(tx, record.output_asset, record.output_amount, caller)
                tx.close_account(swap_id)
        except LedgerError as e:
            self.audit.log(
                AuditEventType.WITHDRAW_REJECTED, caller, swap_id, "failure", error=e.name
            )
            logger.info(
                "withdraw rejected",
                operation="withdraw",
                error_code=str(e.code),
                swap_id=str(swap_id),
                caller=str(caller),
                error=e.name,
            )
            raise

        settlement = Settlement(
            swap_id=swap_id,
            recipient=caller,
            asset=record.output_asset,
            amount=record.output_amount,
            proof_digest=record.proof_digest,
        )
        self.audit.log(
            AuditEventType.SWAP_SETTLED,
            caller,
            swap_id,
            "success",
            asset=record.output_asset,
            amount=record.output_amount,
        )
        logger.info(
            "swap settled",
            operation="withdraw",
            swap_id=str(swap_id),
            recipient=str(caller),
            amount=record.output_amount,
        )
        return settlement

    # -- views ---------------------------------------------------------------

    def _peek(self, swap_id: Pubkey) -> Optional[SwapRecord]:
        account = self.ledger.get_account(swap_id)
        if account is None or account.owner != self.program_id:
            return None
        if len(account.data) != SwapRecord.SPACE:
            return None
        return SwapRecord.unpack(account.data)

    def get_record(self, swap_id: Pubkey) -> Optional[SwapRecord]:
        """The pending record at swap_id, or None once settled."""
        return self._peek(swap_id)

    def pending_swaps(self) -> List[Tuple[Pubkey, SwapRecord]]:
        pending = []
        for address, account in self.ledger.accounts_owned_by(self.program_id):
            if len(account.data) != SwapRecord.SPACE:
                continue
            record = SwapRecord.unpack(account.data)
            if not record.executed:
                pending.append((address, record))
        return pending
