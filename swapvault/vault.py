"""
SWAPVAULT Vault Custody

Singleton custodial account holding deposited assets.

The vault's transfer authority is a program-derived address: deterministic,
derived from a fixed seed and the program id, backed by no private key. The
only object able to sign for it is the _VaultAuthority held privately by
VaultCustody. Outbound transfers are exposed solely through a
ReleaseCapability, which the vault grants exactly once, to the Swap
Controller.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from swapvault.errors import InsufficientBalance
from swapvault.hardening import InvariantViolation, Validators
from swapvault.identity import Pubkey, find_program_address
from swapvault.layout import VaultAccount
from swapvault.ledger import HostLedger, Transaction, associated_holding_address
from swapvault.observability import Layer, get_logger
from swapvault.security import AuditEventType, AuditLogger


logger = get_logger("vault_custody", Layer.VAULT)

VAULT_SEED = b"vault"


class _VaultAuthority:
    """Signs on behalf of the vault address inside a transaction."""

    __slots__ = ("_address", "_bump")

    def __init__(self, address: Pubkey, bump: int):
        self._address = address
        self._bump = bump

    @contextmanager
    def sign(self, tx: Transaction) -> Iterator[None]:
        with tx.signed_by(self._address):
            yield

    def __repr__(self) -> str:
        return "<VaultAuthority>"


class ReleaseCapability:
    """
    The right to move assets out of the vault.

    Issued once by VaultCustody.grant_release(); whoever holds it can call
    release(). Recipients never hold one.
    """

    __slots__ = ("_vault",)

    def __init__(self, vault: 'VaultCustody'):
        self._vault = vault

    def accounts(self, asset: Pubkey, to: Pubkey) -> List[Pubkey]:
        """Addresses a release of asset to `to` will write."""
        return [
            associated_holding_address(self._vault.address, asset),
            associated_holding_address(to, asset),
        ]

    def release(self, tx: Transaction, asset: Pubkey, amount: int, to: Pubkey) -> None:
        self._vault._release(tx, asset, amount, to)


class VaultCustody:
    """Vault Custody program surface: initialize, deposit, release."""

    def __init__(
        self,
        ledger: HostLedger,
        program_id: Pubkey,
        seed: bytes = VAULT_SEED,
        audit: Optional[AuditLogger] = None,
    ):
        self.ledger = ledger
        self.program_id = program_id
        self.seed = seed
        self.audit = audit or AuditLogger()
        self.address, self.bump = find_program_address([seed], program_id)
        ledger.register_program_address(self.address)
        self._authority = _VaultAuthority(self.address, self.bump)
        self._granted = False
        self._grant_lock = threading.Lock()

    @classmethod
    def from_config(
        cls, ledger: HostLedger, audit: Optional[AuditLogger] = None
    ) -> 'VaultCustody':
        """Vault at the configured program identity and seed."""
        from swapvault.config import get_config

        cfg = get_config().ledger
        return cls(ledger, cfg.program_identity(), seed=cfg.seed(), audit=audit)

    # -- capability ----------------------------------------------------------

    def grant_release(self) -> ReleaseCapability:
        """Hand out the release capability. Only one holder may exist."""
        with self._grant_lock:
            if self._granted:
                raise InvariantViolation("Release capability already granted")
            self._granted = True
        return ReleaseCapability(self)

    # -- instructions --------------------------------------------------------

    def initialize(self, payer: Pubkey) -> VaultAccount:
        """
        Create the singleton vault account at its derived address.

        Raises AlreadyInitialized when the account exists.
        """
        state = VaultAccount(bump=self.bump)
        with self.ledger.transaction(
            "initialize_vault", writable=[self.address], signers=[payer]
        ) as tx:
            tx.create_account(self.address, self.program_id, state.pack())
        self.audit.log(
            AuditEventType.VAULT_INITIALIZED, payer, self.address, "success", bump=self.bump
        )
        logger.info(
            "vault initialized",
            operation="initialize_vault",
            vault=str(self.address),
            bump=self.bump,
        )
        return state

    def deposit(self, user: Pubkey, asset: Pubkey, amount: int) -> int:
        """
        Move amount of asset from the user's holding into the vault's holding.

        Zero is accepted. Returns the vault's new balance of asset. The
        vault's u64 balance never wraps; an overflowing deposit raises
        ArithmeticOverflow and nothing moves.
        """
        amount = Validators.validate_u64(amount, "amount").unwrap()
        user_holding = associated_holding_address(user, asset)
        vault_holding = associated_holding_address(self.address, asset)

        with self.ledger.transaction(
            "deposit", writable=[user_holding, vault_holding], signers=[user]
        ) as tx:
            self._load(tx)
            tx.ensure_holding(self.address, asset)
            tx.transfer(user_holding, vault_holding, asset, amount, authority=user)
            balance = tx.get_holding(vault_holding).amount

        self.audit.log(
            AuditEventType.DEPOSIT, user, self.address, "success", asset=asset, amount=amount
        )
        logger.info(
            "deposit accepted",
            operation="deposit",
            depositor=str(user),
            asset=str(asset),
            amount=amount,
        )
        return balance

    def _release(self, tx: Transaction, asset: Pubkey, amount: int, to: Pubkey) -> None:
        amount = Validators.validate_u64(amount, "amount").unwrap()
        self._load(tx)
        vault_holding = tx.ensure_holding(self.address, asset)
        held = tx.get_holding(vault_holding).amount
        if held < amount:
            raise InsufficientBalance(asset=asset, held=held, requested=amount)

        to_holding = tx.ensure_holding(to, asset)
        with self._authority.sign(tx):
            tx.transfer(vault_holding, to_holding, asset, amount, authority=self.address)

        logger.info(
            "release authorized",
            operation="release",
            asset=str(asset),
            amount=amount,
            recipient=str(to),
        )

    # -- views ---------------------------------------------------------------

    def _load(self, tx: Transaction) -> VaultAccount:
        account = tx.require_account(self.address, self.program_id)
        return VaultAccount.unpack(account.data)

    def state(self) -> Optional[VaultAccount]:
        account = self.ledger.get_account(self.address)
        if account is None or account.owner != self.program_id:
            return None
        return VaultAccount.unpack(account.data)

    def is_initialized(self) -> bool:
        return self.state() is not None

    def balance(self, asset: Pubkey) -> int:
        return self.ledger.balance_of(self.address, asset)
