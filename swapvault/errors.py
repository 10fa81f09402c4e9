"""
SWAPVAULT Error Taxonomy

Ledger-side errors abort the enclosing transaction with zero partial effect.
Prover-side errors are caught by the Proof Generator and downgrade the call to
the direct backend; only BackendDivergence escapes it.

Codes follow the host ledger conventions: program errors are numbered from
6000, framework errors keep their framework numbers.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from typing import Any, Dict


class SwapVaultError(Exception):
    """Base class for all swapvault errors."""

    code: int = 1
    default_message: str = "swapvault error"

    def __init__(self, message: str = "", **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def __reduce__(self):
        # Keep details when crossing a process boundary.
        return (_restore, (type(self), self.message, self.details))

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.name,
            "code": self.code,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


def _restore(cls: type, message: str, details: Dict[str, Any]) -> SwapVaultError:
    return cls(message, **details)


# =============================================================================
# LEDGER ERRORS
# =============================================================================

class LedgerError(SwapVaultError):
    """An instruction failed; the transaction was rolled back."""
    default_message = "Instruction failed"


class AlreadyExecuted(LedgerError):
    code = 6000
    default_message = "Swap has already been executed"


class SwapAlreadyExists(AlreadyExecuted):
    """A record already occupies the requested swap identity."""
    default_message = "A swap record already exists at this address"


class InvalidRecipient(LedgerError):
    code = 6001
    default_message = "Invalid recipient for this swap"


class InvalidProofHash(LedgerError):
    code = 6002
    default_message = "Invalid proof hash"


class InsufficientBalance(LedgerError):
    code = 6003
    default_message = "Insufficient vault balance"


class InvalidTokenMint(LedgerError):
    code = 6004
    default_message = "Invalid token mint"


class UnauthorizedRelayer(LedgerError):
    code = 6005
    default_message = "Caller is not an authorized relayer"


class InsufficientFunds(LedgerError):
    """Raised by the asset-transfer service when a source holding is short."""
    code = 1
    default_message = "Insufficient funds"


class AlreadyInitialized(LedgerError):
    code = 0
    default_message = "Account already in use"


class AccountNotFound(LedgerError):
    code = 3012
    default_message = "The program expected this account to be already initialized"


class MissingAuthority(LedgerError):
    code = 3010
    default_message = "Transfer authority did not sign"


class ArithmeticOverflow(LedgerError):
    code = 14
    default_message = "Operation overflowed"


class AccountLayoutError(LedgerError):
    code = 3003
    default_message = "Failed to deserialize the account"


# =============================================================================
# PROVER ERRORS
# =============================================================================

class ProverError(SwapVaultError):
    """Commitment generation failed on one backend."""
    default_message = "Proof generation failed"


class GuestPanic(ProverError):
    """The guest program rejected its input; nothing was committed."""
    default_message = "Guest program panicked"


class BackendUnavailable(ProverError):
    default_message = "Verifiable backend is not available"


class ProverTimeout(ProverError):
    default_message = "Verifiable execution exceeded its time budget"


class AttestationError(ProverError):
    default_message = "Receipt failed verification"


class BackendDivergence(ProverError):
    """Both backends ran and disagreed on the digest. Always a defect."""
    default_message = "Verifiable and direct backends produced different digests"


# =============================================================================
# RELAYER ERRORS
# =============================================================================

class IntentQueueError(SwapVaultError):
    """The intent queue file is unreadable, or an intent moved out of order."""
    default_message = "Intent queue error"
