"""
SWAPVAULT Validation and Hardening Module

Validation and invariant utilities shared by the ledger-resident
programs and the off-ledger proof pipeline. It addresses:

1. Input validation for fixed-width ledger quantities (u8, u64)
2. Identity and digest validation (32-byte values)
3. Constant-time comparison of digests and seals
4. Checked unsigned arithmetic for balance accounting
5. Thread-safety primitives

Security Model:
    - All inputs are untrusted until validated
    - All digest comparisons are constant-time
    - Balance arithmetic never wraps; overflow is an error

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hmac
import re
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional


U8_MAX = 2**8 - 1
U64_MAX = 2**64 - 1
DIGEST_LENGTH = 32
IDENTITY_LENGTH = 32


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(Exception):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class ValidationErrors(Exception):
    """Collection of validation errors."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        messages = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Validation failed: {messages}")


class InvariantViolation(Exception):
    """State machine invariant violated."""
    pass


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise ValidationErrors if validation failed."""
        if not self.is_valid:
            raise ValidationErrors(self.errors)

    def unwrap(self) -> Any:
        """Return the sanitized value, raising if validation failed."""
        self.raise_if_invalid()
        return self.sanitized_value

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    DECIMAL_PATTERN = re.compile(r'^[0-9]+$')
    HEX64_PATTERN = re.compile(r'^[a-f0-9]{64}$')

    @classmethod
    def validate_unsigned(
        cls,
        value: Any,
        field_name: str,
        max_value: int,
    ) -> ValidationResult:
        """
        Validate an unsigned integer bounded by max_value.

        Strings are accepted only in plain decimal form: no sign, no
        whitespace, no underscores, no exponent. Booleans are rejected even
        though they are ints.
        """
        if isinstance(value, bool):
            return ValidationResult.failure([
                ValidationError(field_name, "Expected integer, got bool", value)
            ])

        if isinstance(value, str):
            if not cls.DECIMAL_PATTERN.match(value):
                return ValidationResult.failure([
                    ValidationError(field_name, "Not an unsigned decimal integer", value)
                ])
            value = int(value)

        if not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])

        if value < 0:
            return ValidationResult.failure([
                ValidationError(field_name, "Must not be negative", value)
            ])

        if value > max_value:
            return ValidationResult.failure([
                ValidationError(field_name, f"Exceeds maximum ({max_value})", value)
            ])

        return ValidationResult.success(value)

    @classmethod
    def validate_u64(cls, value: Any, field_name: str = "amount") -> ValidationResult:
        """Validate an unsigned 64-bit quantity."""
        return cls.validate_unsigned(value, field_name, U64_MAX)

    @classmethod
    def validate_u8(cls, value: Any, field_name: str = "bump") -> ValidationResult:
        """Validate an unsigned 8-bit quantity."""
        return cls.validate_unsigned(value, field_name, U8_MAX)

    @classmethod
    def validate_bytes32(cls, value: Any, field_name: str = "digest") -> ValidationResult:
        """
        Validate a 32-byte value.

        Accepts raw bytes/bytearray or a 64-character hex string.
        """
        if isinstance(value, str):
            lowered = value.strip().lower()
            if not cls.HEX64_PATTERN.match(lowered):
                return ValidationResult.failure([
                    ValidationError(field_name, "Must be 64 hex characters", value)
                ])
            value = bytes.fromhex(lowered)

        if isinstance(value, bytearray):
            value = bytes(value)

        if not isinstance(value, bytes):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected bytes, got {type(value).__name__}", value)
            ])

        if len(value) != DIGEST_LENGTH:
            return ValidationResult.failure([
                ValidationError(field_name, f"Must be exactly {DIGEST_LENGTH} bytes, got {len(value)}", value)
            ])

        return ValidationResult.success(value)


# =============================================================================
# CRYPTOGRAPHIC UTILITIES
# =============================================================================

class CryptoUtils:
    """Cryptographic utility functions with security hardening."""

    @staticmethod
    def secure_compare(a: bytes, b: bytes) -> bool:
        """Constant-time comparison to prevent timing attacks."""
        return hmac.compare_digest(a, b)


# =============================================================================
# THREAD SAFETY
# =============================================================================

class AtomicCounter:
    """Thread-safe counter."""

    def __init__(self, initial: int = 0):
        self._value = initial
        self._lock = threading.Lock()

    def increment(self, delta: int = 1) -> int:
        """Increment and return new value."""
        with self._lock:
            self._value += delta
            return self._value


# =============================================================================
# INVARIANT CHECKING
# =============================================================================

class InvariantChecker:
    """Checks for ledger accounting invariants."""

    @staticmethod
    def checked_add_u64(current: int, amount: int) -> Optional[int]:
        """
        Add two u64 quantities.

        Returns None when the sum does not fit in 64 bits, so callers decide
        which error to raise.
        """
        total = current + amount
        if total > U64_MAX:
            return None
        return total

    @staticmethod
    def checked_sub_u64(current: int, amount: int) -> Optional[int]:
        """Subtract two u64 quantities, returning None on underflow."""
        if amount > current:
            return None
        return current - amount

    @staticmethod
    def check_state_transition(
        current: str,
        target: str,
        allowed: dict,
    ) -> None:
        """Raise InvariantViolation when current -> target is not allowed."""
        if target not in allowed.get(current, ()):
            raise InvariantViolation(
                f"Invalid state transition: {current} -> {target}"
            )
