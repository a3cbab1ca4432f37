"""
Entitlement ledger exception hierarchy for tokenledger.

Provides typed exceptions for ledger operations so callers can tell a
rejected claim from a failed transfer, and so every abort surfaces its
reason verbatim. None of these are retried by the engines.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all entitlement ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the caller may retry after correcting the trigger
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Input Errors ====================


class InvalidInput(LedgerError):
    """Raised for zero amounts, null accounts and out-of-range parameters."""
    pass


class ArrayLengthMismatch(InvalidInput):
    """Raised when batch beneficiary and amount sequences differ in length."""
    pass


class DuplicateSchedule(LedgerError):
    """Raised when an account already holds a nonzero vesting principal."""
    pass


# ==================== Claim Gate Errors ====================


class AlreadyClaimed(LedgerError):
    """Raised when an airdrop index has already been claimed."""
    pass


class InvalidProof(LedgerError):
    """Raised when a merkle membership proof does not match the root."""
    pass


class CliffNotReached(LedgerError):
    """Raised when an operation is attempted inside a cliff window."""
    pass


class NoScheduleInFlight(LedgerError):
    """Raised when the account has no principal or deposit."""
    pass


class NothingDue(LedgerError):
    """Raised when the accrued amount is zero."""
    pass


# ==================== Funds & Transfer Errors ====================


class InsufficientFunds(LedgerError):
    """Raised when a payout would exceed the ledger's token custody."""
    pass


class TransferFailed(LedgerError):
    """Raised when the token collaborator reports failure or returns an
    unrecognized shape."""

    def __init__(
        self,
        message: str,
        outcome: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.outcome = outcome


# ==================== Access & Lifecycle Errors ====================


class Unauthorized(LedgerError):
    """Raised when a privileged operation is called by a non-admin."""
    pass


class MechanismDisabled(LedgerError):
    """Raised when the mechanism has been switched off by the admin."""
    pass


class ReentrantCall(LedgerError):
    """Raised when an engine is re-entered while an operation is in progress."""
    pass


class InvariantViolation(LedgerError):
    """Raised when internal accounting breaks an invariant. Never expected."""
    pass


# ==================== Configuration Errors ====================


class ConfigurationError(LedgerError):
    """Raised when ledger configuration is missing or invalid."""
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, TransferFailed) and exc.outcome:
        context["transfer_outcome"] = exc.outcome

    return context
