"""
Staking-specific exception hierarchy for StakeVault.

Every failed precondition aborts the whole operation; these typed exceptions
let callers (and the HTTP layer) tell the failure modes apart.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class StakingError(Exception):
    """Base exception for all staking ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether resubmitting the operation later can succeed
        code: Stable machine-readable error code
    """

    code = "staking_error"
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Lifecycle Errors ====================


class NotInitialized(StakingError):
    """Raised when the contract is used before its one-time initialization."""
    code = "not_initialized"


class AlreadyInitialized(StakingError):
    """Raised on any attempt to initialize the contract a second time."""
    code = "already_initialized"


class InvalidParameter(StakingError):
    """Raised when an initialization or admin value is out of range."""
    code = "invalid_parameter"


# ==================== Gating Errors ====================


class Unauthorized(StakingError):
    """Raised when the caller lacks the role for a privileged action."""
    code = "unauthorized"


class SystemPaused(StakingError):
    """Raised by mutating operations while the pause gate is closed."""
    code = "system_paused"
    recoverable = True


class ReentrantCall(StakingError):
    """Raised when a collaborator calls back into a running operation."""
    code = "reentrant_call"


# ==================== Staking Period Errors ====================


class StakingPeriodEnded(StakingError):
    """Raised when an operation requires the staking period to be open."""
    code = "staking_period_ended"


class StakeLimitExceeded(StakingError):
    """Raised when staking would exceed the active-stake limit."""
    code = "stake_limit_exceeded"
    recoverable = True


class PastTimestampRequired(StakingError):
    """Raised when the block clamp helper receives a timestamp not in the past."""
    code = "past_timestamp_required"


# ==================== Entry Errors ====================


class CallerNotAssetHolder(StakingError):
    """Raised when the caller does not currently hold the asset being staked."""
    code = "caller_not_asset_holder"


class EntryNotFound(StakingError):
    """Raised when no stake entry exists for an asset."""
    code = "entry_not_found"


class EntryAlreadyExists(StakingError):
    """Raised when registering an asset that already has a live entry."""
    code = "entry_already_exists"


class NotStaked(StakingError):
    """Raised when an entry exists but is not in the Staked state."""
    code = "not_staked"


class CallerNotEntryOwner(StakingError):
    """Raised when the caller is not the depositor recorded on the entry."""
    code = "caller_not_entry_owner"


class ForcedExitRequired(StakingError):
    """Raised when withdrawing inside the lock window without the tax flag."""
    code = "forced_exit_required"


# ==================== Custody Errors ====================


class CustodyTransferFailed(StakingError):
    """Raised when an asset or reward-token transfer is rejected.

    The collaborator's own error is chained as ``__cause__``.
    """
    code = "custody_transfer_failed"

    def __init__(
        self,
        message: str,
        asset_kind: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.asset_kind = asset_kind


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a condition that may clear by itself.

    Args:
        exc: The exception to check

    Returns:
        True if resubmitting the same operation later may succeed
    """
    if isinstance(exc, StakingError):
        return exc.recoverable
    return isinstance(exc, (ConnectionError, TimeoutError))
