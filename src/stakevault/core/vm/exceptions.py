"""
Execution errors raised by contracts running on the StakeVault runtime.
"""

from __future__ import annotations


class VMError(Exception):
    """Base class for contract runtime failures."""


class VMExecutionError(VMError):
    """Raised when a contract call reverts.

    The caller treats the whole call as aborted.
    """
