"""Contract runtime support shared by the reference token contracts."""

from .exceptions import VMError, VMExecutionError

__all__ = ["VMError", "VMExecutionError"]
