"""
Pause gate for the staking ledger, with persistent state.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..core.constants import ACTION_PAUSE, ACTION_UNPAUSE
from ..core.protocols import IAuthorizer
from ..database.storage_manager import StorageManager

logger = logging.getLogger("stakevault.blockchain.emergency_pause")


STATE_KEY = "emergency_pause_state"


class EmergencyPauseManager:
    """
    Manages the pause state of the staking ledger, persisting it to a
    database so a pause survives restarts.

    Callers are checked against ``authorizer`` for the ``pause`` / ``unpause``
    actions. The staking contract performs its own authorization first and
    then calls in as an already-authorized caller.
    """

    def __init__(
        self,
        db_path: Optional[Union[Path, str]] = None,
        authorizer: Optional[IAuthorizer] = None,
        time_provider: Optional[Callable[[], int]] = None,
        storage: Optional[StorageManager] = None,
    ):
        if storage is None:
            storage_path = db_path or Path.home() / ".stakevault" / "emergency_pause.db"
            storage = StorageManager(storage_path)
        self.storage = storage
        self.authorizer = authorizer
        self._time_provider = time_provider or (lambda: int(datetime.now(timezone.utc).timestamp()))

    def _get_state(self) -> Dict[str, Any]:
        default_state = {
            "is_paused": False,
            "paused_by": None,
            "paused_timestamp": None,
            "reason": None,
        }
        return self.storage.get(STATE_KEY, default=default_state)

    def _set_state(self, state: Dict[str, Any]):
        self.storage.set(STATE_KEY, state)

    def _check_caller(self, caller_address: str, action: str) -> None:
        if self.authorizer is not None and not self.authorizer.is_authorized(caller_address, action):
            raise PermissionError(f"Caller {caller_address} is not authorized to {action} operations.")

    def pause_operations(self, caller_address: str, reason: str = "Manual emergency pause"):
        """Pauses operations if the caller is authorized and the system is not already paused."""
        self._check_caller(caller_address, ACTION_PAUSE)

        state = self._get_state()
        if not state["is_paused"]:
            new_state = {
                "is_paused": True,
                "paused_by": caller_address,
                "paused_timestamp": self._current_timestamp(),
                "reason": reason,
            }
            self._set_state(new_state)
            logger.warning(
                "Emergency pause activated by %s. Reason: %s",
                caller_address,
                reason,
                extra={"event": "pause.activated", "caller": caller_address[:10]},
            )
        else:
            logger.info("Pause requested but operations already paused.")

    def unpause_operations(self, caller_address: str, reason: str = "Manual unpause"):
        """Unpauses operations if the caller is authorized and the system is paused."""
        self._check_caller(caller_address, ACTION_UNPAUSE)

        state = self._get_state()
        if state["is_paused"]:
            new_state = {
                "is_paused": False,
                "paused_by": None,
                "paused_timestamp": None,
                "reason": None,
            }
            self._set_state(new_state)
            logger.warning(
                "Operations unpaused by %s. Reason: %s",
                caller_address,
                reason,
                extra={"event": "pause.deactivated", "caller": caller_address[:10]},
            )
        else:
            logger.info("Unpause requested but operations not paused.")

    def is_paused(self) -> bool:
        return bool(self._get_state()["is_paused"])

    def get_status(self) -> Dict[str, Any]:
        """Returns the current pause status as stored."""
        return self._get_state()

    def _current_timestamp(self) -> int:
        return int(self._time_provider())

    def close(self):
        """Closes the underlying storage connection."""
        self.storage.close()
