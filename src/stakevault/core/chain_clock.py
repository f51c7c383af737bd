"""
Deterministic chain clock.

Provides block height and chain time to the staking contract. Blocks are
produced explicitly with ``mine()``; wall-clock time only moves when blocks
are mined or ``advance_time()`` is called, which keeps reward accrual
reproducible.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .constants import DEFAULT_AVERAGE_BLOCK_TIME_SECONDS

logger = logging.getLogger(__name__)


class LocalChainClock:
    """In-process chain clock implementing ``IChainClock``."""

    def __init__(
        self,
        genesis_timestamp: Optional[int] = None,
        block_time_seconds: int = DEFAULT_AVERAGE_BLOCK_TIME_SECONDS,
        start_block: int = 0,
        time_provider: Optional[Callable[[], int]] = None,
    ):
        if not isinstance(block_time_seconds, int) or block_time_seconds <= 0:
            raise ValueError("Block time must be a positive integer.")
        if not isinstance(start_block, int) or start_block < 0:
            raise ValueError("Start block must be a non-negative integer.")

        self._time_provider = time_provider or (lambda: int(datetime.now(timezone.utc).timestamp()))
        self._timestamp = int(genesis_timestamp) if genesis_timestamp is not None else int(self._time_provider())
        self._block = start_block
        self.block_time_seconds = block_time_seconds
        self._lock = threading.RLock()

    def current_timestamp(self) -> int:
        with self._lock:
            return self._timestamp

    def current_block(self) -> int:
        with self._lock:
            return self._block

    def mine(self, blocks: int = 1) -> int:
        """Produce ``blocks`` blocks, advancing time by the block time for each."""
        if blocks < 0:
            raise ValueError("Cannot mine a negative number of blocks.")
        with self._lock:
            self._block += blocks
            self._timestamp += blocks * self.block_time_seconds
            logger.debug(
                "Mined blocks",
                extra={"event": "clock.mined", "blocks": blocks, "height": self._block},
            )
            return self._block

    def advance_time(self, seconds: int) -> int:
        """Move chain time forward without producing blocks."""
        if seconds < 0:
            raise ValueError("Chain time cannot move backwards.")
        with self._lock:
            self._timestamp += seconds
            return self._timestamp

    def set_timestamp(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._timestamp:
                raise ValueError("Chain time cannot move backwards.")
            self._timestamp = int(timestamp)

    def sync_to_wall_clock(self) -> int:
        """Catch chain time up with the time provider, mining the blocks that would have elapsed.

        Chain time only advances by whole blocks; the remainder of a
        partial block carries over to the next sync.
        """
        with self._lock:
            now = int(self._time_provider())
            if now <= self._timestamp:
                return self._block
            elapsed_blocks = (now - self._timestamp) // self.block_time_seconds
            self._block += elapsed_blocks
            self._timestamp += elapsed_blocks * self.block_time_seconds
            return self._block

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "timestamp": self._timestamp,
                "block": self._block,
                "block_time_seconds": self.block_time_seconds,
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        time_provider: Optional[Callable[[], int]] = None,
    ) -> "LocalChainClock":
        """Resume a clock at the saved height and time."""
        return cls(
            genesis_timestamp=int(data["timestamp"]),
            block_time_seconds=int(data.get("block_time_seconds", DEFAULT_AVERAGE_BLOCK_TIME_SECONDS)),
            start_block=int(data["block"]),
            time_provider=time_provider,
        )
