"""
Reward Accrual Engine.

Rewards accrue per block and are shared pro-rata across every active stake:

    reward = (effective_height - last_claimed_block) * (reward_per_block // active_stakes)

The per-stake share is truncated before it is multiplied by the elapsed
blocks. Existing balances were paid with this rounding, so it is kept.

Once the staking period has ended, the effective height is frozen at the
height estimated for the end time: current height minus the blocks that
would have been produced since then at the average block time.
"""

from __future__ import annotations

import logging

from ..constants import DEFAULT_AVERAGE_BLOCK_TIME_SECONDS
from ..protocols import IChainClock
from ..staking_exceptions import NotStaked, PastTimestampRequired
from .registry import StakeEntry, StakeState

logger = logging.getLogger(__name__)


class RewardEngine:
    """Computes the reward owed to a staked entry. Never mutates state."""

    def __init__(
        self,
        clock: IChainClock,
        average_block_time_seconds: int = DEFAULT_AVERAGE_BLOCK_TIME_SECONDS,
    ):
        if average_block_time_seconds <= 0:
            raise ValueError("Average block time must be positive.")
        self.clock = clock
        self.average_block_time_seconds = average_block_time_seconds

    def blocks_since(self, timestamp: int) -> int:
        """Estimate how many blocks were produced since ``timestamp``.

        Raises:
            PastTimestampRequired: If ``timestamp`` is not strictly in the past
        """
        now = self.clock.current_timestamp()
        if timestamp >= now:
            raise PastTimestampRequired(
                "Timestamp must be in the past",
                details={"timestamp": timestamp, "now": now},
            )
        return (now - timestamp) // self.average_block_time_seconds

    def effective_height(self, staking_end_time: int) -> int:
        """Current block height, clamped to the estimated height at period end."""
        height = self.clock.current_block()
        if self.clock.current_timestamp() > staking_end_time:
            height -= self.blocks_since(staking_end_time)
        return max(height, 0)

    def pending_reward(
        self,
        entry: StakeEntry,
        active_stakes_count: int,
        reward_per_block: int,
        staking_end_time: int,
    ) -> int:
        """Reward accrued by a staked entry since its last claim."""
        if entry.state != StakeState.STAKED:
            raise NotStaked(
                "Only staked entries accrue rewards",
                details={"state": entry.state.value},
            )
        if active_stakes_count <= 0:
            # A staked entry implies at least one active stake.
            logger.error(
                "Reward requested with no active stakes",
                extra={"event": "rewards.no_active_stakes"},
            )
            return 0

        elapsed = max(self.effective_height(staking_end_time) - entry.last_claimed_block, 0)
        return elapsed * (reward_per_block // active_stakes_count)
