"""
Collectible staking: registry, reward accrual and the staking state machine.
"""

from .nft_staking import InitializationParams, NFTStakingContract, StakingEvent
from .registry import StakeEntry, StakeRegistry, StakeState
from .rewards import RewardEngine
from .state_store import StakingStateStore
from .tracking import TrackedSet

__all__ = [
    "InitializationParams",
    "NFTStakingContract",
    "RewardEngine",
    "StakeEntry",
    "StakeRegistry",
    "StakeState",
    "StakingEvent",
    "StakingStateStore",
    "TrackedSet",
]
