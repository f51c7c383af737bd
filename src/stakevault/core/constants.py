"""
StakeVault Constants

Magic numbers used throughout the staking ledger, organized by category.

NOTE: Values marked [LEDGER] change how rewards are computed for existing
stakes. Changing them on a live deployment alters historical rounding.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_HOUR: Final[int] = 3600  # 60 * 60
SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24

# =============================================================================
# CHAIN CONSTANTS [LEDGER]
# =============================================================================

# Average block time used to estimate the block height at staking-period end
DEFAULT_AVERAGE_BLOCK_TIME_SECONDS: Final[int] = 12

# =============================================================================
# STAKING DEFAULTS
# =============================================================================

DEFAULT_REWARD_PER_BLOCK: Final[int] = 100
DEFAULT_EARLY_EXIT_TAX: Final[int] = 50
DEFAULT_STAKE_LIMIT: Final[int] = 1000
DEFAULT_CARRY_AMOUNT: Final[int] = 10
DEFAULT_STAKING_DURATION_HOURS: Final[int] = 24 * 90  # 90 days
DEFAULT_UNBONDING_PERIOD_HOURS: Final[int] = 24 * 7  # 7 days

# Reward tokens minted into the pool when a fresh deployment starts
DEFAULT_INITIAL_REWARD_POOL: Final[int] = 0

# =============================================================================
# ADDRESSES & SELECTORS
# =============================================================================

ZERO_ADDRESS: Final[str] = "0x" + "0" * 40

# bytes4(keccak256("onERC721Received(address,address,uint256,bytes)"))
ERC721_RECEIVED_SELECTOR: Final[str] = "150b7a02"

# =============================================================================
# PERMISSIONS
# =============================================================================

ACTION_SET_STAKE_LIMIT: Final[str] = "set_stake_limit"
ACTION_SET_REWARD_PER_BLOCK: Final[str] = "set_reward_per_block"
ACTION_SET_EARLY_EXIT_TAX: Final[str] = "set_early_exit_tax"
ACTION_SET_CARRY_AMOUNT: Final[str] = "set_carry_amount"
ACTION_SET_STAKING_END_TIME: Final[str] = "set_staking_end_time"
ACTION_SET_UNBONDING_PERIOD: Final[str] = "set_unbonding_period"
ACTION_PAUSE: Final[str] = "pause"
ACTION_UNPAUSE: Final[str] = "unpause"
ACTION_FORCE_WITHDRAW_REWARD_POOL: Final[str] = "force_withdraw_reward_pool"
ACTION_FORCE_WITHDRAW_ASSET: Final[str] = "force_withdraw_asset"

ADMIN_ACTIONS: Final[tuple[str, ...]] = (
    ACTION_SET_STAKE_LIMIT,
    ACTION_SET_REWARD_PER_BLOCK,
    ACTION_SET_EARLY_EXIT_TAX,
    ACTION_SET_CARRY_AMOUNT,
    ACTION_SET_STAKING_END_TIME,
    ACTION_SET_UNBONDING_PERIOD,
    ACTION_PAUSE,
    ACTION_UNPAUSE,
    ACTION_FORCE_WITHDRAW_REWARD_POOL,
    ACTION_FORCE_WITHDRAW_ASSET,
)
