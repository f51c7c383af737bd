"""
StakeVault Configuration

Supports testnet and mainnet with separate configurations. Every value can
be overridden through a ``STAKEVAULT_``-prefixed environment variable.

SECURITY NOTICE:
- The mainnet admin address MUST be provided via environment variable
- Use separate state databases for testnet and mainnet
"""

from __future__ import annotations

import logging
import os
from enum import Enum

from .constants import (
    DEFAULT_AVERAGE_BLOCK_TIME_SECONDS,
    DEFAULT_CARRY_AMOUNT,
    DEFAULT_EARLY_EXIT_TAX,
    DEFAULT_INITIAL_REWARD_POOL,
    DEFAULT_REWARD_PER_BLOCK,
    DEFAULT_STAKE_LIMIT,
    DEFAULT_STAKING_DURATION_HOURS,
    DEFAULT_UNBONDING_PERIOD_HOURS,
)

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read a non-negative integer from the environment."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


# Get network type from environment variable
NETWORK = os.getenv("STAKEVAULT_NETWORK", "testnet")  # Default to testnet for safety

REWARD_PER_BLOCK = _get_int("STAKEVAULT_REWARD_PER_BLOCK", DEFAULT_REWARD_PER_BLOCK, minimum=1)
EARLY_EXIT_TAX = _get_int("STAKEVAULT_EARLY_EXIT_TAX", DEFAULT_EARLY_EXIT_TAX)
STAKE_LIMIT = _get_int("STAKEVAULT_STAKE_LIMIT", DEFAULT_STAKE_LIMIT, minimum=1)
CARRY_AMOUNT = _get_int("STAKEVAULT_CARRY_AMOUNT", DEFAULT_CARRY_AMOUNT)
STAKING_DURATION_HOURS = _get_int("STAKEVAULT_STAKING_DURATION_HOURS", DEFAULT_STAKING_DURATION_HOURS)
UNBONDING_PERIOD_HOURS = _get_int("STAKEVAULT_UNBONDING_PERIOD_HOURS", DEFAULT_UNBONDING_PERIOD_HOURS)
AVERAGE_BLOCK_TIME_SECONDS = _get_int(
    "STAKEVAULT_AVERAGE_BLOCK_TIME_SECONDS", DEFAULT_AVERAGE_BLOCK_TIME_SECONDS, minimum=1
)
INITIAL_REWARD_POOL = _get_int("STAKEVAULT_INITIAL_REWARD_POOL", DEFAULT_INITIAL_REWARD_POOL)

ADMIN_ADDRESS = os.getenv("STAKEVAULT_ADMIN_ADDRESS", "").strip().lower()
CONTRACT_ADDRESS = os.getenv("STAKEVAULT_CONTRACT_ADDRESS", "").strip().lower()
RBAC_CONFIG_FILE = os.getenv("STAKEVAULT_RBAC_CONFIG", "").strip()

LOG_FILE = os.getenv("STAKEVAULT_LOG_FILE", "").strip()
API_HOST = os.getenv("STAKEVAULT_API_HOST", "127.0.0.1")
API_PORT = _get_int("STAKEVAULT_API_PORT", 8600, minimum=1)


class TestnetConfig:
    """Testnet Configuration (for local testing before mainnet)"""

    NETWORK_TYPE = NetworkType.TESTNET

    # Staking parameters
    REWARD_PER_BLOCK = REWARD_PER_BLOCK
    EARLY_EXIT_TAX = EARLY_EXIT_TAX
    STAKE_LIMIT = STAKE_LIMIT
    CARRY_AMOUNT = CARRY_AMOUNT
    STAKING_DURATION_HOURS = STAKING_DURATION_HOURS
    UNBONDING_PERIOD_HOURS = UNBONDING_PERIOD_HOURS
    AVERAGE_BLOCK_TIME_SECONDS = AVERAGE_BLOCK_TIME_SECONDS
    INITIAL_REWARD_POOL = INITIAL_REWARD_POOL

    # Identity
    ADMIN_ADDRESS = ADMIN_ADDRESS
    CONTRACT_ADDRESS = CONTRACT_ADDRESS
    RBAC_CONFIG_FILE = RBAC_CONFIG_FILE

    # Files (separate from mainnet)
    STATE_DB_PATH = os.getenv(
        "STAKEVAULT_STATE_DB", os.path.join(os.getcwd(), "data_testnet", "staking_state.db")
    )
    PAUSE_DB_PATH = os.getenv(
        "STAKEVAULT_PAUSE_DB", os.path.join(os.getcwd(), "data_testnet", "emergency_pause.db")
    )

    # Logging
    LOG_LEVEL = os.getenv("STAKEVAULT_LOG_LEVEL", "DEBUG").upper()
    LOG_FILE = LOG_FILE

    # API
    API_HOST = API_HOST
    API_PORT = API_PORT


class MainnetConfig:
    """Mainnet Configuration (production ledger)"""

    NETWORK_TYPE = NetworkType.MAINNET

    REWARD_PER_BLOCK = REWARD_PER_BLOCK
    EARLY_EXIT_TAX = EARLY_EXIT_TAX
    STAKE_LIMIT = STAKE_LIMIT
    CARRY_AMOUNT = CARRY_AMOUNT
    STAKING_DURATION_HOURS = STAKING_DURATION_HOURS
    UNBONDING_PERIOD_HOURS = UNBONDING_PERIOD_HOURS
    AVERAGE_BLOCK_TIME_SECONDS = AVERAGE_BLOCK_TIME_SECONDS
    INITIAL_REWARD_POOL = INITIAL_REWARD_POOL

    ADMIN_ADDRESS = ADMIN_ADDRESS
    CONTRACT_ADDRESS = CONTRACT_ADDRESS
    RBAC_CONFIG_FILE = RBAC_CONFIG_FILE

    STATE_DB_PATH = os.getenv(
        "STAKEVAULT_STATE_DB", os.path.join(os.getcwd(), "data", "staking_state.db")
    )
    PAUSE_DB_PATH = os.getenv(
        "STAKEVAULT_PAUSE_DB", os.path.join(os.getcwd(), "data", "emergency_pause.db")
    )

    LOG_LEVEL = os.getenv("STAKEVAULT_LOG_LEVEL", "INFO").upper()
    LOG_FILE = LOG_FILE

    API_HOST = API_HOST
    API_PORT = API_PORT


def select_config(network: str):
    """Return the config class for ``network``, enforcing mainnet requirements."""
    if network.lower() == NetworkType.MAINNET.value:
        if not MainnetConfig.ADMIN_ADDRESS:
            raise ConfigurationError(
                "CRITICAL: STAKEVAULT_ADMIN_ADDRESS environment variable required for mainnet."
            )
        return MainnetConfig
    if not TestnetConfig.ADMIN_ADDRESS:
        logger.warning(
            "No admin address configured; privileged staking actions are unassigned.",
            extra={"event": "config.admin_missing", "network": network},
        )
    return TestnetConfig


# Select config based on network
Config = select_config(NETWORK)

# Export config
__all__ = [
    "Config",
    "ConfigurationError",
    "NetworkType",
    "TestnetConfig",
    "MainnetConfig",
    "select_config",
]
