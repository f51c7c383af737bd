"""
StakeVault staking node.

Composition root for a running deployment: builds authorization, the pause
gate, the chain clock, the reference collection and reward token and the
staking contract from ``Config``, restores them from the state database when
a previous run saved them, and serves the contract over HTTP.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Callable, Dict, Optional

from flask import Flask, request

from ..blockchain.emergency_pause import EmergencyPauseManager
from ..database.storage_manager import StorageManager
from ..security.rbac import RBAC
from .api_blueprints import create_app, run_app
from .chain_clock import LocalChainClock
from .constants import ZERO_ADDRESS
from .contracts.erc20 import ERC20Token
from .contracts.erc721 import ERC721Token
from .logging_config import setup_logging_from_config
from .staking import InitializationParams, NFTStakingContract, StakingStateStore

logger = logging.getLogger(__name__)

NODE_STATE_KEY = "staking_node"

COLLECTION_NAME = "StakeVault Collection"
COLLECTION_SYMBOL = "SVC"
REWARD_TOKEN_NAME = "StakeVault Reward"
REWARD_TOKEN_SYMBOL = "SVR"


class StakingNode:
    """
    One staking deployment and the stores that keep it across restarts.

    The contract snapshot lives in ``StakingStateStore``; the clock and the
    reference token ledgers are saved next to it under ``NODE_STATE_KEY``.
    """

    def __init__(self, config: Any, time_provider: Optional[Callable[[], int]] = None):
        self.config = config
        self.time_provider = time_provider

        self.rbac = RBAC(config.RBAC_CONFIG_FILE or None)
        if config.ADMIN_ADDRESS:
            self.rbac.assign_role(config.ADMIN_ADDRESS, "admin")

        self.pause_gate = EmergencyPauseManager(
            db_path=config.PAUSE_DB_PATH,
            authorizer=self.rbac,
            time_provider=time_provider,
        )
        self.storage = StorageManager(config.STATE_DB_PATH)
        self.store = StakingStateStore(self.storage)

        self.clock: Optional[LocalChainClock] = None
        self.collection: Optional[ERC721Token] = None
        self.reward_token: Optional[ERC20Token] = None
        self.contract: Optional[NFTStakingContract] = None

    def bootstrap(self) -> NFTStakingContract:
        """Resume the saved deployment, or deploy and initialize a new one."""
        saved = self.storage.get(NODE_STATE_KEY)
        if saved is not None:
            self._resume(saved)
        else:
            self._deploy()
        self.collection.register_receiver(self.contract.address, self.contract)
        self.save()
        return self.contract

    def _resume(self, saved: Dict[str, Any]) -> None:
        self.clock = LocalChainClock.from_dict(saved["clock"], time_provider=self.time_provider)
        self.collection = ERC721Token.from_dict(saved["collection"])
        self.reward_token = ERC20Token.from_dict(saved["reward_token"])
        self.contract = self.store.load(
            saved["contract"],
            self.clock,
            self.rbac,
            self.pause_gate,
            collection=self.collection,
            reward_token=self.reward_token,
        )
        if self.contract is None:
            raise RuntimeError(f"No staking contract saved at {saved['contract']}")
        logger.info(
            "Staking node resumed",
            extra={
                "event": "node.resumed",
                "contract": self.contract.address[:10],
                "block": self.clock.current_block(),
                "stakes": self.contract.total_stakes(),
            },
        )

    def _deploy(self) -> None:
        owner = self.config.ADMIN_ADDRESS or ZERO_ADDRESS
        self.clock = LocalChainClock(
            block_time_seconds=self.config.AVERAGE_BLOCK_TIME_SECONDS,
            time_provider=self.time_provider,
        )
        self.collection = ERC721Token(name=COLLECTION_NAME, symbol=COLLECTION_SYMBOL, owner=owner)
        self.reward_token = ERC20Token(name=REWARD_TOKEN_NAME, symbol=REWARD_TOKEN_SYMBOL, owner=owner)
        self.contract = NFTStakingContract(
            self.clock,
            self.rbac,
            self.pause_gate,
            address=self.config.CONTRACT_ADDRESS,
            average_block_time_seconds=self.config.AVERAGE_BLOCK_TIME_SECONDS,
        )
        if self.config.INITIAL_REWARD_POOL:
            self.reward_token.mint(owner, self.contract.address, self.config.INITIAL_REWARD_POOL)
        self.contract.initialize(
            InitializationParams.from_config(self.config, self.collection, self.reward_token)
        )
        logger.info(
            "Staking contract deployed",
            extra={
                "event": "node.deployed",
                "contract": self.contract.address[:10],
                "network": self.config.NETWORK_TYPE.value,
                "reward_pool": self.config.INITIAL_REWARD_POOL,
            },
        )

    def save(self) -> None:
        """Persist the contract, the clock and both token ledgers."""
        self.store.save(self.contract)
        self.storage.set(
            NODE_STATE_KEY,
            {
                "contract": self.contract.address,
                "clock": self.clock.to_dict(),
                "collection": self.collection.to_dict(),
                "reward_token": self.reward_token.to_dict(),
            },
        )

    def create_app(self) -> Flask:
        """HTTP app over the contract; state is saved after every successful write."""
        app = create_app(
            self.contract,
            clock=self.clock,
            collection=self.collection,
            reward_token=self.reward_token,
        )

        @app.after_request
        def persist_state(response):
            if request.method == "POST" and response.status_code < 400:
                self.save()
            return response

        return app

    def close(self) -> None:
        self.storage.close()
        self.pause_gate.close()


def main(argv: Optional[list[str]] = None) -> None:
    """Command-line entry point for running a staking node."""
    from .config import Config

    parser = argparse.ArgumentParser(description="StakeVault Staking Node")
    parser.add_argument("--host", default=None, help=f"Host to bind to (default {Config.API_HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"Port to listen on (default {Config.API_PORT})")
    args = parser.parse_args(argv)

    setup_logging_from_config(Config)
    node = StakingNode(Config)
    try:
        node.bootstrap()
        run_app(node.create_app(), Config, host=args.host, port=args.port)
    except KeyboardInterrupt:
        logger.info("Shutting down staking node...", extra={"event": "node.shutdown"})
    finally:
        if node.contract is not None:
            node.save()
        node.close()


if __name__ == "__main__":
    main()
