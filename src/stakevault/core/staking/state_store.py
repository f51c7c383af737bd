"""
Durable storage for staking contract snapshots.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ...database.storage_manager import StorageManager
from ..protocols import IAssetCustodian, IAuthorizer, IChainClock, IPauseGate, IRewardLedger
from .nft_staking import NFTStakingContract

logger = logging.getLogger(__name__)

KEY_PREFIX = "staking_contract:"


class StakingStateStore:
    """Saves and loads ``NFTStakingContract`` state keyed by contract address."""

    def __init__(self, storage: StorageManager):
        self.storage = storage

    @staticmethod
    def _key(address: str) -> str:
        return f"{KEY_PREFIX}{address.lower()}"

    def save(self, contract: NFTStakingContract) -> None:
        data = contract.to_dict()
        self.storage.set(self._key(contract.address), data)
        logger.debug(
            "Staking state saved",
            extra={
                "event": "staking.state_saved",
                "contract": contract.address[:10],
                "stakes": data["registry"]["stakes_count"],
            },
        )

    def load_raw(self, address: str) -> Optional[Dict[str, Any]]:
        return self.storage.get(self._key(address))

    def load(
        self,
        address: str,
        clock: IChainClock,
        authorizer: IAuthorizer,
        pause_gate: IPauseGate,
        collection: Optional[IAssetCustodian] = None,
        reward_token: Optional[IRewardLedger] = None,
    ) -> Optional[NFTStakingContract]:
        """Rebuild a contract from storage, or return None if nothing was saved."""
        data = self.load_raw(address)
        if data is None:
            return None
        contract = NFTStakingContract.from_dict(
            data,
            clock,
            authorizer,
            pause_gate,
            collection=collection,
            reward_token=reward_token,
        )
        logger.info(
            "Staking state loaded",
            extra={"event": "staking.state_loaded", "contract": contract.address[:10]},
        )
        return contract

    def delete(self, address: str) -> None:
        self.storage.delete(self._key(address))
