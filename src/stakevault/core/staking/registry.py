"""
Stake Registry.

Owns the durable stake records and keeps four structures mutually consistent:

- asset -> entry map
- owner -> asset list
- tracked assets (every asset with a live entry)
- tracked owners (every owner with a non-empty asset list)

plus the two global counters ``stakes_count`` (entries in storage) and
``active_stakes_count`` (entries in the Staked state). The registry holds no
policy; the state machine decides when to add, mutate and remove entries.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..staking_exceptions import EntryAlreadyExists, EntryNotFound
from .tracking import TrackedSet


class StakeState(Enum):
    """Per-asset lifecycle state."""
    STAKED = "staked"
    UNBONDING = "unbonding"
    FREE = "free"


@dataclass
class StakeEntry:
    """One record per staked or unbonding asset.

    ``unbonding_at`` is the unbonding completion time after a voluntary
    unstake, the tax payment time after a forced exit, and 0 while staked.
    """

    state: StakeState
    owner: str
    staked_at: int
    unbonding_at: int = 0
    last_claimed_block: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakeEntry":
        return cls(
            state=StakeState(data["state"]),
            owner=data["owner"],
            staked_at=int(data["staked_at"]),
            unbonding_at=int(data.get("unbonding_at", 0)),
            last_claimed_block=int(data.get("last_claimed_block", 0)),
        )


class StakeRegistry:
    """Pure storage for stake entries and their enumeration indices."""

    def __init__(self) -> None:
        self._entries: dict[int, StakeEntry] = {}
        self._owner_assets: dict[str, TrackedSet[int]] = {}
        self._tracked_assets: TrackedSet[int] = TrackedSet()
        self._tracked_owners: TrackedSet[str] = TrackedSet()
        self.stakes_count = 0
        self.active_stakes_count = 0

    # ==================== Mutations ====================

    def add(self, asset_id: int, entry: StakeEntry) -> None:
        """Register a new entry. The asset must not already have one."""
        if asset_id in self._entries:
            raise EntryAlreadyExists(
                f"Asset {asset_id} already has a stake entry",
                details={"asset_id": asset_id},
            )

        self._entries[asset_id] = entry
        self._owner_assets.setdefault(entry.owner, TrackedSet()).add(asset_id)
        self._tracked_assets.add(asset_id)
        self._tracked_owners.add(entry.owner)
        self.stakes_count += 1

    def remove(self, asset_id: int) -> StakeEntry:
        """Delete an entry and unlink it from every index. Returns the removed entry."""
        entry = self.require(asset_id)

        owner_assets = self._owner_assets.get(entry.owner)
        if owner_assets is not None:
            owner_assets.remove(asset_id)
            if not owner_assets:
                del self._owner_assets[entry.owner]
                self._tracked_owners.remove(entry.owner)
        self._tracked_assets.remove(asset_id)
        del self._entries[asset_id]
        self.stakes_count -= 1
        return entry

    def increment_active(self) -> None:
        self.active_stakes_count += 1

    def decrement_active(self) -> None:
        if self.active_stakes_count <= 0:
            raise RuntimeError("Active stake count would become negative")
        self.active_stakes_count -= 1

    # ==================== Reads ====================

    def get(self, asset_id: int) -> Optional[StakeEntry]:
        return self._entries.get(asset_id)

    def require(self, asset_id: int) -> StakeEntry:
        """Get an entry or raise ``EntryNotFound``."""
        entry = self._entries.get(asset_id)
        if entry is None:
            raise EntryNotFound(
                f"No stake entry for asset {asset_id}",
                details={"asset_id": asset_id},
            )
        return entry

    def contains(self, asset_id: int) -> bool:
        return asset_id in self._entries

    def list_by_owner(self, owner: str) -> list[int]:
        assets = self._owner_assets.get(owner)
        return assets.values() if assets is not None else []

    def count_by_owner(self, owner: str) -> int:
        assets = self._owner_assets.get(owner)
        return len(assets) if assets is not None else 0

    def tracked_assets(self) -> list[int]:
        return self._tracked_assets.values()

    def tracked_owners(self) -> list[str]:
        return self._tracked_owners.values()

    def entries(self) -> dict[int, StakeEntry]:
        return dict(self._entries)

    def invariant_violations(self) -> list[str]:
        """Describe every broken registry invariant (empty when consistent)."""
        violations = []
        staked = sum(1 for e in self._entries.values() if e.state == StakeState.STAKED)
        if staked != self.active_stakes_count:
            violations.append(
                f"active_stakes_count={self.active_stakes_count} but {staked} entries are staked"
            )
        if len(self._entries) != self.stakes_count:
            violations.append(
                f"stakes_count={self.stakes_count} but {len(self._entries)} entries exist"
            )
        if set(self._tracked_assets.values()) != set(self._entries):
            violations.append("tracked assets differ from stored entries")

        listed: dict[int, int] = {}
        for owner, assets in self._owner_assets.items():
            if not assets:
                violations.append(f"owner {owner} has an empty asset list")
            for asset_id in assets:
                listed[asset_id] = listed.get(asset_id, 0) + 1
                entry = self._entries.get(asset_id)
                if entry is None or entry.owner != owner:
                    violations.append(f"asset {asset_id} listed under wrong owner {owner}")
        for asset_id in self._entries:
            if listed.get(asset_id, 0) != 1:
                violations.append(f"asset {asset_id} appears in {listed.get(asset_id, 0)} owner lists")
        if set(self._tracked_owners.values()) != set(self._owner_assets):
            violations.append("tracked owners differ from owners with assets")
        return violations

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize registry state, preserving enumeration order."""
        return {
            "entries": {str(k): v.to_dict() for k, v in self._entries.items()},
            "owner_assets": {k: v.values() for k, v in self._owner_assets.items()},
            "tracked_assets": self._tracked_assets.values(),
            "tracked_owners": self._tracked_owners.values(),
            "stakes_count": self.stakes_count,
            "active_stakes_count": self.active_stakes_count,
        }

    def restore(self, data: Dict[str, Any]) -> None:
        """Replace the registry contents in place with a ``to_dict`` snapshot."""
        self._entries = {
            int(k): StakeEntry.from_dict(v) for k, v in data.get("entries", {}).items()
        }
        self._owner_assets = {}
        for owner, assets in data.get("owner_assets", {}).items():
            owner_set: TrackedSet[int] = TrackedSet()
            for asset_id in assets:
                owner_set.add(int(asset_id))
            self._owner_assets[owner] = owner_set
        self._tracked_assets = TrackedSet()
        for asset_id in data.get("tracked_assets", []):
            self._tracked_assets.add(int(asset_id))
        self._tracked_owners = TrackedSet()
        for owner in data.get("tracked_owners", []):
            self._tracked_owners.add(owner)
        self.stakes_count = int(data.get("stakes_count", 0))
        self.active_stakes_count = int(data.get("active_stakes_count", 0))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakeRegistry":
        registry = cls()
        registry.restore(data)
        return registry
