"""
Collectible staking contract.

Holders lock a unique asset (plus a fixed carry deposit of the reward token)
into the contract's custody and accrue reward tokens every block. Leaving
follows the per-asset lifecycle::

    Staked --unstake--> Unbonding --withdraw--> removed
    Staked --unstake(force)--> Free --withdraw--> removed
    Unbonding --withdraw(force)--> Free --> removed

Forcing an exit charges the early-exit tax. Once the staking period has
ended, ``withdraw`` returns any asset in any state without tax.

Every mutating entry point runs as one atomic unit: a reentrancy guard is
held, internal state is snapshotted, and inbound transfers register a
compensating transfer. Outbound payouts run after all internal effects are
applied. Any failure restores the snapshot, reverses the inbound transfers
and re-raises.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, Optional

from ..constants import (
    ACTION_FORCE_WITHDRAW_ASSET,
    ACTION_FORCE_WITHDRAW_REWARD_POOL,
    ACTION_PAUSE,
    ACTION_SET_CARRY_AMOUNT,
    ACTION_SET_EARLY_EXIT_TAX,
    ACTION_SET_REWARD_PER_BLOCK,
    ACTION_SET_STAKE_LIMIT,
    ACTION_SET_STAKING_END_TIME,
    ACTION_SET_UNBONDING_PERIOD,
    ACTION_UNPAUSE,
    DEFAULT_AVERAGE_BLOCK_TIME_SECONDS,
    ERC721_RECEIVED_SELECTOR,
    SECONDS_PER_HOUR,
)
from ..protocols import IAssetCustodian, IAuthorizer, IChainClock, IPauseGate, IRewardLedger
from ..staking_exceptions import (
    AlreadyInitialized,
    CallerNotAssetHolder,
    CallerNotEntryOwner,
    CustodyTransferFailed,
    EntryNotFound,
    ForcedExitRequired,
    InvalidParameter,
    NotInitialized,
    NotStaked,
    ReentrantCall,
    StakeLimitExceeded,
    StakingError,
    StakingPeriodEnded,
    SystemPaused,
    Unauthorized,
)
from .. import staking_metrics
from .registry import StakeEntry, StakeRegistry, StakeState
from .rewards import RewardEngine

logger = logging.getLogger(__name__)

ASSET = "asset"
REWARD_TOKEN = "reward_token"


@dataclass
class InitializationParams:
    """One-time configuration of a staking contract. Durations are in hours."""

    collection: IAssetCustodian
    reward_token: IRewardLedger
    reward_per_block: int
    early_exit_tax: int
    stake_limit: int
    carry_amount: int
    staking_duration_hours: int
    unbonding_period_hours: int

    def validate(self) -> None:
        for name in ("reward_per_block", "stake_limit"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise InvalidParameter(f"{name} must be a positive integer", details={name: value})
        for name in (
            "early_exit_tax",
            "carry_amount",
            "staking_duration_hours",
            "unbonding_period_hours",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise InvalidParameter(f"{name} must be a non-negative integer", details={name: value})

    @classmethod
    def from_config(
        cls,
        config: Any,
        collection: IAssetCustodian,
        reward_token: IRewardLedger,
    ) -> "InitializationParams":
        """Build initialization parameters from a ``Config`` class."""
        return cls(
            collection=collection,
            reward_token=reward_token,
            reward_per_block=config.REWARD_PER_BLOCK,
            early_exit_tax=config.EARLY_EXIT_TAX,
            stake_limit=config.STAKE_LIMIT,
            carry_amount=config.CARRY_AMOUNT,
            staking_duration_hours=config.STAKING_DURATION_HOURS,
            unbonding_period_hours=config.UNBONDING_PERIOD_HOURS,
        )


@dataclass
class StakingEvent:
    """Represents a staking contract event."""

    event_type: str  # "Staked", "Unstaked", "Withdrawn", "RewardClaimed", ...
    asset_id: int
    owner: str
    amount: int = 0
    block_number: int = 0
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _Transaction:
    """Bookkeeping for one atomic staking operation."""

    compensations: list[Callable[[], None]] = field(default_factory=list)
    payouts: list[tuple[str, int, Callable[[], Any]]] = field(default_factory=list)
    rewards_paid: int = 0
    taxes_collected: int = 0
    withdrawals: list[str] = field(default_factory=list)


class NFTStakingContract:
    """
    Staking state machine over a ``StakeRegistry``.

    Collaborators are injected: the asset collection and reward token are
    supplied at ``initialize``; the clock, authorizer and pause gate at
    construction.
    """

    def __init__(
        self,
        clock: IChainClock,
        authorizer: IAuthorizer,
        pause_gate: IPauseGate,
        address: str = "",
        average_block_time_seconds: int = DEFAULT_AVERAGE_BLOCK_TIME_SECONDS,
    ):
        if not address:
            addr_hash = hashlib.sha3_256(f"NFTStaking{time.time()}".encode()).digest()
            address = f"0x{addr_hash[-20:].hex()}"
        self.address = address.lower()
        self.clock = clock
        self.authorizer = authorizer
        self.pause_gate = pause_gate
        self.rewards = RewardEngine(clock, average_block_time_seconds)
        self.registry = StakeRegistry()
        self.events: list[StakingEvent] = []

        self.collection: Optional[IAssetCustodian] = None
        self.reward_token: Optional[IRewardLedger] = None
        self._reward_per_block = 0
        self._early_exit_tax = 0
        self._stake_limit = 0
        self._carry_amount = 0
        self._staking_end_time = 0
        self._unbonding_period = 0
        self._initialized = False

        self._lock = threading.Lock()
        self._guard_owner: Optional[int] = None

    # ==================== Lifecycle ====================

    def initialize(self, params: InitializationParams) -> None:
        """
        Configure the contract. Allowed exactly once.

        Raises:
            AlreadyInitialized: On any second call
            InvalidParameter: If a value is out of range
            ReentrantCall: If called from inside another staking operation
        """
        with self._transaction():
            if self._initialized:
                raise AlreadyInitialized("Staking contract is already initialized")
            params.validate()

            now = self.clock.current_timestamp()
            self.collection = params.collection
            self.reward_token = params.reward_token
            self._reward_per_block = params.reward_per_block
            self._early_exit_tax = params.early_exit_tax
            self._stake_limit = params.stake_limit
            self._carry_amount = params.carry_amount
            self._staking_end_time = now + params.staking_duration_hours * SECONDS_PER_HOUR
            self._unbonding_period = params.unbonding_period_hours * SECONDS_PER_HOUR
            self._initialized = True

        logger.info(
            "Staking contract initialized",
            extra={
                "event": "staking.initialized",
                "contract": self.address[:10],
                "reward_per_block": self._reward_per_block,
                "stake_limit": self._stake_limit,
                "staking_end_time": self._staking_end_time,
            },
        )

    def on_erc721_received(self, operator: str, from_addr: str, token_id: int, data: bytes = b"") -> str:
        """Accept every incoming asset."""
        return ERC721_RECEIVED_SELECTOR

    # ==================== Staking Operations ====================

    def stake(self, caller: str, asset_id: int) -> None:
        """
        Lock ``asset_id`` and the carry deposit into custody.

        Raises:
            StakingPeriodEnded: If the staking period is over
            StakeLimitExceeded: If the active-stake limit is reached
            CallerNotAssetHolder: If caller does not hold the asset
            CustodyTransferFailed: If the asset or carry transfer is rejected
        """
        caller = self._normalize(caller)

        with self._transaction() as tx:
            self._require_open_for_users()
            now = self.clock.current_timestamp()
            if self._staking_ended(now):
                raise StakingPeriodEnded(
                    "Staking period has ended", details={"staking_end_time": self._staking_end_time}
                )
            if self.registry.active_stakes_count >= self._stake_limit:
                raise StakeLimitExceeded(
                    "Stake limit reached", details={"stake_limit": self._stake_limit}
                )

            holder = self._holder_of(asset_id)
            if holder != caller:
                raise CallerNotAssetHolder(
                    f"Caller does not hold asset {asset_id}", details={"asset_id": asset_id}
                )

            self._require_token_pull(caller, self._carry_amount)
            self._require_asset_pull(caller, asset_id)
            self._pull_tokens(tx, caller, self._carry_amount)
            self._pull_asset(tx, caller, asset_id)

            block = self.clock.current_block()
            self.registry.increment_active()
            self.registry.add(
                asset_id,
                StakeEntry(
                    state=StakeState.STAKED,
                    owner=caller,
                    staked_at=now,
                    unbonding_at=0,
                    last_claimed_block=block,
                ),
            )
            self._emit("Staked", asset_id, caller, self._carry_amount)

        logger.info(
            "Asset staked",
            extra={"event": "staking.staked", "asset_id": asset_id, "owner": caller[:10]},
        )

    def unstake(self, caller: str, asset_id: int, force_with_tax: bool = False) -> None:
        """
        Leave the Staked state, settling pending rewards first.

        Without ``force_with_tax`` the entry starts unbonding; with it the
        early-exit tax is charged and the entry becomes Free.
        """
        caller = self._normalize(caller)

        with self._transaction() as tx:
            self._require_open_for_users()
            self._unstake(tx, caller, asset_id, force_with_tax)

        logger.info(
            "Asset unstaked",
            extra={
                "event": "staking.unstaked",
                "asset_id": asset_id,
                "owner": caller[:10],
                "forced": force_with_tax,
            },
        )

    def withdraw(self, caller: str, asset_id: int, force_with_tax: bool = False) -> None:
        """
        Return the asset and carry deposit to the owner and remove the entry.

        Before the staking period ends, a caller still inside a lock window
        must pass ``force_with_tax``. After it ends, withdrawal is
        unconditional.

        Raises:
            EntryNotFound: If the asset has no entry
            CallerNotEntryOwner: If caller is not the depositor
            ForcedExitRequired: If inside the lock window without the tax flag
        """
        caller = self._normalize(caller)

        with self._transaction() as tx:
            self._require_open_for_users()
            entry = self.registry.require(asset_id)
            self._require_entry_owner(entry, caller, asset_id)

            now = self.clock.current_timestamp()
            if not self._staking_ended(now):
                if now < entry.unbonding_at and not force_with_tax:
                    raise ForcedExitRequired(
                        "Asset is still unbonding; exit requires the early-exit tax",
                        details={"asset_id": asset_id, "unbonding_at": entry.unbonding_at},
                    )
                if entry.state == StakeState.STAKED:
                    self._unstake(tx, caller, asset_id, force_with_tax)
                elif entry.state == StakeState.UNBONDING and force_with_tax and now < entry.unbonding_at:
                    self._collect_tax(tx, caller, asset_id)
                    entry.state = StakeState.FREE
                    entry.unbonding_at = now

            self._release(tx, asset_id, entry.owner, kind="owner")
            self._emit("Withdrawn", asset_id, caller, self._carry_amount)

        logger.info(
            "Asset withdrawn",
            extra={"event": "staking.withdrawn", "asset_id": asset_id, "owner": caller[:10]},
        )

    def claim_reward(self, caller: str, asset_id: int) -> int:
        """Pay the pending reward of one staked entry. Returns the amount paid."""
        caller = self._normalize(caller)

        with self._transaction() as tx:
            self._require_open_for_users()
            entry = self.registry.require(asset_id)
            if entry.state != StakeState.STAKED:
                raise NotStaked(f"Asset {asset_id} is not staked", details={"asset_id": asset_id})
            self._require_entry_owner(entry, caller, asset_id)
            amount = self._settle_reward(tx, asset_id, entry)

        logger.info(
            "Reward claimed",
            extra={
                "event": "staking.reward_claimed",
                "asset_id": asset_id,
                "owner": caller[:10],
                "amount": amount,
            },
        )
        return amount

    def claim_all_rewards(self, caller: str) -> int:
        """Claim for every staked entry the caller owns; others are skipped."""
        caller = self._normalize(caller)

        with self._transaction() as tx:
            self._require_open_for_users()
            total = 0
            for asset_id in self.registry.list_by_owner(caller):
                entry = self.registry.get(asset_id)
                if entry is None or entry.state != StakeState.STAKED:
                    continue
                total += self._settle_reward(tx, asset_id, entry)

        logger.info(
            "All rewards claimed",
            extra={"event": "staking.reward_claimed", "owner": caller[:10], "amount": total},
        )
        return total

    # ==================== Views ====================
    # Views take the operation lock; the thread holding the guard reads without it.

    def list_stakes_by_owner(self, owner: str) -> list[int]:
        with self._read_scope():
            return self.registry.list_by_owner(self._normalize(owner))

    def stake_info(self, asset_id: int) -> StakeEntry:
        """Copy of the entry for ``asset_id``. Raises ``EntryNotFound``."""
        with self._read_scope():
            return replace(self.registry.require(asset_id))

    def unbonding_timestamp(self, asset_id: int) -> int:
        with self._read_scope():
            return self.registry.require(asset_id).unbonding_at

    def pending_reward(self, asset_id: int) -> int:
        """
        Reward accrued by a staked entry since its last claim.

        Raises:
            EntryNotFound: If the asset has no entry
            NotStaked: If the entry is unbonding or free
        """
        with self._read_scope():
            entry = self.registry.require(asset_id)
            return self.rewards.pending_reward(
                entry,
                self.registry.active_stakes_count,
                self._reward_per_block,
                self._staking_end_time,
            )

    def stake_count(self, owner: str) -> int:
        with self._read_scope():
            return self.registry.count_by_owner(self._normalize(owner))

    def staking_end_time(self) -> int:
        with self._read_scope():
            return self._staking_end_time

    def unbonding_period(self) -> int:
        with self._read_scope():
            return self._unbonding_period

    def reward_per_block(self) -> int:
        with self._read_scope():
            return self._reward_per_block

    def tracked_owners(self) -> list[str]:
        with self._read_scope():
            return self.registry.tracked_owners()

    def tracked_assets(self) -> list[int]:
        with self._read_scope():
            return self.registry.tracked_assets()

    def total_stakes(self) -> int:
        with self._read_scope():
            return self.registry.stakes_count

    def active_stake_count(self) -> int:
        with self._read_scope():
            return self.registry.active_stakes_count

    def stake_limit(self) -> int:
        with self._read_scope():
            return self._stake_limit

    def carry_amount(self) -> int:
        with self._read_scope():
            return self._carry_amount

    def early_exit_tax(self) -> int:
        with self._read_scope():
            return self._early_exit_tax

    def is_initialized(self) -> bool:
        return self._initialized

    def staking_ended(self) -> bool:
        with self._read_scope():
            return self._staking_ended(self.clock.current_timestamp())

    def get_info(self) -> Dict[str, Any]:
        """Summary of configuration and counters."""
        with self._read_scope():
            now = self.clock.current_timestamp()
            return {
                "address": self.address,
                "initialized": self._initialized,
                "collection": getattr(self.collection, "address", None),
                "reward_token": getattr(self.reward_token, "address", None),
                "reward_per_block": self._reward_per_block,
                "early_exit_tax": self._early_exit_tax,
                "stake_limit": self._stake_limit,
                "carry_amount": self._carry_amount,
                "staking_end_time": self._staking_end_time,
                "unbonding_period": self._unbonding_period,
                "staking_ended": self._staking_ended(now) if self._initialized else False,
                "total_stakes": self.registry.stakes_count,
                "active_stakes": self.registry.active_stakes_count,
                "paused": self.pause_gate.is_paused(),
                "block": self.clock.current_block(),
                "timestamp": now,
            }

    # ==================== Admin Functions ====================

    def set_stake_limit(self, caller: str, stake_limit: int) -> None:
        self._set_param(caller, ACTION_SET_STAKE_LIMIT, "_stake_limit", stake_limit, positive=True)

    def set_reward_per_block(self, caller: str, reward_per_block: int) -> None:
        self._set_param(
            caller, ACTION_SET_REWARD_PER_BLOCK, "_reward_per_block", reward_per_block, positive=True
        )

    def set_early_exit_tax(self, caller: str, early_exit_tax: int) -> None:
        self._set_param(caller, ACTION_SET_EARLY_EXIT_TAX, "_early_exit_tax", early_exit_tax)

    def set_carry_amount(self, caller: str, carry_amount: int) -> None:
        self._set_param(caller, ACTION_SET_CARRY_AMOUNT, "_carry_amount", carry_amount)

    def set_staking_end_time(self, caller: str, duration_hours: int) -> None:
        """Move the staking-period end to ``now + duration_hours``."""
        self._set_param(
            caller,
            ACTION_SET_STAKING_END_TIME,
            "_staking_end_time",
            duration_hours,
            convert=lambda hours: self.clock.current_timestamp() + hours * SECONDS_PER_HOUR,
        )

    def set_unbonding_period(self, caller: str, duration_hours: int) -> None:
        """Set the unbonding period applied to future unstakes."""
        self._set_param(
            caller,
            ACTION_SET_UNBONDING_PERIOD,
            "_unbonding_period",
            duration_hours,
            convert=lambda hours: hours * SECONDS_PER_HOUR,
        )

    def pause(self, caller: str, reason: str = "Staking paused by admin") -> None:
        caller = self._normalize(caller)
        self._require_authorized(caller, ACTION_PAUSE)
        with self._transaction():
            self.pause_gate.pause_operations(caller, reason)
        logger.warning(
            "Staking paused",
            extra={"event": "staking.admin.paused", "caller": caller[:10], "reason": reason},
        )

    def unpause(self, caller: str, reason: str = "Staking resumed by admin") -> None:
        caller = self._normalize(caller)
        self._require_authorized(caller, ACTION_UNPAUSE)
        with self._transaction():
            self.pause_gate.unpause_operations(caller, reason)
        logger.warning(
            "Staking unpaused",
            extra={"event": "staking.admin.unpaused", "caller": caller[:10], "reason": reason},
        )

    def force_withdraw_reward_pool(self, caller: str) -> int:
        """
        Send the reward pool to the caller, keeping the carry deposits.

        Returns:
            Amount transferred
        """
        caller = self._normalize(caller)
        self._require_initialized()
        self._require_authorized(caller, ACTION_FORCE_WITHDRAW_REWARD_POOL)

        with self._transaction() as tx:
            balance = self.reward_token.balance_of(self.address)
            reserve = self.registry.stakes_count * self._carry_amount
            amount = max(balance - reserve, 0)
            if amount > 0:
                self._push_tokens(tx, caller, amount)
            self._emit("RewardPoolWithdrawn", 0, caller, amount)

        logger.warning(
            "Reward pool withdrawn",
            extra={"event": "staking.admin.reward_pool_withdrawn", "caller": caller[:10], "amount": amount},
        )
        return amount

    def force_withdraw_asset(self, caller: str, asset_id: int) -> str:
        """
        Emergency return of an asset held in custody.

        A staked or unbonding asset goes back to its depositor together with
        the carry deposit, without reward settlement. An untracked asset in
        custody goes to the caller.
        An entry whose asset already left custody is removed and only the
        carry deposit is returned.

        Returns:
            Recipient address
        """
        caller = self._normalize(caller)
        self._require_initialized()
        self._require_authorized(caller, ACTION_FORCE_WITHDRAW_ASSET)

        with self._transaction() as tx:
            entry = self.registry.get(asset_id)
            if entry is not None:
                recipient = entry.owner
                in_custody = self._in_custody(asset_id)
                if not in_custody:
                    logger.critical(
                        "Dropping entry whose asset left custody",
                        extra={"event": "staking.admin.stale_entry", "asset_id": asset_id},
                    )
                self._release(tx, asset_id, recipient, kind="rescue", return_asset=in_custody)
            else:
                try:
                    holder = self._holder_of(asset_id)
                except CallerNotAssetHolder as exc:
                    raise EntryNotFound(
                        f"Asset {asset_id} does not exist", details={"asset_id": asset_id}
                    ) from exc
                if holder != self.address:
                    raise EntryNotFound(
                        f"Asset {asset_id} is not in custody", details={"asset_id": asset_id}
                    )
                recipient = caller
                self._push_asset(tx, recipient, asset_id)
                tx.withdrawals.append("rescue")
            self._emit("AssetRescued", asset_id, recipient)

        logger.warning(
            "Asset force-withdrawn",
            extra={
                "event": "staking.admin.asset_rescued",
                "caller": caller[:10],
                "asset_id": asset_id,
                "recipient": recipient[:10],
            },
        )
        return recipient

    # ==================== Internal Transitions ====================

    def _unstake(self, tx: _Transaction, caller: str, asset_id: int, force_with_tax: bool) -> None:
        now = self.clock.current_timestamp()
        if self._staking_ended(now):
            raise StakingPeriodEnded(
                "Staking period has ended", details={"staking_end_time": self._staking_end_time}
            )
        entry = self.registry.require(asset_id)
        if entry.state != StakeState.STAKED:
            raise NotStaked(f"Asset {asset_id} is not staked", details={"asset_id": asset_id})
        self._require_entry_owner(entry, caller, asset_id)

        if force_with_tax:
            self._collect_tax(tx, caller, asset_id)
            new_state = StakeState.FREE
            unbonding_at = now
        else:
            new_state = StakeState.UNBONDING
            unbonding_at = now + self._unbonding_period

        self._settle_reward(tx, asset_id, entry)
        self.registry.decrement_active()
        entry.state = new_state
        entry.unbonding_at = unbonding_at
        self._emit("Unstaked", asset_id, caller)

    def _settle_reward(self, tx: _Transaction, asset_id: int, entry: StakeEntry) -> int:
        amount = self.rewards.pending_reward(
            entry,
            self.registry.active_stakes_count,
            self._reward_per_block,
            self._staking_end_time,
        )
        entry.last_claimed_block = self.clock.current_block()
        if amount > 0:
            self._push_tokens(tx, entry.owner, amount)
            tx.rewards_paid += amount
            self._emit("RewardClaimed", asset_id, entry.owner, amount)
        return amount

    def _collect_tax(self, tx: _Transaction, caller: str, asset_id: int) -> None:
        self._require_token_pull(caller, self._early_exit_tax)
        self._pull_tokens(tx, caller, self._early_exit_tax)
        tx.taxes_collected += self._early_exit_tax
        self._emit("EarlyExitTaxPaid", asset_id, caller, self._early_exit_tax)

    def _release(
        self, tx: _Transaction, asset_id: int, recipient: str, kind: str, return_asset: bool = True
    ) -> None:
        """Remove an entry and return its asset and carry deposit to ``recipient``."""
        entry = self.registry.require(asset_id)
        if entry.state == StakeState.STAKED:
            self.registry.decrement_active()
        self.registry.remove(asset_id)
        if return_asset:
            self._push_asset(tx, recipient, asset_id)
        self._push_tokens(tx, recipient, self._carry_amount)
        tx.withdrawals.append(kind)

    # ==================== Custody ====================

    def _holder_of(self, asset_id: int) -> str:
        try:
            return self.collection.owner_of(asset_id).lower()
        except StakingError:
            raise
        except Exception as exc:
            raise CallerNotAssetHolder(
                f"Asset {asset_id} has no holder", details={"asset_id": asset_id}
            ) from exc

    def _in_custody(self, asset_id: int) -> bool:
        try:
            return self._holder_of(asset_id) == self.address
        except CallerNotAssetHolder:
            return False

    def _require_token_pull(self, owner: str, amount: int) -> None:
        if amount <= 0:
            return
        allowance = self.reward_token.allowance(owner, self.address)
        balance = self.reward_token.balance_of(owner)
        if allowance < amount or balance < amount:
            raise CustodyTransferFailed(
                "Reward token deposit is not covered by allowance and balance",
                asset_kind=REWARD_TOKEN,
                details={"amount": amount, "allowance": allowance, "balance": balance},
            )

    def _require_asset_pull(self, owner: str, asset_id: int) -> None:
        if self.collection.get_approved(asset_id).lower() == self.address:
            return
        if not self.collection.is_approved_for_all(owner, self.address):
            raise CustodyTransferFailed(
                f"Contract is not approved to move asset {asset_id}",
                asset_kind=ASSET,
                details={"asset_id": asset_id},
            )

    def _custody_call(self, kind: str, action: str, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except StakingError:
            raise
        except Exception as exc:
            raise CustodyTransferFailed(
                f"{kind} {action} failed: {exc}",
                asset_kind=kind,
                details={"action": action},
            ) from exc

    def _pull_tokens(self, tx: _Transaction, owner: str, amount: int) -> None:
        if amount <= 0:
            return
        self._custody_call(
            REWARD_TOKEN, "deposit", self.reward_token.transfer_from, self.address, owner, self.address, amount
        )
        tx.compensations.append(lambda: self.reward_token.transfer(self.address, owner, amount))

    def _pull_asset(self, tx: _Transaction, owner: str, asset_id: int) -> None:
        self._custody_call(
            ASSET, "deposit", self.collection.safe_transfer_from, self.address, owner, self.address, asset_id
        )
        tx.compensations.append(
            lambda: self.collection.safe_transfer_from(self.address, self.address, owner, asset_id)
        )

    def _push_tokens(self, tx: _Transaction, recipient: str, amount: int) -> None:
        if amount <= 0:
            return
        tx.payouts.append(
            (REWARD_TOKEN, amount, lambda: self.reward_token.transfer(self.address, recipient, amount))
        )

    def _push_asset(self, tx: _Transaction, recipient: str, asset_id: int) -> None:
        tx.payouts.append(
            (
                ASSET,
                1,
                lambda: self.collection.safe_transfer_from(self.address, self.address, recipient, asset_id),
            )
        )

    # ==================== Transaction Scope ====================

    @contextmanager
    def _read_scope(self) -> Iterator[None]:
        if self._guard_owner == threading.get_ident():
            yield
            return
        with self._lock:
            yield

    @contextmanager
    def _transaction(self) -> Iterator[_Transaction]:
        if self._guard_owner == threading.get_ident():
            raise ReentrantCall("Staking operation already in progress")

        with self._lock:
            self._guard_owner = threading.get_ident()
            tx = _Transaction()
            snapshot = self._capture_state()
            try:
                yield tx
                self._run_payouts(tx)
            except Exception:
                self._compensate(tx)
                self._restore_state(snapshot)
                raise
            finally:
                self._guard_owner = None

        staking_metrics.update_stake_gauges(
            self.address, self.registry.active_stakes_count, self.registry.stakes_count
        )
        staking_metrics.record_reward_paid(self.address, tx.rewards_paid)
        staking_metrics.record_tax_collected(self.address, tx.taxes_collected)
        for kind in tx.withdrawals:
            staking_metrics.record_withdrawal(self.address, kind)

    def _run_payouts(self, tx: _Transaction) -> None:
        """Asset payouts first, then token payouts against a pre-checked pool."""
        owed = sum(amount for kind, amount, _ in tx.payouts if kind == REWARD_TOKEN)
        if owed:
            available = self.reward_token.balance_of(self.address)
            if available < owed:
                raise CustodyTransferFailed(
                    "Reward pool cannot cover payouts",
                    asset_kind=REWARD_TOKEN,
                    details={"owed": owed, "available": available},
                )

        ordered = [p for p in tx.payouts if p[0] == ASSET] + [p for p in tx.payouts if p[0] != ASSET]
        for position, (kind, _, payout) in enumerate(ordered):
            try:
                self._custody_call(kind, "payout", payout)
            except StakingError:
                if position:
                    logger.critical(
                        "Payout failed after earlier payouts completed",
                        extra={"event": "staking.partial_payout", "completed": position},
                    )
                raise

    def _compensate(self, tx: _Transaction) -> None:
        for undo in reversed(tx.compensations):
            try:
                undo()
            except Exception:
                logger.critical(
                    "Compensating transfer failed",
                    exc_info=True,
                    extra={"event": "staking.compensation_failed", "contract": self.address[:10]},
                )

    def _capture_state(self) -> Dict[str, Any]:
        return {
            "registry": self.registry.to_dict(),
            "events": len(self.events),
            "params": self._params_dict(),
        }

    def _restore_state(self, snapshot: Dict[str, Any]) -> None:
        self.registry.restore(snapshot["registry"])
        del self.events[snapshot["events"]:]
        self._load_params(snapshot["params"])

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _staking_ended(self, now: int) -> bool:
        return now >= self._staking_end_time

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitialized("Staking contract is not initialized")

    def _require_open_for_users(self) -> None:
        self._require_initialized()
        if self.pause_gate.is_paused():
            raise SystemPaused("Staking operations are paused")

    def _require_authorized(self, caller: str, action: str) -> None:
        if not self.authorizer.is_authorized(caller, action):
            logger.warning(
                "Unauthorized admin call",
                extra={"event": "staking.admin.unauthorized", "caller": caller[:10], "action": action},
            )
            raise Unauthorized(
                f"Caller is not authorized to {action}", details={"action": action}
            )

    def _require_entry_owner(self, entry: StakeEntry, caller: str, asset_id: int) -> None:
        if entry.owner != caller:
            raise CallerNotEntryOwner(
                f"Caller does not own the stake on asset {asset_id}",
                details={"asset_id": asset_id},
            )

    @staticmethod
    def _validate_non_negative(name: str, value: int) -> None:
        if not isinstance(value, int) or value < 0:
            raise InvalidParameter(f"{name} must be a non-negative integer", details={name: value})

    def _set_param(
        self,
        caller: str,
        action: str,
        attribute: str,
        value: int,
        positive: bool = False,
        convert: Optional[Callable[[int], int]] = None,
    ) -> None:
        caller = self._normalize(caller)
        self._require_initialized()
        self._require_authorized(caller, action)
        if positive and (not isinstance(value, int) or value <= 0):
            raise InvalidParameter(f"{action} requires a positive integer", details={"value": value})
        self._validate_non_negative("value", value)

        with self._transaction():
            if convert is not None:
                value = convert(value)
            previous = getattr(self, attribute)
            setattr(self, attribute, value)

        logger.warning(
            "Staking parameter changed",
            extra={
                "event": f"staking.admin.{action}",
                "caller": caller[:10],
                "previous": previous,
                "value": value,
            },
        )

    def _emit(self, event_type: str, asset_id: int, owner: str, amount: int = 0) -> None:
        self.events.append(
            StakingEvent(
                event_type=event_type,
                asset_id=asset_id,
                owner=owner,
                amount=amount,
                block_number=self.clock.current_block(),
                timestamp=self.clock.current_timestamp(),
            )
        )

    # ==================== Serialization ====================

    def _params_dict(self) -> Dict[str, Any]:
        return {
            "reward_per_block": self._reward_per_block,
            "early_exit_tax": self._early_exit_tax,
            "stake_limit": self._stake_limit,
            "carry_amount": self._carry_amount,
            "staking_end_time": self._staking_end_time,
            "unbonding_period": self._unbonding_period,
        }

    def _load_params(self, params: Dict[str, Any]) -> None:
        self._reward_per_block = int(params["reward_per_block"])
        self._early_exit_tax = int(params["early_exit_tax"])
        self._stake_limit = int(params["stake_limit"])
        self._carry_amount = int(params["carry_amount"])
        self._staking_end_time = int(params["staking_end_time"])
        self._unbonding_period = int(params["unbonding_period"])

    def to_dict(self) -> Dict[str, Any]:
        """Serialize committed contract state to dictionary."""
        with self._read_scope():
            return {
                "address": self.address,
                "initialized": self._initialized,
                "collection": getattr(self.collection, "address", ""),
                "reward_token": getattr(self.reward_token, "address", ""),
                "average_block_time_seconds": self.rewards.average_block_time_seconds,
                "params": self._params_dict(),
                "registry": self.registry.to_dict(),
                "events": [event.to_dict() for event in self.events],
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        clock: IChainClock,
        authorizer: IAuthorizer,
        pause_gate: IPauseGate,
        collection: Optional[IAssetCustodian] = None,
        reward_token: Optional[IRewardLedger] = None,
    ) -> "NFTStakingContract":
        """Deserialize contract state, re-attaching live collaborators."""
        contract = cls(
            clock,
            authorizer,
            pause_gate,
            address=data["address"],
            average_block_time_seconds=data.get(
                "average_block_time_seconds", DEFAULT_AVERAGE_BLOCK_TIME_SECONDS
            ),
        )
        contract.collection = collection
        contract.reward_token = reward_token
        contract._load_params(data["params"])
        contract._initialized = bool(data.get("initialized", False))
        contract.registry = StakeRegistry.from_dict(data.get("registry", {}))
        contract.events = [StakingEvent(**event) for event in data.get("events", [])]
        return contract
