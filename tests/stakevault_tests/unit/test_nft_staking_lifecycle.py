"""
Lifecycle tests for the collectible staking contract.

Covers staking, reward claims, voluntary and forced exits, the unbonding
lock window and the unconditional withdrawal after the staking period ends.
"""
import pytest

from stakevault.core.constants import ERC721_RECEIVED_SELECTOR, SECONDS_PER_HOUR
from stakevault.core.staking import StakeState
from stakevault.core.staking_exceptions import (
    AlreadyInitialized,
    CallerNotAssetHolder,
    CallerNotEntryOwner,
    EntryNotFound,
    ForcedExitRequired,
    InvalidParameter,
    NotInitialized,
    NotStaked,
    StakeLimitExceeded,
    StakingPeriodEnded,
)

from staking_env import (
    ADMIN,
    ALICE,
    BOB,
    CARRY_AMOUNT,
    CONTRACT,
    EARLY_EXIT_TAX,
    GENESIS,
    REWARD_POOL,
    START_BLOCK,
    USER_BALANCE,
    approve_staker,
    fund_and_initialize,
    make_params,
)

UNBONDING_SECONDS = 2 * SECONDS_PER_HOUR
STAKING_SECONDS = 24 * SECONDS_PER_HOUR


def _event_types(contract):
    return [event.event_type for event in contract.events]


class TestInitialization:
    def test_operations_require_initialization(self, bare_contract):
        with pytest.raises(NotInitialized):
            bare_contract.stake(ALICE, 1)
        with pytest.raises(NotInitialized):
            bare_contract.set_stake_limit(ADMIN, 5)

    def test_initialize_sets_period_from_current_time(self, contract):
        assert contract.is_initialized()
        assert contract.staking_end_time() == GENESIS + STAKING_SECONDS
        assert contract.unbonding_period() == UNBONDING_SECONDS
        assert contract.stake_limit() == 10
        assert contract.carry_amount() == CARRY_AMOUNT
        assert contract.early_exit_tax() == EARLY_EXIT_TAX

    def test_second_initialize_rejected(self, contract, nft, token):
        with pytest.raises(AlreadyInitialized):
            contract.initialize(make_params(nft, token, stake_limit=1))
        assert contract.stake_limit() == 10

    def test_invalid_parameters_leave_contract_uninitialized(self, bare_contract, nft, token):
        with pytest.raises(InvalidParameter):
            bare_contract.initialize(make_params(nft, token, reward_per_block=0))
        assert not bare_contract.is_initialized()

        fund_and_initialize(bare_contract, nft, token)
        assert bare_contract.is_initialized()

    def test_accepts_incoming_assets(self, bare_contract):
        assert bare_contract.on_erc721_received(ALICE, ALICE, 1, b"") == ERC721_RECEIVED_SELECTOR

    def test_info_summarizes_configuration(self, contract, token, nft):
        info = contract.get_info()
        assert info["address"] == CONTRACT
        assert info["reward_token"] == token.address
        assert info["collection"] == nft.address
        assert info["total_stakes"] == 0
        assert info["paused"] is False
        assert info["staking_ended"] is False


class TestStake:
    def test_stake_takes_custody_of_asset_and_carry(self, contract, nft, token):
        contract.stake(ALICE, 1)

        assert nft.owner_of(1) == CONTRACT
        assert token.balance_of(ALICE) == USER_BALANCE - CARRY_AMOUNT
        assert token.balance_of(CONTRACT) == REWARD_POOL + CARRY_AMOUNT

        entry = contract.stake_info(1)
        assert entry.state == StakeState.STAKED
        assert entry.owner == ALICE
        assert entry.staked_at == GENESIS
        assert entry.unbonding_at == 0
        assert entry.last_claimed_block == START_BLOCK

        assert contract.active_stake_count() == 1
        assert contract.total_stakes() == 1
        assert contract.list_stakes_by_owner(ALICE) == [1]
        assert contract.stake_count(ALICE) == 1
        assert contract.tracked_owners() == [ALICE]
        assert contract.tracked_assets() == [1]
        assert _event_types(contract) == ["Staked"]

    def test_caller_address_is_case_insensitive(self, contract, nft, token):
        dave = "0x" + "d" * 40
        nft.mint(ADMIN, dave, 50)
        token.mint(ADMIN, dave, 100)
        approve_staker(contract, nft, token, dave)

        contract.stake(dave.upper(), 50)
        assert contract.stake_info(50).owner == dave
        assert contract.list_stakes_by_owner(dave.upper()) == [50]

    def test_stake_info_is_a_copy(self, contract):
        contract.stake(ALICE, 1)
        contract.stake_info(1).state = StakeState.FREE
        assert contract.stake_info(1).state == StakeState.STAKED

    def test_caller_must_hold_asset(self, contract):
        with pytest.raises(CallerNotAssetHolder):
            contract.stake(BOB, 1)
        with pytest.raises(CallerNotAssetHolder):
            contract.stake(ALICE, 999)
        assert contract.total_stakes() == 0

    def test_staked_asset_cannot_be_staked_again(self, contract):
        contract.stake(ALICE, 1)
        with pytest.raises(CallerNotAssetHolder):
            contract.stake(ALICE, 1)

    def test_stake_limit_counts_active_stakes(self, contract):
        contract.set_stake_limit(ADMIN, 1)
        contract.stake(ALICE, 1)
        with pytest.raises(StakeLimitExceeded):
            contract.stake(BOB, 6)

        # Unbonding entries free up a slot
        contract.unstake(ALICE, 1)
        contract.stake(BOB, 6)
        assert contract.active_stake_count() == 1
        assert contract.total_stakes() == 2

    def test_stake_rejected_once_period_ends(self, contract, clock):
        clock.advance_time(STAKING_SECONDS)
        with pytest.raises(StakingPeriodEnded):
            contract.stake(ALICE, 1)

    def test_asset_can_be_restaked_after_withdrawal(self, contract, nft):
        contract.stake(ALICE, 1)
        contract.withdraw(ALICE, 1, force_with_tax=True)
        assert nft.owner_of(1) == ALICE

        contract.stake(ALICE, 1)
        assert contract.stake_info(1).state == StakeState.STAKED


class TestRewards:
    def test_claim_pays_accrued_reward(self, contract, clock, token):
        contract.stake(ALICE, 1)
        clock.mine(10)

        assert contract.pending_reward(1) == 1_000
        assert contract.claim_reward(ALICE, 1) == 1_000
        assert token.balance_of(ALICE) == USER_BALANCE - CARRY_AMOUNT + 1_000
        assert contract.pending_reward(1) == 0
        assert contract.stake_info(1).last_claimed_block == START_BLOCK + 10
        assert contract.events[-1].event_type == "RewardClaimed"
        assert contract.events[-1].amount == 1_000

    def test_rewards_shared_across_active_stakes(self, contract, clock):
        contract.stake(ALICE, 1)
        contract.stake(BOB, 6)
        clock.mine(10)

        assert contract.pending_reward(1) == 500
        assert contract.pending_reward(6) == 500

    def test_share_is_truncated(self, contract, clock):
        contract.stake(ALICE, 1)
        contract.stake(ALICE, 2)
        contract.stake(BOB, 6)
        clock.mine(10)
        assert contract.pending_reward(1) == 330

    def test_claim_with_nothing_accrued(self, contract):
        contract.stake(ALICE, 1)
        assert contract.claim_reward(ALICE, 1) == 0
        assert "RewardClaimed" not in _event_types(contract)

    def test_claim_requires_owner(self, contract, clock):
        contract.stake(ALICE, 1)
        clock.mine(3)
        with pytest.raises(CallerNotEntryOwner):
            contract.claim_reward(BOB, 1)

    def test_claim_requires_staked_entry(self, contract):
        with pytest.raises(EntryNotFound):
            contract.claim_reward(ALICE, 1)

        contract.stake(ALICE, 1)
        contract.unstake(ALICE, 1)
        with pytest.raises(NotStaked):
            contract.claim_reward(ALICE, 1)
        with pytest.raises(NotStaked):
            contract.pending_reward(1)

    def test_claim_all_skips_non_staked_entries(self, contract, clock, token):
        for asset_id in (1, 2, 3):
            contract.stake(ALICE, asset_id)
        contract.unstake(ALICE, 3)
        clock.mine(10)

        balance = token.balance_of(ALICE)
        assert contract.claim_all_rewards(ALICE) == 1_000
        assert token.balance_of(ALICE) == balance + 1_000
        assert contract.stake_info(3).state == StakeState.UNBONDING

    def test_claim_all_without_stakes(self, contract):
        assert contract.claim_all_rewards(BOB) == 0

    def test_reward_frozen_after_period_end(self, contract, clock):
        contract.stake(ALICE, 1)
        clock.mine(STAKING_SECONDS // 12)
        assert contract.staking_ended()
        accrued = contract.pending_reward(1)
        assert accrued == (STAKING_SECONDS // 12) * 100

        clock.mine(10)
        assert contract.pending_reward(1) == accrued

    def test_claim_allowed_after_period_end(self, contract, clock):
        contract.stake(ALICE, 1)
        clock.mine(STAKING_SECONDS // 12 + 5)
        assert contract.claim_reward(ALICE, 1) == (STAKING_SECONDS // 12) * 100
        assert contract.pending_reward(1) == 0


class TestUnstake:
    def test_unstake_settles_and_starts_unbonding(self, contract, clock, token):
        contract.stake(ALICE, 1)
        clock.mine(10)
        contract.unstake(ALICE, 1)

        entry = contract.stake_info(1)
        assert entry.state == StakeState.UNBONDING
        assert entry.unbonding_at == clock.current_timestamp() + UNBONDING_SECONDS
        assert contract.unbonding_timestamp(1) == entry.unbonding_at
        assert contract.active_stake_count() == 0
        assert contract.total_stakes() == 1
        assert token.balance_of(ALICE) == USER_BALANCE - CARRY_AMOUNT + 1_000
        assert _event_types(contract) == ["Staked", "RewardClaimed", "Unstaked"]

    def test_forced_unstake_charges_tax_and_frees(self, contract, clock, token):
        contract.stake(ALICE, 1)
        clock.mine(10)
        contract.unstake(ALICE, 1, force_with_tax=True)

        entry = contract.stake_info(1)
        assert entry.state == StakeState.FREE
        assert entry.unbonding_at == clock.current_timestamp()
        assert token.balance_of(ALICE) == USER_BALANCE - CARRY_AMOUNT - EARLY_EXIT_TAX + 1_000
        assert "EarlyExitTaxPaid" in _event_types(contract)

    def test_unstake_requires_staked_entry(self, contract):
        with pytest.raises(EntryNotFound):
            contract.unstake(ALICE, 1)
        contract.stake(ALICE, 1)
        contract.unstake(ALICE, 1)
        with pytest.raises(NotStaked):
            contract.unstake(ALICE, 1)

    def test_unstake_requires_owner(self, contract):
        contract.stake(ALICE, 1)
        with pytest.raises(CallerNotEntryOwner):
            contract.unstake(BOB, 1)

    def test_unstake_rejected_after_period_end(self, contract, clock):
        contract.stake(ALICE, 1)
        clock.advance_time(STAKING_SECONDS)
        with pytest.raises(StakingPeriodEnded):
            contract.unstake(ALICE, 1)


class TestWithdraw:
    def test_withdraw_after_unbonding_completes(self, contract, clock, nft, token):
        contract.stake(ALICE, 1)
        clock.mine(10)
        contract.unstake(ALICE, 1)

        with pytest.raises(ForcedExitRequired):
            contract.withdraw(ALICE, 1)

        clock.advance_time(UNBONDING_SECONDS)
        contract.withdraw(ALICE, 1)

        assert nft.owner_of(1) == ALICE
        assert token.balance_of(ALICE) == USER_BALANCE + 1_000
        assert contract.total_stakes() == 0
        assert contract.tracked_owners() == []
        assert contract.events[-1].event_type == "Withdrawn"
        with pytest.raises(EntryNotFound):
            contract.stake_info(1)

    def test_forced_withdraw_while_unbonding_pays_tax(self, contract, nft, token):
        contract.stake(ALICE, 1)
        contract.unstake(ALICE, 1)
        contract.withdraw(ALICE, 1, force_with_tax=True)

        assert nft.owner_of(1) == ALICE
        assert token.balance_of(ALICE) == USER_BALANCE - EARLY_EXIT_TAX
        assert _event_types(contract) == [
            "Staked",
            "Unstaked",
            "EarlyExitTaxPaid",
            "Withdrawn",
        ]

    def test_forced_flag_is_free_once_unbonding_elapsed(self, contract, clock, token):
        contract.stake(ALICE, 1)
        contract.unstake(ALICE, 1)
        clock.advance_time(UNBONDING_SECONDS)
        contract.withdraw(ALICE, 1, force_with_tax=True)
        assert token.balance_of(ALICE) == USER_BALANCE

    def test_forced_withdraw_of_staked_entry(self, contract, clock, nft, token):
        contract.stake(ALICE, 1)
        clock.mine(10)
        contract.withdraw(ALICE, 1, force_with_tax=True)

        assert nft.owner_of(1) == ALICE
        assert token.balance_of(ALICE) == USER_BALANCE - EARLY_EXIT_TAX + 1_000
        assert contract.active_stake_count() == 0
        assert contract.total_stakes() == 0

    def test_withdraw_of_staked_entry_without_flag_runs_voluntary_unstake(self, contract, nft, token):
        contract.stake(ALICE, 1)
        contract.withdraw(ALICE, 1)

        assert nft.owner_of(1) == ALICE
        assert token.balance_of(ALICE) == USER_BALANCE
        assert _event_types(contract) == ["Staked", "Unstaked", "Withdrawn"]

    def test_withdraw_of_free_entry(self, contract, nft, token):
        contract.stake(ALICE, 1)
        contract.unstake(ALICE, 1, force_with_tax=True)
        contract.withdraw(ALICE, 1)
        assert nft.owner_of(1) == ALICE
        assert token.balance_of(ALICE) == USER_BALANCE - EARLY_EXIT_TAX

    def test_withdraw_requires_owner(self, contract):
        contract.stake(ALICE, 1)
        with pytest.raises(CallerNotEntryOwner):
            contract.withdraw(BOB, 1, force_with_tax=True)

    def test_withdraw_missing_entry(self, contract):
        with pytest.raises(EntryNotFound):
            contract.withdraw(ALICE, 1)

    def test_owner_list_shrinks_on_withdraw(self, contract):
        for asset_id in (1, 2, 3):
            contract.stake(ALICE, asset_id)
        contract.withdraw(ALICE, 1, force_with_tax=True)
        assert sorted(contract.list_stakes_by_owner(ALICE)) == [2, 3]
        assert contract.stake_count(ALICE) == 2


class TestSunset:
    def test_withdraw_ignores_lock_window_after_period_end(self, bare_contract, clock, nft, token):
        fund_and_initialize(bare_contract, nft, token, unbonding_period_hours=48)
        bare_contract.stake(ALICE, 1)
        bare_contract.unstake(ALICE, 1)
        clock.advance_time(STAKING_SECONDS)

        assert clock.current_timestamp() < bare_contract.unbonding_timestamp(1)
        bare_contract.withdraw(ALICE, 1)

        assert nft.owner_of(1) == ALICE
        assert token.balance_of(ALICE) == USER_BALANCE

    def test_withdraw_staked_entry_after_period_end(self, contract, clock, nft, token):
        contract.stake(ALICE, 1)
        contract.stake(BOB, 6)
        clock.mine(STAKING_SECONDS // 12)

        contract.withdraw(ALICE, 1)

        assert nft.owner_of(1) == ALICE
        # No tax and no reward settlement on the sunset path
        assert token.balance_of(ALICE) == USER_BALANCE
        assert contract.active_stake_count() == 1
        assert "EarlyExitTaxPaid" not in _event_types(contract)

    def test_claim_before_sunset_withdraw(self, contract, clock, token):
        contract.stake(ALICE, 1)
        clock.mine(STAKING_SECONDS // 12)

        reward = contract.claim_reward(ALICE, 1)
        contract.withdraw(ALICE, 1)
        assert token.balance_of(ALICE) == USER_BALANCE + reward
