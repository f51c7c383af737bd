"""
Property-based tests for the staking ledger.

Random sequences of staking operations, admin changes and block production
must keep the registry's indices and counters consistent, keep custody in
step with the registry and conserve the reward token. Any rejected operation
must leave state exactly as it was.

Uses Hypothesis for property-based testing with random inputs.
"""

from hypothesis import given, strategies as st, settings
from hypothesis.stateful import RuleBasedStateMachine, invariant, rule

from stakevault.core.staking import StakeState
from stakevault.core.staking_exceptions import StakingError

from staking_env import (
    ADMIN,
    ALICE,
    ALICE_ASSETS,
    BOB,
    BOB_ASSETS,
    CARRY_AMOUNT,
    build_environment,
    state_fingerprint,
)

users = st.sampled_from([ALICE, BOB])
assets = st.sampled_from(ALICE_ASSETS + BOB_ASSETS)


class StakingStateMachine(RuleBasedStateMachine):
    """
    Stateful property-based testing for the staking contract.

    A short staking period and unbonding window let sequences reach the
    sunset path and the end of the lock window.
    """

    def __init__(self):
        super().__init__()
        self.env = build_environment(stake_limit=4, staking_duration_hours=1, unbonding_period_hours=1)
        self.contract = self.env.contract
        self.supply = self.env.token.total_supply
        self.rejections = 0

    def teardown(self):
        self.env.pause_gate.close()

    def _attempt(self, operation):
        before = state_fingerprint(self.contract, self.env.nft, self.env.token)
        try:
            operation()
        except StakingError:
            self.rejections += 1
            after = state_fingerprint(self.contract, self.env.nft, self.env.token)
            assert after == before, "Rejected operation changed state"

    @rule(user=users, asset_id=assets)
    def stake(self, user, asset_id):
        self._attempt(lambda: self.contract.stake(user, asset_id))

    @rule(user=users, asset_id=assets, force=st.booleans())
    def unstake(self, user, asset_id, force):
        self._attempt(lambda: self.contract.unstake(user, asset_id, force))

    @rule(user=users, asset_id=assets, force=st.booleans())
    def withdraw(self, user, asset_id, force):
        self._attempt(lambda: self.contract.withdraw(user, asset_id, force))

    @rule(user=users, asset_id=assets)
    def claim(self, user, asset_id):
        self._attempt(lambda: self.contract.claim_reward(user, asset_id))

    @rule(user=users)
    def claim_all(self, user):
        self._attempt(lambda: self.contract.claim_all_rewards(user))

    @rule(reward_per_block=st.integers(min_value=1, max_value=500))
    def change_reward_rate(self, reward_per_block):
        self._attempt(lambda: self.contract.set_reward_per_block(ADMIN, reward_per_block))

    @rule(paused=st.booleans())
    def toggle_pause(self, paused):
        if paused:
            self.contract.pause(ADMIN)
        else:
            self.contract.unpause(ADMIN)

    @rule(blocks=st.integers(min_value=0, max_value=60))
    def mine(self, blocks):
        self.env.clock.mine(blocks)

    @rule(seconds=st.integers(min_value=0, max_value=900))
    def advance_time(self, seconds):
        self.env.clock.advance_time(seconds)

    @invariant()
    def registry_consistent(self):
        """Invariant: indices and counters agree with the stored entries."""
        assert self.contract.registry.invariant_violations() == []

    @invariant()
    def custody_matches_registry(self):
        """Invariant: the contract holds exactly the assets it has entries for."""
        tracked = set(self.contract.tracked_assets())
        for asset_id in ALICE_ASSETS + BOB_ASSETS:
            holder = self.env.nft.owner_of(asset_id)
            if asset_id in tracked:
                assert holder == self.contract.address
            else:
                assert holder in (ALICE, BOB)

    @invariant()
    def reward_token_conserved(self):
        """Invariant: staking moves reward tokens but never creates or destroys them."""
        assert sum(self.env.token.balances.values()) == self.supply

    @invariant()
    def carry_deposits_covered(self):
        """Invariant: the contract can always refund every carry deposit."""
        reserve = self.contract.total_stakes() * CARRY_AMOUNT
        assert self.env.token.balance_of(self.contract.address) >= reserve

    @invariant()
    def only_staked_entries_accrue(self):
        """Invariant: pending reward is defined exactly for staked entries."""
        for asset_id, entry in self.contract.registry.entries().items():
            if entry.state == StakeState.STAKED:
                assert self.contract.pending_reward(asset_id) >= 0


TestStakingStateMachine = StakingStateMachine.TestCase
TestStakingStateMachine.settings = settings(max_examples=50, stateful_step_count=40, deadline=None)


class TestRewardProperties:
    """Property tests for reward accrual over block production."""

    @given(steps=st.lists(st.integers(min_value=0, max_value=50), min_size=1, max_size=20))
    @settings(max_examples=50, deadline=None)
    def test_pending_reward_never_decreases_between_claims(self, steps):
        env = build_environment()
        env.contract.stake(ALICE, 1)

        previous = 0
        for blocks in steps:
            env.clock.mine(blocks)
            current = env.contract.pending_reward(1)
            assert current >= previous
            previous = current

        assert env.contract.claim_reward(ALICE, 1) == previous
        assert env.contract.pending_reward(1) == 0
        env.pause_gate.close()

    @given(
        stakers=st.integers(min_value=1, max_value=5),
        blocks=st.integers(min_value=0, max_value=500),
        reward_per_block=st.integers(min_value=1, max_value=1_000),
    )
    @settings(max_examples=50, deadline=None)
    def test_total_paid_never_exceeds_emission(self, stakers, blocks, reward_per_block):
        env = build_environment(reward_per_block=reward_per_block)
        for asset_id in ALICE_ASSETS[:stakers]:
            env.contract.stake(ALICE, asset_id)

        env.clock.mine(blocks)
        paid = env.contract.claim_all_rewards(ALICE)

        assert paid <= blocks * reward_per_block
        assert paid == stakers * blocks * (reward_per_block // stakers)
        env.pause_gate.close()

    @given(extra_blocks=st.integers(min_value=1, max_value=1_000))
    @settings(max_examples=25, deadline=None)
    def test_reward_frozen_after_sunset(self, extra_blocks):
        env = build_environment(staking_duration_hours=1)
        env.contract.stake(BOB, 6)

        env.clock.mine(300)  # exactly one hour of blocks
        at_end = env.contract.pending_reward(6)
        env.clock.mine(extra_blocks)

        assert env.contract.pending_reward(6) == at_end
        env.pause_gate.close()
