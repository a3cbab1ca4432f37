"""
Unit tests for StakingPool deposits, withdrawals and reward settlement.
"""

import pytest

from ledger_doubles import ADMIN, ALICE, BOB, CAROL, LEDGER, fund, make_token
from tokenledger.blockchain.staking_manager import StakingPool
from tokenledger.core.config_manager import StakingConfig
from tokenledger.core.ledger_exceptions import (
    CliffNotReached,
    InvalidInput,
    MechanismDisabled,
    NoScheduleInFlight,
    NothingDue,
    Unauthorized,
)

ONE_DAY = 86_400
ONE_YEAR = 31_536_000
CLIFF = 72 * 3600


def _pool(token, clock, **overrides):
    params = dict(
        reward_rate=6500,
        reward_interval=ONE_YEAR,
        staking_fee_rate=0,
        unstaking_fee_rate=0,
        cliff_time=CLIFF,
        time_provider=clock.now,
    )
    params.update(overrides)
    pool = StakingPool(token, LEDGER, ADMIN, **params)
    pool.set_enabled(ADMIN, True, current_time=0)
    return pool


@pytest.fixture
def stakers(token):
    for account in (ALICE, BOB, CAROL):
        fund(token, account, 1_000_000)
    return token


def _top_up(token, amount):
    """Admin sends reward surplus straight to the pool."""
    token.transfer(ADMIN, LEDGER, amount)


class TestLifecycle:
    def test_starts_disabled(self, token, stakers, clock):
        pool = StakingPool(token, LEDGER, ADMIN, time_provider=clock.now)
        assert pool.staking_start_time is None
        with pytest.raises(MechanismDisabled):
            pool.deposit(ALICE, 100)

    def test_start_time_anchored_to_first_enable(self, token, clock):
        pool = StakingPool(token, LEDGER, ADMIN, time_provider=clock.now)
        pool.set_staking_enabled(ADMIN, True, current_time=500)
        pool.set_enabled(ADMIN, False, current_time=600)
        pool.set_enabled(ADMIN, True, current_time=700)
        assert pool.staking_start_time == 500
        assert pool.enabled

    def test_enable_requires_admin(self, token, clock):
        pool = StakingPool(token, LEDGER, ADMIN, time_provider=clock.now)
        with pytest.raises(Unauthorized):
            pool.set_enabled(ALICE, True)

    def test_from_config(self, token, clock):
        pool = StakingPool.from_config(StakingConfig(), token, LEDGER, ADMIN, time_provider=clock.now)
        assert pool.reward_rate == 6500
        assert pool.staking_fee_rate == 150
        assert pool.unstaking_fee_rate == 50
        assert pool.cliff_time == CLIFF


class TestDeposit:
    def test_fee_routed_to_admin(self, token, stakers, clock):
        pool = _pool(token, clock, staking_fee_rate=150)
        admin_before = token.balance_of(ADMIN)

        assert pool.deposit(ALICE, 10_000, current_time=0) == 9_850
        assert pool.deposited_of(ALICE) == 9_850
        assert pool.total_staked == 9_850
        assert token.balance_of(ADMIN) - admin_before == 150
        assert token.balance_of(LEDGER) == 9_850
        fee_events = [e for e in pool.events if e.event_type == "FeeCollected"]
        assert [(e.account, e.amount) for e in fee_events] == [(ADMIN, 150)]

    def test_fee_plus_net_equals_gross(self, token, stakers, clock):
        pool = _pool(token, clock, staking_fee_rate=333)
        for gross in (1, 29, 10_000, 77_777):
            fees_before = sum(e.amount for e in pool.events if e.event_type == "FeeCollected")
            net = pool.deposit(BOB, gross, current_time=0)
            fees_after = sum(e.amount for e in pool.events if e.event_type == "FeeCollected")
            assert net + (fees_after - fees_before) == gross

    def test_deposit_consumed_by_fee(self, token, stakers, clock):
        pool = _pool(token, clock, staking_fee_rate=10_000)
        with pytest.raises(InvalidInput):
            pool.deposit(ALICE, 100, current_time=0)
        assert pool.number_of_holders() == 0
        assert token.balance_of(LEDGER) == 0

    def test_zero_deposit_rejected(self, token, stakers, clock):
        pool = _pool(token, clock)
        with pytest.raises(InvalidInput):
            pool.deposit(ALICE, 0, current_time=0)

    def test_top_up_settles_first(self, token, stakers, clock):
        pool = _pool(token, clock)
        _top_up(token, 1_000_000)
        start_balance = token.balance_of(ALICE)

        pool.deposit(ALICE, 10_000, current_time=0)
        pool.deposit(ALICE, 10_000, current_time=ONE_DAY)

        assert pool.deposited_of(ALICE) == 20_000
        assert token.balance_of(ALICE) == start_balance - 20_000 + 17
        record = pool.store.stake_record(ALICE)
        assert record.last_claimed_at == ONE_DAY
        assert record.cumulative_earned == 17
        assert record.staked_at == 0


class TestRewards:
    def test_one_day_reward(self, token, stakers, clock):
        pool = _pool(token, clock)
        pool.deposit(ALICE, 10_000, current_time=0)
        _top_up(token, 1_000_000)

        clock.current_time = ONE_DAY
        assert pool.pending_rewards(ALICE) == 17
        before = token.balance_of(ALICE)
        assert pool.claim_rewards(ALICE) == 17
        assert token.balance_of(ALICE) - before == 17
        assert pool.total_claimed_rewards == 17
        assert pool.store.stake_record(ALICE).last_claimed_at == ONE_DAY

        with pytest.raises(NothingDue):
            pool.claim_rewards(ALICE)

    def test_no_surplus_no_reward(self, token, stakers, clock):
        pool = _pool(token, clock)
        pool.deposit(ALICE, 10_000, current_time=0)
        assert pool.pending_rewards(ALICE, current_time=ONE_YEAR) == 0
        with pytest.raises(NothingDue):
            pool.claim_rewards(ALICE, current_time=ONE_YEAR)

    def test_reward_clamped_to_surplus(self, token, stakers, clock):
        pool = _pool(token, clock)
        pool.deposit(ALICE, 10_000, current_time=0)
        _top_up(token, 5)
        assert pool.claim_rewards(ALICE, current_time=ONE_YEAR) == 5
        # Staked principal is never used for rewards
        assert token.balance_of(LEDGER) == pool.total_staked == 10_000

    def test_rewards_stop_after_window(self, token, stakers, clock):
        pool = _pool(token, clock, reward_rate=10_000, reward_interval=100)
        pool.deposit(ALICE, 10_000, current_time=0)
        _top_up(token, 1_000_000)

        assert pool.pending_rewards(ALICE, current_time=50) == 5_000
        assert pool.pending_rewards(ALICE, current_time=500) == 10_000
        assert pool.claim_rewards(ALICE, current_time=500) == 10_000
        assert pool.pending_rewards(ALICE, current_time=1_000) == 0

    def test_non_holder(self, token, stakers, clock):
        pool = _pool(token, clock)
        assert pool.pending_rewards(BOB, current_time=ONE_DAY) == 0
        with pytest.raises(NoScheduleInFlight):
            pool.claim_rewards(BOB, current_time=ONE_DAY)

    def test_rewards_transferred_event(self, token, stakers, clock):
        pool = _pool(token, clock)
        pool.deposit(ALICE, 10_000, current_time=0)
        _top_up(token, 1_000_000)
        pool.claim_rewards(ALICE, current_time=ONE_DAY)
        event = pool.events[-1]
        assert (event.event_type, event.account, event.amount) == ("RewardsTransferred", ALICE, 17)


class TestWithdraw:
    def test_cliff_blocks_early_exit(self, token, stakers, clock):
        pool = _pool(token, clock)
        pool.deposit(ALICE, 10_000, current_time=0)
        with pytest.raises(CliffNotReached):
            pool.withdraw(ALICE, 10_000, current_time=CLIFF)
        assert pool.deposited_of(ALICE) == 10_000

    def test_full_exit_with_fees(self, token, stakers, clock):
        pool = _pool(token, clock, staking_fee_rate=150, unstaking_fee_rate=50)
        start_balance = token.balance_of(ALICE)
        pool.deposit(ALICE, 10_000, current_time=0)

        admin_before = token.balance_of(ADMIN)
        assert pool.withdraw(ALICE, 9_850, current_time=CLIFF + 1) == 9_801
        assert token.balance_of(ADMIN) - admin_before == 49
        assert token.balance_of(ALICE) == start_balance - 10_000 + 9_801
        assert pool.number_of_holders() == 0
        assert pool.deposited_of(ALICE) == 0
        assert pool.total_staked == 0
        assert token.balance_of(LEDGER) == 0

    def test_partial_exit_pays_rewards(self, token, stakers, clock):
        pool = _pool(token, clock, cliff_time=0)
        pool.deposit(ALICE, 10_000, current_time=0)
        _top_up(token, 1_000_000)
        before = token.balance_of(ALICE)

        assert pool.withdraw(ALICE, 4_000, current_time=ONE_DAY) == 4_000
        assert token.balance_of(ALICE) - before == 4_000 + 17
        assert pool.deposited_of(ALICE) == 6_000
        assert pool.number_of_holders() == 1

    def test_over_withdraw(self, token, stakers, clock):
        pool = _pool(token, clock)
        pool.deposit(ALICE, 10_000, current_time=0)
        with pytest.raises(InvalidInput):
            pool.withdraw(ALICE, 10_001, current_time=ONE_YEAR)

    def test_not_a_holder(self, token, stakers, clock):
        pool = _pool(token, clock)
        with pytest.raises(NoScheduleInFlight):
            pool.withdraw(BOB, 1, current_time=ONE_YEAR)

    def test_rejoin_after_exit(self, token, stakers, clock):
        pool = _pool(token, clock, cliff_time=0)
        pool.deposit(ALICE, 100, current_time=0)
        pool.withdraw(ALICE, 100, current_time=10)
        pool.deposit(ALICE, 50, current_time=20)
        record = pool.store.stake_record(ALICE)
        assert record.staked_at == 20
        assert record.deposited == 50
        assert pool.number_of_holders() == 1


class TestViewsAndAdmin:
    def test_get_stakers_paging(self, token, stakers, clock):
        pool = _pool(token, clock, cliff_time=0)
        for offset, account in enumerate((ALICE, BOB, CAROL)):
            pool.deposit(account, 1_000 * (offset + 1), current_time=offset)

        assert [s["account"] for s in pool.get_stakers(0, 2)] == [ALICE, BOB]
        assert [s["account"] for s in pool.get_stakers(1, 10)] == [BOB, CAROL]
        assert pool.get_stakers(1, 2)[0]["deposited"] == 2_000

        pool.withdraw(ALICE, 1_000, current_time=100)
        assert [s["account"] for s in pool.get_stakers(0, 10)] == [BOB, CAROL]
        assert pool.number_of_holders() == 2

    def test_parameter_setters(self, token, clock):
        pool = _pool(token, clock)
        pool.set_reward_rate(ADMIN, 1_000)
        pool.set_reward_interval(ADMIN, ONE_DAY)
        pool.set_staking_fee_rate(ADMIN, 200)
        pool.set_unstaking_fee_rate(ADMIN, 100)
        pool.set_cliff_time(ADMIN, 0)
        assert (pool.reward_rate, pool.reward_interval) == (1_000, ONE_DAY)
        assert (pool.staking_fee_rate, pool.unstaking_fee_rate, pool.cliff_time) == (200, 100, 0)

    def test_parameter_validation(self, token, clock):
        pool = _pool(token, clock)
        with pytest.raises(InvalidInput):
            pool.set_staking_fee_rate(ADMIN, 10_001)
        with pytest.raises(InvalidInput):
            pool.set_reward_interval(ADMIN, 0)
        with pytest.raises(InvalidInput):
            pool.set_cliff_time(ADMIN, -1)
        with pytest.raises(Unauthorized):
            pool.set_reward_rate(ALICE, 1)

    def test_cannot_sweep_staking_token(self, token, clock):
        pool = _pool(token, clock)
        with pytest.raises(InvalidInput):
            pool.sweep_tokens(ADMIN, token, ADMIN, 1)

    def test_sweep_stray_token(self, token, clock):
        pool = _pool(token, clock)
        stray = make_token("Stray", "STR")
        stray.mint(ADMIN, LEDGER, 9)
        pool.sweep_tokens(ADMIN, stray, ADMIN, 9)
        assert stray.balance_of(ADMIN) == 9
