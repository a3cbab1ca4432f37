"""
Unit tests for TokenVesting schedule creation and draw-down.

Coverage targets:
- Schedule funding pulls tokens into custody
- Draw-down follows the cliff/linear/remainder curve
- Every rejection leaves ledger state untouched
"""

import pytest
from prometheus_client import REGISTRY

from ledger_doubles import ADMIN, ALICE, BOB, CAROL, LEDGER, ReturnDataToken, fund, make_token
from tokenledger.blockchain.vesting_manager import TokenVesting
from tokenledger.core.config_manager import VestingConfig
from tokenledger.core.ledger_exceptions import (
    ArrayLengthMismatch,
    CliffNotReached,
    DuplicateSchedule,
    InsufficientFunds,
    InvalidInput,
    MechanismDisabled,
    NoScheduleInFlight,
    NothingDue,
    TransferFailed,
    Unauthorized,
)


@pytest.fixture
def vesting(token, funded_admin, clock):
    return TokenVesting(
        token, LEDGER, ADMIN, start=0, end=1000, cliff_duration=100, time_provider=clock.now
    )


class TestScheduleCreation:
    def test_create_funds_custody(self, vesting, token):
        record = vesting.create_schedule(ADMIN, ALICE, 1000)
        assert record.principal == 1000
        assert vesting.custody() == 1000
        assert token.balance_of(LEDGER) == 1000
        assert vesting.total_vested == 1000
        assert [e.event_type for e in vesting.events] == ["ScheduleCreated"]
        assert vesting.events[0].account == ALICE

    def test_returned_record_is_a_copy(self, vesting):
        record = vesting.create_schedule(ADMIN, ALICE, 1000)
        record.drawn = 999
        assert vesting.store.vesting_record(ALICE).drawn == 0

    def test_only_admin_creates(self, vesting, token):
        with pytest.raises(Unauthorized):
            vesting.create_schedule(ALICE, ALICE, 1000)
        assert token.balance_of(LEDGER) == 0

    def test_duplicate_rejected_without_pulling_funds(self, vesting, token):
        vesting.create_schedule(ADMIN, ALICE, 1000)
        with pytest.raises(DuplicateSchedule):
            vesting.create_schedule(ADMIN, ALICE, 5)
        assert token.balance_of(LEDGER) == 1000
        assert len(vesting.events) == 1

    @pytest.mark.parametrize("beneficiary, amount", [("", 10), ("0x" + "0" * 40, 10), (ALICE, 0)])
    def test_invalid_input(self, vesting, beneficiary, amount):
        with pytest.raises(InvalidInput):
            vesting.create_schedule(ADMIN, beneficiary, amount)

    def test_funding_failure_rolls_back(self, token, clock):
        # No approval: transfer_from is refused by the token
        vesting = TokenVesting(token, LEDGER, ADMIN, start=0, end=1000, time_provider=clock.now)
        with pytest.raises(TransferFailed):
            vesting.create_schedule(ADMIN, ALICE, 1000)
        assert vesting.store.vesting_record(ALICE).principal == 0
        assert vesting.events == []
        assert vesting.total_vested == 0

    def test_batch_creation(self, vesting, token):
        assert vesting.create_schedules(ADMIN, [ALICE, BOB], [100, 200]) == 2
        assert token.balance_of(LEDGER) == 300
        assert vesting.remaining_balance(BOB) == 200

    def test_batch_length_mismatch(self, vesting):
        with pytest.raises(ArrayLengthMismatch):
            vesting.create_schedules(ADMIN, [ALICE, BOB], [100])
        with pytest.raises(InvalidInput):
            vesting.create_schedules(ADMIN, [ALICE], [100, 200])

    def test_batch_is_all_or_nothing(self, vesting, token):
        vesting.create_schedule(ADMIN, ALICE, 100)
        with pytest.raises(DuplicateSchedule):
            vesting.create_schedules(ADMIN, [BOB, CAROL, ALICE], [1, 2, 3])
        assert vesting.store.vesting_record(BOB).principal == 0
        assert vesting.store.vesting_record(CAROL).principal == 0
        assert token.balance_of(LEDGER) == 100
        assert vesting.total_vested == 100

    def test_invalid_window(self, token):
        with pytest.raises(InvalidInput):
            TokenVesting(token, LEDGER, ADMIN, start=100, end=50)

    def test_from_config(self, token, clock):
        config = VestingConfig(start=10, end=110, cliff_duration=5)
        vesting = TokenVesting.from_config(config, token, LEDGER, ADMIN, time_provider=clock.now)
        assert vesting.window.cliff_end == 15
        assert vesting.window.end == 110


class TestDrawdown:
    def test_linear_walkthrough(self, vesting, token, clock):
        vesting.create_schedule(ADMIN, ALICE, 1000)

        clock.current_time = 50
        with pytest.raises(CliffNotReached):
            vesting.drawdown(ALICE)

        clock.current_time = 550
        assert vesting.drawdown(ALICE) == 550
        assert token.balance_of(ALICE) == 550

        clock.current_time = 1000
        assert vesting.drawdown(ALICE) == 450
        assert token.balance_of(ALICE) == 1000
        assert vesting.vesting_schedule_for(ALICE)["status"] == "completed"

        clock.current_time = 5000
        with pytest.raises(NothingDue):
            vesting.drawdown(ALICE)
        assert vesting.total_drawn == 1000
        assert vesting.custody() == 0

    def test_events_and_schedule_view(self, vesting):
        vesting.create_schedule(ADMIN, ALICE, 1000)
        vesting.drawdown(ALICE, current_time=300)
        assert [e.event_type for e in vesting.events] == ["ScheduleCreated", "DrawDown"]
        view = vesting.vesting_schedule_for(ALICE, current_time=400)
        assert view["drawn"] == 300
        assert view["last_drawn_at"] == 300
        assert view["remaining"] == 700
        assert view["rate_per_second"] == 1
        assert view["available"] == 100

    def test_after_end_releases_remainder(self, vesting):
        vesting.create_schedule(ADMIN, ALICE, 1000)
        assert vesting.drawdown(ALICE, current_time=200) == 200
        assert vesting.drawdown(ALICE, current_time=10_000) == 800

    def test_second_draw_in_same_second(self, vesting):
        vesting.create_schedule(ADMIN, ALICE, 1000)
        vesting.drawdown(ALICE, current_time=600)
        with pytest.raises(NothingDue):
            vesting.drawdown(ALICE, current_time=600)

    def test_no_schedule(self, vesting):
        with pytest.raises(NoScheduleInFlight):
            vesting.drawdown(BOB, current_time=500)

    def test_short_custody_rejects_in_full(self, vesting, token):
        vesting.create_schedule(ADMIN, ALICE, 1000)
        # Custody drained outside the ledger
        token.balances[LEDGER] = 10
        with pytest.raises(InsufficientFunds):
            vesting.drawdown(ALICE, current_time=550)
        assert vesting.store.vesting_record(ALICE).drawn == 0
        assert token.balance_of(ALICE) == 0

    def test_failed_transfer_leaves_state_untouched(self, clock):
        token = make_token("Odd", "ODD", cls=ReturnDataToken)
        token.mint(ADMIN, ADMIN, 10**6)
        token.approve(ADMIN, LEDGER, 10**6)
        vesting = TokenVesting(token, LEDGER, ADMIN, start=0, end=1000, time_provider=clock.now)
        vesting.create_schedule(ADMIN, ALICE, 1000)

        token.return_data = False
        with pytest.raises(TransferFailed):
            vesting.drawdown(ALICE, current_time=500)
        record = vesting.store.vesting_record(ALICE)
        assert record.drawn == 0
        assert record.last_drawn_at is None
        assert vesting.total_drawn == 0
        assert [e.event_type for e in vesting.events] == ["ScheduleCreated"]

    def test_disabled_engine_rejects(self, vesting):
        vesting.create_schedule(ADMIN, ALICE, 1000)
        vesting.set_enabled(ADMIN, False)
        with pytest.raises(MechanismDisabled):
            vesting.drawdown(ALICE, current_time=500)
        with pytest.raises(MechanismDisabled):
            vesting.create_schedule(ADMIN, BOB, 10)
        vesting.set_enabled(ADMIN, True)
        assert vesting.drawdown(ALICE, current_time=500) == 500

    def test_outstanding_never_exceeds_custody(self, vesting, token):
        vesting.create_schedules(ADMIN, [ALICE, BOB, CAROL], [1000, 333, 7])
        for now in (150, 333, 500, 999, 1001):
            for account in (ALICE, BOB, CAROL):
                try:
                    vesting.drawdown(account, current_time=now)
                except NothingDue:
                    pass
                assert vesting.outstanding_entitlements() <= token.balance_of(LEDGER)
                record = vesting.store.vesting_record(account)
                assert 0 <= record.drawn <= record.principal
        assert vesting.outstanding_entitlements() == 0

    def test_payout_metric(self, vesting):
        before = REGISTRY.get_sample_value("tokenledger_payout_total", {"mechanism": "vesting"}) or 0
        vesting.create_schedule(ADMIN, ALICE, 1000)
        vesting.drawdown(ALICE, current_time=250)
        after = REGISTRY.get_sample_value("tokenledger_payout_total", {"mechanism": "vesting"})
        assert after - before == 250


class TestAdmin:
    def test_sweep_rejects_principal_token(self, vesting, token):
        with pytest.raises(InvalidInput):
            vesting.sweep_tokens(ADMIN, token, ADMIN, 1)

    def test_sweep_other_token(self, vesting):
        stray = make_token("Stray", "STR")
        stray.mint(ADMIN, LEDGER, 50)
        vesting.sweep_tokens(ADMIN, stray, BOB, 50)
        assert stray.balance_of(BOB) == 50

    def test_sweep_requires_admin(self, vesting):
        stray = make_token("Stray", "STR")
        with pytest.raises(Unauthorized):
            vesting.sweep_tokens(ALICE, stray, ALICE, 1)

    def test_admin_transfer(self, vesting, token):
        fund(token, BOB, 10)
        vesting.admin.transfer_admin(ADMIN, BOB)
        vesting.create_schedule(BOB, ALICE, 1)
        with pytest.raises(Unauthorized):
            vesting.create_schedule(ADMIN, CAROL, 1)
