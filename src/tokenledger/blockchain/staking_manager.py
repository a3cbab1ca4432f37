from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from ..core import ledger_metrics
from ..core.ledger_exceptions import (
    CliffNotReached,
    InvalidInput,
    NoScheduleInFlight,
    NothingDue,
)
from .accrual import staking_pending
from .fees import split_fee, validate_fee_rate
from .ledger_engine import LedgerEngine

if TYPE_CHECKING:
    from ..core.config_manager import StakingConfig


class StakingPool(LedgerEngine):
    """
    Fee-bearing staking with rate-based rewards.

    Stakers deposit the pool token and earn ``reward_rate`` basis points of
    their deposit per ``reward_interval``, counted from when staking was
    first enabled. Rewards come only from tokens the pool holds beyond the
    total staked; the admin tops that surplus up by sending tokens directly.
    Deposits and withdrawals pay a fee to the admin.
    """

    MECHANISM = "staking"

    def __init__(
        self,
        token: Any,
        ledger_address: str,
        admin_address: str,
        reward_rate: int = 6500,
        reward_interval: int = 365 * 24 * 3600,
        staking_fee_rate: int = 0,
        unstaking_fee_rate: int = 0,
        cliff_time: int = 0,
        time_provider: Callable[[], int] | None = None,
    ):
        super().__init__(
            token, ledger_address, admin_address, time_provider=time_provider, enabled=False
        )
        self.reward_rate = self._validate_reward_rate(reward_rate)
        self.reward_interval = self._validate_reward_interval(reward_interval)
        self.staking_fee_rate = validate_fee_rate(staking_fee_rate)
        self.unstaking_fee_rate = validate_fee_rate(unstaking_fee_rate)
        self.cliff_time = self._validate_cliff_time(cliff_time)
        self.staking_start_time: int | None = None

    @classmethod
    def from_config(
        cls,
        config: "StakingConfig",
        token: Any,
        ledger_address: str,
        admin_address: str,
        time_provider: Callable[[], int] | None = None,
    ) -> "StakingPool":
        return cls(
            token,
            ledger_address,
            admin_address,
            reward_rate=config.reward_rate,
            reward_interval=config.reward_interval,
            staking_fee_rate=config.staking_fee_rate,
            unstaking_fee_rate=config.unstaking_fee_rate,
            cliff_time=config.cliff_time,
            time_provider=time_provider,
        )

    def _on_enabled(self, now: int) -> None:
        # The reward window is anchored to the first activation only
        if self.staking_start_time is None:
            self.staking_start_time = now

    # ==================== Staker Operations ====================

    def deposit(self, account: str, amount: int, current_time: int | None = None) -> int:
        """
        Stake ``amount`` (gross). Returns the net amount credited.

        Pending rewards are settled first, so a top-up never dilutes or
        inflates what was already earned.
        """
        self._require_enabled()
        account = self._account(account)
        self.store.require_amount(amount)
        now = self._normalize_timestamp(current_time)

        with self._operation("deposit"):
            reward = self._settle(account, now)
            fee, net = split_fee(amount, self.staking_fee_rate)
            if net == 0:
                raise InvalidInput("Deposit is entirely consumed by the staking fee.")
            self.store.credit_stake(account, net, now)
            if fee:
                self._emit("FeeCollected", self.admin.admin_address, fee, now)

            self._pull(self.token, account, amount)
            if fee:
                self._push(self.token, self.admin.admin_address, fee)
            if reward:
                self._push(self.token, account, reward)

        ledger_metrics.record_fee(self.MECHANISM, fee)
        ledger_metrics.record_payout(self.MECHANISM, reward)
        return net

    def withdraw(self, account: str, amount: int, current_time: int | None = None) -> int:
        """Unstake ``amount`` of the deposit. Returns the net amount paid out."""
        account = self._account(account)
        self.store.require_amount(amount)
        now = self._normalize_timestamp(current_time)

        with self._operation("withdraw"):
            record = self.store.stake_record(account)
            if record is None or not self.store.is_holder(account):
                raise NoScheduleInFlight(f"No stake in flight for {account}")
            if amount > record.deposited:
                raise InvalidInput(
                    f"Withdrawal {amount} exceeds deposit {record.deposited}",
                    details={"requested": amount, "deposited": record.deposited},
                )
            if now - record.staked_at <= self.cliff_time:
                raise CliffNotReached(
                    "Recently staked, please wait before withdrawing.",
                    details={"unlocks_after": record.staked_at + self.cliff_time, "now": now},
                )

            reward = self._settle(account, now)
            fee, net = split_fee(amount, self.unstaking_fee_rate)
            self.store.debit_stake(account, amount)
            if fee:
                self._emit("FeeCollected", self.admin.admin_address, fee, now)

            if fee:
                self._push(self.token, self.admin.admin_address, fee)
            self._push(self.token, account, net + reward)

        ledger_metrics.record_fee(self.MECHANISM, fee)
        ledger_metrics.record_payout(self.MECHANISM, reward)
        return net

    def claim_rewards(self, account: str, current_time: int | None = None) -> int:
        account = self._account(account)
        now = self._normalize_timestamp(current_time)

        with self._operation("claim_rewards"):
            if not self.store.is_holder(account):
                raise NoScheduleInFlight(f"No stake in flight for {account}")
            reward = self._settle(account, now)
            if reward <= 0:
                raise NothingDue(f"No rewards due for {account}")
            self._push(self.token, account, reward)

        ledger_metrics.record_payout(self.MECHANISM, reward)
        return reward

    def _settle(self, account: str, now: int) -> int:
        """
        Book the holder's pending reward and advance ``last_claimed_at``.

        Returns the amount the caller must transfer once all state is final.
        """
        if not self.store.is_holder(account):
            return 0
        total_staked = self.store.total("total_staked")
        pending = self._pending(account, now)
        reward = self.funds.clamp(pending, reserved=total_staked)
        self.store.record_reward(account, reward, now)
        if reward > 0:
            self._emit("RewardsTransferred", account, reward, now)
        return reward

    def _pending(self, account: str, now: int) -> int:
        record = self.store.stake_record(account)
        if record is None or self.staking_start_time is None:
            return 0
        return staking_pending(
            is_holder=self.store.is_holder(account),
            deposited=record.deposited,
            reward_rate=self.reward_rate,
            reward_interval=self.reward_interval,
            staking_start_time=self.staking_start_time,
            last_claimed_at=record.last_claimed_at,
            now=now,
            contract_balance=self.token.balance(),
            total_staked=self.store.total("total_staked"),
        )

    # ==================== Admin ====================

    def set_staking_enabled(self, caller: str, enabled: bool, current_time: int | None = None) -> None:
        self.set_enabled(caller, enabled, current_time)

    def set_reward_rate(self, caller: str, reward_rate: int) -> None:
        self.admin.require_admin(caller)
        self.reward_rate = self._validate_reward_rate(reward_rate)
        self._log.info("Reward rate set to %s bps", reward_rate, extra={"event": "staking.reward_rate"})

    def set_reward_interval(self, caller: str, reward_interval: int) -> None:
        self.admin.require_admin(caller)
        self.reward_interval = self._validate_reward_interval(reward_interval)
        self._log.info("Reward interval set to %ss", reward_interval, extra={"event": "staking.reward_interval"})

    def set_staking_fee_rate(self, caller: str, fee_rate: int) -> None:
        self.admin.require_admin(caller)
        self.staking_fee_rate = validate_fee_rate(fee_rate)
        self._log.info("Staking fee set to %s bps", fee_rate, extra={"event": "staking.staking_fee"})

    def set_unstaking_fee_rate(self, caller: str, fee_rate: int) -> None:
        self.admin.require_admin(caller)
        self.unstaking_fee_rate = validate_fee_rate(fee_rate)
        self._log.info("Unstaking fee set to %s bps", fee_rate, extra={"event": "staking.unstaking_fee"})

    def set_cliff_time(self, caller: str, cliff_time: int) -> None:
        self.admin.require_admin(caller)
        self.cliff_time = self._validate_cliff_time(cliff_time)
        self._log.info("Cliff time set to %ss", cliff_time, extra={"event": "staking.cliff_time"})

    @staticmethod
    def _validate_reward_rate(reward_rate: int) -> int:
        if not isinstance(reward_rate, int) or reward_rate < 0:
            raise InvalidInput("Reward rate must be a non-negative integer.")
        return reward_rate

    @staticmethod
    def _validate_reward_interval(reward_interval: int) -> int:
        if not isinstance(reward_interval, int) or reward_interval <= 0:
            raise InvalidInput("Reward interval must be a positive integer.")
        return reward_interval

    @staticmethod
    def _validate_cliff_time(cliff_time: int) -> int:
        if not isinstance(cliff_time, int) or cliff_time < 0:
            raise InvalidInput("Cliff time must be a non-negative integer.")
        return cliff_time

    # ==================== Views ====================

    def pending_rewards(self, account: str, current_time: int | None = None) -> int:
        now = self._normalize_timestamp(current_time)
        return self._pending(account.lower(), now)

    def deposited_of(self, account: str) -> int:
        record = self.store.stake_record(account)
        return record.deposited if record else 0

    def number_of_holders(self) -> int:
        return len(self.store.state.holders)

    def get_stakers(self, start: int, end: int) -> list[dict[str, Any]]:
        """Holders in ``[start, end)`` of the insertion-ordered index."""
        stakers = []
        for account in self._page(start, end):
            record = self.store.stake_record(account)
            stakers.append(
                {
                    "account": account,
                    "deposited": record.deposited,
                    "staked_at": record.staked_at,
                    "last_claimed_at": record.last_claimed_at,
                    "cumulative_earned": record.cumulative_earned,
                }
            )
        return stakers

    @property
    def total_staked(self) -> int:
        return self._total("total_staked")

    @property
    def total_claimed_rewards(self) -> int:
        return self._total("total_claimed_rewards")
