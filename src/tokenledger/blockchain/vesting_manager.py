from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Sequence

from ..core.ledger_exceptions import (
    ArrayLengthMismatch,
    CliffNotReached,
    InvalidInput,
    NoScheduleInFlight,
    NothingDue,
)
from ..core import ledger_metrics
from .accrual import VestingWindow, vesting_rate, vesting_releasable
from .entitlement_store import VestingRecord
from .ledger_engine import LedgerEngine

if TYPE_CHECKING:
    from ..core.config_manager import VestingConfig


class TokenVesting(LedgerEngine):
    """
    Linear vesting with a cliff, one schedule per beneficiary.

    The admin funds each schedule as it is created; beneficiaries draw down
    whatever has accrued since their last draw. Every schedule shares the
    ledger's ``start``/``end``/``cliff_duration`` window.
    """

    MECHANISM = "vesting"

    def __init__(
        self,
        token: Any,
        ledger_address: str,
        admin_address: str,
        start: int,
        end: int,
        cliff_duration: int = 0,
        time_provider: Callable[[], int] | None = None,
    ):
        super().__init__(token, ledger_address, admin_address, time_provider=time_provider)
        try:
            self.window = VestingWindow(start=start, end=end, cliff_duration=cliff_duration)
        except ValueError as exc:
            raise InvalidInput(str(exc)) from exc
        self._log.info(
            "TokenVesting initialized (start=%s end=%s cliff=%s, deterministic time provider: %s)",
            start,
            end,
            cliff_duration,
            bool(time_provider),
        )

    @classmethod
    def from_config(
        cls,
        config: "VestingConfig",
        token: Any,
        ledger_address: str,
        admin_address: str,
        time_provider: Callable[[], int] | None = None,
    ) -> "TokenVesting":
        return cls(
            token,
            ledger_address,
            admin_address,
            start=config.start,
            end=config.end,
            cliff_duration=config.cliff_duration,
            time_provider=time_provider,
        )

    # ==================== Schedule Creation ====================

    def create_schedule(
        self, caller: str, beneficiary: str, amount: int, current_time: int | None = None
    ) -> VestingRecord:
        """
        Create and fund a schedule for ``beneficiary``.

        ``amount`` is pulled from ``caller`` into the ledger's custody, so the
        caller must have approved the ledger beforehand.
        """
        self.admin.require_admin(caller)
        self._require_enabled()
        now = self._normalize_timestamp(current_time)
        with self._operation("create_schedule"):
            record = self._create(caller, beneficiary, amount, now)
            self._pull(self.token, caller, amount)
        return replace(record)

    def create_schedules(
        self,
        caller: str,
        beneficiaries: Sequence[str],
        amounts: Sequence[int],
        current_time: int | None = None,
    ) -> int:
        """Batch variant of ``create_schedule``; all entries succeed or none do."""
        self.admin.require_admin(caller)
        self._require_enabled()
        if len(beneficiaries) != len(amounts):
            raise ArrayLengthMismatch(
                "Beneficiaries and amounts must have the same length",
                details={"beneficiaries": len(beneficiaries), "amounts": len(amounts)},
            )
        now = self._normalize_timestamp(current_time)
        with self._operation("create_schedules"):
            total = 0
            for beneficiary, amount in zip(beneficiaries, amounts):
                self._create(caller, beneficiary, amount, now)
                total += amount
            if total:
                self._pull(self.token, caller, total)
        return len(beneficiaries)

    def _create(self, caller: str, beneficiary: str, amount: int, now: int) -> VestingRecord:
        record = self.store.create_schedule(beneficiary, amount)
        self._emit("ScheduleCreated", self._account(beneficiary), amount, now)
        return record

    # ==================== Draw Down ====================

    def available_drawdown(self, beneficiary: str, current_time: int | None = None) -> int:
        now = self._normalize_timestamp(current_time)
        record = self.store.vesting_record(beneficiary)
        return vesting_releasable(
            record.principal, record.drawn, record.last_drawn_at, self.window, now
        )

    def drawdown(self, caller: str, current_time: int | None = None) -> int:
        """
        Pay ``caller`` everything accrued since their last draw.

        Raises:
            NoScheduleInFlight: caller has no schedule
            CliffNotReached: still inside the cliff
            NothingDue: nothing accrued (including a completed schedule)
            InsufficientFunds: custody cannot cover the draw in full
        """
        self._require_enabled()
        beneficiary = self._account(caller)
        now = self._normalize_timestamp(current_time)
        with self._operation("drawdown"):
            record = self.store.vesting_record(beneficiary)
            if record.principal == 0:
                raise NoScheduleInFlight(f"No schedule in flight for {beneficiary}")
            if now <= self.window.cliff_end:
                raise CliffNotReached(
                    f"Cliff ends at {self.window.cliff_end}",
                    details={"cliff_end": self.window.cliff_end, "now": now},
                )
            amount = vesting_releasable(
                record.principal, record.drawn, record.last_drawn_at, self.window, now
            )
            if amount <= 0:
                raise NothingDue(f"Nothing due for {beneficiary}")

            self.funds.require(amount)
            self.store.record_draw(beneficiary, amount, now)
            self._emit("DrawDown", beneficiary, amount, now)

            self._push(self.token, beneficiary, amount)
        ledger_metrics.record_payout(self.MECHANISM, amount)
        return amount

    # ==================== Views ====================

    def vesting_schedule_for(self, beneficiary: str, current_time: int | None = None) -> dict[str, Any]:
        record = self.store.vesting_record(beneficiary)
        return {
            "beneficiary": beneficiary.lower(),
            "principal": record.principal,
            "drawn": record.drawn,
            "last_drawn_at": record.last_drawn_at,
            "remaining": record.remaining,
            "status": record.status,
            "rate_per_second": vesting_rate(record.principal, self.window),
            "available": self.available_drawdown(beneficiary, current_time),
        }

    def remaining_balance(self, beneficiary: str) -> int:
        return self.store.vesting_record(beneficiary).remaining

    def outstanding_entitlements(self) -> int:
        return self.store.outstanding_vesting()

    @property
    def total_vested(self) -> int:
        return self._total("total_vested")

    @property
    def total_drawn(self) -> int:
        return self._total("total_drawn")
