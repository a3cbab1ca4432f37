"""
Per-account entitlement records and the state container that owns them.

``LedgerState`` is the single mutable structure behind an engine: records,
the ordered holder index, the claimed-index bitmap, aggregates and the event
log. ``EntitlementStore`` is the only code that mutates it. Inside
``EntitlementStore.atomic()`` every mutation first journals how to undo
itself, so a failed operation reverts only the keys it touched and shared
aggregates never drift from per-account records.
"""

from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..core.addresses import is_null_address, normalize_address
from ..core.ledger_exceptions import (
    DuplicateSchedule,
    InvalidInput,
    InvariantViolation,
    NoScheduleInFlight,
)
from .claimed_bitmap import ClaimedBitMap

logger = logging.getLogger(__name__)

_MISSING = object()


def _restore_key(mapping: Dict[Any, Any], key: Any, prior: Any) -> None:
    if prior is _MISSING:
        mapping.pop(key, None)
    else:
        mapping[key] = prior


@dataclass
class VestingRecord:
    principal: int = 0
    drawn: int = 0
    last_drawn_at: Optional[int] = None

    @property
    def remaining(self) -> int:
        return self.principal - self.drawn

    @property
    def status(self) -> str:
        if self.principal == 0:
            return "not_created"
        if self.drawn == self.principal:
            return "completed"
        return "active"


@dataclass
class StakeRecord:
    deposited: int
    staked_at: int
    last_claimed_at: int
    cumulative_earned: int = 0


@dataclass
class LedgerEvent:
    event_type: str
    account: str
    amount: int
    timestamp: float = field(default_factory=time.time)


class OrderedAccountIndex:
    """Insertion-ordered account set with O(1) membership and paged reads."""

    def __init__(self) -> None:
        self._members: Dict[str, None] = {}

    def add(self, account: str) -> bool:
        if account in self._members:
            return False
        self._members[account] = None
        return True

    def remove(self, account: str) -> bool:
        if account not in self._members:
            return False
        del self._members[account]
        return True

    def page(self, start: int, end: int) -> List[str]:
        """Members in ``[start, end)``; bounds are clamped to the index size."""
        if start < 0 or end < start:
            raise InvalidInput(f"Invalid page range [{start}, {end})")
        members = list(self._members)
        return members[start:min(end, len(members))]

    def members(self) -> Dict[str, None]:
        return dict(self._members)

    def reset(self, members: Dict[str, None]) -> None:
        self._members = dict(members)

    def __contains__(self, account: object) -> bool:
        return account in self._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._members))


class LedgerState:
    def __init__(self) -> None:
        self.vesting: Dict[str, VestingRecord] = {}
        self.stakes: Dict[str, StakeRecord] = {}
        self.holders = OrderedAccountIndex()
        self.claimed = ClaimedBitMap()
        # One-shot balances (presale purchases, migrated amounts)
        self.credits: Dict[str, int] = {}
        # Cumulative payment per presale buyer
        self.paid: Dict[str, int] = {}
        self.totals: Dict[str, int] = {}
        self.events: List[LedgerEvent] = []


class EntitlementStore:
    def __init__(self, state: Optional[LedgerState] = None):
        self.state = state or LedgerState()
        self._undo: Optional[List[Callable[[], None]]] = None

    @contextmanager
    def atomic(self) -> Iterator[LedgerState]:
        """
        Run a block as one unit of work.

        If the block raises, the journalled mutations are undone newest
        first and events emitted inside the block are dropped. Nested blocks
        share the outer journal.
        """
        outer = self._undo
        journal = outer if outer is not None else []
        mark = len(journal)
        events_mark = len(self.state.events)
        self._undo = journal
        try:
            yield self.state
        except BaseException:
            while len(journal) > mark:
                journal.pop()()
            del self.state.events[events_mark:]
            raise
        finally:
            self._undo = outer

    def _remember(self, mapping: Dict[Any, Any], key: Any) -> None:
        """Journal the current value of ``mapping[key]`` before it changes."""
        if self._undo is None:
            return
        prior = mapping.get(key, _MISSING)
        if prior is not _MISSING:
            prior = copy.copy(prior)
        self._undo.append(partial(_restore_key, mapping, key, prior))

    def _add_holder(self, account: str) -> bool:
        added = self.state.holders.add(account)
        if added and self._undo is not None:
            self._undo.append(partial(self.state.holders.remove, account))
        return added

    def _remove_holder(self, account: str) -> bool:
        # Removal can happen mid-index; restore the whole ordering
        if self._undo is not None and account in self.state.holders:
            self._undo.append(partial(self.state.holders.reset, self.state.holders.members()))
        return self.state.holders.remove(account)

    # ==================== Accounts ====================

    @staticmethod
    def require_account(account: str) -> str:
        if is_null_address(account):
            raise InvalidInput("Account cannot be the null address.")
        return normalize_address(account)

    @staticmethod
    def require_amount(amount: int) -> int:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidInput("Amount must be an integer.")
        if amount <= 0:
            raise InvalidInput("Amount must be positive.")
        return amount

    # ==================== Aggregates & Events ====================

    def total(self, name: str) -> int:
        return self.state.totals.get(name, 0)

    def add_total(self, name: str, delta: int) -> int:
        value = self.state.totals.get(name, 0) + delta
        if value < 0:
            raise InvariantViolation(f"Aggregate {name} would become negative ({value})")
        self._remember(self.state.totals, name)
        self.state.totals[name] = value
        return value

    def emit(self, event_type: str, account: str, amount: int, timestamp: float) -> LedgerEvent:
        event = LedgerEvent(event_type=event_type, account=account, amount=amount, timestamp=timestamp)
        self.state.events.append(event)
        return event

    # ==================== Claimed Indices ====================

    def is_claimed(self, index: int) -> bool:
        return self.state.claimed.get(index)

    def mark_claimed(self, index: int) -> None:
        word_index = self.state.claimed.word_of(index)
        self._remember(self.state.claimed.words, word_index)
        self.state.claimed.set_true(index)

    # ==================== Vesting Records ====================

    def vesting_record(self, account: str) -> VestingRecord:
        return self.state.vesting.get(normalize_address(account), VestingRecord())

    def create_schedule(self, account: str, amount: int) -> VestingRecord:
        account = self.require_account(account)
        self.require_amount(amount)
        existing = self.state.vesting.get(account)
        if existing is not None and existing.principal > 0:
            raise DuplicateSchedule(
                f"Schedule already in flight for {account}",
                details={"account": account, "principal": existing.principal},
            )
        record = VestingRecord(principal=amount)
        self._remember(self.state.vesting, account)
        self.state.vesting[account] = record
        self.add_total("total_vested", amount)
        return record

    def record_draw(self, account: str, amount: int, timestamp: int) -> VestingRecord:
        account = normalize_address(account)
        record = self.state.vesting.get(account)
        if record is None or record.principal == 0:
            raise NoScheduleInFlight(f"No schedule in flight for {account}")
        if amount < 0:
            raise InvariantViolation(f"Negative draw of {amount} for {account}")
        if record.drawn + amount > record.principal:
            logger.critical(
                "Drawn exceeds principal for %s (%s > %s)",
                account,
                record.drawn + amount,
                record.principal,
                extra={"event": "vesting.invariant_violation", "account": account[:10]},
            )
            raise InvariantViolation(
                f"Drawn {record.drawn + amount} exceeds principal {record.principal} for {account}"
            )

        self._remember(self.state.vesting, account)
        record.drawn += amount
        record.last_drawn_at = timestamp
        self.add_total("total_drawn", amount)
        return record

    def outstanding_vesting(self) -> int:
        return self.total("total_vested") - self.total("total_drawn")

    # ==================== Stake Records ====================

    def stake_record(self, account: str) -> Optional[StakeRecord]:
        return self.state.stakes.get(normalize_address(account))

    def credit_stake(self, account: str, amount: int, timestamp: int) -> StakeRecord:
        """Add ``amount`` to the account's deposit, opening a record if needed."""
        account = normalize_address(account)
        self._remember(self.state.stakes, account)
        record = self.state.stakes.get(account)
        if record is None:
            record = StakeRecord(deposited=0, staked_at=timestamp, last_claimed_at=timestamp)
            self.state.stakes[account] = record
        if self._add_holder(account):
            record.staked_at = timestamp
        record.deposited += amount
        self.add_total("total_staked", amount)
        return record

    def debit_stake(self, account: str, amount: int) -> StakeRecord:
        account = normalize_address(account)
        record = self.state.stakes.get(account)
        if record is None or account not in self.state.holders:
            raise NoScheduleInFlight(f"No stake in flight for {account}")
        if amount > record.deposited:
            raise InvariantViolation(
                f"Debit {amount} exceeds deposit {record.deposited} for {account}"
            )
        self._remember(self.state.stakes, account)
        record.deposited -= amount
        self.add_total("total_staked", -amount)
        if record.deposited == 0:
            self._remove_holder(account)
            del self.state.stakes[account]
        return record

    def record_reward(self, account: str, amount: int, timestamp: int) -> StakeRecord:
        account = normalize_address(account)
        record = self.state.stakes.get(account)
        if record is None:
            raise NoScheduleInFlight(f"No stake in flight for {account}")
        self._remember(self.state.stakes, account)
        record.last_claimed_at = timestamp
        record.cumulative_earned += amount
        self.add_total("total_claimed_rewards", amount)
        return record

    def is_holder(self, account: str) -> bool:
        return normalize_address(account) in self.state.holders

    # ==================== Credits ====================

    def credit_of(self, account: str) -> int:
        return self.state.credits.get(normalize_address(account), 0)

    def add_credit(self, account: str, amount: int) -> int:
        account = normalize_address(account)
        self._add_holder(account)
        self._remember(self.state.credits, account)
        balance = self.state.credits.get(account, 0) + amount
        self.state.credits[account] = balance
        return balance

    def take_credit(self, account: str) -> int:
        """Zero the account's credit and return what it held."""
        account = normalize_address(account)
        amount = self.state.credits.get(account, 0)
        self._remember(self.state.credits, account)
        self.state.credits[account] = 0
        return amount

    def paid_of(self, account: str) -> int:
        return self.state.paid.get(normalize_address(account), 0)

    def add_paid(self, account: str, amount: int) -> int:
        account = normalize_address(account)
        self._remember(self.state.paid, account)
        paid = self.state.paid.get(account, 0) + amount
        self.state.paid[account] = paid
        return paid
