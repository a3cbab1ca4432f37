"""
Shared plumbing for the entitlement engines.

A ``LedgerEngine`` composes the collaborators every mechanism needs: a
single admin, a reentrancy lock, a safe adapter over the principal token,
a funds guard reading that token's real custody, and an ``EntitlementStore``
that owns all mutable state. Mutating operations run inside
``_operation()``, which holds the lock and rolls the store back on any
failure.

Token movements inside an operation go through ``_pull`` and ``_push``,
which record each completed transfer. When a later step fails, the recorded
transfers are reversed newest first: a pull is refunded from custody, and a
push is recovered with ``transfer_from``, which needs the recipient's
allowance. A reversal that fails is logged and listed under
``unreversed_transfers`` in the raised error's details.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional

from ..core import ledger_metrics
from ..core.addresses import is_null_address, normalize_address
from ..core.contracts.token_adapter import SafeTokenAdapter
from ..core.defi.access_control import AdminControl
from ..core.defi.reentrancy import ReentrancyLock
from ..core.ledger_exceptions import (
    InvalidInput,
    LedgerError,
    MechanismDisabled,
    TransferFailed,
    get_error_context,
)
from .entitlement_store import EntitlementStore, LedgerEvent
from .funds_guard import FundsGuard

logger = logging.getLogger(__name__)


@dataclass
class TransferLeg:
    """One completed token movement between the ledger and ``account``."""

    adapter: SafeTokenAdapter
    direction: str  # "in" (account -> ledger) or "out" (ledger -> account)
    account: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.adapter.token_address,
            "direction": self.direction,
            "account": self.account,
            "amount": self.amount,
        }


class LedgerEngine:
    MECHANISM = "ledger"

    def __init__(
        self,
        token: Any,
        ledger_address: str,
        admin_address: str,
        time_provider: Callable[[], int] | None = None,
        enabled: bool = True,
    ):
        if is_null_address(ledger_address):
            raise InvalidInput("Ledger address cannot be empty.")
        self.ledger_address = normalize_address(ledger_address)
        self.admin = AdminControl(admin_address)
        self.token = SafeTokenAdapter(token, self.ledger_address)
        self.funds = FundsGuard(self.token)
        self.store = EntitlementStore()
        self.enabled = enabled
        self._lock = ReentrancyLock(self.MECHANISM)
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._log = logging.getLogger(type(self).__module__)
        self._transfers: List[TransferLeg] = []

    # ==================== Time ====================

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def _normalize_timestamp(self, current_time: int | None) -> int:
        if current_time is None:
            return self._current_time()
        if not isinstance(current_time, int) or isinstance(current_time, bool):
            raise ValueError("current_time must be provided as an integer timestamp")
        return current_time

    # ==================== Operations ====================

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        with self._lock:
            self._transfers = []
            try:
                with self.store.atomic():
                    yield
            except Exception as exc:
                self._reverse_transfers(name, exc)
                if isinstance(exc, LedgerError):
                    ledger_metrics.record_rejection(self.MECHANISM, exc)
                    self._log.info(
                        "%s rejected: %s",
                        name,
                        exc,
                        extra={"event": f"{self.MECHANISM}.{name}_rejected", **get_error_context(exc)},
                    )
                raise
            finally:
                self._transfers = []
        ledger_metrics.update_custody(self.MECHANISM, self.ledger_address, self.token.balance())

    def _pull(self, adapter: SafeTokenAdapter, account: str, amount: int) -> None:
        """Move ``amount`` from ``account`` into custody and record it."""
        adapter.safe_transfer_from(account, self.ledger_address, amount)
        self._transfers.append(TransferLeg(adapter, "in", account, amount))

    def _push(self, adapter: SafeTokenAdapter, account: str, amount: int) -> None:
        """Pay ``amount`` out of custody to ``account`` and record it."""
        adapter.safe_transfer(account, amount)
        self._transfers.append(TransferLeg(adapter, "out", account, amount))

    def _reverse_transfers(self, name: str, exc: Exception) -> None:
        unreversed = []
        while self._transfers:
            leg = self._transfers.pop()
            try:
                if leg.direction == "in":
                    leg.adapter.safe_transfer(leg.account, leg.amount)
                else:
                    leg.adapter.safe_transfer_from(leg.account, self.ledger_address, leg.amount)
            except TransferFailed as undo_exc:
                logger.critical(
                    "Could not reverse %s transfer of %s for %s after failed %s: %s",
                    leg.direction,
                    leg.amount,
                    leg.account,
                    name,
                    undo_exc,
                    extra={"event": f"{self.MECHANISM}.reversal_failed", **leg.to_dict()},
                )
                unreversed.append(leg.to_dict())
            else:
                logger.warning(
                    "Reversed %s transfer of %s for %s after failed %s",
                    leg.direction,
                    leg.amount,
                    leg.account,
                    name,
                    extra={"event": f"{self.MECHANISM}.transfer_reversed", "amount": leg.amount},
                )
        if unreversed and isinstance(exc, LedgerError):
            exc.details["unreversed_transfers"] = unreversed

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise MechanismDisabled(f"{self.MECHANISM} is disabled")

    def _emit(self, event_type: str, account: str, amount: int, timestamp: int) -> LedgerEvent:
        event = self.store.emit(event_type, account, amount, timestamp)
        self._log.info(
            "%s %s %s",
            event_type,
            account,
            amount,
            extra={
                "event": f"{self.MECHANISM}.{event_type}",
                "account": account[:10],
                "amount": amount,
                "timestamp": timestamp,
            },
        )
        return event

    # ==================== Admin ====================

    def set_enabled(self, caller: str, enabled: bool, current_time: int | None = None) -> None:
        self.admin.require_admin(caller)
        now = self._normalize_timestamp(current_time)
        was_enabled = self.enabled
        self.enabled = bool(enabled)
        if self.enabled and not was_enabled:
            self._on_enabled(now)
        self._log.info(
            "%s %s by admin",
            self.MECHANISM,
            "enabled" if self.enabled else "disabled",
            extra={"event": f"{self.MECHANISM}.status", "enabled": self.enabled},
        )

    def _on_enabled(self, now: int) -> None:
        pass

    def _protected_token_addresses(self) -> set[str]:
        return {self.token.token_address}

    def sweep_tokens(self, caller: str, token: Any, to: str, amount: int) -> None:
        """Recover tokens other than the ledger's own that were sent here by mistake."""
        self.admin.require_admin(caller)
        token_address = str(getattr(token, "address", "")).lower()
        if token_address in self._protected_token_addresses():
            raise InvalidInput("Cannot sweep the ledger's own token.")
        if is_null_address(to):
            raise InvalidInput("Sweep recipient cannot be the null address.")
        self.store.require_amount(amount)
        with self._operation("sweep"):
            self._push(SafeTokenAdapter(token, self.ledger_address), to, amount)
        self._log.info(
            "Swept %s of %s to %s",
            amount,
            token_address,
            to,
            extra={"event": f"{self.MECHANISM}.sweep", "token": token_address[:10], "amount": amount},
        )

    # ==================== Views ====================

    @property
    def events(self) -> List[LedgerEvent]:
        return list(self.store.state.events)

    def custody(self) -> int:
        return self.token.balance()

    def _page(self, start: int, end: int) -> List[str]:
        return self.store.state.holders.page(start, end)

    def _total(self, name: str) -> int:
        return self.store.total(name)

    def _account(self, account: Optional[str]) -> str:
        return self.store.require_account(account or "")
