from __future__ import annotations

from typing import Any, Callable

from ..core import ledger_metrics
from ..core.contracts.token_adapter import SafeTokenAdapter
from .ledger_engine import LedgerEngine


class TokenMigration(LedgerEngine):
    """
    One-to-one swap from a retired token to its replacement.

    Old tokens are pulled into the ledger's custody and the same amount of
    the new token is paid out of it. The admin pre-funds the new token; a
    migration the custody cannot cover fails with ``InsufficientFunds``.
    """

    MECHANISM = "migration"

    def __init__(
        self,
        old_token: Any,
        new_token: Any,
        ledger_address: str,
        admin_address: str,
        time_provider: Callable[[], int] | None = None,
    ):
        super().__init__(
            new_token, ledger_address, admin_address, time_provider=time_provider, enabled=False
        )
        self.old_token = SafeTokenAdapter(old_token, self.ledger_address)

    def migrate(self, account: str, amount: int, current_time: int | None = None) -> int:
        self._require_enabled()
        account = self._account(account)
        self.store.require_amount(amount)
        now = self._normalize_timestamp(current_time)

        with self._operation("migrate"):
            self.funds.require(amount)
            self.store.add_credit(account, amount)
            self.store.add_total("total_migrated", amount)
            self._emit("Migrated", account, amount, now)

            self._pull(self.old_token, account, amount)
            self._push(self.token, account, amount)

        ledger_metrics.record_payout(self.MECHANISM, amount)
        return amount

    def _protected_token_addresses(self) -> set[str]:
        return {self.token.token_address}

    def migrated_of(self, account: str) -> int:
        return self.store.credit_of(account)

    def migrants(self, start: int, end: int) -> list[str]:
        return self._page(start, end)

    @property
    def total_migrated(self) -> int:
        return self._total("total_migrated")
