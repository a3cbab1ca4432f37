from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from ..core import ledger_metrics
from ..core.addresses import is_null_address
from ..core.contracts.token_adapter import SafeTokenAdapter
from ..core.ledger_exceptions import InvalidInput, MechanismDisabled, NothingDue
from .ledger_engine import LedgerEngine

if TYPE_CHECKING:
    from ..core.config_manager import PresaleConfig


class TokenPresale(LedgerEngine):
    """
    Fixed-rate presale paid in a stablecoin.

    ``buy`` takes payment and books a claimable balance of sale tokens;
    ``claim`` delivers it once the admin opens claiming. Bookings are
    bounded by the sale tokens the ledger actually holds, so outstanding
    claims can always be honoured.

    The payment token is routed through the same adapter as the sale token,
    which accepts tokens that return no data from ``transfer_from``.
    """

    MECHANISM = "presale"

    def __init__(
        self,
        sale_token: Any,
        payment_token: Any,
        ledger_address: str,
        admin_address: str,
        rate: int,
        min_purchase: int = 0,
        max_purchase: int = 0,
        time_provider: Callable[[], int] | None = None,
    ):
        super().__init__(
            sale_token, ledger_address, admin_address, time_provider=time_provider, enabled=False
        )
        self.payment = SafeTokenAdapter(payment_token, self.ledger_address)
        self.rate = self._validate_rate(rate)
        if min_purchase < 0 or max_purchase < 0:
            raise InvalidInput("Purchase bounds cannot be negative.")
        self.min_purchase = min_purchase
        self.max_purchase = max_purchase
        self.claim_enabled = False
        self.sale_decimals = int(getattr(sale_token, "decimals", 18))
        self.payment_decimals = int(getattr(payment_token, "decimals", 18))

    @classmethod
    def from_config(
        cls,
        config: "PresaleConfig",
        sale_token: Any,
        payment_token: Any,
        ledger_address: str,
        admin_address: str,
        time_provider: Callable[[], int] | None = None,
    ) -> "TokenPresale":
        return cls(
            sale_token,
            payment_token,
            ledger_address,
            admin_address,
            rate=config.rate,
            min_purchase=config.min_purchase,
            max_purchase=config.max_purchase,
            time_provider=time_provider,
        )

    def quote(self, payment_amount: int) -> int:
        """Sale tokens (base units) bought by ``payment_amount`` payment base units."""
        return (
            payment_amount * self.rate * 10**self.sale_decimals // 10**self.payment_decimals
        )

    # ==================== Buyer Operations ====================

    def buy(self, buyer: str, payment_amount: int, current_time: int | None = None) -> int:
        if not self.enabled:
            raise MechanismDisabled("Presale is not open")
        buyer = self._account(buyer)
        self.store.require_amount(payment_amount)
        now = self._normalize_timestamp(current_time)

        if payment_amount < self.min_purchase:
            raise InvalidInput(
                f"Purchase {payment_amount} below minimum {self.min_purchase}",
                details={"minimum": self.min_purchase},
            )
        tokens = self.quote(payment_amount)
        if tokens == 0:
            raise InvalidInput("Payment too small to buy any tokens.")

        with self._operation("buy"):
            paid = self.store.add_paid(buyer, payment_amount)
            if self.max_purchase and paid > self.max_purchase:
                raise InvalidInput(
                    f"Purchases by {buyer} would exceed cap {self.max_purchase}",
                    details={"cap": self.max_purchase, "paid": paid},
                )
            outstanding = self.store.add_total("tokens_sold", tokens) - self._total("tokens_delivered")
            self.funds.require(outstanding)

            self.store.add_total("total_raised", payment_amount)
            balance = self.store.add_credit(buyer, tokens)
            self._emit("TokensPurchased", buyer, tokens, now)
            self._emit("ClaimableAmount", buyer, balance, now)

            self._pull(self.payment, buyer, payment_amount)
        return tokens

    def claim(self, buyer: str, current_time: int | None = None) -> int:
        if not self.claim_enabled:
            raise MechanismDisabled("Presale claims are not open")
        buyer = self._account(buyer)
        now = self._normalize_timestamp(current_time)

        with self._operation("claim"):
            amount = self.store.take_credit(buyer)
            if amount <= 0:
                raise NothingDue(f"Nothing to claim for {buyer}")
            self.funds.require(amount)
            self.store.add_total("tokens_delivered", amount)
            self._emit("Claimed", buyer, amount, now)

            self._push(self.token, buyer, amount)

        ledger_metrics.record_payout(self.MECHANISM, amount)
        return amount

    # ==================== Admin ====================

    def set_claim_enabled(self, caller: str, enabled: bool) -> None:
        self.admin.require_admin(caller)
        self.claim_enabled = bool(enabled)
        self._log.info("Presale claims %s", "opened" if enabled else "closed", extra={"event": "presale.claim_status"})

    def set_rate(self, caller: str, rate: int) -> None:
        self.admin.require_admin(caller)
        self.rate = self._validate_rate(rate)
        self._log.info("Presale rate set to %s", rate, extra={"event": "presale.rate"})

    def withdraw_payments(self, caller: str, to: str, amount: int) -> None:
        """Send raised payment tokens to ``to``."""
        self.admin.require_admin(caller)
        if is_null_address(to):
            raise InvalidInput("Recipient cannot be the null address.")
        self.store.require_amount(amount)
        with self._operation("withdraw_payments"):
            self.store.add_total("payments_withdrawn", amount)
            self._push(self.payment, to, amount)

    def withdraw_unsold(self, caller: str, to: str, current_time: int | None = None) -> int:
        """Return sale tokens not backing any outstanding claim."""
        self.admin.require_admin(caller)
        if is_null_address(to):
            raise InvalidInput("Recipient cannot be the null address.")
        with self._operation("withdraw_unsold"):
            surplus = self.funds.available(reserved=self.outstanding_claims())
            if surplus <= 0:
                raise NothingDue("No unsold tokens to withdraw")
            self._push(self.token, to, surplus)
        return surplus

    def _protected_token_addresses(self) -> set[str]:
        return {self.token.token_address, self.payment.token_address}

    @staticmethod
    def _validate_rate(rate: int) -> int:
        if not isinstance(rate, int) or isinstance(rate, bool) or rate <= 0:
            raise InvalidInput("Rate must be a positive integer.")
        return rate

    # ==================== Views ====================

    def claimable_of(self, buyer: str) -> int:
        return self.store.credit_of(buyer)

    def paid_of(self, buyer: str) -> int:
        """Payment base units ``buyer`` has spent so far."""
        return self.store.paid_of(buyer)

    def outstanding_claims(self) -> int:
        return self._total("tokens_sold") - self._total("tokens_delivered")

    def participants(self, start: int, end: int) -> list[str]:
        return self._page(start, end)

    def number_of_participants(self) -> int:
        return len(self.store.state.holders)

    @property
    def total_raised(self) -> int:
        return self._total("total_raised")

    @property
    def tokens_sold(self) -> int:
        return self._total("tokens_sold")
