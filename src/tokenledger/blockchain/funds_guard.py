from __future__ import annotations

import logging

from ..core.contracts.token_adapter import SafeTokenAdapter
from ..core.ledger_exceptions import InsufficientFunds

logger = logging.getLogger(__name__)


class FundsGuard:
    """
    Caps payouts against what the ledger actually holds.

    The balance is read from the token collaborator at call time, never from
    cached accounting.
    """

    def __init__(self, adapter: SafeTokenAdapter):
        self.adapter = adapter

    def available(self, reserved: int = 0) -> int:
        """Custody above ``reserved`` (e.g. staked principal)."""
        return max(0, self.adapter.balance() - reserved)

    def clamp(self, amount: int, reserved: int = 0) -> int:
        """Silently reduce ``amount`` to what custody can cover."""
        available = self.available(reserved)
        if amount > available:
            logger.warning(
                "Payout of %s clamped to %s available",
                amount,
                available,
                extra={"event": "funds.clamped", "requested": amount, "available": available},
            )
            return available
        return amount

    def require(self, amount: int, reserved: int = 0) -> int:
        """Raise ``InsufficientFunds`` unless custody covers ``amount`` in full."""
        available = self.available(reserved)
        if amount > available:
            logger.error(
                "Payout of %s exceeds custody %s",
                amount,
                available,
                extra={"event": "funds.insufficient", "requested": amount, "available": available},
            )
            raise InsufficientFunds(
                f"Payout {amount} exceeds available custody {available}",
                details={"requested": amount, "available": available},
            )
        return amount
