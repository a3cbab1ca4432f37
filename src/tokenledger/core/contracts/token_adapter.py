"""
Safe token adapter.

Tokens in the wild disagree on what a transfer returns. Some return a
boolean, some (USDT among them) return nothing at all, and broken ones
return arbitrary data. The adapter folds every convention into a
three-way ``TransferOutcome`` and turns anything but ``SUCCESS`` into
``TransferFailed`` so the calling operation aborts in full.

Interpretation rules:
- ``None`` or empty bytes: SUCCESS
- ``bool``: its value
- exactly one 32-byte word encoding 0 or 1: its value
- anything else: UNRECOGNIZED (treated as failure)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from ..ledger_exceptions import TransferFailed

logger = logging.getLogger(__name__)

WORD_SIZE = 32


class TransferOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UNRECOGNIZED = "unrecognized"


def interpret_return_data(raw: Any) -> TransferOutcome:
    """Map raw transfer return data onto a TransferOutcome."""
    if raw is None:
        return TransferOutcome.SUCCESS
    # bool before int: bool is an int subclass
    if isinstance(raw, bool):
        return TransferOutcome.SUCCESS if raw else TransferOutcome.FAILURE
    if isinstance(raw, (bytes, bytearray)):
        if len(raw) == 0:
            return TransferOutcome.SUCCESS
        if len(raw) == WORD_SIZE:
            value = int.from_bytes(raw, "big")
            if value == 1:
                return TransferOutcome.SUCCESS
            if value == 0:
                return TransferOutcome.FAILURE
    return TransferOutcome.UNRECOGNIZED


class SafeTokenAdapter:
    """
    Wraps a token collaborator on behalf of one holder (the ledger).

    Every mutating call either succeeds or raises ``TransferFailed``; the
    original collaborator exception, if any, is chained as the cause.
    """

    def __init__(self, token: Any, holder_address: str):
        if not holder_address:
            raise ValueError("Holder address cannot be empty.")
        self.token = token
        self.holder_address = holder_address.lower()

    @property
    def token_address(self) -> str:
        return str(getattr(self.token, "address", "")).lower()

    def balance(self) -> int:
        """Current custody held by the ledger."""
        return int(self.token.balance_of(self.holder_address))

    def balance_of(self, account: str) -> int:
        return int(self.token.balance_of(account))

    def safe_transfer(self, to: str, amount: int) -> TransferOutcome:
        return self._call("transfer", self.token.transfer, self.holder_address, to, amount)

    def safe_transfer_from(self, from_addr: str, to: str, amount: int) -> TransferOutcome:
        return self._call(
            "transfer_from", self.token.transfer_from, self.holder_address, from_addr, to, amount
        )

    def safe_mint(self, to: str, amount: int) -> TransferOutcome:
        mint = getattr(self.token, "mint", None)
        if mint is None:
            raise TransferFailed(
                "Token collaborator does not support issuance",
                outcome=TransferOutcome.FAILURE.value,
            )
        return self._call("mint", mint, self.holder_address, to, amount)

    def _call(self, operation: str, fn, *args: Any) -> TransferOutcome:
        try:
            raw = fn(*args)
        except Exception as exc:
            logger.warning(
                "Token %s raised: %s",
                operation,
                exc,
                extra={"event": "token.call_raised", "operation": operation},
            )
            raise TransferFailed(
                f"Token {operation} failed: {exc}",
                outcome=TransferOutcome.FAILURE.value,
            ) from exc

        outcome = interpret_return_data(raw)
        if outcome is not TransferOutcome.SUCCESS:
            logger.warning(
                "Token %s returned %s",
                operation,
                outcome.value,
                extra={"event": "token.call_rejected", "operation": operation, "outcome": outcome.value},
            )
            raise TransferFailed(
                f"Token {operation} returned {outcome.value} data",
                outcome=outcome.value,
                details={"return_data": repr(raw)[:80]},
            )
        return outcome
