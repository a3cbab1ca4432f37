from __future__ import annotations

import logging

from ..core.ledger_exceptions import InvalidInput
from .accrual import RATE_DENOMINATOR

logger = logging.getLogger(__name__)

MAX_FEE_RATE_BPS = RATE_DENOMINATOR


def validate_fee_rate(fee_rate_bps: int) -> int:
    if not isinstance(fee_rate_bps, int) or isinstance(fee_rate_bps, bool):
        raise InvalidInput("Fee rate must be an integer number of basis points.")
    if fee_rate_bps < 0 or fee_rate_bps > MAX_FEE_RATE_BPS:
        raise InvalidInput(
            f"Fee rate {fee_rate_bps} bps is outside [0, {MAX_FEE_RATE_BPS}]."
        )
    return fee_rate_bps


def split_fee(gross_amount: int, fee_rate_bps: int) -> tuple[int, int]:
    """
    Split ``gross_amount`` into ``(fee, net)``.

    The fee truncates; the net takes the remainder so ``fee + net`` always
    equals ``gross_amount``.
    """
    validate_fee_rate(fee_rate_bps)
    if gross_amount < 0:
        raise InvalidInput("Gross amount cannot be negative.")
    fee = gross_amount * fee_rate_bps // RATE_DENOMINATOR
    net = gross_amount - fee
    logger.debug("Fee split %s -> fee %s, net %s at %s bps", gross_amount, fee, net, fee_rate_bps)
    return fee, net
