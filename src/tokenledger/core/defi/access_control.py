"""
Single-admin access control for ledger engines.

Every privileged call (enable/disable, rate and fee changes, sweeps,
schedule creation) is gated on one admin address. Richer policies are
left to whatever system owns the admin key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..addresses import is_null_address, normalize_address
from ..ledger_exceptions import InvalidInput, Unauthorized

logger = logging.getLogger(__name__)


@dataclass
class AdminControl:
    """
    Usage:
        ac = AdminControl(admin_address="0xadmin")
        ac.require_admin(caller)
        perform_privileged_operation()
    """

    admin_address: str

    def __post_init__(self) -> None:
        if is_null_address(self.admin_address):
            raise InvalidInput("Admin address cannot be empty.")
        self.admin_address = normalize_address(self.admin_address)

    def is_admin(self, caller: str) -> bool:
        return bool(caller) and normalize_address(caller) == self.admin_address

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            logger.warning(
                "Unauthorized privileged call from %s",
                caller,
                extra={"event": "access.denied", "caller": str(caller)[:10]},
            )
            raise Unauthorized(f"Caller {caller} is not the admin.")

    def transfer_admin(self, caller: str, new_admin: str) -> None:
        self.require_admin(caller)
        if is_null_address(new_admin):
            raise InvalidInput("New admin address cannot be empty.")
        previous = self.admin_address
        self.admin_address = normalize_address(new_admin)
        logger.info(
            "Admin transferred",
            extra={"event": "access.admin_transferred", "from": previous[:10], "to": self.admin_address[:10]},
        )
