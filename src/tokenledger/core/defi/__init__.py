"""
Guards shared by the ledger engines: single-admin access control and the
reentrancy lock.
"""

from .access_control import AdminControl
from .reentrancy import ReentrancyLock

__all__ = ["AdminControl", "ReentrancyLock"]
