"""
Reentrancy lock for ledger engines.

A scoped guard held across every operation that mutates ledger state and
then calls out to a token collaborator. A nested entry from a collaborator
callback raises ``ReentrantCall``; the lock is released on every exit path,
including failure.

Usage:
    with self._lock:
        ...mutate state...
        ...external transfer...
"""

from __future__ import annotations

import logging
import threading

from ..ledger_exceptions import ReentrantCall

logger = logging.getLogger(__name__)


class ReentrancyLock:
    def __init__(self, name: str = "ledger"):
        self.name = name
        self._locked = False
        # Serializes distinct threads; reentry from the owning thread is rejected below
        self._mutex = threading.Lock()
        self._owner: int | None = None

    @property
    def locked(self) -> bool:
        return self._locked

    def __enter__(self) -> "ReentrancyLock":
        if self._locked and self._owner == threading.get_ident():
            logger.warning(
                "Reentrant call rejected on %s",
                self.name,
                extra={"event": "reentrancy.rejected", "lock": self.name},
            )
            raise ReentrantCall(f"{self.name}: reentrant call")
        self._mutex.acquire()
        self._owner = threading.get_ident()
        self._locked = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._locked = False
        self._owner = None
        self._mutex.release()
