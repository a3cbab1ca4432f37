"""
Account identity helpers.

Accounts are plain strings compared case-insensitively. The empty string and
the all-zero EVM address both denote the null identity.
"""

from __future__ import annotations

ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str) -> str:
    if not isinstance(address, str):
        raise TypeError("address must be a string")
    return address.strip().lower()


def is_null_address(address: str | None) -> bool:
    if not address:
        return True
    return normalize_address(address) in ("", ZERO_ADDRESS)
