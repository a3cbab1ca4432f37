"""
tokenledger token collaborators.

This module provides:
- ERC20: in-memory fungible token used as the custody collaborator
- Token adapter: interprets heterogeneous transfer return data
"""

from .erc20 import ERC20Token, TokenEvent
from .token_adapter import SafeTokenAdapter, TransferOutcome, interpret_return_data

__all__ = [
    "ERC20Token",
    "TokenEvent",
    "SafeTokenAdapter",
    "TransferOutcome",
    "interpret_return_data",
]
