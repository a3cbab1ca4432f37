"""
tokenledger - Entitlement & Accrual Ledger

In-process engines for token-economics mechanisms that share one problem:
tracking a per-account entitlement that unlocks over time or upon proof,
paying it out exactly once, never exceeding backing funds, and staying safe
against reentrant token callbacks during payout.

Main Components:
- Vesting: linear drawdown schedules with a cliff
- Staking: fee-bearing deposits with rate-based rewards
- Airdrop: merkle-proof gated one-shot claims
- Presale and migration swaps built on the same collaborators

For detailed documentation, see: README.md and DESIGN.md
"""

__version__ = "0.1.0"
__author__ = "tokenledger Development Team"

__all__ = []
