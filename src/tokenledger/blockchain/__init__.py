"""
tokenledger Blockchain Module

Entitlement engines and the pieces they share:
- Accrual functions for vesting schedules and staking rewards
- Entitlement store (per-account records, holder index, atomic state)
- Merkle proofs and the claimed-index bitmap for airdrops
- Funds guard and fee splitter
- Vesting, staking, airdrop, presale and migration engines
"""

__all__ = []
