"""
Accrual functions: how much of an entitlement is releasable right now.

Both functions are pure. Every division truncates toward zero (floor, since
all inputs are non-negative), in the order written, so cumulative payouts
can trail the ideal curve by at most one unit per division. The vesting
remainder is released in full once the schedule ends.
"""

from __future__ import annotations

from dataclasses import dataclass

RATE_DENOMINATOR = 10_000


@dataclass(frozen=True)
class VestingWindow:
    start: int
    end: int
    cliff_duration: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("Vesting end must not precede start.")
        if self.cliff_duration < 0:
            raise ValueError("Cliff duration cannot be negative.")

    @property
    def cliff_end(self) -> int:
        return self.start + self.cliff_duration


def vesting_releasable(
    principal: int,
    drawn: int,
    last_drawn_at: int | None,
    window: VestingWindow,
    now: int,
) -> int:
    """
    Amount currently drawable from a linear schedule.

    Inside the cliff nothing is releasable; after ``end`` the full remainder
    is. In between, the per-second rate ``principal // (end - start)`` is
    applied to the time since the last draw (or since ``start``).
    """
    if principal <= 0:
        return 0

    # Cliff period
    if now <= window.cliff_end:
        return 0

    # Schedule complete
    if now > window.end:
        return principal - drawn

    # Schedule active
    anchor = last_drawn_at if last_drawn_at is not None else window.start
    elapsed = now - anchor
    if elapsed <= 0:
        return 0
    return elapsed * vesting_rate(principal, window)


def vesting_rate(principal: int, window: VestingWindow) -> int:
    """Per-second draw-down rate for an active schedule."""
    span = window.end - window.start
    if span <= 0:
        return principal
    return principal // span


def staking_pending(
    *,
    is_holder: bool,
    deposited: int,
    reward_rate: int,
    reward_interval: int,
    staking_start_time: int,
    last_claimed_at: int,
    now: int,
    contract_balance: int,
    total_staked: int,
) -> int:
    """
    Pending staking reward for one holder.

    Rewards are paid only out of the surplus the pool holds above
    ``total_staked``. Once the reward window has closed and the holder has
    settled at or after its end, nothing further accrues.
    """
    if not is_holder or deposited == 0:
        return 0
    if contract_balance <= total_staked:
        return 0
    if reward_interval <= 0:
        return 0

    reward_end_time = staking_start_time + reward_interval
    if now < reward_end_time:
        time_diff = now - last_claimed_at
    elif last_claimed_at < reward_end_time:
        time_diff = reward_end_time - last_claimed_at
    else:
        return 0

    if time_diff <= 0:
        return 0

    pending = deposited * reward_rate * time_diff // reward_interval // RATE_DENOMINATOR

    if contract_balance < total_staked + pending:
        pending = contract_balance - total_staked

    return pending
