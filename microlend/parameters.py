"""
parameters.py - Lending Protocol Parameters

All tunables of the protocol live in one frozen dataclass. Parameters are
fixed when an engine is constructed; there is no upgrade path.

Rates and ratios are integer basis points (10_000 = 100%).
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import BPS


@dataclass(frozen=True, slots=True)
class LendingParameters:
    """
    Term sheet of the protocol.

    Attributes:
        base_rate_bps: Interest rate before the score discount (1000 = 10%).
        rate_slope_bps: Rate discount per 100 score points (500 = 5%).
        collateral_slope_bps: Collateral ratio discount per 100 score points.
        min_score: Lowest possible score (new users start here).
        max_score: Highest possible score.
        min_score_to_borrow: Score required to request a loan.
        repayment_bonus: Score added per repayment (capped at max_score).
        default_penalty: Score removed per default (floored at min_score).
        max_active_loans: Business ceiling on simultaneously active loans.
        index_capacity: Slots reserved per user in the active-loan index.
            Kept above max_active_loans as headroom; acceptance is gated by
            max_active_loans.
        max_duration: Longest loan term in blocks (~1 year at 10 min blocks).
    """
    base_rate_bps: int = 1000
    rate_slope_bps: int = 500
    collateral_slope_bps: int = 5000
    min_score: int = 50
    max_score: int = 100
    min_score_to_borrow: int = 70
    repayment_bonus: int = 2
    default_penalty: int = 10
    max_active_loans: int = 5
    index_capacity: int = 20
    max_duration: int = 52560

    def __post_init__(self):
        if not 0 <= self.min_score <= self.max_score:
            raise ValueError(
                f"score range must satisfy 0 <= min_score <= max_score, "
                f"got [{self.min_score}, {self.max_score}]"
            )
        if not self.min_score <= self.min_score_to_borrow <= self.max_score:
            raise ValueError(
                f"min_score_to_borrow must lie in [{self.min_score}, {self.max_score}], "
                f"got {self.min_score_to_borrow}"
            )
        if self.rate_slope_bps < 0 or self.collateral_slope_bps < 0:
            raise ValueError("slopes cannot be negative")
        # Pricing must stay positive at the top of the score range.
        if self.base_rate_bps - self.max_score * self.rate_slope_bps // 100 <= 0:
            raise ValueError("interest rate would reach zero within the score range")
        if BPS - self.max_score * self.collateral_slope_bps // 100 <= 0:
            raise ValueError("collateral ratio would reach zero within the score range")
        if self.repayment_bonus < 0 or self.default_penalty < 0:
            raise ValueError("score adjustments cannot be negative")
        if self.max_active_loans <= 0:
            raise ValueError(f"max_active_loans must be positive, got {self.max_active_loans}")
        if self.index_capacity < self.max_active_loans:
            raise ValueError(
                f"index_capacity ({self.index_capacity}) must be >= "
                f"max_active_loans ({self.max_active_loans})"
            )
        if self.max_duration <= 0:
            raise ValueError(f"max_duration must be positive, got {self.max_duration}")


DEFAULT_PARAMETERS = LendingParameters()
