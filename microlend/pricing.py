"""
pricing.py - Score-Based Loan Pricing

Pure functions mapping a credit score to loan terms. No state, no view.

Key Formulas (all integer, basis points):
    interest_rate(score)      = base_rate - score * rate_slope / 100
    collateral_ratio(score)   = 10000 - score * collateral_slope / 100
    required_collateral(a, s) = a * collateral_ratio(s) // 10000
    repayment_due(a, rate)    = a + a * rate // 10000

With the default parameters:
    score  50 -> rate 7.5%, collateral 75%
    score  70 -> rate 6.5%, collateral 65%
    score  80 -> rate 6.0%, collateral 60%
    score 100 -> rate 5.0%, collateral 50%

Interest is flat: computed once on the principal at the rate fixed at
origination, never compounded.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import BPS
from .parameters import LendingParameters, DEFAULT_PARAMETERS


@dataclass(frozen=True, slots=True)
class LoanQuote:
    """Terms a user with a given score would receive for a principal."""
    amount: int
    score: int
    interest_rate: int
    collateral_ratio: int
    required_collateral: int
    repayment_due: int


def _check_score(score: int, params: LendingParameters) -> None:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValueError(f"score must be int, got {type(score)}")
    if not params.min_score <= score <= params.max_score:
        raise ValueError(
            f"score must lie in [{params.min_score}, {params.max_score}], got {score}"
        )


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"amount must be int, got {type(amount)}")
    if amount < 0:
        raise ValueError(f"amount cannot be negative, got {amount}")


def interest_rate(score: int, params: LendingParameters = DEFAULT_PARAMETERS) -> int:
    """
    Interest rate in basis points for a score.

    Strictly decreasing in score whenever rate_slope_bps > 0.

    Example:
        interest_rate(100) -> 500   (5%)
        interest_rate(70)  -> 650   (6.5%)
    """
    _check_score(score, params)
    return params.base_rate_bps - score * params.rate_slope_bps // 100


def collateral_ratio(score: int, params: LendingParameters = DEFAULT_PARAMETERS) -> int:
    """Required collateral as basis points of principal."""
    _check_score(score, params)
    return BPS - score * params.collateral_slope_bps // 100


def required_collateral(
    amount: int,
    score: int,
    params: LendingParameters = DEFAULT_PARAMETERS,
) -> int:
    """
    Minimum collateral for a principal at a score, rounded down.

    Example:
        required_collateral(1_000_000, 80) -> 600_000
    """
    _check_amount(amount)
    return amount * collateral_ratio(score, params) // BPS


def interest_due(amount: int, rate_bps: int) -> int:
    """Flat interest on a principal, rounded down."""
    _check_amount(amount)
    if rate_bps < 0:
        raise ValueError(f"rate_bps cannot be negative, got {rate_bps}")
    return amount * rate_bps // BPS


def repayment_due(amount: int, rate_bps: int) -> int:
    """Principal plus flat interest - the minimum accepted repayment."""
    return amount + interest_due(amount, rate_bps)


def quote(
    amount: int,
    score: int,
    params: LendingParameters = DEFAULT_PARAMETERS,
) -> LoanQuote:
    """Price a principal for a score."""
    rate = interest_rate(score, params)
    return LoanQuote(
        amount=amount,
        score=score,
        interest_rate=rate,
        collateral_ratio=collateral_ratio(score, params),
        required_collateral=required_collateral(amount, score, params),
        repayment_due=repayment_due(amount, rate),
    )
