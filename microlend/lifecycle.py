"""
lifecycle.py - Loan Lifecycle Checks

Pure functions that validate a public operation against a read-only
LendingView and describe what it would do. They never mutate anything; the
LendingEngine runs them first and applies the returned plan only when every
check passed.

State machine per loan:

    Requested (transient) -> ACTIVE -> REPAID     (repay_loan)
                                    -> DEFAULTED  (mark_loan_defaulted)

Checks run in a fixed order and the first failure raises, so a caller
always receives exactly one error per failed call.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .core import (
    LendingView, LoanRecord, LoanStatus, Move,
    PROTOCOL_CUSTODY, MAX_AMOUNT,
    Unauthorized, InsufficientBalance, InvalidAmount, LoanNotFound,
    LoanDefaulted, InsufficientScore, TooManyActiveLoans, NotDue,
    InvalidDuration, InvalidLoanId, InvalidState,
)
from .parameters import LendingParameters, DEFAULT_PARAMETERS
from . import pricing


# Predicate deciding whether an identity may act as administrator.
AdminPredicate = Callable[[str], bool]


def single_admin(admin: str) -> AdminPredicate:
    """Admin predicate accepting exactly one identity."""
    def is_admin(caller: str) -> bool:
        return caller == admin
    return is_admin


# ============================================================================
# PLANS
# ============================================================================

@dataclass(frozen=True, slots=True)
class OriginationPlan:
    """Everything request_loan will do once the vault accepts the moves."""
    borrower: str
    amount: int
    collateral: int
    score: int
    interest_rate: int
    due_height: int
    moves: Tuple[Move, ...]


@dataclass(frozen=True, slots=True)
class RepaymentPlan:
    loan: LoanRecord
    payment_amount: int
    moves: Tuple[Move, ...]


@dataclass(frozen=True, slots=True)
class DefaultPlan:
    # Defaults move no assets: collateral stays in custody.
    loan: LoanRecord


# ============================================================================
# SHARED CHECKS
# ============================================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_loan_id(loan_id) -> None:
    """
    Raises:
        InvalidLoanId: If loan_id is not a non-negative integer
    """
    if not _is_int(loan_id) or loan_id < 0:
        raise InvalidLoanId(f"Invalid loan id {loan_id!r}")


def require_active_loan(view: LendingView, loan_id) -> LoanRecord:
    """
    Return the loan if it exists and is ACTIVE.

    Raises:
        InvalidLoanId: Malformed identifier
        LoanNotFound: Unknown identifier
        LoanDefaulted: Loan already defaulted
        InvalidState: Loan already repaid
    """
    check_loan_id(loan_id)
    loan = view.get_loan(loan_id)
    if loan is None:
        raise LoanNotFound(f"Loan {loan_id} not found")
    if loan.status is LoanStatus.DEFAULTED:
        raise LoanDefaulted(f"Loan {loan_id} has already defaulted")
    if loan.status is not LoanStatus.ACTIVE:
        raise InvalidState(f"Loan {loan_id} is {loan.status.value}, expected active")
    return loan


# ============================================================================
# ORIGINATION
# ============================================================================

def check_request(
    view: LendingView,
    caller: str,
    amount: int,
    collateral: int,
    duration: int,
    params: LendingParameters = DEFAULT_PARAMETERS,
    now: Optional[int] = None,
) -> OriginationPlan:
    """
    Validate a loan request and price it.

    Checks, in order:
        1. caller has a credit profile            (Unauthorized)
        2. score >= min_score_to_borrow           (InsufficientScore)
        3. active loans below max_active_loans    (TooManyActiveLoans)
        4. 0 < amount <= MAX_AMOUNT               (InvalidAmount)
        5. 0 < duration <= max_duration           (InvalidDuration)
        6. collateral >= required_collateral      (InsufficientBalance)
        7. collateral <= MAX_AMOUNT               (InvalidAmount)

    now is the block height the caller pinned for the whole operation;
    it defaults to view.current_height.

    Returns:
        OriginationPlan with the loan terms and the asset moves
    """
    profile = view.get_user_score(caller)
    if profile is None:
        raise Unauthorized(f"{caller} has no credit profile")

    if profile.score < params.min_score_to_borrow:
        raise InsufficientScore(
            f"{caller} score {profile.score} < required {params.min_score_to_borrow}"
        )

    active = len(view.get_user_active_loans(caller))
    if active >= params.max_active_loans:
        raise TooManyActiveLoans(
            f"{caller} already has {active} active loans (max {params.max_active_loans})"
        )

    if not _is_int(amount) or amount <= 0 or amount > MAX_AMOUNT:
        raise InvalidAmount(f"Invalid loan amount {amount!r}")

    if not _is_int(duration) or duration <= 0 or duration > params.max_duration:
        raise InvalidDuration(
            f"Duration {duration!r} outside (0, {params.max_duration}]"
        )

    required = pricing.required_collateral(amount, profile.score, params)
    if not _is_int(collateral) or collateral < required:
        raise InsufficientBalance(
            f"Collateral {collateral!r} below required {required} at score {profile.score}"
        )
    if collateral > MAX_AMOUNT:
        raise InvalidAmount(f"Collateral {collateral} exceeds MAX_AMOUNT")

    if now is None:
        now = view.current_height

    moves = []
    if collateral > 0:
        moves.append(Move(collateral, caller, PROTOCOL_CUSTODY, "collateral_lock"))
    moves.append(Move(amount, PROTOCOL_CUSTODY, caller, "principal_disbursement"))

    return OriginationPlan(
        borrower=caller,
        amount=amount,
        collateral=collateral,
        score=profile.score,
        interest_rate=pricing.interest_rate(profile.score, params),
        due_height=now + duration,
        moves=tuple(moves),
    )


# ============================================================================
# REPAYMENT
# ============================================================================

def check_repayment(
    view: LendingView,
    caller: str,
    loan_id: int,
    payment_amount: int,
) -> RepaymentPlan:
    """
    Validate a full repayment.

    Checks, in order: loan id, existence, ACTIVE status, caller is the
    borrower (Unauthorized), payment covers principal plus flat interest
    (InsufficientBalance). Partial payments are rejected outright.
    """
    loan = require_active_loan(view, loan_id)

    if caller != loan.borrower:
        raise Unauthorized(f"{caller} is not the borrower of loan {loan_id}")

    due = pricing.repayment_due(loan.amount, loan.interest_rate)
    if not _is_int(payment_amount) or payment_amount < due:
        raise InsufficientBalance(
            f"Payment {payment_amount!r} below amount due {due} for loan {loan_id}"
        )

    moves = [Move(payment_amount, caller, PROTOCOL_CUSTODY, "repayment")]
    if loan.collateral > 0:
        moves.append(Move(loan.collateral, PROTOCOL_CUSTODY, caller, "collateral_release"))

    return RepaymentPlan(loan=loan, payment_amount=payment_amount, moves=tuple(moves))


# ============================================================================
# DEFAULT
# ============================================================================

def check_default(
    view: LendingView,
    caller: str,
    loan_id: int,
    is_admin: AdminPredicate,
    now: Optional[int] = None,
) -> DefaultPlan:
    """
    Validate marking a loan defaulted.

    Checks, in order: caller passes is_admin (Unauthorized), loan id,
    existence, ACTIVE status, now past due_height (NotDue). now defaults to
    view.current_height.
    """
    if not is_admin(caller):
        raise Unauthorized(f"{caller} is not an administrator")

    loan = require_active_loan(view, loan_id)

    if now is None:
        now = view.current_height
    if now <= loan.due_height:
        raise NotDue(f"Loan {loan_id} is due after height {loan.due_height}, now {now}")

    return DefaultPlan(loan=loan)
