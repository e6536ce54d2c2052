"""
test_lending_scenarios.py - End-to-end lending scenarios

Tests complete borrower journeys through LendingEngine:
- New user below the borrowing threshold
- Collateral boundary at origination
- Full repayment with collateral release and score reward
- Default after the due height with collateral forfeited
- Active-loan ceiling
- Concurrent callers against one engine
"""

import threading

import pytest

from microlend import (
    LoanStatus, PROTOCOL_CUSTODY,
    InsufficientScore, InsufficientBalance, NotDue, TooManyActiveLoans,
)
from tests.conftest import (
    ADMIN, CUSTODY_LIQUIDITY, USER_FUNDS, make_engine, register, funded_vault,
    locked_collateral,
)


class TestNewBorrower:
    """A freshly registered user cannot borrow yet."""

    def test_fresh_profile_below_threshold(self, engine):
        """initialize → score 50 → request fails with InsufficientScore."""
        profile = engine.initialize_score("alice")
        assert profile.score == 50

        with pytest.raises(InsufficientScore):
            engine.request_loan("alice", 1_000_000, 1_000_000, 144)
        assert engine.next_loan_id == 0
        assert engine.get_balance("alice") == USER_FUNDS


class TestRepaidLoanJourney:
    """Score 80: borrow at the collateral boundary, then repay in full."""

    def test_collateral_boundary_then_repayment(self, engine, clock):
        register(engine, "alice", 80)

        # Required collateral at score 80 is 60% of principal.
        with pytest.raises(InsufficientBalance):
            engine.request_loan("alice", 1_000_000, 599_999, 144)

        loan_id = engine.request_loan("alice", 1_000_000, 600_000, 144)
        assert loan_id == 1
        assert engine.get_loan(loan_id).interest_rate == 600
        assert engine.total_locked == 600_000
        assert engine.get_balance("alice") == 10_400_000

        clock.advance(50)
        settled = engine.repay_loan("alice", loan_id, 1_060_000)

        assert settled.status is LoanStatus.REPAID
        assert engine.get_balance("alice") == 9_940_000
        assert engine.get_balance(PROTOCOL_CUSTODY) == CUSTODY_LIQUIDITY + 60_000
        assert engine.get_user_score("alice").score == 82
        assert engine.total_locked == 0
        assert engine.verify_invariants()["valid"]


class TestDefaultJourney:
    """After a repayment, a second loan goes unpaid past its due height."""

    def test_default_after_due_height(self, engine, clock):
        register(engine, "alice", 80)
        first = engine.request_loan("alice", 1_000_000, 600_000, 144)
        engine.repay_loan("alice", first, 1_060_000)

        # Score 82 now prices at 5.9% and 59% collateral.
        quote = engine.quote_loan("alice", 1_000_000)
        assert quote.interest_rate == 590
        assert quote.required_collateral == 590_000

        second = engine.request_loan("alice", 1_000_000, 590_000, 100)
        due_height = engine.get_loan(second).due_height
        custody_after_origination = engine.get_balance(PROTOCOL_CUSTODY)

        clock.advance_to(due_height)
        with pytest.raises(NotDue):
            engine.mark_loan_defaulted(ADMIN, second)

        clock.advance()
        settled = engine.mark_loan_defaulted(ADMIN, second)

        assert settled.status is LoanStatus.DEFAULTED
        assert engine.get_user_score("alice").score == 72
        assert engine.get_balance(PROTOCOL_CUSTODY) == custody_after_origination
        assert engine.total_locked == 0
        assert engine.get_user_active_loans("alice") == frozenset()

    def test_repeated_defaults_floor_score(self, engine, clock):
        register(engine, "alice", 70)
        ids = [engine.request_loan("alice", 1_000, 650, 1) for _ in range(3)]
        clock.advance(2)

        scores = []
        for loan_id in ids:
            engine.mark_loan_defaulted(ADMIN, loan_id)
            scores.append(engine.get_user_score("alice").score)

        assert scores == [60, 50, 50]
        profile = engine.get_user_score("alice")
        assert profile.loans_taken == 0
        assert profile.loans_repaid == 0
        with pytest.raises(InsufficientScore):
            engine.request_loan("alice", 1_000, 1_000, 1)


class TestActiveLoanCeiling:
    """A top-score user still cannot hold a 6th concurrent loan."""

    def test_sixth_loan_rejected(self, engine):
        register(engine, "alice", 100)
        ids = [engine.request_loan("alice", 10_000, 5_000, 144) for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]

        with pytest.raises(TooManyActiveLoans):
            engine.request_loan("alice", 10_000, 1_000_000, 144)
        assert engine.get_user_active_loans("alice") == frozenset(ids)
        assert engine.next_loan_id == 5

    def test_repaying_frees_a_slot(self, engine):
        register(engine, "alice", 100)
        ids = [engine.request_loan("alice", 10_000, 5_000, 144) for _ in range(5)]
        engine.repay_loan("alice", ids[0], engine.required_payment(ids[0]))

        assert engine.request_loan("alice", 10_000, 5_000, 144) == 6
        assert len(engine.get_user_active_loans("alice")) == 5


class TestConcurrentCallers:
    """Operations from many threads serialize into one consistent history."""

    def test_racing_requests_respect_ceiling(self):
        engine = make_engine()
        register(engine, "alice", 100)
        outcomes = []
        outcomes_lock = threading.Lock()
        barrier = threading.Barrier(12)

        def borrow():
            barrier.wait()
            try:
                result = engine.request_loan("alice", 10_000, 5_000, 144)
            except TooManyActiveLoans as e:
                result = e
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=borrow) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        granted = sorted(r for r in outcomes if isinstance(r, int))
        assert granted == [1, 2, 3, 4, 5]
        assert len(outcomes) == 12
        assert engine.total_locked == 25_000
        assert engine.verify_invariants()["valid"]

    def test_interleaved_borrowers(self):
        users = [f"user{i}" for i in range(8)]
        engine = make_engine(vault=funded_vault(users))
        for user in users:
            register(engine, user, 90)

        def cycle(user):
            for _ in range(5):
                loan_id = engine.request_loan(user, 20_000, 11_000, 144)
                engine.repay_loan(user, loan_id, engine.required_payment(loan_id))

        threads = [threading.Thread(target=cycle, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert engine.next_loan_id == 40
        assert engine.total_locked == 0 == locked_collateral(engine)
        assert [tx.sequence_number for tx in engine.transaction_log] == list(range(len(engine.transaction_log)))
        for user in users:
            assert engine.get_user_score(user).score == 100
            assert engine.get_user_score(user).loans_repaid == 5
