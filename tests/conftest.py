"""
conftest.py - Shared pytest fixtures for lending engine tests

Provides common fixtures used across unit, functional and conformance tests:
- Clock and funded vault
- Engines (fresh, with a prime borrower)
- Invariant helpers
"""

import pytest

from microlend import (
    LendingEngine, ManualBlockClock, Vault, single_admin,
    LoanStatus, PROTOCOL_CUSTODY,
)


ADMIN = "admin"
CUSTODY_LIQUIDITY = 100_000_000
USER_FUNDS = 10_000_000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_engine(clock=None, vault=None, **kwargs) -> LendingEngine:
    """Quiet, test-mode engine administered by ADMIN."""
    kwargs.setdefault("verbose", False)
    kwargs.setdefault("test_mode", True)
    return LendingEngine(
        "test",
        is_admin=single_admin(ADMIN),
        clock=clock if clock is not None else ManualBlockClock(),
        vault=vault if vault is not None else funded_vault(),
        **kwargs,
    )


def funded_vault(users=("alice", "bob")) -> Vault:
    vault = Vault(test_mode=True)
    vault.fund(PROTOCOL_CUSTODY, CUSTODY_LIQUIDITY)
    for user in users:
        vault.fund(user, USER_FUNDS)
    return vault


def register(engine: LendingEngine, user: str, score: int = None):
    """Initialize a user and optionally seed a score."""
    engine.initialize_score(user)
    if score is not None:
        engine.set_score(user, score)
    return engine.get_user_score(user)


def engine_state(engine: LendingEngine) -> dict:
    """Everything observable about an engine, for before/after comparisons."""
    return {
        "profiles": {p.user: p for p in engine.scores},
        "loans": {loan.loan_id: loan for loan in engine.loans},
        "active": engine.active_index.snapshot(),
        "total_locked": engine.total_locked,
        "next_loan_id": engine.next_loan_id,
        "balances": engine.vault.balances(),
        "log_length": len(engine.transaction_log),
    }


def locked_collateral(engine: LendingEngine) -> int:
    return sum(loan.collateral for loan in engine.loans if loan.status is LoanStatus.ACTIVE)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return ManualBlockClock()


@pytest.fixture
def vault():
    return funded_vault()


@pytest.fixture
def engine(clock, vault):
    """Fresh engine with funded custody, alice and bob."""
    return make_engine(clock=clock, vault=vault)


@pytest.fixture
def prime_engine(engine):
    """Engine where alice is registered with score 80 and bob with 50."""
    register(engine, "alice", 80)
    register(engine, "bob")
    return engine
