"""
fake_view.py - Test Helper for LendingView

Provides a minimal, immutable LendingView implementation for testing the
pure lifecycle checks without a full LendingEngine.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, Optional

from microlend import LendingView, CreditProfile, LoanRecord


class FakeView:
    """
    Minimal LendingView implementation for testing check functions.

    Example:
        view = FakeView(
            profiles={'alice': CreditProfile('alice', score=80)},
            loans={1: LoanRecord(1, 'alice', 1000, 600, 100, 600)},
            active={'alice': [1]},
            height=10,
        )
    """

    def __init__(
        self,
        profiles: Optional[Dict[str, CreditProfile]] = None,
        loans: Optional[Dict[int, LoanRecord]] = None,
        active: Optional[Dict[str, Iterable[int]]] = None,
        balances: Optional[Dict[str, int]] = None,
        height: int = 0,
    ):
        self._profiles = dict(profiles or {})
        self._loans = dict(loans or {})
        self._active = {u: frozenset(ids) for u, ids in (active or {}).items()}
        self._balances = dict(balances or {})
        self._height = height

    @property
    def current_height(self) -> int:
        return self._height

    def get_user_score(self, user: str) -> Optional[CreditProfile]:
        return self._profiles.get(user)

    def get_loan(self, loan_id: int) -> Optional[LoanRecord]:
        return self._loans.get(loan_id)

    def get_user_active_loans(self, user: str) -> FrozenSet[int]:
        return self._active.get(user, frozenset())

    def get_balance(self, account: str) -> int:
        return self._balances.get(account, 0)


