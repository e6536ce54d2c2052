"""
active_index.py - Active-Loan Index

Secondary index from user to the set of that user's ACTIVE loan ids. It is
a passive structure: the engine checks the ceiling before creating a loan,
and the index refuses an add beyond it as a second line.

Storage reserves index_capacity slots per user while acceptance is gated at
max_active_loans. The reserved slots are headroom for raising the ceiling.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Set

from .core import TooManyActiveLoans
from .parameters import DEFAULT_PARAMETERS


class ActiveLoanIndex:
    """
    Per-user unordered set of active loan identifiers.

    capacity is reserved headroom: it is validated against the ceiling but
    deliberately not enforced, since max_active_loans always binds first.
    """

    def __init__(
        self,
        max_active_loans: int = DEFAULT_PARAMETERS.max_active_loans,
        capacity: int = DEFAULT_PARAMETERS.index_capacity,
    ):
        if max_active_loans <= 0:
            raise ValueError(f"max_active_loans must be positive, got {max_active_loans}")
        if capacity < max_active_loans:
            raise ValueError(f"capacity ({capacity}) must be >= max_active_loans ({max_active_loans})")
        self.max_active_loans = max_active_loans
        self.capacity = capacity
        self._index: Dict[str, Set[int]] = {}

    def add(self, user: str, loan_id: int) -> None:
        """
        Record loan_id as active for user.

        Raises:
            TooManyActiveLoans: If the user already has max_active_loans entries
        """
        active = self._index.setdefault(user, set())
        if loan_id in active:
            return
        if len(active) >= self.max_active_loans:
            raise TooManyActiveLoans(
                f"{user} already has {len(active)} active loans (max {self.max_active_loans})"
            )
        active.add(loan_id)

    def remove(self, user: str, loan_id: int) -> None:
        """Drop loan_id from user's active set. No-op if absent."""
        active = self._index.get(user)
        if not active:
            return
        active.discard(loan_id)
        if not active:
            del self._index[user]

    def list_active(self, user: str) -> FrozenSet[int]:
        return frozenset(self._index.get(user, ()))

    def count(self, user: str) -> int:
        return len(self._index.get(user, ()))

    def users(self) -> FrozenSet[str]:
        return frozenset(self._index)

    def snapshot(self) -> Dict[str, FrozenSet[int]]:
        return {user: frozenset(ids) for user, ids in self._index.items()}

    def restore(self, snapshot: Dict[str, FrozenSet[int]]) -> None:
        self._index = {user: set(ids) for user, ids in snapshot.items()}
