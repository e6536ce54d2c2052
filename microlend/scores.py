"""
scores.py - Score Ledger

Mapping from user identity to CreditProfile. Profiles are created once by
initialize() and never deleted. Only the LendingEngine calls the mutating
methods; everyone else reads through get().
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterator, Optional

from .core import CreditProfile, AlreadyInitialized, Unauthorized, LendingError
from .parameters import LendingParameters, DEFAULT_PARAMETERS


class ScoreLedger:
    """
    Credit store keyed by user identity.

    Scores stay within [params.min_score, params.max_score]: repayment adds
    params.repayment_bonus capped at the maximum, default removes
    params.default_penalty floored at the minimum.
    """

    def __init__(
        self,
        params: LendingParameters = DEFAULT_PARAMETERS,
        test_mode: bool = False,
    ):
        self.params = params
        self._profiles: Dict[str, CreditProfile] = {}
        self._test_mode = test_mode

    def __contains__(self, user: str) -> bool:
        return user in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[CreditProfile]:
        for user in sorted(self._profiles):
            yield self._profiles[user]

    def get(self, user: str) -> Optional[CreditProfile]:
        """Return the user's profile, or None if the user never initialized."""
        return self._profiles.get(user)

    def _require(self, user: str) -> CreditProfile:
        profile = self._profiles.get(user)
        if profile is None:
            raise Unauthorized(f"No credit profile for {user}")
        return profile

    def initialize(self, user: str, height: int) -> CreditProfile:
        """
        Create a profile at the minimum score with zeroed counters.

        Raises:
            AlreadyInitialized: If the user already has a profile
        """
        if user in self._profiles:
            raise AlreadyInitialized(f"Credit profile for {user} already exists")
        profile = CreditProfile(user=user, score=self.params.min_score, last_update=height)
        self._profiles[user] = profile
        return profile

    def apply_repayment_outcome(
        self,
        user: str,
        borrowed_amount: int,
        repaid_amount: int,
        height: int,
    ) -> CreditProfile:
        """
        Record a full repayment: counters advance and the score rises.

        Args:
            user: Borrower
            borrowed_amount: Principal of the repaid loan
            repaid_amount: Amount actually paid
            height: Block height of the repayment

        Returns:
            The updated profile
        """
        if borrowed_amount < 0 or repaid_amount < 0:
            raise ValueError("amounts cannot be negative")
        profile = self._require(user)
        updated = replace(
            profile,
            score=min(self.params.max_score, profile.score + self.params.repayment_bonus),
            total_borrowed=profile.total_borrowed + borrowed_amount,
            total_repaid=profile.total_repaid + repaid_amount,
            loans_taken=profile.loans_taken + 1,
            loans_repaid=profile.loans_repaid + 1,
            last_update=height,
        )
        self._profiles[user] = updated
        return updated

    def apply_default_outcome(self, user: str, height: int) -> CreditProfile:
        """Record a default: the score drops, counters are untouched."""
        profile = self._require(user)
        updated = replace(
            profile,
            score=max(self.params.min_score, profile.score - self.params.default_penalty),
            last_update=height,
        )
        self._profiles[user] = updated
        return updated

    def set_score(self, user: str, score: int, height: int) -> CreditProfile:
        """
        Overwrite a user's score directly.

        WARNING: Bypasses the repayment/default rules and is only available
        in test mode.

        Raises:
            LendingError: If called when test_mode is False
            ValueError: If score is outside the valid range
        """
        if not self._test_mode:
            raise LendingError(
                "set_score() is disabled in production mode. "
                "Scores change only through repayment and default. "
                "Set test_mode=True when creating the engine for testing."
            )
        if not self.params.min_score <= score <= self.params.max_score:
            raise ValueError(
                f"score must lie in [{self.params.min_score}, {self.params.max_score}], got {score}"
            )
        updated = replace(self._require(user), score=score, last_update=height)
        self._profiles[user] = updated
        return updated

    def snapshot(self) -> Dict[str, CreditProfile]:
        # Profiles are frozen, a shallow copy is a full snapshot.
        return dict(self._profiles)

    def restore(self, snapshot: Dict[str, CreditProfile]) -> None:
        self._profiles = dict(snapshot)
