"""
loans.py - Loan Ledger

Mapping from loan identifier to LoanRecord. The loan ledger owns the
authoritative status of each loan.

Identifiers are allocated from a counter that starts at 0; each creation
advances it by one and uses the new value, so the first loan is id 1.

Each loan leaves ACTIVE at most once. That is enforced by checking the
current status before every settlement, never by retrying.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from .core import (
    LoanRecord, LoanStatus,
    LoanNotFound, LoanDefaulted, InvalidState, NotDue,
)


class LoanLedger:
    """Loan store keyed by integer identifier."""

    def __init__(self):
        self._loans: Dict[int, LoanRecord] = {}
        self._next_loan_id: int = 0

    @property
    def next_loan_id(self) -> int:
        """Last allocated identifier (0 before any loan exists)."""
        return self._next_loan_id

    def __contains__(self, loan_id: int) -> bool:
        return loan_id in self._loans

    def __len__(self) -> int:
        return len(self._loans)

    def __iter__(self) -> Iterator[LoanRecord]:
        for loan_id in sorted(self._loans):
            yield self._loans[loan_id]

    def find(self, loan_id: int) -> Optional[LoanRecord]:
        """Return the loan, or None if absent."""
        return self._loans.get(loan_id)

    def get(self, loan_id: int) -> LoanRecord:
        """
        Return the loan.

        Raises:
            LoanNotFound: If no loan has this identifier
        """
        loan = self._loans.get(loan_id)
        if loan is None:
            raise LoanNotFound(f"Loan {loan_id} not found")
        return loan

    def active_loans(self) -> List[LoanRecord]:
        """All loans currently ACTIVE, in identifier order."""
        return [loan for loan in self if loan.is_active]

    def create(
        self,
        borrower: str,
        amount: int,
        collateral: int,
        due_height: int,
        interest_rate: int,
        height: int,
    ) -> int:
        """
        Allocate the next identifier and insert an ACTIVE record.

        Returns:
            The new loan identifier
        """
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        if collateral < 0:
            raise ValueError(f"collateral cannot be negative, got {collateral}")
        if due_height <= height:
            raise ValueError(f"due_height {due_height} must be after creation height {height}")
        loan_id = self._next_loan_id + 1
        self._loans[loan_id] = LoanRecord(
            loan_id=loan_id,
            borrower=borrower,
            amount=amount,
            collateral=collateral,
            due_height=due_height,
            interest_rate=interest_rate,
            created_height=height,
        )
        self._next_loan_id = loan_id
        return loan_id

    def _require_active(self, loan_id: int) -> LoanRecord:
        loan = self.get(loan_id)
        if loan.status is LoanStatus.DEFAULTED:
            raise LoanDefaulted(f"Loan {loan_id} has already defaulted")
        if loan.status is not LoanStatus.ACTIVE:
            raise InvalidState(f"Loan {loan_id} is {loan.status.value}, expected active")
        return loan

    def settle_repaid(self, loan_id: int, repaid_amount: int, height: int) -> LoanRecord:
        """
        Transition an ACTIVE loan to REPAID.

        Raises:
            LoanNotFound: Unknown identifier
            LoanDefaulted: The loan has defaulted
            InvalidState: The loan is already repaid
        """
        loan = self._require_active(loan_id)
        settled = replace(
            loan,
            status=LoanStatus.REPAID,
            repaid_amount=repaid_amount,
            settled_height=height,
        )
        self._loans[loan_id] = settled
        return settled

    def settle_defaulted(self, loan_id: int, height: int) -> LoanRecord:
        """
        Transition an ACTIVE loan past its due height to DEFAULTED.

        Raises:
            LoanNotFound: Unknown identifier
            LoanDefaulted: The loan has already defaulted
            InvalidState: The loan is repaid
            NotDue: height has not passed due_height
        """
        loan = self._require_active(loan_id)
        if height <= loan.due_height:
            raise NotDue(f"Loan {loan_id} is due after height {loan.due_height}, now {height}")
        settled = replace(loan, status=LoanStatus.DEFAULTED, settled_height=height)
        self._loans[loan_id] = settled
        return settled

    def snapshot(self):
        return dict(self._loans), self._next_loan_id

    def restore(self, snapshot) -> None:
        loans, next_loan_id = snapshot
        self._loans = dict(loans)
        self._next_loan_id = next_loan_id
