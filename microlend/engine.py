"""
engine.py - Lending Lifecycle Controller

LendingEngine is the central state manager of the lending protocol and the
only component that mutates the score ledger, the loan ledger, the
active-loan index, the counters, and (through the asset-transfer primitive)
custody balances.

Key responsibilities:
    - Implements LendingView for safe read-only access by the pure checks
    - Runs every public operation serialized under one engine-wide lock
    - Applies operations atomically: all checks first, then every mutation
      inside a snapshot/restore boundary, so a failed call leaves no trace
    - Records every applied operation in the transaction log
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Sequence
import threading

from .core import (
    CreditProfile, LoanRecord, LoanStatus, Move, RecordChange, Transaction,
    OperationType,
    LendingError, InsufficientBalance, InvalidAmount, Unauthorized,
    MAX_AMOUNT,
)
from .parameters import LendingParameters, DEFAULT_PARAMETERS
from .pricing import LoanQuote, quote, repayment_due
from .scores import ScoreLedger
from .loans import LoanLedger
from .active_index import ActiveLoanIndex
from .vault import AssetTransfer, Vault
from .clock import BlockClock, ManualBlockClock
from .lifecycle import (
    AdminPredicate, check_request, check_repayment, check_default, check_loan_id,
    _is_int,
)


class LendingEngine:
    """
    Collateralized micro-lending engine with full validation and audit trail.

    Implements the LendingView protocol, so the engine itself is passed to
    the pure checks in lifecycle.py.

    Design Principles:
        - Always validates: every precondition is checked before anything
          changes. The first failed check raises its LendingError.
        - Always logs: every applied operation is recorded in
          transaction_log with before/after record snapshots.

    Thread Safety:
        Public operations hold an engine-wide re-entrant lock from the first
        check to the last mutation, giving a single linear history.

    Example:
        clock = ManualBlockClock()
        vault = Vault()
        vault.fund(PROTOCOL_CUSTODY, 10_000_000)
        vault.fund("alice", 1_000_000)
        engine = LendingEngine("main", is_admin=single_admin("admin"),
                               clock=clock, vault=vault)
        engine.initialize_score("alice")
    """

    def __init__(
        self,
        name: str,
        is_admin: AdminPredicate,
        clock: Optional[BlockClock] = None,
        vault: Optional[AssetTransfer] = None,
        params: LendingParameters = DEFAULT_PARAMETERS,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create an engine.

        Args:
            name: Engine identifier (used in execution ids)
            is_admin: Predicate authorizing mark_loan_defaulted callers
            clock: Block-height clock (default: ManualBlockClock at height 0)
            vault: Asset-transfer primitive (default: empty Vault)
            params: Protocol parameters, fixed for the engine's life
            verbose: Print a receipt per applied operation (default: True)
            test_mode: Enable set_score() for seeding scores (default: False)
        """
        if not callable(is_admin):
            raise TypeError("is_admin must be a predicate taking the caller identity")
        self.name = name
        self.params = params
        self.clock = clock if clock is not None else ManualBlockClock()
        self.vault = vault if vault is not None else Vault(test_mode=test_mode)
        self.verbose = verbose
        self._is_admin = is_admin
        self._test_mode = test_mode

        self.scores = ScoreLedger(params, test_mode=test_mode)
        self.loans = LoanLedger()
        self.active_index = ActiveLoanIndex(params.max_active_loans, params.index_capacity)
        self._total_locked: int = 0

        self.transaction_log: List[Transaction] = []
        self._next_sequence: int = 0
        self._lock = threading.RLock()

    # ========================================================================
    # LendingView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_height(self) -> int:
        return self.clock.current_height

    def get_user_score(self, user: str) -> Optional[CreditProfile]:
        """Return the user's credit profile, or None if not initialized."""
        with self._lock:
            return self.scores.get(user)

    def get_loan(self, loan_id: int) -> Optional[LoanRecord]:
        """Return the loan record, or None if absent or not a well-formed id."""
        if not _is_int(loan_id):
            return None
        with self._lock:
            return self.loans.find(loan_id)

    def get_user_active_loans(self, user: str) -> FrozenSet[int]:
        with self._lock:
            return self.active_index.list_active(user)

    def get_balance(self, account: str) -> int:
        return self.vault.get_balance(account)

    @property
    def total_locked(self) -> int:
        """Sum of collateral over ACTIVE loans."""
        return self._total_locked

    @property
    def next_loan_id(self) -> int:
        """Last allocated loan identifier (0 before the first loan)."""
        return self.loans.next_loan_id

    def quote_loan(self, user: str, amount: int) -> LoanQuote:
        """
        Price a principal for a registered user without changing anything.

        Raises:
            Unauthorized: User has no credit profile
            InvalidAmount: amount is not a positive integer within MAX_AMOUNT
        """
        with self._lock:
            profile = self.scores.get(user)
            if profile is None:
                raise Unauthorized(f"{user} has no credit profile")
            if isinstance(amount, bool) or not isinstance(amount, int) or not 0 < amount <= MAX_AMOUNT:
                raise InvalidAmount(f"Invalid loan amount {amount!r}")
            return quote(amount, profile.score, self.params)

    def required_payment(self, loan_id: int) -> int:
        """Principal plus flat interest owed on a loan."""
        with self._lock:
            check_loan_id(loan_id)
            loan = self.loans.get(loan_id)
            return repayment_due(loan.amount, loan.interest_rate)

    # ========================================================================
    # PUBLIC OPERATIONS (Mutating)
    # ========================================================================

    def initialize_score(self, caller: str) -> CreditProfile:
        """
        Register caller with a fresh credit profile.

        Raises:
            AlreadyInitialized: If caller already has a profile
        """
        with self._lock:
            height = self.current_height
            try:
                with self._atomic():
                    profile = self.scores.initialize(caller, height)
            except LendingError as e:
                self._reject(OperationType.INITIALIZE_SCORE, caller, e)
                raise
            self._log(
                OperationType.INITIALIZE_SCORE, caller, height, (),
                (RecordChange("scores", caller, None, profile.as_dict()),),
            )
            return profile

    def request_loan(self, caller: str, amount: int, collateral: int, duration: int) -> int:
        """
        Originate a loan: lock collateral, disburse principal.

        Args:
            caller: Borrower identity
            amount: Principal requested
            collateral: Collateral offered
            duration: Term in blocks

        Returns:
            The new loan identifier

        Raises:
            Unauthorized, InsufficientScore, TooManyActiveLoans, InvalidAmount,
            InvalidDuration, InsufficientBalance (see lifecycle.check_request)
        """
        with self._lock:
            height = self.current_height
            try:
                plan = check_request(
                    self, caller, amount, collateral, duration, self.params, now=height
                )
                self._validate_moves(plan.moves)
                old_active = self.active_index.list_active(caller)
                old_locked = self._total_locked
                old_next_id = self.loans.next_loan_id
                with self._atomic():
                    loan_id = self.loans.create(
                        borrower=caller,
                        amount=plan.amount,
                        collateral=plan.collateral,
                        due_height=plan.due_height,
                        interest_rate=plan.interest_rate,
                        height=height,
                    )
                    self.active_index.add(caller, loan_id)
                    self._total_locked += plan.collateral
                    self.vault.apply(plan.moves)
            except LendingError as e:
                self._reject(OperationType.REQUEST_LOAN, caller, e)
                raise

            self._log(
                OperationType.REQUEST_LOAN, caller, height, plan.moves,
                (
                    RecordChange("loans", loan_id, None, self.loans.get(loan_id).as_dict()),
                    RecordChange("active_index", caller, sorted(old_active),
                                 sorted(self.active_index.list_active(caller))),
                    RecordChange("counters", "total_locked", old_locked, self._total_locked),
                    RecordChange("counters", "next_loan_id", old_next_id, self.loans.next_loan_id),
                ),
                loan_id=loan_id,
            )
            return loan_id

    def repay_loan(self, caller: str, loan_id: int, payment_amount: int) -> LoanRecord:
        """
        Settle a loan in full and release its collateral.

        Returns:
            The settled loan record

        Raises:
            InvalidLoanId, LoanNotFound, LoanDefaulted, InvalidState,
            Unauthorized, InsufficientBalance (see lifecycle.check_repayment)
        """
        with self._lock:
            height = self.current_height
            try:
                plan = check_repayment(self, caller, loan_id, payment_amount)
                self._validate_moves(plan.moves)
                loan = plan.loan
                old_profile = self.scores.get(caller)
                old_active = self.active_index.list_active(caller)
                old_locked = self._total_locked
                with self._atomic():
                    settled = self.loans.settle_repaid(loan_id, plan.payment_amount, height)
                    self.active_index.remove(caller, loan_id)
                    self._total_locked -= loan.collateral
                    profile = self.scores.apply_repayment_outcome(
                        caller, loan.amount, plan.payment_amount, height
                    )
                    self.vault.apply(plan.moves)
            except LendingError as e:
                self._reject(OperationType.REPAY_LOAN, caller, e)
                raise

            self._log(
                OperationType.REPAY_LOAN, caller, height, plan.moves,
                (
                    RecordChange("loans", loan_id, loan.as_dict(), settled.as_dict()),
                    RecordChange("active_index", caller, sorted(old_active),
                                 sorted(self.active_index.list_active(caller))),
                    RecordChange("counters", "total_locked", old_locked, self._total_locked),
                    RecordChange("scores", caller, old_profile.as_dict(), profile.as_dict()),
                ),
                loan_id=loan_id,
            )
            return settled

    def mark_loan_defaulted(self, caller: str, loan_id: int) -> LoanRecord:
        """
        Settle an overdue loan as defaulted. Administrator only.

        The collateral is forfeited: it stays in protocol custody and only
        stops counting towards total_locked. No asset moves.

        Raises:
            Unauthorized, InvalidLoanId, LoanNotFound, LoanDefaulted,
            InvalidState, NotDue (see lifecycle.check_default)
        """
        with self._lock:
            height = self.current_height
            try:
                plan = check_default(self, caller, loan_id, self._is_admin, now=height)
                loan = plan.loan
                borrower = loan.borrower
                old_profile = self.scores.get(borrower)
                old_active = self.active_index.list_active(borrower)
                old_locked = self._total_locked
                with self._atomic():
                    settled = self.loans.settle_defaulted(loan_id, height)
                    self.active_index.remove(borrower, loan_id)
                    self._total_locked -= loan.collateral
                    profile = self.scores.apply_default_outcome(borrower, height)
            except LendingError as e:
                self._reject(OperationType.MARK_DEFAULTED, caller, e)
                raise

            self._log(
                OperationType.MARK_DEFAULTED, caller, height, (),
                (
                    RecordChange("loans", loan_id, loan.as_dict(), settled.as_dict()),
                    RecordChange("active_index", borrower, sorted(old_active),
                                 sorted(self.active_index.list_active(borrower))),
                    RecordChange("counters", "total_locked", old_locked, self._total_locked),
                    RecordChange("scores", borrower, old_profile.as_dict(), profile.as_dict()),
                ),
                loan_id=loan_id,
            )
            return settled

    def set_score(self, user: str, score: int) -> CreditProfile:
        """Seed a user's score. Test mode only, see ScoreLedger.set_score()."""
        with self._lock:
            return self.scores.set_score(user, score, self.current_height)

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the global invariants over the current state.

        - total_locked equals the collateral sum of ACTIVE loans
        - every score lies within [min_score, max_score]
        - the active-loan index holds exactly the ACTIVE loans of each user
        - no user exceeds max_active_loans

        Returns:
            Dict with keys:
            - 'valid': bool - True if every invariant holds
            - 'total_locked': int - Current counter value
            - 'discrepancies': List[Dict] - One entry per violation

        Example:
            result = engine.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        with self._lock:
            discrepancies = []
            active = self.loans.active_loans()

            expected_locked = sum(loan.collateral for loan in active)
            if expected_locked != self._total_locked:
                discrepancies.append({
                    'invariant': 'total_locked',
                    'expected': expected_locked,
                    'actual': self._total_locked,
                })

            for profile in self.scores:
                if not self.params.min_score <= profile.score <= self.params.max_score:
                    discrepancies.append({
                        'invariant': 'score_range',
                        'user': profile.user,
                        'actual': profile.score,
                    })

            by_borrower: Dict[str, set] = {}
            for loan in active:
                by_borrower.setdefault(loan.borrower, set()).add(loan.loan_id)
            for user in sorted(set(by_borrower) | set(self.active_index.users())):
                expected_ids = by_borrower.get(user, set())
                indexed = set(self.active_index.list_active(user))
                if expected_ids != indexed:
                    discrepancies.append({
                        'invariant': 'active_index',
                        'user': user,
                        'expected': sorted(expected_ids),
                        'actual': sorted(indexed),
                    })
                if len(expected_ids) > self.params.max_active_loans:
                    discrepancies.append({
                        'invariant': 'max_active_loans',
                        'user': user,
                        'actual': len(expected_ids),
                    })

            return {
                'valid': len(discrepancies) == 0,
                'total_locked': self._total_locked,
                'discrepancies': discrepancies,
            }

    def loans_by_status(self, status: LoanStatus) -> List[LoanRecord]:
        with self._lock:
            return [loan for loan in self.loans if loan.status is status]

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _validate_moves(self, moves: Sequence[Move]) -> None:
        valid, reason = self.vault.validate(moves)
        if not valid:
            raise InsufficientBalance(f"Transfer rejected: {reason}")

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """
        Restore every store and counter if the block raises.

        The vault is applied last inside the block and validates before it
        mutates, so it never needs restoring.
        """
        scores = self.scores.snapshot()
        loans = self.loans.snapshot()
        index = self.active_index.snapshot()
        locked = self._total_locked
        try:
            yield
        except BaseException:
            self.scores.restore(scores)
            self.loans.restore(loans)
            self.active_index.restore(index)
            self._total_locked = locked
            raise

    def _generate_exec_id(self, sequence: int, height: int) -> str:
        """Format: exec:{engine_name}:{sequence:012d}:{block_height}"""
        return f"exec:{self.name}:{sequence:012d}:{height}"

    def _log(
        self,
        operation: OperationType,
        caller: str,
        height: int,
        moves: Sequence[Move],
        changes: Sequence[RecordChange],
        loan_id: Optional[int] = None,
    ) -> Transaction:
        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            operation=operation,
            caller=caller,
            block_height=height,
            moves=tuple(moves),
            changes=tuple(changes),
            exec_id=self._generate_exec_id(sequence, height),
            engine_name=self.name,
            sequence_number=sequence,
            loan_id=loan_id,
        )
        self.transaction_log.append(tx)
        if self.verbose:
            print(repr(tx))
            print(f"✓ APPLIED {operation.value}")
        return tx

    def _reject(self, operation: OperationType, caller: str, error: LendingError) -> None:
        if self.verbose:
            print(f"✗ REJECTED {operation.value} by {caller}: {error}")
