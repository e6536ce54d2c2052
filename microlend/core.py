"""
Core types and pure helpers for the micro-lending ledger engine.

This module provides the foundational data structures and protocols:
1. Protocols: LendingView for read-only access to lending state
2. Immutable records: CreditProfile, LoanRecord, Move, RecordChange, Transaction
3. Exceptions: LendingError and the stable numeric error codes
4. Enums: LoanStatus, OperationType

Records are frozen. Stores replace records instead of mutating them, so any
record handed out by a read-only method is safe to keep.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import (
    Any, Dict, FrozenSet, Optional, Protocol, Tuple, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Account that receives collateral and repayments and disburses principal.
PROTOCOL_CUSTODY = "protocol"

# Reserved account for funding. Exempt from balance validation, like the
# system wallet of a double-entry ledger.
ISSUER_ACCOUNT = "issuer"

# Largest transferable amount (unsigned 128-bit).
MAX_AMOUNT = 2 ** 128 - 1

# Basis points in 100%.
BPS = 10_000


# ============================================================================
# ERROR CODES AND EXCEPTIONS
# ============================================================================

class ErrorCode(IntEnum):
    """Stable numeric error codes surfaced to callers."""
    UNAUTHORIZED = 100
    INSUFFICIENT_BALANCE = 101
    INVALID_AMOUNT = 102
    LOAN_NOT_FOUND = 103
    LOAN_DEFAULTED = 104
    INSUFFICIENT_SCORE = 105
    ACTIVE_LOAN = 106
    NOT_DUE = 107
    INVALID_DURATION = 108
    INVALID_LOAN_ID = 109
    ALREADY_INITIALIZED = 110
    INVALID_STATE = 111


class LendingError(Exception):
    """Base exception for all lending errors. Subclasses carry a stable code."""
    code: ErrorCode = None

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.code.name} {int(self.code)}] {message}" if self.code else message


class Unauthorized(LendingError):
    """Caller is not registered, not the borrower, or not an administrator."""
    code = ErrorCode.UNAUTHORIZED


class InsufficientBalance(LendingError):
    """Collateral, payment, or account balance does not cover what is required."""
    code = ErrorCode.INSUFFICIENT_BALANCE


class InvalidAmount(LendingError):
    """Principal is not a positive integer within MAX_AMOUNT."""
    code = ErrorCode.INVALID_AMOUNT


class LoanNotFound(LendingError):
    """No loan exists under the given identifier."""
    code = ErrorCode.LOAN_NOT_FOUND


class LoanDefaulted(LendingError):
    """The loan has already been marked defaulted."""
    code = ErrorCode.LOAN_DEFAULTED


class InsufficientScore(LendingError):
    """Credit score is below the borrowing threshold."""
    code = ErrorCode.INSUFFICIENT_SCORE


class TooManyActiveLoans(LendingError):
    """The user already holds the maximum number of active loans."""
    code = ErrorCode.ACTIVE_LOAN


class NotDue(LendingError):
    """The loan's due height has not passed yet."""
    code = ErrorCode.NOT_DUE


class InvalidDuration(LendingError):
    """Loan duration is outside (0, max_duration]."""
    code = ErrorCode.INVALID_DURATION


class InvalidLoanId(LendingError):
    """Loan identifier is not a non-negative integer."""
    code = ErrorCode.INVALID_LOAN_ID


class AlreadyInitialized(LendingError):
    """A credit profile already exists for the user."""
    code = ErrorCode.ALREADY_INITIALIZED


class InvalidState(LendingError):
    """The loan is not in a state that allows the requested transition."""
    code = ErrorCode.INVALID_STATE


# ============================================================================
# ENUMS
# ============================================================================

class LoanStatus(str, Enum):
    """
    Status of a loan record.

    A single tri-state replaces an is_active/is_defaulted flag pair, so an
    active-and-defaulted loan cannot be represented.
    """
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"

    @property
    def is_terminal(self) -> bool:
        return self is not LoanStatus.ACTIVE


class OperationType(Enum):
    """Public operation that produced a transaction log entry."""
    INITIALIZE_SCORE = "initialize_score"
    REQUEST_LOAN = "request_loan"
    REPAY_LOAN = "repay_loan"
    MARK_DEFAULTED = "mark_defaulted"


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CreditProfile:
    """
    Per-user credit score and lifetime borrowing statistics.

    Attributes:
        user: Identity the profile belongs to.
        score: Credit score, always within [min_score, max_score].
        total_borrowed: Cumulative principal of settled-by-repayment loans.
        total_repaid: Cumulative amount repaid.
        loans_taken: Count of loans counted towards the profile.
        loans_repaid: Count of loans repaid.
        last_update: Block height of the last change.
    """
    user: str
    score: int
    total_borrowed: int = 0
    total_repaid: int = 0
    loans_taken: int = 0
    loans_repaid: int = 0
    last_update: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class LoanRecord:
    """
    Terms and status of a single origination.

    Everything except status, repaid_amount and settled_height is fixed at
    creation. interest_rate is in basis points.
    """
    loan_id: int
    borrower: str
    amount: int
    collateral: int
    due_height: int
    interest_rate: int
    status: LoanStatus = LoanStatus.ACTIVE
    repaid_amount: int = 0
    created_height: int = 0
    settled_height: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status is LoanStatus.ACTIVE

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of the lending asset between two accounts.

    Attributes:
        quantity: Positive integer amount.
        source: Account debited.
        dest: Account credited.
        reason: Short tag describing the transfer (e.g. "collateral_lock").
    """
    quantity: int
    source: str
    dest: str
    reason: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.reason or not self.reason.strip():
            raise ValueError("Move reason cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity}: {self.source}→{self.dest} [{self.reason}])"


@dataclass(frozen=True, slots=True)
class RecordChange:
    """
    Before/after snapshot of one keyed record or counter.

    Attributes:
        store: Name of the store ("scores", "loans", "active_index", "counters").
        key: Key within the store.
        old_state: State before the change (None when created).
        new_state: State after the change.
    """
    store: str
    key: Any
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Return {field: (old, new)} for fields that differ."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        if not isinstance(self.old_state, dict) and not isinstance(self.new_state, dict):
            if self.old_state != self.new_state:
                return {"value": (self.old_state, self.new_state)}
            return {}
        changes = {}
        for key in sorted(set(old) | set(new)):
            if old.get(key) != new.get(key):
                changes[key] = (old.get(key), new.get(key))
        return changes


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An applied, immutable record of one successful public operation.

    Attributes:
        operation: Which public operation produced it.
        caller: Identity that invoked the operation.
        block_height: Clock height at execution.
        moves: Asset transfers applied.
        changes: Record changes applied, in order.
        exec_id: Unique execution identifier (engine + sequence + height).
        engine_name: Name of the engine that applied it.
        sequence_number: Monotonic sequence within the engine.
        loan_id: Loan the operation concerned, if any.
    """
    operation: OperationType
    caller: str
    block_height: int
    moves: Tuple[Move, ...]
    changes: Tuple[RecordChange, ...]
    exec_id: str
    engine_name: str
    sequence_number: int
    loan_id: Optional[int] = None
    accounts: FrozenSet[str] = field(default=None)

    def __post_init__(self):
        if self.accounts is None:
            touched = set()
            for m in self.moves:
                touched.add(m.source)
                touched.add(m.dest)
            object.__setattr__(self, 'accounts', frozenset(touched))

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   operation    : ' + self.operation.value)}│",
            f"│{pad('   caller       : ' + self.caller)}│",
            f"│{pad('   block_height : ' + str(self.block_height))}│",
            f"│{pad('   sequence     : ' + str(self.sequence_number))}│",
            f"│{pad('   loan_id      : ' + str(self.loan_id))}│",
            f"├{bar}┤",
            f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│",
        ]
        for i, move in enumerate(self.moves):
            lines.append(f"│{pad(f'   [{i}] {move.quantity}: {move.source} → {move.dest} ({move.reason})')}│")
        if self.changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Changes (' + str(len(self.changes)) + '):')}│")
            for rc in self.changes:
                lines.append(f"│{pad(f'   [{rc.store}:{rc.key}]')}│")
                for name, (old_val, new_val) in rc.changed_fields().items():
                    lines.append(f"│{pad(f'      {name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LendingView(Protocol):
    """
    Read-only interface to lending state.

    Precondition checks in lifecycle.py accept a LendingView, declaring that
    they cannot mutate anything. LendingEngine implements this protocol; for
    testing, FakeView provides a truly immutable implementation.
    """

    @property
    def current_height(self) -> int:
        """Return the current block height."""
        ...

    def get_user_score(self, user: str) -> Optional[CreditProfile]:
        """Return the user's credit profile, or None if not initialized."""
        ...

    def get_loan(self, loan_id: int) -> Optional[LoanRecord]:
        """Return the loan record, or None if absent."""
        ...

    def get_user_active_loans(self, user: str) -> FrozenSet[int]:
        """Return the ids of the user's active loans."""
        ...

    def get_balance(self, account: str) -> int:
        """Return the asset balance held by an account."""
        ...
