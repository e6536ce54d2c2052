"""
microlend - Collateralized Micro-Lending Ledger Engine

Tracks per-user creditworthiness, originates and settles collateral-backed
loans, and prices future loans from repayment history. Every public
operation is serialized and all-or-nothing.

Usage:
    from microlend import (
        LendingEngine, ManualBlockClock, Vault, single_admin, PROTOCOL_CUSTODY,
    )

    clock = ManualBlockClock()
    vault = Vault()
    vault.fund(PROTOCOL_CUSTODY, 10_000_000)
    vault.fund("alice", 1_000_000)

    engine = LendingEngine("main", is_admin=single_admin("admin"),
                           clock=clock, vault=vault)
    engine.initialize_score("alice")

    # Once alice's score reaches 70:
    loan_id = engine.request_loan("alice", amount=100_000, collateral=65_000, duration=1000)
    engine.repay_loan("alice", loan_id, engine.required_payment(loan_id))
"""

# Core types
from .core import (
    CreditProfile,
    LoanRecord,
    LoanStatus,
    Move,
    RecordChange,
    Transaction,
    OperationType,
    LendingView,
    ErrorCode,
    LendingError,
    Unauthorized,
    InsufficientBalance,
    InvalidAmount,
    LoanNotFound,
    LoanDefaulted,
    InsufficientScore,
    TooManyActiveLoans,
    NotDue,
    InvalidDuration,
    InvalidLoanId,
    AlreadyInitialized,
    InvalidState,
    PROTOCOL_CUSTODY,
    ISSUER_ACCOUNT,
    MAX_AMOUNT,
    BPS,
)

# Parameters
from .parameters import LendingParameters, DEFAULT_PARAMETERS

# Pricing
from .pricing import (
    LoanQuote,
    interest_rate,
    collateral_ratio,
    required_collateral,
    interest_due,
    repayment_due,
    quote,
)

# Stores
from .scores import ScoreLedger
from .loans import LoanLedger
from .active_index import ActiveLoanIndex

# External primitives
from .vault import AssetTransfer, Vault
from .clock import BlockClock, ManualBlockClock

# Lifecycle
from .lifecycle import (
    AdminPredicate,
    single_admin,
    OriginationPlan,
    RepaymentPlan,
    DefaultPlan,
    check_request,
    check_repayment,
    check_default,
    check_loan_id,
    require_active_loan,
)

# Engine
from .engine import LendingEngine


__all__ = [
    # Core
    'CreditProfile', 'LoanRecord', 'LoanStatus', 'Move', 'RecordChange',
    'Transaction', 'OperationType', 'LendingView',
    'PROTOCOL_CUSTODY', 'ISSUER_ACCOUNT', 'MAX_AMOUNT', 'BPS',
    # Errors
    'ErrorCode', 'LendingError', 'Unauthorized', 'InsufficientBalance',
    'InvalidAmount', 'LoanNotFound', 'LoanDefaulted', 'InsufficientScore',
    'TooManyActiveLoans', 'NotDue', 'InvalidDuration', 'InvalidLoanId',
    'AlreadyInitialized', 'InvalidState',
    # Parameters
    'LendingParameters', 'DEFAULT_PARAMETERS',
    # Pricing
    'LoanQuote', 'interest_rate', 'collateral_ratio', 'required_collateral',
    'interest_due', 'repayment_due', 'quote',
    # Stores
    'ScoreLedger', 'LoanLedger', 'ActiveLoanIndex',
    # External primitives
    'AssetTransfer', 'Vault', 'BlockClock', 'ManualBlockClock',
    # Lifecycle
    'AdminPredicate', 'single_admin', 'OriginationPlan', 'RepaymentPlan',
    'DefaultPlan', 'check_request', 'check_repayment', 'check_default',
    'check_loan_id', 'require_active_loan',
    # Engine
    'LendingEngine',
]

__version__ = '1.0.0'
