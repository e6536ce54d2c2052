"""
Example: A borrower's journey through the lending engine.

This example walks one borrower through registration, a rejected request,
a repaid loan and a defaulted loan, printing each transaction receipt and
the resulting balances, score and locked collateral.

Scores only rise through repayments, and a new profile (score 50) cannot
borrow, so the demo seeds a starting score with test_mode enabled.
"""

from microlend import (
    LendingEngine, ManualBlockClock, Vault, single_admin,
    PROTOCOL_CUSTODY, LendingError,
)


def show(engine, user):
    profile = engine.get_user_score(user)
    print()
    print(f"{user} balance: {engine.get_balance(user):,}")
    print(f"Custody balance: {engine.get_balance(PROTOCOL_CUSTODY):,}")
    print(f"{user} score: {profile.score}  "
          f"(taken {profile.loans_taken}, repaid {profile.loans_repaid})")
    print(f"Total locked collateral: {engine.total_locked:,}")
    print()


def main():
    print("=" * 80)
    print("MICRO-LENDING - Borrower Journey Example")
    print("=" * 80)
    print()

    clock = ManualBlockClock()
    vault = Vault()
    vault.fund(PROTOCOL_CUSTODY, 100_000_000)
    vault.fund("alice", 10_000_000)

    engine = LendingEngine(
        "demo",
        is_admin=single_admin("admin"),
        clock=clock,
        vault=vault,
        verbose=True,
        test_mode=True,
    )

    print("Example 1: Registration")
    print("-" * 80)
    print("alice registers and starts at the minimum score of 50.")
    print()
    engine.initialize_score("alice")

    try:
        engine.request_loan("alice", 1_000_000, 1_000_000, 144)
    except LendingError as e:
        print(f"Request refused: {e}")
    show(engine, "alice")

    print("Example 2: Pricing at score 80")
    print("-" * 80)
    engine.set_score("alice", 80)
    q = engine.quote_loan("alice", 1_000_000)
    print(f"Rate: {q.interest_rate / 100:.2f}%  Collateral: {q.required_collateral:,}  "
          f"Due at repayment: {q.repayment_due:,}")
    print()

    print("Example 3: Borrow and repay")
    print("-" * 80)
    loan_id = engine.request_loan("alice", 1_000_000, q.required_collateral, 144)
    show(engine, "alice")
    clock.advance(100)
    engine.repay_loan("alice", loan_id, engine.required_payment(loan_id))
    show(engine, "alice")

    print("Example 4: Default")
    print("-" * 80)
    q = engine.quote_loan("alice", 1_000_000)
    loan_id = engine.request_loan("alice", 1_000_000, q.required_collateral, 50)
    due_height = engine.get_loan(loan_id).due_height

    clock.advance_to(due_height)
    try:
        engine.mark_loan_defaulted("admin", loan_id)
    except LendingError as e:
        print(f"Default refused at height {clock.current_height}: {e}")

    clock.advance()
    engine.mark_loan_defaulted("admin", loan_id)
    show(engine, "alice")

    print("Invariant check")
    print("-" * 80)
    result = engine.verify_invariants()
    print(f"Valid: {result['valid']}  Discrepancies: {result['discrepancies']}")
    print(f"Transactions logged: {len(engine.transaction_log)}")


if __name__ == "__main__":
    main()
