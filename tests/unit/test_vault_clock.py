"""
test_vault_clock.py - Unit tests for the external primitives

Tests:
- Vault: funding via the issuer, ordered batch validation, atomic apply
- ManualBlockClock: forward-only movement
"""

import pytest

from microlend import (
    Vault, ManualBlockClock, Move, AssetTransfer, BlockClock,
    LendingError, ISSUER_ACCOUNT, PROTOCOL_CUSTODY,
)


class TestVault:

    def test_fund_issues_from_issuer(self):
        vault = Vault()
        vault.fund("alice", 1_000)
        assert vault.get_balance("alice") == 1_000
        assert vault.get_balance(ISSUER_ACCOUNT) == -1_000
        assert vault.total_supply() == 0

    def test_unknown_account_has_zero_balance(self):
        assert Vault().get_balance("nobody") == 0

    def test_validate_rejects_overdraft(self):
        vault = Vault()
        vault.fund("alice", 100)
        valid, reason = vault.validate([Move(101, "alice", "bob", "x")])
        assert not valid
        assert "alice" in reason

    def test_validate_routes_through_account(self):
        # Custody starts empty but receives collateral before disbursing.
        vault = Vault()
        vault.fund("alice", 600)
        moves = [
            Move(600, "alice", PROTOCOL_CUSTODY, "collateral_lock"),
            Move(500, PROTOCOL_CUSTODY, "alice", "principal_disbursement"),
        ]
        assert vault.validate(moves) == (True, "")

    def test_validate_is_ordered(self):
        # The disbursement arrives too late to fund the collateral.
        vault = Vault()
        vault.fund(PROTOCOL_CUSTODY, 1_000)
        moves = [
            Move(600, "carol", PROTOCOL_CUSTODY, "collateral_lock"),
            Move(1_000, PROTOCOL_CUSTODY, "carol", "principal_disbursement"),
        ]
        assert vault.validate(moves) == (False, "carol: -600 < 0")

    def test_apply_is_all_or_nothing(self):
        vault = Vault()
        vault.fund("alice", 100)
        with pytest.raises(LendingError, match="Vault rejected"):
            vault.apply([
                Move(50, "alice", "bob", "ok"),
                Move(80, "alice", "carol", "too_much"),
            ])
        assert vault.get_balance("alice") == 100
        assert vault.get_balance("bob") == 0

    def test_set_balance_requires_test_mode(self):
        with pytest.raises(LendingError, match="disabled in production mode"):
            Vault().set_balance("alice", 5)
        vault = Vault(test_mode=True)
        vault.set_balance("alice", 5)
        assert vault.get_balance("alice") == 5

    def test_snapshot_restore(self):
        vault = Vault()
        vault.fund("alice", 100)
        snap = vault.snapshot()
        vault.fund("alice", 50)
        vault.restore(snap)
        assert vault.get_balance("alice") == 100

    def test_satisfies_protocol(self):
        assert isinstance(Vault(), AssetTransfer)


class TestManualBlockClock:

    def test_starts_at_initial_height(self):
        assert ManualBlockClock().current_height == 0
        assert ManualBlockClock(500).current_height == 500

    def test_advance(self):
        clock = ManualBlockClock()
        assert clock.advance() == 1
        assert clock.advance(10) == 11

    def test_advance_to(self):
        clock = ManualBlockClock(5)
        clock.advance_to(5)
        clock.advance_to(9)
        assert clock.current_height == 9

    def test_cannot_move_backwards(self):
        clock = ManualBlockClock(10)
        with pytest.raises(ValueError, match="backwards"):
            clock.advance_to(9)
        with pytest.raises(ValueError, match="backwards"):
            clock.advance(-1)

    def test_negative_initial_height_raises(self):
        with pytest.raises(ValueError):
            ManualBlockClock(-1)

    def test_satisfies_protocol(self):
        assert isinstance(ManualBlockClock(), BlockClock)
