"""
vault.py - Asset Custody

The engine consumes an asset-transfer primitive through the AssetTransfer
protocol. Vault is the in-memory implementation: a single-asset balance
book that validates a batch of moves before applying any of them.

ISSUER_ACCOUNT is exempt from balance validation and is used to fund
accounts (issuance). Every other account must stay at or above zero.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Iterable, List, Protocol, Tuple, runtime_checkable

from .core import Move, ISSUER_ACCOUNT, LendingError


@runtime_checkable
class AssetTransfer(Protocol):
    """Atomic batch transfer of the lending asset between accounts."""

    def get_balance(self, account: str) -> int:
        ...

    def validate(self, moves: Iterable[Move]) -> Tuple[bool, str]:
        """Return (True, "") if every move can be applied together."""
        ...

    def apply(self, moves: Iterable[Move]) -> None:
        """Apply moves that passed validate()."""
        ...


class Vault:
    """
    In-memory single-asset balance book.

    Example:
        vault = Vault()
        vault.fund("protocol", 10_000_000)
        vault.fund("alice", 1_000_000)
        ok, reason = vault.validate([Move(600_000, "alice", "protocol", "collateral_lock")])
    """

    def __init__(self, test_mode: bool = False):
        self._balances: Dict[str, int] = defaultdict(int)
        self._test_mode = test_mode

    def get_balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def balances(self) -> Dict[str, int]:
        """All non-zero balances."""
        return {a: b for a, b in self._balances.items() if b != 0}

    def total_supply(self) -> int:
        """Sum over all accounts, including the issuer. Always zero."""
        return sum(self._balances[a] for a in sorted(self._balances))

    def validate(self, moves: Iterable[Move]) -> Tuple[bool, str]:
        """
        Check that applying the moves in order keeps every non-issuer
        account >= 0 after each move.

        A batch may route funds through an account (collateral reaching
        custody before the disbursement leaves it), but no source can spend
        what it has not yet received.
        """
        proposed: Dict[str, int] = {}
        for move in moves:
            balance = proposed.get(move.source, self._balances.get(move.source, 0))
            balance -= move.quantity
            if balance < 0 and move.source != ISSUER_ACCOUNT:
                return False, f"{move.source}: {balance} < 0"
            proposed[move.source] = balance
            proposed[move.dest] = proposed.get(move.dest, self._balances.get(move.dest, 0)) + move.quantity
        return True, ""

    def apply(self, moves: Iterable[Move]) -> None:
        moves = list(moves)
        valid, reason = self.validate(moves)
        if not valid:
            raise LendingError(f"Vault rejected moves: {reason}")
        for move in moves:
            self._balances[move.source] -= move.quantity
            self._balances[move.dest] += move.quantity

    def fund(self, account: str, amount: int) -> Move:
        """Issue amount to account from ISSUER_ACCOUNT."""
        move = Move(amount, ISSUER_ACCOUNT, account, "funding")
        self.apply([move])
        return move

    def set_balance(self, account: str, amount: int) -> None:
        """
        Set an account balance directly.

        WARNING: Bypasses double-entry bookkeeping and is only available in
        test mode. Use fund() otherwise.
        """
        if not self._test_mode:
            raise LendingError(
                "set_balance() is disabled in production mode. "
                "Use fund() to issue balances. "
                "Set test_mode=True when creating Vault for testing."
            )
        self._balances[account] = amount

    def snapshot(self) -> Dict[str, int]:
        return dict(self._balances)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self._balances = defaultdict(int, snapshot)
