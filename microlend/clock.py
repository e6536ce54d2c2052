"""
clock.py - Block-Height Clock

Due dates and profile timestamps are block heights read from an external,
monotonic clock. ManualBlockClock is the in-process implementation used by
simulations and tests.
"""

from __future__ import annotations
from typing import Protocol, runtime_checkable


@runtime_checkable
class BlockClock(Protocol):
    @property
    def current_height(self) -> int:
        """Return the current block height."""
        ...


class ManualBlockClock:
    """A block clock advanced explicitly. Height never moves backwards."""

    def __init__(self, initial_height: int = 0):
        if initial_height < 0:
            raise ValueError(f"initial_height cannot be negative, got {initial_height}")
        self._height = initial_height

    @property
    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Mine `blocks` blocks and return the new height."""
        if blocks < 0:
            raise ValueError(f"Cannot move height backwards by {blocks} blocks")
        self._height += blocks
        return self._height

    def advance_to(self, height: int) -> None:
        """
        Move the clock to an absolute height.

        Raises:
            ValueError: If height is below the current height
        """
        if height < self._height:
            raise ValueError(f"Cannot move height backwards: {height} < {self._height}")
        self._height = height
