"""
Block Height Sources — the ledger clock collaborator.

The registry never tracks time itself. It asks a HeightSource for the
current block height once per mint and validates the induction height
against it.

Implementations:
    - HeightSource: abstract interface for ledger-backed sources
    - ManualHeightSource: in-memory, caller-driven (tests, scripts, replay)
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class HeightSource(ABC):
    """Abstract source of the current block height."""

    @abstractmethod
    def current_height(self) -> int:
        """Return the current block height."""
        ...


class ManualHeightSource(HeightSource):
    """
    In-memory block height, advanced explicitly by the caller.

    Block height is monotonic, so moving it backwards is refused.

    Example:
        heights = ManualHeightSource()
        registry = MembershipRegistry(heights=heights)
        heights.advance(10)
    """

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError(f"Block height must be >= 0, got {height}")
        self._height = height

    def current_height(self) -> int:
        return self._height

    def set(self, height: int) -> None:
        """Jump to an absolute height (never backwards)."""
        if height < self._height:
            raise ValueError(
                f"Block height cannot move backwards: {self._height} -> {height}"
            )
        self._height = height

    def advance(self, blocks: int = 1) -> int:
        """Advance by ``blocks`` and return the new height."""
        if blocks < 0:
            raise ValueError(f"Cannot advance by a negative block count: {blocks}")
        self._height += blocks
        return self._height

    def __repr__(self) -> str:
        return f"ManualHeightSource(height={self._height})"
