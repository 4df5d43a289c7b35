"""Exceptions raised while building or solving a puzzle."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .tile import TileValue


class PuzzleError(Exception):
    """Base class for every failure to progress or solve a puzzle."""


class InvalidMove(PuzzleError):
    """A tile was asked to take a value its current value does not allow."""

    def __init__(self, row: int, col: int, current: TileValue, requested: TileValue) -> None:
        super().__init__(
            f"Invalid move at ({row},{col}): cannot change {current.name} to {requested.name}"
        )
        self.row = row
        self.col = col
        self.current = current
        self.requested = requested


class InvalidBoard(PuzzleError):
    """The board reached a state no solution can satisfy."""


class StalledError(PuzzleError):
    """No strategy could make further progress on an incomplete board."""

    def __init__(self, name: str, level: int) -> None:
        super().__init__(f"{name}: no strategy made progress (difficulty {level})")
        self.level = level


class PuzzleFormatError(PuzzleError, ValueError):
    """Puzzle input (grid, sums or puzzle file) is malformed."""
