"""Tile values and the single-cell state machine."""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import TYPE_CHECKING

from .errors import InvalidMove, PuzzleFormatError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .board import Board


class TileValue(Enum):
    """Everything a cell can be known to hold, keyed by its puzzle-file symbol."""

    BLANK = "."
    WATER = "="
    SHIP_UNIDENTIFIED = "?"
    SHIP_SUB = "O"
    SHIP_MID = "+"
    SHIP_MID_HORIZONTAL = "-"
    SHIP_MID_VERTICAL = "|"
    SHIP_NORTH = "^"
    SHIP_SOUTH = "v"
    SHIP_EAST = ">"
    SHIP_WEST = "<"

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def code(self) -> int:
        """Compact integer used in the board's value array."""
        return _CODES[self]

    @property
    def is_ship(self) -> bool:
        return self is not TileValue.BLANK and self is not TileValue.WATER

    @property
    def is_unidentified(self) -> bool:
        return self is TileValue.SHIP_UNIDENTIFIED or self is TileValue.SHIP_MID

    @classmethod
    def from_symbol(cls, symbol: str) -> TileValue:
        try:
            return cls(symbol)
        except ValueError as exc:
            raise PuzzleFormatError(f"Invalid tile symbol: {symbol!r}") from exc

    @classmethod
    def from_code(cls, code: int) -> TileValue:
        return _BY_CODE[code]


_BY_CODE: tuple[TileValue, ...] = tuple(TileValue)
_CODES: dict[TileValue, int] = {value: index for index, value in enumerate(_BY_CODE)}

BLANK_CODE = _CODES[TileValue.BLANK]
WATER_CODE = _CODES[TileValue.WATER]
# Every code from here up is a ship kind.
FIRST_SHIP_CODE = _CODES[TileValue.SHIP_UNIDENTIFIED]
UNIDENTIFIED_CODES = (_CODES[TileValue.SHIP_UNIDENTIFIED], _CODES[TileValue.SHIP_MID])


class Direction(Enum):
    """Offsets to the eight neighbours of a cell as (row, col) deltas."""

    NORTH = (-1, 0)
    SOUTH = (1, 0)
    EAST = (0, 1)
    WEST = (0, -1)
    NORTHEAST = (-1, 1)
    NORTHWEST = (-1, -1)
    SOUTHEAST = (1, 1)
    SOUTHWEST = (1, -1)

    @property
    def d_row(self) -> int:
        return self.value[0]

    @property
    def d_col(self) -> int:
        return self.value[1]


ORTHOGONAL = (Direction.NORTH, Direction.SOUTH, Direction.EAST, Direction.WEST)
DIAGONALS = (Direction.NORTHEAST, Direction.NORTHWEST, Direction.SOUTHEAST, Direction.SOUTHWEST)

WATER_DIRECTIONS: dict[TileValue, tuple[Direction, ...]] = {
    TileValue.BLANK: (),
    TileValue.WATER: (),
    TileValue.SHIP_UNIDENTIFIED: DIAGONALS,
    TileValue.SHIP_MID: DIAGONALS,
    TileValue.SHIP_MID_HORIZONTAL: (Direction.NORTH, Direction.SOUTH) + DIAGONALS,
    TileValue.SHIP_MID_VERTICAL: (Direction.EAST, Direction.WEST) + DIAGONALS,
    TileValue.SHIP_SUB: ORTHOGONAL + DIAGONALS,
    TileValue.SHIP_NORTH: (Direction.NORTH, Direction.EAST, Direction.WEST) + DIAGONALS,
    TileValue.SHIP_SOUTH: (Direction.SOUTH, Direction.EAST, Direction.WEST) + DIAGONALS,
    TileValue.SHIP_EAST: (Direction.NORTH, Direction.SOUTH, Direction.EAST) + DIAGONALS,
    TileValue.SHIP_WEST: (Direction.NORTH, Direction.SOUTH, Direction.WEST) + DIAGONALS,
}

SHIP_DIRECTIONS: dict[TileValue, tuple[Direction, ...]] = {
    TileValue.SHIP_NORTH: (Direction.SOUTH,),
    TileValue.SHIP_SOUTH: (Direction.NORTH,),
    TileValue.SHIP_EAST: (Direction.WEST,),
    TileValue.SHIP_WEST: (Direction.EAST,),
    TileValue.SHIP_MID_HORIZONTAL: (Direction.EAST, Direction.WEST),
    TileValue.SHIP_MID_VERTICAL: (Direction.NORTH, Direction.SOUTH),
}

_MID_REFINEMENTS = (TileValue.SHIP_MID_HORIZONTAL, TileValue.SHIP_MID_VERTICAL)


def is_ship(tile: Tile | None) -> bool:
    """Off-grid positions never hold a ship."""
    return tile is not None and tile.is_ship


def is_water(*tiles: Tile | None) -> bool:
    """Return True if every tile is water; off-grid positions count as water."""
    return all(tile is None or tile.is_water for tile in tiles)


class Tile:
    """View of one cell of a board; the value itself lives in the board's array."""

    __slots__ = ("board", "row", "col")

    def __init__(self, board: Board, row: int, col: int) -> None:
        self.board = board
        self.row = row
        self.col = col

    @property
    def value(self) -> TileValue:
        return self.board.value_at(self.row, self.col)

    @property
    def is_ship(self) -> bool:
        return self.value.is_ship

    @property
    def is_water(self) -> bool:
        return self.value is TileValue.WATER

    @property
    def is_blank(self) -> bool:
        return self.value is TileValue.BLANK

    @property
    def is_unidentified(self) -> bool:
        return self.value.is_unidentified

    def neighbor(self, direction: Direction) -> Tile | None:
        """Return the adjacent tile in a direction, or None past the edge."""
        return self.board.tile(self.row + direction.d_row, self.col + direction.d_col)

    def orthogonal_neighbors(self) -> list[Tile | None]:
        return [self.neighbor(direction) for direction in ORTHOGONAL]

    def attempt_set_value(self, value: TileValue) -> bool:
        """Change the value and force every neighbour the new value implies.

        The cascade runs as a worklist until nothing more is implied. Either the
        whole cascade is applied or, on ``InvalidMove``, none of it is.
        Returns True if any tile on the board changed.
        """
        changed = False
        pending: deque[tuple[Tile, TileValue]] = deque([(self, value)])
        with self.board.atomic():
            while pending:
                tile, requested = pending.popleft()
                if not tile._accepts(requested):
                    continue
                tile.board._store_value(tile.row, tile.col, requested)
                changed = True
                for direction in WATER_DIRECTIONS[requested]:
                    neighbour = tile.neighbor(direction)
                    if neighbour is not None:
                        pending.append((neighbour, TileValue.WATER))
                for direction in SHIP_DIRECTIONS.get(requested, ()):
                    neighbour = tile.neighbor(direction)
                    if neighbour is not None and not neighbour.is_ship:
                        pending.append((neighbour, TileValue.SHIP_UNIDENTIFIED))
        return changed

    def _accepts(self, requested: TileValue) -> bool:
        """Validate a transition; True means overwrite, False means no-op."""
        current = self.value
        if current is TileValue.BLANK:
            return requested is not TileValue.BLANK
        if current is TileValue.WATER:
            valid = requested is TileValue.WATER
        elif current is TileValue.SHIP_UNIDENTIFIED:
            if requested.is_ship and requested is not TileValue.SHIP_UNIDENTIFIED:
                return True
            valid = requested is TileValue.SHIP_UNIDENTIFIED
        elif current is TileValue.SHIP_MID:
            if requested in _MID_REFINEMENTS:
                return True
            valid = requested is TileValue.SHIP_MID
        else:
            valid = requested is current or requested is TileValue.SHIP_UNIDENTIFIED
        if not valid:
            raise InvalidMove(self.row, self.col, current, requested)
        return False

    def __repr__(self) -> str:
        return f"Tile({self.row},{self.col} {self.value.symbol!r})"
