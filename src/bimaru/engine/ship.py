"""Ship placements derived from the current tile values of a board."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .tile import Tile, TileValue

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .board import Board


@dataclass(frozen=True)
class Coordinate:
    """Immutable board coordinate."""

    row: int
    col: int


class Lane(Enum):
    """A row or a column, the unit the puzzle's sums are given for."""

    ROW = "row"
    COL = "col"


class Orientation(Enum):
    """Allowed ship orientations; single-tile ships have none."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @property
    def step(self) -> tuple[int, int]:
        return (0, 1) if self is Orientation.HORIZONTAL else (1, 0)

    @property
    def lane(self) -> Lane:
        return Lane.ROW if self is Orientation.HORIZONTAL else Lane.COL


_END_VALUES = {
    Orientation.HORIZONTAL: (TileValue.SHIP_WEST, TileValue.SHIP_MID_HORIZONTAL, TileValue.SHIP_EAST),
    Orientation.VERTICAL: (TileValue.SHIP_NORTH, TileValue.SHIP_MID_VERTICAL, TileValue.SHIP_SOUTH),
}
_OPEN_VALUES = (TileValue.BLANK, TileValue.SHIP_UNIDENTIFIED)
_MID_VALUES = (TileValue.SHIP_MID_HORIZONTAL, TileValue.SHIP_MID_VERTICAL)

# New ship tiles a placement would add, per (lane, index).
LaneDemand = Counter[tuple[Lane, int]]


@dataclass(frozen=True)
class ShipKey:
    """Value identity of a placement, used for the blacklist and equality."""

    size: int
    start: Coordinate
    orientation: Orientation | None


@dataclass(eq=False)
class Ship:
    """A run of tiles that holds, or could hold, one whole ship."""

    board: Board = field(repr=False)
    start: Coordinate
    size: int
    orientation: Orientation | None = None
    _tiles: tuple[Tile, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError("Ship size must be at least 1.")
        if self.size == 1:
            self.orientation = None
        elif self.orientation is None:
            raise ValueError("Ships longer than one tile need an orientation.")
        d_row, d_col = self.orientation.step if self.orientation else (0, 0)
        tiles: list[Tile] = []
        for offset in range(self.size):
            tile = self.board.tile(self.start.row + d_row * offset, self.start.col + d_col * offset)
            if tile is None:
                raise ValueError("Ship extends past the edge of the board.")
            tiles.append(tile)
        self._tiles = tuple(tiles)

    @classmethod
    def span(cls, board: Board, start: Coordinate, end: Coordinate) -> Ship:
        """Build the ship running from its northern/western end to the other end."""
        if start == end:
            return cls(board, start, 1)
        if start.row == end.row and end.col > start.col:
            return cls(board, start, end.col - start.col + 1, Orientation.HORIZONTAL)
        if start.col == end.col and end.row > start.row:
            return cls(board, start, end.row - start.row + 1, Orientation.VERTICAL)
        raise ValueError(f"No straight ship runs from {start} to {end}.")

    @property
    def key(self) -> ShipKey:
        return ShipKey(self.size, self.start, self.orientation)

    @property
    def end(self) -> Coordinate:
        last = self._tiles[-1]
        return Coordinate(last.row, last.col)

    def tiles(self) -> list[Tile]:
        """Return the covered tiles, northern/western end first."""
        return list(self._tiles)

    def coordinates(self) -> list[Coordinate]:
        return [Coordinate(tile.row, tile.col) for tile in self._tiles]

    def covers(self, tile: Tile) -> bool:
        return any(own.row == tile.row and own.col == tile.col for own in self._tiles)

    def expected_values(self) -> tuple[TileValue, ...]:
        """Values the covered tiles hold once this ship is confirmed."""
        if self.orientation is None:
            return (TileValue.SHIP_SUB,)
        first, middle, last = _END_VALUES[self.orientation]
        return (first,) + (middle,) * (self.size - 2) + (last,)

    @property
    def is_confirmed(self) -> bool:
        return all(
            tile.value is expected for tile, expected in zip(self._tiles, self.expected_values())
        )

    def buffer_tiles(self) -> list[Tile]:
        """On-board tiles around the ship that must be water if it is real."""
        own = set(self.coordinates())
        end = self.end
        buffer: list[Tile] = []
        for row in range(self.start.row - 1, end.row + 2):
            for col in range(self.start.col - 1, end.col + 2):
                tile = self.board.tile(row, col)
                if tile is not None and Coordinate(row, col) not in own:
                    buffer.append(tile)
        return buffer

    def lane_demand(self) -> LaneDemand:
        """Count the tiles per lane that would newly become ship tiles."""
        demand: LaneDemand = Counter()
        for tile in self._tiles:
            if not tile.is_ship:
                demand[(Lane.ROW, tile.row)] += 1
                demand[(Lane.COL, tile.col)] += 1
        return demand

    def fits(self) -> bool:
        """Check the placement against current tile values and lane budgets."""
        for tile, expected in zip(self._tiles, self.expected_values()):
            value = tile.value
            if value in _OPEN_VALUES or value is expected:
                continue
            if value is TileValue.SHIP_MID and expected in _MID_VALUES:
                continue
            return False
        if any(tile.is_ship for tile in self.buffer_tiles()):
            return False
        return not self.board.exceeds_budget(self.lane_demand())

    def conflicts(self, other: Ship) -> bool:
        """Return True if this ship and another cannot both be part of the solution."""
        end, other_end = self.end, other.end
        if (
            self.start.row - 1 <= other_end.row
            and other.start.row <= end.row + 1
            and self.start.col - 1 <= other_end.col
            and other.start.col <= end.col + 1
        ):
            return True
        if self.size == other.size and self.board.missing_ships(self.size) < 2:
            return True
        return self.board.exceeds_budget(self.lane_demand() + other.lane_demand())

    def confirm(self) -> bool:
        """Write the ship into the board; all tiles change or none do."""
        changed = False
        with self.board.atomic():
            for tile, expected in zip(self._tiles, self.expected_values()):
                changed = tile.attempt_set_value(expected) or changed
        return changed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ship):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        lane = self.orientation.value if self.orientation else "single"
        state = "confirmed" if self.is_confirmed else "candidate"
        return f"Ship ({self.start.row},{self.start.col}) size={self.size} {lane} {state}"
