"""Puzzle board: tile values, lane sums, blacklist and candidate ships."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np
import numpy.typing as npt

from bimaru.telemetry import get_meter, get_tracer

from .errors import PuzzleFormatError
from .ship import Coordinate, Lane, LaneDemand, Orientation, Ship, ShipKey
from .tile import (
    BLANK_CODE,
    FIRST_SHIP_CODE,
    UNIDENTIFIED_CODES,
    WATER_CODE,
    Tile,
    TileValue,
    is_ship,
)

logger = logging.getLogger(__name__)
tracer = get_tracer("bimaru.engine.board")
meter = get_meter("bimaru.engine.board")

BLACKLIST_COUNTER = meter.create_counter(
    "bimaru_engine_blacklisted_ships",
    unit="1",
    description="Ship placements proven impossible",
)

_SINGLE_STARTS = (TileValue.BLANK, TileValue.SHIP_UNIDENTIFIED, TileValue.SHIP_SUB)

ValueArray = npt.NDArray[np.int8]


@dataclass(frozen=True)
class BoardSnapshot:
    """Copy of everything mutable on a board."""

    values: ValueArray
    blacklist: frozenset[ShipKey]


@dataclass(frozen=True)
class CandidateSet:
    """Confirmed and still-possible placements, grouped by ship size."""

    confirmed: dict[int, tuple[Ship, ...]]
    unconfirmed: dict[int, tuple[Ship, ...]]


class Board:
    """A square Battleship solitaire grid with its row and column targets."""

    def __init__(
        self,
        name: str,
        size: int,
        max_ship_size: int,
        row_sums: Sequence[int],
        col_sums: Sequence[int],
    ) -> None:
        if size < 1:
            raise PuzzleFormatError("Board size must be positive.")
        if not 1 <= max_ship_size <= size:
            raise PuzzleFormatError(f"Max ship size must be between 1 and {size}.")
        for label, sums in (("row", row_sums), ("column", col_sums)):
            if len(sums) != size:
                raise PuzzleFormatError(f"Expected {size} {label} sums, got {len(sums)}.")
            if any(not 0 <= value <= size for value in sums):
                raise PuzzleFormatError(f"{label.capitalize()} sums must lie between 0 and {size}.")

        self.name = name
        self.size = size
        self.max_ship_size = max_ship_size
        self.row_sums: tuple[int, ...] = tuple(row_sums)
        self.col_sums: tuple[int, ...] = tuple(col_sums)
        self.revision = 0
        self._values: ValueArray = np.full((size, size), BLANK_CODE, dtype=np.int8)
        self._tiles = [[Tile(self, row, col) for col in range(size)] for row in range(size)]
        self._blacklist: set[ShipKey] = set()
        self._candidates: tuple[int, CandidateSet] | None = None
        self._in_transaction = False

    @classmethod
    def from_grid(
        cls,
        name: str,
        size: int,
        max_ship_size: int,
        row_sums: Sequence[int],
        col_sums: Sequence[int],
        grid: Sequence[str] | None = None,
    ) -> Board:
        """Build a board and apply the given hints, one symbol per cell."""
        board = cls(name, size, max_ship_size, row_sums, col_sums)
        if grid is not None:
            board.apply_grid(grid)
        return board

    def apply_grid(self, grid: Sequence[str]) -> None:
        """Apply hint rows; whitespace inside a row is ignored."""
        rows = ["".join(line.split()) for line in grid]
        if len(rows) != self.size:
            raise PuzzleFormatError(f"Expected {self.size} grid rows, got {len(rows)}.")
        parsed: list[list[TileValue]] = []
        for index, line in enumerate(rows):
            if len(line) != self.size:
                raise PuzzleFormatError(
                    f"Grid row {index} has {len(line)} cells, expected {self.size}."
                )
            parsed.append([TileValue.from_symbol(symbol) for symbol in line])
        for row, values in enumerate(parsed):
            for col, value in enumerate(values):
                if value is not TileValue.BLANK:
                    self._tiles[row][col].attempt_set_value(value)

    # ----- tiles -----

    def tile(self, row: int, col: int) -> Tile | None:
        """Return the tile at a position, or None when it lies off the board."""
        if 0 <= row < self.size and 0 <= col < self.size:
            return self._tiles[row][col]
        return None

    def iter_tiles(self) -> Iterator[Tile]:
        """Yield every tile in row-major order."""
        for row in self._tiles:
            yield from row

    def tiles_with(self, value: TileValue) -> list[Tile]:
        rows, cols = np.nonzero(self._values == value.code)
        return [self._tiles[row][col] for row, col in zip(rows.tolist(), cols.tolist())]

    def value_at(self, row: int, col: int) -> TileValue:
        return TileValue.from_code(int(self._values[row, col]))

    def _store_value(self, row: int, col: int, value: TileValue) -> None:
        previous = self.value_at(row, col)
        self._values[row, col] = value.code
        self.revision += 1
        logger.debug(
            "tile_changed",
            extra={
                "board": self.name,
                "row": row,
                "col": col,
                "from": previous.symbol,
                "to": value.symbol,
            },
        )

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Undo every tile change made inside the block if it raises."""
        if self._in_transaction:
            yield
            return
        snapshot = self._values.copy()
        self._in_transaction = True
        try:
            yield
        except Exception:
            self._values[...] = snapshot
            # Cached candidates may describe the discarded state.
            self.revision += 1
            raise
        finally:
            self._in_transaction = False

    # ----- lanes -----

    def lanes(self) -> Iterator[tuple[Lane, int]]:
        """Yield every lane, column before row for each index."""
        for idx in range(self.size):
            yield Lane.COL, idx
            yield Lane.ROW, idx

    def lane_tiles(self, lane: Lane, idx: int) -> list[Tile]:
        if lane is Lane.ROW:
            return list(self._tiles[idx])
        return [self._tiles[row][idx] for row in range(self.size)]

    def _lane_values(self, lane: Lane, idx: int) -> ValueArray:
        return self._values[idx, :] if lane is Lane.ROW else self._values[:, idx]

    def target(self, lane: Lane, idx: int) -> int:
        """Number of ship tiles the lane must hold in the solution."""
        return self.row_sums[idx] if lane is Lane.ROW else self.col_sums[idx]

    def ship_count(self, lane: Lane, idx: int) -> int:
        return int(np.count_nonzero(self._lane_values(lane, idx) >= FIRST_SHIP_CODE))

    def water_count(self, lane: Lane, idx: int) -> int:
        return int(np.count_nonzero(self._lane_values(lane, idx) == WATER_CODE))

    def blank_count(self, lane: Lane, idx: int) -> int:
        return int(np.count_nonzero(self._lane_values(lane, idx) == BLANK_CODE))

    def has_blanks(self, lane: Lane, idx: int) -> bool:
        return self.blank_count(lane, idx) > 0

    def has_unidentified(self, lane: Lane, idx: int) -> bool:
        return bool(np.isin(self._lane_values(lane, idx), UNIDENTIFIED_CODES).any())

    def remaining(self, lane: Lane, idx: int) -> int:
        """Ship tiles the lane can still take."""
        return self.target(lane, idx) - self.ship_count(lane, idx)

    def exceeds_budget(self, demand: LaneDemand) -> bool:
        """Return True if adding the demanded ship tiles would overflow any lane."""
        return any(count > self.remaining(lane, idx) for (lane, idx), count in demand.items())

    # ----- fleet and candidates -----

    def required_ships(self, size: int) -> int:
        """The fleet holds one ship of the largest size, two of the next, and so on."""
        return self.max_ship_size - size + 1

    def missing_ships(self, size: int) -> int:
        return self.required_ships(size) - len(self.candidates(size, confirmed=True))

    def candidates(self, size: int, confirmed: bool) -> list[Ship]:
        """Return confirmed ships, or possible placements, of one size."""
        found = self._candidate_set()
        return list(found.confirmed[size] if confirmed else found.unconfirmed[size])

    def all_candidates(self, confirmed: bool) -> list[Ship]:
        found = self._candidate_set()
        groups = found.confirmed if confirmed else found.unconfirmed
        return [ship for size in sorted(groups) for ship in groups[size]]

    def _candidate_set(self) -> CandidateSet:
        if self._candidates is None or self._candidates[0] != self.revision:
            self._candidates = (self.revision, self._generate_candidates())
        return self._candidates[1]

    def _generate_candidates(self) -> CandidateSet:
        with tracer.start_as_current_span("board.generate_candidates") as span:
            span.set_attribute("board.name", self.name)
            span.set_attribute("board.revision", self.revision)
            sizes = range(1, self.max_ship_size + 1)
            confirmed: dict[int, list[Ship]] = {size: [] for size in sizes}
            unconfirmed: dict[int, list[Ship]] = {size: [] for size in sizes}
            for ship in self._placements():
                if ship.key in self._blacklist or not ship.fits():
                    continue
                if ship.is_confirmed:
                    confirmed[ship.size].append(ship)
                else:
                    unconfirmed[ship.size].append(ship)
            for size in sizes:
                # Every ship of this size is already on the board.
                if len(confirmed[size]) >= self.required_ships(size):
                    unconfirmed[size] = []
            span.set_attribute("candidates.unconfirmed", sum(map(len, unconfirmed.values())))
            return CandidateSet(
                confirmed={size: tuple(ships) for size, ships in confirmed.items()},
                unconfirmed={size: tuple(ships) for size, ships in unconfirmed.items()},
            )

    def _placements(self) -> Iterator[Ship]:
        for tile in self.iter_tiles():
            if tile.is_water:
                continue
            for orientation in Orientation:
                yield from self._runs_from(tile, orientation)
            if tile.value in _SINGLE_STARTS and not any(
                is_ship(neighbour) for neighbour in tile.orthogonal_neighbors()
            ):
                yield Ship(self, Coordinate(tile.row, tile.col), 1)

    def _runs_from(self, start: Tile, orientation: Orientation) -> Iterator[Ship]:
        """Grow runs of length 2..max from a tile that does not continue a ship."""
        d_row, d_col = orientation.step
        if is_ship(self.tile(start.row - d_row, start.col - d_col)):
            return
        lane_idx = start.row if orientation is Orientation.HORIZONTAL else start.col
        budget = self.remaining(orientation.lane, lane_idx)
        new_tiles = 0
        for length in range(1, self.max_ship_size + 1):
            current = self.tile(start.row + d_row * (length - 1), start.col + d_col * (length - 1))
            if current is None or current.is_water:
                return
            if not current.is_ship:
                new_tiles += 1
            if new_tiles > budget:
                return
            if length == 1:
                continue
            # A ship tile right after the run means the run is part of a longer ship.
            if is_ship(self.tile(start.row + d_row * length, start.col + d_col * length)):
                continue
            yield Ship(self, Coordinate(start.row, start.col), length, orientation)

    # ----- blacklist -----

    def blacklist(self, ship: Ship | ShipKey) -> bool:
        """Permanently exclude a placement; returns False if it was already excluded."""
        key = ship.key if isinstance(ship, Ship) else ship
        if key in self._blacklist:
            return False
        self._blacklist.add(key)
        self.revision += 1
        BLACKLIST_COUNTER.add(1, attributes={"size": key.size})
        logger.info(
            "ship_blacklisted",
            extra={
                "board": self.name,
                "size": key.size,
                "row": key.start.row,
                "col": key.start.col,
                "orientation": key.orientation.name if key.orientation else "SINGLE",
            },
        )
        return True

    def is_blacklisted(self, ship: Ship | ShipKey) -> bool:
        key = ship.key if isinstance(ship, Ship) else ship
        return key in self._blacklist

    @property
    def blacklisted(self) -> frozenset[ShipKey]:
        return frozenset(self._blacklist)

    # ----- copies -----

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(values=self._values.copy(), blacklist=frozenset(self._blacklist))

    def restore(self, snapshot: BoardSnapshot) -> None:
        """Reset tile values and blacklist to a previously taken snapshot."""
        self._values[...] = snapshot.values
        self._blacklist = set(snapshot.blacklist)
        self.revision += 1

    def clone(self, name: str | None = None) -> Board:
        """Return an independent copy for testing a hypothesis."""
        twin = Board(
            name or f"Clone of {self.name}",
            self.size,
            self.max_ship_size,
            self.row_sums,
            self.col_sums,
        )
        twin.restore(self.snapshot())
        return twin

    # ----- rendering -----

    def to_grid(self) -> list[str]:
        """Return one string of symbols per row."""
        return [
            "".join(TileValue.from_code(int(code)).symbol for code in row)
            for row in self._values.tolist()
        ]

    def __str__(self) -> str:
        lines = [
            " ".join(row) + f" | {total}" for row, total in zip(self.to_grid(), self.row_sums)
        ]
        lines.append(" ".join("_" * self.size))
        lines.append(" ".join(str(total) for total in self.col_sums))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Board(name={self.name!r}, size={self.size}, max_ship_size={self.max_ship_size})"
