"""Deduction strategies and the leveled loop that applies them.

Strategies are ordered by cost. Each one looks at the whole board, writes every
value it can prove and reports whether the board changed. ``Solver.solve``
always falls back to the cheapest strategy after any progress, so the highest
level it ever needed doubles as the puzzle's difficulty rating.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from bimaru.config import SolverConfig, load_solver_config
from bimaru.telemetry import (
    board_span,
    get_tracer,
    record_solve_duration,
    record_solver_metric,
)

from .board import Board
from .errors import InvalidBoard, PuzzleError, StalledError
from .ship import Coordinate, Lane, Ship
from .tile import ORTHOGONAL, Tile, TileValue, is_ship, is_water

logger = logging.getLogger(__name__)
tracer = get_tracer("bimaru.engine.solver")

Strategy = Callable[[Board], bool]

# (predicate over the north, south, east and west neighbours, value it proves)
_UNIDENTIFIED_RULES = (
    (lambda n, s, e, w: is_water(n, s, e, w), TileValue.SHIP_SUB),
    (lambda n, s, e, w: is_water(n) and is_ship(s), TileValue.SHIP_NORTH),
    (lambda n, s, e, w: is_water(s) and is_ship(n), TileValue.SHIP_SOUTH),
    (lambda n, s, e, w: is_water(e) and is_ship(w), TileValue.SHIP_EAST),
    (lambda n, s, e, w: is_water(w) and is_ship(e), TileValue.SHIP_WEST),
    (lambda n, s, e, w: is_ship(n) and is_ship(s), TileValue.SHIP_MID_VERTICAL),
    (lambda n, s, e, w: is_ship(e) and is_ship(w), TileValue.SHIP_MID_HORIZONTAL),
)


# ----- level 1 -----


def fill_lane(board: Board, lane: Lane, idx: int) -> bool:
    """Fill a lane's blanks with water once its ships are all known, or with ships
    once its water is."""
    if not board.has_blanks(lane, idx):
        return False
    target = board.target(lane, idx)
    if board.ship_count(lane, idx) == target:
        value = TileValue.WATER
    elif board.water_count(lane, idx) == board.size - target:
        value = TileValue.SHIP_UNIDENTIFIED
    else:
        return False
    changed = False
    for tile in board.lane_tiles(lane, idx):
        if tile.is_blank:
            changed = tile.attempt_set_value(value) or changed
    return changed


def fill_lanes(board: Board) -> bool:
    changed = False
    for lane, idx in board.lanes():
        changed = fill_lane(board, lane, idx) or changed
    return changed


# ----- level 2 -----


def identify_unidentified(tile: Tile) -> bool:
    """Refine a ShipUnidentified tile from what its four neighbours hold."""
    if tile.value is not TileValue.SHIP_UNIDENTIFIED:
        return False
    neighbours = [tile.neighbor(direction) for direction in ORTHOGONAL]
    changed = False
    for proves, value in _UNIDENTIFIED_RULES:
        if proves(*neighbours):
            changed = tile.attempt_set_value(value) or changed
    return changed


def identify_mid(board: Board, tile: Tile) -> bool:
    """Decide whether a generic mid tile belongs to a horizontal or vertical ship."""
    if tile.value is not TileValue.SHIP_MID:
        return False
    north, south, east, west = (tile.neighbor(direction) for direction in ORTHOGONAL)
    horizontal = vertical = False
    if is_water(north) or is_water(south) or is_ship(east) or is_ship(west):
        horizontal = True
    elif board.ship_count(Lane.ROW, tile.row) + 2 > board.target(Lane.ROW, tile.row):
        vertical = True
    if is_water(east) or is_water(west) or is_ship(north) or is_ship(south):
        vertical = True
    elif board.ship_count(Lane.COL, tile.col) + 2 > board.target(Lane.COL, tile.col):
        horizontal = True

    if horizontal and vertical:
        raise InvalidBoard(f"Invalid ship mid at ({tile.row},{tile.col})")
    if horizontal:
        return tile.attempt_set_value(TileValue.SHIP_MID_HORIZONTAL)
    if vertical:
        return tile.attempt_set_value(TileValue.SHIP_MID_VERTICAL)
    return False


def identify_tiles(board: Board) -> bool:
    changed = False
    for tile in board.iter_tiles():
        changed = identify_unidentified(tile) or changed
        changed = identify_mid(board, tile) or changed
    return changed


# ----- level 3 -----


def complete_ship_sizes(board: Board) -> bool:
    """Confirm every placement of a size when there are exactly as many as are missing."""
    changed = False
    for size in range(1, board.max_ship_size + 1):
        ships = board.candidates(size, confirmed=False)
        if ships and board.missing_ships(size) == len(ships):
            for ship in ships:
                changed = ship.confirm() or changed
    return changed


# ----- level 4 -----


def identify_ship(board: Board, tile: Tile) -> bool:
    """Confirm the only placement that could cover an unidentified tile."""
    if tile.value is not TileValue.SHIP_UNIDENTIFIED:
        return False
    owners = [ship for ship in board.all_candidates(confirmed=False) if ship.covers(tile)]
    if len(owners) != 1:
        return False
    return owners[0].confirm()


def identify_ships(board: Board) -> bool:
    changed = False
    for tile in board.tiles_with(TileValue.SHIP_UNIDENTIFIED):
        changed = identify_ship(board, tile) or changed
    return changed


# ----- level 5 -----


def place_shared_tiles(board: Board, size: int) -> bool:
    """Mark tiles covered by every remaining placement of a size as ship."""
    ships = board.candidates(size, confirmed=False)
    if not ships:
        return False
    first, others = ships[0], ships[1:]
    # Tiles that already hold a ship value have nothing left to learn here.
    shared = [
        tile
        for tile in first.tiles()
        if not tile.is_ship and all(ship.covers(tile) for ship in others)
    ]
    changed = False
    for tile in shared:
        changed = tile.attempt_set_value(TileValue.SHIP_UNIDENTIFIED) or changed
    return changed


def find_shared_tiles(board: Board) -> bool:
    changed = False
    for size in range(2, board.max_ship_size + 1):
        changed = place_shared_tiles(board, size) or changed
    return changed


# ----- level 6 -----


def fill_partial_lane(board: Board, size: int) -> bool:
    """Water the rest of a lane that must hold every missing ship of a size."""
    ships = board.candidates(size, confirmed=False)
    if not ships:
        return False
    covered = {coord for ship in ships for coord in ship.coordinates()}
    rows = {coord.row for coord in covered}
    cols = {coord.col for coord in covered}
    if len(rows) == 1:
        lane, idx = Lane.ROW, rows.pop()
    elif len(cols) == 1:
        lane, idx = Lane.COL, cols.pop()
    else:
        return False

    outside = [
        tile
        for tile in board.lane_tiles(lane, idx)
        if Coordinate(tile.row, tile.col) not in covered
    ]
    known_ships = sum(1 for tile in outside if tile.is_ship)
    if board.target(lane, idx) - known_ships - size * board.missing_ships(size) != 0:
        return False
    changed = False
    for tile in outside:
        if tile.is_blank:
            changed = tile.attempt_set_value(TileValue.WATER) or changed
    return changed


def fill_partial_lanes(board: Board) -> bool:
    changed = False
    for size in range(2, board.max_ship_size + 1):
        changed = fill_partial_lane(board, size) or changed
    return changed


# ----- level 7 -----


def validate_lane_counts(board: Board) -> None:
    """Raise if a lane holds too many ships or too much water for its target."""
    for lane, idx in board.lanes():
        target = board.target(lane, idx)
        too_many_ships = board.ship_count(lane, idx) > target
        too_much_water = board.size - board.water_count(lane, idx) < target
        if too_many_ships or too_much_water:
            raise InvalidBoard(f"{board.name}: invalid {lane.value} {idx}")


def validate_ship_counts(board: Board) -> None:
    """Raise if more ships of a size are confirmed than the fleet holds."""
    for size in range(1, board.max_ship_size + 1):
        if len(board.candidates(size, confirmed=True)) > board.required_ships(size):
            raise InvalidBoard(f"{board.name}: too many ships of size {size}")


def fill_lanes_to_fixed_point(board: Board) -> bool:
    changed = False
    while fill_lanes(board):
        changed = True
    return changed


def solve_easiest(board: Board) -> bool:
    """Alternate lane filling and tile identification until neither makes progress."""
    changed = False
    while True:
        changed = fill_lanes_to_fixed_point(board) or changed
        if not identify_tiles(board):
            return changed
        changed = True


def hypothesis_fails(board: Board, ship: Ship, identify_tiles_too: bool = False) -> bool:
    """Place a ship on a copy of the board and report whether that leads to a contradiction."""
    clone = board.clone()
    try:
        Ship(clone, ship.start, ship.size, ship.orientation).confirm()
        if identify_tiles_too:
            solve_easiest(clone)
        else:
            fill_lanes_to_fixed_point(clone)
        validate_lane_counts(clone)
        validate_ship_counts(clone)
    except PuzzleError as exc:
        logger.debug(
            "hypothesis_rejected",
            extra={"board": board.name, "ship": str(ship), "reason": str(exc)},
        )
        return True
    return False


def simple_lookahead(
    board: Board,
    size: int,
    max_missing: int = 2,
    max_candidates: int = 4,
    identify_tiles_too: bool = False,
) -> bool:
    """Blacklist every placement of a size that leads to a contradiction when tried."""
    if board.missing_ships(size) > max_missing:
        return False
    ships = board.candidates(size, confirmed=False)
    if len(ships) > max_candidates:
        return False
    changed = False
    for ship in ships:
        record_solver_metric("bimaru_lookahead_hypotheses_total", 1, {"size": size})
        if hypothesis_fails(board, ship, identify_tiles_too):
            changed = board.blacklist(ship) or changed
    return changed


# ----- completion -----


def is_complete(board: Board) -> bool:
    """True when every tile is identified and every lane meets its target."""
    for lane, idx in board.lanes():
        if board.has_blanks(lane, idx) or board.has_unidentified(lane, idx):
            return False
        if board.ship_count(lane, idx) != board.target(lane, idx):
            return False
    return True


class Solver:
    """Applies strategies from cheapest to most expensive until nothing changes."""

    def __init__(self, config: SolverConfig | None = None) -> None:
        self.config = config or load_solver_config()
        self._strategies: dict[int, tuple[str, Strategy]] = {
            1: ("fill_lanes", fill_lanes),
            2: ("identify_tiles", identify_tiles),
            3: ("complete_ship_sizes", complete_ship_sizes),
            4: ("identify_ships", identify_ships),
            5: ("find_shared_tiles", find_shared_tiles),
            6: ("fill_partial_lanes", fill_partial_lanes),
            7: ("simple_lookahead", self._lookahead),
        }

    def _lookahead(self, board: Board) -> bool:
        changed = False
        for size in range(2, board.max_ship_size + 1):
            changed = (
                simple_lookahead(
                    board,
                    size,
                    max_missing=self.config.lookahead_max_missing,
                    max_candidates=self.config.lookahead_max_candidates,
                    identify_tiles_too=self.config.lookahead_identify_tiles,
                )
                or changed
            )
        return changed

    def execute(self, board: Board, level: int) -> bool:
        """Run the strategy for one level and report whether it changed the board."""
        name, strategy = self._strategies[level]
        with board_span(tracer, "solver.strategy", board) as span:
            span.set_attribute("strategy.level", level)
            span.set_attribute("strategy.name", name)
            changed = strategy(board)
            span.set_attribute("strategy.changed", changed)
        record_solver_metric(
            "bimaru_strategy_runs_total", 1, {"level": level, "changed": changed}
        )
        logger.debug(
            "strategy_applied",
            extra={"board": board.name, "level": level, "strategy": name, "changed": changed},
        )
        return changed

    def solve(self, board: Board) -> int:
        """Run strategies to a fixed point and return the highest level needed.

        Contradictions found by levels 1-6 propagate as ``PuzzleError``. When no
        strategy can progress on an incomplete board the difficulty is still
        returned, unless ``raise_on_stall`` is set.
        """
        started = time.perf_counter()
        level = highest = 1
        outcome = "stalled"
        with board_span(tracer, "solver.solve", board) as span:
            try:
                while level <= self.config.max_level:
                    changed = self.execute(board, level)
                    highest = max(highest, level)
                    if is_complete(board):
                        outcome = "solved"
                        break
                    level = 1 if changed else level + 1
            except PuzzleError as exc:
                outcome = "failed"
                span.record_exception(exc)
                logger.warning("solve_failed", extra={"board": board.name, "reason": str(exc)})
                raise
            finally:
                span.set_attribute("solve.outcome", outcome)
                span.set_attribute("solve.difficulty", highest)
                record_solver_metric("bimaru_solves_total", 1, {"outcome": outcome})
                record_solve_duration(time.perf_counter() - started, {"outcome": outcome})

        logger.info(
            "solve_finished",
            extra={"board": board.name, "outcome": outcome, "difficulty": highest},
        )
        if outcome == "stalled" and self.config.raise_on_stall:
            raise StalledError(board.name, highest)
        return highest

    @staticmethod
    def is_complete(board: Board) -> bool:
        return is_complete(board)
