"""Tests for the deduction strategies and the leveled solving loop."""

import random

import pytest
from bimaru.config import SolverConfig
from bimaru.engine import solver as solver_module
from bimaru.engine.board import Board
from bimaru.engine.errors import InvalidBoard, PuzzleError, StalledError
from bimaru.engine.ship import Coordinate, Lane, Orientation, Ship, ShipKey
from bimaru.engine.solver import (
    Solver,
    complete_ship_sizes,
    fill_lanes,
    fill_lanes_to_fixed_point,
    fill_partial_lane,
    find_shared_tiles,
    hypothesis_fails,
    identify_ships,
    identify_tiles,
    is_complete,
    place_shared_tiles,
    simple_lookahead,
)
from bimaru.engine.tile import TileValue

HINTS = [
    "<....^..O.",
    "..........",
    "O.......>.",
    "..........",
    "^..<.....O",
    "..........",
    "......<...",
    "..........",
    "O.........",
    "..........",
]
SOLUTION = [
    "<-->=^==O=",
    "=====|====",
    "O====v=<>=",
    "==========",
    "^==<->===O",
    "v=========",
    "======<>==",
    "==========",
    "O=========",
    "==========",
]
ROW_SUMS = [6, 1, 4, 0, 5, 1, 2, 0, 1, 0]
COL_SUMS = [5, 1, 1, 2, 1, 4, 1, 2, 2, 1]
_MIDS = (TileValue.SHIP_MID_HORIZONTAL, TileValue.SHIP_MID_VERTICAL)


def puzzle() -> Board:
    return Board.from_grid("Puzzle 1", 10, 4, ROW_SUMS, COL_SUMS, HINTS)


def empty_board() -> Board:
    return Board("empty", 10, 4, [2] * 10, [2] * 10)


def corner_board() -> Board:
    """A corner ship that fits both ways; only the horizontal one leaves column 1 a ship."""
    return Board.from_grid(
        "corner", 4, 2, [2, 1, 1, 0], [2, 1, 0, 1], ["?...", "....", "....", "...."]
    )


def random_solution(
    rng: random.Random, size: int = 10, max_ship_size: int = 4
) -> list[list[TileValue]]:
    """Place a full fleet at random with no two ships touching, even diagonally."""
    scratch = Board("scratch", size, max_ship_size, [0] * size, [0] * size)
    while True:
        solution = [[TileValue.WATER] * size for _ in range(size)]
        if _place_fleet(rng, scratch, solution):
            return solution


def _place_fleet(rng: random.Random, scratch: Board, solution: list[list[TileValue]]) -> bool:
    size = scratch.size
    for ship_size in range(scratch.max_ship_size, 0, -1):
        for _ in range(scratch.required_ships(ship_size)):
            for _attempt in range(100):
                orientation = rng.choice(list(Orientation)) if ship_size > 1 else None
                d_row, d_col = orientation.step if orientation else (0, 0)
                start = Coordinate(
                    rng.randrange(size - d_row * (ship_size - 1)),
                    rng.randrange(size - d_col * (ship_size - 1)),
                )
                ship = Ship(scratch, start, ship_size, orientation)
                touching = [
                    solution[row][col]
                    for coord in ship.coordinates()
                    for row in range(max(coord.row - 1, 0), min(coord.row + 2, size))
                    for col in range(max(coord.col - 1, 0), min(coord.col + 2, size))
                ]
                if not any(value.is_ship for value in touching):
                    break
            else:
                return False
            for coord, value in zip(ship.coordinates(), ship.expected_values()):
                solution[coord.row][coord.col] = value
    return True


def reveal_hints(rng: random.Random, solution: list[list[TileValue]]) -> list[str]:
    """Show a sparse subset of the solution; mids are sometimes shown only as '+'."""
    rows = []
    for line in solution:
        cells = []
        for value in line:
            if rng.random() >= (0.3 if value.is_ship else 0.05):
                cells.append(TileValue.BLANK.value)
            elif value in _MIDS and rng.random() < 0.5:
                cells.append(TileValue.SHIP_MID.value)
            else:
                cells.append(value.value)
        rows.append("".join(cells))
    return rows


def test_solves_puzzle_end_to_end() -> None:
    board = puzzle()

    difficulty = Solver(SolverConfig()).solve(board)

    assert difficulty == 2
    assert is_complete(board)
    assert board.to_grid() == SOLUTION
    assert not board.tiles_with(TileValue.BLANK)
    assert not board.tiles_with(TileValue.SHIP_UNIDENTIFIED)
    for lane, idx in board.lanes():
        assert board.ship_count(lane, idx) == board.target(lane, idx)


def test_fill_lanes_is_idempotent_at_fixed_point() -> None:
    board = puzzle()

    assert fill_lanes_to_fixed_point(board)
    settled = board.to_grid()
    assert not fill_lanes(board)
    assert board.to_grid() == settled
    assert not board.tiles_with(TileValue.BLANK)


def test_identify_tiles_uses_neighbours() -> None:
    board = puzzle()
    fill_lanes_to_fixed_point(board)

    assert identify_tiles(board)
    assert board.value_at(1, 5) is TileValue.SHIP_MID_VERTICAL
    assert board.value_at(2, 5) is TileValue.SHIP_SOUTH
    assert board.value_at(0, 3) is TileValue.SHIP_EAST


def test_ambiguous_mid_is_invalid() -> None:
    board = Board.from_grid(
        "mid", 5, 3, [2] * 5, [2] * 5, [".....", "..=..", "..+=.", ".....", "....."]
    )

    with pytest.raises(InvalidBoard):
        identify_tiles(board)


def test_complete_ship_sizes_confirms_forced_placements() -> None:
    board = Board("forced", 3, 1, [0, 1, 0], [0, 1, 0])

    assert complete_ship_sizes(board)
    assert board.to_grid() == ["===", "=O=", "==="]
    assert board.missing_ships(1) == 0


def test_identify_ships_confirms_unique_owner() -> None:
    board = Board.from_grid("owner", 3, 2, [0, 2, 0], [1, 1, 0], ["...", "??.", "..."])

    assert identify_ships(board)
    assert board.to_grid() == ["===", "<>=", "==="]


def test_shared_tiles_become_ship() -> None:
    board = Board("shared", 4, 4, [4, 0, 0, 0], [1, 1, 1, 1])

    assert place_shared_tiles(board, 4)
    assert board.to_grid()[0] == "????"


def test_shared_tiles_leave_known_mid_alone() -> None:
    # Both size-3 placements run through the mid; it is the only tile they share.
    board = Board.from_grid(
        "mid", 5, 3, [1, 1, 3, 1, 1], [1, 1, 3, 1, 1], [".....", ".....", "..+..", ".....", "....."]
    )
    before = board.to_grid()

    assert len(board.candidates(3, confirmed=False)) == 2
    assert not place_shared_tiles(board, 3)
    assert not find_shared_tiles(board)
    assert board.value_at(2, 2) is TileValue.SHIP_MID
    assert board.to_grid() == before


def test_partial_lane_fill_waters_uncovered_tiles() -> None:
    board = Board("partial", 5, 2, [2, 0, 0, 0, 0], [0, 1, 1, 1, 0])

    assert fill_partial_lane(board, 2)
    assert board.to_grid()[0] == "=...="


def test_hypothesis_runs_on_a_clone() -> None:
    board = Board("hypothesis", 3, 1, [1, 0, 0], [0, 1, 0])
    before = board.to_grid()

    assert hypothesis_fails(board, Ship(board, Coordinate(0, 0), 1))
    assert not hypothesis_fails(board, Ship(board, Coordinate(0, 1), 1))
    assert board.to_grid() == before


def test_lookahead_blacklists_failed_hypotheses(monkeypatch: pytest.MonkeyPatch) -> None:
    board = empty_board()
    monkeypatch.setattr(
        solver_module,
        "hypothesis_fails",
        lambda board, ship, identify_tiles_too=False: ship.start == Coordinate(0, 0),
    )

    assert simple_lookahead(board, 2, max_missing=3, max_candidates=1000)
    assert all(tile.is_blank for tile in board.iter_tiles())
    assert len(board.blacklisted) == 2
    assert not any(ship.start == Coordinate(0, 0) for ship in board.candidates(2, confirmed=False))
    assert not simple_lookahead(board, 2, max_missing=3, max_candidates=1000)


def test_lookahead_respects_limits() -> None:
    board = empty_board()

    assert not simple_lookahead(board, 2, max_missing=2, max_candidates=1000)
    assert not simple_lookahead(board, 2, max_missing=3, max_candidates=4)
    assert board.blacklisted == frozenset()


def test_lookahead_rules_out_contradicting_orientation() -> None:
    board = corner_board()
    fill_lanes_to_fixed_point(board)
    vertical = ShipKey(2, Coordinate(0, 0), Orientation.VERTICAL)
    before = board.to_grid()

    assert len(board.candidates(2, confirmed=False)) == 2
    assert simple_lookahead(board, 2)
    assert board.blacklisted == frozenset({vertical})
    assert board.candidates(2, confirmed=False) == [
        Ship(board, Coordinate(0, 0), 2, Orientation.HORIZONTAL)
    ]
    assert board.to_grid() == before


def test_solve_needs_lookahead() -> None:
    board = corner_board()

    difficulty = Solver(SolverConfig()).solve(board)

    assert difficulty == 7
    assert is_complete(board)
    assert board.to_grid() == ["<>==", "===O", "O===", "===="]
    assert board.blacklisted
    live = {ship.key for ship in board.all_candidates(confirmed=False)}
    assert not live & board.blacklisted


def test_stalled_solve_reports_highest_level() -> None:
    board = empty_board()

    assert Solver(SolverConfig()).solve(board) == 7
    assert not is_complete(board)
    assert all(
        board.ship_count(lane, idx) <= board.target(lane, idx) for lane, idx in board.lanes()
    )


def test_stall_can_be_an_error() -> None:
    with pytest.raises(StalledError) as excinfo:
        Solver(SolverConfig(raise_on_stall=True)).solve(empty_board())

    assert excinfo.value.level == 7


def test_max_level_caps_the_search() -> None:
    assert Solver(SolverConfig(max_level=3)).solve(empty_board()) == 3


def test_execute_reports_change() -> None:
    board = puzzle()
    solver = Solver(SolverConfig())

    assert solver.execute(board, 1)
    assert board.ship_count(Lane.ROW, 0) == 6


@pytest.mark.parametrize("seed", range(20))
def test_deductions_agree_with_a_known_solution(seed: int) -> None:
    rng = random.Random(seed)
    solution = random_solution(rng)
    row_sums = [sum(value.is_ship for value in line) for line in solution]
    col_sums = [sum(line[col].is_ship for line in solution) for col in range(10)]
    board = Board.from_grid(f"seed {seed}", 10, 4, row_sums, col_sums, reveal_hints(rng, solution))

    try:
        Solver(SolverConfig()).solve(board)
    except PuzzleError as exc:
        pytest.fail(f"solver rejected a valid puzzle: {exc}")

    for tile in board.iter_tiles():
        expected = solution[tile.row][tile.col]
        if tile.is_blank:
            continue
        if tile.is_water:
            assert not expected.is_ship, tile
        elif tile.is_unidentified:
            assert expected.is_ship, tile
        else:
            assert tile.value is expected, tile
