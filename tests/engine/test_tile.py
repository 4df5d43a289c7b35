"""Tests for tile values and the propagating value change."""

import pytest
from bimaru.engine.board import Board
from bimaru.engine.errors import InvalidMove, PuzzleFormatError
from bimaru.engine.tile import BLANK_CODE, WATER_CODE, TileValue


def make_board(size: int = 5) -> Board:
    return Board("tiles", size, min(size, 4), [size] * size, [size] * size)


def test_symbols_round_trip_and_reject_unknown() -> None:
    assert TileValue.from_symbol("^") is TileValue.SHIP_NORTH
    assert TileValue.from_symbol("+") is TileValue.SHIP_MID
    assert BLANK_CODE == 0
    assert WATER_CODE == 1

    with pytest.raises(PuzzleFormatError):
        TileValue.from_symbol("x")


def test_water_is_terminal() -> None:
    board = make_board()
    tile = board.tile(2, 2)

    assert tile.attempt_set_value(TileValue.WATER)
    assert not tile.attempt_set_value(TileValue.WATER)
    with pytest.raises(InvalidMove):
        tile.attempt_set_value(TileValue.SHIP_UNIDENTIFIED)
    assert tile.value is TileValue.WATER


def test_specific_kind_accepts_itself_and_unidentified_only() -> None:
    board = make_board()
    tile = board.tile(2, 2)
    tile.attempt_set_value(TileValue.SHIP_NORTH)

    assert not tile.attempt_set_value(TileValue.SHIP_NORTH)
    assert not tile.attempt_set_value(TileValue.SHIP_UNIDENTIFIED)
    with pytest.raises(InvalidMove):
        tile.attempt_set_value(TileValue.SHIP_WEST)
    with pytest.raises(InvalidMove):
        tile.attempt_set_value(TileValue.BLANK)
    assert tile.value is TileValue.SHIP_NORTH


def test_generic_mid_only_refines_to_oriented_mid() -> None:
    board = make_board()
    tile = board.tile(2, 2)
    tile.attempt_set_value(TileValue.SHIP_MID)

    with pytest.raises(InvalidMove):
        tile.attempt_set_value(TileValue.SHIP_NORTH)
    assert tile.attempt_set_value(TileValue.SHIP_MID_VERTICAL)
    assert tile.value is TileValue.SHIP_MID_VERTICAL


def test_unidentified_refines_to_any_ship_kind() -> None:
    board = make_board()
    tile = board.tile(2, 2)
    tile.attempt_set_value(TileValue.SHIP_UNIDENTIFIED)

    with pytest.raises(InvalidMove):
        tile.attempt_set_value(TileValue.WATER)
    assert tile.attempt_set_value(TileValue.SHIP_SUB)
    assert all(neighbour.is_water for neighbour in tile.orthogonal_neighbors())


def test_end_value_cascades_to_water_and_continuation() -> None:
    board = make_board(3)
    board.tile(0, 0).attempt_set_value(TileValue.SHIP_WEST)

    assert board.to_grid() == ["<?.", "===", "..."]


def test_failed_cascade_leaves_board_untouched() -> None:
    board = make_board()
    board.tile(1, 2).attempt_set_value(TileValue.SHIP_UNIDENTIFIED)
    before = board.to_grid()
    revision = board.revision

    # A north end forces the tile above it to water.
    with pytest.raises(InvalidMove):
        board.tile(2, 2).attempt_set_value(TileValue.SHIP_NORTH)

    assert board.to_grid() == before
    assert board.revision > revision


def test_neighbors_past_the_edge_are_none() -> None:
    board = make_board()
    corner = board.tile(0, 0)
    north, south, east, west = corner.orthogonal_neighbors()

    assert north is None
    assert west is None
    assert south is board.tile(1, 0)
    assert east is board.tile(0, 1)
