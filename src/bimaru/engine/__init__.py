"""Engine package exports."""

from .board import Board
from .errors import InvalidBoard, InvalidMove, PuzzleError, PuzzleFormatError, StalledError
from .ship import Coordinate, Lane, Orientation, Ship, ShipKey
from .solver import Solver
from .tile import Tile, TileValue

__all__ = [
    "Board",
    "Coordinate",
    "InvalidBoard",
    "InvalidMove",
    "Lane",
    "Orientation",
    "PuzzleError",
    "PuzzleFormatError",
    "Ship",
    "ShipKey",
    "Solver",
    "StalledError",
    "Tile",
    "TileValue",
]
