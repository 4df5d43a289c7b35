"""Reader for numbered puzzle collections stored as plain text.

A puzzle starts with a header line such as ``3)``, followed by one line per
grid row (whitespace between symbols is ignored) and then the row sums and
the column sums as integers separated by anything that is not a digit::

    3)
    . . . . . . . . . .
    ...
    6 1 4 0 5 1 2 0 1 0
    5 1 1 2 1 4 1 2 2 1
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from bimaru.engine.board import Board
from bimaru.engine.errors import PuzzleFormatError

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 10
DEFAULT_MAX_SHIP_SIZE = 4

_HEADER = re.compile(r"^\s*(\d+)\)\s*$")
_NUMBER = re.compile(r"\d+")


@dataclass(frozen=True)
class PuzzleEntry:
    """One puzzle as written in the file, before it becomes a board."""

    puzzle_id: str
    grid: tuple[str, ...]
    row_sums: tuple[int, ...]
    col_sums: tuple[int, ...]

    def to_board(self, max_ship_size: int = DEFAULT_MAX_SHIP_SIZE) -> Board:
        return Board.from_grid(
            f"Puzzle {self.puzzle_id}",
            len(self.grid),
            max_ship_size,
            self.row_sums,
            self.col_sums,
            self.grid,
        )


def parse_puzzles(text: str, size: int = DEFAULT_SIZE) -> dict[str, PuzzleEntry]:
    """Parse every puzzle in a collection, keyed by its id."""
    lines = text.splitlines()
    puzzles: dict[str, PuzzleEntry] = {}
    index = 0
    while index < len(lines):
        header = _HEADER.match(lines[index])
        index += 1
        if header is None:
            continue
        puzzle_id = header.group(1)
        if puzzle_id in puzzles:
            raise PuzzleFormatError(f"Puzzle {puzzle_id} appears more than once.")

        grid: list[str] = []
        while len(grid) < size and index < len(lines):
            line = "".join(lines[index].split())
            index += 1
            if line:
                grid.append(line)

        numbers: list[int] = []
        while len(numbers) < 2 * size and index < len(lines):
            if _HEADER.match(lines[index]):
                break
            numbers.extend(int(value) for value in _NUMBER.findall(lines[index]))
            index += 1

        if len(grid) < size or len(numbers) < 2 * size:
            raise PuzzleFormatError(f"Puzzle {puzzle_id} is incomplete.")
        if len(numbers) > 2 * size:
            raise PuzzleFormatError(f"Puzzle {puzzle_id} has too many sums.")
        puzzles[puzzle_id] = PuzzleEntry(
            puzzle_id=puzzle_id,
            grid=tuple(grid),
            row_sums=tuple(numbers[:size]),
            col_sums=tuple(numbers[size:]),
        )
    logger.debug("puzzles_parsed", extra={"count": len(puzzles)})
    return puzzles


def read_puzzles(path: str | Path, size: int = DEFAULT_SIZE) -> dict[str, PuzzleEntry]:
    return parse_puzzles(Path(path).read_text(encoding="utf-8"), size=size)


def load_puzzle(
    path: str | Path,
    puzzle_id: str | int,
    size: int = DEFAULT_SIZE,
    max_ship_size: int = DEFAULT_MAX_SHIP_SIZE,
) -> Board:
    """Read one puzzle from a collection and build its board."""
    puzzles = read_puzzles(path, size=size)
    try:
        entry = puzzles[str(puzzle_id)]
    except KeyError as exc:
        raise PuzzleFormatError(f"No puzzle {puzzle_id} in {path}.") from exc
    return entry.to_board(max_ship_size)
