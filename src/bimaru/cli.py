"""Command-line driver for solving puzzles from a collection file."""

from __future__ import annotations

import argparse
from typing import Sequence

from opentelemetry.instrumentation.logging import LoggingInstrumentor

from bimaru.config import SolverConfig
from bimaru.engine.errors import PuzzleError
from bimaru.engine.solver import Solver
from bimaru.puzzle_file import DEFAULT_MAX_SHIP_SIZE, DEFAULT_SIZE, PuzzleEntry, read_puzzles
from bimaru.telemetry import get_logger, init_telemetry


def _solve_single(entry: PuzzleEntry, solver: Solver, max_ship_size: int) -> bool:
    try:
        board = entry.to_board(max_ship_size)
        level = solver.solve(board)
    except PuzzleError as exc:
        print(exc)
        return False
    print(board)
    for ship in board.all_candidates(confirmed=False):
        print(ship)
    print(f"Difficulty Level: {level}")
    if not solver.is_complete(board):
        print("Stalled: no strategy could finish this puzzle.")
        return False
    return True


def _solve_all(entries: Sequence[PuzzleEntry], solver: Solver, max_ship_size: int) -> bool:
    all_solved = True
    for entry in entries:
        try:
            board = entry.to_board(max_ship_size)
            level = solver.solve(board)
        except PuzzleError as exc:
            print(f"Puzzle {entry.puzzle_id}: Failed: {exc}")
            all_solved = False
            continue
        if solver.is_complete(board):
            print(f"Puzzle {entry.puzzle_id}: Solved (Difficulty {level})")
        else:
            print(f"Puzzle {entry.puzzle_id}: Stalled (Difficulty {level})")
            all_solved = False
    return all_solved


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Solve Battleship solitaire puzzles.")
    parser.add_argument("path", help="Text file holding numbered puzzles.")
    selection = parser.add_mutually_exclusive_group()
    selection.add_argument("--puzzle", help="Id of the single puzzle to solve.")
    selection.add_argument(
        "--all", action="store_true", help="Solve every puzzle in the file (default)."
    )
    parser.add_argument("--size", type=int, default=DEFAULT_SIZE, help="Grid size of the puzzles.")
    parser.add_argument(
        "--max-ship-size",
        type=int,
        default=DEFAULT_MAX_SHIP_SIZE,
        help="Length of the largest ship in the fleet.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat a puzzle no strategy can finish as an error.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    telemetry = init_telemetry()
    if telemetry.enable_logging:
        LoggingInstrumentor().instrument()
    logger = get_logger()

    try:
        puzzles = read_puzzles(args.path, size=args.size)
    except (OSError, PuzzleError) as exc:
        print(f"Cannot read puzzles: {exc}")
        return 2

    solver = Solver(SolverConfig.from_env(raise_on_stall=args.strict))
    if args.puzzle is not None:
        entry = puzzles.get(args.puzzle)
        if entry is None:
            print(f"No puzzle {args.puzzle} in {args.path}.")
            return 2
        solved = _solve_single(entry, solver, args.max_ship_size)
    else:
        solved = _solve_all(list(puzzles.values()), solver, args.max_ship_size)

    logger.info("cli_finished", extra={"path": args.path, "solved": solved})
    return 0 if solved else 1


if __name__ == "__main__":
    raise SystemExit(main())
