"""Logic solver for Battleship solitaire (Bimaru) puzzles."""

__version__ = "0.1.0"
