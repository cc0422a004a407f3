"""Win and stalemate detection."""

from enum import Enum

import numpy as np


class Outcome(Enum):
    ONGOING = "ongoing"
    WON = "won"
    STALEMATE = "stalemate"

    @property
    def terminal(self) -> bool:
        return self is not Outcome.ONGOING


def has_won(grid: np.ndarray, target_value: int) -> bool:
    return bool((np.asarray(grid) >= target_value).any())


def has_moves_available(grid: np.ndarray) -> bool:
    board = np.asarray(grid)
    if (board == 0).any():
        return True
    # Equality is symmetric, so right and down neighbours cover every pair.
    if (board[:, :-1] == board[:, 1:]).any():
        return True
    return bool((board[:-1, :] == board[1:, :]).any())


def evaluate(grid: np.ndarray, target_value: int) -> Outcome:
    """Classify a post-spawn grid. A win takes precedence over a full board."""
    if has_won(grid, target_value):
        return Outcome.WON
    if not has_moves_available(grid):
        return Outcome.STALEMATE
    return Outcome.ONGOING


__all__ = ["Outcome", "evaluate", "has_moves_available", "has_won"]
