"""Tile spawning: the only place the game draws random numbers."""

import random
from typing import Callable, List, Optional, Sequence

import numpy as np

from board_rules import Cell, empty_cells

CellChooser = Callable[[Sequence[Cell]], Cell]


class RandomCellChooser:
    """Pick one of the empty cells uniformly at random.

    Each chooser owns its own ``random.Random`` so sessions can be seeded
    independently of each other and of the module-level generator.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self.random = random.Random(seed)

    def __call__(self, cells: Sequence[Cell]) -> Cell:
        return self.random.choice(list(cells))


def spawn_tiles(grid: np.ndarray, count: int, value: int, chooser: CellChooser) -> List[Cell]:
    """Place up to ``count`` tiles of ``value`` into empty cells of ``grid`` in place."""
    spawned: List[Cell] = []
    for _ in range(count):
        empties = empty_cells(grid)
        if not empties:
            break
        row, col = chooser(empties)
        if grid[row, col] != 0:
            raise ValueError(f"Chooser returned occupied cell {(row, col)}")
        grid[row, col] = value
        spawned.append((row, col))
    return spawned


__all__ = ["CellChooser", "RandomCellChooser", "spawn_tiles"]
