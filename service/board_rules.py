"""Core board mechanics for the 3072 merge puzzle, shared by the session, server and tests."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple, Union

import numpy as np

Cell = Tuple[int, int]


class Direction(Enum):
    UP = "UP"
    RIGHT = "RIGHT"
    DOWN = "DOWN"
    LEFT = "LEFT"

    @classmethod
    def parse(cls, value: Union["Direction", str]) -> "Direction":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValueError(f"Unknown direction: {value!r}")

    @property
    def horizontal(self) -> bool:
        return self in (Direction.LEFT, Direction.RIGHT)

    @property
    def forward(self) -> bool:
        """LEFT and UP slide toward index 0."""
        return self in (Direction.LEFT, Direction.UP)

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITES[self]


_OPPOSITES = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}

DIRECTION_NAMES: Sequence[str] = tuple(d.value for d in Direction)


@dataclass(frozen=True)
class LineDisplacement:
    origin: int
    dest: int
    value: int


@dataclass(frozen=True)
class LineResult:
    line: Tuple[int, ...]
    merged_indices: Tuple[int, ...]
    displacements: Tuple[LineDisplacement, ...]
    moved: bool


@dataclass(frozen=True)
class Displacement:
    """One tile's journey during a move; both halves of a merge share a destination."""

    origin_row: int
    origin_col: int
    dest_row: int
    dest_col: int
    value: int

    def to_dict(self) -> dict:
        return {
            "fromRow": self.origin_row,
            "fromCol": self.origin_col,
            "toRow": self.dest_row,
            "toCol": self.dest_col,
            "value": self.value,
        }


@dataclass(frozen=True)
class MoveResult:
    grid: np.ndarray
    moved: bool
    merge_events: Tuple[Cell, ...]
    displacements: Tuple[Displacement, ...]


# Grid model -----------------------------------------------------------------

def create_empty_grid(size: int) -> np.ndarray:
    return np.zeros((size, size), dtype=int)


def clone_grid(grid: np.ndarray) -> np.ndarray:
    return np.array(grid, dtype=int, copy=True)


def freeze_grid(grid: np.ndarray) -> np.ndarray:
    """Return a read-only copy of ``grid``."""
    frozen = clone_grid(grid)
    frozen.setflags(write=False)
    return frozen


def as_grid(rows: Sequence[Sequence[int]]) -> np.ndarray:
    arr = np.array(rows, dtype=int)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1] or arr.shape[0] == 0:
        raise ValueError(f"Expected a square grid, received shape {arr.shape}")
    return arr


def empty_cells(grid: np.ndarray) -> List[Cell]:
    return [(int(r), int(c)) for r, c in zip(*np.nonzero(grid == 0))]


# Line reducer ---------------------------------------------------------------

def reduce_line(line: Sequence[int], forward: bool) -> LineResult:
    """Slide one row or column toward index 0 (``forward``) or toward its end.

    Equal neighbours are paired greedily in a single scan along the direction
    of travel, so ``[3, 3, 3]`` becomes ``[6, 3, 0]`` and a merged tile never
    merges again in the same move.
    """
    values = [int(v) for v in line]
    size = len(values)

    def remap(idx: int) -> int:
        return idx if forward else size - 1 - idx

    # Work in "toward index 0" orientation; remap indices at the boundary.
    items = [(remap(idx), v) for idx, v in enumerate(values) if v != 0]
    if not forward:
        items.reverse()

    packed: List[int] = []
    merged: List[int] = []
    moves: List[LineDisplacement] = []
    i = 0
    while i < len(items):
        origin, value = items[i]
        dest = len(packed)
        if i + 1 < len(items) and items[i + 1][1] == value:
            next_origin, next_value = items[i + 1]
            packed.append(value + next_value)
            merged.append(remap(dest))
            moves.append(LineDisplacement(remap(origin), remap(dest), value))
            moves.append(LineDisplacement(remap(next_origin), remap(dest), next_value))
            i += 2
        else:
            packed.append(value)
            moves.append(LineDisplacement(remap(origin), remap(dest), value))
            i += 1

    packed.extend([0] * (size - len(packed)))
    if not forward:
        packed.reverse()

    return LineResult(
        line=tuple(packed),
        merged_indices=tuple(merged),
        displacements=tuple(moves),
        moved=packed != values,
    )


# Move engine ----------------------------------------------------------------

def apply_move(grid: Sequence[Sequence[int]], direction: Union[Direction, str]) -> MoveResult:
    direction = Direction.parse(direction)
    board = as_grid(grid)
    next_board = board.copy()
    size = board.shape[0]

    moved = False
    merge_events: List[Cell] = []
    displacements: List[Displacement] = []

    for k in range(size):
        if direction.horizontal:
            result = reduce_line(board[k, :].tolist(), direction.forward)
            next_board[k, :] = result.line
            merge_events.extend((k, idx) for idx in result.merged_indices)
            displacements.extend(
                Displacement(k, d.origin, k, d.dest, d.value) for d in result.displacements
            )
        else:
            result = reduce_line(board[:, k].tolist(), direction.forward)
            next_board[:, k] = result.line
            merge_events.extend((idx, k) for idx in result.merged_indices)
            displacements.extend(
                Displacement(d.origin, k, d.dest, k, d.value) for d in result.displacements
            )
        if result.moved:
            moved = True

    return MoveResult(
        grid=next_board,
        moved=moved,
        merge_events=tuple(merge_events),
        displacements=tuple(displacements),
    )


def simulate_move(grid: Sequence[Sequence[int]], direction: Union[Direction, str]) -> Tuple[np.ndarray, bool]:
    result = apply_move(grid, direction)
    return result.grid, result.moved


def valid_moves(grid: Sequence[Sequence[int]]) -> List[str]:
    allowed: List[str] = []
    for direction in Direction:
        _, changed = simulate_move(grid, direction)
        if changed:
            allowed.append(direction.value)
    return allowed


__all__ = [
    "Cell",
    "DIRECTION_NAMES",
    "Direction",
    "Displacement",
    "LineDisplacement",
    "LineResult",
    "MoveResult",
    "apply_move",
    "as_grid",
    "clone_grid",
    "create_empty_grid",
    "empty_cells",
    "freeze_grid",
    "reduce_line",
    "simulate_move",
    "valid_moves",
]
