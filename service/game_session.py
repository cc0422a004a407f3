"""One player's game: owns the grid and move counter and runs turns."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple, Union

import numpy as np

from board_rules import Cell, Direction, Displacement, apply_move, create_empty_grid, freeze_grid
from outcome import Outcome, evaluate
from settings import GameConfig
from spawn import CellChooser, RandomCellChooser, spawn_tiles

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnResult:
    grid: np.ndarray
    moved: bool
    merge_events: Tuple[Cell, ...]
    displacements: Tuple[Displacement, ...]
    spawned_cells: Tuple[Cell, ...]
    outcome: Outcome
    move_count: int
    direction: Optional[Direction] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "grid": self.grid.tolist(),
            "moved": self.moved,
            "mergeEvents": [list(cell) for cell in self.merge_events],
            "displacements": [d.to_dict() for d in self.displacements],
            "spawned": [list(cell) for cell in self.spawned_cells],
            "outcome": self.outcome.value,
            "moveCount": self.move_count,
            "direction": self.direction.value if self.direction else None,
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """The durable part of a session: the board and the move counter."""

    board: Tuple[Tuple[int, ...], ...]
    move_count: int


class GameSession:
    """Turn state machine for a single game.

    ``submit_move`` returns ``None`` when a move is not accepted: the input is
    locked, the game has already ended, or the move changes nothing. None of
    these touch the move counter or spawn a tile.
    """

    def __init__(self, config: Optional[GameConfig] = None, chooser: Optional[CellChooser] = None) -> None:
        self.config = config or GameConfig()
        self.chooser: CellChooser = chooser or RandomCellChooser()
        self._grid = create_empty_grid(self.config.board_size)
        self._move_count = 0
        self._outcome = Outcome.ONGOING
        self._lock = threading.Lock()
        self.last_direction: Optional[Direction] = None

    # Queries ------------------------------------------------------------------
    def get_grid(self) -> np.ndarray:
        return freeze_grid(self._grid)

    def get_move_count(self) -> int:
        return self._move_count

    @property
    def outcome(self) -> Outcome:
        return self._outcome

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    # Turns --------------------------------------------------------------------
    @contextmanager
    def _input_lock(self) -> Iterator[None]:
        with self._lock:
            yield

    def submit_move(self, direction: Union[Direction, str]) -> Optional[TurnResult]:
        direction = Direction.parse(direction)
        if not self._lock.acquire(blocking=False):
            logger.debug("Rejected %s: a turn is already in flight", direction.value)
            return None

        try:
            if self._outcome.terminal:
                logger.debug("Rejected %s: game is %s", direction.value, self._outcome.value)
                return None

            move = apply_move(self._grid, direction)
            if not move.moved:
                logger.debug("Ignored no-op move %s", direction.value)
                return None

            # Nothing is committed until the spawn and evaluation have succeeded.
            grid = move.grid
            spawned = spawn_tiles(grid, self.config.spawn_per_move, self.config.min_tile, self.chooser)
            outcome = evaluate(grid, self.config.target_value)
            move_count = self._move_count + 1

            self._grid = grid
            self._move_count = move_count
            self._outcome = outcome
            self.last_direction = direction
        finally:
            self._lock.release()

        logger.debug("Move %d %s: %d merges, spawned %s", move_count, direction.value, len(move.merge_events), spawned)
        if outcome.terminal:
            logger.info("Game ended after %d moves: %s", move_count, outcome.value)
        return TurnResult(
            grid=freeze_grid(grid),
            moved=True,
            merge_events=move.merge_events,
            displacements=move.displacements,
            spawned_cells=tuple(spawned),
            outcome=outcome,
            move_count=move_count,
            direction=direction,
        )

    def reset_game(self) -> TurnResult:
        grid = create_empty_grid(self.config.board_size)
        with self._input_lock():
            spawned = spawn_tiles(grid, self.config.spawn_at_start, self.config.min_tile, self.chooser)
            self._grid = grid
            self._move_count = 0
            self._outcome = Outcome.ONGOING
            self.last_direction = None
        logger.info("New game on a %dx%d board", self.config.board_size, self.config.board_size)
        return TurnResult(
            grid=freeze_grid(grid),
            moved=False,
            merge_events=(),
            displacements=(),
            spawned_cells=tuple(spawned),
            outcome=Outcome.ONGOING,
            move_count=0,
        )

    # Persistence --------------------------------------------------------------
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            board=tuple(tuple(int(v) for v in row) for row in self._grid),
            move_count=self._move_count,
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        grid = np.array(snapshot.board, dtype=int)
        size = self.config.board_size
        if grid.shape != (size, size):
            raise ValueError(f"Expected {size}x{size} board, received shape {grid.shape}")
        if (grid < 0).any():
            raise ValueError("Board cells must not be negative")
        outcome = evaluate(grid, self.config.target_value)
        with self._input_lock():
            self._grid = grid
            self._move_count = int(snapshot.move_count)
            self._outcome = outcome
            self.last_direction = None


__all__ = ["GameSession", "SessionSnapshot", "TurnResult"]
