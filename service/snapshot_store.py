"""JSON snapshots of game sessions on disk.

A snapshot is ``{"board": [[...], ...], "moveCount": n}``. Anything that does
not decode into a board of the expected size with non-negative integer cells
is treated as "no prior state" by :meth:`SnapshotStore.load`.
"""

import json
import logging
import os
import re
import tempfile
from typing import Any, Optional

from game_session import SessionSnapshot

logger = logging.getLogger(__name__)

STORAGE_KEY = "game-3072-state"
SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class SnapshotError(ValueError):
    """Raised when a stored snapshot cannot be decoded."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def encode_snapshot(snapshot: SessionSnapshot) -> str:
    return json.dumps({"board": [list(row) for row in snapshot.board], "moveCount": snapshot.move_count})


def decode_snapshot(raw: str, board_size: int) -> SessionSnapshot:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    board = data.get("board")
    move_count = data.get("moveCount")
    if not isinstance(board, list) or len(board) != board_size:
        raise SnapshotError(f"Snapshot board must have {board_size} rows")
    for row in board:
        if not isinstance(row, list) or len(row) != board_size:
            raise SnapshotError(f"Snapshot rows must have {board_size} cells")
        if not all(_is_int(v) and v >= 0 for v in row):
            raise SnapshotError("Snapshot cells must be non-negative integers")
    if not _is_int(move_count) or move_count < 0:
        raise SnapshotError("Snapshot moveCount must be a non-negative integer")

    return SessionSnapshot(board=tuple(tuple(row) for row in board), move_count=move_count)


def validate_session_id(session_id: str) -> str:
    if not SESSION_ID_PATTERN.match(session_id or ""):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


class SnapshotStore:
    """One JSON file per session under ``directory``."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def path_for(self, session_id: str) -> str:
        return os.path.join(self.directory, f"{validate_session_id(session_id)}.json")

    def save(self, session_id: str, snapshot: SessionSnapshot) -> None:
        path = self.path_for(session_id)
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(encode_snapshot(snapshot))
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def load(self, session_id: str, board_size: int) -> Optional[SessionSnapshot]:
        path = self.path_for(session_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return decode_snapshot(fh.read(), board_size)
        except (OSError, UnicodeDecodeError, SnapshotError) as exc:
            logger.warning("Discarding snapshot for session %s: %s", session_id, exc)
            return None

    def delete(self, session_id: str) -> None:
        path = self.path_for(session_id)
        if os.path.exists(path):
            os.unlink(path)


__all__ = [
    "STORAGE_KEY",
    "SnapshotError",
    "SnapshotStore",
    "decode_snapshot",
    "encode_snapshot",
    "validate_session_id",
]
