import os
from dataclasses import dataclass
from typing import Optional

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class GameConfig:
    board_size: int = 5
    min_tile: int = 3
    target_value: int = 3072
    spawn_per_move: int = 1
    spawn_at_start: int = 2

    def __post_init__(self) -> None:
        if self.board_size < 2:
            raise ValueError(f"board_size must be at least 2, got {self.board_size}")
        if self.min_tile < 1:
            raise ValueError(f"min_tile must be positive, got {self.min_tile}")
        if self.target_value <= self.min_tile:
            raise ValueError("target_value must exceed min_tile")
        if self.spawn_per_move < 0 or self.spawn_at_start < 0:
            raise ValueError("spawn counts must not be negative")

    @classmethod
    def from_env(cls) -> "GameConfig":
        return cls(
            board_size=_env_int("MERGE_BOARD_SIZE", cls.board_size),
            min_tile=_env_int("MERGE_MIN_TILE", cls.min_tile),
            target_value=_env_int("MERGE_TARGET_VALUE", cls.target_value),
            spawn_per_move=_env_int("MERGE_SPAWN_PER_MOVE", cls.spawn_per_move),
            spawn_at_start=_env_int("MERGE_SPAWN_AT_START", cls.spawn_at_start),
        )


def resolve_state_dir() -> str:
    env_path = os.environ.get("MERGE_STATE_DIR")
    if env_path:
        return os.path.abspath(env_path)
    return os.path.join(PROJECT_ROOT, "game_state")


def resolve_seed() -> Optional[int]:
    raw = os.environ.get("MERGE_SEED")
    if not raw:
        return None
    return _env_int("MERGE_SEED", 0)


def allowed_origins() -> str:
    return os.environ.get("MERGE_ALLOWED_ORIGINS", "*")


def log_level() -> str:
    return os.environ.get("MERGE_LOG_LEVEL", "INFO").upper()


def max_live_sessions() -> int:
    limit = _env_int("MERGE_MAX_SESSIONS", 256)
    if limit < 1:
        raise ValueError(f"MERGE_MAX_SESSIONS must be at least 1, got {limit}")
    return limit
