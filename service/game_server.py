import logging
import os
import threading
from collections import OrderedDict
from typing import Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from board_rules import Direction, valid_moves
from game_session import GameSession
from settings import GameConfig, allowed_origins, log_level, max_live_sessions, resolve_seed, resolve_state_dir
from snapshot_store import STORAGE_KEY, SnapshotStore, validate_session_id
from spawn import RandomCellChooser

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": allowed_origins()}})

_store: Optional[SnapshotStore] = None
# Most recently used last. Every accepted turn and reset is already on disk,
# so evicted sessions are simply dropped and restored on their next request.
_sessions: "OrderedDict[str, GameSession]" = OrderedDict()
# One request touches the sessions at a time, which keeps one turn in flight.
_lock = threading.RLock()


def get_store() -> SnapshotStore:
    global _store
    if _store is None:
        _store = SnapshotStore(resolve_state_dir())
    return _store


def new_session() -> GameSession:
    return GameSession(GameConfig.from_env(), RandomCellChooser(resolve_seed()))


def get_session(session_id: str, start_game: bool = True) -> GameSession:
    """Return the live session, restoring it from disk or starting a new game.

    A new game is not saved here; it reaches the store with its first
    accepted move or reset. With ``start_game`` false an unknown session is
    left empty for the caller to reset.
    """
    session = _sessions.get(session_id)
    if session is not None:
        _sessions.move_to_end(session_id)
        return session

    session = new_session()
    snapshot = get_store().load(session_id, session.config.board_size)
    restored = False
    if snapshot is not None:
        try:
            session.restore(snapshot)
            restored = True
        except ValueError as exc:
            logger.warning("Could not restore session %s: %s", session_id, exc)
    if not restored and start_game:
        session.reset_game()

    _sessions[session_id] = session
    limit = max_live_sessions()
    while len(_sessions) > limit:
        evicted, _ = _sessions.popitem(last=False)
        logger.debug("Evicted session %s from memory", evicted)
    return session


def describe(session: GameSession) -> Dict[str, object]:
    grid = session.get_grid()
    return {
        "grid": grid.tolist(),
        "moveCount": session.get_move_count(),
        "outcome": session.outcome.value,
        "valid_moves": [] if session.outcome.terminal else valid_moves(grid),
    }


@app.errorhandler(404)
def not_found(exc):
    return jsonify({"error": "Not found"}), 404


@app.get("/state", defaults={"session_id": STORAGE_KEY})
@app.get("/sessions/<session_id>")
def state(session_id: str):
    try:
        validate_session_id(session_id)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 404
    with _lock:
        return jsonify(describe(get_session(session_id)))


@app.post("/reset", defaults={"session_id": STORAGE_KEY})
@app.post("/sessions/<session_id>/reset")
def reset(session_id: str):
    try:
        validate_session_id(session_id)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 404

    with _lock:
        session = get_session(session_id, start_game=False)
        turn = session.reset_game()
        get_store().save(session_id, session.snapshot())
    return jsonify({"turn": turn.to_dict(), "valid_moves": valid_moves(turn.grid)})


@app.post("/move", defaults={"session_id": STORAGE_KEY})
@app.post("/sessions/<session_id>/move")
def move(session_id: str):
    try:
        validate_session_id(session_id)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 404

    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Payload must be a JSON object"}), 400
    if payload.get("direction") is None:
        return jsonify({"error": "Payload must include 'direction' key"}), 400

    try:
        direction = Direction.parse(payload["direction"])
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    with _lock:
        session = get_session(session_id)
        turn = session.submit_move(direction)
        if turn is None:
            response = describe(session)
            response["accepted"] = False
            return jsonify(response)
        get_store().save(session_id, session.snapshot())

    return jsonify(
        {
            "accepted": True,
            "turn": turn.to_dict(),
            "valid_moves": [] if turn.outcome.terminal else valid_moves(turn.grid),
        }
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=log_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        GameConfig.from_env()
        max_live_sessions()
    except ValueError as exc:
        raise SystemExit(f"Invalid game configuration: {exc}")
    logger.info("Storing sessions in %s", resolve_state_dir())
    port = int(os.environ.get("PORT", 5050))
    app.run(host="0.0.0.0", port=port, debug=bool(os.environ.get("FLASK_DEBUG")))
