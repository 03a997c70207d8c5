"""
Flask API over the SessionManager.

Endpoints:
- GET    /api/health                       -> liveness + supported games
- GET    /api/games                        -> {"games": [types], "details": [metadata]}
- POST   /api/games/<game_type>/sessions   -> create a session; body {ai_side, ai_config?, strategy?}
- GET    /api/sessions                     -> session summaries
- GET    /api/sessions/<id>                -> session descriptor
- POST   /api/sessions/<id>/moves          -> apply a human move; body {move, ai_reply?}
- POST   /api/sessions/<id>/ai-move        -> let the AI play; body = optional ai_config overrides
- DELETE /api/sessions/<id>                -> remove the session

Session work runs as coroutines on one background event loop (LoopRunner), so every
session lock lives on the same loop. Typed GameErrors become {"error": kind, "message": text}.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from flask import Flask, jsonify, request

from .config import SETTINGS, AiConfig
from .errors import (
    AiExhausted,
    CredentialError,
    GameError,
    InvalidMove,
    InvalidSessionConfig,
    NoLegalMoves,
    QuotaExceeded,
    SessionNotFound,
    TransportError,
    UnsupportedGameType,
)
from .sessions import SessionManager

log = logging.getLogger("web")

T = TypeVar("T")


class BadRequest(GameError):
    kind = "bad_request"


ERROR_STATUS: Dict[type, int] = {
    BadRequest: 400,
    UnsupportedGameType: 404,
    SessionNotFound: 404,
    InvalidMove: 400,
    InvalidSessionConfig: 400,
    NoLegalMoves: 400,
    CredentialError: 401,
    QuotaExceeded: 429,
    AiExhausted: 502,
    TransportError: 502,
}


def status_for(exc: GameError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


class LoopRunner:
    """A private event loop on a daemon thread; Flask handlers submit coroutines to it."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="llmgames-loop", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a plain callable on the loop thread."""

        async def _invoke() -> T:
            return fn(*args, **kwargs)

        return self.run(_invoke())

    def close(self) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self.loop.close()


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def _ai_config(payload: Optional[dict], base: Optional[AiConfig] = None) -> AiConfig:
    if payload is not None and not isinstance(payload, dict):
        raise BadRequest("ai_config must be an object")
    try:
        return AiConfig.from_payload(payload, base)
    except (TypeError, ValueError) as exc:
        raise BadRequest(f"Invalid ai_config: {exc}") from exc


def create_app(manager: SessionManager, runner: Optional[LoopRunner] = None) -> Flask:
    app = Flask(__name__)
    loop = runner or LoopRunner()
    app.extensions["llmgames"] = {"manager": manager, "runner": loop}

    def _cleanup_stale_sessions() -> None:
        loop.call(manager.reclaim_stale, SETTINGS.session_max_idle_s)

    # ---------------- Errors -----------------
    @app.errorhandler(GameError)
    def handle_game_error(exc: GameError):
        status = status_for(exc)
        if status >= 500:
            log.error("%s: %s", exc.kind, exc.message)
        return jsonify({"error": exc.kind, "message": exc.message}), status

    # ---------------- Catalogue -----------------
    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "status": "ok",
                "games": manager.factory.supported_types(),
                "sessions": len(loop.call(manager.list_sessions)),
            }
        )

    @app.route("/api/games", methods=["GET"])
    def list_games():
        return jsonify({"games": manager.factory.supported_types(), "details": manager.factory.games_info()})

    # ---------------- Sessions -----------------
    @app.route("/api/games/<game_type>/sessions", methods=["POST"])
    def create_session(game_type: str):
        _cleanup_stale_sessions()
        data = _json_body()
        ai_side = data.get("ai_side")
        if not ai_side:
            raise InvalidSessionConfig("ai_side is required")
        cfg = _ai_config(data.get("ai_config"))
        strategy = data.get("strategy")
        if strategy is not None and not isinstance(strategy, str):
            raise BadRequest("strategy must be a string")

        def _create() -> dict:
            session = manager.create_session(game_type, ai_side, ai_config=cfg, strategy=strategy)
            return manager.session_to_dict(session)

        return jsonify(loop.call(_create)), 201

    @app.route("/api/sessions", methods=["GET"])
    def list_sessions():
        _cleanup_stale_sessions()
        return jsonify({"sessions": loop.call(manager.list_sessions)})

    @app.route("/api/sessions/<session_id>", methods=["GET"])
    def get_session(session_id: str):
        _cleanup_stale_sessions()
        return jsonify(loop.call(lambda: manager.session_to_dict(manager.require_session(session_id))))

    @app.route("/api/sessions/<session_id>/moves", methods=["POST"])
    def human_move(session_id: str):
        _cleanup_stale_sessions()
        data = _json_body()
        if "move" not in data or data.get("move") in (None, ""):
            raise BadRequest("move is required")
        move = data["move"]
        ai_reply = data.get("ai_reply", False)
        if not isinstance(ai_reply, bool):
            raise BadRequest("ai_reply must be a JSON boolean")

        async def _play() -> dict:
            session = manager.require_session(session_id)
            result = await manager.apply_human_move(session_id, move)
            body: Dict[str, Any] = {
                "move": result.record.to_dict(),
                "game_end": result.game_end.to_dict(),
            }
            if ai_reply and not result.game_end.is_over:
                ai = await manager.request_ai_move(session_id)
                body["ai_move"] = {
                    "move": ai.move,
                    "strategy": ai.new_strategy,
                    "attempts_used": ai.attempts_used,
                }
                body["game_end"] = ai.game_end.to_dict()
            body["session"] = manager.session_to_dict(session)
            return body

        return jsonify(loop.run(_play()))

    @app.route("/api/sessions/<session_id>/ai-move", methods=["POST"])
    def ai_move(session_id: str):
        _cleanup_stale_sessions()
        data = _json_body()
        overrides = data.get("ai_config", data) if data else None

        async def _play() -> dict:
            session = manager.require_session(session_id)
            cfg = _ai_config(overrides, session.ai_config) if overrides else None
            result = await manager.request_ai_move(session_id, cfg)
            return {
                "move": result.move,
                "strategy": result.new_strategy,
                "attempts_used": result.attempts_used,
                "record": result.record.to_dict(),
                "game_end": result.game_end.to_dict(),
                "session": manager.session_to_dict(session),
            }

        return jsonify(loop.run(_play()))

    @app.route("/api/sessions/<session_id>", methods=["DELETE"])
    def delete_session(session_id: str):
        _cleanup_stale_sessions()
        if not loop.call(manager.remove_session, session_id):
            raise SessionNotFound(session_id)
        return jsonify({"deleted": True, "id": session_id})

    # ---------------- CORS -----------------
    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
        # Session state changes every move; never cache it.
        response.headers["Cache-Control"] = "no-store, max-age=0"
        return response

    @app.route("/api/<path:path>", methods=["OPTIONS"])
    def cors_preflight(path: str):
        return app.make_response(("", 204))

    return app
