import argparse
import asyncio
import json
import logging
from typing import Optional

import chess

from llmgames.config import AiConfig
from llmgames.errors import CredentialError, GameError, InvalidMove, InvalidSessionConfig, QuotaExceeded
from llmgames.factory import default_factory
from llmgames.llm_client import OpenAICompleter
from llmgames.orchestrator import MoveOrchestrator
from llmgames.sessions import GameSession, SessionManager, SessionStatus


def load_json_config(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.getLogger("play_one").error("Failed to read config %s: %s", path, e)
        return {}


def render(manager: SessionManager, session: GameSession) -> str:
    view = manager.session_to_dict(session)
    state = view["state"]
    if "fen" in state:
        return str(chess.Board(state["fen"]))
    if "board" in state:
        rows = [" ".join((cell or ".").upper() for cell in row) for row in state["board"]]
        return "\n".join(rows)
    return json.dumps(state, indent=2)


def start_session(
    manager: SessionManager,
    game: str,
    ai_side: Optional[str],
    ai_payload: dict,
    strategy: Optional[str] = None,
) -> GameSession:
    """Create the terminal session. Raises GameError for an unknown game, side or AI setting."""
    sides = manager.factory.create(game).engine.sides
    if not ai_side:
        raise InvalidSessionConfig(f"--ai-side is required for {game}; choose one of {', '.join(sides)}")
    try:
        ai_cfg = AiConfig.from_payload(ai_payload)
    except (TypeError, ValueError) as e:
        raise InvalidSessionConfig(f"Invalid AI settings: {e}") from e
    return manager.create_session(game, ai_side, ai_config=ai_cfg, strategy=strategy)


async def play(manager: SessionManager, session: GameSession, log: logging.Logger) -> None:
    engine = session.engine
    while session.status is SessionStatus.ACTIVE:
        print()
        print(render(manager, session))
        side = engine.current_side(session.state)
        if side == session.human_side:
            legal = [str(m) for m in engine.legal_moves(session.state, side)]
            raw = input(f"Your move ({side}) [{', '.join(legal)}], or 'quit': ").strip()
            if raw.lower() in ("quit", "exit", "q"):
                print("Bye.")
                return
            try:
                await manager.apply_human_move(session.id, raw)
            except InvalidMove as e:
                print(f"Invalid move: {e.message}")
            continue
        try:
            result = await manager.request_ai_move(session.id)
        except (CredentialError, QuotaExceeded):
            raise
        except GameError as e:
            log.error("AI could not move: %s", e.message)
            return
        print(f"AI ({side}) plays {result.move} after {result.attempts_used} attempt(s)")
        print(f"AI strategy: {result.new_strategy}")

    print()
    print(render(manager, session))
    end = session.end
    print("Result:", end.winner or "draw")
    print("Termination:", end.reason)
    print("Moves:", " ".join(r.move for r in session.history))


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default=None, help="Optional JSON config file to load defaults from.")
    ap.add_argument("--game", choices=["chess", "tictactoe"], default=None, help="Game type to play")
    ap.add_argument("--ai-side", default=None, help="Side the AI plays (white/black or x/o); required here or in the config")
    ap.add_argument("--model", default=None, help="Target model name (overrides config)")
    ap.add_argument("--fallback-model", default=None, help="Model to switch to if the target model is not found")
    ap.add_argument("--max-attempts", type=int, default=None, help="AI attempts per move before giving up")
    ap.add_argument("--strategy", default=None, help="Initial AI strategy text")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")

    args = ap.parse_args()

    # Load config defaults
    cfg_dict = load_json_config(args.config) if args.config else {}

    # Resolve values with precedence: CLI arg if provided -> config -> default
    def pick(*keys, default=None):
        for k in keys:
            v = getattr(args, k, None)
            if v is not None:
                return v
            if k in cfg_dict and cfg_dict[k] is not None:
                return cfg_dict[k]
        return default

    log_level = str(pick("log_level", default="WARNING")).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("play_one")

    game = pick("game", default="chess")
    manager = SessionManager(default_factory(), MoveOrchestrator(OpenAICompleter()))
    ai_payload = {
        "model": pick("model"),
        "fallback_model": pick("fallback_model"),
        "max_attempts": pick("max_attempts"),
    }
    try:
        session = start_session(manager, game, pick("ai_side"), ai_payload, strategy=pick("strategy"))
    except GameError as e:
        ap.error(e.message)
    ai_cfg = session.ai_config
    log.info("Starting %s: model=%s ai_side=%s human_side=%s", game, ai_cfg.model, session.ai_side, session.human_side)
    print(f"{game}: you play {session.human_side}, the AI ({ai_cfg.model}) plays {session.ai_side}")
    asyncio.run(play(manager, session, log))
