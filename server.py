"""
Launch the LLM Games Flask API.

Wires the default game registry (chess, tic-tac-toe), the OpenAI-compatible completer,
the move orchestrator and the session manager, then serves llmgames.web on --host/--port.
See llmgames.web for the endpoint list.
"""
from __future__ import annotations

import argparse
import logging

from llmgames.config import SETTINGS
from llmgames.factory import default_factory
from llmgames.llm_client import OpenAICompleter
from llmgames.orchestrator import MoveOrchestrator
from llmgames.sessions import SessionManager
from llmgames.web import LoopRunner, create_app


def build_app():
    runner = LoopRunner()
    manager = SessionManager(default_factory(), MoveOrchestrator(OpenAICompleter()))
    return create_app(manager, runner)


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="0.0.0.0")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--debug", action="store_true")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    log_level = (args.log_level or SETTINGS.log_level).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not SETTINGS.llm_api_key:
        logging.getLogger("server").warning("No API key configured; AI moves need a per-request api_key")

    app = build_app()
    # The reloader would fork a second background loop; keep it off.
    app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False, threaded=True)
