"""
LLM Games package: human-vs-LLM board games (chess, tic-tac-toe).

Components:
- engines: per-game rules behind the GameEngine protocol (python-chess for chess)
- prompt_builders/prompting: per-game prompts and JSON reply parsing
- llm_client: text-completion transport (OpenAI-compatible wire format; base_url configurable)
- orchestrator: attempt/validate/retry loop that yields a legal AI move
- factory/sessions: game registry and live session management
- web: Flask API over the session manager
"""
# Package exports are intentionally minimal; import modules directly as needed.
