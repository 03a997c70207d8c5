"""
Configuration and environment loading for LLM Games.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables (.env honoured).
- Exposes SETTINGS with keys used across the project (API key, endpoint, completion and retry knobs, session TTL).
- AiConfig carries the per-request AI knobs; defaults come from SETTINGS.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import os
from typing import Any, Callable, Optional

import yaml
from dotenv import load_dotenv

from .errors import InvalidSessionConfig

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/llmgames/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.environ.get("LLMGAMES_SETTINGS_PATH") or os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str

    # Completion defaults
    default_model: str
    temperature: float
    max_tokens: int
    responses_timeout_s: float

    # Move orchestration
    max_attempts: int
    retry_delay_s: float
    strategy_max_chars: int

    # Sessions
    session_max_idle_s: float

    log_level: str


SETTINGS = Settings(
    llm_api_key=_get("LLMGAMES_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
    api_base=_get("LLMGAMES_LLM_BASE_URL", ""),
    default_model=_get("LLMGAMES_DEFAULT_MODEL", "gpt-4o-mini"),
    temperature=float(_get("LLMGAMES_TEMPERATURE", 0.7, cast=float)),
    max_tokens=int(_get("LLMGAMES_MAX_TOKENS", 1024, cast=int)),
    responses_timeout_s=float(_get("LLMGAMES_RESPONSES_TIMEOUT_S", 60.0, cast=float)),
    max_attempts=int(_get("LLMGAMES_MAX_ATTEMPTS", 3, cast=int)),
    retry_delay_s=float(_get("LLMGAMES_RETRY_DELAY_S", 1.0, cast=float)),
    strategy_max_chars=int(_get("LLMGAMES_STRATEGY_MAX_CHARS", 200, cast=int)),
    session_max_idle_s=float(_get("LLMGAMES_SESSION_MAX_IDLE_S", 24 * 60 * 60, cast=float)),
    log_level=str(_get("LLMGAMES_LOG_LEVEL", "INFO")),
)


@dataclass(frozen=True)
class AiConfig:
    """Knobs for one AI turn (model selection, sampling, retry budget)."""

    model: str = SETTINGS.default_model
    temperature: float = SETTINGS.temperature
    max_tokens: int = SETTINGS.max_tokens
    timeout_s: float = SETTINGS.responses_timeout_s
    max_attempts: int = SETTINGS.max_attempts
    retry_delay_s: float = SETTINGS.retry_delay_s
    # Per-request key (e.g. supplied by the UI); SETTINGS.llm_api_key is used when empty.
    api_key: Optional[str] = None
    fallback_model: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.model or "").strip():
            raise ValueError("model is required; set it in ai_config or LLMGAMES_DEFAULT_MODEL")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")

    @classmethod
    def from_payload(cls, payload: Optional[dict], base: Optional["AiConfig"] = None) -> "AiConfig":
        """Overlay known keys from a JSON payload (camelCase accepted) onto `base`."""
        base = base or cls()
        payload = payload or {}
        aliases = {
            "model": "model",
            "temperature": "temperature",
            "max_tokens": "max_tokens",
            "maxTokens": "max_tokens",
            "timeout_s": "timeout_s",
            "max_attempts": "max_attempts",
            "maxAttempts": "max_attempts",
            "retry_delay_s": "retry_delay_s",
            "api_key": "api_key",
            "apiKey": "api_key",
            "fallback_model": "fallback_model",
            "fallbackModel": "fallback_model",
        }
        casts: dict[str, Callable[[Any], Any]] = {
            "temperature": float,
            "max_tokens": int,
            "timeout_s": float,
            "max_attempts": int,
            "retry_delay_s": float,
        }
        updates: dict[str, Any] = {}
        for key, field_name in aliases.items():
            val = payload.get(key)
            if val is None or val == "":
                continue
            cast = casts.get(field_name)
            updates[field_name] = cast(val) if cast else val
        return replace(base, **updates) if updates else base


def default_ai_config() -> AiConfig:
    """AiConfig built from SETTINGS alone; an unusable default is a session configuration error."""
    try:
        return AiConfig()
    except ValueError as exc:
        raise InvalidSessionConfig(f"Invalid default AI settings: {exc}") from exc
