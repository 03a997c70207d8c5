"""
Shared prompt helpers for LLM move requests.

Prompt builders render per-game templates with placeholders that are substituted
per turn, and parse the model's JSON reply into a MoveProposal:

- render_custom_prompt: {KEY} placeholder substitution (unknown tokens are left intact).
- strip_code_fence: remove ``` / ```json fences wrapping the reply.
- extract_json_object: locate and decode the first {...} block in free text.
- parse_move_payload: validate the required "move"/"strategy" fields and bound the strategy length.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import SETTINGS
from .errors import ParseError

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?([\s\S]*?)\n?\s*```")

RESPONSE_FORMAT_TEMPLATE = """IMPORTANT: reply with ONLY a JSON object in exactly this format:
{
  "move": "{MOVE_HINT}",
  "strategy": "your updated plan for the next moves (at most {STRATEGY_MAX} characters)",
  "reasoning": "optional short justification of the move"
}
No text before or after the JSON."""


@dataclass(frozen=True)
class MoveProposal:
    """Structured reply parsed from model text. `move` is already normalized by the builder."""

    move: Any
    strategy: str
    reasoning: Optional[str] = None


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def render_response_format(move_hint: str, strategy_max_chars: int = SETTINGS.strategy_max_chars) -> str:
    return render_custom_prompt(
        RESPONSE_FORMAT_TEMPLATE,
        {"MOVE_HINT": move_hint, "STRATEGY_MAX": str(strategy_max_chars)},
    )


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block if present, else the stripped text."""
    text = (text or "").strip()
    m = FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    return text


def extract_json_object(text: str) -> Dict[str, Any]:
    body = strip_code_fence(text)
    m = JSON_OBJECT_RE.search(body)
    if not m:
        raise ParseError("no JSON object found in the response")
    try:
        payload = json.loads(m.group(0))
    except json.JSONDecodeError as exc:
        raise ParseError(f"response JSON is malformed: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ParseError("response JSON is not an object")
    return payload


def truncate(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit].rstrip()


def parse_move_payload(text: str, strategy_max_chars: int = SETTINGS.strategy_max_chars) -> MoveProposal:
    """Decode `text` into a MoveProposal with a raw (trimmed) move string.

    Raises ParseError when no JSON object is present or when "move"/"strategy" are
    missing or not strings. An overlong strategy is truncated, never rejected.
    """
    payload = extract_json_object(text)
    move = payload.get("move")
    strategy = payload.get("strategy")
    if move is None:
        raise ParseError('response is missing the "move" field')
    if not isinstance(move, str):
        raise ParseError('"move" must be a string')
    if strategy is None:
        raise ParseError('response is missing the "strategy" field')
    if not isinstance(strategy, str):
        raise ParseError('"strategy" must be a string')
    move = move.strip()
    if not move:
        raise ParseError('"move" is empty')
    reasoning = payload.get("reasoning")
    if isinstance(reasoning, str):
        reasoning = reasoning.strip() or None
    else:
        reasoning = None
    return MoveProposal(
        move=move,
        strategy=truncate(strategy.strip(), strategy_max_chars),
        reasoning=reasoning,
    )
