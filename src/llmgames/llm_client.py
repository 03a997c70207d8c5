from __future__ import annotations
"""
Text-completion client facade (OpenAI-compatible transport; configurable base URL).

The orchestrator only sees `TextCompleter.complete(prompt, options) -> str`. This module
talks to the endpoint with `model` + `messages`, returns raw text, and classifies SDK
failures into the llmgames error taxonomy:

- missing/rejected key            -> CredentialError (fatal)
- quota / rate-limit rejection    -> QuotaExceeded (fatal)
- unknown model                   -> ModelNotFound (retryable, may trigger fallback model)
- timeout / connection / 5xx etc. -> TransportError (retryable)
"""
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol
import logging

import openai
from openai import AsyncOpenAI

from .config import SETTINGS
from .errors import CredentialError, InvalidSessionConfig, ModelNotFound, QuotaExceeded, TransportError

log = logging.getLogger("llm_client")

MAX_CACHED_CLIENTS = 8

SYSTEM = "You are an expert board game player. When asked for a move, decide the best move."


@dataclass(frozen=True)
class CompletionOptions:
    model: str
    temperature: float = SETTINGS.temperature
    max_tokens: int = SETTINGS.max_tokens
    timeout_s: float = SETTINGS.responses_timeout_s
    api_key: Optional[str] = None
    system: Optional[str] = None


class TextCompleter(Protocol):
    async def complete(self, prompt: str, options: CompletionOptions) -> str:  # pragma: no cover
        ...


class OpenAICompleter:
    """Chat-completions transport.

    AsyncOpenAI clients are cached per API key in a small LRU, since the web UI may
    send a different key with each request. Evicted clients are closed on the next call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_clients: int = MAX_CACHED_CLIENTS,
    ):
        self.api_key = api_key if api_key is not None else SETTINGS.llm_api_key
        self.base_url = base_url if base_url is not None else SETTINGS.api_base
        self.max_clients = max(1, max_clients)
        self._clients: "OrderedDict[str, AsyncOpenAI]" = OrderedDict()
        self._evicted: List[AsyncOpenAI] = []

    def _client_for(self, api_key: str) -> AsyncOpenAI:
        client = self._clients.get(api_key)
        if client is not None:
            self._clients.move_to_end(api_key)
            return client
        # SDK-level retries are disabled; the orchestrator owns the retry policy.
        client = AsyncOpenAI(api_key=api_key, base_url=self.base_url or None, max_retries=0)
        self._clients[api_key] = client
        while len(self._clients) > self.max_clients:
            _, old = self._clients.popitem(last=False)
            self._evicted.append(old)
        return client

    async def _close_evicted(self) -> None:
        while self._evicted:
            await self._evicted.pop().close()

    async def complete(self, prompt: str, options: CompletionOptions) -> str:
        api_key = (options.api_key or self.api_key or "").strip()
        if not api_key:
            raise CredentialError("No API key configured for the text-completion service")
        if not options.model:
            raise InvalidSessionConfig("Model is required; set it in ai_config or LLMGAMES_DEFAULT_MODEL")
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": options.system or SYSTEM},
            {"role": "user", "content": prompt},
        ]
        client = self._client_for(api_key)
        await self._close_evicted()
        try:
            rsp = await client.chat.completions.create(
                model=options.model,
                messages=messages,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                timeout=options.timeout_s,
            )
        except openai.APIError as exc:
            raise classify_api_error(exc) from exc
        text = _extract_text(rsp)
        if not text:
            raise TransportError("Empty response from the text-completion service")
        return text.strip()

    async def close(self) -> None:
        self._evicted.extend(self._clients.values())
        self._clients.clear()
        await self._close_evicted()


def classify_api_error(exc: openai.APIError) -> Exception:
    """Map an SDK exception onto the llmgames taxonomy."""
    message = str(exc)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return CredentialError(f"The text-completion service rejected the API key: {message}")
    if isinstance(exc, openai.RateLimitError):
        return QuotaExceeded(f"Quota or rate limit exceeded: {message}")
    if isinstance(exc, openai.NotFoundError):
        return ModelNotFound(f"Model not found: {message}")
    if isinstance(exc, openai.BadRequestError) and "api key" in message.lower():
        return CredentialError(f"The text-completion service rejected the API key: {message}")
    if isinstance(exc, openai.APITimeoutError):
        return TransportError("Request to the text-completion service timed out")
    if isinstance(exc, openai.APIConnectionError):
        return TransportError(f"Connection to the text-completion service failed: {message}")
    return TransportError(f"Text-completion request failed: {message}")


def _extract_text(rsp) -> str:
    choices = getattr(rsp, "choices", None)
    if not choices:
        return ""
    content = getattr(choices[0].message, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
