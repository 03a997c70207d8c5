import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai

from llmgames.errors import CredentialError, InvalidSessionConfig, ModelNotFound, QuotaExceeded, TransportError
from llmgames.llm_client import CompletionOptions, OpenAICompleter, classify_api_error

URL = "https://llm.example.test/v1/chat/completions"


def status_error(cls, status, message="error"):
    request = httpx.Request("POST", URL)
    return cls(message, response=httpx.Response(status, request=request), body=None)


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class ClassifyApiErrorTests(unittest.TestCase):
    def test_status_errors(self):
        cases = [
            (status_error(openai.AuthenticationError, 401), CredentialError),
            (status_error(openai.PermissionDeniedError, 403), CredentialError),
            (status_error(openai.RateLimitError, 429, "quota exceeded"), QuotaExceeded),
            (status_error(openai.NotFoundError, 404, "model not found"), ModelNotFound),
            (status_error(openai.BadRequestError, 400, "Incorrect API key provided"), CredentialError),
            (status_error(openai.BadRequestError, 400, "max_tokens too large"), TransportError),
            (status_error(openai.InternalServerError, 500), TransportError),
        ]
        for exc, expected in cases:
            self.assertIsInstance(classify_api_error(exc), expected, type(exc).__name__)

    def test_model_not_found_is_retryable_transport(self):
        self.assertIsInstance(classify_api_error(status_error(openai.NotFoundError, 404)), TransportError)

    def test_timeout_and_connection(self):
        request = httpx.Request("POST", URL)
        timeout = classify_api_error(openai.APITimeoutError(request=request))
        self.assertIsInstance(timeout, TransportError)
        self.assertIn("timed out", timeout.message)
        self.assertIsInstance(classify_api_error(openai.APIConnectionError(request=request)), TransportError)


class OpenAICompleterTests(unittest.IsolatedAsyncioTestCase):
    def options(self, **kwargs):
        kwargs.setdefault("model", "m")
        kwargs.setdefault("timeout_s", 3.0)
        return CompletionOptions(**kwargs)

    def fake_client(self, create):
        client = MagicMock()
        client.chat.completions.create = create
        return client

    async def test_missing_key_is_credential_error(self):
        completer = OpenAICompleter(api_key="", base_url="")
        with self.assertRaises(CredentialError):
            await completer.complete("hi", self.options())

    async def test_missing_model_is_typed_and_skips_request(self):
        create = AsyncMock()
        completer = OpenAICompleter(api_key="k", base_url="")
        with patch.object(completer, "_client_for", return_value=self.fake_client(create)):
            with self.assertRaises(InvalidSessionConfig):
                await completer.complete("prompt", self.options(model=""))
        create.assert_not_awaited()

    async def test_returns_stripped_text_and_sends_messages(self):
        create = AsyncMock(return_value=completion('  {"move": "e4"}  '))
        completer = OpenAICompleter(api_key="server-key", base_url="")
        with patch.object(completer, "_client_for", return_value=self.fake_client(create)) as client_for:
            text = await completer.complete("prompt", self.options(system="be brief", api_key="user-key"))
        self.assertEqual(text, '{"move": "e4"}')
        client_for.assert_called_once_with("user-key")
        kwargs = create.await_args.kwargs
        self.assertEqual(kwargs["model"], "m")
        self.assertEqual(kwargs["timeout"], 3.0)
        self.assertEqual(kwargs["messages"][0], {"role": "system", "content": "be brief"})
        self.assertEqual(kwargs["messages"][1], {"role": "user", "content": "prompt"})

    async def test_sdk_errors_are_classified(self):
        create = AsyncMock(side_effect=status_error(openai.RateLimitError, 429))
        completer = OpenAICompleter(api_key="k", base_url="")
        with patch.object(completer, "_client_for", return_value=self.fake_client(create)):
            with self.assertRaises(QuotaExceeded):
                await completer.complete("prompt", self.options())

    async def test_empty_reply_is_transport_error(self):
        create = AsyncMock(return_value=completion(None))
        completer = OpenAICompleter(api_key="k", base_url="")
        with patch.object(completer, "_client_for", return_value=self.fake_client(create)):
            with self.assertRaises(TransportError):
                await completer.complete("prompt", self.options())

    def test_client_cached_per_key(self):
        completer = OpenAICompleter(api_key="k", base_url="http://localhost:9/v1")
        first = completer._client_for("a")
        self.assertIs(completer._client_for("a"), first)
        self.assertIsNot(completer._client_for("b"), first)

    async def test_client_cache_is_bounded_and_closes_evicted(self):
        completer = OpenAICompleter(api_key="k", base_url="http://localhost:9/v1", max_clients=2)
        first = completer._client_for("a")
        completer._client_for("b")
        completer._client_for("a")
        second = completer._clients["b"]
        completer._client_for("c")
        self.assertEqual(list(completer._clients), ["a", "c"])
        self.assertIs(completer._clients["a"], first)
        await completer._close_evicted()
        self.assertTrue(second.is_closed())
        self.assertFalse(first.is_closed())
        await completer.close()
        self.assertTrue(first.is_closed())
        self.assertEqual(len(completer._clients), 0)


if __name__ == "__main__":
    unittest.main()
