import unittest
from unittest.mock import patch

from llmgames.config import SETTINGS, AiConfig, default_ai_config
from llmgames.errors import InvalidSessionConfig


class AiConfigTests(unittest.TestCase):
    def test_defaults_come_from_settings(self):
        cfg = AiConfig()
        self.assertEqual(cfg.model, SETTINGS.default_model)
        self.assertEqual(cfg.max_attempts, SETTINGS.max_attempts)
        self.assertIsNone(cfg.api_key)

    def test_from_payload_accepts_camel_case_and_casts(self):
        cfg = AiConfig.from_payload(
            {"model": "x-1", "maxTokens": "256", "maxAttempts": 5, "temperature": "0.2", "apiKey": "k", "fallbackModel": "y"}
        )
        self.assertEqual(cfg.model, "x-1")
        self.assertEqual(cfg.max_tokens, 256)
        self.assertEqual(cfg.max_attempts, 5)
        self.assertAlmostEqual(cfg.temperature, 0.2)
        self.assertEqual(cfg.api_key, "k")
        self.assertEqual(cfg.fallback_model, "y")

    def test_from_payload_overlays_base_and_skips_empty(self):
        base = AiConfig(model="base", api_key="secret")
        cfg = AiConfig.from_payload({"model": "", "timeout_s": 9, "unknown": 1}, base)
        self.assertEqual(cfg.model, "base")
        self.assertEqual(cfg.api_key, "secret")
        self.assertEqual(cfg.timeout_s, 9.0)
        self.assertIs(AiConfig.from_payload(None, base), base)

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            AiConfig(max_attempts=0)
        with self.assertRaises(ValueError):
            AiConfig.from_payload({"max_attempts": "many"})
        with self.assertRaises(ValueError):
            AiConfig.from_payload({"timeout_s": 0})

    def test_model_is_required(self):
        for model in ("", "   "):
            with self.assertRaises(ValueError):
                AiConfig(model=model)
        with self.assertRaises(ValueError):
            AiConfig.from_payload({"model": "  "}, AiConfig(model="base"))

    def test_unusable_default_is_typed(self):
        with patch("llmgames.config.AiConfig", side_effect=ValueError("model is required")):
            with self.assertRaises(InvalidSessionConfig) as ctx:
                default_ai_config()
        self.assertIn("model is required", ctx.exception.message)


if __name__ == "__main__":
    unittest.main()
