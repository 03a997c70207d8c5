import unittest
from unittest.mock import AsyncMock

from llmgames.errors import InvalidSessionConfig, UnsupportedGameType
from llmgames.factory import default_factory
from llmgames.orchestrator import MoveOrchestrator
from llmgames.sessions import SessionManager
from play_one import start_session


class StartSessionTests(unittest.TestCase):
    def setUp(self):
        completer = AsyncMock()
        self.manager = SessionManager(default_factory(), MoveOrchestrator(completer, sleep=AsyncMock()))

    def test_ai_side_is_required(self):
        with self.assertRaises(InvalidSessionConfig) as ctx:
            start_session(self.manager, "tictactoe", None, {})
        self.assertIn("x, o", ctx.exception.message)
        self.assertEqual(self.manager.list_sessions(), [])

    def test_unknown_game_and_side_are_typed(self):
        with self.assertRaises(UnsupportedGameType):
            start_session(self.manager, "go", "black", {})
        with self.assertRaises(InvalidSessionConfig):
            start_session(self.manager, "chess", "x", {})
        with self.assertRaises(InvalidSessionConfig):
            start_session(self.manager, "chess", "black", {"max_attempts": "many"})

    def test_creates_session_with_explicit_side(self):
        session = start_session(self.manager, "chess", "white", {"model": "m", "max_attempts": 2}, strategy="attack")
        self.assertEqual(session.ai_side, "white")
        self.assertEqual(session.human_side, "black")
        self.assertEqual(session.ai_config.model, "m")
        self.assertEqual(session.ai_config.max_attempts, 2)
        self.assertEqual(session.strategy, "attack")


if __name__ == "__main__":
    unittest.main()
