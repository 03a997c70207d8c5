import asyncio
import json
import unittest
from unittest.mock import AsyncMock

from llmgames.config import AiConfig
from llmgames.errors import (
    AiExhausted,
    InvalidMove,
    InvalidSessionConfig,
    NoLegalMoves,
    SessionNotFound,
    UnsupportedGameType,
)
from llmgames.factory import default_factory
from llmgames.orchestrator import MoveOrchestrator
from llmgames.sessions import SessionManager, SessionStatus


def reply(move, strategy="plan"):
    return json.dumps({"move": move, "strategy": strategy})


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


class QueueCompleter:
    def __init__(self, *replies, gate=None):
        self.replies = list(replies)
        self.gate = gate
        self.calls = 0

    async def complete(self, prompt, options):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.replies.pop(0)


class SessionManagerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cfg = AiConfig(model="m", max_attempts=2, retry_delay_s=0.0, timeout_s=5.0, api_key="k")

    def manager(self, completer):
        orchestrator = MoveOrchestrator(completer, sleep=AsyncMock())
        return SessionManager(default_factory(), orchestrator, clock=self.clock)

    async def test_create_session(self):
        mgr = self.manager(QueueCompleter())
        session = mgr.create_session("chess", "black", ai_config=self.cfg)
        self.assertTrue(session.id.startswith("game_"))
        self.assertEqual(session.human_side, "white")
        self.assertEqual(session.status, SessionStatus.ACTIVE)
        self.assertEqual(session.strategy, session.prompt_builder.default_strategy)
        self.assertIs(mgr.get_session(session.id), session)
        other = mgr.create_session("chess", "black")
        self.assertNotEqual(session.id, other.id)

    async def test_create_session_validates_inputs(self):
        mgr = self.manager(QueueCompleter())
        with self.assertRaises(UnsupportedGameType):
            mgr.create_session("go", "black")
        with self.assertRaises(InvalidSessionConfig):
            mgr.create_session("chess", "x")
        with self.assertRaises(InvalidSessionConfig):
            mgr.create_session("tictactoe", "ai")

    async def test_human_then_ai_move(self):
        mgr = self.manager(QueueCompleter(reply("e5", "mirror white")))
        session = mgr.create_session("chess", "black", ai_config=self.cfg, strategy="solid")
        self.clock.now += 5
        result = await mgr.apply_human_move(session.id, "e2e4")
        self.assertEqual(result.record.move, "e4")
        self.assertEqual(result.record.player, "human")
        self.assertFalse(result.game_end.is_over)
        self.assertEqual(session.last_activity_at, 1_005.0)

        ai = await mgr.request_ai_move(session.id)
        self.assertEqual(ai.move, "e5")
        self.assertEqual(ai.new_strategy, "mirror white")
        self.assertEqual(ai.attempts_used, 1)
        self.assertEqual(session.strategy, "mirror white")
        self.assertEqual(ai.record.raw_model_text, reply("e5", "mirror white"))
        self.assertEqual([r.move for r in session.history], ["e4", "e5"])
        self.assertEqual([r.player for r in session.history], ["human", "ai"])

    async def test_human_move_rejections(self):
        mgr = self.manager(QueueCompleter())
        session = mgr.create_session("chess", "white", ai_config=self.cfg)
        with self.assertRaises(InvalidMove):
            await mgr.apply_human_move(session.id, "e5")
        with self.assertRaises(SessionNotFound):
            await mgr.apply_human_move("game_missing", "e4")
        self.assertEqual(session.history, [])

    async def test_ai_move_off_turn(self):
        completer = QueueCompleter(reply("e4"))
        mgr = self.manager(completer)
        session = mgr.create_session("chess", "black", ai_config=self.cfg)
        with self.assertRaises(NoLegalMoves):
            await mgr.request_ai_move(session.id)
        self.assertEqual(completer.calls, 0)

    async def test_ai_exhaustion_leaves_session_unchanged(self):
        mgr = self.manager(QueueCompleter(reply("Ke2", "s1"), reply("Ke2", "s2")))
        session = mgr.create_session("chess", "white", ai_config=self.cfg, strategy="start")
        with self.assertRaises(AiExhausted):
            await mgr.request_ai_move(session.id)
        self.assertEqual(session.history, [])
        self.assertEqual(session.strategy, "start")
        self.assertEqual(session.state, session.engine.initial_state())

    async def test_game_finishes(self):
        mgr = self.manager(QueueCompleter(reply("1,0"), reply("1,1")))
        session = mgr.create_session("tictactoe", "o", ai_config=self.cfg)
        await mgr.apply_human_move(session.id, "0,0")
        await mgr.request_ai_move(session.id)
        await mgr.apply_human_move(session.id, [0, 1])
        await mgr.request_ai_move(session.id)
        result = await mgr.apply_human_move(session.id, {"row": 0, "col": 2})
        self.assertTrue(result.game_end.is_over)
        self.assertEqual(result.game_end.winner, "x")
        self.assertEqual(session.status, SessionStatus.FINISHED)
        self.assertEqual([r.move for r in session.history], ["0,0", "1,0", "0,1", "1,1", "0,2"])
        with self.assertRaises(InvalidMove):
            await mgr.apply_human_move(session.id, "2,2")
        with self.assertRaises(NoLegalMoves):
            await mgr.request_ai_move(session.id)

    async def test_reclaim_stale(self):
        mgr = self.manager(QueueCompleter())
        old = mgr.create_session("chess", "black")
        self.clock.now += 500
        fresh = mgr.create_session("tictactoe", "o")
        self.clock.now += 100
        self.assertEqual(mgr.reclaim_stale(max_idle_s=300), 1)
        self.assertIsNone(mgr.get_session(old.id))
        self.assertIs(mgr.get_session(fresh.id), fresh)
        with self.assertRaises(SessionNotFound):
            mgr.require_session(old.id)

    async def test_remove_session(self):
        mgr = self.manager(QueueCompleter())
        session = mgr.create_session("chess", "black")
        self.assertTrue(mgr.remove_session(session.id))
        self.assertFalse(mgr.remove_session(session.id))
        self.assertEqual(mgr.list_sessions(), [])

    async def test_moves_on_one_session_are_serialised(self):
        gate = asyncio.Event()
        completer = QueueCompleter(reply("e4"), gate=gate)
        mgr = self.manager(completer)
        session = mgr.create_session("chess", "white", ai_config=self.cfg)

        ai_task = asyncio.create_task(mgr.request_ai_move(session.id))
        while completer.calls == 0:
            await asyncio.sleep(0)
        human_task = asyncio.create_task(mgr.apply_human_move(session.id, "e5"))
        await asyncio.sleep(0)
        self.assertFalse(human_task.done())
        self.assertEqual(mgr.reclaim_stale(max_idle_s=-1), 0)

        gate.set()
        ai, human = await asyncio.gather(ai_task, human_task)
        self.assertEqual(ai.move, "e4")
        self.assertEqual(human.record.move, "e5")
        self.assertEqual([r.move for r in session.history], ["e4", "e5"])

    async def test_views(self):
        mgr = self.manager(QueueCompleter())
        session = mgr.create_session("tictactoe", "x", ai_config=self.cfg)
        summaries = mgr.list_sessions()
        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0]["id"], session.id)
        self.assertEqual(summaries[0]["current_side"], "x")
        view = mgr.session_to_dict(session)
        self.assertEqual(view["ai_side"], "x")
        self.assertEqual(view["human_side"], "o")
        self.assertEqual(view["state"]["current_player"], "x")
        self.assertEqual(len(view["legal_moves"]), 9)
        self.assertEqual(view["end"], {"is_over": False, "winner": None, "reason": None})
        self.assertEqual(view["model"], "m")


if __name__ == "__main__":
    unittest.main()
