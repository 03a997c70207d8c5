import unittest

from llmgames.engines import Cell, ChessEngine, TicTacToeEngine
from llmgames.errors import NoLegalMoves, ParseError
from llmgames.prompt_builders import ChessPromptBuilder, TicTacToePromptBuilder
from llmgames.prompting import parse_move_payload, render_custom_prompt, strip_code_fence


class PromptingHelpersTests(unittest.TestCase):
    def test_render_custom_prompt_leaves_unknown_tokens(self):
        self.assertEqual(render_custom_prompt("{A} and {B}", {"A": "1"}), "1 and {B}")

    def test_strip_code_fence(self):
        self.assertEqual(strip_code_fence('```json\n{"move": "e4"}\n```'), '{"move": "e4"}')
        self.assertEqual(strip_code_fence("  plain  "), "plain")

    def test_parse_tolerates_prose_and_fences(self):
        text = 'Sure! Here is my answer:\n```json\n{"move": " e4 ", "strategy": " open center "}\n```\nGood luck.'
        proposal = parse_move_payload(text)
        self.assertEqual(proposal.move, "e4")
        self.assertEqual(proposal.strategy, "open center")
        self.assertIsNone(proposal.reasoning)

    def test_parse_truncates_strategy(self):
        proposal = parse_move_payload('{"move": "e4", "strategy": "%s"}' % ("a" * 500), strategy_max_chars=200)
        self.assertEqual(len(proposal.strategy), 200)

    def test_parse_errors(self):
        cases = [
            "no json here",
            '{"move": "e4"}',
            '{"strategy": "x"}',
            '{"move": 5, "strategy": "x"}',
            '{"move": "e4", "strategy": ["x"]}',
            '{"move": "e4", "strategy": ',
            '{"move": "   ", "strategy": "x"}',
        ]
        for text in cases:
            with self.assertRaises(ParseError, msg=text):
                parse_move_payload(text)


class ChessPromptBuilderTests(unittest.TestCase):
    def setUp(self):
        self.engine = ChessEngine()
        self.builder = ChessPromptBuilder()
        self.state = self.engine.initial_state()

    def test_move_selection_lists_every_legal_move(self):
        legal = self.engine.legal_moves(self.state, "white")
        prompt = self.builder.build_move_selection_prompt(self.state, legal, "strategy", "white")
        for move in legal:
            self.assertIn(move, prompt)
        self.assertIn('"move"', prompt)
        self.assertIn('"strategy"', prompt)

    def test_move_selection_requires_moves(self):
        with self.assertRaises(NoLegalMoves):
            self.builder.build_move_selection_prompt(self.state, [], "s", "white")

    def test_analysis_prompt_contents(self):
        prompt = self.builder.build_analysis_prompt(self.state, "Control the center", "white")
        self.assertIn(self.engine.fen(self.state), prompt)
        self.assertIn("Control the center", prompt)
        self.assertIn("opening", prompt)
        self.assertIn("king: e1", prompt)
        self.assertIn("material is level", prompt)

    def test_error_recovery_prompt_contents(self):
        legal = self.engine.legal_moves(self.state, "white")
        prompt = self.builder.build_error_recovery_prompt(self.state, "Ke3", "move is illegal for the current position", legal)
        self.assertIn("Ke3", prompt)
        self.assertIn("move is illegal for the current position", prompt)
        for move in legal:
            self.assertIn(move, prompt)

    def test_parse_response_normalizes_castling(self):
        proposal = self.builder.parse_response('{"move": "0-0", "strategy": "castle"}')
        self.assertEqual(proposal.move, "O-O")
        self.assertEqual(self.builder.parse_response('{"move": "Nf3!", "strategy": "s"}').move, "Nf3")


class TicTacToePromptBuilderTests(unittest.TestCase):
    def setUp(self):
        self.engine = TicTacToeEngine()
        self.builder = TicTacToePromptBuilder()
        self.state = self.engine.initial_state()

    def test_move_selection_lists_every_cell(self):
        legal = self.engine.legal_moves(self.state, "x")
        prompt = self.builder.build_move_selection_prompt(self.state, legal, "s", "x")
        for cell in legal:
            self.assertIn(f'"{cell.row},{cell.col}"', prompt)
        self.assertIn("center", prompt)

    def test_move_selection_requires_moves(self):
        with self.assertRaises(NoLegalMoves):
            self.builder.build_move_selection_prompt(self.state, [], "s", "x")

    def test_analysis_mentions_threats(self):
        state = self.state
        for mv in ("0,0", "1,1", "0,1"):
            state = self.engine.apply_move(state, mv, self.engine.current_side(state))
        prompt = self.builder.build_analysis_prompt(state, "", "o")
        self.assertIn("Danger, block: 0,2", prompt)
        self.assertIn("You hold the center.", prompt)
        self.assertIn(self.builder.default_strategy, prompt)

    def test_parse_response(self):
        proposal = self.builder.parse_response('{"move": "1, 2", "strategy": "take the edge", "reasoning": "block"}')
        self.assertEqual(proposal.move, Cell(1, 2))
        self.assertEqual(proposal.reasoning, "block")
        for bad in ('{"move": "3,3", "strategy": "s"}', '{"move": "middle", "strategy": "s"}', '{"move": "1,1,1", "strategy": "s"}'):
            with self.assertRaises(ParseError, msg=bad):
                self.builder.parse_response(bad)

    def test_error_recovery_restates_reason(self):
        legal = self.engine.legal_moves(self.state, "x")
        prompt = self.builder.build_error_recovery_prompt(self.state, None, "no JSON object found in the response", legal)
        self.assertIn("no JSON object found in the response", prompt)
        self.assertIn("(no move)", prompt)
        self.assertIn('"2,2"', prompt)


if __name__ == "__main__":
    unittest.main()
