"""
Unit tests for the core antichess engine components.

This module contains tests for the board wrapper, random playouts, the MCTS
nodes and the Monte Carlo Tree Search itself.
"""

import unittest
import os
import sys
import math
import random
import chess
import chess.variant

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.chess_environment import AntichessEnvironment
from core.playout import PlayoutSimulator, Outcome, make_random_source
from core.forced_sequences import ForcedSequenceCache
from core.mcts import MonteCarloTreeSearch, MCTSNode, DEFAULT_TIME_LIMIT


# Positions used throughout the tests
NO_WHITE_PIECES = "8/8/8/8/8/8/8/7k w - -"
OPPOSITE_BISHOPS = "8/8/8/8/8/8/8/B6b w - -"
SAME_COLOUR_BISHOPS = "8/8/8/8/8/8/8/B5b1 w - -"
PAWN_CAPTURE = "8/8/8/8/3p4/4P3/8/8 w - -"
KNIGHT_SACRIFICE = "8/8/8/8/8/8/1N6/r7 w - -"
FORCED_LINE = "6b1/8/8/8/8/8/3PP3/7R w - -"
TWO_WINNING_ROOK_MOVES = "8/8/8/2R5/5r2/8/8/8 w - -"
QUEEN_STAIRCASE = "8/7p/8/6Q1/5Q2/4Q3/3Q4/2Q5 w - -"


class FirstChoiceRandom(random.Random):
    """Random source that always takes the first option and never shuffles."""

    def choice(self, seq):
        return seq[0]

    def shuffle(self, x, *args, **kwargs):
        pass


class TestAntichessEnvironment(unittest.TestCase):
    """Tests for the antichess board wrapper."""

    def test_initialization(self):
        """Test default initialization uses the antichess start position."""
        env = AntichessEnvironment()
        self.assertIsInstance(env.board, chess.variant.AntichessBoard)
        self.assertEqual(env.turn, chess.WHITE)
        self.assertEqual(len(env.get_legal_moves()), 20)

    def test_invalid_fen(self):
        """Test that an invalid FEN is rejected."""
        with self.assertRaises(ValueError):
            AntichessEnvironment("not a fen")

    def test_captures_are_compulsory(self):
        """Test that only captures are legal when one is available."""
        env = AntichessEnvironment(PAWN_CAPTURE)
        moves = env.get_legal_moves()
        self.assertEqual(moves, [chess.Move.from_uci("e3d4")])
        self.assertTrue(env.is_capture(moves[0]))

    def test_non_captures_when_no_capture(self):
        """Test that every quiet move is legal when no capture exists."""
        env = AntichessEnvironment(KNIGHT_SACRIFICE)
        moves = {move.uci() for move in env.get_legal_moves()}
        self.assertEqual(moves, {"b2a4", "b2c4", "b2d3", "b2d1"})

    def test_win_for_side_to_move(self):
        """Test that a side without moves has won."""
        self.assertTrue(AntichessEnvironment(NO_WHITE_PIECES).is_win_for_side_to_move())
        self.assertFalse(AntichessEnvironment(KNIGHT_SACRIFICE).is_win_for_side_to_move())

    def test_dead_draw(self):
        """Test the opposite-coloured bishops draw."""
        self.assertTrue(AntichessEnvironment(OPPOSITE_BISHOPS).is_dead_draw())

    def test_same_colour_bishops_not_draw(self):
        """Test that bishops on the same colour do not draw."""
        self.assertFalse(AntichessEnvironment(SAME_COLOUR_BISHOPS).is_dead_draw())

    def test_dead_draw_checks_both_sides(self):
        """Test that the side not to move must also only have bishop moves."""
        # White only has bishop moves, black also has pawn moves
        env = AntichessEnvironment("8/p7/8/8/8/8/8/B6b w - -")
        self.assertFalse(env.is_dead_draw())

        env = AntichessEnvironment("8/p7/8/8/8/8/8/B6b b - -")
        self.assertFalse(env.is_dead_draw())

    def test_dead_draw_requires_one_bishop_each(self):
        """Test that extra bishops prevent the draw."""
        env = AntichessEnvironment("8/8/8/8/8/8/8/BB5b w - -")
        self.assertFalse(env.is_dead_draw())

    def test_count_threats(self):
        """Test counting capturing moves."""
        self.assertEqual(AntichessEnvironment(PAWN_CAPTURE).count_threats(), 1)
        self.assertEqual(AntichessEnvironment(KNIGHT_SACRIFICE).count_threats(), 0)

    def test_copy_is_independent(self):
        """Test that moves on a copy do not affect the original."""
        env = AntichessEnvironment()
        copy = env.copy()
        copy.push(chess.Move.from_uci("e2e4"))
        self.assertNotEqual(env.get_fen(), copy.get_fen())
        self.assertEqual(env.turn, chess.WHITE)
        self.assertEqual(copy.turn, chess.BLACK)

    def test_position_key_ignores_move_counters(self):
        """Test that the position identity ignores the clocks."""
        a = AntichessEnvironment("8/8/8/8/8/8/1N6/r7 w - - 0 1")
        b = AntichessEnvironment("8/8/8/8/8/8/1N6/r7 w - - 7 30")
        c = AntichessEnvironment("8/8/8/8/8/8/1N6/r7 b - - 0 1")
        self.assertEqual(a.position_key(), b.position_key())
        self.assertNotEqual(a.position_key(), c.position_key())

    def test_make_move(self):
        """Test checked moves."""
        env = AntichessEnvironment()
        self.assertTrue(env.make_move_from_uci("e2e4"))
        self.assertFalse(env.make_move_from_uci("e7e4"))
        self.assertFalse(env.make_move_from_uci("invalid"))
        self.assertEqual(env.turn, chess.BLACK)

    def test_get_board_state(self):
        """Test the board summary."""
        state = AntichessEnvironment(PAWN_CAPTURE).get_board_state()
        self.assertEqual(state['turn'], 'white')
        self.assertEqual(state['legal_moves'], ['e3d4'])
        self.assertEqual(state['threats'], 1)
        self.assertFalse(state['is_dead_draw'])


class TestPlayoutSimulator(unittest.TestCase):
    """Tests for random playouts."""

    def test_immediate_win(self):
        """Test a playout from a position where the side to move has won."""
        simulator = PlayoutSimulator(random.Random(0))
        outcome = simulator.playout(AntichessEnvironment(NO_WHITE_PIECES))
        self.assertEqual(outcome, Outcome(chess.WHITE, 0))
        self.assertFalse(outcome.is_draw)

    def test_forced_capture_win(self):
        """Test a playout where the only move gives away the last piece."""
        env = AntichessEnvironment("8/8/8/8/8/8/8/R6r w - -")
        outcome = PlayoutSimulator(random.Random(0)).playout(env)
        # White must take, then black has nothing left to move
        self.assertEqual(outcome.winner, chess.BLACK)
        self.assertEqual(outcome.plies, 1)

    def test_dead_draw(self):
        """Test that opposite-coloured bishops give a draw."""
        for seed in range(5):
            outcome = PlayoutSimulator(random.Random(seed)).playout(AntichessEnvironment(OPPOSITE_BISHOPS))
            self.assertTrue(outcome.is_draw)
            self.assertEqual(outcome.plies, 1)

    def test_depth_cap(self):
        """Test that long games are scored as draws."""
        simulator = PlayoutSimulator(random.Random(0), max_depth=3)
        outcome = simulator.playout(AntichessEnvironment())
        self.assertTrue(outcome.is_draw)
        self.assertEqual(outcome.plies, 3)

    def test_position_not_modified(self):
        """Test that the playout works on a copy."""
        env = AntichessEnvironment()
        fen = env.get_fen()
        PlayoutSimulator(random.Random(1)).playout(env)
        self.assertEqual(env.get_fen(), fen)

    def test_scripted_random_source(self):
        """Test that move choice goes through the injected source."""
        env = AntichessEnvironment(KNIGHT_SACRIFICE)
        first_move = env.get_legal_moves()[0]

        simulator = PlayoutSimulator(FirstChoiceRandom(), max_depth=1)
        outcome = simulator.playout(env)
        self.assertEqual(outcome.plies, 1)

        expected = env.copy()
        expected.push(first_move)
        self.assertFalse(expected.is_win_for_side_to_move())

    def test_make_random_source(self):
        """Test seeded and unseeded random sources."""
        self.assertIsInstance(make_random_source(None), random.SystemRandom)
        a = make_random_source(42)
        b = make_random_source(42)
        self.assertEqual(a.random(), b.random())


class TestForcedSequenceCache(unittest.TestCase):
    """Tests for the forced-sequence cache."""

    def test_record_and_lookup(self):
        """Test storing and finding a move."""
        cache = ForcedSequenceCache()
        env = AntichessEnvironment(KNIGHT_SACRIFICE)
        move = chess.Move.from_uci("b2a4")

        self.assertIsNone(cache.lookup(env))
        cache.record({env.position_key(): move})
        self.assertEqual(cache.lookup(env), move)
        self.assertIn(env, cache)
        self.assertEqual(len(cache), 1)

        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertNotIn(env, cache)


class TestMCTSNode(unittest.TestCase):
    """Tests for the MCTS node class."""

    def test_initialization(self):
        """Test node initialization."""
        node = MCTSNode(AntichessEnvironment())
        self.assertEqual(node.visit_count, 0)
        self.assertEqual(node.wins, 0)
        self.assertEqual(node.threats, 0)
        self.assertFalse(node.terminal)
        self.assertIsNone(node.parent)
        self.assertIsNone(node.move)
        self.assertFalse(node.expanded())

    def test_parent_link(self):
        """Test the weak parent link and detaching it."""
        parent = MCTSNode(AntichessEnvironment())
        move = chess.Move.from_uci("e2e4")
        child_env = parent.state.copy()
        child_env.push(move)
        child = MCTSNode(child_env, parent=parent, move=move)
        parent.children[move] = child

        self.assertIs(child.parent, parent)
        self.assertTrue(parent.expanded())

        child.detach_parent()
        self.assertIsNone(child.parent)

    def test_win_rates(self):
        """Test win rates from both perspectives."""
        node = MCTSNode(AntichessEnvironment())
        self.assertEqual(node.win_rate(), 0.5)
        self.assertEqual(node.expected_win_rate(), 0.0)

        node.visit_count = 4
        node.wins = -2
        self.assertAlmostEqual(node.win_rate(), 0.25)
        self.assertAlmostEqual(node.expected_win_rate(), 0.75)

    def test_get_uct_score(self):
        """Test UCT score calculation."""
        node = MCTSNode(AntichessEnvironment())
        self.assertEqual(node.get_uct_score(10, math.sqrt(2), 1.0), math.inf)

        node.visit_count = 4
        node.wins = 2
        node.threats = 1
        expected = 0.75 + math.sqrt(2) * math.sqrt(math.log(10) / 4) + 0.5
        self.assertAlmostEqual(node.get_uct_score(10, math.sqrt(2), 1.0), expected, places=9)


class TestMCTS(unittest.TestCase):
    """Tests for the Monte Carlo Tree Search."""

    def make_search(self, fen, seed=0, config=None):
        return MonteCarloTreeSearch(AntichessEnvironment(fen), config or {}, random.Random(seed))

    def assert_next_move(self, mcts, from_square, *to_squares):
        best_move = mcts.find_best_move(iteration_cap=10000)
        self.assertIsNotNone(best_move)
        self.assertEqual(best_move.from_square, from_square)
        self.assertIn(best_move.to_square, to_squares)
        mcts.apply_move(best_move)

    def test_initialization(self):
        """Test configuration values are read."""
        config = {'mcts': {'exploration_constant': 2.0, 'threat_constant': 0.5, 'time_limit': 1.5}}
        mcts = self.make_search(None, config=config)
        self.assertEqual(mcts.exploration_constant, 2.0)
        self.assertEqual(mcts.threat_constant, 0.5)
        self.assertEqual(mcts.time_limit, 1.5)
        self.assertIsNone(mcts.root.parent)

    def test_unbounded_budget_falls_back(self):
        """Test that a search without time limit or iteration cap still gets a deadline."""
        config = {'mcts': {'time_limit': None, 'iteration_cap': None}}
        with self.assertLogs('core.mcts', level='WARNING'):
            mcts = self.make_search(None, config=config)
        self.assertEqual(mcts.time_limit, DEFAULT_TIME_LIMIT)
        self.assertIsNone(mcts.iteration_cap)

        config = {'mcts': {'time_limit': None, 'iteration_cap': 20}}
        mcts = self.make_search(None, config=config)
        self.assertIsNone(mcts.time_limit)
        self.assertEqual(mcts.iteration_cap, 20)

    def test_single_legal_move_without_search(self):
        """Test that the only legal move is returned without searching."""
        mcts = self.make_search(PAWN_CAPTURE)
        self.assertEqual(mcts.find_best_move(iteration_cap=100), chess.Move.from_uci("e3d4"))
        self.assertEqual(mcts.iterations_run, 0)

    def test_no_legal_moves(self):
        """Test that no move is returned when the side to move has won."""
        mcts = self.make_search(NO_WHITE_PIECES)
        self.assertIsNone(mcts.find_best_move(iteration_cap=100))
        self.assertTrue(mcts.search())

    def test_makes_winning_move(self):
        """Test that one of the two sacrifices is chosen, whatever the seed."""
        for seed in range(5):
            with self.subTest(seed=seed):
                mcts = self.make_search(KNIGHT_SACRIFICE, seed)
                best_move = mcts.find_best_move(iteration_cap=1000)
                self.assertEqual(best_move.from_square, chess.B2)
                self.assertIn(best_move.to_square, (chess.A4, chess.D1))
                self.assertIn(mcts.root.state, mcts.forced_sequences)

    def test_finds_forced_win(self):
        """Test following a forced winning line move by move."""
        for seed in range(3):
            with self.subTest(seed=seed):
                mcts = self.make_search(FORCED_LINE, seed)
                self.assert_next_move(mcts, chess.H1, chess.H7)
                mcts.apply_move(chess.Move(chess.G8, chess.H7))
                self.assert_next_move(mcts, chess.E2, chess.E4)
                mcts.apply_move(chess.Move(chess.H7, chess.E4))
                self.assert_next_move(mcts, chess.D2, chess.D3)

    def test_finds_forced_win_among_many_moves(self):
        """Test finding the only winning line when most queen moves do not force a win."""
        for seed in range(2):
            with self.subTest(seed=seed):
                mcts = self.make_search(QUEEN_STAIRCASE, seed)
                self.assert_next_move(mcts, chess.G5, chess.G6)
                mcts.apply_move(chess.Move(chess.H7, chess.G6))
                self.assert_next_move(mcts, chess.F4, chess.F5)
                mcts.apply_move(chess.Move(chess.G6, chess.F5))
                self.assert_next_move(mcts, chess.E3, chess.E4)
                mcts.apply_move(chess.Move(chess.F5, chess.E4))
                self.assert_next_move(mcts, chess.D2, chess.D3)
                mcts.apply_move(chess.Move(chess.E4, chess.D3))
                self.assert_next_move(mcts, chess.C1, chess.C2)

    def test_does_not_lose(self):
        """Test that a winning move is chosen over losing ones."""
        for seed in range(5):
            with self.subTest(seed=seed):
                mcts = self.make_search(TWO_WINNING_ROOK_MOVES, seed)
                best_move = mcts.find_best_move(iteration_cap=500)
                self.assertEqual(best_move.from_square, chess.C5)
                self.assertIn(best_move.to_square, (chess.C4, chess.F5))

    def test_forced_move_returned_without_search(self):
        """Test that a known forced move short-circuits the search."""
        mcts = self.make_search(KNIGHT_SACRIFICE)
        first = mcts.find_best_move(iteration_cap=1000)
        iterations = mcts.iterations_run

        self.assertEqual(mcts.find_best_move(iteration_cap=1000), first)
        self.assertEqual(mcts.iterations_run, iterations)
        self.assertTrue(mcts.is_game_going_to_end_soon())

    def test_tree_invariants(self):
        """Test parent links, side to move and score bounds over a built tree."""
        mcts = self.make_search(None, seed=3)
        mcts.find_best_move(iteration_cap=60)

        stack = [mcts.root]
        seen = 0
        while stack:
            node = stack.pop()
            seen += 1
            self.assertLessEqual(abs(node.wins), node.visit_count)
            for move, child in node.children.items():
                self.assertIs(child.parent, node)
                self.assertEqual(child.move, move)
                self.assertNotEqual(child.turn, node.turn)
                stack.append(child)

        self.assertGreater(seen, 20)
        self.assertEqual(mcts.root.visit_count, mcts.iterations_run)

    def test_apply_move_reroots(self):
        """Test that a searched move keeps its statistics as the new root."""
        mcts = self.make_search(None, seed=1)
        mcts.find_best_move(iteration_cap=50)

        move, child = max(mcts.root.children.items(), key=lambda item: item[1].visit_count)
        visits = child.visit_count
        mcts.apply_move(move)

        self.assertIs(mcts.root, child)
        self.assertIsNone(mcts.root.parent)
        self.assertEqual(mcts.root.visit_count, visits)
        self.assertEqual(mcts.root.turn, chess.BLACK)

    def test_apply_unknown_move(self):
        """Test that a move outside the tree starts a fresh tree."""
        mcts = self.make_search(None)
        mcts.apply_move(chess.Move.from_uci("e2e4"))
        self.assertFalse(mcts.root.expanded())
        self.assertEqual(mcts.root.visit_count, 0)
        self.assertEqual(mcts.root.turn, chess.BLACK)
        self.assertIsNotNone(mcts.root.state.piece_at(chess.E4))

    def test_apply_illegal_move(self):
        """Test that an illegal move is rejected."""
        mcts = self.make_search(None)
        with self.assertRaises(ValueError):
            mcts.apply_move(chess.Move.from_uci("e2e5"))

    def test_evaluation(self):
        """Test the root evaluation stays a probability."""
        mcts = self.make_search(None, seed=2)
        self.assertEqual(mcts.evaluation(), 0.5)
        mcts.find_best_move(iteration_cap=30)
        self.assertGreaterEqual(mcts.evaluation(), 0.0)
        self.assertLessEqual(mcts.evaluation(), 1.0)

    def test_game_going_to_end_soon(self):
        """Test detection of a game about to end."""
        self.assertFalse(self.make_search(None).is_game_going_to_end_soon())

        # Black must take the last white piece
        mcts = self.make_search("8/8/8/8/8/8/8/R6r b - -")
        self.assertEqual(mcts.find_best_move(iteration_cap=10), chess.Move.from_uci("h1a1"))
        self.assertTrue(mcts.is_game_going_to_end_soon())

    def test_exhausted_tree(self):
        """Test that the search stops once every line is terminal."""
        # The only move ends the game, so one iteration explores everything
        mcts = self.make_search("8/8/8/8/8/8/8/R6r b - -")
        self.assertFalse(mcts.search())
        self.assertTrue(mcts.search())
        self.assertEqual(mcts.iterations_run, 1)

    def test_reset(self):
        """Test starting over clears the tree and the cache."""
        mcts = self.make_search(KNIGHT_SACRIFICE)
        mcts.find_best_move(iteration_cap=1000)
        mcts.reset(AntichessEnvironment())
        self.assertEqual(len(mcts.forced_sequences), 0)
        self.assertFalse(mcts.root.expanded())


if __name__ == '__main__':
    unittest.main()
