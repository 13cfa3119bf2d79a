"""
Monte Carlo Tree Search implementation for the antichess AI.

This module implements the MCTS algorithm used to search for the best move in
an antichess position. Leaf positions are scored by uniformly random playouts,
expansion is guided by UCT with a bonus for positions that offer the opponent
captures, and lines proven to force a win are remembered in a cache.
"""

import chess
import math
import time
import logging
import random
import weakref
from typing import Dict, List, Optional, Any

from .chess_environment import AntichessEnvironment
from .forced_sequences import ForcedSequenceCache
from .playout import PlayoutSimulator, Outcome, MAX_PLAYOUT_DEPTH, make_random_source

logger = logging.getLogger(__name__)

EXPLORATION_CONSTANT = math.sqrt(2.0)
THREAT_CONSTANT = 1.0
DEFAULT_TIME_LIMIT = 0.5


class MCTSNode:
    """
    Node in the Monte Carlo Tree Search.

    Each node owns a position and the statistics gathered for it. Wins are
    counted from the perspective of the side to move in this node's position.
    The parent link is a weak reference: nodes are owned only through their
    parent's children mapping.
    """

    def __init__(self, state: AntichessEnvironment, parent: Optional['MCTSNode'] = None,
                 move: Optional[chess.Move] = None):
        """
        Initialize a new MCTS node.

        Args:
            state: Position represented by this node.
            parent: Parent node.
            move: Move that led to this node from the parent.
        """
        self.state = state
        self.move = move
        self._parent = weakref.ref(parent) if parent is not None else None
        self.children: Dict[chess.Move, MCTSNode] = {}

        # Search statistics
        self.visit_count = 0
        self.wins = 0
        self.terminal = False
        self.threats = 0

    @property
    def parent(self) -> Optional['MCTSNode']:
        if self._parent is None:
            return None
        return self._parent()

    @property
    def turn(self) -> chess.Color:
        return self.state.turn

    def detach_parent(self) -> None:
        """Sever the link to the parent when this node becomes the root."""
        self._parent = None

    def expanded(self) -> bool:
        """
        Check if the node has been expanded.

        Returns:
            True if the node has children, False otherwise.
        """
        return len(self.children) > 0

    def win_rate(self) -> float:
        """
        Chance of winning for the side to move at this node.

        Returns:
            Value in [0, 1], or 0.5 if the node has not been visited.
        """
        if self.visit_count == 0:
            return 0.5
        return (self.wins + self.visit_count) / (2 * self.visit_count)

    def expected_win_rate(self) -> float:
        """
        Chance of winning for the side that played the move into this node.

        Returns:
            Value in [0, 1], or 0 if the node has not been visited.
        """
        if self.visit_count == 0:
            return 0.0
        return (self.visit_count - self.wins) / (2 * self.visit_count)

    def get_uct_score(self, parent_visit_count: int, exploration_constant: float,
                      threat_constant: float) -> float:
        """
        Calculate the UCT score for this node.

        Unvisited nodes score infinity so that they are always tried before
        any visited sibling.

        Args:
            parent_visit_count: Visit count of the parent node.
            exploration_constant: Weight of the exploration term.
            threat_constant: Weight of the opponent-capture bonus.

        Returns:
            The UCT score.
        """
        if self.visit_count == 0:
            return math.inf

        exploitation = (self.wins + self.visit_count) / (2 * self.visit_count)
        exploration = math.sqrt(math.log(max(parent_visit_count, 1)) / self.visit_count)
        threat = 1 - 1 / (self.threats + 1)

        return exploitation + exploration_constant * exploration + threat_constant * threat


class MonteCarloTreeSearch:
    """
    Monte Carlo Tree Search over antichess positions.

    The tree is kept between moves: apply_move() re-roots it so that the
    statistics gathered for the chosen line survive.
    """

    def __init__(self, env: AntichessEnvironment, config: Optional[Dict[str, Any]] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the MCTS algorithm.

        Args:
            env: Position to search from. It is copied.
            config: Configuration parameters.
            rng: Random source. If None, one is created from the configured seed.
        """
        config = config or {}
        mcts_config = config.get('mcts', {})
        self.exploration_constant = mcts_config.get('exploration_constant', EXPLORATION_CONSTANT)
        self.threat_constant = mcts_config.get('threat_constant', THREAT_CONSTANT)
        self.time_limit = mcts_config.get('time_limit', DEFAULT_TIME_LIMIT)
        self.iteration_cap = mcts_config.get('iteration_cap')
        if self.time_limit is None and self.iteration_cap is None:
            logger.warning(f"Neither a time limit nor an iteration cap is configured, "
                           f"searching for {DEFAULT_TIME_LIMIT}s per move")
            self.time_limit = DEFAULT_TIME_LIMIT

        self.rng = rng if rng is not None else make_random_source(mcts_config.get('seed'))
        self.simulator = PlayoutSimulator(self.rng, mcts_config.get('max_playout_depth', MAX_PLAYOUT_DEPTH))

        self.forced_sequences = ForcedSequenceCache()
        self.root = MCTSNode(env.copy())
        self.iterations_run = 0

        logger.debug(f"Initialized MCTS at {self.root.state.get_fen()}")

    def reset(self, env: AntichessEnvironment) -> None:
        """Start a new tree at the given position and forget forced sequences."""
        self.root = MCTSNode(env.copy())
        self.forced_sequences.clear()
        self.iterations_run = 0

    def search(self) -> bool:
        """
        Run one selection, expansion, simulation and backpropagation cycle.

        Returns:
            True if the tree has no expandable leaf left, False otherwise.
        """
        leaf = self._find_expandable_leaf(self.root)
        if leaf is None:
            logger.debug("No more non-terminal leaf nodes to expand")
            return True

        self._expand(leaf)
        if not leaf.children:
            leaf.terminal = True
            logger.debug("No children of this position")
            return leaf is self.root

        candidate = self.rng.choice(list(leaf.children.values()))
        outcome = self.simulator.playout(candidate.state)
        self._backpropagate(candidate, outcome)

        self.iterations_run += 1
        return False

    def _find_expandable_leaf(self, node: MCTSNode) -> Optional[MCTSNode]:
        """
        Descend from node to the most promising unexpanded node.

        Children are tried best first; when a child's subtree has no
        expandable leaf, the next best sibling is tried.

        Args:
            node: Node to start the descent from.

        Returns:
            The leaf to expand, or None if every line below node is terminal.
        """
        stack = [node]
        while stack:
            current = stack.pop()
            if not current.expanded():
                return current
            stack.extend(reversed(self._rank_children(current)))
        return None

    def _rank_children(self, node: MCTSNode) -> List[MCTSNode]:
        scored = [
            (child.get_uct_score(node.visit_count, self.exploration_constant, self.threat_constant), child)
            for child in node.children.values()
            if not child.terminal
        ]

        # Shuffle so that equal scores are not always visited in move order
        self.rng.shuffle(scored)
        scored.sort(key=lambda item: item[0], reverse=True)
        return [child for _, child in scored]

    def _expand(self, node: MCTSNode) -> None:
        """
        Create one child per legal move of the node.

        Children that end the game, or are dead draws, are marked terminal and
        seeded with one visit and one win.

        Args:
            node: Leaf node to expand.
        """
        for move in node.state.get_legal_moves():
            state = node.state.copy()
            state.push(move)
            child = MCTSNode(state, parent=node, move=move)

            if child.turn == node.turn:
                logger.error(f"Side to move did not change after {move.uci()} from {node.state.get_fen()}, dropping child")
                continue

            replies = state.get_legal_moves()
            if state.is_win_for_side_to_move(replies) or state.is_dead_draw(replies):
                child.terminal = True
                child.visit_count = 1
                child.wins = 1
            child.threats = state.count_threats(replies)

            node.children[move] = child

    def _backpropagate(self, node: MCTSNode, outcome: Outcome) -> None:
        """
        Backpropagate a playout outcome from the simulated node to the root.

        The line is forced if it ends in a terminal node and no node on it
        where the opponent is to move offers more than one reply. A forced line
        won by the side to move at the root is stored in the forced-sequence
        cache.

        Args:
            node: Node the playout was run from.
            outcome: Result of the playout.
        """
        forced = node.terminal
        sequence: Dict[str, chess.Move] = {}
        my_side = self.root.turn

        while node is not None:
            parent = node.parent
            if len(node.children) > 1 and node.turn != my_side:
                forced = False
            if forced and parent is not None:
                sequence[parent.state.position_key()] = node.move

            node.visit_count += 1
            if outcome.winner is not None:
                node.wins += 1 if outcome.winner == node.turn else -1

            if parent is None and node is not self.root:
                logger.error("Reached a node without parent below the root during backpropagation")
            node = parent

        if forced and outcome.winner == my_side:
            self.forced_sequences.record(sequence)

    def find_best_move(self, time_limit: Optional[float] = None,
                       iteration_cap: Optional[int] = None) -> Optional[chess.Move]:
        """
        Search the root position and choose a move.

        When neither budget is given, the configured defaults are used.

        Args:
            time_limit: Wall-clock budget in seconds, or None for no deadline.
            iteration_cap: Maximum number of search iterations, or None.

        Returns:
            The chosen move, or None if the side to move has no legal move.
        """
        if time_limit is None and iteration_cap is None:
            time_limit, iteration_cap = self.time_limit, self.iteration_cap

        forced_move = self.forced_sequences.lookup(self.root.state)
        if forced_move is not None:
            logger.info(f"Using forced sequence move {forced_move.uci()}")
            return forced_move

        if not self.root.expanded():
            self._expand(self.root)
        if not self.root.children:
            logger.info("No legal moves available")
            return None
        if len(self.root.children) == 1:
            move = next(iter(self.root.children))
            logger.info(f"Only 1 move available, playing {move.uci()}")
            return move

        logger.debug("Starting to find best move")
        self.log_tree()

        start = time.monotonic()
        deadline = start + time_limit if time_limit is not None else None
        searches_done = 0
        while deadline is None or time.monotonic() < deadline:
            if iteration_cap is not None and searches_done >= iteration_cap:
                break
            finished = self.search()
            searches_done += 1
            if finished:
                break

            forced_move = self.forced_sequences.lookup(self.root.state)
            if forced_move is not None:
                # A guaranteed win was found
                logger.info(f"Forced sequence found after {searches_done} searches, playing {forced_move.uci()}")
                return forced_move

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(f"{searches_done} searches done in {elapsed_ms:.0f}ms")
        self.log_tree()

        return self._select_by_win_rate()

    def _select_by_win_rate(self) -> Optional[chess.Move]:
        best_moves: List[chess.Move] = []
        best_rate = None
        for move, child in self.root.children.items():
            rate = child.expected_win_rate()
            if best_rate is None or rate > best_rate:
                best_rate = rate
                best_moves = [move]
            elif rate == best_rate:
                best_moves.append(move)

        if not best_moves:
            return None

        logger.info(f"There are {len(best_moves)} strongest moves with my expected winrate being {best_rate * 100:.1f}%: "
                    f"{[move.uci() for move in best_moves]}")
        return self.rng.choice(best_moves)

    def apply_move(self, move: chess.Move) -> None:
        """
        Advance the tree by a move played in the game.

        If the move is already in the tree, its node becomes the new root and
        the rest of the tree is released. Otherwise a fresh tree is started
        from the resulting position.

        Args:
            move: The move played.

        Raises:
            ValueError: If the move is not legal in the root position.
        """
        child = self.root.children.get(move)
        if child is not None:
            old_root = self.root
            old_root.children.clear()
            child.detach_parent()
            self.root = child
            return

        state = self.root.state.copy()
        if not state.make_move(move):
            raise ValueError(f"Move {move.uci()} is not legal in {self.root.state.get_fen()}")
        self.root = MCTSNode(state)

    def evaluation(self) -> float:
        """
        Estimate the chance of winning for the side to move at the root.

        Returns:
            Value in [0, 1].
        """
        return self.root.win_rate()

    def is_game_going_to_end_soon(self) -> bool:
        """
        Check whether the game is about to be decided.

        Returns:
            True if a forced win is known, the root is terminal, or every move
            from the root ends the game.
        """
        if len(self.forced_sequences) > 0:
            return True
        if self.root.terminal:
            return True
        return self.root.expanded() and all(child.terminal for child in self.root.children.values())

    def log_tree(self) -> None:
        """Log the root statistics and the win chance after each root move."""
        if not logger.isEnabledFor(logging.DEBUG):
            return

        root = self.root
        side = 'white' if root.turn == chess.WHITE else 'black'
        logger.debug(f"Root to move: {side} Score: {root.wins}, SimCount: {root.visit_count}")
        logger.debug(f"Children: {len(root.children)}")
        for move, child in root.children.items():
            child_side = 'white' if child.turn == chess.WHITE else 'black'
            piece = root.state.piece_at(move.from_square)
            logger.debug(f"* [play {piece} - {move.uci()}] then {child_side} will have "
                         f"{child.win_rate() * 100:.1f}% chance of winning ({child.visit_count} simulations)")
