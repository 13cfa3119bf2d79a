"""
Pure Monte Carlo game search.

For each legal move the game is played out to the end with random moves,
round-robin, and the move with the best average result is chosen. No tree is
kept between moves.
"""

import chess
import time
import logging
import random
from typing import Dict, Optional, Any

from .chess_environment import AntichessEnvironment
from .playout import PlayoutSimulator, MAX_PLAYOUT_DEPTH, make_random_source

logger = logging.getLogger(__name__)


class PlayoutScore:
    """Accumulated result of the playouts for one move."""

    def __init__(self):
        self.wins = 0.0
        self.games = 0

    def mean(self) -> float:
        if self.games == 0:
            return 0.0
        return self.wins / self.games


class PureMonteCarloSearch:
    """
    Flat Monte Carlo search over the moves of the current position.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, rng: Optional[random.Random] = None):
        """
        Initialize the search.

        Args:
            config: Configuration parameters.
            rng: Random source. If None, one is created from the configured seed.
        """
        config = config or {}
        pmc_config = config.get('pure_monte_carlo', {})
        mcts_config = config.get('mcts', {})
        self.max_playouts = pmc_config.get('max_playouts', 500)
        self.rng = rng if rng is not None else make_random_source(mcts_config.get('seed'))
        self.simulator = PlayoutSimulator(self.rng, mcts_config.get('max_playout_depth', MAX_PLAYOUT_DEPTH))
        self._last_key: Optional[str] = None
        self._last_evaluation = 0.5

    def find_best_move(self, env: AntichessEnvironment,
                       time_limit: Optional[float] = None) -> Optional[chess.Move]:
        """
        Choose a move for the side to move in env.

        The mean score of the chosen move is kept for evaluation().

        Args:
            env: Current position.
            time_limit: Optional wall-clock budget in seconds, checked between rounds.

        Returns:
            The chosen move, or None if there is no legal move.
        """
        moves = env.get_legal_moves()
        if len(moves) == 1:
            return moves[0]
        elif not moves:
            self._remember(env, 1.0)
            return None

        me = env.turn
        scores = {move: PlayoutScore() for move in moves}
        deadline = time.monotonic() + time_limit if time_limit is not None else None
        start = time.monotonic()

        rounds = 0
        while rounds < self.max_playouts:
            for move in moves:
                next_position = env.copy()
                next_position.push(move)
                outcome = self.simulator.playout(next_position)

                if outcome.winner == me and outcome.plies == 1:
                    # The win comes on the next move, play it
                    logger.info(f"Immediate win found with {move.uci()}")
                    self._remember(env, 1.0)
                    return move

                score = scores[move]
                score.games += 1
                if outcome.winner == me:
                    score.wins += 1
                elif outcome.is_draw:
                    score.wins += 0.5

            rounds += 1
            if deadline is not None and time.monotonic() >= deadline:
                break

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(f"Ran {rounds} playouts of {len(moves)} moves in {elapsed_ms:.0f} ms")

        candidates = list(scores.items())
        self.rng.shuffle(candidates)
        move, score = max(candidates, key=lambda item: item[1].mean())
        self._remember(env, score.mean())
        return move

    def _remember(self, env: AntichessEnvironment, value: float) -> None:
        self._last_key = env.position_key()
        self._last_evaluation = value

    def evaluation(self, env: AntichessEnvironment) -> float:
        """
        Chance of winning for the side to move in env.

        Returns:
            The mean playout score of the move chosen by the last search of
            this position, or 0.5 if the position has not been searched.
        """
        if env.position_key() != self._last_key:
            return 0.5
        return self._last_evaluation
