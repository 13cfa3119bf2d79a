"""
Random playout simulation.

Plays a game of random legal moves from a position until one side cannot
move, the position becomes a dead draw, or the depth cap is reached.
"""

import chess
import random
from dataclasses import dataclass
from typing import Optional

from .chess_environment import AntichessEnvironment

MAX_PLAYOUT_DEPTH = 100


def make_random_source(seed: Optional[int] = None) -> random.Random:
    """
    Create the random source shared by a search.

    Args:
        seed: Seed for reproducible play. If None, the operating system's
              entropy source is used.

    Returns:
        A random.Random compatible generator.
    """
    if seed is None:
        return random.SystemRandom()
    return random.Random(seed)


@dataclass(frozen=True)
class Outcome:
    """
    Result of a playout.

    Attributes:
        winner: Colour of the winning side, or None for a draw.
        plies: Number of random moves played before the result was reached.
    """
    winner: Optional[chess.Color]
    plies: int = 0

    @property
    def is_draw(self) -> bool:
        return self.winner is None


class PlayoutSimulator:
    """Plays uniformly random games using an injected random source."""

    def __init__(self, rng: random.Random, max_depth: int = MAX_PLAYOUT_DEPTH):
        """
        Initialize the simulator.

        Args:
            rng: Random source used for move selection.
            max_depth: Number of plies after which the game is scored a draw.
        """
        self.rng = rng
        self.max_depth = max_depth

    def playout(self, env: AntichessEnvironment) -> Outcome:
        """
        Play randomly to the end of the game from the given position.

        The position passed in is not modified.

        Args:
            env: Starting position.

        Returns:
            The outcome of the random game.
        """
        state = env.copy()
        plies = 0
        while True:
            moves = state.get_legal_moves()
            if state.is_win_for_side_to_move(moves):
                return Outcome(state.turn, plies)

            state.push(self.rng.choice(moves))
            plies += 1

            if state.is_dead_draw():
                return Outcome(None, plies)
            if plies >= self.max_depth:
                # Assume a draw if it goes this long
                return Outcome(None, plies)
