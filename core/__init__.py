"""
Core Engine Package.

This package contains the components of the antichess engine: the board
wrapper, random playouts, the Monte Carlo Tree Search, the forced-sequence
cache, the opening book and the per-game engine that ties them together.
"""

from .chess_environment import AntichessEnvironment
from .playout import PlayoutSimulator, Outcome, make_random_source
from .forced_sequences import ForcedSequenceCache
from .mcts import MonteCarloTreeSearch, MCTSNode
from .opening_book import OpeningBook, BookNode
from .pure_monte_carlo import PureMonteCarloSearch
from .engine import AntichessEngine

__all__ = [
    'AntichessEnvironment', 'PlayoutSimulator', 'Outcome', 'make_random_source',
    'ForcedSequenceCache', 'MonteCarloTreeSearch', 'MCTSNode',
    'OpeningBook', 'BookNode', 'PureMonteCarloSearch', 'AntichessEngine'
]
