"""
Main entry point for the antichess AI system.

This script loads the configuration and the opening book, sets up the engine
and analyses a single position from the command line.
"""

import os
import sys
import argparse
from typing import Any, Dict, List, Optional

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config.config import load_config
from core.engine import AntichessEngine
from core.opening_book import OpeningBook
from utils.logger import setup_logger, log_system_info, log_config


class AntichessAI:
    """
    Main class for the antichess AI system.

    Owns the configuration and the opening book, which is loaded once and
    shared by every engine created from it.
    """

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        """
        Initialize the antichess AI system.

        Args:
            config_path: Path to the configuration file
            overrides: Section values replacing those of the configuration file
        """
        self.config = load_config(config_path)
        for section, values in (overrides or {}).items():
            self.config.setdefault(section, {}).update(values)

        self.logger = setup_logger(self.config)
        log_system_info()
        log_config(self.config)

        self.opening_book = self._load_opening_book()

    def _load_opening_book(self) -> Optional[OpeningBook]:
        """
        Load the opening book if enabled.

        Returns:
            The opening book, or None if disabled or empty
        """
        if not self.config.get('book', {}).get('enabled', True):
            self.logger.info("Opening book disabled")
            return None

        book = OpeningBook(config=self.config)
        if not book.loaded:
            self.logger.warning("Playing without an opening book")
            return None
        return book

    def new_engine(self, fen: str = 'startpos', white: bool = True) -> AntichessEngine:
        """
        Create an engine for a new game.

        Args:
            fen: Starting FEN, or "startpos"
            white: Whether the engine plays white

        Returns:
            Initialized engine
        """
        engine = AntichessEngine(self.config, self.opening_book)
        engine.initialize_board_state(fen, white)
        return engine

    def analyse(self, fen: str = 'startpos', moves: Optional[List[str]] = None,
                time_limit: Optional[float] = None, iterations: Optional[int] = None):
        """
        Choose a move for the side to move after the given moves.

        Args:
            fen: Starting FEN, or "startpos"
            moves: UCI moves played from the starting position
            time_limit: Search budget in seconds
            iterations: Maximum number of search iterations

        Returns:
            Tuple of (move, evaluation for the side to move)
        """
        engine = self.new_engine(fen, True)
        engine.update_game_state(' '.join(moves or []))
        engine.my_side = engine.env.turn

        move = engine.make_move(time_limit, iterations)
        return move, engine.evaluation()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Antichess AI")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to configuration file")
    parser.add_argument("--fen", type=str, default="startpos",
                        help="Starting position, FEN or 'startpos'")
    parser.add_argument("--moves", type=str, nargs="*", default=[],
                        help="UCI moves played from the starting position")
    parser.add_argument("--time", type=float, default=None,
                        help="Search time in seconds")
    parser.add_argument("--iterations", type=int, default=None,
                        help="Maximum number of search iterations")
    parser.add_argument("--searcher", type=str, choices=["mcts", "pure_monte_carlo"], default=None,
                        help="Search algorithm")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducible search")
    parser.add_argument("--no-book", action="store_true",
                        help="Do not load the opening book")

    args = parser.parse_args()

    overrides = {'mcts': {}, 'book': {}, 'engine': {}}
    if args.seed is not None:
        overrides['mcts']['seed'] = args.seed
    if args.searcher is not None:
        overrides['engine']['searcher'] = args.searcher
    if args.no_book:
        overrides['book']['enabled'] = False

    ai = AntichessAI(args.config, overrides)
    move, evaluation = ai.analyse(args.fen, args.moves, args.time, args.iterations)

    if move is None:
        print("No legal move: the side to move has already won")
    else:
        print(f"bestmove {move.uci()}")
    print(f"evaluation {evaluation:.3f}")


if __name__ == "__main__":
    main()
