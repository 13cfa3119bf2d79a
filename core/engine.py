"""
Game engine for antichess.

This module ties the opening book and the search together for one game: it
tracks the moves played, keeps the book cursor and the search tree in step
with the board, and answers move requests from the game client.
"""

import chess
import logging
import random
from typing import Dict, List, Optional, Any

from .chess_environment import AntichessEnvironment
from .mcts import MonteCarloTreeSearch, DEFAULT_TIME_LIMIT
from .opening_book import OpeningBook, BookNode
from .playout import make_random_source
from .pure_monte_carlo import PureMonteCarloSearch
from utils.logger import LoggerAdapter, log_exception

logger = logging.getLogger(__name__)

SEARCHERS = ('mcts', 'pure_monte_carlo')


class AntichessEngine:
    """
    Plays one game at a time.

    The opening book is consulted first and only while the game started from
    the standard position and has not left the book. Otherwise the configured
    searcher picks the move.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 opening_book: Optional[OpeningBook] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the engine.

        Args:
            config: Configuration parameters.
            opening_book: Loaded opening book shared between games, or None.
            rng: Random source. If None, one is created from the configured seed.
        """
        self.config = config or {}
        self.opening_book = opening_book

        mcts_config = self.config.get('mcts', {})
        self.rng = rng if rng is not None else make_random_source(mcts_config.get('seed'))
        self.time_limit = mcts_config.get('time_limit', DEFAULT_TIME_LIMIT)
        self.iteration_cap = mcts_config.get('iteration_cap')

        engine_config = self.config.get('engine', {})
        self.searcher = engine_config.get('searcher', 'mcts')
        if self.searcher not in SEARCHERS:
            raise ValueError(f"Unknown searcher '{self.searcher}', expected one of {SEARCHERS}")
        self.pure_monte_carlo = PureMonteCarloSearch(self.config, self.rng)

        self.initialize_board_state('startpos', True)

    def initialize_board_state(self, initial_fen: str, white: bool) -> None:
        """
        Start a new game.

        Args:
            initial_fen: FEN of the starting position, or "startpos".
            white: Whether the engine plays white.
        """
        self.my_side = chess.WHITE if white else chess.BLACK
        self.from_start_position = initial_fen == 'startpos'
        if self.from_start_position:
            self.initial_fen = AntichessEnvironment().get_fen()
        else:
            self.initial_fen = initial_fen

        self.log = LoggerAdapter(logger, 'white' if white else 'black')
        self._start_game()
        self.log.info(f"New game from {self.initial_fen}")

    def _start_game(self) -> None:
        self.env = AntichessEnvironment(self.initial_fen)
        self.mcts = MonteCarloTreeSearch(self.env, self.config, self.rng)
        self.moves_played: List[str] = []

        self.book_node: Optional[BookNode] = None
        if self.from_start_position and self.opening_book is not None and self.opening_book.loaded:
            self.book_node = self.opening_book.root

    def update_game_state(self, moves: Optional[str]) -> None:
        """
        Bring the game up to date with the move history from the server.

        If the history does not extend the moves already seen, the game is
        replayed from the initial position.

        Args:
            moves: Space separated UCI moves since the start of the game.

        Raises:
            ValueError: If a move is malformed or illegal.
        """
        if moves is None:
            return

        history = moves.split()
        if history[:len(self.moves_played)] != self.moves_played:
            self.log.warning("Moves are inconsistent, replaying the game from the start")
            self._start_game()

        for uci in history[len(self.moves_played):]:
            try:
                self.apply_move(chess.Move.from_uci(uci))
            except ValueError as e:
                self.log.error(f"Cannot replay move {uci} from the game history")
                log_exception(e, self.log)
                raise

    def apply_move(self, move: chess.Move) -> None:
        """
        Play a move on the board, the search tree and the book cursor.

        Args:
            move: The move played by either side.

        Raises:
            ValueError: If the move is illegal.
        """
        if not self.env.make_move(move):
            raise ValueError(f"Illegal move {move.uci()} in {self.env.get_fen()}")
        self.mcts.apply_move(move)

        if self.book_node is not None:
            self.book_node = self.opening_book.apply_move(self.book_node, move)
            if self.book_node is None:
                self.log.info(f"Left the opening book with {move.uci()}")

        self.moves_played.append(move.uci())

    def make_move(self, time_limit: Optional[float] = None,
                  iteration_cap: Optional[int] = None) -> Optional[chess.Move]:
        """
        Choose the move to play in the current position.

        Args:
            time_limit: Search budget in seconds. Defaults to the configured one.
            iteration_cap: Maximum number of search iterations.

        Returns:
            The move to play, or None if there is no legal move.
        """
        book_move = self._book_move()
        if book_move is not None:
            self.log.info(f"Playing book move {book_move.uci()}")
            return book_move

        if time_limit is None and iteration_cap is None:
            time_limit, iteration_cap = self.time_limit, self.iteration_cap

        if self.searcher == 'pure_monte_carlo':
            move = self.pure_monte_carlo.find_best_move(self.env, time_limit)
        else:
            move = self.mcts.find_best_move(time_limit, iteration_cap)

        if move is None:
            self.log.info("No move available")
        else:
            self.log.info(f"Best move: {move.uci()}")
        return move

    def _book_move(self) -> Optional[chess.Move]:
        if self.book_node is None:
            return None

        move = self.opening_book.find_best_move(self.book_node)
        if move is not None and move not in self.env.get_legal_moves():
            self.log.warning(f"Book move {move.uci()} is not legal in {self.env.get_fen()}, searching instead")
            return None
        return move

    def evaluation(self) -> float:
        """
        Estimate the engine's own chance of winning.

        The estimate comes from the configured searcher: the tree root for
        MCTS, or the chosen move's mean playout score for pure Monte Carlo.

        Returns:
            Value in [0, 1].
        """
        if self.searcher == 'pure_monte_carlo':
            evaluation = self.pure_monte_carlo.evaluation(self.env)
        else:
            evaluation = self.mcts.evaluation()
        if self.env.turn != self.my_side:
            evaluation = 1 - evaluation
        return evaluation

    def is_game_going_to_end_soon(self) -> bool:
        return self.mcts.is_game_going_to_end_soon()

    @property
    def in_book(self) -> bool:
        return self.book_node is not None
