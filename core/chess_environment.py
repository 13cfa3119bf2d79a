"""
Antichess environment module for the AI system.

This module provides a wrapper around the python-chess antichess board to
represent the game state, the compulsory-capture move rules and the variant's
terminal conditions used by the search.
"""

import chess
import chess.variant
import logging
from typing import List, Optional, Dict, Any

logger = logging.getLogger(__name__)


class AntichessEnvironment:
    """
    Antichess environment wrapper providing game state representation and manipulation.

    This class encapsulates a python-chess AntichessBoard. Captures are
    compulsory, and the side that cannot move has won.
    """

    def __init__(self, fen: Optional[str] = None):
        """
        Initialize the antichess environment.

        Args:
            fen: Optional FEN string to initialize the board state.
                 If None, the antichess starting position is used.

        Raises:
            ValueError: If the FEN string cannot be parsed.
        """
        if fen:
            try:
                self.board = chess.variant.AntichessBoard(fen)
            except ValueError as e:
                logger.error(f"Invalid FEN: {e}")
                raise
        else:
            self.board = chess.variant.AntichessBoard()

    @classmethod
    def from_board(cls, board: chess.Board) -> 'AntichessEnvironment':
        """Wrap an existing board without copying it."""
        env = cls.__new__(cls)
        env.board = board
        return env

    def copy(self) -> 'AntichessEnvironment':
        """
        Create an independent copy of the current environment.

        The move stack is not carried over, so copies are cheap enough to be
        made for every node and every playout.

        Returns:
            A new AntichessEnvironment instance with the same position.
        """
        return AntichessEnvironment.from_board(self.board.copy(stack=False))

    @property
    def turn(self) -> chess.Color:
        """Side to move."""
        return self.board.turn

    def push(self, move: chess.Move) -> None:
        """Apply a move known to be legal, without checking it."""
        self.board.push(move)

    def make_move(self, move: chess.Move) -> bool:
        """
        Make a move on the board.

        Args:
            move: The move to make.

        Returns:
            True if the move was legal and made, False otherwise.
        """
        if move in self.get_legal_moves():
            self.board.push(move)
            return True
        else:
            logger.warning(f"Illegal move attempted: {move}")
            return False

    def make_move_from_uci(self, uci: str) -> bool:
        """
        Make a move specified in UCI format.

        Args:
            uci: Move in UCI format (e.g., "e2e4", "a7a8k").

        Returns:
            True if the move was legal and made, False otherwise.
        """
        try:
            move = chess.Move.from_uci(uci)
            return self.make_move(move)
        except ValueError:
            logger.error(f"Invalid UCI move: {uci}")
            return False

    def get_legal_moves(self) -> List[chess.Move]:
        """
        Get the legal moves in the current position.

        If any capture is available the legal set is exactly the captures,
        otherwise it is every non-capturing move.

        Returns:
            List of legal moves.
        """
        return list(self.board.legal_moves)

    def is_capture(self, move: chess.Move) -> bool:
        return self.board.is_capture(move)

    def piece_at(self, square: chess.Square) -> Optional[chess.Piece]:
        return self.board.piece_at(square)

    def is_win_for_side_to_move(self, moves: Optional[List[chess.Move]] = None) -> bool:
        """
        Check whether the side to move has already won.

        Args:
            moves: Legal moves of this position, if already generated.

        Returns:
            True if the side to move has no legal move.
        """
        if moves is None:
            moves = self.get_legal_moves()
        return len(moves) == 0

    def is_dead_draw(self, moves: Optional[List[chess.Move]] = None) -> bool:
        """
        Check for the opposite-coloured bishops draw.

        The position is drawn when each side has exactly one bishop, the two
        bishops stand on squares of different colours, and for both colours
        every legal move is a bishop move. The second colour is checked on a
        copy of the placement with the side to move flipped.

        Args:
            moves: Legal moves of this position, if already generated.

        Returns:
            True if the position is a dead draw.
        """
        board = self.board
        white_bishops = board.pieces(chess.BISHOP, chess.WHITE)
        black_bishops = board.pieces(chess.BISHOP, chess.BLACK)
        if len(white_bishops) != 1 or len(black_bishops) != 1:
            return False

        white_light = bool(chess.BB_LIGHT_SQUARES & white_bishops.mask)
        black_light = bool(chess.BB_LIGHT_SQUARES & black_bishops.mask)
        if white_light == black_light:
            return False

        if moves is None:
            moves = self.get_legal_moves()
        if not moves:
            # Someone cannot move, the game is over rather than drawn
            return False
        if not self._only_bishop_moves(moves):
            return False

        flipped = board.copy(stack=False)
        flipped.turn = not board.turn
        flipped.ep_square = None
        return self._only_bishop_moves(flipped.legal_moves)

    def _only_bishop_moves(self, moves) -> bool:
        for move in moves:
            piece = self.board.piece_at(move.from_square)
            if piece is None or piece.piece_type != chess.BISHOP:
                return False
        return True

    def count_threats(self, moves: Optional[List[chess.Move]] = None) -> int:
        """
        Count the capturing moves available to the side to move.

        Args:
            moves: Legal moves of this position, if already generated.

        Returns:
            Number of legal captures.
        """
        if moves is None:
            moves = self.get_legal_moves()
        return sum(1 for move in moves if self.board.is_capture(move))

    def position_key(self) -> str:
        """
        Get an identity for the current position.

        Returns:
            EPD string (placement, side to move, castling, en passant).
        """
        return self.board.epd()

    def get_fen(self) -> str:
        """
        Get the current position as a FEN string.

        Returns:
            FEN string representation of the board.
        """
        return self.board.fen()

    def get_board_state(self) -> Dict[str, Any]:
        """
        Get a dictionary containing information about the current board state.

        Returns:
            Dictionary with board information.
        """
        moves = self.get_legal_moves()
        return {
            'fen': self.board.fen(),
            'turn': 'white' if self.board.turn == chess.WHITE else 'black',
            'fullmove_number': self.board.fullmove_number,
            'halfmove_clock': self.board.halfmove_clock,
            'is_win_for_side_to_move': self.is_win_for_side_to_move(moves),
            'is_dead_draw': self.is_dead_draw(moves),
            'threats': self.count_threats(moves),
            'legal_moves': [move.uci() for move in moves]
        }

    def __str__(self) -> str:
        return str(self.board)
