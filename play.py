"""
Play script for the antichess AI system.

This script lets the engine play complete games against itself.
"""

import os
import sys
import argparse
import logging

import chess

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from core.chess_environment import AntichessEnvironment
from main import AntichessAI

logger = logging.getLogger(__name__)


def play_game(ai, fen='startpos', time_limit=None, max_plies=300):
    """
    Play one game of the engine against itself.

    Args:
        ai: AntichessAI instance providing configuration and opening book
        fen: Starting position, FEN or 'startpos'
        time_limit: Search time per move in seconds
        max_plies: Number of plies after which the game is abandoned as a draw

    Returns:
        Tuple of (result string, list of UCI moves)
    """
    engines = {
        chess.WHITE: ai.new_engine(fen, True),
        chess.BLACK: ai.new_engine(fen, False),
    }
    board = AntichessEnvironment(None if fen == 'startpos' else fen)
    moves = []

    while len(moves) < max_plies:
        engine = engines[board.turn]
        engine.update_game_state(' '.join(moves))

        move = engine.make_move(time_limit)
        if move is None:
            # The side to move cannot move and has won
            result = "1-0" if board.turn == chess.WHITE else "0-1"
            return result, moves

        board.make_move(move)
        moves.append(move.uci())
        print(f"{(len(moves) + 1) // 2}{'.' if len(moves) % 2 else '...'} {move.uci()}")

        if board.is_dead_draw():
            return "1/2-1/2", moves

    logger.info(f"Game abandoned after {max_plies} plies")
    return "1/2-1/2", moves


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Let the antichess AI play itself")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to configuration file")
    parser.add_argument("--fen", type=str, default="startpos",
                        help="Starting position, FEN or 'startpos'")
    parser.add_argument("--time", type=float, default=None,
                        help="Search time per move in seconds")
    parser.add_argument("--games", type=int, default=1,
                        help="Number of games to play")

    args = parser.parse_args()

    ai = AntichessAI(args.config)
    try:
        for game in range(args.games):
            result, moves = play_game(ai, args.fen, args.time)
            print(f"Game {game + 1}: {result} after {len(moves)} plies")
    except KeyboardInterrupt:
        print("\nPlay session stopped by user")


if __name__ == "__main__":
    main()
