"""
Cache of moves proven to force a win.
"""

import chess
import logging
from typing import Dict, Optional

from .chess_environment import AntichessEnvironment

logger = logging.getLogger(__name__)


class ForcedSequenceCache:
    """
    Maps a position identity to the move to play there.

    Entries are only added by backpropagation once a line is proven to win
    for the searching side, and only removed by clear().
    """

    def __init__(self):
        self._moves: Dict[str, chess.Move] = {}

    def lookup(self, env: AntichessEnvironment) -> Optional[chess.Move]:
        return self._moves.get(env.position_key())

    def record(self, sequence: Dict[str, chess.Move]) -> None:
        """
        Store a proven line.

        Args:
            sequence: Position keys mapped to the move played from them.
        """
        self._moves.update(sequence)
        logger.debug(f"Forced sequence recorded: {len(sequence)} positions, {len(self._moves)} total")

    def clear(self) -> None:
        self._moves.clear()

    def __contains__(self, env: AntichessEnvironment) -> bool:
        return env.position_key() in self._moves

    def __len__(self) -> int:
        return len(self._moves)
