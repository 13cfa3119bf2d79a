"""
Antichess opening book.

The book is a proof-number search tree built offline and shipped as a
gzip-compressed stream of fixed 13-byte records in depth-first preorder. Each
record describes the move leading to a node, its proof and disproof numbers
and how many child records follow it.
"""

import io
import os
import math
import zlib
import chess
import logging
import weakref
import numpy as np
from tqdm import tqdm
from typing import BinaryIO, Dict, List, Optional, Any

logger = logging.getLogger(__name__)

RECORD_SIZE = 13
READ_CHUNK_SIZE = 1 << 16

# zlib window bits accepting a gzip header
GZIP_WBITS = 16 + zlib.MAX_WBITS

RECORD_DTYPE = np.dtype([
    ('from_square', 'u1'),
    ('to_square', 'u1'),
    ('promotion', 'i1'),
    ('en_passant', 'i1'),
    ('proof', '<u4'),
    ('disproof', '<u4'),
    ('num_children', 'u1'),
])

# Index is the magnitude of the promotion byte
PROMOTION_PIECES = [None, chess.PAWN, chess.KNIGHT, chess.BISHOP, chess.ROOK, chess.QUEEN, chess.KING]


class BookNode:
    """
    Node of the opening book tree.

    Attributes:
        move: Move leading to this node (meaningless for the root record).
        promotion_piece: Promoted piece with its colour, or None.
        en_passant: En-passant marker byte, kept as stored.
        proof: Proof number.
        disproof: Disproof number.
        ratio: Strength of the node, see compute_ratio().
        children: Child nodes in book order.
        size: Number of nodes in this subtree.
    """

    def __init__(self, move: chess.Move, proof: int, disproof: int,
                 promotion_piece: Optional[chess.Piece] = None, en_passant: int = 0):
        self.move = move
        self.promotion_piece = promotion_piece
        self.en_passant = en_passant
        self.proof = proof
        self.disproof = disproof
        self.ratio = 0.0
        self.children: List[BookNode] = []
        self.size = 1
        self._parent = None

    @property
    def parent(self) -> Optional['BookNode']:
        if self._parent is None:
            return None
        return self._parent()

    def add_child(self, child: 'BookNode') -> None:
        child._parent = weakref.ref(self)
        self.children.append(child)

    def compute_ratio(self) -> float:
        """
        Compute the node ratio from its proof numbers or its children.

        A leaf's ratio is proof / disproof, infinite when disproof is zero.
        An internal node's ratio is the smallest reciprocal of its children's
        ratios.

        Returns:
            The ratio, also stored on the node.
        """
        if not self.children:
            self.ratio = self.proof / self.disproof if self.disproof else math.inf
        else:
            self.ratio = min(_reciprocal(child.ratio) for child in self.children)
        return self.ratio

    def __repr__(self) -> str:
        return f"BookNode({self.move.uci()}, proof={self.proof}, disproof={self.disproof}, ratio={self.ratio:.3f})"


def _reciprocal(value: float) -> float:
    if value == 0:
        return math.inf
    return 1 / value


def pns_square(value: int) -> chess.Square:
    """
    Convert a book square index to a python-chess square.

    The book numbers squares from a8, so the rank is flipped.

    Args:
        value: Square byte from the book, 0-63.

    Returns:
        The corresponding square.
    """
    return 8 * (7 - value // 8) + value % 8


def decode_promotion(value: int) -> Optional[chess.Piece]:
    """
    Decode the signed promotion byte of a record.

    Args:
        value: Signed promotion byte. Its magnitude selects the piece type,
               a negative sign flips the piece to black.

    Returns:
        The promoted piece, or None if the move is not a promotion.
    """
    magnitude = abs(value)
    if magnitude >= len(PROMOTION_PIECES):
        logger.warning(f"Unknown promotion value {value} in opening book, ignoring it")
        return None

    piece_type = PROMOTION_PIECES[magnitude]
    if piece_type is None:
        return None
    if piece_type == chess.PAWN:
        logger.warning("Unexpected promotion to pawn in opening book")

    color = chess.BLACK if value < 0 else chess.WHITE
    return chess.Piece(piece_type, color)


def _node_from_record(record) -> BookNode:
    promotion_piece = decode_promotion(int(record['promotion']))
    move = chess.Move(
        pns_square(int(record['from_square'])),
        pns_square(int(record['to_square'])),
        promotion=promotion_piece.piece_type if promotion_piece else None
    )
    return BookNode(
        move,
        proof=int(record['proof']),
        disproof=int(record['disproof']),
        promotion_piece=promotion_piece,
        en_passant=int(record['en_passant'])
    )


def parse_book(data: bytes, show_progress: bool = False) -> Optional[BookNode]:
    """
    Build the book tree from decompressed record data.

    The records are walked with an explicit stack. A node's ratio is computed
    as soon as its last child has been read. If the data ends before every
    announced child has been read, the nodes still open are completed with
    the children that were found. A record naming a square off the board is
    treated as the end of the data.

    Args:
        data: Decompressed book bytes.
        show_progress: Whether to display a progress bar.

    Returns:
        The root node, or None if the data holds no complete record.
    """
    complete = len(data) // RECORD_SIZE
    if len(data) % RECORD_SIZE:
        logger.warning(f"Opening book ends with a partial record of {len(data) % RECORD_SIZE} bytes")
    if complete == 0:
        logger.warning("Opening book contains no records")
        return None

    records = np.frombuffer(data, dtype=RECORD_DTYPE, count=complete)

    root = None
    # Each entry is [node, children still to read]
    stack = []
    with tqdm(total=complete, desc="Loading opening book", unit="node", disable=not show_progress) as pbar:
        for index, record in enumerate(records):
            from_square, to_square = int(record['from_square']), int(record['to_square'])
            if from_square >= 64 or to_square >= 64:
                logger.warning(f"Malformed square {max(from_square, to_square)} in opening book record "
                               f"{index}, ignoring the rest of the book")
                break

            node = _node_from_record(record)
            if stack:
                stack[-1][0].add_child(node)
                stack[-1][1] -= 1
            else:
                root = node
            stack.append([node, int(record['num_children'])])
            pbar.update(1)

            while stack and stack[-1][1] == 0:
                finished, _ = stack.pop()
                finished.compute_ratio()
                if stack:
                    stack[-1][0].size += finished.size

            if not stack:
                break

    if root is not None and root.size < complete and not stack:
        logger.warning(f"Ignoring {complete - root.size} records after the end of the opening book tree")

    if stack:
        missing = sum(remaining for _, remaining in stack)
        logger.warning(f"Reached end of opening book with {missing} children missing at depth {len(stack)}")
        while stack:
            finished, _ = stack.pop()
            finished.compute_ratio()
            if stack:
                stack[-1][0].size += finished.size

    return root


class OpeningBook:
    """
    Antichess opening database.

    Positions are tracked as book nodes: the caller keeps a cursor starting at
    the root and moves it with apply_move(). Once a move leaves the book the
    cursor becomes None and stays there for the rest of the game.
    """

    def __init__(self, path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        """
        Load the opening book.

        Failures are logged and leave the book empty, so the engine can keep
        playing from search alone.

        Args:
            path: Path to the gzip-compressed book. If None, taken from config.
            config: Configuration parameters.
        """
        config = config or {}
        book_config = config.get('book', {})
        self.show_progress = book_config.get('show_progress', False)
        self.root: Optional[BookNode] = None

        if path is None:
            path = book_config.get('path')
            if path and not os.path.isabs(path):
                path = os.path.join(config.get('base_dir', os.getcwd()), path)
        self.path = path

        if path is None:
            logger.info("No opening book configured")
            return

        logger.info(f"Loading opening book from {path}")
        try:
            with open(path, 'rb') as f:
                self._load(f)
        except OSError as e:
            logger.error(f"Could not read opening book: {e}")

    @classmethod
    def from_stream(cls, stream: BinaryIO, show_progress: bool = False) -> 'OpeningBook':
        """
        Load a book from an open binary stream of compressed data.

        Args:
            stream: File-like object positioned at the start of the gzip data.
            show_progress: Whether to display a progress bar.

        Returns:
            The loaded book (empty on failure).
        """
        book = cls.__new__(cls)
        book.show_progress = show_progress
        book.root = None
        book.path = None
        book._load(stream)
        return book

    @classmethod
    def from_bytes(cls, data: bytes, show_progress: bool = False) -> 'OpeningBook':
        """Load a book from compressed bytes."""
        return cls.from_stream(io.BytesIO(data), show_progress)

    def _load(self, stream: BinaryIO) -> None:
        # Decompress incrementally so that a truncated file still yields
        # every record before the cut
        decompressor = zlib.decompressobj(GZIP_WBITS)
        chunks = []
        try:
            for chunk in iter(lambda: stream.read(READ_CHUNK_SIZE), b''):
                chunks.append(decompressor.decompress(chunk))
                if decompressor.eof:
                    break
            chunks.append(decompressor.flush())
        except zlib.error as e:
            logger.error(f"Opening book is not valid gzip data: {e}")
            return
        except OSError as e:
            logger.error(f"Could not read opening book: {e}")
            return

        if not decompressor.eof:
            logger.warning("Reached end of stream before the end of the compressed opening book")

        self.root = parse_book(b''.join(chunks), self.show_progress)
        if self.root is not None:
            logger.info(f"Book loaded, {self.root.size} nodes")

    @property
    def loaded(self) -> bool:
        return self.root is not None

    def find_best_move(self, node: Optional[BookNode]) -> Optional[chess.Move]:
        """
        Find the book move with the largest ratio.

        Args:
            node: Current book position.

        Returns:
            The move of the first child with the strictly largest positive
            ratio, or None if out of book or there is no such child.
        """
        if node is None:
            return None

        best_ratio = 0.0
        best_move = None
        for child in node.children:
            if child.ratio > best_ratio:
                best_ratio = child.ratio
                best_move = child.move
        return best_move

    def apply_move(self, node: Optional[BookNode], move: chess.Move) -> Optional[BookNode]:
        """
        Follow a move from a book position.

        Args:
            node: Current book position.
            move: Move played.

        Returns:
            The book node reached, or None if the move is not in the book.
        """
        if node is None:
            return None

        for child in node.children:
            if child.move == move:
                return child
        return None
