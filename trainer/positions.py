"""Position helpers: FEN normalization and the python-chess move oracle."""

from dataclasses import dataclass

import chess

STARTING_FEN = chess.STARTING_FEN


@dataclass(frozen=True)
class AppliedMove:
    """Result of playing one SAN move on a position."""

    san: str
    fen: str
    move_number: int
    is_black: bool


def normalize_fen(fen: str) -> str:
    """Keep placement, side to move, castling and en passant; drop the counters."""
    return " ".join(fen.split(" ")[:4])


def board_from_fen(fen: str) -> chess.Board | None:
    try:
        return chess.Board(fen)
    except ValueError:
        return None


def apply_san(fen: str, san: str) -> AppliedMove | None:
    """
    Play `san` on `fen`. Returns the canonical SAN and resulting FEN, or None
    when the oracle rejects the position or the move.
    """
    board = board_from_fen(fen)
    if board is None:
        return None
    try:
        move = board.parse_san(san)
    except (chess.InvalidMoveError, chess.IllegalMoveError, chess.AmbiguousMoveError):
        return None
    canonical = board.san(move)
    move_number = board.fullmove_number
    is_black = board.turn == chess.BLACK
    board.push(move)
    return AppliedMove(san=canonical, fen=board.fen(), move_number=move_number, is_black=is_black)


def san_from_squares(fen: str, from_square: str, to_square: str) -> str | None:
    """
    Convert a from/to square pair into SAN for `fen`. Pawn moves onto the last
    rank promote to a queen. Returns None for unparsable squares or illegal moves.
    """
    board = board_from_fen(fen)
    if board is None:
        return None
    try:
        src = chess.parse_square(from_square)
        dst = chess.parse_square(to_square)
    except ValueError:
        return None
    promotion = None
    piece = board.piece_at(src)
    if piece is not None and piece.piece_type == chess.PAWN and chess.square_rank(dst) in (0, 7):
        promotion = chess.QUEEN
    move = chess.Move(src, dst, promotion=promotion)
    if move not in board.legal_moves:
        return None
    return board.san(move)
