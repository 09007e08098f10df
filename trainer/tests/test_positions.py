"""Tests for positions.py"""

import sys
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from positions import apply_san, normalize_fen, san_from_squares

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def test_normalize_fen_drops_counters():
    assert normalize_fen(AFTER_E4) == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq -"


def test_normalize_fen_equal_across_move_counters():
    a = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    b = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 12 40"
    assert normalize_fen(a) == normalize_fen(b)


def test_apply_san_returns_resulting_position():
    applied = apply_san(chess.STARTING_FEN, "e4")
    assert applied.san == "e4"
    assert applied.fen == AFTER_E4
    assert applied.move_number == 1
    assert applied.is_black is False


def test_apply_san_black_move_keeps_move_number():
    applied = apply_san(AFTER_E4, "c5")
    assert applied.move_number == 1
    assert applied.is_black is True


def test_apply_san_canonicalizes_notation():
    assert apply_san(chess.STARTING_FEN, "Ng1f3").san == "Nf3"


def test_apply_san_rejects_illegal_move():
    assert apply_san(chess.STARTING_FEN, "e5") is None
    assert apply_san(chess.STARTING_FEN, "Qh5") is None


def test_apply_san_rejects_garbage():
    assert apply_san(chess.STARTING_FEN, "xyz") is None
    assert apply_san("not a fen", "e4") is None


def test_san_from_squares():
    assert san_from_squares(chess.STARTING_FEN, "g1", "f3") == "Nf3"
    assert san_from_squares(chess.STARTING_FEN, "e2", "e5") is None
    assert san_from_squares(chess.STARTING_FEN, "z9", "e4") is None


def test_san_from_squares_promotes_to_queen():
    fen = "8/P7/7k/8/8/8/8/K7 w - - 0 1"
    assert san_from_squares(fen, "a7", "a8") == "a8=Q"
