"""Tests for pgn_import.py"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from move_tree import MoveTree
from pgn_import import chapters_from_pgn, main, opening_type_for, read_games, tree_from_pgn, tree_to_pgn

REPERTOIRE_PGN = """[Event "Italian Game"]
[Site "?"]
[Result "*"]

1. e4 e5 (1... c5 2. Nf3) 2. Nf3 {main line} Nc6 3. Bc4 *

[Event "?"]
[Result "*"]

1. d4 d5 2. c4 *
"""

GAMES_PGN = """[Event "Rated Blitz game"]
[Site "https://lichess.org/abcd1234"]
[White "alice"]
[Black "bob"]
[Result "1-0"]
[Date "2024.02.11"]
[ECO "C50"]

1. e4 e5 2. Nf3 Nc6 3. Bc4 1-0

[Event "Casual"]
[White "carol"]
[Black "dave"]
[Result "*"]

*
"""


def test_tree_from_headerless_movetext():
    tree = tree_from_pgn("1. e4 e5 (1... c5 2. Nf3) 2. Nf3 {main line} Nc6 *")
    assert tree.get_main_line() == ["e4", "e5", "Nf3", "Nc6"]
    e4 = tree.get_root_moves()[0]
    assert [n.san for n in tree.get_children(e4.id)] == ["e5", "c5"]
    nf3 = tree.get_children(tree.get_children(e4.id)[0].id)[0]
    assert nf3.comment == "main line"
    assert tree.is_at_start()


def test_tree_from_empty_text_raises():
    with pytest.raises(ValueError):
        tree_from_pgn("")


def test_tree_to_pgn_round_trip():
    tree = tree_from_pgn("1. e4 e5 (1... c5 2. Nf3 d6) 2. Nf3 {main line} Nc6 (2... d6) 3. Bb5 *")
    pgn = tree_to_pgn(tree)
    assert pgn.startswith("1. e4 e5")
    assert "1... c5" in pgn
    assert "{ main line }" in pgn

    again = tree_from_pgn(pgn)
    assert again.get_main_line() == tree.get_main_line()
    assert [(m.san, m.depth) for m in again.get_flat_moves()] == [(m.san, m.depth) for m in tree.get_flat_moves()]


def test_tree_to_pgn_empty_tree():
    assert tree_to_pgn(MoveTree()).strip() == "*"


def test_read_games():
    games = read_games(GAMES_PGN)
    assert len(games) == 1
    game = games[0]
    assert game.id == "abcd1234"
    assert game.moves == ["e4", "e5", "Nf3", "Nc6", "Bc4"]
    assert game.white == "alice"
    assert game.black == "bob"
    assert game.result == "1-0"
    assert game.date == "2024.02.11"
    assert game.eco == "C50"


def test_read_games_without_site_gets_stable_id():
    text = "1. d4 d5 2. c4 *"
    assert read_games(text)[0].id == read_games(text)[0].id
    assert read_games(text)[0].id.startswith("game_")


def test_chapters_from_pgn():
    chapters = chapters_from_pgn(REPERTOIRE_PGN)
    assert [c.name for c in chapters] == ["Italian Game", "Chapter 2"]
    assert [c.order for c in chapters] == [0, 1]
    tree = MoveTree.from_json(chapters[0].move_tree)
    assert tree.get_main_line() == ["e4", "e5", "Nf3", "Nc6", "Bc4"]
    assert chapters[1].pgn.startswith("1. d4 d5 2. c4")


def test_opening_type_for():
    assert opening_type_for(chapters_from_pgn("1. e4 e5 *")) == "e4"
    assert opening_type_for(chapters_from_pgn(REPERTOIRE_PGN)) == "irregular"


def test_main_imports_repertoire(tmp_path, monkeypatch):
    source = tmp_path / "italian.pgn"
    source.write_text(REPERTOIRE_PGN)
    monkeypatch.setattr(sys, "argv", ["pgn_import.py", str(source), "--color", "white"])

    mock_conn = MagicMock()
    mock_conn.__enter__ = MagicMock(return_value=mock_conn)
    mock_conn.__exit__ = MagicMock(return_value=False)

    with patch("pgn_import.get_connection", return_value=mock_conn), \
         patch("pgn_import.upsert_repertoire") as upsert_rep, \
         patch("pgn_import.upsert_chapter") as upsert_ch:
        main()

    repertoire = upsert_rep.call_args[0][1]
    assert repertoire.name == "italian"
    assert repertoire.color == "white"
    assert upsert_ch.call_count == 2


def test_main_imports_games(tmp_path, monkeypatch):
    source = tmp_path / "games.pgn"
    source.write_text(GAMES_PGN)
    monkeypatch.setattr(sys, "argv", ["pgn_import.py", str(source), "--games"])

    mock_conn = MagicMock()
    mock_conn.__enter__ = MagicMock(return_value=mock_conn)
    mock_conn.__exit__ = MagicMock(return_value=False)

    with patch("pgn_import.get_connection", return_value=mock_conn), \
         patch("pgn_import.insert_user_game") as insert:
        main()

    assert insert.call_count == 1
    assert insert.call_args[0][1].id == "abcd1234"
