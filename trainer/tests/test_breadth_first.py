"""Tests for breadth_first.py"""

import sys
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from breadth_first import build_queue
from move_tree import MoveTree


def build(*lines: list[str]) -> MoveTree:
    tree = MoveTree()
    for line in lines:
        tree.go_to_start()
        for san in line:
            assert tree.add_move(san), san
    tree.go_to_start()
    return tree


def test_queue_is_shallowest_first_and_user_moves_only():
    tree = build(["e4", "e5", "Nf3", "Nc6", "Bb5"], ["e4", "c5", "Nf3"])
    queue = build_queue(tree, "white")
    assert [item.expected_move for item in queue] == ["e4", "Nf3", "Nf3", "Bb5"]
    assert queue[0].fen == chess.STARTING_FEN
    assert queue[0].path == ()
    assert queue[-1].path == ("e4", "e5", "Nf3", "Nc6")
    assert all(not item.is_black_move for item in queue)


def test_queue_for_black():
    tree = build(["e4", "e5", "Nf3", "Nc6"], ["d4", "d5"])
    queue = build_queue(tree, "black")
    assert [item.expected_move for item in queue] == ["e5", "d5", "Nc6"]
    assert all(item.is_black_move for item in queue)
    assert queue[0].path == ("e4",)


def test_transposed_positions_yield_one_item():
    tree = build(
        ["d4", "Nf6", "c4", "e6", "Nc3"],
        ["c4", "e6", "d4", "Nf6", "Nc3"],
    )
    queue = build_queue(tree, "white")
    assert [item.expected_move for item in queue].count("Nc3") == 1
    # different moves from the shared position are still separate items
    assert len(queue) == 5


def test_same_move_from_different_positions_kept():
    tree = build(["e4", "e5", "Nf3"], ["e4", "c5", "Nf3"])
    queue = build_queue(tree.to_json(), "white")
    assert [item.expected_move for item in queue] == ["e4", "Nf3", "Nf3"]
    assert queue[1].fen != queue[2].fen


def test_empty_tree():
    assert build_queue(MoveTree(), "white") == []
