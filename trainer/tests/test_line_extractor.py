"""Tests for line_extractor.py"""

import sys
from pathlib import Path

import chess

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from line_extractor import (
    extract_lines,
    filter_lines_with_user_moves,
    get_user_positions,
    hash_string,
    order_for_width_first,
)
from move_tree import MoveTree


def build(*lines: list[str]) -> MoveTree:
    tree = MoveTree()
    for line in lines:
        tree.go_to_start()
        for san in line:
            assert tree.add_move(san), san
    tree.go_to_start()
    return tree


def sans(line) -> list[str]:
    return [m.san for m in line.moves]


def test_hash_string_matches_32bit_string_hash():
    assert hash_string("a") == "line_2p"
    assert hash_string("ab") == "line_2e9"


def test_single_line():
    lines = extract_lines(build(["e4", "e5", "Nf3"]), "rep1", "ch1", "white")
    assert len(lines) == 1
    line = lines[0]
    assert sans(line) == ["e4", "e5", "Nf3"]
    assert line.depth == 3
    assert line.is_main_line is True
    assert line.branch_point is None
    assert [m.is_user_move for m in line.moves] == [True, False, True]
    assert line.repertoire_id == "rep1"
    assert line.chapter_id == "ch1"


def test_pre_fen_chains_through_line():
    line = extract_lines(build(["d4", "d5", "c4"]), "rep1", "ch1", "white")[0]
    assert line.moves[0].pre_fen == chess.STARTING_FEN
    for prev, move in zip(line.moves, line.moves[1:]):
        assert move.pre_fen == prev.fen


def test_emission_order_and_branch_points():
    tree = build(["e4", "e5", "Nf3"], ["e4", "c5", "Nf3"], ["d4"])
    lines = extract_lines(tree, "rep1", "ch1", "white")
    assert [sans(l) for l in lines] == [["e4", "e5", "Nf3"], ["e4", "c5", "Nf3"], ["d4"]]
    assert [l.is_main_line for l in lines] == [True, False, False]
    assert [l.branch_point for l in lines] == [None, 1, 0]


def test_branch_point_fixed_at_first_divergence():
    tree = build(["e4", "e5"], ["e4", "c5", "Nf3", "d6"], ["e4", "c5", "Nc3"])
    lines = extract_lines(tree, "rep1", "ch1", "white")
    nested = next(l for l in lines if sans(l) == ["e4", "c5", "Nc3"])
    assert nested.branch_point == 1
    assert nested.is_main_line is False


def test_max_depth_truncates_paths():
    tree = build(["e4", "e5", "Nf3"], ["e4", "e5", "Bc4"], ["e4", "c5"])
    lines = extract_lines(tree, "rep1", "ch1", "white", max_depth=2)
    assert [sans(l) for l in lines] == [["e4", "e5"], ["e4", "c5"]]


def test_line_ids_are_content_derived():
    tree = build(["e4", "e5"], ["e4", "c5"])
    first = extract_lines(tree, "rep1", "ch1", "white")
    again = extract_lines(MoveTree.from_json(tree.to_json()), "rep1", "ch1", "white")
    other_chapter = extract_lines(tree, "rep1", "ch2", "white")
    assert [l.id for l in first] == [l.id for l in again]
    assert first[0].id != first[1].id
    assert first[0].id != other_chapter[0].id
    assert first[0].id == hash_string("ch1-e4-e5")


def test_accepts_serialized_tree():
    tree = build(["e4", "e5"])
    assert sans(extract_lines(tree.to_json(), "rep1", "ch1", "black")[0]) == ["e4", "e5"]


def test_empty_tree_has_no_lines():
    assert extract_lines(MoveTree(), "rep1", "ch1", "white") == []


def test_filter_lines_with_user_moves():
    tree = build(["e4"], ["d4", "d5"])
    lines = extract_lines(tree, "rep1", "ch1", "black")
    kept = filter_lines_with_user_moves(lines)
    assert [sans(l) for l in kept] == [["d4", "d5"]]


def test_get_user_positions():
    line = extract_lines(build(["e4", "e5", "Nf3", "Nc6"]), "rep1", "ch1", "black")[0]
    assert [m.san for m in get_user_positions(line)] == ["e5", "Nc6"]


def test_order_for_width_first():
    tree = build(["e4", "e5", "Nf3"], ["d4"])
    lines = extract_lines(tree, "rep1", "ch1", "white")
    ordered = order_for_width_first(lines)
    assert [(sans(line)[0], index) for line, index in ordered] == [
        ("e4", 0), ("d4", 0), ("e4", 1), ("e4", 2),
    ]
    assert order_for_width_first([]) == []
