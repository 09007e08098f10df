#!/usr/bin/env python3
"""
PGN Import / Export

Builds repertoire chapters from PGN (one chapter per game, variations and
comments kept) and imports played games for review. Also writes a chapter
tree back out as PGN movetext.

Usage:
  python pgn_import.py repertoire.pgn --name "Italian Game" --color white
  python pgn_import.py games.pgn --games
"""

import argparse
import hashlib
import io
import logging
import sys
import uuid
from pathlib import Path

import chess
import chess.pgn

sys.path.insert(0, str(Path(__file__).resolve().parent))
from db import get_connection, insert_user_game, upsert_chapter, upsert_repertoire
from models import Chapter, Repertoire, UserGame
from move_tree import MoveTree
from positions import STARTING_FEN

logger = logging.getLogger(__name__)


def _iter_games(text: str):
    stream = io.StringIO(text)
    while True:
        game = chess.pgn.read_game(stream)
        if game is None:
            return
        for error in game.errors:
            logger.warning("PGN error in %r: %s", game.headers.get("Event", "?"), error)
        yield game


def _tree_from_game(game: chess.pgn.Game) -> MoveTree:
    tree = MoveTree(game.board().fen())
    stack = [(game, None)]
    while stack:
        pgn_node, parent_id = stack.pop()
        for variation in pgn_node.variations:
            tree.navigate_to_node(parent_id)
            if not tree.add_move(variation.san()):
                logger.warning("Skipping illegal move %s", variation.san())
                continue
            node = tree.get_current_node()
            if variation.comment:
                tree.set_comment(node.id, variation.comment.strip())
            stack.append((variation, node.id))
    tree.go_to_start()
    return tree


def tree_from_pgn(text: str) -> MoveTree:
    """Build a MoveTree from the first game in the PGN text. Headerless movetext is fine."""
    game = chess.pgn.read_game(io.StringIO(text))
    if game is None:
        raise ValueError("No game found in PGN")
    return _tree_from_game(game)


def tree_to_pgn(tree: MoveTree) -> str:
    """
    PGN movetext of the whole tree, variations in parentheses, comments in
    braces. No headers.
    """
    start_fen = tree.get_start_fen()
    game = chess.pgn.Game()
    if start_fen != STARTING_FEN:
        game.setup(chess.Board(start_fen))

    stack = [(game, tree.get_root_moves(), start_fen)]
    while stack:
        pgn_node, children, pre_fen = stack.pop()
        for child in children:
            move = chess.Board(pre_fen).parse_san(child.san)
            next_node = pgn_node.add_variation(move)
            if child.comment:
                next_node.comment = child.comment
            stack.append((next_node, tree.get_children(child.id), child.fen))

    exporter = chess.pgn.StringExporter(headers=False, variations=True, comments=True)
    return game.accept(exporter)


def _game_id(game: chess.pgn.Game, pgn: str) -> str:
    site = game.headers.get("Site", "")
    if "lichess.org/" in site:
        return site.rstrip("/").rsplit("/", 1)[-1]
    return "game_" + hashlib.sha1(pgn.encode("utf-8")).hexdigest()[:12]


def read_games(text: str) -> list[UserGame]:
    """Split multi-game PGN into UserGame records (main line only)."""
    games = []
    for game in _iter_games(text):
        board = game.board()
        moves = []
        for move in game.mainline_moves():
            moves.append(board.san(move))
            board.push(move)
        if not moves:
            continue

        headers = game.headers
        pgn = str(game)
        games.append(
            UserGame(
                id=_game_id(game, pgn),
                pgn=pgn,
                moves=moves,
                white=headers.get("White", "Unknown"),
                black=headers.get("Black", "Unknown"),
                result=headers.get("Result", "*"),
                date=headers.get("Date", ""),
                event=headers.get("Event"),
                eco=headers.get("ECO"),
            )
        )
    return games


def chapters_from_pgn(text: str) -> list[Chapter]:
    """One chapter per game; the chapter is named after the Event header."""
    chapters = []
    for index, game in enumerate(_iter_games(text)):
        tree = _tree_from_game(game)
        if len(tree) == 0:
            continue
        event = game.headers.get("Event", "?")
        name = event if event and event != "?" else f"Chapter {index + 1}"
        chapters.append(
            Chapter(
                id=uuid.uuid4().hex,
                name=name,
                move_tree=tree.to_json(),
                pgn=tree_to_pgn(tree),
                order=len(chapters),
            )
        )
    return chapters


def opening_type_for(chapters: list[Chapter]) -> str:
    first_moves = {root["san"] for ch in chapters for root in ch.move_tree.get("rootMoves", [])[:1]}
    if first_moves == {"e4"}:
        return "e4"
    if first_moves == {"d4"}:
        return "d4"
    return "irregular"


def main():
    parser = argparse.ArgumentParser(description="Import a PGN file")
    parser.add_argument("source", help="PGN file")
    parser.add_argument("--name", help="Repertoire name (default: file name)")
    parser.add_argument("--color", choices=["white", "black"], default="white")
    parser.add_argument("--games", action="store_true", help="Import as played games for review")
    args = parser.parse_args()

    source = Path(args.source)
    if not source.exists():
        print(f"Error: source {source} does not exist.", file=sys.stderr)
        sys.exit(1)
    text = source.read_text(encoding="utf-8")

    with get_connection() as conn:
        if args.games:
            games = read_games(text)
            for game in games:
                insert_user_game(conn, game)
            print(f"Imported {len(games)} games.")
            return

        chapters = chapters_from_pgn(text)
        if not chapters:
            print(f"Error: no games with moves in {source}.", file=sys.stderr)
            sys.exit(1)
        repertoire = Repertoire(
            id=uuid.uuid4().hex,
            name=args.name or source.stem,
            color=args.color,
            chapters=chapters,
            opening_type=opening_type_for(chapters),
        )
        upsert_repertoire(conn, repertoire)
        for chapter in chapters:
            upsert_chapter(conn, repertoire.id, chapter)
        print(f"Imported repertoire {repertoire.id} with {len(chapters)} chapters.")


if __name__ == "__main__":
    main()
