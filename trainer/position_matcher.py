"""
Repertoire position matching for game review.

The position map indexes every repertoire move by (ply, normalized pre-move
FEN), merged across all chapters of all repertoires of the trained color, so
different move orders that transpose into the same position share one entry.
Leaf positions are indexed with an empty move set.
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from line_extractor import as_tree
from models import (
    Chapter,
    KeyMoveResult,
    PositionMap,
    Repertoire,
    RepertoireColor,
    RepertoireMatchResult,
)
from positions import apply_san, normalize_fen

logger = logging.getLogger(__name__)


def _add_position(position_map: PositionMap, ply: int, fen: str, san: str | None) -> None:
    moves = position_map.setdefault(ply, {}).setdefault(normalize_fen(fen), set())
    if san is not None:
        moves.add(san)


def extract_positions_from_chapter(chapter: Chapter) -> PositionMap:
    """
    Replay every path of the chapter tree on the rules oracle and index each
    pre-move position by ply. Subtrees behind an illegal stored move are skipped.
    """
    tree = as_tree(chapter.move_tree)
    positions: PositionMap = {}

    stack = [(node, tree.get_start_fen(), 0) for node in reversed(tree.get_root_moves())]
    while stack:
        node, pre_fen, ply = stack.pop()
        applied = apply_san(pre_fen, node.san)
        if applied is None:
            logger.warning("Invalid move %r at ply %d in chapter %r; skipping subtree", node.san, ply, chapter.name)
            continue

        _add_position(positions, ply, pre_fen, applied.san)
        children = tree.get_children(node.id)
        if not children:
            _add_position(positions, ply + 1, applied.fen, None)
        for child in reversed(children):
            stack.append((child, applied.fen, ply + 1))

    return positions


def merge_position_maps(target: PositionMap, source: PositionMap) -> None:
    for ply, positions in source.items():
        merged = target.setdefault(ply, {})
        for fen, moves in positions.items():
            merged.setdefault(fen, set()).update(moves)


def build_repertoire_position_map(repertoires: list[Repertoire], user_color: RepertoireColor) -> PositionMap:
    combined: PositionMap = {}
    relevant = [rep for rep in repertoires if rep.color == user_color]
    for repertoire in relevant:
        for chapter in repertoire.chapters:
            merge_position_maps(combined, extract_positions_from_chapter(chapter))

    total = sum(len(p) for p in combined.values())
    logger.info(
        "Position map built from %d %s repertoire(s): %d positions over %d plies",
        len(relevant), user_color, total, len(combined),
    )
    return combined


def check_repertoire_match_fen(
    pre_fen: str,
    played_move: str,
    ply_count: int,
    is_black_move: bool,
    trained_color: RepertoireColor,
    position_map: PositionMap,
) -> RepertoireMatchResult:
    """
    Classify one played move against the repertoire.

    Matched moves report what the repertoire plays next from the resulting
    position. Unmatched moves report what the repertoire plays from the
    position instead, and why they fell out: the user's own misplay, an
    opponent novelty, or a coverage gap when the repertoire has no entry for
    the position at all. A known end-of-line position counts as a deviation.
    """
    is_user_move = (trained_color == "white") != is_black_move
    known_moves = position_map.get(ply_count, {}).get(normalize_fen(pre_fen))

    applied = apply_san(pre_fen, played_move)
    san = applied.san if applied else played_move

    if applied is not None and known_moves and san in known_moves:
        next_moves = position_map.get(ply_count + 1, {}).get(normalize_fen(applied.fen), set())
        logger.debug("ply %d: %s matched; next %s", ply_count, san, sorted(next_moves) or "end of line")
        return RepertoireMatchResult(matched=True, is_user_move=is_user_move, expected_moves=sorted(next_moves))

    if known_moves is None:
        logger.debug("ply %d: %s coverage gap", ply_count, san)
        return RepertoireMatchResult(matched=False, is_user_move=is_user_move, deviation_type="coverage-gap")

    deviation = "user-misplay" if is_user_move else "opponent-novelty"
    logger.debug("ply %d: %s deviates (%s); repertoire has %s", ply_count, san, deviation, sorted(known_moves))
    return RepertoireMatchResult(
        matched=False,
        is_user_move=is_user_move,
        expected_moves=sorted(known_moves),
        deviation_type=deviation,
    )


def identify_key_move(
    repertoire_match: RepertoireMatchResult,
    has_already_deviated: bool = False,
    was_in_repertoire_last_move: bool = True,
) -> KeyMoveResult:
    """
    Flag the first ply of each deviation and the ply that transposes back in.
    Pure per call; the caller threads both flags through the game.
    """
    if repertoire_match.matched:
        if has_already_deviated and not was_in_repertoire_last_move:
            return KeyMoveResult(True, "transposition")
        return KeyMoveResult(False)

    if was_in_repertoire_last_move:
        return KeyMoveResult(True, repertoire_match.deviation_type or "coverage-gap")
    return KeyMoveResult(False)
