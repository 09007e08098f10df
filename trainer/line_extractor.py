"""
Line extraction: flatten a chapter's variation tree into drillable lines.

Depth-first walk from the root moves. The first child continues the current
path, every other child starts a new path whose branch point is the depth of
the first divergence. A path ends, and becomes a Line, at a leaf or at the
depth limit. Emission order: main line first, then variations in tree order.
"""

import logging
import string
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import Line, LineMove, MoveNode, RepertoireColor
from move_tree import MoveTree

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def as_tree(move_tree: MoveTree | dict[str, Any]) -> MoveTree:
    return move_tree if isinstance(move_tree, MoveTree) else MoveTree.from_json(move_tree)


def hash_string(text: str) -> str:
    """Deterministic 32-bit string hash rendered as `line_<base36>`."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    h = abs(h)
    digits = ""
    while True:
        h, rem = divmod(h, 36)
        digits = _BASE36[rem] + digits
        if h == 0:
            break
    return f"line_{digits}"


def is_user_move(node: MoveNode, color: RepertoireColor) -> bool:
    return (color == "white") == (not node.is_black)


def create_line_move(node: MoveNode, pre_fen: str, color: RepertoireColor) -> LineMove:
    return LineMove(
        san=node.san,
        fen=node.fen,
        pre_fen=pre_fen,
        is_user_move=is_user_move(node, color),
        node_id=node.id,
        move_number=node.move_number,
        is_black=node.is_black,
        is_critical=node.is_critical,
        comment=node.comment,
    )


def create_line(
    moves: tuple[LineMove, ...] | list[LineMove],
    repertoire_id: str,
    chapter_id: str,
    is_main_line: bool,
    branch_point: int | None,
) -> Line:
    moves = tuple(moves)
    move_string = "-".join(m.san for m in moves)
    return Line(
        id=hash_string(f"{chapter_id}-{move_string}"),
        repertoire_id=repertoire_id,
        chapter_id=chapter_id,
        moves=moves,
        depth=len(moves),
        is_main_line=is_main_line,
        branch_point=branch_point,
    )


def extract_lines(
    move_tree: MoveTree | dict[str, Any],
    repertoire_id: str,
    chapter_id: str,
    color: RepertoireColor,
    max_depth: int | None = None,
) -> list[Line]:
    """Extract every line of a tree in depth-first order."""
    tree = as_tree(move_tree)
    depth_limit = max_depth if max_depth is not None else float("inf")
    lines: list[Line] = []

    # (sibling nodes, path so far, fen before the next move, main line?, branch point, depth)
    stack = [(tree.get_root_moves(), (), tree.get_start_fen(), True, None, 0)]
    while stack:
        nodes, path, pre_fen, is_main, branch_point, depth = stack.pop()
        if not nodes or depth >= depth_limit:
            if path:
                lines.append(create_line(path, repertoire_id, chapter_id, is_main, branch_point))
            continue

        for index in range(len(nodes) - 1, -1, -1):
            node = nodes[index]
            child_path = path + (create_line_move(node, pre_fen, color),)
            if index == 0:
                frame = (tree.get_children(node.id), child_path, node.fen, is_main, branch_point, depth + 1)
            else:
                first_branch = branch_point if branch_point is not None else depth
                frame = (tree.get_children(node.id), child_path, node.fen, False, first_branch, depth + 1)
            stack.append(frame)

    logger.debug("Extracted %d lines from chapter %s", len(lines), chapter_id)
    return lines


def filter_lines_with_user_moves(lines: list[Line]) -> list[Line]:
    """Drop lines where the user never has a move to find."""
    return [line for line in lines if any(m.is_user_move for m in line.moves)]


def get_user_positions(line: Line) -> list[LineMove]:
    return [m for m in line.moves if m.is_user_move]


def order_for_width_first(lines: list[Line]) -> list[tuple[Line, int]]:
    """(line, move index) pairs, every line's ply 0 before any line's ply 1."""
    if not lines:
        return []
    result = []
    for depth in range(max(line.depth for line in lines)):
        for line in lines:
            if depth < line.depth:
                result.append((line, depth))
    return result
