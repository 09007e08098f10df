"""
Breadth-first training queue: every decision point of the trained color,
shallowest first, one item per (position, move) pair.

Dedup is by transposition: the key is the normalized pre-move FEN plus the
move, so two move orders that reach the same position and continue with the
same move yield a single item.
"""

import sys
from collections import deque
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent))
from line_extractor import as_tree, is_user_move
from models import BFSQueueItem, RepertoireColor
from move_tree import MoveTree
from positions import normalize_fen


def build_queue(move_tree: MoveTree | dict[str, Any], user_color: RepertoireColor) -> list[BFSQueueItem]:
    tree = as_tree(move_tree)
    result: list[BFSQueueItem] = []
    visited: set[str] = set()

    # (node, moves leading to the node's pre-move position, fen before the node's move)
    queue = deque((node, (), tree.get_start_fen()) for node in tree.get_root_moves())
    while queue:
        node, path, pre_fen = queue.popleft()

        if is_user_move(node, user_color):
            key = f"{normalize_fen(pre_fen)}|{node.san}"
            if key not in visited:
                visited.add(key)
                result.append(
                    BFSQueueItem(
                        fen=pre_fen,
                        expected_move=node.san,
                        move_number=node.move_number,
                        is_black_move=node.is_black,
                        path=path,
                    )
                )

        child_path = path + (node.san,)
        for child in tree.get_children(node.id):
            queue.append((child, child_path, node.fen))

    return result
