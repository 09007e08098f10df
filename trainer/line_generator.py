"""
Incremental line generation for large trees.

Same depth-first order as line_extractor.extract_lines, but resumable: an
explicit stack of frames (remaining siblings at each level plus the path
state) lets callers pull one batch of lines at a time.
"""

import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent))
from line_extractor import as_tree, create_line, create_line_move
from models import Line, LineMove, MoveNode, RepertoireColor
from move_tree import MoveTree

DEFAULT_BATCH_SIZE = 50
REFILL_RATIO = 0.2


@dataclass
class _Frame:
    nodes: list[MoveNode]
    node_index: int
    path: tuple[LineMove, ...]
    pre_fen: str
    is_main_line: bool
    branch_point: int | None
    depth: int


class LineGenerator:
    def __init__(
        self,
        move_tree: MoveTree | dict[str, Any],
        repertoire_id: str,
        chapter_id: str,
        color: RepertoireColor,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_depth: int | None = None,
    ):
        self._tree = as_tree(move_tree)
        self.repertoire_id = repertoire_id
        self.chapter_id = chapter_id
        self.color = color
        self.batch_size = batch_size
        self._depth_limit = max_depth if max_depth is not None else math.inf
        self.reset()

    @property
    def total_lines(self) -> int:
        return self._total_lines

    @property
    def loaded_lines(self) -> list[Line]:
        return self._loaded_lines

    def reset(self) -> None:
        self._loaded_lines: list[Line] = []
        self._completed: set[int] = set()
        self._total_lines = self._count_leaves()
        self._stack: list[_Frame] = []
        roots = self._tree.get_root_moves()
        if roots and self._depth_limit >= 1:
            self._stack.append(_Frame(roots, 0, (), self._tree.get_start_fen(), True, None, 0))

    def _count_leaves(self) -> int:
        """Number of lines the full walk will emit, without building them."""
        if self._depth_limit < 1:
            return 0
        count = 0
        stack = [(node, 0) for node in self._tree.get_root_moves()]
        while stack:
            node, depth = stack.pop()
            children = self._tree.get_children(node.id)
            if not children or depth + 1 >= self._depth_limit:
                count += 1
            else:
                stack.extend((child, depth + 1) for child in children)
        return count

    def has_more(self) -> bool:
        return bool(self._stack)

    def load_next_batch(self) -> list[Line]:
        batch: list[Line] = []
        while self._stack and len(batch) < self.batch_size:
            frame = self._stack[-1]
            if frame.node_index >= len(frame.nodes):
                self._stack.pop()
                continue

            node = frame.nodes[frame.node_index]
            is_variation = frame.node_index > 0
            frame.node_index += 1

            path = frame.path + (create_line_move(node, frame.pre_fen, self.color),)
            is_main_line = frame.is_main_line and not is_variation
            branch_point = frame.branch_point
            if is_variation and branch_point is None:
                branch_point = frame.depth

            children = self._tree.get_children(node.id)
            if not children or frame.depth + 1 >= self._depth_limit:
                line = create_line(path, self.repertoire_id, self.chapter_id, is_main_line, branch_point)
                batch.append(line)
                self._loaded_lines.append(line)
            else:
                self._stack.append(
                    _Frame(children, 0, path, node.fen, is_main_line, branch_point, frame.depth + 1)
                )

        # drop exhausted frames so has_more() is exact
        while self._stack and self._stack[-1].node_index >= len(self._stack[-1].nodes):
            self._stack.pop()
        return batch

    def mark_completed(self, line_index: int) -> None:
        """Record a finished line; pull another batch when the backlog runs low."""
        self._completed.add(line_index)
        uncompleted = sum(1 for i in range(len(self._loaded_lines)) if i not in self._completed)
        if uncompleted < math.ceil(self.batch_size * REFILL_RATIO) and self.has_more():
            self.load_next_batch()
