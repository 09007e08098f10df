"""
Variation tree for one repertoire chapter.

Nodes live in an arena keyed by id; parent links, child lists and the cursor
are ids into that arena. The first entry of any child list (or of the root
list) is the main line continuation, every other entry is a variation.

Serialized form (the only persisted representation of a chapter):

  {"rootMoves": [Node, ...], "startFen": str, "nodeIdCounter": int}
  Node = {"id", "san", "fen", "moveNumber", "isBlack", "children",
          "isCritical"?, "comment"?}
"""

import re
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import FlatMove, MoveNode
from positions import STARTING_FEN, apply_san

_NODE_ID_RE = re.compile(r"^node_(\d+)$")


class MoveTree:
    def __init__(self, start_fen: str | None = None):
        self._start_fen = start_fen or STARTING_FEN
        self._nodes: dict[str, MoveNode] = {}
        self._root_moves: list[str] = []
        self._current: str | None = None
        self._node_id_counter = 0

    def _generate_id(self) -> str:
        self._node_id_counter += 1
        return f"node_{self._node_id_counter}"

    def _siblings(self, parent_id: str | None) -> list[str]:
        return self._nodes[parent_id].children if parent_id is not None else self._root_moves

    # ---- read access ----

    def get_start_fen(self) -> str:
        return self._start_fen

    def get_current_fen(self) -> str:
        if self._current is None:
            return self._start_fen
        return self._nodes[self._current].fen

    def get_current_node(self) -> MoveNode | None:
        return self._nodes[self._current] if self._current is not None else None

    def get_node(self, node_id: str) -> MoveNode | None:
        return self._nodes.get(node_id)

    def get_root_moves(self) -> list[MoveNode]:
        return [self._nodes[i] for i in self._root_moves]

    def get_children(self, node_id: str | None) -> list[MoveNode]:
        """Children of a node, or the root moves for None. Unknown ids give []."""
        if node_id is not None and node_id not in self._nodes:
            return []
        return [self._nodes[i] for i in self._siblings(node_id)]

    def get_parent(self, node_id: str) -> MoveNode | None:
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self._nodes[node.parent_id]

    def is_at_start(self) -> bool:
        return self._current is None

    def is_at_end(self) -> bool:
        return not self._siblings(self._current)

    def __len__(self) -> int:
        return len(self._nodes)

    # ---- mutation ----

    def add_move(self, san: str) -> bool:
        """
        Play `san` from the current position. An existing child with the same
        move becomes current instead of creating a duplicate. Returns False and
        leaves the tree untouched when the move is illegal.
        """
        applied = apply_san(self.get_current_fen(), san)
        if applied is None:
            return False

        siblings = self._siblings(self._current)
        for child_id in siblings:
            if self._nodes[child_id].san == applied.san:
                self._current = child_id
                return True

        node = MoveNode(
            id=self._generate_id(),
            san=applied.san,
            fen=applied.fen,
            move_number=applied.move_number,
            is_black=applied.is_black,
            parent_id=self._current,
        )
        self._nodes[node.id] = node
        siblings.append(node.id)
        self._current = node.id
        return True

    def promote_to_main_line(self, node_id: str) -> bool:
        """Swap a variation into the first slot of its sibling list."""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        siblings = self._siblings(node.parent_id)
        index = siblings.index(node_id)
        if index == 0:
            return False
        siblings[0], siblings[index] = siblings[index], siblings[0]
        return True

    def is_variation(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        return self._siblings(node.parent_id).index(node_id) > 0

    def mark_as_critical(self, node_id: str, is_critical: bool) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.is_critical = is_critical
        return True

    def set_comment(self, node_id: str, comment: str | None) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.comment = comment or None
        return True

    def reset(self) -> None:
        self._nodes = {}
        self._root_moves = []
        self._current = None
        self._node_id_counter = 0

    # ---- navigation ----

    def navigate_to_node(self, node_id: str | None) -> bool:
        if node_id is None:
            self._current = None
            return True
        if node_id not in self._nodes:
            return False
        self._current = node_id
        return True

    def go_back(self) -> bool:
        if self._current is None:
            return False
        parent = self.get_parent(self._current)
        self._current = parent.id if parent is not None else None
        return True

    def go_forward(self) -> bool:
        """Step into the main line continuation (first child)."""
        children = self._siblings(self._current)
        if not children:
            return False
        self._current = children[0]
        return True

    def go_to_start(self) -> None:
        self._current = None

    def go_to_end(self) -> None:
        while self.go_forward():
            pass

    def get_current_path(self) -> list[MoveNode]:
        path = []
        node_id = self._current
        while node_id is not None:
            node = self._nodes[node_id]
            path.append(node)
            node_id = node.parent_id
        path.reverse()
        return path

    def get_main_line(self) -> list[str]:
        moves = []
        children = self._root_moves
        while children:
            node = self._nodes[children[0]]
            moves.append(node.san)
            children = node.children
        return moves

    # ---- display ----

    def get_flat_moves(self) -> list[FlatMove]:
        """
        Flatten for display. The whole main line comes first at depth 0; then
        the alternatives of each main-line move, deepest first, and finally the
        alternative first moves. Inside a variation, nested variations follow
        the variation move they branch from.
        """
        moves: list[FlatMove] = []
        main_nodes: list[MoveNode] = []
        children = self._root_moves
        while children:
            node = self._nodes[children[0]]
            prev = moves[-1] if moves else None
            needs_number = (
                not node.is_black
                or prev is None
                or prev.is_black
                or prev.move_number != node.move_number
            )
            moves.append(self._flat(node, 0, variation_start=False, needs_number=needs_number))
            main_nodes.append(node)
            children = node.children

        for node in reversed(main_nodes):
            for variation_id in node.children[1:]:
                self._flatten_variation(variation_id, 1, moves)
        for variation_id in self._root_moves[1:]:
            self._flatten_variation(variation_id, 1, moves)
        return moves

    def _flatten_variation(self, node_id: str, depth: int, moves: list[FlatMove]) -> None:
        # ("start", id, depth) opens a variation; ("walk", id, depth) continues it past id
        stack: list[tuple[str, str, int]] = [("start", node_id, depth)]
        while stack:
            kind, current_id, current_depth = stack.pop()
            current = self._nodes[current_id]
            if kind == "start":
                moves.append(self._flat(current, current_depth, variation_start=True, needs_number=True))
                stack.append(("walk", current_id, current_depth))
                continue
            if not current.children:
                continue

            following = self._nodes[current.children[0]]
            prev = moves[-1]
            needs_number = not following.is_black or prev.is_black or prev.move_number != following.move_number
            moves.append(self._flat(following, current_depth, variation_start=False, needs_number=needs_number))
            stack.append(("walk", following.id, current_depth))
            for variation_id in reversed(current.children[1:]):
                stack.append(("start", variation_id, current_depth + 1))

    @staticmethod
    def _flat(node: MoveNode, depth: int, variation_start: bool, needs_number: bool) -> FlatMove:
        return FlatMove(
            id=node.id,
            san=node.san,
            move_number=node.move_number,
            is_black=node.is_black,
            depth=depth,
            is_main_line=depth == 0,
            is_variation_start=variation_start,
            needs_move_number=needs_number,
            is_critical=node.is_critical,
            comment=node.comment,
        )

    # ---- serialization ----

    def to_json(self) -> dict[str, Any]:
        root_out: list[dict] = []
        stack: list[tuple[str, list]] = [(i, root_out) for i in reversed(self._root_moves)]
        while stack:
            node_id, target = stack.pop()
            node = self._nodes[node_id]
            data: dict[str, Any] = {
                "id": node.id,
                "san": node.san,
                "fen": node.fen,
                "moveNumber": node.move_number,
                "isBlack": node.is_black,
                "children": [],
            }
            if node.is_critical is not None:
                data["isCritical"] = node.is_critical
            if node.comment is not None:
                data["comment"] = node.comment
            target.append(data)
            stack.extend((child_id, data["children"]) for child_id in reversed(node.children))

        return {
            "rootMoves": root_out,
            "startFen": self._start_fen,
            "nodeIdCounter": self._node_id_counter,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "MoveTree":
        """Rebuild a tree. The cursor always starts at the start position."""
        tree = cls(data.get("startFen"))
        counter = data.get("nodeIdCounter") or 0

        stack: list[tuple[dict, str | None]] = [(n, None) for n in reversed(data["rootMoves"])]
        while stack:
            raw, parent_id = stack.pop()
            node = MoveNode(
                id=raw["id"],
                san=raw["san"],
                fen=raw["fen"],
                move_number=raw["moveNumber"],
                is_black=raw["isBlack"],
                parent_id=parent_id,
                is_critical=raw.get("isCritical"),
                comment=raw.get("comment"),
            )
            tree._nodes[node.id] = node
            tree._siblings(parent_id).append(node.id)

            match = _NODE_ID_RE.match(str(node.id))
            if match:
                counter = max(counter, int(match.group(1)))
            stack.extend((child, node.id) for child in reversed(raw.get("children") or []))

        tree._node_id_counter = counter
        return tree
