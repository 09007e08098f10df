"""Data models for the repertoire trainer."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

RepertoireColor = Literal["white", "black"]
TrainingMode = Literal["depth-first", "width-first"]
DrillFeedback = Literal["correct", "incorrect", "line-complete", "session-complete"]
DeviationType = Literal["user-misplay", "opponent-novelty", "coverage-gap"]
KeyMoveReason = Literal["user-misplay", "opponent-novelty", "coverage-gap", "transposition"]
SessionState = Literal["drilling", "awaiting-rating", "complete"]

# ply -> normalized FEN -> SAN moves the repertoire plays from there
PositionMap = dict[int, dict[str, set[str]]]


@dataclass
class MoveNode:
    """One ply in a variation tree. Links are node ids into the owning tree."""

    id: str
    san: str
    fen: str
    move_number: int
    is_black: bool
    parent_id: str | None = None
    children: list[str] = field(default_factory=list)
    is_critical: bool | None = None
    comment: str | None = None


@dataclass
class FlatMove:
    """Display row produced by MoveTree.get_flat_moves()."""

    id: str
    san: str
    move_number: int
    is_black: bool
    depth: int
    is_main_line: bool
    is_variation_start: bool
    needs_move_number: bool
    is_critical: bool | None = None
    comment: str | None = None


@dataclass(frozen=True)
class LineMove:
    san: str
    fen: str
    pre_fen: str
    is_user_move: bool
    node_id: str
    move_number: int
    is_black: bool
    is_critical: bool | None = None
    comment: str | None = None


@dataclass(frozen=True)
class Line:
    """Root-to-leaf path through a chapter tree; the unit of drilling."""

    id: str
    repertoire_id: str
    chapter_id: str
    moves: tuple[LineMove, ...]
    depth: int
    is_main_line: bool
    branch_point: int | None


@dataclass
class LineStats:
    """SM-2 record for one line."""

    line_id: str
    repertoire_id: str
    chapter_id: str
    ease_factor: float = 2.5
    interval: int = 0
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_review_date: datetime | None = None
    total_drills: int = 0
    correct_count: int = 0
    mistake_count: int = 0


@dataclass
class Chapter:
    id: str
    name: str
    move_tree: dict[str, Any]
    pgn: str = ""
    order: int = 0


@dataclass
class Repertoire:
    id: str
    name: str
    color: RepertoireColor
    chapters: list[Chapter] = field(default_factory=list)
    eco: str = ""
    opening_type: Literal["e4", "d4", "irregular"] = "irregular"


@dataclass
class TrainingConfig:
    repertoire_id: str
    mode: TrainingMode = "depth-first"
    chapter_id: str | None = None
    max_depth: int | None = None
    include_only_due_lines: bool = False


@dataclass
class TrainingSession:
    """In-memory drilling run. Effects persist only through returned LineStats."""

    id: str
    repertoire_id: str
    chapter_id: str | None
    color: RepertoireColor
    mode: TrainingMode
    max_depth: int | None
    lines: list[Line]
    started_at: datetime
    current_line_index: int = 0
    current_move_index: int = 0
    current_depth: int = 0
    line_progress: dict[str, int] = field(default_factory=dict)
    lines_completed: int = 0
    line_mistakes: int = 0
    session_mistakes: int = 0
    is_complete: bool = False
    awaiting_rating: bool = False

    @property
    def state(self) -> SessionState:
        if self.is_complete:
            return "complete"
        if self.awaiting_rating:
            return "awaiting-rating"
        return "drilling"


@dataclass(frozen=True)
class PositionPrompt:
    fen: str
    is_user_turn: bool


@dataclass
class DrillResult:
    is_correct: bool
    expected_move: str
    user_move: str
    feedback: DrillFeedback
    next_position: PositionPrompt | None = None
    opponent_move: str | None = None
    opponent_fen: str | None = None
    # where the session continues; in width-first mode this can be another line
    next_drill_position: PositionPrompt | None = None


@dataclass
class RatingResult:
    """Outcome of rating a line. updated_stats is None when the rating was rejected."""

    updated_stats: LineStats | None
    has_more: bool


@dataclass
class TrainingDashboardStats:
    repertoire_id: str
    total_lines: int
    lines_due: int
    lines_learned: int
    average_ease_factor: float
    completion_percent: float


@dataclass(frozen=True)
class BFSQueueItem:
    fen: str
    expected_move: str
    move_number: int
    is_black_move: bool
    path: tuple[str, ...]


@dataclass
class RepertoireMatchResult:
    matched: bool
    is_user_move: bool
    expected_moves: list[str] = field(default_factory=list)
    deviation_type: DeviationType | None = None


@dataclass(frozen=True)
class KeyMoveResult:
    is_key_move: bool
    reason: KeyMoveReason | None = None


@dataclass
class UserGame:
    id: str
    pgn: str
    moves: list[str]
    white: str = "Unknown"
    black: str = "Unknown"
    result: str = "*"
    date: str = ""
    event: str | None = None
    eco: str | None = None


@dataclass
class MasterGameReference:
    game_id: str
    white: str
    black: str
    result: str
    year: int
    move_played: str
    frequency: float = 0.0
    event: str | None = None


@dataclass
class MoveAnalysis:
    move_index: int
    san: str
    fen: str
    pre_fen: str
    is_key_move: bool
    key_move_reason: KeyMoveReason | None
    repertoire_match: RepertoireMatchResult
    master_game_refs: list[MasterGameReference] = field(default_factory=list)


@dataclass
class GameReviewSession:
    id: str
    game_id: str
    user_color: RepertoireColor
    moves: list[MoveAnalysis]
    key_move_indices: list[int]
    followed_repertoire: bool
    started_at: datetime
    current_move_index: int = 0
    is_complete: bool = False


@dataclass
class GameReviewStatus:
    game_id: str
    reviewed: bool
    last_review_date: datetime
    key_moves_count: int
    followed_repertoire: bool
