"""
Training session engine: drills the user's moves line by line and schedules
each completed line with SM-2.

Session state moves drilling -> awaiting-rating -> drilling | complete.
A correct move advances the session immediately; the caller then either
keeps drilling or rates the finished line with complete_line_and_advance().
"""

import logging
import math
import sys
import time
import uuid
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from line_extractor import extract_lines, filter_lines_with_user_moves, get_user_positions
from models import (
    DrillResult,
    Line,
    LineStats,
    PositionPrompt,
    RatingResult,
    Repertoire,
    TrainingConfig,
    TrainingDashboardStats,
    TrainingSession,
)
from positions import san_from_squares
from sm2 import DEFAULT_EASE_FACTOR, apply_rating, new_line_stats, utcnow

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _is_due(stats: LineStats, now: datetime) -> bool:
    return stats.next_review_date is not None and stats.next_review_date <= now


def start_session(
    config: TrainingConfig,
    repertoire: Repertoire,
    all_line_stats: list[LineStats],
    now: datetime | None = None,
) -> TrainingSession:
    now = now or utcnow()
    chapters = repertoire.chapters
    if config.chapter_id:
        chapters = [ch for ch in chapters if ch.id == config.chapter_id]

    lines: list[Line] = []
    for chapter in chapters:
        lines.extend(
            extract_lines(chapter.move_tree, repertoire.id, chapter.id, repertoire.color, config.max_depth)
        )
    lines = filter_lines_with_user_moves(lines)

    if config.include_only_due_lines:
        due_ids = {s.line_id for s in all_line_stats if _is_due(s, now)}
        lines = [line for line in lines if line.id in due_ids]

    session = TrainingSession(
        id=generate_session_id(),
        repertoire_id=repertoire.id,
        chapter_id=config.chapter_id,
        color=repertoire.color,
        mode=config.mode,
        max_depth=config.max_depth,
        lines=lines,
        started_at=now,
        is_complete=not lines,
    )
    if config.mode == "width-first":
        session.line_progress = {line.id: 0 for line in lines}

    logger.info(
        "Started %s session %s on %s: %d lines from %d chapter(s)",
        session.mode, session.id, repertoire.id, len(lines), len(chapters),
    )
    return session


def _current_line(session: TrainingSession) -> Line | None:
    if 0 <= session.current_line_index < len(session.lines):
        return session.lines[session.current_line_index]
    return None


def get_current_position(session: TrainingSession) -> tuple[str, str] | None:
    """(fen, expected SAN) of the position the user has to answer, if any."""
    if session.is_complete or session.awaiting_rating:
        return None
    line = _current_line(session)
    if line is None:
        return None
    user_moves = get_user_positions(line)
    if session.current_move_index >= len(user_moves):
        return None
    move = user_moves[session.current_move_index]
    return move.pre_fen, move.san


def get_next_user_position(session: TrainingSession, start_index: int) -> PositionPrompt | None:
    line = _current_line(session)
    if line is None:
        return None
    for move in line.moves[start_index:]:
        if move.is_user_move:
            return PositionPrompt(fen=move.pre_fen, is_user_turn=True)
    return None


def get_progress(session: TrainingSession) -> dict:
    line = _current_line(session)
    return {
        "line_number": session.current_line_index + 1,
        "total_lines": len(session.lines),
        "move_number": session.current_move_index + 1,
        "total_moves_in_line": len(get_user_positions(line)) if line else 0,
    }


def process_user_move(session: TrainingSession, from_square: str, to_square: str) -> DrillResult:
    """
    Check one from/to move against the expected SAN at the current position.

    A wrong legal move counts as a mistake for the line. Input the rules
    oracle rejects is reported incorrect without counting. A correct move
    advances the session. The result then carries the opponent's reply from
    the line, if any, and the user's next turn in that same line;
    next_drill_position is where the session continues.
    """
    line = _current_line(session)
    if session.is_complete or line is None:
        return DrillResult(False, "", "", "session-complete")
    if session.awaiting_rating:
        return DrillResult(False, "", "", "line-complete")

    user_moves = get_user_positions(line)
    if session.current_move_index >= len(user_moves):
        return DrillResult(False, "", "", "line-complete")
    expected = user_moves[session.current_move_index]

    played = san_from_squares(expected.pre_fen, from_square, to_square)
    if played is None:
        return DrillResult(False, expected.san, f"{from_square}{to_square}", "incorrect")

    if played != expected.san:
        session.line_mistakes += 1
        session.session_mistakes += 1
        logger.debug("Line %s: expected %s, got %s", line.id, expected.san, played)
        return DrillResult(False, expected.san, played, "incorrect")

    index_in_line = next(i for i, m in enumerate(line.moves) if m.node_id == expected.node_id)
    following = line.moves[index_in_line + 1] if index_in_line + 1 < len(line.moves) else None

    result = DrillResult(True, expected.san, played, "correct")
    if following is not None and not following.is_user_move:
        result.opponent_move = following.san
        result.opponent_fen = following.fen

    result.next_position = get_next_user_position(session, index_in_line + 2)

    advance_to_next_position(session)

    if session.awaiting_rating:
        result.feedback = "line-complete"
    elif session.is_complete:
        result.feedback = "session-complete"
    else:
        position = get_current_position(session)
        if position is not None:
            result.next_drill_position = PositionPrompt(fen=position[0], is_user_turn=True)
    return result


def advance_to_next_position(session: TrainingSession) -> bool:
    """Move past the position just answered. False when nothing is left to drill right now."""
    if session.mode == "width-first":
        return advance_width_first(session)
    return advance_depth_first(session)


def advance_depth_first(session: TrainingSession) -> bool:
    line = session.lines[session.current_line_index]
    if session.current_move_index < len(get_user_positions(line)) - 1:
        session.current_move_index += 1
        return True
    session.awaiting_rating = True
    return False


def advance_width_first(session: TrainingSession) -> bool:
    if not session.line_progress:
        session.line_progress = {line.id: 0 for line in session.lines}

    line = session.lines[session.current_line_index]
    session.line_progress[line.id] = session.current_move_index + 1
    if session.line_progress[line.id] >= len(get_user_positions(line)):
        session.awaiting_rating = True
        return False

    depth = session.current_move_index
    for i in range(session.current_line_index + 1, len(session.lines)):
        candidate = session.lines[i]
        progress = session.line_progress.get(candidate.id, 0)
        if len(get_user_positions(candidate)) > depth and progress <= depth:
            session.current_line_index = i
            session.current_move_index = depth
            return True

    # every line tested at this depth, restart the scan one ply deeper
    session.current_depth += 1
    session.current_move_index += 1
    for i, candidate in enumerate(session.lines):
        progress = session.line_progress.get(candidate.id, 0)
        if len(get_user_positions(candidate)) > session.current_move_index and progress <= session.current_move_index:
            session.current_line_index = i
            return True

    session.is_complete = True
    return False


def _next_incomplete_line(session: TrainingSession) -> int | None:
    count = len(session.lines)
    start = session.current_line_index
    # scan forward, then wrap around to the start
    for i in list(range(start + 1, count)) + list(range(0, start + 1)):
        candidate = session.lines[i]
        if session.line_progress.get(candidate.id, 0) < len(get_user_positions(candidate)):
            return i
    return None


def complete_line_and_advance(
    session: TrainingSession,
    quality: int,
    existing_stats: list[LineStats],
    now: datetime | None = None,
) -> RatingResult:
    """
    Rate the finished line and move to the next one.

    Returns the updated stats record for the caller to persist. Rating a line
    that is not awaiting a rating is a no-op and returns no stats.
    """
    if session.is_complete or not session.awaiting_rating:
        return RatingResult(None, not session.is_complete)

    now = now or utcnow()
    line = session.lines[session.current_line_index]
    stats = next((s for s in existing_stats if s.line_id == line.id), None)
    if stats is None:
        stats = new_line_stats(line, now)
    updated = apply_rating(stats, quality, session.line_mistakes, now)

    logger.info(
        "Line %s rated %d with %d mistake(s): interval %d day(s), ease %.2f",
        line.id, quality, session.line_mistakes, updated.interval, updated.ease_factor,
    )
    session.line_mistakes = 0
    session.lines_completed += 1
    session.awaiting_rating = False

    if session.mode == "depth-first":
        if session.current_line_index < len(session.lines) - 1:
            session.current_line_index += 1
            session.current_move_index = 0
            return RatingResult(updated, True)
        session.is_complete = True
        return RatingResult(updated, False)

    next_index = _next_incomplete_line(session)
    if next_index is None:
        session.is_complete = True
        return RatingResult(updated, False)
    session.current_line_index = next_index
    session.current_move_index = session.line_progress.get(session.lines[next_index].id, 0)
    return RatingResult(updated, True)


def compute_dashboard_stats(
    repertoire_id: str,
    lines: list[Line],
    stats: list[LineStats],
    now: datetime | None = None,
) -> TrainingDashboardStats:
    now = now or utcnow()
    by_line = {s.line_id: s for s in stats}
    tracked = [by_line[line.id] for line in lines if line.id in by_line]

    learned = sum(1 for s in tracked if s.repetitions >= 1)
    average_ease = sum(s.ease_factor for s in tracked) / len(tracked) if tracked else DEFAULT_EASE_FACTOR
    completion = math.floor(learned / len(lines) * 1000) / 10 if lines else 0.0

    return TrainingDashboardStats(
        repertoire_id=repertoire_id,
        total_lines=len(lines),
        lines_due=sum(1 for s in tracked if _is_due(s, now)),
        lines_learned=learned,
        average_ease_factor=round(average_ease, 2),
        completion_percent=completion,
    )
