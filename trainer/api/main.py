"""
FastAPI surface for the Repertoire Trainer

Endpoints:
  POST /sessions  - Start a drilling session
  GET /sessions/{session_id}  - Session state and current position
  POST /sessions/{session_id}/move  - Answer the current position
  POST /sessions/{session_id}/rate  - Rate the finished line (SM-2)
  GET /repertoires/{repertoire_id}/lines  - Drillable lines
  GET /repertoires/{repertoire_id}/queue  - Breadth-first training queue
  GET /repertoires/{repertoire_id}/dashboard  - Training stats
  POST /review  - Review a PGN game against the repertoires
  POST /games/{game_id}/review  - Queue a background review of a stored game
"""

import sys
from dataclasses import asdict
from pathlib import Path
from typing import Literal

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from breadth_first import build_queue
from celery_app import review_game_task
from db import get_connection, get_line_stats, get_repertoire, get_repertoires_by_color, upsert_line_stats
from game_review import review_game
from line_extractor import extract_lines, filter_lines_with_user_moves
from models import TrainingConfig, TrainingSession
from pgn_import import read_games
from training import (
    complete_line_and_advance,
    compute_dashboard_stats,
    get_current_position,
    get_progress,
    process_user_move,
    start_session,
)

app = FastAPI(title="Repertoire Trainer API", version="1.0.0")

# In-process session store, lost on restart
SESSIONS: dict[str, TrainingSession] = {}


class StartSessionRequest(BaseModel):
    repertoire_id: str
    mode: Literal["depth-first", "width-first"] = "depth-first"
    chapter_id: str | None = None
    max_depth: int | None = Field(None, ge=1)
    include_only_due_lines: bool = False


class MoveRequest(BaseModel):
    from_square: str = Field(..., pattern=r"^[a-h][1-8]$")
    to_square: str = Field(..., pattern=r"^[a-h][1-8]$")


class RateRequest(BaseModel):
    quality: int = Field(..., ge=0, le=5)


class ReviewRequest(BaseModel):
    pgn: str
    user_color: Literal["white", "black"]


def session_to_response(session: TrainingSession) -> dict:
    position = get_current_position(session)
    return {
        "id": session.id,
        "repertoire_id": session.repertoire_id,
        "chapter_id": session.chapter_id,
        "color": session.color,
        "mode": session.mode,
        "state": session.state,
        "total_lines": len(session.lines),
        "lines_completed": session.lines_completed,
        "line_mistakes": session.line_mistakes,
        "session_mistakes": session.session_mistakes,
        "progress": get_progress(session),
        "position": {"fen": position[0]} if position else None,
        "current_line_id": session.lines[session.current_line_index].id
        if session.current_line_index < len(session.lines) else None,
    }


def _get_session(session_id: str) -> TrainingSession:
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def _load_repertoire(conn, repertoire_id: str):
    repertoire = get_repertoire(conn, repertoire_id)
    if repertoire is None:
        raise HTTPException(status_code=404, detail=f"Repertoire {repertoire_id} not found")
    return repertoire


@app.post("/sessions")
def create_session(body: StartSessionRequest):
    config = TrainingConfig(
        repertoire_id=body.repertoire_id,
        mode=body.mode,
        chapter_id=body.chapter_id,
        max_depth=body.max_depth,
        include_only_due_lines=body.include_only_due_lines,
    )
    with get_connection() as conn:
        repertoire = _load_repertoire(conn, body.repertoire_id)
        stats = get_line_stats(conn, repertoire.id)
    session = start_session(config, repertoire, stats)
    SESSIONS[session.id] = session
    return session_to_response(session)


@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    return session_to_response(_get_session(session_id))


@app.post("/sessions/{session_id}/move")
def submit_move(session_id: str, body: MoveRequest):
    session = _get_session(session_id)
    result = process_user_move(session, body.from_square, body.to_square)
    return {**asdict(result), "state": session.state}


@app.post("/sessions/{session_id}/rate")
def rate_line(session_id: str, body: RateRequest):
    """Rate the finished line; the updated SM-2 record is persisted before returning."""
    session = _get_session(session_id)
    if session.state != "awaiting-rating":
        return {"updated_stats": None, "has_more": not session.is_complete, "state": session.state}

    with get_connection() as conn:
        existing = get_line_stats(conn, session.repertoire_id)
        result = complete_line_and_advance(session, body.quality, existing)
        if result.updated_stats is not None:
            upsert_line_stats(conn, result.updated_stats)
    return {
        "updated_stats": asdict(result.updated_stats) if result.updated_stats else None,
        "has_more": result.has_more,
        "state": session.state,
    }


@app.get("/repertoires/{repertoire_id}/lines")
def get_lines(
    repertoire_id: str,
    chapter_id: str | None = None,
    max_depth: int | None = Query(None, ge=1),
):
    with get_connection() as conn:
        repertoire = _load_repertoire(conn, repertoire_id)
    lines = []
    for chapter in repertoire.chapters:
        if chapter_id and chapter.id != chapter_id:
            continue
        lines.extend(extract_lines(chapter.move_tree, repertoire.id, chapter.id, repertoire.color, max_depth))
    return [asdict(line) for line in filter_lines_with_user_moves(lines)]


@app.get("/repertoires/{repertoire_id}/queue")
def get_queue(repertoire_id: str, chapter_id: str | None = None):
    with get_connection() as conn:
        repertoire = _load_repertoire(conn, repertoire_id)
    items = []
    for chapter in repertoire.chapters:
        if chapter_id and chapter.id != chapter_id:
            continue
        items.extend(asdict(item) for item in build_queue(chapter.move_tree, repertoire.color))
    return items


@app.get("/repertoires/{repertoire_id}/dashboard")
def get_dashboard(repertoire_id: str):
    with get_connection() as conn:
        repertoire = _load_repertoire(conn, repertoire_id)
        stats = get_line_stats(conn, repertoire_id)
    lines = []
    for chapter in repertoire.chapters:
        lines.extend(extract_lines(chapter.move_tree, repertoire.id, chapter.id, repertoire.color))
    lines = filter_lines_with_user_moves(lines)
    return asdict(compute_dashboard_stats(repertoire_id, lines, stats))


@app.post("/review")
def review_pgn(body: ReviewRequest):
    games = read_games(body.pgn)
    if not games:
        raise HTTPException(status_code=400, detail="No game with moves in PGN")
    with get_connection() as conn:
        repertoires = get_repertoires_by_color(conn, body.user_color)
    try:
        session = review_game(games[0], body.user_color, repertoires)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "id": session.id,
        "game_id": session.game_id,
        "user_color": session.user_color,
        "followed_repertoire": session.followed_repertoire,
        "key_move_indices": session.key_move_indices,
        "moves": [asdict(m) for m in session.moves],
    }


@app.post("/games/{game_id}/review", status_code=202)
def queue_review(game_id: str, user_color: Literal["white", "black"] = Query(...)):
    task = review_game_task.delay(game_id, user_color)
    return {"task_id": task.id, "game_id": game_id}


@app.get("/health")
def health():
    return {"status": "ok"}
