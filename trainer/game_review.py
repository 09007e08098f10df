"""
Game review: replay a played game against the user's repertoires and mark
the plies worth looking at.

Each ply is classified by position_matcher; the key-move flags (first ply of
a deviation, ply that transposes back in) are threaded through the game here.
"""

import logging
import sys
import time
import uuid
from collections import Counter
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import (
    GameReviewSession,
    GameReviewStatus,
    MasterGameReference,
    MoveAnalysis,
    Repertoire,
    RepertoireColor,
    UserGame,
)
from position_matcher import build_repertoire_position_map, check_repertoire_match_fen, identify_key_move
from positions import STARTING_FEN, apply_san, normalize_fen
from sm2 import utcnow

logger = logging.getLogger(__name__)


def _year(date: str) -> int:
    head = date.split(".")[0]
    return int(head) if head.isdigit() else 0


def find_master_games(fen: str, move_played: str, master_games: list[UserGame]) -> list[MasterGameReference]:
    """
    Master games that reached the same position and played the same move.
    frequency is the move's share of all master continuations from the position.
    """
    target = normalize_fen(fen)
    move_counts: Counter[str] = Counter()
    references = []

    for game in master_games:
        current = STARTING_FEN
        for san in game.moves:
            applied = apply_san(current, san)
            if applied is None:
                break
            if normalize_fen(current) == target:
                move_counts[applied.san] += 1
                if applied.san == move_played:
                    references.append(
                        MasterGameReference(
                            game_id=game.id,
                            white=game.white,
                            black=game.black,
                            result=game.result,
                            year=_year(game.date),
                            move_played=applied.san,
                            event=game.event,
                        )
                    )
            current = applied.fen

    total = sum(move_counts.values())
    for ref in references:
        ref.frequency = move_counts[ref.move_played] / total if total else 0.0
    return references


def review_game(
    game: UserGame,
    user_color: RepertoireColor,
    repertoires: list[Repertoire],
    master_games: list[UserGame] = (),
) -> GameReviewSession:
    position_map = build_repertoire_position_map(repertoires, user_color)

    moves: list[MoveAnalysis] = []
    has_deviated = False
    was_in_repertoire = True
    pre_fen = STARTING_FEN

    for ply, san in enumerate(game.moves):
        applied = apply_san(pre_fen, san)
        if applied is None:
            logger.warning("Invalid move %r in game %s after %d plies; stopping", san, game.id, ply)
            break

        match = check_repertoire_match_fen(pre_fen, applied.san, ply, applied.is_black, user_color, position_map)
        key = identify_key_move(match, has_deviated, was_in_repertoire)
        if not match.matched:
            has_deviated = True
        was_in_repertoire = match.matched

        moves.append(
            MoveAnalysis(
                move_index=ply,
                san=applied.san,
                fen=applied.fen,
                pre_fen=pre_fen,
                is_key_move=key.is_key_move,
                key_move_reason=key.reason,
                repertoire_match=match,
                master_game_refs=find_master_games(pre_fen, applied.san, list(master_games)),
            )
        )
        pre_fen = applied.fen

    if not moves:
        raise ValueError(f"No playable moves in game {game.id}")

    key_move_indices = [m.move_index for m in moves if m.is_key_move]
    session = GameReviewSession(
        id=f"review_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
        game_id=game.id,
        user_color=user_color,
        moves=moves,
        key_move_indices=key_move_indices,
        followed_repertoire=all(m.repertoire_match.matched for m in moves),
        started_at=utcnow(),
    )
    logger.info("Reviewed game %s: %d plies, %d key moves", game.id, len(moves), len(key_move_indices))
    return session


def create_review_status(session: GameReviewSession, now: datetime | None = None) -> GameReviewStatus:
    return GameReviewStatus(
        game_id=session.game_id,
        reviewed=True,
        last_review_date=now or utcnow(),
        key_moves_count=len(session.key_move_indices),
        followed_repertoire=session.followed_repertoire,
    )
