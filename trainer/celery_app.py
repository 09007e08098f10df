"""Celery application for background game review."""

import os
from celery import Celery

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

app = Celery("trainer", broker=REDIS_URL, backend=REDIS_URL)
app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)


@app.task(bind=True, max_retries=3)
def review_game_task(self, game_id: str, user_color: str):
    """Celery task: review a stored game against the user's repertoires and save the status."""
    from db import get_connection, get_repertoires_by_color, get_user_game, upsert_review_status
    from game_review import create_review_status, review_game

    try:
        with get_connection() as conn:
            game = get_user_game(conn, game_id)
            if game is None:
                return None

            repertoires = get_repertoires_by_color(conn, user_color)
            session = review_game(game, user_color, repertoires)
            status = create_review_status(session)
            upsert_review_status(conn, status)
            return {
                "game_id": game_id,
                "key_moves": session.key_move_indices,
                "followed_repertoire": session.followed_repertoire,
            }
    except ValueError:
        raise
    except Exception as exc:
        raise self.retry(exc=exc, countdown=5)
