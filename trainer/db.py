"""Database layer for repertoires, chapter trees, line stats and played games."""

import os
from contextlib import contextmanager

import psycopg
from psycopg.types.json import Jsonb

from models import Chapter, GameReviewStatus, LineStats, Repertoire, UserGame

SCHEMA = """
CREATE TABLE IF NOT EXISTS repertoires (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color TEXT NOT NULL CHECK (color IN ('white', 'black')),
    eco TEXT NOT NULL DEFAULT '',
    opening_type TEXT NOT NULL DEFAULT 'irregular',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS chapters (
    id TEXT PRIMARY KEY,
    repertoire_id TEXT NOT NULL REFERENCES repertoires(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    move_tree JSONB NOT NULL,
    pgn TEXT NOT NULL DEFAULT '',
    sort_order INTEGER NOT NULL DEFAULT 0,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS line_stats (
    repertoire_id TEXT NOT NULL REFERENCES repertoires(id) ON DELETE CASCADE,
    line_id TEXT NOT NULL,
    chapter_id TEXT NOT NULL,
    ease_factor DOUBLE PRECISION NOT NULL DEFAULT 2.5,
    interval_days INTEGER NOT NULL DEFAULT 0,
    repetitions INTEGER NOT NULL DEFAULT 0,
    next_review_date TIMESTAMPTZ,
    last_review_date TIMESTAMPTZ,
    total_drills INTEGER NOT NULL DEFAULT 0,
    correct_count INTEGER NOT NULL DEFAULT 0,
    mistake_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (repertoire_id, line_id)
);

CREATE TABLE IF NOT EXISTS user_games (
    id TEXT PRIMARY KEY,
    pgn TEXT NOT NULL,
    moves TEXT[] NOT NULL,
    white TEXT NOT NULL DEFAULT 'Unknown',
    black TEXT NOT NULL DEFAULT 'Unknown',
    result TEXT NOT NULL DEFAULT '*',
    game_date TEXT NOT NULL DEFAULT '',
    event TEXT,
    eco TEXT,
    imported_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS review_statuses (
    game_id TEXT PRIMARY KEY REFERENCES user_games(id) ON DELETE CASCADE,
    reviewed BOOLEAN NOT NULL DEFAULT FALSE,
    last_review_date TIMESTAMPTZ NOT NULL,
    key_moves_count INTEGER NOT NULL DEFAULT 0,
    followed_repertoire BOOLEAN NOT NULL DEFAULT FALSE
);
"""


def get_connection_string() -> str:
    """Get database connection string from environment."""
    return os.environ.get(
        "DATABASE_URL",
        "postgresql://localhost:5432/repertoire_trainer?user=postgres&password=postgres",
    )


@contextmanager
def get_connection():
    """Context manager for database connections."""
    conn = psycopg.connect(get_connection_string())
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_schema(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        cur.execute(SCHEMA)


def upsert_repertoire(conn: psycopg.Connection, repertoire: Repertoire) -> None:
    """Insert or update repertoire metadata. Chapters are written with upsert_chapter."""
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO repertoires (id, name, color, eco, opening_type)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                color = EXCLUDED.color,
                eco = EXCLUDED.eco,
                opening_type = EXCLUDED.opening_type,
                updated_at = NOW()
            """,
            (repertoire.id, repertoire.name, repertoire.color, repertoire.eco, repertoire.opening_type),
        )


def upsert_chapter(conn: psycopg.Connection, repertoire_id: str, chapter: Chapter) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO chapters (id, repertoire_id, name, move_tree, pgn, sort_order)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                move_tree = EXCLUDED.move_tree,
                pgn = EXCLUDED.pgn,
                sort_order = EXCLUDED.sort_order,
                updated_at = NOW()
            """,
            (chapter.id, repertoire_id, chapter.name, Jsonb(chapter.move_tree), chapter.pgn, chapter.order),
        )


def _get_chapters(conn: psycopg.Connection, repertoire_id: str) -> list[Chapter]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT id, name, move_tree, pgn, sort_order
            FROM chapters WHERE repertoire_id = %s
            ORDER BY sort_order, id
            """,
            (repertoire_id,),
        )
        return [
            Chapter(id=r[0], name=r[1], move_tree=r[2], pgn=r[3] or "", order=r[4])
            for r in cur.fetchall()
        ]


def get_repertoire(conn: psycopg.Connection, repertoire_id: str) -> Repertoire | None:
    """Fetch a repertoire with its chapters in order."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT id, name, color, eco, opening_type FROM repertoires WHERE id = %s",
            (repertoire_id,),
        )
        row = cur.fetchone()
    if not row:
        return None
    return Repertoire(
        id=row[0], name=row[1], color=row[2], eco=row[3] or "", opening_type=row[4],
        chapters=_get_chapters(conn, row[0]),
    )


def get_repertoires_by_color(conn: psycopg.Connection, color: str) -> list[Repertoire]:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT id, name, color, eco, opening_type FROM repertoires WHERE color = %s ORDER BY name",
            (color,),
        )
        rows = cur.fetchall()
    return [
        Repertoire(
            id=r[0], name=r[1], color=r[2], eco=r[3] or "", opening_type=r[4],
            chapters=_get_chapters(conn, r[0]),
        )
        for r in rows
    ]


def get_line_stats(conn: psycopg.Connection, repertoire_id: str) -> list[LineStats]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT line_id, repertoire_id, chapter_id, ease_factor, interval_days, repetitions,
                next_review_date, last_review_date, total_drills, correct_count, mistake_count
            FROM line_stats WHERE repertoire_id = %s
            """,
            (repertoire_id,),
        )
        return [
            LineStats(
                line_id=r[0], repertoire_id=r[1], chapter_id=r[2], ease_factor=r[3],
                interval=r[4], repetitions=r[5], next_review_date=r[6], last_review_date=r[7],
                total_drills=r[8], correct_count=r[9], mistake_count=r[10],
            )
            for r in cur.fetchall()
        ]


def upsert_line_stats(conn: psycopg.Connection, stats: LineStats) -> None:
    """Write the SM-2 record for one line, keyed by (repertoire, line)."""
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO line_stats (
                line_id, repertoire_id, chapter_id, ease_factor, interval_days, repetitions,
                next_review_date, last_review_date, total_drills, correct_count, mistake_count
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (repertoire_id, line_id) DO UPDATE SET
                ease_factor = EXCLUDED.ease_factor,
                interval_days = EXCLUDED.interval_days,
                repetitions = EXCLUDED.repetitions,
                next_review_date = EXCLUDED.next_review_date,
                last_review_date = EXCLUDED.last_review_date,
                total_drills = EXCLUDED.total_drills,
                correct_count = EXCLUDED.correct_count,
                mistake_count = EXCLUDED.mistake_count
            """,
            (
                stats.line_id,
                stats.repertoire_id,
                stats.chapter_id,
                stats.ease_factor,
                stats.interval,
                stats.repetitions,
                stats.next_review_date,
                stats.last_review_date,
                stats.total_drills,
                stats.correct_count,
                stats.mistake_count,
            ),
        )


def insert_user_game(conn: psycopg.Connection, game: UserGame) -> bool:
    """Store a played game. Returns False if a game with the same id already exists."""
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO user_games (id, pgn, moves, white, black, result, game_date, event, eco)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
            """,
            (game.id, game.pgn, game.moves, game.white, game.black, game.result, game.date, game.event, game.eco),
        )
        return cur.rowcount == 1


def get_user_game(conn: psycopg.Connection, game_id: str) -> UserGame | None:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT id, pgn, moves, white, black, result, game_date, event, eco
            FROM user_games WHERE id = %s
            """,
            (game_id,),
        )
        row = cur.fetchone()
    if not row:
        return None
    return UserGame(
        id=row[0], pgn=row[1], moves=list(row[2]), white=row[3], black=row[4],
        result=row[5], date=row[6], event=row[7], eco=row[8],
    )


def upsert_review_status(conn: psycopg.Connection, status: GameReviewStatus) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO review_statuses (game_id, reviewed, last_review_date, key_moves_count, followed_repertoire)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (game_id) DO UPDATE SET
                reviewed = EXCLUDED.reviewed,
                last_review_date = EXCLUDED.last_review_date,
                key_moves_count = EXCLUDED.key_moves_count,
                followed_repertoire = EXCLUDED.followed_repertoire
            """,
            (
                status.game_id,
                status.reviewed,
                status.last_review_date,
                status.key_moves_count,
                status.followed_repertoire,
            ),
        )
