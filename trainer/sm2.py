"""
SM-2 spaced repetition scheduling.

Quality scale:
  0-2  failed, progress resets
  3    hard
  4    good
  5    easy
"""

import math
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import Line, LineStats

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


@dataclass(frozen=True)
class SM2Result:
    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_next(
    ease_factor: float,
    interval: int,
    repetitions: int,
    quality: int,
    now: datetime | None = None,
) -> SM2Result:
    if not 0 <= quality <= 5:
        raise ValueError(f"quality must be between 0 and 5, got {quality}")
    now = now or utcnow()

    if quality < 3:
        repetitions = 0
        interval = 1
    else:
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            # half rounds up
            interval = math.floor(interval * ease_factor + 0.5)
        repetitions += 1

    ease_factor = max(
        MIN_EASE_FACTOR,
        ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)),
    )
    return SM2Result(ease_factor, interval, repetitions, now + timedelta(days=interval))


def new_line_stats(line: Line, now: datetime | None = None) -> LineStats:
    return LineStats(
        line_id=line.id,
        repertoire_id=line.repertoire_id,
        chapter_id=line.chapter_id,
        ease_factor=DEFAULT_EASE_FACTOR,
        interval=0,
        repetitions=0,
        next_review_date=now or utcnow(),
    )


def apply_rating(
    stats: LineStats,
    quality: int,
    mistakes: int,
    now: datetime | None = None,
) -> LineStats:
    """New stats record after one completed drill of the line."""
    now = now or utcnow()
    result = calculate_next(stats.ease_factor, stats.interval, stats.repetitions, quality, now)
    return LineStats(
        line_id=stats.line_id,
        repertoire_id=stats.repertoire_id,
        chapter_id=stats.chapter_id,
        ease_factor=result.ease_factor,
        interval=result.interval,
        repetitions=result.repetitions,
        next_review_date=result.next_review_date,
        last_review_date=now,
        total_drills=stats.total_drills + 1,
        correct_count=stats.correct_count + (1 if mistakes == 0 else 0),
        mistake_count=stats.mistake_count + mistakes,
    )

