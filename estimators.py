"""Lock-in urgency and predicted score heuristics.

Both functions take plain values (never the store) and never raise.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Iterable

from coercers import is_iso_date

NEUTRAL_LOCK_IN = 5
MAX_LOCK_IN = 10
FAR_HORIZON_LOCK_IN = 3
HORIZON_DAYS = 180

PRACTICE_WEIGHT = 0.6
EXAM_WEIGHT = 0.4

_SECONDS_PER_DAY = 86400


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def days_until(exam_date: str, now: datetime | None = None) -> int | None:
    """Whole days from *now* to the exam, rounding partial days up.

    The exam date is taken as midnight UTC. Returns None for anything that
    is not a real calendar date.
    """
    if not is_iso_date(exam_date):
        return None
    try:
        day = date.fromisoformat(exam_date)
    except ValueError:
        return None
    exam_at = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.astimezone()
    return math.ceil((exam_at - now).total_seconds() / _SECONDS_PER_DAY)


def compute_lock_in(exam_date: str | None, now: datetime | None = None) -> int:
    """Map an exam date to a 1-10 "lock-in" urgency score.

    Unset -> 5. Exam today or past -> 10. More than 180 days out -> 3.
    In between the score falls linearly from 10 towards 3.
    """
    if not exam_date:
        return NEUTRAL_LOCK_IN
    days = days_until(exam_date, now)
    if days is None:
        return NEUTRAL_LOCK_IN
    if days <= 0:
        return MAX_LOCK_IN
    if days > HORIZON_DAYS:
        return FAR_HORIZON_LOCK_IN
    score = MAX_LOCK_IN - (days / HORIZON_DAYS) * 7
    return max(1, min(MAX_LOCK_IN, _round_half_up(score)))


def _score(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def predict_score(practice_scores: Iterable[Any] | None, last_exam: Any) -> int:
    """Blend recent practice papers (60%) with the last school exam (40%).

    Blank or non-numeric entries count as 0; no practice scores at all
    gives a practice average of 0.
    """
    parsed = [_score(p) for p in (practice_scores or [])]
    avg_practice = sum(parsed) / max(1, len(parsed))
    exam = _score(last_exam)
    return _round_half_up(PRACTICE_WEIGHT * avg_practice + EXAM_WEIGHT * exam)
