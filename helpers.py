"""
Shared helpers used across blueprints: calendar grid, recent activity feed,
tips and quotes.
"""

from __future__ import annotations

import calendar
import math
import random
from datetime import date, timedelta
from typing import Any

from coercers import is_iso_date

STUDENT_TIPS = [
    "Set short daily goals",
    "Review mistakes weekly",
    "Use active recall",
    "Practice timed papers",
    "Sleep 8 hours",
    "Move your body",
    "Ask for help early",
]

PARENT_TIPS = [
    "Set a consistent study routine (same time/place).",
    "Model calm under stress; praise effort, not just results.",
    "Create a distraction-free zone (phones out during study).",
    "Do weekly check-ins focusing on roadblocks and next steps.",
    "Provide practice resources; track progress, not perfection.",
    "Prioritize sleep and nutrition during exam periods.",
    "Coordinate with teachers early if issues persist.",
]

QUOTES = [
    "Small steps every day.",
    "Practice beats talent when talent doesn't practice.",
    "The man who does not read books has no advantage over the one who cannot read them. (Mark Twain)",
    "Your future self is watching.",
    "Teachers can open the door, but you must enter it yourself.",
    "The beautiful thing about learning is that no one can take it away from you.",
    "A person who never made a mistake never tried anything new. (Albert Einstein)",
    "Procrastination makes easy things hard and hard things harder. (Mason Cooley)",
    "You don't have to be great to start, but you have to start to be great.",
]

RECENT_DAYS = 7
RECENT_ITEMS = 10


def tips_for(role: str) -> list[str]:
    return PARENT_TIPS if role == "parent" else STUDENT_TIPS


def random_quote(rng: random.Random | None = None) -> str:
    return (rng or random).choice(QUOTES)


def month_matrix(year: int, month: int) -> list[list[dict[str, Any]]]:
    """Monday-first weeks covering *month*, padded with neighbouring days.

    Each cell is ``{"date": "YYYY-MM-DD", "day": int, "in_month": bool}``.
    """
    first = date(year, month, 1)
    start = first - timedelta(days=first.weekday())
    last_day = calendar.monthrange(year, month)[1]
    n_weeks = math.ceil((first.weekday() + last_day) / 7)
    weeks: list[list[dict[str, Any]]] = []
    cursor = start
    for _ in range(n_weeks):
        row = []
        for _ in range(7):
            row.append({
                "date": cursor.isoformat(),
                "day": cursor.day,
                "in_month": cursor.month == month,
            })
            if cursor == date.max:
                # Last week of 9999 stops at date.max
                break
            cursor += timedelta(days=1)
        weeks.append(row)
    return weeks


def recent_items(
    activities: dict[str, list[str]],
    attachments: dict[str, list[dict[str, Any]]],
    days: int = RECENT_DAYS,
    limit: int = RECENT_ITEMS,
) -> list[dict[str, Any]]:
    """Latest activities and files, newest date first.

    Looks at the *days* most recent dates that have anything recorded and
    returns at most *limit* items; within a date activities come before
    files.
    """
    dates = sorted(
        (d for d in {**activities, **attachments} if is_iso_date(d)),
        reverse=True,
    )[:days]
    items: list[dict[str, Any]] = []
    for day in dates:
        for text in activities.get(day, []):
            items.append({"type": "activity", "text": text, "day": day})
        for f in attachments.get(day, []):
            items.append({"type": "file", "name": f.get("name", ""), "day": day})
    return items[:limit]
