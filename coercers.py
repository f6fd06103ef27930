"""Validation and coercion for the calendar-keyed parts of the state blob.

Coercion never rejects: invalid input is normalized to a default. The
``check_*`` functions return a ``Coerced`` result so callers can tell a
valid value from a substituted default; the ``coerce_*`` functions return
the value alone.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

MAX_ENTRIES_PER_DATE = 50
DEFAULT_TARGET_SCORE = 75

_ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


@dataclass(frozen=True)
class Coerced(Generic[T]):
    """A coerced value and whether the input was already valid."""

    value: T
    valid: bool


def is_iso_date(value: Any) -> bool:
    """True for strings shaped ``YYYY-MM-DD``."""
    return isinstance(value, str) and _ISO_DATE_RE.fullmatch(value) is not None


def _to_number(value: Any) -> float | None:
    """Numeric value of *value*, or None when it has none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _date_keyed(value: Any, convert) -> Coerced[dict[str, list]]:
    if not isinstance(value, dict):
        return Coerced({}, value is None)
    out: dict[str, list] = {}
    valid = True
    for key, entries in value.items():
        if not is_iso_date(key) or not isinstance(entries, (list, tuple)):
            valid = False
            continue
        if len(entries) > MAX_ENTRIES_PER_DATE:
            valid = False
        out[key] = [convert(e) for e in entries[:MAX_ENTRIES_PER_DATE]]
    return Coerced(out, valid)


def _activity(entry: Any) -> str:
    return entry if isinstance(entry, str) else str(entry)


def _attachment(entry: Any) -> dict[str, Any]:
    if isinstance(entry, dict):
        name = entry.get("name") or ""
        size = _to_number(entry.get("size"))
    else:
        name, size = entry, None
    size = int(size) if size is not None and size > 0 else 0
    return {"name": str(name), "size": size}


def check_activities(value: Any) -> Coerced[dict[str, list[str]]]:
    return _date_keyed(value, _activity)


def check_attachments(value: Any) -> Coerced[dict[str, list[dict[str, Any]]]]:
    return _date_keyed(value, _attachment)


def check_exam_date(value: Any) -> Coerced[str]:
    if is_iso_date(value):
        return Coerced(value, True)
    return Coerced("", value in (None, ""))


def check_target_score(value: Any) -> Coerced[float | int]:
    number = _to_number(value)
    if number is None:
        return Coerced(DEFAULT_TARGET_SCORE, False)
    return Coerced(int(number) if number.is_integer() else number, True)


def coerce_activities(value: Any) -> dict[str, list[str]]:
    """Drop non-date keys and non-list values, stringify, cap at 50 per date."""
    return check_activities(value).value


def coerce_attachments(value: Any) -> dict[str, list[dict[str, Any]]]:
    """Drop non-date keys, normalize to ``{name, size}`` records, cap at 50."""
    return check_attachments(value).value


def coerce_exam_date(value: Any) -> str:
    return check_exam_date(value).value


def coerce_target_score(value: Any) -> float | int:
    return check_target_score(value).value


def coerce_users(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def coerce_current_user(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None
