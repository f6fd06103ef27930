"""State store — typed get/set over the persisted state blob.

One StateStore is constructed in create_app() and kept in
``app.extensions["state_store"]``; blueprints reach it through
``get_store()``. The store loads and cleans the slot exactly once, then
serves every read from its in-memory cache. Each set() or update() coerces
the value under the store lock, updates the cache and rewrites the whole
blob to the slot.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any, Callable

from flask import current_app

import state_codec
from coercers import (
    coerce_activities,
    coerce_attachments,
    coerce_current_user,
    coerce_exam_date,
    coerce_target_score,
    coerce_users,
)
from persistence import MemorySlot, PersistenceSlot, StorageUnavailable

logger = logging.getLogger(__name__)


class Keys:
    STUDENT_ACTIVITIES = "student_activities"
    ATTACHMENTS = "attachments"
    EXAM_DATE = "exam_date"
    TARGET_SCORE = "target_score"
    USERS = "users"
    CURRENT_USER = "currentUser"


# Applied to every loaded field; only the first four also apply on set().
_LOAD_RULES: dict[str, Callable[[Any], Any]] = {
    Keys.STUDENT_ACTIVITIES: coerce_activities,
    Keys.ATTACHMENTS: coerce_attachments,
    Keys.EXAM_DATE: coerce_exam_date,
    Keys.TARGET_SCORE: coerce_target_score,
    Keys.USERS: coerce_users,
    Keys.CURRENT_USER: coerce_current_user,
}

_SET_RULES: dict[str, Callable[[Any], Any]] = {
    Keys.STUDENT_ACTIVITIES: coerce_activities,
    Keys.ATTACHMENTS: coerce_attachments,
    Keys.EXAM_DATE: coerce_exam_date,
    Keys.TARGET_SCORE: coerce_target_score,
}


class StateStore:
    """Process-wide cache of the state blob, backed by a persistence slot."""

    def __init__(self, slot: PersistenceSlot | None = None) -> None:
        self._lock = threading.Lock()
        self._slot, raw = self._open(slot if slot is not None else MemorySlot())
        self._cache = self._clean(state_codec.decode(raw))

    @staticmethod
    def _open(slot: PersistenceSlot) -> tuple[PersistenceSlot, str | None]:
        """Probe and read the slot, swapping in memory if it is unusable."""
        try:
            slot.probe()
            return slot, slot.read()
        except StorageUnavailable as e:
            logger.warning("State slot unavailable, keeping state in memory only: %s", e)
            return MemorySlot(), None

    @staticmethod
    def _clean(state: Any) -> dict[str, Any]:
        if not isinstance(state, dict):
            state = {}
        return {key: rule(state.get(key)) for key, rule in _LOAD_RULES.items()}

    @property
    def available(self) -> bool:
        """Whether writes reach durable storage."""
        return self._slot.durable

    def get(self, key: str, fallback: Any = None) -> Any:
        """Cached value for *key*, or *fallback* when unset.

        Mappings and lists come back as copies; change them through set()
        or update().
        """
        value = self._cache.get(key)
        if value is None:
            return fallback
        return copy.deepcopy(value) if isinstance(value, (dict, list)) else value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._assign(key, value)

    def update(self, key: str, fn: Callable[[Any], Any]) -> Any:
        """Atomically replace *key* with ``fn(current)`` and return the result.

        *fn* receives a copy of the current value (None when unset) and may
        raise to abort the write.
        """
        with self._lock:
            self._assign(key, fn(copy.deepcopy(self._cache.get(key))))
            return copy.deepcopy(self._cache.get(key))

    def _assign(self, key: str, value: Any) -> None:
        rule = _SET_RULES.get(key)
        if rule:
            value = rule(value)
        else:
            try:
                value = json.loads(json.dumps(value))
            except (TypeError, ValueError, RecursionError) as e:
                logger.warning("Ignoring non-JSON value for %r: %s", key, e)
                return
        self._cache[key] = value
        self._persist()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._cache)

    def _persist(self) -> None:
        try:
            self._slot.write(state_codec.encode(self._cache))
        except (StorageUnavailable, TypeError, ValueError) as e:
            logger.warning("State not persisted, kept in memory: %s", e)


def get_store() -> StateStore:
    """Return the store owned by the current Flask app."""
    return current_app.extensions["state_store"]
