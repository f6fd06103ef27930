"""Persistence slots — single-key text storage behind the state store.

A slot holds exactly one durable string (the encoded state blob). Three
backends share the same small interface:

    SQLiteSlot   file-backed, the default
    RedisSlot    used when STATE_BACKEND=redis (or REDIS_URL is set)
    MemorySlot   process lifetime only

Backends raise StorageUnavailable when the underlying storage cannot be
reached; the store decides how to recover.

Usage:
    from persistence import slot_from_config
    slot = slot_from_config(app.config)
    slot.write(token)
    token = slot.read()
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)

STATE_KEY = "__tutor_app_state_v2__"


class StorageUnavailable(RuntimeError):
    """The persistence slot cannot be read or written."""


# ── Protocol ───────────────────────────────────────────────

class PersistenceSlot(Protocol):
    durable: bool

    def read(self) -> str | None: ...
    def write(self, value: str) -> None: ...
    def probe(self) -> None: ...


# ── In-Memory Implementation ──────────────────────────────

class MemorySlot:
    """Keeps the token in a plain attribute."""

    durable = False

    def __init__(self, initial: str | None = None) -> None:
        self._value = initial

    def read(self) -> str | None:
        return self._value

    def write(self, value: str) -> None:
        self._value = value

    def probe(self) -> None:
        return None


# ── SQLite Implementation ─────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS state_slots (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""


class SQLiteSlot:
    """One row of the ``state_slots`` table in a SQLite file."""

    durable = True

    def __init__(self, path: str | Path, key: str = STATE_KEY) -> None:
        self.path = str(path)
        self.key = key
        self._lock = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, timeout=5)
            conn.execute(_SCHEMA)
            return conn
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"cannot open {self.path}: {e}") from e

    def probe(self) -> None:
        """Write and remove a probe row, raising if the file is unusable."""
        probe_key = "__ls_probe__"
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO state_slots (key, value) VALUES (?, '1')",
                    (probe_key,),
                )
                conn.execute("DELETE FROM state_slots WHERE key = ?", (probe_key,))
                conn.commit()
            except sqlite3.Error as e:
                raise StorageUnavailable(f"probe failed for {self.path}: {e}") from e
            finally:
                conn.close()

    def read(self) -> str | None:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT value FROM state_slots WHERE key = ?", (self.key,),
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageUnavailable(f"read failed for {self.path}: {e}") from e
            finally:
                conn.close()
        return row[0] if row else None

    def write(self, value: str) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO state_slots (key, value, updated_at) "
                    "VALUES (?, ?, datetime('now')) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = excluded.updated_at",
                    (self.key, value),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise StorageUnavailable(f"write failed for {self.path}: {e}") from e
            finally:
                conn.close()


# ── Redis Implementation ──────────────────────────────────

class RedisSlot:
    """Wraps a redis.Redis client; every failure surfaces as StorageUnavailable."""

    durable = True

    def __init__(self, redis_client, key: str = STATE_KEY) -> None:
        self._redis = redis_client
        self.key = key

    def probe(self) -> None:
        try:
            self._redis.ping()
        except Exception as e:
            raise StorageUnavailable(f"Redis PING failed: {e}") from e

    def read(self) -> str | None:
        try:
            raw = self._redis.get(self.key)
        except Exception as e:
            raise StorageUnavailable(f"Redis GET failed (key={self.key}): {e}") from e
        if raw is None:
            return None
        return raw.decode("utf-8", "replace") if isinstance(raw, bytes) else raw

    def write(self, value: str) -> None:
        try:
            self._redis.set(self.key, value)
        except Exception as e:
            raise StorageUnavailable(f"Redis SET failed (key={self.key}): {e}") from e


# ── Factory ───────────────────────────────────────────────

def slot_from_config(config: Mapping[str, Any]) -> PersistenceSlot:
    """Build the slot named by STATE_BACKEND, falling back to memory."""
    backend = (config.get("STATE_BACKEND") or "").lower()
    redis_url = config.get("REDIS_URL", "")
    if not backend:
        backend = "redis" if redis_url else "sqlite"

    if backend == "memory":
        logger.info("State slot: in-memory")
        return MemorySlot()

    if backend == "redis":
        if redis_url:
            try:
                import redis
                client = redis.Redis.from_url(redis_url, decode_responses=False)
                slot = RedisSlot(client)
                slot.probe()
                logger.info("State slot: Redis (%s)", redis_url)
                return slot
            except ImportError:
                logger.info("redis package not installed; falling back to SQLite slot.")
            except StorageUnavailable as e:
                logger.warning("Redis slot unavailable (%s); falling back to SQLite slot.", e)
        else:
            logger.warning("STATE_BACKEND=redis but REDIS_URL is empty; using SQLite slot.")

    path = config.get("STATE_DATABASE") or "study_coach.db"
    logger.info("State slot: SQLite (%s)", path)
    return SQLiteSlot(path)
