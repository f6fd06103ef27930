"""Tests for the state store and its persistence slots."""

from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock

import pytest

import state_codec
from persistence import (
    MemorySlot,
    RedisSlot,
    SQLiteSlot,
    StorageUnavailable,
    slot_from_config,
)
from state_store import Keys, StateStore


class _BrokenSlot:
    durable = True

    def probe(self):
        raise StorageUnavailable("disabled")

    def read(self):
        raise StorageUnavailable("disabled")

    def write(self, value):
        raise StorageUnavailable("disabled")


class _ReadOnlySlot(MemorySlot):
    durable = True

    def write(self, value):
        raise StorageUnavailable("quota exceeded")


class TestInitialLoad:
    def test_empty_slot_gives_defaults(self, store):
        assert store.get(Keys.STUDENT_ACTIVITIES, None) == {}
        assert store.get(Keys.ATTACHMENTS, None) == {}
        assert store.get(Keys.EXAM_DATE, None) == ""
        assert store.get(Keys.TARGET_SCORE, None) == 75
        assert store.get(Keys.USERS, None) == {}
        assert store.get(Keys.CURRENT_USER, "nobody") == "nobody"

    def test_loaded_state_is_cleaned(self):
        slot = MemorySlot(state_codec.encode({
            "student_activities": {"2024-01-01": ["a"], "junk": ["x"]},
            "attachments": {"2024-01-02": [{"name": "n", "size": 3}] * 70},
            "exam_date": "next week",
            "target_score": "abc",
            "users": ["not", "a", "mapping"],
            "currentUser": "someone",
        }))
        store = StateStore(slot)
        assert store.get(Keys.STUDENT_ACTIVITIES) == {"2024-01-01": ["a"]}
        assert len(store.get(Keys.ATTACHMENTS)["2024-01-02"]) == 50
        assert store.get(Keys.EXAM_DATE) == ""
        assert store.get(Keys.TARGET_SCORE) == 75
        assert store.get(Keys.USERS) == {}
        assert store.get(Keys.CURRENT_USER) is None

    def test_corrupt_slot_gives_defaults(self):
        store = StateStore(MemorySlot("data:application/json;base64,!!!"))
        assert store.get(Keys.TARGET_SCORE) == 75
        assert store.get(Keys.STUDENT_ACTIVITIES) == {}

    def test_bare_json_slot_is_read(self):
        store = StateStore(MemorySlot('{"exam_date": "2025-06-01"}'))
        assert store.get(Keys.EXAM_DATE) == "2025-06-01"

    def test_slot_read_once(self):
        slot = MagicMock()
        slot.durable = True
        slot.read.return_value = None
        store = StateStore(slot)
        store.get(Keys.EXAM_DATE)
        store.set(Keys.EXAM_DATE, "2025-01-01")
        store.get(Keys.EXAM_DATE)
        assert slot.read.call_count == 1


class TestGetSet:
    def test_get_returns_fallback_for_missing_key(self, store):
        assert store.get("unknown", "fallback") == "fallback"

    def test_target_score_coerced(self, store):
        store.set(Keys.TARGET_SCORE, "abc")
        assert store.get(Keys.TARGET_SCORE, None) == 75
        store.set(Keys.TARGET_SCORE, "88")
        assert store.get(Keys.TARGET_SCORE, None) == 88

    def test_exam_date_coerced(self, store):
        store.set(Keys.EXAM_DATE, "soon")
        assert store.get(Keys.EXAM_DATE, None) == ""
        store.set(Keys.EXAM_DATE, "2025-11-03")
        assert store.get(Keys.EXAM_DATE, None) == "2025-11-03"

    def test_activities_truncated_to_fifty(self, store):
        store.set(Keys.STUDENT_ACTIVITIES, {"2024-01-01": [f"a{i}" for i in range(60)]})
        assert len(store.get(Keys.STUDENT_ACTIVITIES)["2024-01-01"]) == 50

    def test_other_keys_pass_through(self, store):
        store.set("theme", {"dark": True})
        assert store.get("theme") == {"dark": True}

    def test_none_value_reads_as_fallback(self, store):
        store.set(Keys.CURRENT_USER, None)
        assert store.get(Keys.CURRENT_USER, "fallback") == "fallback"

    def test_last_write_wins(self, store):
        store.set(Keys.EXAM_DATE, "2025-01-01")
        store.set(Keys.EXAM_DATE, "2025-02-02")
        assert store.get(Keys.EXAM_DATE) == "2025-02-02"

    def test_snapshot_is_a_copy(self, store):
        store.set(Keys.STUDENT_ACTIVITIES, {"2024-01-01": ["a"]})
        snap = store.snapshot()
        snap[Keys.STUDENT_ACTIVITIES]["2024-01-01"].append("b")
        assert store.get(Keys.STUDENT_ACTIVITIES) == {"2024-01-01": ["a"]}


class TestPersistence:
    def test_every_set_writes_full_state(self):
        slot = MemorySlot()
        store = StateStore(slot)
        store.set(Keys.EXAM_DATE, "2025-06-01")
        persisted = state_codec.decode(slot.read())
        assert persisted["exam_date"] == "2025-06-01"
        assert persisted["target_score"] == 75
        assert set(persisted) == {
            "student_activities", "attachments", "exam_date",
            "target_score", "users", "currentUser",
        }

    def test_state_survives_new_store(self, tmp_path):
        path = tmp_path / "state.db"
        first = StateStore(SQLiteSlot(path))
        first.set(Keys.STUDENT_ACTIVITIES, {"2024-05-05": ["revise algebra"]})
        first.set(Keys.TARGET_SCORE, 90)

        second = StateStore(SQLiteSlot(path))
        assert second.get(Keys.STUDENT_ACTIVITIES) == {"2024-05-05": ["revise algebra"]}
        assert second.get(Keys.TARGET_SCORE) == 90
        assert second.available

    def test_unavailable_slot_falls_back_to_memory(self, caplog):
        with caplog.at_level(logging.WARNING):
            store = StateStore(_BrokenSlot())
        assert not store.available
        store.set(Keys.EXAM_DATE, "2025-06-01")
        assert store.get(Keys.EXAM_DATE) == "2025-06-01"
        assert "in memory only" in caplog.text

    def test_write_failure_is_swallowed(self):
        store = StateStore(_ReadOnlySlot())
        store.set(Keys.TARGET_SCORE, 60)
        assert store.get(Keys.TARGET_SCORE) == 60

    def test_unwritable_sqlite_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = StateStore(SQLiteSlot(blocker / "nested" / "state.db"))
        assert not store.available
        store.set(Keys.TARGET_SCORE, 70)
        assert store.get(Keys.TARGET_SCORE) == 70


class TestSlots:
    def test_sqlite_read_missing_returns_none(self, tmp_path):
        assert SQLiteSlot(tmp_path / "s.db").read() is None

    def test_redis_slot_roundtrip(self):
        client = MagicMock()
        client.get.return_value = b"token"
        slot = RedisSlot(client)
        slot.write("token")
        client.set.assert_called_once_with(slot.key, "token")
        assert slot.read() == "token"

    def test_redis_errors_become_unavailable(self):
        client = MagicMock()
        client.ping.side_effect = ConnectionError("refused")
        with pytest.raises(StorageUnavailable):
            RedisSlot(client).probe()

    def test_factory_memory(self):
        assert isinstance(slot_from_config({"STATE_BACKEND": "memory"}), MemorySlot)

    def test_factory_defaults_to_sqlite(self, tmp_path):
        slot = slot_from_config({"STATE_DATABASE": str(tmp_path / "x.db")})
        assert isinstance(slot, SQLiteSlot)

    def test_factory_redis_without_url_uses_sqlite(self, tmp_path):
        slot = slot_from_config({"STATE_BACKEND": "redis", "STATE_DATABASE": str(tmp_path / "x.db")})
        assert isinstance(slot, SQLiteSlot)


class TestCorruptSlot:
    def test_deeply_nested_slot_gives_defaults(self):
        store = StateStore(MemorySlot("[" * 100000))
        assert store.get(Keys.TARGET_SCORE) == 75
        assert store.get(Keys.STUDENT_ACTIVITIES) == {}

    def test_app_starts_on_deeply_nested_slot(self):
        from app import create_app
        app = create_app({"TESTING": True}, store=StateStore(MemorySlot("{\"a\":" * 100000)))
        assert app.test_client().get("/health").status_code == 200


class TestReadCopies:
    def test_mutating_get_result_does_not_leak(self, store):
        store.set(Keys.STUDENT_ACTIVITIES, {"2024-01-01": ["a"]})
        store.get(Keys.STUDENT_ACTIVITIES)["2024-01-01"].extend(["x"] * 60)
        assert store.get(Keys.STUDENT_ACTIVITIES) == {"2024-01-01": ["a"]}


class TestUpdate:
    def test_update_applies_coercion_and_persists(self):
        slot = MemorySlot()
        store = StateStore(slot)
        saved = store.update(
            Keys.STUDENT_ACTIVITIES,
            lambda acts: {**(acts or {}), "2024-01-01": [f"t{i}" for i in range(70)]},
        )
        assert len(saved["2024-01-01"]) == 50
        assert len(state_codec.decode(slot.read())["student_activities"]["2024-01-01"]) == 50

    def test_update_receives_copy(self, store):
        store.set(Keys.ATTACHMENTS, {"2024-01-01": [{"name": "a", "size": 1}]})

        def _mutate_then_abort(current):
            current["2024-01-01"].append({"name": "b", "size": 2})
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            store.update(Keys.ATTACHMENTS, _mutate_then_abort)
        assert store.get(Keys.ATTACHMENTS) == {"2024-01-01": [{"name": "a", "size": 1}]}

    def test_concurrent_appends_are_not_lost(self, store):
        day = "2024-02-02"

        def _append(n):
            def fn(acts):
                acts = acts or {}
                return {**acts, day: [*acts.get(day, []), n]}
            return fn

        def worker(tid):
            for i in range(10):
                store.update(Keys.STUDENT_ACTIVITIES, _append(f"{tid}-{i}"))

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.get(Keys.STUDENT_ACTIVITIES)[day]) == 40


class TestPassthroughValues:
    def test_non_json_value_is_rejected(self, caplog):
        slot = MemorySlot()
        store = StateStore(slot)
        with caplog.at_level(logging.WARNING):
            store.set("misc", {1, 2, 3})
        assert store.get("misc") is None
        assert "non-JSON" in caplog.text

        store.set(Keys.TARGET_SCORE, 82)
        assert state_codec.decode(slot.read())["target_score"] == 82

    def test_passthrough_is_plain_json(self, store):
        store.set("misc", {"pair": (1, 2)})
        assert store.get("misc") == {"pair": [1, 2]}
