"""Tests for helpers.py and config.py."""

from __future__ import annotations

import random

import pytest

from config import ProductionConfig, cors_origins
from helpers import QUOTES, month_matrix, random_quote, recent_items, tips_for


class TestMonthMatrix:
    def test_weeks_are_monday_first(self):
        weeks = month_matrix(2024, 9)
        # 1 September 2024 is a Sunday
        assert weeks[0][0]["date"] == "2024-08-26"
        assert weeks[0][6] == {"date": "2024-09-01", "day": 1, "in_month": True}
        assert all(len(w) == 7 for w in weeks)
        assert len(weeks) == 6

    def test_month_starting_on_monday(self):
        weeks = month_matrix(2024, 7)
        assert weeks[0][0]["date"] == "2024-07-01"
        assert weeks[-1][-1]["date"] == "2024-08-04"

    def test_december_9999_stops_at_date_max(self):
        weeks = month_matrix(9999, 12)
        assert weeks[-1][-1]["date"] == "9999-12-31"
        assert all(len(w) == 7 for w in weeks[:-1])
        assert sum(c["in_month"] for w in weeks for c in w) == 31

    def test_invalid_month(self):
        with pytest.raises(ValueError):
            month_matrix(2024, 0)


class TestRecentItems:
    def test_only_seven_most_recent_dates(self):
        activities = {f"2024-05-{d:02d}": [f"task {d}"] for d in range(1, 10)}
        items = recent_items(activities, {})
        days = [i["day"] for i in items]
        assert days[0] == "2024-05-09"
        assert "2024-05-02" not in days
        assert len(items) == 7

    def test_capped_at_ten(self):
        activities = {"2024-05-01": [f"t{i}" for i in range(15)]}
        assert len(recent_items(activities, {})) == 10

    def test_ignores_non_date_keys(self):
        assert recent_items({"someday": ["x"]}, {}) == []


class TestTipsAndQuotes:
    def test_tips_for_roles(self):
        assert tips_for("student")[0] == "Set short daily goals"
        assert "Sleep 8 hours" not in tips_for("parent")

    def test_random_quote_seeded(self):
        assert random_quote(random.Random(1)) in QUOTES


class TestConfig:
    def test_cors_origins(self):
        assert cors_origins("*") == "*"
        assert cors_origins("") == "*"
        assert cors_origins("http://a.test, http://b.test") == ["http://a.test", "http://b.test"]

    def test_production_requires_secret(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SECRET_KEY", "")
        with pytest.raises(RuntimeError):
            ProductionConfig.validate()
