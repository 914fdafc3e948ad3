from datetime import datetime, timedelta, timezone

import pytest

from perspective_engine.errors import NotFoundError
from perspective_engine.intervals import Interval, add_interval, format_interval, parse_interval
from perspective_engine.review import is_due_for_review, mark_project_reviewed, mark_reviewed
from perspective_engine.schema import ON_HOLD, Project
from perspective_engine.store import InMemoryStore

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def test_parse_interval():
    assert parse_interval("1w") == Interval(1, "w")
    assert parse_interval(" 10d ") == Interval(10, "d")
    with pytest.raises(ValueError):
        parse_interval("weekly")
    with pytest.raises(ValueError):
        parse_interval("2h")


def test_add_interval_units():
    assert add_interval(NOW, Interval(3, "d")) == NOW + timedelta(days=3)
    assert add_interval(NOW, Interval(2, "w")) == NOW + timedelta(days=14)
    assert add_interval(NOW, Interval(13, "m")) == datetime(2026, 2, 6, 12, 0, tzinfo=timezone.utc)


def test_add_interval_clamps_month_end():
    jan_31 = datetime(2025, 1, 31, tzinfo=timezone.utc)
    assert add_interval(jan_31, Interval(1, "m")) == datetime(2025, 2, 28, tzinfo=timezone.utc)
    leap_day = datetime(2024, 2, 29, tzinfo=timezone.utc)
    assert add_interval(leap_day, Interval(1, "y")) == datetime(2025, 2, 28, tzinfo=timezone.utc)


def test_format_interval():
    assert format_interval(Interval(1, "w")) == "1 week"
    assert format_interval(Interval(3, "m")) == "3 months"


def test_mark_reviewed_schedules_next_review():
    project = Project("p", "Project", review_interval="1w")
    reviewed = mark_reviewed(project, NOW)
    assert reviewed.last_reviewed_at == NOW
    assert reviewed.next_review_at == NOW + timedelta(days=7)
    assert project.next_review_at is None


def test_mark_reviewed_without_interval_clears_next_review():
    reviewed = mark_reviewed(Project("p", "Project", next_review_at=NOW), NOW)
    assert reviewed.next_review_at is None


def test_invalid_interval_does_not_schedule():
    assert mark_reviewed(Project("p", "Project", review_interval="often"), NOW).next_review_at is None


def test_is_due_for_review():
    assert is_due_for_review(Project("p", "P", review_interval="1w"), NOW)
    assert is_due_for_review(Project("p", "P", review_interval="1w", next_review_at=NOW + timedelta(hours=6)), NOW)
    assert not is_due_for_review(Project("p", "P", review_interval="1w", next_review_at=NOW + timedelta(days=1)), NOW)
    assert not is_due_for_review(Project("p", "P"), NOW)
    assert not is_due_for_review(Project("p", "P", status=ON_HOLD, review_interval="1w"), NOW)


def test_mark_project_reviewed_persists():
    store = InMemoryStore(projects=[Project("p", "Project", review_interval="2d")])
    mark_project_reviewed(store, "p", clock=lambda: NOW)
    assert store.get_project("p").next_review_at == NOW + timedelta(days=2)


def test_mark_unknown_project_raises():
    with pytest.raises(NotFoundError):
        mark_project_reviewed(InMemoryStore(), "missing", clock=lambda: NOW)
