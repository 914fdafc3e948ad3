from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from perspective_engine.api import create_app
from perspective_engine.schema import Project

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def client(mixed_store):
    mixed_store.add_project(Project("weekly", "Weekly", review_interval="1w"))
    return TestClient(create_app(mixed_store, clock=lambda: NOW))


def test_get_perspective_actions(client):
    response = client.get("/perspectives/available/actions")
    assert response.status_code == 200
    body = response.json()
    assert {item["id"] for item in body} == {"1", "3", "4"}
    assert set(body[0]) >= {"id", "title", "status", "position", "project_id", "tag_ids"}


def test_unknown_perspective_is_404(client):
    response = client.get("/perspectives/nope/actions")
    assert response.status_code == 404
    assert "nope" in response.json()["detail"]


def test_review_round_trip(client):
    due = client.get("/perspectives/review/projects").json()
    assert "weekly" in [project["id"] for project in due]

    response = client.post("/projects/weekly/review")
    assert response.status_code == 200
    assert response.json()["next_review_at"].startswith("2025-01-13T12:00:00")

    due = client.get("/perspectives/review/projects").json()
    assert "weekly" not in [project["id"] for project in due]


def test_review_unknown_project_is_404(client):
    assert client.post("/projects/ghost/review").status_code == 404
