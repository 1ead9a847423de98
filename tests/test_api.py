# tests/test_api.py
"""
HTTP surface of the assignment run, using FastAPI TestClient against an
in-memory store.
"""
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from group_formation.api.routers.assignments import get_coordinator
from group_formation.main import app
from group_formation.services.run_coordinator import RunCoordinator

BASE = "/api/v1/assignments"


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_coordinator] = lambda: RunCoordinator(session_factory)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def overflow(roster):
    """5 students, 1 project with capacity 2."""
    p = roster.project("Robotics", team_size=2)
    students = [roster.student() for _ in range(5)]
    for s in students:
        roster.prefer(s, [p])
    return p, students


def test_index(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"


def test_preview_overflow(client, overflow):
    _, students = overflow
    response = client.post(f"{BASE}/preview")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["preview"] is True
    data = body["data"]
    assert len(data["assignments"]) == 2
    assert data["unassigned"] == students[2:]
    assert data["stats"]["unassigned_students"] == 3


def test_commit_then_list_then_clear(client, overflow):
    p, students = overflow

    response = client.post(f"{BASE}/commit", params={"mode": "full"})
    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["groups_created"] == 1
    assert data["unassigned"] == students[2:]

    groups = client.get(f"{BASE}/groups").json()["data"]
    assert len(groups) == 1
    assert groups[0]["project_id"] == p
    assert [m["student_id"] for m in groups[0]["members"]] == students[:2]

    detail = client.get(f"{BASE}/groups/{groups[0]['id']}")
    assert detail.status_code == status.HTTP_200_OK
    assert detail.json()["data"]["capacity"] == 2

    assert client.delete(f"{BASE}/groups").json()["data"] == {"groups_deleted": 1}
    assert client.delete(f"{BASE}/groups").json()["data"] == {"groups_deleted": 0}


def test_unassigned_students_after_commit(client, overflow):
    _, students = overflow
    before = client.get(f"{BASE}/unassigned-students")
    assert before.status_code == status.HTTP_200_OK
    assert [s["student_id"] for s in before.json()["data"]] == students

    client.post(f"{BASE}/commit")
    after = client.get(f"{BASE}/unassigned-students").json()["data"]
    assert [s["student_id"] for s in after] == students[2:]
    assert after[0]["student_name"] == "Student 3"


def test_missing_group_is_404(client):
    assert client.get(f"{BASE}/groups/123").status_code == status.HTTP_404_NOT_FOUND


def test_bad_mode_is_422(client):
    assert client.post(f"{BASE}/commit", params={"mode": "sometimes"}).status_code == 422


def test_commit_without_projects_is_400(client, roster):
    roster.student()
    response = client.post(f"{BASE}/commit")
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_commit_conflict_is_409(client, overflow, session_factory):
    holder = RunCoordinator(session_factory)
    token = holder.acquire("commit")
    try:
        assert client.post(f"{BASE}/commit").status_code == status.HTTP_409_CONFLICT
        assert client.delete(f"{BASE}/groups").status_code == status.HTTP_409_CONFLICT
        # previews are not blocked
        assert client.post(f"{BASE}/preview").status_code == status.HTTP_200_OK
    finally:
        holder.release(token)


def test_integrity_error_is_422(client, roster):
    roster.project()
    s = roster.student()
    roster.raw_preference(s, 77, 1)
    assert client.post(f"{BASE}/preview").status_code == 422
    assert client.post(f"{BASE}/commit").status_code == 422
