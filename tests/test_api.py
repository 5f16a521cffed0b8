"""
HTTP layer tests: header-based actor resolution, the response envelope and
the mapping of workflow errors to status codes.
"""

import pytest
from fastapi.testclient import TestClient

from api import app, get_uow
from config import Settings, get_settings
from infrastructure import InMemoryUnitOfWork


CLIENT = {"X-Actor-Id": "client-1", "X-Actor-Role": "client", "X-Company-Id": "studio-1"}
OTHER_CLIENT = {"X-Actor-Id": "client-2", "X-Actor-Role": "client", "X-Company-Id": "studio-1"}
ADMIN = {"X-Actor-Id": "admin-1", "X-Actor-Role": "admin", "X-Company-Id": "studio-1"}
FOREIGN_ADMIN = {"X-Actor-Id": "admin-2", "X-Actor-Role": "admin", "X-Company-Id": "studio-2"}
STAFF = {"X-Actor-Id": "staff-1", "X-Actor-Role": "staff", "X-Company-Id": "studio-1"}

PROJECTS = "/api/v1/projects"


@pytest.fixture
def client(db):
    app.dependency_overrides[get_uow] = lambda: InMemoryUnitOfWork(db)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def reveal_hidden_projects():
    app.dependency_overrides[get_settings] = lambda: Settings(
        mcp_enabled=False, conceal_hidden_projects=False
    )


def _create(client, headers=ADMIN, **body):
    payload = {"name": "Brand Film", "client_id": "client-1"}
    payload.update(body)
    resp = client.post(PROJECTS, json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestProjects:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_create_and_get(self, client):
        project = _create(client, headers=CLIENT, company_id="studio-1", priority="high")
        assert project["client_id"] == "client-1"
        assert project["status"] == "planning"
        assert project["priority"] == "high"

        resp = client.get(f"{PROJECTS}/{project['id']}", headers=CLIENT)
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == project["id"]

    def test_invalid_priority_rejected(self, client):
        resp = client.post(PROJECTS, json={"name": "x", "priority": "asap"}, headers=ADMIN)
        assert resp.status_code == 422

    def test_staff_cannot_create(self, client):
        resp = client.post(PROJECTS, json={"name": "x"}, headers=STAFF)
        assert resp.status_code == 403

    def test_list_is_scoped(self, client):
        _create(client)
        _create(client, headers=FOREIGN_ADMIN, name="Elsewhere")
        resp = client.get(PROJECTS, headers=ADMIN)
        assert [p["name"] for p in resp.json()["data"]] == ["Brand Film"]
        resp = client.get(PROJECTS, params={"status": "completed"}, headers=ADMIN)
        assert resp.json()["data"] == []

    def test_hidden_project_looks_missing(self, client):
        project = _create(client)
        resp = client.get(f"{PROJECTS}/{project['id']}", headers=OTHER_CLIENT)
        assert resp.status_code == 404
        assert client.get(f"{PROJECTS}/missing", headers=ADMIN).status_code == 404

    def test_hidden_project_forbidden_when_not_concealed(self, client, reveal_hidden_projects):
        project = _create(client)
        resp = client.get(f"{PROJECTS}/{project['id']}", headers=OTHER_CLIENT)
        assert resp.status_code == 403

    def test_update_needs_edit_access_and_skips_status(self, client):
        project = _create(client)
        resp = client.patch(
            f"{PROJECTS}/{project['id']}",
            json={"description": "new brief"},
            headers=CLIENT,
        )
        # client-1 can view but not edit an admin-created project
        assert resp.status_code == 403

        resp = client.patch(
            f"{PROJECTS}/{project['id']}",
            json={"description": "new brief", "status": "completed"},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["description"] == "new brief"
        assert resp.json()["data"]["status"] == "planning"

    @pytest.mark.parametrize("body", [
        {"assigned_staff": "staff-9"},
        {"timeline": {"start_date": "next week"}},
        {"tags": 5},
        {"permissions": {"view_access": "client-2"}},
        {"priority": "asap"},
    ])
    def test_malformed_update_rejected(self, client, body):
        project = _create(client)
        url = f"{PROJECTS}/{project['id']}"
        assert client.patch(url, json=body, headers=ADMIN).status_code == 422
        stored = client.get(url, headers=ADMIN).json()["data"]
        assert stored["assigned_staff"] == []
        assert stored["permissions"] == project["permissions"]

    def test_update_timeline_order_enforced(self, client):
        project = _create(client)
        resp = client.patch(
            f"{PROJECTS}/{project['id']}",
            json={"timeline": {"start_date": "2026-05-01", "end_date": "2026-01-01"}},
            headers=ADMIN,
        )
        assert resp.status_code == 422

    def test_update_with_typed_nested_fields(self, client):
        project = _create(client)
        resp = client.patch(
            f"{PROJECTS}/{project['id']}",
            json={
                "timeline": {"start_date": "2026-01-05", "estimated_hours": 40},
                "budget": {"estimated": 1200},
                "communications": {"next_scheduled_call": "2026-01-08T10:00:00+00:00"},
                "colour": "red",
            },
            headers=ADMIN,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["timeline"]["start_date"] == "2026-01-05"
        assert data["timeline"]["estimated_hours"] == 40
        assert data["budget"] == {"estimated": 1200, "actual": 0, "currency": "USD"}
        assert data["communications"]["next_scheduled_call"].startswith("2026-01-08T10:00:00")

    def test_staff_added_by_update_are_notified(self, client):
        project = _create(client)
        resp = client.patch(
            f"{PROJECTS}/{project['id']}", json={"assigned_staff": ["staff-1"]}, headers=ADMIN
        )
        assert resp.status_code == 200
        inbox = client.get("/api/v1/me/notifications", headers=STAFF).json()["data"]
        assert [n["notification_type"] for n in inbox] == ["project_assignment"]

    def test_delete(self, client):
        project = _create(client)
        url = f"{PROJECTS}/{project['id']}"
        assert client.delete(url, headers=FOREIGN_ADMIN).status_code == 403
        assert client.delete(url, headers=STAFF).status_code == 403
        assert client.delete(url, headers=ADMIN).status_code == 204
        assert client.get(url, headers=ADMIN).status_code == 404


class TestActorHeaders:

    def test_unknown_role_is_unauthorised(self, client):
        headers = dict(ADMIN, **{"X-Actor-Role": "root"})
        assert client.get(PROJECTS, headers=headers).status_code == 401

    def test_missing_identity_is_rejected(self, client):
        assert client.get(PROJECTS).status_code == 422


class TestWorkflow:

    def test_assignment_then_notification(self, client):
        project = _create(client)
        resp = client.post(
            f"{PROJECTS}/{project['id']}/staff",
            json={"staff_ids": ["staff-1"]},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["newly_assigned"] == ["staff-1"]

        inbox = client.get("/api/v1/me/notifications", headers=STAFF).json()["data"]
        assert len(inbox) == 1
        assert inbox[0]["action_url"] == f"/projects/{project['id']}"

    def test_empty_staff_list_rejected(self, client):
        project = _create(client)
        resp = client.post(
            f"{PROJECTS}/{project['id']}/staff", json={"staff_ids": []}, headers=ADMIN
        )
        assert resp.status_code == 422

    def test_staff_cannot_cancel(self, client):
        project = _create(client, assigned_staff=["staff-1"])
        url = f"{PROJECTS}/{project['id']}/status"
        assert client.post(url, json={"status": "in_progress"}, headers=STAFF).status_code == 200
        resp = client.post(url, json={"status": "cancelled"}, headers=STAFF)
        assert resp.status_code == 409

    def test_illegal_transition_is_conflict(self, client):
        project = _create(client)
        resp = client.post(
            f"{PROJECTS}/{project['id']}/status", json={"status": "completed"}, headers=ADMIN
        )
        assert resp.status_code == 409

    def test_transitions_endpoint(self, client):
        project = _create(client)
        resp = client.get(f"{PROJECTS}/{project['id']}/transitions", headers=ADMIN)
        assert sorted(resp.json()["data"]) == ["cancelled", "in_progress"]

    def test_activity_log_requires_edit(self, client):
        project = _create(client)
        url = f"{PROJECTS}/{project['id']}/activity"
        assert client.get(url, headers=CLIENT).status_code == 403
        history = client.get(url, headers=ADMIN).json()["data"]
        assert [h["action"] for h in history] == ["project_created"]


class TestCollaboration:

    def test_comment_and_reply(self, client):
        project = _create(client)
        url = f"{PROJECTS}/{project['id']}/comments"
        resp = client.post(url, json={"content": "First look?"}, headers=CLIENT)
        assert resp.status_code == 201
        comment_id = resp.json()["data"]["id"]

        resp = client.post(
            f"{url}/{comment_id}/replies", json={"content": "Friday"}, headers=ADMIN
        )
        assert resp.status_code == 201

        thread = client.get(url, headers=CLIENT).json()["data"]
        assert thread[0]["replies"][0]["content"] == "Friday"

    def test_team(self, client):
        project = _create(client, assigned_staff=["staff-1"])
        team = client.get(f"{PROJECTS}/{project['id']}/team", headers=STAFF).json()["data"]
        assert [m["project_role"] for m in team] == ["client", "manager", "staff"]
