"""API tests for tasks and comments."""
from datetime import datetime, timedelta

import pytest
from taskflow_core import models

from conftest import task_payload


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", models.UserRole.ADMIN)


@pytest.fixture
def carol(make_user):
    return make_user("carol@example.com")


class TestOwnershipScenario:
    """A creates X assigned to A; C is a stranger; B is an admin."""

    def test_scenario(self, client, auth_headers, alice, admin, carol):
        response = client.post("/api/tasks", json=task_payload([alice]), headers=auth_headers(alice))
        assert response.status_code == 201
        task = response.json()["task"]
        url = f"/api/tasks/{task['id']}"
        assert task["createdBy"]["email"] == "alice@example.com"
        assert [u["email"] for u in task["assignedTo"]] == ["alice@example.com"]

        # Creator can read and edit
        assert client.get(url, headers=auth_headers(alice)).status_code == 200
        response = client.put(url, json={"priority": "high"}, headers=auth_headers(alice))
        assert response.status_code == 200
        assert response.json()["task"]["priority"] == "high"

        # Stranger cannot read
        response = client.get(url, headers=auth_headers(carol))
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Not authorized to access this task"}

        # Admin can read, edit and delete regardless of assignment
        assert client.get(url, headers=auth_headers(admin)).status_code == 200
        response = client.put(url, json={"status": "in-progress"}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["task"]["status"] == "in-progress"
        response = client.delete(url, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get(url, headers=auth_headers(admin)).status_code == 404


class TestCreate:
    def test_empty_assignees_rejected(self, client, auth_headers, alice):
        response = client.post("/api/tasks", json=task_payload([]), headers=auth_headers(alice))
        assert response.status_code == 400
        assert response.json()["message"] == "Please assign this task to at least one user"

    def test_missing_title_rejected(self, client, auth_headers, alice):
        payload = task_payload([alice])
        del payload["title"]
        response = client.post("/api/tasks", json=payload, headers=auth_headers(alice))
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_invalid_status_rejected(self, client, auth_headers, alice):
        response = client.post("/api/tasks", json=task_payload([alice], status="done"), headers=auth_headers(alice))
        assert response.status_code == 400

    def test_tags_string_and_overdue(self, client, auth_headers, alice):
        payload = task_payload(
            [alice],
            tags="ui, backend",
            dueDate=(datetime.utcnow() - timedelta(days=1)).isoformat(),
        )
        task = client.post("/api/tasks", json=payload, headers=auth_headers(alice)).json()["task"]
        assert task["tags"] == ["ui", "backend"]
        assert task["isOverdue"] is True
        assert task["completedAt"] is None


class TestCompletedAt:
    def test_completed_at_follows_status(self, client, auth_headers, alice):
        task = client.post("/api/tasks", json=task_payload([alice]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}"

        completed = client.put(url, json={"status": "completed"}, headers=auth_headers(alice)).json()["task"]
        assert completed["completedAt"] is not None
        assert completed["isOverdue"] is False

        # Editing another field keeps the original completion time
        edited = client.put(url, json={"title": "Renamed"}, headers=auth_headers(alice)).json()["task"]
        assert edited["completedAt"] == completed["completedAt"]

        reopened = client.put(url, json={"status": "pending"}, headers=auth_headers(alice)).json()["task"]
        assert reopened["completedAt"] is None


class TestUpdate:
    def test_cannot_clear_assignees(self, client, auth_headers, alice):
        task = client.post("/api/tasks", json=task_payload([alice]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}"
        response = client.put(url, json={"assignedTo": []}, headers=auth_headers(alice))
        assert response.status_code == 400
        assert len(client.get(url, headers=auth_headers(alice)).json()["task"]["assignedTo"]) == 1

    def test_assignee_cannot_update(self, client, auth_headers, alice, carol):
        task = client.post("/api/tasks", json=task_payload([alice, carol]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}"
        assert client.get(url, headers=auth_headers(carol)).status_code == 200
        response = client.put(url, json={"title": "Hijacked"}, headers=auth_headers(carol))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to update this task"

    def test_unknown_task(self, client, auth_headers, alice):
        response = client.get("/api/tasks/00000000-0000-0000-0000-000000000000", headers=auth_headers(alice))
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Task not found"}


class TestDelete:
    def test_foreign_delete_leaves_task_unchanged(self, client, auth_headers, alice, carol):
        """A non-admin deleting another user's task gets 403 and nothing changes."""
        task = client.post("/api/tasks", json=task_payload([alice, carol]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}"

        response = client.delete(url, headers=auth_headers(carol))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to delete this task"

        after = client.get(url, headers=auth_headers(alice)).json()["task"]
        assert after == task


class TestList:
    def test_non_admin_only_sees_own_or_assigned(self, client, auth_headers, alice, carol, admin):
        client.post("/api/tasks", json=task_payload([alice], title="A1"), headers=auth_headers(alice))
        client.post("/api/tasks", json=task_payload([carol, alice], title="C shared"), headers=auth_headers(carol))
        client.post("/api/tasks", json=task_payload([carol], title="C private"), headers=auth_headers(carol))

        body = client.get("/api/tasks", headers=auth_headers(alice)).json()
        assert body["success"] is True
        assert body["total"] == 2
        assert {t["title"] for t in body["tasks"]} == {"A1", "C shared"}
        for task in body["tasks"]:
            ids = {u["id"] for u in task["assignedTo"]}
            assert task["createdBy"]["id"] == str(alice.id) or str(alice.id) in ids

        assert client.get("/api/tasks", headers=auth_headers(admin)).json()["total"] == 3

    def test_pagination_envelope(self, client, auth_headers, alice):
        for i in range(3):
            client.post("/api/tasks", json=task_payload([alice], title=f"T{i}"), headers=auth_headers(alice))

        body = client.get(
            "/api/tasks",
            params={"page": 2, "limit": 2, "sortBy": "title", "sortOrder": "asc"},
            headers=auth_headers(alice),
        ).json()
        assert body["count"] == 1
        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert body["currentPage"] == 2
        assert body["tasks"][0]["title"] == "T2"

    def test_invalid_sort_field(self, client, auth_headers, alice):
        response = client.get("/api/tasks", params={"sortBy": "passwordHash"}, headers=auth_headers(alice))
        assert response.status_code == 400


class TestComments:
    def test_assignee_can_comment(self, client, auth_headers, alice, carol):
        task = client.post("/api/tasks", json=task_payload([alice, carol]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}/comments"

        response = client.post(url, json={"text": "  On it  "}, headers=auth_headers(carol))
        assert response.status_code == 201
        comment = response.json()["comment"]
        assert comment["text"] == "On it"
        assert comment["user"]["email"] == "carol@example.com"

        comments = client.get(url, headers=auth_headers(alice)).json()["comments"]
        assert [c["text"] for c in comments] == ["On it"]

    def test_stranger_cannot_comment(self, client, auth_headers, alice, carol):
        task = client.post("/api/tasks", json=task_payload([alice]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}/comments"

        response = client.post(url, json={"text": "hi"}, headers=auth_headers(carol))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to comment on this task"
        response = client.get(url, headers=auth_headers(carol))
        assert response.json()["message"] == "Not authorized to view comments on this task"

    def test_blank_comment(self, client, auth_headers, alice):
        task = client.post("/api/tasks", json=task_payload([alice]), headers=auth_headers(alice)).json()["task"]
        response = client.post(f"/api/tasks/{task['id']}/comments", json={"text": "   "}, headers=auth_headers(alice))
        assert response.status_code == 400
        assert response.json()["message"] == "Comment text is required"

    def test_comment_length_checked_after_trimming(self, client, auth_headers, alice):
        task = client.post("/api/tasks", json=task_payload([alice]), headers=auth_headers(alice)).json()["task"]
        url = f"/api/tasks/{task['id']}/comments"

        response = client.post(url, json={"text": " " + "x" * 500 + " "}, headers=auth_headers(alice))
        assert response.status_code == 201
        assert len(response.json()["comment"]["text"]) == 500

        response = client.post(url, json={"text": "x" * 501}, headers=auth_headers(alice))
        assert response.status_code == 400
        assert response.json()["message"] == "Comment cannot be more than 500 characters"


class TestAnalytics:
    def test_completion_rate(self, client, auth_headers, alice):
        for i in range(10):
            status = "completed" if i < 4 else "pending"
            client.post("/api/tasks", json=task_payload([alice], status=status), headers=auth_headers(alice))

        body = client.get("/api/analytics", headers=auth_headers(alice)).json()
        assert body["success"] is True
        assert body["analytics"]["totalTasks"] == 10
        assert body["analytics"]["completionRate"] == 40
        assert body["analytics"]["statusDistribution"] == {"pending": 6, "inProgress": 0, "completed": 4}
