"""API tests for user management."""
import pytest
from taskflow_core import models

from conftest import task_payload


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", models.UserRole.ADMIN)


class TestListAndCreate:
    def test_admin_lists_users(self, client, auth_headers, admin, alice, bob):
        body = client.get("/api/users", params={"limit": 2}, headers=auth_headers(admin)).json()
        assert body["success"] is True
        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert [u["email"] for u in body["users"]] == ["admin@example.com", "alice@example.com"]

    def test_non_admin_cannot_list(self, client, auth_headers, alice):
        response = client.get("/api/users", headers=auth_headers(alice))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized as an admin"

    def test_admin_creates_admin(self, client, auth_headers, admin):
        response = client.post(
            "/api/users",
            json={"email": "ops@example.com", "password": "secret123", "role": "admin"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "admin"

    def test_non_admin_cannot_create(self, client, auth_headers, alice):
        response = client.post(
            "/api/users",
            json={"email": "ops@example.com", "password": "secret123"},
            headers=auth_headers(alice),
        )
        assert response.status_code == 403


class TestReadAndUpdate:
    def test_self_read(self, client, auth_headers, alice):
        response = client.get(f"/api/users/{alice.id}", headers=auth_headers(alice))
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "alice@example.com"

    def test_other_user_read_denied(self, client, auth_headers, alice, bob):
        response = client.get(f"/api/users/{bob.id}", headers=auth_headers(alice))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to access this user"

    def test_self_email_update(self, client, auth_headers, alice):
        response = client.put(f"/api/users/{alice.id}", json={"email": "ALICE2@example.com"}, headers=auth_headers(alice))
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "alice2@example.com"

    def test_self_role_escalation_denied(self, client, auth_headers, alice):
        response = client.put(f"/api/users/{alice.id}", json={"role": "admin"}, headers=auth_headers(alice))
        assert response.status_code == 403
        me = client.get(f"/api/users/{alice.id}", headers=auth_headers(alice)).json()["user"]
        assert me["role"] == "user"

    def test_other_user_update_denied(self, client, auth_headers, alice, bob):
        response = client.put(f"/api/users/{bob.id}", json={"email": "x@example.com"}, headers=auth_headers(alice))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to update this user"

    def test_admin_changes_role(self, client, auth_headers, admin, alice):
        response = client.put(f"/api/users/{alice.id}", json={"role": "admin"}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"

    def test_email_conflict(self, client, auth_headers, alice, bob):
        response = client.put(f"/api/users/{alice.id}", json={"email": "bob@example.com"}, headers=auth_headers(alice))
        assert response.status_code == 400

    def test_unknown_user(self, client, auth_headers, admin):
        response = client.get("/api/users/00000000-0000-0000-0000-000000000000", headers=auth_headers(admin))
        assert response.status_code == 404


class TestDelete:
    def test_admin_deletes_user(self, client, auth_headers, admin, bob):
        response = client.delete(f"/api/users/{bob.id}", headers=auth_headers(admin))
        assert response.status_code == 200
        assert client.get(f"/api/users/{bob.id}", headers=auth_headers(admin)).status_code == 404

    def test_deleted_user_token_rejected(self, client, auth_headers, admin, bob):
        headers = auth_headers(bob)
        client.delete(f"/api/users/{bob.id}", headers=auth_headers(admin))
        assert client.get("/api/tasks", headers=headers).status_code == 401

    def test_sole_assignee_cannot_be_deleted(self, client, auth_headers, admin, alice, bob):
        client.post("/api/tasks", json=task_payload([bob]), headers=auth_headers(alice))
        response = client.delete(f"/api/users/{bob.id}", headers=auth_headers(admin))
        assert response.status_code == 400
        assert "only assignee" in response.json()["message"]

    def test_non_admin_cannot_delete(self, client, auth_headers, alice, bob):
        response = client.delete(f"/api/users/{bob.id}", headers=auth_headers(alice))
        assert response.status_code == 403
