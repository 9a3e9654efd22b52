"""
User management and authentication endpoints.
"""

import pytest

from tahfidz.config import settings

from conftest import auth_headers


@pytest.fixture
def admin_headers(people):
    return auth_headers(people["admin"])


def new_user(**overrides):
    return {"name": "Ahmad", "email": "ahmad@example.com", "password": "secret123", "role": "student", **overrides}


class TestUserAdmin:
    def test_non_admin_cannot_list_users(self, client, people):
        for who in ("teacher", "p1", "c1"):
            response = client.get("/api/users/", headers=auth_headers(people[who]))
            assert response.status_code == 403

    def test_list_users_hides_password_hash(self, client, people, admin_headers):
        response = client.get("/api/users/", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == len(people)
        assert all("hashed_password" not in u for u in body["items"])

    def test_list_users_by_role(self, client, people, admin_headers):
        response = client.get("/api/users/", params={"role": "parent"}, headers=admin_headers)
        assert sorted(u["id"] for u in response.json()["items"]) == ["p1", "p2"]

    def test_create_student_linked_to_parent(self, client, repos, people, admin_headers):
        response = client.post("/api/users/", json=new_user(parent_id="p2"), headers=admin_headers)
        assert response.status_code == 201
        created = response.json()
        assert created["parent_id"] == "p2"
        assert created["role"] == "student"
        assert repos.users.rows[created["id"]]["hashed_password"] != "secret123"

    def test_create_rejects_parent_id_on_non_student(self, client, people, admin_headers):
        response = client.post("/api/users/", json=new_user(role="teacher", parent_id="p1"), headers=admin_headers)
        assert response.status_code == 400

    def test_create_rejects_parent_id_of_non_parent(self, client, people, admin_headers):
        response = client.post("/api/users/", json=new_user(parent_id="teacher"), headers=admin_headers)
        assert response.status_code == 400
        response = client.post("/api/users/", json=new_user(parent_id="nobody"), headers=admin_headers)
        assert response.status_code == 400

    def test_create_rejects_duplicate_email(self, client, people, admin_headers):
        response = client.post("/api/users/", json=new_user(email="c1@example.com"), headers=admin_headers)
        assert response.status_code == 400

    def test_relinking_child_changes_parent_scope(self, client, people, admin_headers):
        response = client.patch("/api/users/c2", json={"parent_id": "p2"}, headers=admin_headers)
        assert response.status_code == 200
        assert client.get("/api/students/c2", headers=auth_headers(people["p1"])).status_code == 403
        assert client.get("/api/students/c2", headers=auth_headers(people["p2"])).status_code == 200

    def test_role_change_away_from_student_clears_parent(self, client, repos, people, admin_headers):
        response = client.patch("/api/users/c1", json={"role": "teacher"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["parent_id"] is None

    def test_update_unknown_user(self, client, people, admin_headers):
        assert client.patch("/api/users/nobody", json={"name": "Xx"}, headers=admin_headers).status_code == 404

    def test_admin_cannot_delete_self(self, client, people, admin_headers):
        assert client.delete("/api/users/admin", headers=admin_headers).status_code == 400

    def test_deleting_parent_unlinks_children(self, client, repos, people, admin_headers):
        assert client.delete("/api/users/p1", headers=admin_headers).status_code == 200
        assert repos.users.rows["c1"]["parent_id"] is None
        assert repos.users.rows["c2"]["parent_id"] is None
        assert repos.users.rows["s3"]["parent_id"] == "p2"

    def test_parent_role_change_unlinks_children(self, client, repos, people, admin_headers):
        response = client.patch("/api/users/p1", json={"role": "teacher"}, headers=admin_headers)
        assert response.status_code == 200
        assert repos.users.rows["c1"]["parent_id"] is None
        assert repos.users.rows["c2"]["parent_id"] is None
        assert repos.users.rows["s3"]["parent_id"] == "p2"
        assert client.patch("/api/users/c1", json={"name": "Anak Satu"}, headers=admin_headers).status_code == 200


class TestAuth:
    def _create(self, client, admin_headers, **overrides):
        response = client.post("/api/users/", json=new_user(**overrides), headers=admin_headers)
        assert response.status_code == 201
        return response.json()

    def test_login_and_me(self, client, people, admin_headers):
        self._create(client, admin_headers)
        response = client.post("/api/auth/login", json={"email": "ahmad@example.com", "password": "secret123"})
        assert response.status_code == 200
        tokens = response.json()
        assert tokens["token_type"] == "bearer"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "ahmad@example.com"

    def test_login_wrong_password(self, client, people, admin_headers):
        self._create(client, admin_headers)
        response = client.post("/api/auth/login", json={"email": "ahmad@example.com", "password": "nope-nope"})
        assert response.status_code == 401

    def test_login_deactivated(self, client, people, admin_headers):
        user = self._create(client, admin_headers)
        client.patch(f"/api/users/{user['id']}", json={"is_active": False}, headers=admin_headers)
        response = client.post("/api/auth/login", json={"email": "ahmad@example.com", "password": "secret123"})
        assert response.status_code == 403

    def test_refresh(self, client, people, admin_headers):
        self._create(client, admin_headers)
        tokens = client.post(
            "/api/auth/login", json={"email": "ahmad@example.com", "password": "secret123"}
        ).json()
        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        # An access token is not accepted as a refresh token.
        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401

    def test_parent_me_lists_children(self, client, people):
        response = client.get("/api/auth/me", headers=auth_headers(people["p1"]))
        assert sorted(c["id"] for c in response.json()["children"]) == ["c1", "c2"]

    def test_update_profile(self, client, people):
        response = client.put("/api/auth/me", json={"phone": "0812"}, headers=auth_headers(people["c1"]))
        assert response.status_code == 200
        assert response.json()["phone"] == "0812"

    def test_register_student_with_parent(self, client, repos, people):
        response = client.post("/api/auth/register", json=new_user(parent_id="p1"))
        assert response.status_code == 201
        assert "access_token" in response.json()
        child = next(u for u in repos.users.rows.values() if u["email"] == "ahmad@example.com")
        assert child["parent_id"] == "p1"

    def test_register_cannot_claim_staff_role(self, client, people):
        for role in ("admin", "teacher"):
            assert client.post("/api/auth/register", json=new_user(role=role)).status_code == 403

    def test_register_parent_cannot_have_parent(self, client, people):
        response = client.post("/api/auth/register", json=new_user(role="parent", parent_id="p1"))
        assert response.status_code == 400

    def test_register_disabled(self, client, people, monkeypatch):
        monkeypatch.setattr(settings, "allow_public_registration", False)
        assert client.post("/api/auth/register", json=new_user()).status_code == 403


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
