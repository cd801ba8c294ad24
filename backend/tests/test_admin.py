"""Tests for the admin user endpoints."""

from conftest import auth_headers, session_token

from crm.models import User, UserRole


class TestListUsers:
    def test_requires_session(self, client):
        response = client.get("/api/admin/users")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_non_admin_is_forbidden_without_user_list(self, client, make_user):
        bdr = make_user(role=UserRole.BDR)

        response = client.get("/api/admin/users", headers=auth_headers(bdr.auth_id))

        assert response.status_code == 403
        assert "users" not in response.json()

    def test_session_without_local_row_is_forbidden(self, client, make_user):
        make_user(role=UserRole.ADMIN)

        response = client.get("/api/admin/users", headers=auth_headers("user_unknown"))

        assert response.status_code == 403

    def test_deactivated_admin_is_forbidden(self, client, make_user):
        admin = make_user(role=UserRole.ADMIN, active=False)

        response = client.get("/api/admin/users", headers=auth_headers(admin.auth_id))

        assert response.status_code == 403

    def test_admin_sees_users_ordered_by_first_name(self, client, make_user):
        admin = make_user(first_name="Mo", role=UserRole.ADMIN)
        make_user(first_name="Zoe", role=UserRole.SDR)
        make_user(first_name="Abi", role=UserRole.MANAGER)

        response = client.get("/api/admin/users", headers=auth_headers(admin.auth_id))

        assert response.status_code == 200
        users = response.json()["users"]
        assert [u["first_name"] for u in users] == ["Abi", "Mo", "Zoe"]
        assert set(users[0]) == {"id", "first_name", "last_name", "email", "role"}
        assert users[0]["role"] == "manager"


class TestUpdateRole:
    def test_promotes_user(self, client, db, make_user):
        admin = make_user(first_name="Mo", role=UserRole.ADMIN)
        target = make_user(first_name="Zoe", last_name="Khan", role=UserRole.BDR)

        response = client.patch(
            f"/api/admin/users/{target.id}/role", json={"role": "manager"}, headers=auth_headers(admin.auth_id)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["oldRole"] == "bdr"
        assert body["user"]["newRole"] == "manager"
        assert body["user"]["name"] == "Zoe Khan"
        db.refresh(target)
        assert target.role == UserRole.MANAGER

    def test_rejects_unknown_role(self, client, make_user):
        admin = make_user(role=UserRole.ADMIN)
        target = make_user()

        response = client.patch(
            f"/api/admin/users/{target.id}/role", json={"role": "owner"}, headers=auth_headers(admin.auth_id)
        )

        assert response.status_code == 400

    def test_unknown_target(self, client, make_user):
        admin = make_user(role=UserRole.ADMIN)

        response = client.patch(
            "/api/admin/users/00000000-0000-0000-0000-000000000000/role",
            json={"role": "sdr"},
            headers=auth_headers(admin.auth_id),
        )

        assert response.status_code == 404

    def test_admin_cannot_demote_themselves(self, client, db, make_user):
        admin = make_user(role=UserRole.ADMIN)

        response = client.patch(
            f"/api/admin/users/{admin.id}/role", json={"role": "bdr"}, headers=auth_headers(admin.auth_id)
        )

        assert response.status_code == 400
        db.refresh(admin)
        assert admin.role == UserRole.ADMIN

    def test_non_admin_cannot_change_roles(self, client, db, make_user):
        bdr = make_user()
        target = make_user(first_name="Sam")

        response = client.patch(
            f"/api/admin/users/{target.id}/role", json={"role": "admin"}, headers=auth_headers(bdr.auth_id)
        )

        assert response.status_code == 403
        assert db.query(User).filter(User.role == UserRole.ADMIN).count() == 0


def test_session_cookie_is_accepted(client, make_user):
    admin = make_user(role=UserRole.ADMIN)
    client.cookies.set("__session", session_token(admin.auth_id))

    response = client.get("/api/admin/users")

    assert response.status_code == 200
