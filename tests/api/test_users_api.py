"""
API tests for user and role administration.
"""

USERS = "/api/v1/users"
ROLES = "/api/v1/roles"


def new_user(roles, email="agent@insurer.ci", role="OPERATOR"):
    return {
        "email": email,
        "first_name": "Yao",
        "last_name": "Koffi",
        "role_id": roles[role].id,
    }


class TestCreateUser:

    def test_admin_creates_user(self, client, roles, admin_headers):
        response = client.post(USERS, json=new_user(roles), headers=admin_headers)
        assert response.status_code == 201

        data = response.json()
        assert data["user"]["email"] == "agent@insurer.ci"
        assert data["user"]["role"]["name"] == "OPERATOR"
        assert len(data["temporary_password"]) >= 12

    def test_temporary_password_works(self, client, roles, admin_headers):
        created = client.post(USERS, json=new_user(roles), headers=admin_headers).json()
        response = client.post("/api/v1/auth/login", json={
            "email": "agent@insurer.ci",
            "password": created["temporary_password"],
        })
        assert response.status_code == 200

    def test_regular_user_is_forbidden(self, client, roles, user_headers):
        response = client.post(USERS, json=new_user(roles), headers=user_headers)
        assert response.status_code == 403
        assert response.json()["details"]["required"] == ["users.create"]

    def test_duplicate_email_conflicts(self, client, roles, admin, admin_headers):
        response = client.post(
            USERS, json=new_user(roles, email=admin.email), headers=admin_headers
        )
        assert response.status_code == 409


class TestReadUsers:

    def test_list(self, client, user, admin_headers):
        response = client.get(USERS, params={"limit": 1}, headers=admin_headers)
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 2
        assert data["pages"] == 2
        assert len(data["items"]) == 1

    def test_get_missing_user(self, client, admin_headers):
        response = client.get(f"{USERS}/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"

    def test_viewer_can_read(self, client, user, make_user, auth_headers):
        viewer = make_user(email="viewer@insurer.ci", role="VIEWER")
        response = client.get(f"{USERS}/{user.id}", headers=auth_headers(viewer))
        assert response.status_code == 200
        assert response.json()["email"] == user.email


def test_update_user_role(client, roles, user, admin_headers):
    response = client.put(
        f"{USERS}/{user.id}",
        json={"role_id": roles["VIEWER"].id},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["role"]["name"] == "VIEWER"


class TestBlocking:

    def test_block_and_unblock(self, client, user, password, admin_headers):
        response = client.post(
            f"{USERS}/{user.id}/block",
            json={"minutes": 60, "reason": "Suspicious activity"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["locked_until"] is not None

        login = {"email": user.email, "password": password}
        assert client.post("/api/v1/auth/login", json=login).status_code == 423

        response = client.post(f"{USERS}/{user.id}/unblock", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["locked_until"] is None
        assert client.post("/api/v1/auth/login", json=login).status_code == 200


class TestDeleteUser:

    def test_soft_delete(self, client, user, admin_headers):
        response = client.delete(f"{USERS}/{user.id}", headers=admin_headers)
        assert response.status_code == 204

        response = client.get(f"{USERS}/{user.id}", headers=admin_headers)
        assert response.status_code == 404

    def test_deleted_user_token_stops_working(self, client, user, user_headers, admin_headers):
        client.delete(f"{USERS}/{user.id}", headers=admin_headers)
        response = client.get("/api/v1/auth/profile", headers=user_headers)
        assert response.status_code == 401
        assert response.json()["code"] == "USER_NOT_FOUND"

    def test_cannot_delete_self(self, client, admin, admin_headers):
        response = client.delete(f"{USERS}/{admin.id}", headers=admin_headers)
        assert response.status_code == 400


class TestRoles:

    def test_list_roles(self, client, admin_headers):
        response = client.get(ROLES, headers=admin_headers)
        assert response.status_code == 200
        names = {role["name"] for role in response.json()}
        assert names == {"ADMIN", "USER", "OPERATOR", "VIEWER"}

    def test_create_update_delete(self, client, admin_headers):
        response = client.post(ROLES, json={
            "name": "auditor",
            "permissions": ["logs.read"],
        }, headers=admin_headers)
        assert response.status_code == 201
        role = response.json()
        assert role["name"] == "AUDITOR"

        response = client.put(
            f"{ROLES}/{role['id']}",
            json={"permissions": ["logs.read", "users.read"]},
            headers=admin_headers,
        )
        assert response.json()["permissions"] == ["logs.read", "users.read"]

        response = client.delete(f"{ROLES}/{role['id']}", headers=admin_headers)
        assert response.status_code == 204

    def test_role_in_use_cannot_be_deleted(self, client, roles, user, admin_headers):
        response = client.delete(f"{ROLES}/{roles['USER'].id}", headers=admin_headers)
        assert response.status_code == 400

    def test_requires_roles_manage(self, client, user_headers):
        response = client.get(ROLES, headers=user_headers)
        assert response.status_code == 403
