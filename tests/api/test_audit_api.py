"""
API tests for /audit: operation logs and the reports built on them.
"""

AUDIT = "/api/v1/audit"


def failed_logins(client, email, count):
    for _ in range(count):
        client.post("/api/v1/auth/login", json={"email": email, "password": "Wrong123!"})


class TestLogs:

    def test_login_attempts_are_logged(self, client, user, password, admin_headers):
        failed_logins(client, user.email, 1)
        client.post("/api/v1/auth/login", json={"email": user.email, "password": password})

        response = client.get(
            f"{AUDIT}/logs",
            params={"operation_type": "USER_LOGIN"},
            headers=admin_headers,
        )
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 2
        assert [log["status"] for log in data["items"]] == ["SUCCESS", "FAILED"]
        assert data["items"][0]["user_id"] == user.id
        assert data["items"][0]["ip_address"] == "testclient"

    def test_filter_by_status(self, client, user, password, admin_headers):
        failed_logins(client, user.email, 2)
        client.post("/api/v1/auth/login", json={"email": user.email, "password": password})

        response = client.get(
            f"{AUDIT}/logs", params={"status": "FAILED"}, headers=admin_headers
        )
        assert response.json()["total"] == 2

    def test_regular_user_is_forbidden(self, client, user_headers):
        response = client.get(f"{AUDIT}/logs", headers=user_headers)
        assert response.status_code == 403
        assert response.json()["details"]["required"] == ["logs.read"]


def test_statistics(client, user, password, admin_headers):
    failed_logins(client, user.email, 1)
    client.post("/api/v1/auth/login", json={"email": user.email, "password": password})

    response = client.get(f"{AUDIT}/statistics", headers=admin_headers)
    assert response.status_code == 200

    data = response.json()
    assert data["total"] == 2
    assert data["by_operation_type"] == {"USER_LOGIN": 2}
    assert data["success_rate"] == 50.0


def test_user_activity(client, user, password, admin_headers):
    client.post("/api/v1/auth/login", json={"email": user.email, "password": password})

    response = client.get(f"{AUDIT}/users/{user.id}/activity", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total_operations"] == 1


def test_suspicious_activity(client, user, make_user, auth_headers):
    failed_logins(client, user.email, 5)
    operator = make_user(email="operator@insurer.ci", role="OPERATOR")

    response = client.get(
        f"{AUDIT}/suspicious-activity", headers=auth_headers(operator)
    )
    assert response.status_code == 200

    (suspicious,) = response.json()["suspicious_ips"]
    assert suspicious["ip_address"] == "testclient"
    assert suspicious["failed_attempts"] == 5


class TestCleanup:

    def test_admin_cleans_up(self, client, admin_headers):
        response = client.post(
            f"{AUDIT}/cleanup", params={"retention_days": 30}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json() == {"deleted": 0, "retention_days": 30}

    def test_operator_cannot_clean_up(self, client, make_user, auth_headers):
        operator = make_user(email="operator@insurer.ci", role="OPERATOR")
        response = client.post(f"{AUDIT}/cleanup", headers=auth_headers(operator))
        assert response.status_code == 403
