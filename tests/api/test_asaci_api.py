"""
API tests for the /asaci proxy endpoints.
"""

import json

ASACI = "/api/v1/asaci"


class TestReads:

    def test_certificate_types(self, client, user_headers, asaci_stub):
        asaci_stub.add("GET", "/certificate-types", json={"data": ["cima", "matca"]})
        response = client.get(f"{ASACI}/certificate-types", headers=user_headers)
        assert response.status_code == 200
        assert response.json() == {"data": ["cima", "matca"]}

    def test_requires_login(self, client, asaci_stub):
        response = client.get(f"{ASACI}/certificate-types")
        assert response.status_code == 401
        assert asaci_stub.requests == []

    def test_list_orders_forwards_query(self, client, user_headers, asaci_stub):
        asaci_stub.add("GET", "/orders", json={"data": []})
        client.get(f"{ASACI}/orders", params={"status": "pending"}, headers=user_headers)

        params = asaci_stub.requests[0].url.params
        assert params["status"] == "pending"
        assert "page" not in params


class TestWrites:

    def test_user_cannot_create_order(self, client, user_headers, asaci_stub):
        response = client.post(f"{ASACI}/orders", json={"quantity": 10}, headers=user_headers)
        assert response.status_code == 403
        assert asaci_stub.requests == []

    def test_admin_creates_order(self, client, admin_headers, asaci_stub):
        asaci_stub.add("POST", "/orders", 201, json={"data": {"reference": "ORD-1"}})
        response = client.post(
            f"{ASACI}/orders", json={"quantity": 10}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["reference"] == "ORD-1"
        assert json.loads(asaci_stub.requests[0].content) == {"quantity": 10}

    def test_unknown_order_action(self, client, admin_headers, asaci_stub):
        response = client.post(f"{ASACI}/orders/ORD-1/explode", headers=admin_headers)
        assert response.status_code == 400
        assert "Unknown order action" in response.json()["detail"]
        assert asaci_stub.requests == []


def test_download_production_archive(client, user_headers, asaci_stub):
    asaci_stub.add(
        "GET",
        "/productions/P-1/download",
        content=b"PK\x03\x04zip",
        headers={"content-type": "application/zip"},
    )
    response = client.get(f"{ASACI}/productions/P-1/download", headers=user_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert response.headers["content-disposition"] == 'attachment; filename="P-1.zip"'
    assert response.content == b"PK\x03\x04zip"


def test_upstream_rejection_is_a_bad_gateway(client, user_headers, asaci_stub):
    asaci_stub.add("GET", "/certificates", 401, json={"message": "invalid api key"})
    response = client.get(f"{ASACI}/certificates", headers=user_headers)
    assert response.status_code == 502

    problem = response.json()
    assert problem["code"] == "ASACI_AUTHENTICATION_ERROR"
    assert problem["details"]["service"] == "asaci"


class TestWelcome:

    def test_requires_admin_role(self, client, make_user, auth_headers, asaci_stub):
        operator = make_user(email="operator@insurer.ci", role="OPERATOR")
        response = client.post(
            f"{ASACI}/auth/welcome/send",
            json={"user_id": "U-1"},
            headers=auth_headers(operator),
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient role"

    def test_admin_sends_welcome(self, client, admin_headers, asaci_stub):
        asaci_stub.add("POST", "/auth/welcome/send", json={"message": "sent"})
        response = client.post(
            f"{ASACI}/auth/welcome/send",
            json={"user_id": "U-1"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert json.loads(asaci_stub.requests[0].content) == {"user_id": "U-1"}
