"""
Tests for the health check endpoints.
"""


def test_health_check_returns_200(client):
    """
    Verify the health endpoint responds with HTTP 200.

    It needs no authentication: load balancers poll it.
    """
    response = client.get("/api/v1/health")
    assert response.status_code == 200


def test_health_check_returns_service_name(client):
    """
    Verify the response includes the correct service name.

    Monitoring systems parse this field.
    """
    data = client.get("/api/v1/health").json()
    assert data["service"] == "certify-link"
    assert data["status"] == "healthy"


def test_health_check_reports_database_status(client):
    data = client.get("/api/v1/health").json()
    assert data["database"] in ("healthy", "unhealthy")


def test_detailed_health_reports_dependencies(client):
    """
    Verify the detailed check covers ORASS and ASACI.

    ORASS is queried; ASACI is only checked for configuration, so
    no request reaches the provider.
    """
    response = client.get("/api/v1/health/detailed")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["orass"]["status"] == "healthy"
    assert data["asaci"]["configured"] is True
    assert data["asaci"]["base_url"] == "https://asaci.test/api/v1"
