from unittest.mock import patch


def test_health_check_contract(client):
    """Contract test for health check endpoint"""
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"] == {"record_store": "healthy", "api_gateway": "healthy"}
    assert isinstance(data["timestamp"], str)


def test_health_check_degraded(client, store):
    with patch.object(store, "ping", return_value=False):
        response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["record_store"] == "unhealthy"
