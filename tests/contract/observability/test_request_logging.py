import json
import logging

import pytest

from src.core.logger.logger import JsonFormatter

REQUEST_LOGGER = "src.api.middleware.logging.request_logging"


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging to capture logs in tests"""
    caplog.set_level(logging.INFO)
    yield


def request_records(caplog):
    return [record for record in caplog.records if record.name == REQUEST_LOGGER]


def test_request_logging(client, caplog):
    """API requests are logged with the correlation ID"""
    correlation_id = "test-correlation-id"
    response = client.get("/api/v1/health", headers={"X-Request-ID": correlation_id})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == correlation_id

    records = request_records(caplog)
    assert len(records) == 1
    record = records[0]
    assert record.getMessage() == "Request completed"
    assert record.request_id == correlation_id
    assert record.method == "GET"
    assert record.path == "/api/v1/health"
    assert record.status_code == 200
    assert record.duration_ms >= 0


def test_authenticated_request_logs_uid(client, caplog, wallet, auth_headers):
    headers = auth_headers(wallet)
    caplog.clear()

    client.put("/api/v1/users/me/username", json={"user_name": "logged_in"}, headers=headers)

    record = request_records(caplog)[-1]
    assert record.uid == wallet.address


def test_error_logging(client, caplog):
    """Service errors are logged with their code"""
    response = client.post("/api/v1/auth/check-in", json={"uid": "not-a-wallet"})
    assert response.status_code == 400

    error_records = [record for record in caplog.records if getattr(record, "error_code", None) == "INVALID_ARGUMENT"]
    assert len(error_records) == 1
    assert error_records[0].levelno == logging.WARNING
    assert error_records[0].status_code == 400


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("qwestive.test", logging.INFO, __file__, 1, "Vote recorded", None, None)
    record.uid = "wallet"
    record.content_id = "post-1"

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Vote recorded"
    assert data["level"] == "INFO"
    assert data["uid"] == "wallet"
    assert data["content_id"] == "post-1"
