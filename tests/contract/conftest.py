"""
API contract fixtures: the real application with the record store, JWT
service and chain adapter swapped for in-process doubles.
"""

import pytest
from fastapi.testclient import TestClient

from src.app import create_app
from src.core.dependencies import get_chain_adapter, get_jwt_service, get_record_store


@pytest.fixture
def chain(make_chain):
    return make_chain()


@pytest.fixture
def app(store, jwt_service, chain):
    app = create_app()
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_jwt_service] = lambda: jwt_service
    app.dependency_overrides[get_chain_adapter] = lambda: chain
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Run check-in and verify for a wallet, returning the verify response body"""
    def _login(wallet):
        check_in = client.post("/api/v1/auth/check-in", json={"uid": wallet.address})
        assert check_in.status_code == 200
        message = check_in.json()["message"]
        response = client.post("/api/v1/auth/verify", json={
            "uid": wallet.address,
            "message": message,
            "signature": wallet.sign_b58(message),
            "public_key": wallet.address
        })
        assert response.status_code == 200, response.text
        return response.json()
    return _login


@pytest.fixture
def auth_headers(login):
    def _headers(wallet):
        return {"Authorization": f"Bearer {login(wallet)['access_token']}"}
    return _headers
