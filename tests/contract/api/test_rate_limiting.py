from datetime import datetime, timedelta, timezone

from src.api.middleware.security.rate_limiter import RateLimiter, endpoint_key
from src.infra.config.settings import settings


def test_check_in_rate_limit(client, wallet):
    for _ in range(settings.RATE_LIMIT_AUTH_CHECK_IN):
        response = client.post("/api/v1/auth/check-in", json={"uid": wallet.address})
        assert response.status_code == 200
        assert "x-ratelimit-limit" in response.headers

    response = client.post("/api/v1/auth/check-in", json={"uid": wallet.address})

    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"


def test_health_is_not_rate_limited(client):
    for _ in range(settings.RATE_LIMIT_DEFAULT + 1):
        assert client.get("/api/v1/health").status_code == 200


def test_suspicious_ip_blocking(client, wallet, other_wallet):
    message = "Sign this message to signup into Qwestive."
    forged = {
        "uid": wallet.address,
        "message": message,
        "signature": other_wallet.sign_b58(message),
        "public_key": other_wallet.address
    }

    for _ in range(settings.SUSPICIOUS_IP_THRESHOLD):
        assert client.post("/api/v1/auth/verify", json=forged).status_code == 403

    response = client.post("/api/v1/auth/check-in", json={"uid": wallet.address})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "IP_BLOCKED"


def test_cors_headers(client):
    headers = {
        "Origin": settings.ALLOWED_ORIGINS[0],
        "Access-Control-Request-Method": "GET",
        "Access-Control-Request-Headers": "content-type,authorization",
    }
    response = client.options("/api/v1/health", headers=headers)
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == settings.ALLOWED_ORIGINS[0]


def test_votes_share_one_bucket_across_content_ids(client, wallet, auth_headers):
    headers = auth_headers(wallet)

    for i in range(settings.RATE_LIMIT_DEFAULT):
        response = client.post(f"/api/v1/posts/post-{i}/votes", json={"direction": "up"}, headers=headers)
        assert response.status_code == 404

    response = client.post("/api/v1/posts/another-post/votes", json={"direction": "up"}, headers=headers)

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"


def test_endpoint_key_uses_route_templates():
    assert endpoint_key("/api/v1/posts/abc/votes") == "/api/v1/posts/{post_id}/votes"
    assert endpoint_key("/api/v1/comments/c-1/votes") == "/api/v1/comments/{comment_id}/votes"
    assert endpoint_key("/api/v1/auth/check-in") == "/api/v1/auth/check-in"


def test_limiter_keeps_one_bucket_per_route():
    limiter = RateLimiter()

    for i in range(500):
        endpoint = endpoint_key(f"/api/v1/posts/p{i}/votes")
        if not limiter.is_rate_limited("10.0.0.1", endpoint)[0]:
            limiter.add_request("10.0.0.1", endpoint)

    assert list(limiter.endpoint_requests) == ["/api/v1/posts/{post_id}/votes"]
    assert len(limiter.endpoint_requests["/api/v1/posts/{post_id}/votes"]["10.0.0.1"]) == settings.RATE_LIMIT_DEFAULT


def test_limiter_drops_expired_entries():
    limiter = RateLimiter()
    stale = datetime.now(timezone.utc) - timedelta(minutes=5)
    limiter.endpoint_requests = {
        "/api/v1/auth/check-in": {"10.0.0.1": [stale], "10.0.0.2": [stale]},
        "/api/v1/users/me/username": {"10.0.0.3": [stale]}
    }

    is_limited, current_count, _, _ = limiter.is_rate_limited("10.0.0.1", "/api/v1/auth/check-in")
    assert (is_limited, current_count) == (False, 0)
    assert "10.0.0.1" not in limiter.endpoint_requests["/api/v1/auth/check-in"]

    limiter.sweep(datetime.now(timezone.utc))
    assert limiter.endpoint_requests == {}
