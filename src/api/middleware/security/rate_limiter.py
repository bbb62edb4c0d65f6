import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.core.exceptions.base import ServiceErrorCode
from src.core.exceptions.handler import ErrorResponseBuilder
from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

API_PREFIX = "/api/v1"

# Endpoints whose 401/403 answers count towards IP blocking
AUTH_FAILURE_ENDPOINTS = (f"{API_PREFIX}/auth/check-in", f"{API_PREFIX}/auth/verify")

UNLIMITED_PATHS = ("/health", f"{API_PREFIX}/health", "/", "/docs", "/redoc", "/openapi.json")

# Routes with path parameters share one bucket per route
ROUTE_TEMPLATES = (
    (re.compile(rf"^{API_PREFIX}/posts/[^/]+/votes/?$"), f"{API_PREFIX}/posts/{{post_id}}/votes"),
    (re.compile(rf"^{API_PREFIX}/comments/[^/]+/votes/?$"), f"{API_PREFIX}/comments/{{comment_id}}/votes"),
)

WINDOW = timedelta(minutes=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def endpoint_key(path: str) -> str:
    """Rate limit bucket for a request path"""
    for pattern, template in ROUTE_TEMPLATES:
        if pattern.match(path):
            return template
    return path


class RateLimiter:
    """In-memory sliding-window limiter with endpoint-specific limits and IP blocking."""

    def __init__(self):
        # endpoint -> IP -> timestamps
        self.endpoint_requests: Dict[str, Dict[str, List[datetime]]] = {}
        self.blocked_ips: Dict[str, datetime] = {}  # IP -> unblock time
        self.failed_attempts: Dict[str, Tuple[int, datetime]] = {}  # IP -> (count, first_attempt)
        self.last_sweep = _utcnow()

        # Requests per minute
        self.endpoint_limits = {
            f"{API_PREFIX}/auth/check-in": settings.RATE_LIMIT_AUTH_CHECK_IN,
            f"{API_PREFIX}/auth/verify": settings.RATE_LIMIT_AUTH_VERIFY,
            f"{API_PREFIX}/auth/refresh": settings.RATE_LIMIT_AUTH_REFRESH,
            f"{API_PREFIX}/auth/logout": settings.RATE_LIMIT_AUTH_LOGOUT,
            f"{API_PREFIX}/users/me/holdings/refresh": settings.RATE_LIMIT_HOLDINGS_REFRESH,
            "default": settings.RATE_LIMIT_DEFAULT
        }

    def is_blocked(self, ip: str) -> Optional[datetime]:
        """Unblock time when ip is currently blocked"""
        unblock_at = self.blocked_ips.get(ip)
        if unblock_at is None:
            return None
        if _utcnow() < unblock_at:
            return unblock_at
        del self.blocked_ips[ip]
        return None

    def is_rate_limited(self, ip: str, endpoint: str) -> Tuple[bool, int, int, datetime]:
        """
        Check if IP is rate limited for specific endpoint.
        Returns: (is_limited, current_count, limit, reset_time)
        """
        now = _utcnow()
        limit = self.endpoint_limits.get(endpoint, self.endpoint_limits["default"])

        if now - self.last_sweep >= WINDOW:
            self.sweep(now)

        requests = self.endpoint_requests.get(endpoint, {})
        timestamps = [ts for ts in requests.get(ip, []) if now - ts < WINDOW]
        if timestamps:
            requests[ip] = timestamps
        else:
            requests.pop(ip, None)
            if not requests:
                self.endpoint_requests.pop(endpoint, None)

        current_count = len(timestamps)
        reset_time = now.replace(second=0, microsecond=0) + timedelta(minutes=1)

        return current_count >= limit, current_count, limit, reset_time

    def add_request(self, ip: str, endpoint: str):
        self.endpoint_requests.setdefault(endpoint, {}).setdefault(ip, []).append(_utcnow())

    def sweep(self, now: datetime):
        """Drop expired timestamps, then IPs and endpoints left without any."""
        for endpoint in list(self.endpoint_requests):
            requests = self.endpoint_requests[endpoint]
            for ip in list(requests):
                requests[ip] = [ts for ts in requests[ip] if now - ts < WINDOW]
                if not requests[ip]:
                    del requests[ip]
            if not requests:
                del self.endpoint_requests[endpoint]
        self.last_sweep = now

    def record_failed_attempt(self, ip: str):
        """Record failed authentication attempt and block IP past the threshold."""
        now = _utcnow()

        if ip not in self.failed_attempts:
            count, first_attempt = 1, now
        else:
            count, first_attempt = self.failed_attempts[ip]
            if now - first_attempt < timedelta(minutes=5):
                count += 1
            else:
                count, first_attempt = 1, now

        if count >= settings.SUSPICIOUS_IP_THRESHOLD:
            self.block_ip(ip)
            self.failed_attempts.pop(ip, None)
        else:
            self.failed_attempts[ip] = (count, first_attempt)

    def block_ip(self, ip: str):
        self.blocked_ips[ip] = _utcnow() + timedelta(minutes=settings.IP_BLOCK_DURATION)
        logger.warning(
            f"IP {ip} has been blocked for {settings.IP_BLOCK_DURATION} minutes due to suspicious activity",
            extra={"client_ip": ip}
        )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with endpoint-specific limits."""

    def __init__(self, app):
        super().__init__(app)
        self.rate_limiter = RateLimiter()

    def _get_client_ip(self, request: Request) -> str:
        """Get client IP, handling proxies."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"

    def _create_rate_limit_response(self, current_count: int, limit: int, reset_time: datetime) -> Response:
        retry_after = max(1, int((reset_time - _utcnow()).total_seconds()))
        content = ErrorResponseBuilder.build_error_response(
            error_code=ServiceErrorCode.RATE_LIMIT_EXCEEDED,
            message=f"Rate limit exceeded. Maximum {limit} requests per minute.",
            details={"limit": limit, "current": current_count, "retry_after": retry_after}
        )
        return JSONResponse(
            status_code=429,
            content=content,
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(reset_time.timestamp()))
            }
        )

    def _create_ip_blocked_response(self, unblock_at: datetime) -> Response:
        retry_after = max(1, int((unblock_at - _utcnow()).total_seconds()))
        content = ErrorResponseBuilder.build_error_response(
            error_code=ServiceErrorCode.IP_BLOCKED,
            message="IP temporarily blocked due to suspicious activity",
            details={"retry_after": retry_after}
        )
        return JSONResponse(status_code=403, content=content, headers={"Retry-After": str(retry_after)})

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        ip = self._get_client_ip(request)
        path = request.url.path
        endpoint = endpoint_key(path)

        unblock_at = self.rate_limiter.is_blocked(ip)
        if unblock_at is not None:
            logger.warning(f"Blocked request from IP {ip} to {endpoint}", extra={"client_ip": ip})
            return self._create_ip_blocked_response(unblock_at)

        is_limited, current_count, limit, reset_time = self.rate_limiter.is_rate_limited(ip, endpoint)
        if is_limited:
            logger.warning(
                f"Rate limit exceeded for IP {ip} on {endpoint}: {current_count}/{limit}",
                extra={"client_ip": ip, "path": endpoint}
            )
            return self._create_rate_limit_response(current_count, limit, reset_time)

        self.rate_limiter.add_request(ip, endpoint)

        response = await call_next(request)

        if response.status_code in (401, 403) and path in AUTH_FAILURE_ENDPOINTS:
            self.rate_limiter.record_failed_attempt(ip)
            logger.info(f"Recorded failed auth attempt from IP {ip} on {path}", extra={"client_ip": ip})

        if response.status_code < 400:
            response.headers["X-RateLimit-Limit"] = str(limit)
            response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current_count - 1))
            response.headers["X-RateLimit-Reset"] = str(int(reset_time.timestamp()))

        return response
