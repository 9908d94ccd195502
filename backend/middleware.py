"""
HTTP middleware: per-IP rate limiting and security headers.
"""
from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend import config
from backend.rate_limiter import RateLimiter, category_for_path, client_ip

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}
CONTENT_SECURITY_POLICY = (
    "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data:; connect-src 'self' ws: wss:"
)
PRUNE_INTERVAL_SECONDS = 300


def install_middleware(app: FastAPI, limiter: RateLimiter) -> None:
    """Register rate limiting and security headers on app."""
    last_prune = {"at": time.time()}

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if not config.RATE_LIMIT_ENABLED or request.url.path == "/api/health":
            return await call_next(request)
        now = time.time()
        if now - last_prune["at"] >= PRUNE_INTERVAL_SECONDS:
            removed = limiter.prune(now)
            last_prune["at"] = now
            logger.debug("Pruned %d expired rate-limit windows", removed)
        ip = client_ip(request.headers, request.client.host if request.client else None)
        category = category_for_path(request.url.path)
        allowed, retry_after = limiter.check(ip, category, now)
        if not allowed:
            logger.warning("Rate limit exceeded: %s %s (%s)", ip, request.url.path, category)
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded", "retry_after": retry_after},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if not request.url.path.startswith("/api"):
            response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        return response
