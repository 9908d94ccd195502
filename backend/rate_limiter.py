"""
In-memory fixed-window rate limiter.

Windows are one minute long and keyed by client_ip:category. State lives in
process memory; a multi-worker deployment gets one budget per worker.
"""
from __future__ import annotations

import threading
import time

from backend import config

WINDOW_SECONDS = 60

# path prefix -> category; first match wins
_CATEGORY_PREFIXES = (
    ("/api/auth", "auth"),
    ("/api/live-betting", "betting"),
    ("/api/admin", "admin"),
)


def default_limits() -> dict[str, int]:
    return {
        "auth": config.RATE_LIMIT_AUTH_PER_MINUTE,
        "betting": config.RATE_LIMIT_BETTING_PER_MINUTE,
        "admin": config.RATE_LIMIT_ADMIN_PER_MINUTE,
        "api": config.RATE_LIMIT_API_PER_MINUTE,
    }


def category_for_path(path: str) -> str:
    for prefix, category in _CATEGORY_PREFIXES:
        if path.startswith(prefix):
            return category
    return "api"


def client_ip(headers, peer: str | None) -> str:
    """X-Forwarded-For (first hop), X-Real-IP, CF-Connecting-IP, socket peer, then 'unknown'."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for name in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(name)
        if value and value.strip():
            return value.strip()
    return peer or "unknown"


class RateLimiter:
    def __init__(self, limits: dict[str, int] | None = None, window_seconds: int = WINDOW_SECONDS) -> None:
        self.limits = limits if limits is not None else default_limits()
        self.window_seconds = window_seconds
        self._lock = threading.Lock()
        # key -> (window start, count)
        self._windows: dict[str, tuple[float, int]] = {}

    def limit_for(self, category: str) -> int:
        return self.limits.get(category, self.limits.get("api", 60))

    def check(self, ip: str, category: str, now: float | None = None) -> tuple[bool, int]:
        """
        Count one request. Returns (allowed, retry_after_seconds); retry_after is 0
        when allowed.
        """
        now = time.time() if now is None else now
        limit = self.limit_for(category)
        if limit <= 0:
            return True, 0
        key = f"{ip}:{category}"
        with self._lock:
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0
            if count >= limit:
                return False, max(1, int(start + self.window_seconds - now + 0.999))
            self._windows[key] = (start, count + 1)
        return True, 0

    def prune(self, now: float | None = None) -> int:
        """Drop expired windows. Returns how many were removed."""
        now = time.time() if now is None else now
        with self._lock:
            expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window_seconds]
            for k in expired:
                del self._windows[k]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
