"""
Tests for the fixed-window rate limiter and client IP resolution.
"""
from __future__ import annotations

from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.rate_limiter import RateLimiter, category_for_path, client_ip


def test_blocks_after_limit_within_window():
    limiter = RateLimiter({"auth": 2, "api": 5})
    assert limiter.check("1.2.3.4", "auth", now=1000.0) == (True, 0)
    assert limiter.check("1.2.3.4", "auth", now=1001.0) == (True, 0)
    allowed, retry_after = limiter.check("1.2.3.4", "auth", now=1010.0)
    assert not allowed
    assert retry_after == 50


def test_window_resets_after_a_minute():
    limiter = RateLimiter({"auth": 1})
    assert limiter.check("ip", "auth", now=0.0)[0]
    assert not limiter.check("ip", "auth", now=30.0)[0]
    assert limiter.check("ip", "auth", now=60.0)[0]


def test_keys_are_per_ip_and_category():
    limiter = RateLimiter({"auth": 1, "betting": 1, "api": 1})
    assert limiter.check("a", "auth", now=0.0)[0]
    assert limiter.check("b", "auth", now=0.0)[0]
    assert limiter.check("a", "betting", now=0.0)[0]
    assert not limiter.check("a", "auth", now=1.0)[0]


def test_unknown_category_uses_api_limit():
    limiter = RateLimiter({"api": 1})
    assert limiter.limit_for("mystery") == 1


def test_prune_drops_expired_windows():
    limiter = RateLimiter({"api": 10})
    limiter.check("a", "api", now=0.0)
    limiter.check("b", "api", now=50.0)
    assert limiter.prune(now=70.0) == 1
    assert len(limiter) == 1


def test_category_for_path():
    assert category_for_path("/api/auth/login") == "auth"
    assert category_for_path("/api/live-betting/place-bet") == "betting"
    assert category_for_path("/api/admin/live-matches") == "admin"
    assert category_for_path("/api/matches") == "api"


def test_client_ip_precedence():
    assert client_ip({"x-forwarded-for": "9.9.9.9, 10.0.0.1", "x-real-ip": "8.8.8.8"}, "1.1.1.1") == "9.9.9.9"
    assert client_ip({"x-real-ip": "8.8.8.8", "cf-connecting-ip": "7.7.7.7"}, "1.1.1.1") == "8.8.8.8"
    assert client_ip({"cf-connecting-ip": "7.7.7.7"}, "1.1.1.1") == "7.7.7.7"
    assert client_ip({}, "1.1.1.1") == "1.1.1.1"
    assert client_ip({}, None) == "unknown"
