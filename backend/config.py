"""
Centralized configuration for the betting backend.
All settings come from environment variables.
"""
from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    return [s.strip() for s in os.environ.get(name, default).split(",") if s.strip()]


# ---------- Database ----------
DATABASE_PATH = os.environ.get("DATABASE_PATH", "").strip()
SEED_ON_STARTUP = _env_bool("SEED_ON_STARTUP", True)

# ---------- Auth ----------
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "").strip()

# ---------- Economy ----------
STARTING_BET_POINTS = int(os.environ.get("STARTING_BET_POINTS", "10000"))
STARTING_DIAMONDS = int(os.environ.get("STARTING_DIAMONDS", "50"))

# ---------- Live engine ----------
# Wall-clock seconds per simulated match minute.
LIVE_SECONDS_PER_MINUTE = float(os.environ.get("LIVE_SECONDS_PER_MINUTE", "1.0"))
CASH_OUT_REFRESH_SECONDS = float(os.environ.get("CASH_OUT_REFRESH_SECONDS", "60"))

# ---------- HTTP ----------
CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
RATE_LIMIT_API_PER_MINUTE = int(os.environ.get("RATE_LIMIT_API_PER_MINUTE", "60"))
RATE_LIMIT_AUTH_PER_MINUTE = int(os.environ.get("RATE_LIMIT_AUTH_PER_MINUTE", "10"))
RATE_LIMIT_BETTING_PER_MINUTE = int(os.environ.get("RATE_LIMIT_BETTING_PER_MINUTE", "30"))
RATE_LIMIT_ADMIN_PER_MINUTE = int(os.environ.get("RATE_LIMIT_ADMIN_PER_MINUTE", "20"))

# ---------- Logging ----------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
