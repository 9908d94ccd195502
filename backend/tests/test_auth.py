"""
Tests for password hashing and JWT tokens.
"""
from __future__ import annotations

from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from jose import jwt

from backend import config
from backend.auth import ALGORITHM, create_access_token, decode_token, hash_password, verify_password


def test_password_hash_roundtrip():
    hashed = hash_password("salasana1")
    assert hashed != "salasana1"
    assert verify_password("salasana1", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("salasana1", "")


def test_token_carries_user_and_role():
    token = create_access_token("user-1", "ADMIN")
    assert decode_token(token) == "user-1"
    claims = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    assert claims["role"] == "ADMIN"


def test_invalid_token():
    assert decode_token("garbage") is None
    forged = jwt.encode({"sub": "user-1"}, "other-secret", algorithm=ALGORITHM)
    assert decode_token(forged) is None
