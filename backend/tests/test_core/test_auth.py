"""
Tests for Supabase JWT validation

Author: UNISTOCK
Date: 2025-10-17
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from unistock.core.auth import get_current_user
from unistock.core.config import settings

SECRET = "test-jwt-secret"


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", SECRET)


def _token(secret=SECRET, **claims):
    payload = {
        'sub': "user-1",
        'email': "loja@exemplo.com.br",
        'role': "authenticated",
        'aud': "authenticated",
        'exp': datetime.now(timezone.utc) + timedelta(hours=1),
    }
    payload.update(claims)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


def _current_user(token):
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token) if token else None
    return asyncio.run(get_current_user(credentials))


class TestGetCurrentUser:

    def test_valid_token(self):
        user = _current_user(_token())

        assert user.id == "user-1"
        assert user.email == "loja@exemplo.com.br"
        assert user.role == "authenticated"

    def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc:
            _current_user(None)

        assert exc.value.status_code == 401
        assert exc.value.detail == "Authentication required"

    def test_expired_token(self):
        with pytest.raises(HTTPException) as exc:
            _current_user(_token(exp=datetime.now(timezone.utc) - timedelta(minutes=1)))

        assert exc.value.status_code == 401
        assert exc.value.detail == "Token has expired"

    def test_wrong_signature(self):
        with pytest.raises(HTTPException) as exc:
            _current_user(_token(secret="other-secret"))

        assert exc.value.status_code == 401
        assert exc.value.detail.startswith("Invalid token")

    def test_wrong_audience(self):
        with pytest.raises(HTTPException) as exc:
            _current_user(_token(aud="anon-service"))

        assert exc.value.status_code == 401

    def test_missing_subject(self):
        with pytest.raises(HTTPException) as exc:
            _current_user(_token(sub=None))

        assert exc.value.status_code == 401
        assert "missing user id" in exc.value.detail

    def test_unconfigured_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "")

        with pytest.raises(ValueError, match="SUPABASE_JWT_SECRET"):
            _current_user(_token())
