# tests/test_auth/test_login.py

import uuid
from types import SimpleNamespace

import pytest

from movieshelf.core.jwt import decode_access_token
from movieshelf.core.security import get_password_hash

_HASH = get_password_hash("correct-horse")


def _user(**over):
    data = dict(id=uuid.uuid4(), email="deckard@tyrell.io", name="Rick Deckard", hashed_password=_HASH, is_active=True)
    data.update(over)
    return SimpleNamespace(**data)


def test_login_returns_token_and_profile(auth_env):
    user = _user()
    auth_env.db.lookup = user
    resp = auth_env.client.post("/api/v1/auth/login", json={"email": "Deckard@Tyrell.io", "password": "correct-horse"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["user"] == {"id": str(user.id), "email": user.email, "name": user.name}
    assert decode_access_token(body["accessToken"])["sub"] == str(user.id)
    assert resp.headers.get("Cache-Control") == "no-store"


@pytest.mark.parametrize("lookup, password", [(None, "correct-horse"), ("user", "wrong-horse")])
def test_login_failures_are_neutral(auth_env, lookup, password):
    auth_env.db.lookup = _user() if lookup == "user" else None
    resp = auth_env.client.post("/api/v1/auth/login", json={"email": "deckard@tyrell.io", "password": password})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credentials"


def test_login_inactive_account_is_forbidden(auth_env):
    auth_env.db.lookup = _user(is_active=False)
    resp = auth_env.client.post("/api/v1/auth/login", json={"email": "deckard@tyrell.io", "password": "correct-horse"})
    assert resp.status_code == 403


def test_login_requires_email_and_password(auth_env):
    assert auth_env.client.post("/api/v1/auth/login", json={"email": "deckard@tyrell.io"}).status_code == 422
    assert auth_env.client.post("/api/v1/auth/login", json={"password": "x"}).status_code == 422
