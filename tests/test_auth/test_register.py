# tests/test_auth/test_register.py

import uuid

from sqlalchemy.exc import IntegrityError

from movieshelf.core.jwt import decode_access_token
from movieshelf.core.security import verify_password
from tests.test_auth.conftest import FakeDB


def _payload(**over):
    body = {"email": "  Ripley@Nostromo.io ", "password": "xenomorph", "name": " Ellen Ripley "}
    body.update(over)
    return body


def test_register_creates_user_and_returns_token(auth_env):
    resp = auth_env.client.post("/api/v1/auth/register", json=_payload())
    assert resp.status_code == 201, resp.text
    body = resp.json()

    assert body["tokenType"] == "bearer"
    assert body["user"]["email"] == "ripley@nostromo.io"
    assert body["user"]["name"] == "Ellen Ripley"
    claims = decode_access_token(body["accessToken"])
    assert claims["sub"] == body["user"]["id"]

    user = auth_env.db.added[0]
    assert user.email == "ripley@nostromo.io"
    assert user.hashed_password != "xenomorph"
    assert verify_password("xenomorph", user.hashed_password)
    assert auth_env.db.commit_calls == 1
    assert resp.headers.get("Cache-Control") == "no-store"


def test_register_duplicate_email_is_conflict(auth_env):
    auth_env.db.lookup = uuid.uuid4()
    resp = auth_env.client.post("/api/v1/auth/register", json=_payload())
    assert resp.status_code == 409
    assert resp.json()["detail"] == "User with this email already exists"
    assert auth_env.db.added == []


def test_register_insert_race_is_conflict(auth_env):
    auth_env.db.fail_commit_with = IntegrityError("INSERT", {}, Exception("duplicate"))
    resp = auth_env.client.post("/api/v1/auth/register", json=_payload())
    assert resp.status_code == 409
    assert auth_env.db.rollback_calls == 1


def test_register_validates_input(auth_env):
    for bad in (
        _payload(email="not-an-email"),
        _payload(password="12345"),
        _payload(name="   "),
        {"email": "a@b.io", "password": "secret1"},
    ):
        assert auth_env.client.post("/api/v1/auth/register", json=bad).status_code == 422, bad
    assert auth_env.db.added == []


def test_register_idempotency_key_replays_first_response(auth_env):
    headers = {"Idempotency-Key": "signup-1"}
    first = auth_env.client.post("/api/v1/auth/register", json=_payload(), headers=headers)
    assert first.status_code == 201

    auth_env.db = FakeDB(lookup=uuid.uuid4())  # a real repeat would now 409
    auth_env.app.dependency_overrides[auth_env.signup.get_async_db] = lambda: auth_env.db
    second = auth_env.client.post("/api/v1/auth/register", json=_payload(), headers=headers)
    assert second.status_code == 201
    assert second.json() == first.json()


def test_register_idempotency_key_is_scoped_to_the_email(auth_env):
    headers = {"Idempotency-Key": "shared-key"}
    first = auth_env.client.post(
        "/api/v1/auth/register", json=_payload(email="victim@nostromo.io"), headers=headers
    )
    assert first.status_code == 201

    auth_env.db = FakeDB()
    auth_env.app.dependency_overrides[auth_env.signup.get_async_db] = lambda: auth_env.db
    second = auth_env.client.post(
        "/api/v1/auth/register", json=_payload(email="Intruder@Nostromo.io"), headers=headers
    )
    assert second.status_code == 201
    body = second.json()
    assert body["user"]["email"] == "intruder@nostromo.io"
    assert body["accessToken"] != first.json()["accessToken"]
    assert auth_env.db.added[0].email == "intruder@nostromo.io"
