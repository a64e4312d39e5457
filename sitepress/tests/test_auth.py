"""Tests for session resolution."""
import time

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from sitepress.core import auth
from sitepress.core.errors import UnauthorizedError
from sitepress.features.users.service import get_user

SECRET = "test-session-secret"


def _token(**claims):
    return jwt.encode(claims, SECRET, algorithm="HS256")


def test_valid_token_returns_subject():
    assert auth.verify_session_token(_token(sub="alice")) == "alice"


def test_expired_token_is_rejected():
    with pytest.raises(UnauthorizedError) as exc:
        auth.verify_session_token(_token(sub="alice", exp=int(time.time()) - 60))
    assert exc.value.message == "Session expired"


def test_wrong_secret_is_rejected():
    token = jwt.encode({"sub": "alice"}, "another-secret", algorithm="HS256")
    with pytest.raises(UnauthorizedError):
        auth.verify_session_token(token)


def test_token_without_subject_is_rejected():
    with pytest.raises(UnauthorizedError):
        auth.verify_session_token(_token(name="alice"))


def test_authenticated_user_is_upserted(client, make_site):
    site = make_site("owner", subdomain="blog")
    resp = client.get(
        "/api/plan",
        params={"siteId": site.id},
        headers={"Authorization": f"Bearer {_token(sub='fresh-user')}"},
    )
    assert resp.status_code == 200
    assert get_user("fresh-user") is not None


def test_user_header_ignored_when_disabled(client, monkeypatch):
    monkeypatch.setattr(auth.settings, "AUTH_ALLOW_USER_HEADER", False)
    resp = client.get("/api/plan", params={"siteId": "x"}, headers={"X-User-Id": "alice"})
    assert resp.status_code == 401


def test_store_error_during_upsert_still_resolves_caller(monkeypatch):
    def unavailable(user_id):
        raise OperationalError("INSERT INTO app_users", {}, Exception("db down"))

    monkeypatch.setattr(auth, "get_or_create_user", unavailable)
    assert auth._remember_user("alice") == "alice"


def test_programming_error_during_upsert_propagates(monkeypatch):
    def broken(user_id):
        raise RuntimeError("bug")

    monkeypatch.setattr(auth, "get_or_create_user", broken)
    with pytest.raises(RuntimeError):
        auth._remember_user("alice")
