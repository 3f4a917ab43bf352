# tests/v1/test_dependencies.py
"""Tests for API dependencies module."""

from datetime import timedelta

import pytest
from fastapi import HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from starlette.requests import Request

from comment_guard.api.v1.dependencies import (
    Actor,
    create_access_token,
    get_actor,
    get_request_meta,
    require_moderator,
    require_user,
)


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("192.0.2.10", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(key.lower().encode(), value.encode()) for key, value in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestGetActor:
    """Test bearer token decoding."""

    def test_no_credentials_is_guest(self):
        actor = get_actor(None)
        assert actor.is_guest
        assert not actor.is_moderator

    def test_valid_token(self):
        actor = get_actor(_credentials(create_access_token("alice", role="editor")))
        assert actor.user_id == "alice"
        assert actor.role == "editor"
        assert actor.is_moderator

    def test_token_without_role(self):
        actor = get_actor(_credentials(create_access_token("bob")))
        assert actor.user_id == "bob"
        assert not actor.is_moderator

    def test_invalid_token(self):
        with pytest.raises(HTTPException) as exc_info:
            get_actor(_credentials("not-a-jwt"))
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    def test_expired_token(self):
        token = create_access_token("alice", expires_delta=timedelta(seconds=-10))
        with pytest.raises(HTTPException) as exc_info:
            get_actor(_credentials(token))
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED


class TestRoleGuards:
    def test_require_user_rejects_guest(self):
        with pytest.raises(HTTPException) as exc_info:
            require_user(Actor())
        assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED

    def test_require_moderator_rejects_regular_user(self):
        with pytest.raises(HTTPException) as exc_info:
            require_moderator(Actor(user_id="alice"))
        assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN

    def test_require_moderator_accepts_admin(self):
        actor = Actor(user_id="root", role="ADMIN")
        assert require_moderator(actor) is actor


class TestRequestMeta:
    def test_forwarded_for_first_hop(self):
        meta = get_request_meta(
            _request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1", "User-Agent": "Mozilla/5.0 test"})
        )
        assert meta.ip_address == "203.0.113.5"
        assert meta.user_agent == "Mozilla/5.0 test"

    def test_falls_back_to_client_host(self):
        meta = get_request_meta(_request({}))
        assert meta.ip_address == "192.0.2.10"
        assert meta.user_agent is None

    def test_missing_client(self):
        meta = get_request_meta(_request({}, client=None))
        assert meta.ip_address is None
