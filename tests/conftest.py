# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from comment_guard.api.v1.dependencies import create_access_token
from comment_guard.db.session import Base
from comment_guard.db.session import get_db as app_get_session
from comment_guard.db.time import utcnow
from comment_guard.main import app as fastapi_app
from comment_guard.models import Comment, CommentStatus, Post
from comment_guard.schemas import CommentsConfig, RequestMeta
from comment_guard.services import (
    CommentEvent,
    CommentEventPayload,
    CommentServices,
    build_comment_services,
)

TEST_DB_URL = "sqlite://"
BROWSER_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
DEFAULT_POST_ID = "post-1"

_USER_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    TestingSession = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so every test wipes the tables afterwards.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def services(db_session: Session) -> CommentServices:
    """A fresh service graph with the default settings row loaded."""
    bundle = build_comment_services()
    bundle.settings.get_settings(db_session)
    return bundle


@pytest.fixture()
def configure(services: CommentServices, db_session: Session) -> Callable[..., CommentsConfig]:
    """Apply a partial settings update through the settings service."""

    def _configure(**changes: Any) -> CommentsConfig:
        return services.settings.update_settings(changes, db_session, updated_by="test-admin")

    return _configure


@pytest.fixture()
def recorded_events(services: CommentServices) -> list[CommentEventPayload]:
    """Every payload emitted on the service bus, in order."""
    received: list[CommentEventPayload] = []
    for event in CommentEvent:
        services.events.on(event, received.append)
    return received


@pytest.fixture()
def browser_meta() -> RequestMeta:
    return RequestMeta(ip_address="203.0.113.7", user_agent=BROWSER_USER_AGENT)


@pytest.fixture()
def make_comment(db_session: Session) -> Callable[..., Comment]:
    """Insert a comment directly, bypassing the lifecycle service.

    ``age`` (a timedelta) back-dates ``created_at``.
    """

    def _make(age: timedelta | None = None, **overrides: Any) -> Comment:
        values: dict[str, Any] = {
            "post_id": DEFAULT_POST_ID,
            "user_id": f"user-{next(_USER_COUNTER)}",
            "content": "<p>A perfectly reasonable remark about the article.</p>",
            "status": CommentStatus.APPROVED,
        }
        values.update(overrides)
        if age is not None:
            values["created_at"] = utcnow() - age
        comment = Comment(**values)
        db_session.add(comment)
        db_session.commit()
        db_session.refresh(comment)
        return comment

    return _make


@pytest.fixture()
def make_post(db_session: Session) -> Callable[..., Post]:
    def _make(post_id: str = DEFAULT_POST_ID, published_days_ago: int | None = 0) -> Post:
        published_at = None
        if published_days_ago is not None:
            published_at = utcnow() - timedelta(days=published_days_ago)
        post = Post(id=post_id, published_at=published_at)
        db_session.add(post)
        db_session.commit()
        return post

    return _make


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def api_services(app: FastAPI) -> CommentServices:
    """Replace the application's services so no cached settings leak between tests."""
    bundle = build_comment_services()
    app.state.services = bundle
    return bundle


@pytest.fixture()
def client(app: FastAPI, api_services: CommentServices) -> Iterator[TestClient]:
    with TestClient(
        app,
        base_url="http://test",
        headers={"User-Agent": BROWSER_USER_AGENT},
    ) as test_client:
        yield test_client


def _auth_headers(user_id: str, role: str | None = None) -> dict[str, str]:
    token = create_access_token(user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers() -> Callable[..., dict[str, str]]:
    """Factory for authorization headers of an arbitrary user and role."""
    return _auth_headers


@pytest.fixture()
def user_headers() -> dict[str, str]:
    return _auth_headers("alice")


@pytest.fixture()
def other_user_headers() -> dict[str, str]:
    return _auth_headers("bob")


@pytest.fixture()
def moderator_headers() -> dict[str, str]:
    return _auth_headers("mod-1", role="MODERATOR")
