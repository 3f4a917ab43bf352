"""Shared API dependencies for caller identity, services and request metadata."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from comment_guard.core.settings import settings
from comment_guard.db.session import get_db
from comment_guard.db.time import utcnow
from comment_guard.schemas.comment import RequestMeta
from comment_guard.services.registry import CommentServices

# Optional bearer scheme; a request without a token is a guest.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


@dataclass(frozen=True)
class Actor:
    """The caller of a request as far as the comment services care."""

    user_id: str | None = None
    role: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def is_moderator(self) -> bool:
        if self.role is None:
            return False
        return self.role.upper() in {role.upper() for role in settings.moderator_roles}


def create_access_token(
    subject: str,
    role: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a signed JWT for ``subject`` (used by tooling and tests)."""
    payload: dict[str, object] = {
        "sub": subject,
        "exp": utcnow() + (expires_delta or timedelta(hours=1)),
    }
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def get_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Actor:
    """Decode the bearer token, if any, into an :class:`Actor`.

    Raises:
        HTTPException: If a token is present but invalid
    """
    if credentials is None:
        return Actor()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    role = payload.get("role")
    return Actor(user_id=str(subject), role=str(role) if role else None)


ActorDep = Annotated[Actor, Depends(get_actor)]


def require_user(actor: ActorDep) -> Actor:
    """Reject guests."""
    if actor.is_guest:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return actor


def require_moderator(actor: ActorDep) -> Actor:
    """Reject callers without a moderator role."""
    actor = require_user(actor)
    if not actor.is_moderator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator role required",
        )
    return actor


UserDep = Annotated[Actor, Depends(require_user)]
ModeratorDep = Annotated[Actor, Depends(require_moderator)]


def get_services(request: Request, db: SessionDep) -> CommentServices:
    """Return the application's services with a loaded configuration snapshot."""
    services: CommentServices = request.app.state.services
    services.settings.get_settings(db)
    return services


ServicesDep = Annotated[CommentServices, Depends(get_services)]


def get_request_meta(request: Request) -> RequestMeta:
    """Client IP (first ``X-Forwarded-For`` hop when present) and user agent."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address: str | None = forwarded.split(",")[0].strip() or None
    else:
        ip_address = request.client.host if request.client else None
    return RequestMeta(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


RequestMetaDep = Annotated[RequestMeta, Depends(get_request_meta)]
