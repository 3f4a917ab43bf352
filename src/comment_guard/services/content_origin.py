"""Lookup of the publish date of the content a comment attaches to."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from comment_guard.models.post import Post


class ContentOriginLookup(Protocol):
    """Source of publish dates for the auto-close policy."""

    def published_at(self, post_id: str, db: Session) -> datetime | None: ...


class SqlPostLookup:
    """Reads publish dates from the ``post`` table.

    Unpublished items fall back to their creation date; unknown items return
    ``None`` so the auto-close check is skipped.
    """

    def published_at(self, post_id: str, db: Session) -> datetime | None:
        post = db.get(Post, post_id)
        if post is None:
            return None
        return post.published_at or post.created_at
