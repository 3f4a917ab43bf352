# src/comment_guard/models/comment.py
"""SQLAlchemy model for user comments and their moderation state."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from comment_guard.db.session import Base
from comment_guard.db.time import utcnow


class CommentStatus(str, Enum):
    """Moderation lifecycle states.

    PENDING -> APPROVED | SPAM | REJECTED; APPROVED <-> FLAGGED;
    FLAGGED -> REJECTED once the flag threshold is met; any state -> DELETED
    (soft) and DELETED -> PENDING on restore.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SPAM = "SPAM"
    FLAGGED = "FLAGGED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


def _new_id() -> str:
    return str(uuid.uuid4())


class Comment(Base):
    """A comment on a content item, optionally replying to another comment."""

    __tablename__ = "comment"
    __table_args__ = (
        CheckConstraint("spam_score >= 0 AND spam_score <= 100", name="ck_comment_spam_score"),
        Index("ix_comment_post_status", "post_id", "status"),
        Index("ix_comment_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    post_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # Top-level comments have parent_id = NULL.
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("comment.id"),
        nullable=True,
        index=True,
    )

    # Registered author, or the guest fields below; never both.
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    author_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    author_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    author_website: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Request metadata, only stored while track_metadata is enabled.
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True, index=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[CommentStatus] = mapped_column(
        SAEnum(CommentStatus, native_enum=False, length=16),
        nullable=False,
        default=CommentStatus.PENDING,
    )
    spam_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spam_signals: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    flag_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    flag_reasons: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Derived counters; only ever changed through atomic UPDATE statements.
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
    # deleted_at set implies status == DELETED.
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
