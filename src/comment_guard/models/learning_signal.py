# src/comment_guard/models/learning_signal.py
"""Append-only moderation telemetry."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from comment_guard.db.session import Base
from comment_guard.db.time import utcnow


class LearningSignal(Base):
    """Record of an action taken on a comment and the scoring data at that instant.

    Rows are only ever inserted, and removed together with their comment.
    """

    __tablename__ = "learning_signal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("comment.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # SUBMITTED, AUTO_SPAM, MANUAL_SPAM, MANUAL_SPAM_BULK or the new status name.
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    # Column is named "metadata"; the attribute avoids DeclarativeBase.metadata.
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        name="metadata",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
