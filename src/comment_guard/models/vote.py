# src/comment_guard/models/vote.py
"""Models capturing voting interactions on comments."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from comment_guard.db.session import Base
from comment_guard.db.time import utcnow


class VoteType(str, Enum):
    """Direction of a vote."""

    UP = "UP"
    DOWN = "DOWN"


class CommentVote(Base):
    """Per-voter vote on a comment."""

    __tablename__ = "comment_vote"
    __table_args__ = (Index("ix_comment_vote_comment_id", "comment_id"),)

    comment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("comment.id", ondelete="CASCADE"),
        primary_key=True,
    )

    voter_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Composite primary key prevents duplicate votes from the same voter.

    vote_type: Mapped[VoteType] = mapped_column(
        SAEnum(VoteType, native_enum=False, length=8),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
