# src/comment_guard/models/post.py
"""Content items that comments attach to.

The table belongs to the host platform; this package only reads publish dates
from it for the auto-close policy.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from comment_guard.db.session import Base
from comment_guard.db.time import utcnow


class Post(Base):
    """Minimal view of a published content item."""

    __tablename__ = "post"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
