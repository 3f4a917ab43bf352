# src/comment_guard/models/settings.py
"""Singleton row holding the runtime moderation configuration."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from comment_guard.db.session import Base
from comment_guard.db.time import utcnow

SETTINGS_ROW_ID = 1


class CommentSettings(Base):
    """Admin-editable comment settings.

    Only one row (id = 1) exists. It is created lazily with defaults by the
    settings service and written only by that service.
    """

    __tablename__ = "comment_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SETTINGS_ROW_ID)

    # Content limits
    max_content_length: Mapped[int] = mapped_column(Integer, nullable=False)
    max_author_name_length: Mapped[int] = mapped_column(Integer, nullable=False)
    max_website_length: Mapped[int] = mapped_column(Integer, nullable=False)
    max_reply_depth: Mapped[int] = mapped_column(Integer, nullable=False)

    # Moderation
    comments_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    require_moderation: Mapped[bool] = mapped_column(Boolean, nullable=False)
    allow_guest_comments: Mapped[bool] = mapped_column(Boolean, nullable=False)
    auto_approve_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    edit_window_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    close_comments_after_days: Mapped[int] = mapped_column(Integer, nullable=False)

    # Rate limiting
    max_comments_per_post_per_user: Mapped[int] = mapped_column(Integer, nullable=False)
    max_comments_per_hour: Mapped[int] = mapped_column(Integer, nullable=False)

    # Spam
    max_links_before_spam: Mapped[int] = mapped_column(Integer, nullable=False)
    caps_spam_ratio: Mapped[float] = mapped_column(Float, nullable=False)
    caps_check_min_length: Mapped[int] = mapped_column(Integer, nullable=False)
    spam_score_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    custom_spam_keywords: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    blocked_emails: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    blocked_domains: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    blocked_ips: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Features
    enable_voting: Mapped[bool] = mapped_column(Boolean, nullable=False)
    enable_reactions: Mapped[bool] = mapped_column(Boolean, nullable=False)
    enable_threading: Mapped[bool] = mapped_column(Boolean, nullable=False)
    enable_profanity_filter: Mapped[bool] = mapped_column(Boolean, nullable=False)
    enable_learning_signals: Mapped[bool] = mapped_column(Boolean, nullable=False)
    track_metadata: Mapped[bool] = mapped_column(Boolean, nullable=False)
    profanity_words: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Limits
    auto_flag_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    pinned_comment_limit: Mapped[int] = mapped_column(Integer, nullable=False)

    # Retention
    spam_retention_days: Mapped[int] = mapped_column(Integer, nullable=False)
    deleted_retention_days: Mapped[int] = mapped_column(Integer, nullable=False)

    # Notifications
    notify_on_flag: Mapped[bool] = mapped_column(Boolean, nullable=False)
    notify_on_spam: Mapped[bool] = mapped_column(Boolean, nullable=False)

    # Audit
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
