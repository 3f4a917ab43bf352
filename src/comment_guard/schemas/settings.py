"""Moderation configuration snapshot and settings-update schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from comment_guard.schemas.comment import CommentStats

BlockedListName = Literal["blocked_emails", "blocked_domains", "blocked_ips"]


class CommentsConfig(BaseModel):
    """Immutable, fully-resolved moderation configuration.

    One instance is published by the settings service after every load or
    update and pushed to each registered consumer. Consumers never mutate it.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    # Content limits
    max_content_length: int = 5000
    max_author_name_length: int = 120
    max_website_length: int = 300
    max_reply_depth: int = 5

    # Moderation
    comments_enabled: bool = True
    require_moderation: bool = False
    allow_guest_comments: bool = True
    auto_approve_threshold: int = 3
    edit_window_minutes: int = 30  # 0 = unlimited
    close_comments_after_days: int = 0  # 0 = never

    # Rate limiting (0 = unlimited)
    max_comments_per_post_per_user: int = 0
    max_comments_per_hour: int = 0

    # Spam
    max_links_before_spam: int = 3
    caps_spam_ratio: float = 0.5
    caps_check_min_length: int = 20
    spam_score_threshold: int = 50
    custom_spam_keywords: tuple[str, ...] = ()
    blocked_emails: tuple[str, ...] = ()
    blocked_domains: tuple[str, ...] = ()
    blocked_ips: tuple[str, ...] = ()

    # Features
    enable_voting: bool = True
    enable_reactions: bool = True
    enable_threading: bool = True
    enable_profanity_filter: bool = False
    enable_learning_signals: bool = True
    track_metadata: bool = True
    profanity_words: tuple[str, ...] = ()

    # Limits
    auto_flag_threshold: int = 3
    pinned_comment_limit: int = 3  # 0 = unlimited

    # Retention
    spam_retention_days: int = 30
    deleted_retention_days: int = 90

    # Notifications
    notify_on_flag: bool = True
    notify_on_spam: bool = False


DEFAULT_CONFIG = CommentsConfig()

# Served when the settings row cannot be read: moderation-affecting knobs
# take their strictest values.
FAIL_SAFE_CONFIG = CommentsConfig(require_moderation=True, allow_guest_comments=False)


Keyword = Annotated[str, Field(max_length=100)]
EmailEntry = Annotated[str, Field(max_length=254)]
DomainEntry = Annotated[str, Field(max_length=253)]
IpEntry = Annotated[str, Field(max_length=45)]


def _normalise_entries(values: list[str] | None, *, lower: bool = True) -> list[str] | None:
    if values is None:
        return None
    seen: dict[str, None] = {}
    for value in values:
        entry = value.strip()
        if lower:
            entry = entry.lower()
        if entry:
            seen.setdefault(entry, None)
    return list(seen)


class CommentSettingsUpdate(BaseModel):
    """Partial settings payload accepted from administrators.

    Every field is optional and bounded on its own; unknown fields are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    # Content limits
    max_content_length: int | None = Field(None, ge=100, le=50_000)
    max_author_name_length: int | None = Field(None, ge=10, le=500)
    max_website_length: int | None = Field(None, ge=50, le=2000)
    max_reply_depth: int | None = Field(None, ge=1, le=20)

    # Moderation
    comments_enabled: bool | None = None
    require_moderation: bool | None = None
    allow_guest_comments: bool | None = None
    auto_approve_threshold: int | None = Field(None, ge=0, le=100)
    edit_window_minutes: int | None = Field(None, ge=0, le=10_080)  # max 1 week
    close_comments_after_days: int | None = Field(None, ge=0, le=3650)

    # Rate limiting
    max_comments_per_post_per_user: int | None = Field(None, ge=0, le=1000)
    max_comments_per_hour: int | None = Field(None, ge=0, le=1000)

    # Spam
    max_links_before_spam: int | None = Field(None, ge=1, le=50)
    caps_spam_ratio: float | None = Field(None, ge=0, le=1)
    caps_check_min_length: int | None = Field(None, ge=1, le=500)
    spam_score_threshold: int | None = Field(None, ge=10, le=100)
    custom_spam_keywords: list[Keyword] | None = Field(None, max_length=500)
    blocked_emails: list[EmailEntry] | None = Field(None, max_length=1000)
    blocked_domains: list[DomainEntry] | None = Field(None, max_length=1000)
    blocked_ips: list[IpEntry] | None = Field(None, max_length=10_000)

    # Features
    enable_voting: bool | None = None
    enable_reactions: bool | None = None
    enable_threading: bool | None = None
    enable_profanity_filter: bool | None = None
    enable_learning_signals: bool | None = None
    track_metadata: bool | None = None
    profanity_words: list[Keyword] | None = Field(None, max_length=5000)

    # Limits
    auto_flag_threshold: int | None = Field(None, ge=1, le=100)
    pinned_comment_limit: int | None = Field(None, ge=0, le=50)

    # Retention
    spam_retention_days: int | None = Field(None, ge=1, le=3650)
    deleted_retention_days: int | None = Field(None, ge=1, le=3650)

    # Notifications
    notify_on_flag: bool | None = None
    notify_on_spam: bool | None = None

    @field_validator(
        "custom_spam_keywords",
        "blocked_emails",
        "blocked_domains",
        "profanity_words",
    )
    @classmethod
    def _lower_entries(cls, values: list[str] | None) -> list[str] | None:
        return _normalise_entries(values)

    @field_validator("blocked_ips")
    @classmethod
    def _strip_ips(cls, values: list[str] | None) -> list[str] | None:
        return _normalise_entries(values, lower=False)

    def changes(self) -> dict[str, object]:
        """Return only the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ListEntries(BaseModel):
    """Entries to add to or remove from a settings list."""

    entries: list[str] = Field(..., min_length=1, max_length=1000)


class CommentSettingsResponse(CommentsConfig):
    """Settings as returned to administrators, with audit fields."""

    updated_by: str | None = None
    updated_at: datetime | None = None


class PolicyDecision(BaseModel):
    """Outcome of a pre-flight policy check."""

    allowed: bool
    reason: str | None = None
    retry_after_seconds: int | None = None


class AdminOverview(BaseModel):
    """Settings plus live statistics for the administration dashboard."""

    settings: CommentSettingsResponse
    stats: CommentStats
    recent_flagged: int
    blocked_email_count: int
    blocked_domain_count: int
    blocked_ip_count: int
    spam_keyword_count: int
    profanity_word_count: int
