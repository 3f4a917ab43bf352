# src/comment_guard/services/admin_settings.py
"""Database-backed moderation settings with push propagation to consumers.

The settings service is the single writer of the ``comment_settings`` row and
the only owner of the cached :class:`CommentsConfig` snapshot. Every other
service registers as a consumer and receives each new snapshot through
``update_config``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from comment_guard.db.time import utcnow
from comment_guard.models import SETTINGS_ROW_ID, CommentSettings, CommentStatus
from comment_guard.models.comment import Comment
from comment_guard.repositories import CommentRepository
from comment_guard.schemas.settings import (
    DEFAULT_CONFIG,
    FAIL_SAFE_CONFIG,
    AdminOverview,
    BlockedListName,
    CommentSettingsResponse,
    CommentSettingsUpdate,
    CommentsConfig,
    PolicyDecision,
)
from comment_guard.services.errors import PolicyViolationError
from comment_guard.services.policies import (
    RATE_LIMIT_WINDOW,
    closed_reason,
    comments_closed,
    hourly_limit_reason,
    post_quota_reason,
)

logger = logging.getLogger(__name__)

_LIST_FIELDS = (
    "custom_spam_keywords",
    "blocked_emails",
    "blocked_domains",
    "blocked_ips",
    "profanity_words",
)
_BLOCKED_LISTS: tuple[str, ...] = ("blocked_emails", "blocked_domains", "blocked_ips")


class ConfigConsumer(Protocol):
    """Anything that wants to be told about new configuration snapshots."""

    def update_config(self, config: CommentsConfig) -> None: ...


def _row_values(config: CommentsConfig) -> dict[str, Any]:
    values = config.model_dump()
    for name in _LIST_FIELDS:
        values[name] = list(values[name])
    return values


class CommentSettingsService:
    """Loads, caches, updates and propagates the moderation configuration."""

    def __init__(self) -> None:
        self._cached: CommentsConfig | None = None
        self._consumers: list[ConfigConsumer] = []
        self._lock = threading.Lock()

    # --- Consumers -------------------------------------------------------------------
    def register_consumer(self, consumer: ConfigConsumer) -> None:
        """Register a consumer and hand it the current snapshot immediately."""
        self._consumers.append(consumer)
        consumer.update_config(self.current)

    def _propagate(self, config: CommentsConfig) -> None:
        for consumer in list(self._consumers):
            try:
                consumer.update_config(config)
            except Exception:
                logger.exception("Failed to push settings to %r", consumer)

    @property
    def current(self) -> CommentsConfig:
        """The cached snapshot, or the defaults before the first load."""
        return self._cached or DEFAULT_CONFIG

    # --- Loading ---------------------------------------------------------------------
    def _load_row(self, db: Session) -> CommentSettings:
        row = db.get(CommentSettings, SETTINGS_ROW_ID)
        if row is not None:
            return row

        row = CommentSettings(id=SETTINGS_ROW_ID, **_row_values(DEFAULT_CONFIG))
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            # Another request created the row first.
            db.rollback()
            row = db.get(CommentSettings, SETTINGS_ROW_ID)
            if row is None:
                raise
        else:
            logger.info("Created default comment settings")
        return row

    def get_settings(self, db: Session) -> CommentsConfig:
        """Return the cached snapshot, loading it from the database when needed.

        A fresh load is pushed to every consumer. When the row cannot be read
        the fail-safe snapshot is returned and nothing is cached, so the next
        call retries.
        """
        if self._cached is not None:
            return self._cached

        with self._lock:
            # An update may have filled the cache while this call waited.
            if self._cached is not None:
                return self._cached
            try:
                row = self._load_row(db)
                config = CommentsConfig.model_validate(row)
            except SQLAlchemyError:
                logger.exception("Failed to load comment settings; serving fail-safe configuration")
                db.rollback()
                self._propagate(FAIL_SAFE_CONFIG)
                return FAIL_SAFE_CONFIG

            self._cached = config
            self._propagate(config)
        return config

    def get_settings_record(self, db: Session) -> CommentSettingsResponse:
        """Return the persisted settings together with their audit fields."""
        self.get_settings(db)
        row = self._load_row(db)
        return CommentSettingsResponse.model_validate(row)

    def reload_settings(self, db: Session) -> CommentsConfig:
        """Drop the cache and load the row again."""
        self.invalidate()
        return self.get_settings(db)

    def invalidate(self) -> None:
        """Forget the cached snapshot; the next read goes to the database."""
        self._cached = None

    # --- Updates ---------------------------------------------------------------------
    def update_settings(
        self,
        changes: CommentSettingsUpdate | dict[str, Any],
        db: Session,
        updated_by: str | None = None,
    ) -> CommentsConfig:
        """Validate and persist a partial update, then push the new snapshot.

        Raises:
            pydantic.ValidationError: If a field is unknown or out of bounds.
        """
        if not isinstance(changes, CommentSettingsUpdate):
            changes = CommentSettingsUpdate.model_validate(changes)
        values = changes.changes()

        with self._lock:
            row = self._load_row(db)
            for name, value in values.items():
                setattr(row, name, list(value) if name in _LIST_FIELDS else value)
            row.updated_by = updated_by
            row.updated_at = utcnow()
            try:
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            db.refresh(row)

            config = CommentsConfig.model_validate(row)
            self._cached = config
            self._propagate(config)

        logger.info("Comment settings updated by %s: %s", updated_by or "system", sorted(values))
        return config

    def _edit_list(
        self,
        name: str,
        entries: Iterable[str],
        db: Session,
        updated_by: str | None,
        *,
        add: bool,
    ) -> CommentsConfig:
        current = list(getattr(self.get_settings(db), name))
        # Normalise the incoming entries the same way a full update would.
        incoming = CommentSettingsUpdate.model_validate({name: list(entries)}).changes().get(name, [])
        if add:
            merged = list(dict.fromkeys([*current, *incoming]))
        else:
            removed = set(incoming)
            merged = [entry for entry in current if entry not in removed]
        return self.update_settings({name: merged}, db, updated_by)

    def add_to_blocked_list(
        self,
        list_name: BlockedListName,
        entries: Iterable[str],
        db: Session,
        updated_by: str | None = None,
    ) -> CommentsConfig:
        """Append entries to one of the blocked email/domain/IP lists."""
        if list_name not in _BLOCKED_LISTS:
            raise PolicyViolationError(f"Unknown blocked list: {list_name}")
        return self._edit_list(list_name, entries, db, updated_by, add=True)

    def remove_from_blocked_list(
        self,
        list_name: BlockedListName,
        entries: Iterable[str],
        db: Session,
        updated_by: str | None = None,
    ) -> CommentsConfig:
        """Remove entries from one of the blocked email/domain/IP lists."""
        if list_name not in _BLOCKED_LISTS:
            raise PolicyViolationError(f"Unknown blocked list: {list_name}")
        return self._edit_list(list_name, entries, db, updated_by, add=False)

    def add_spam_keywords(
        self, keywords: Iterable[str], db: Session, updated_by: str | None = None
    ) -> CommentsConfig:
        return self._edit_list("custom_spam_keywords", keywords, db, updated_by, add=True)

    def remove_spam_keywords(
        self, keywords: Iterable[str], db: Session, updated_by: str | None = None
    ) -> CommentsConfig:
        return self._edit_list("custom_spam_keywords", keywords, db, updated_by, add=False)

    def add_profanity_words(
        self, words: Iterable[str], db: Session, updated_by: str | None = None
    ) -> CommentsConfig:
        return self._edit_list("profanity_words", words, db, updated_by, add=True)

    def remove_profanity_words(
        self, words: Iterable[str], db: Session, updated_by: str | None = None
    ) -> CommentsConfig:
        return self._edit_list("profanity_words", words, db, updated_by, add=False)

    # --- Reporting -------------------------------------------------------------------
    def get_admin_overview(self, db: Session) -> AdminOverview:
        """Settings, live statistics and list sizes for the admin dashboard."""
        record = self.get_settings_record(db)
        repo = CommentRepository(db)
        return AdminOverview(
            settings=record,
            stats=repo.stats(utcnow() - timedelta(days=1)),
            recent_flagged=repo.count(Comment.status == CommentStatus.FLAGGED),
            blocked_email_count=len(record.blocked_emails),
            blocked_domain_count=len(record.blocked_domains),
            blocked_ip_count=len(record.blocked_ips),
            spam_keyword_count=len(record.custom_spam_keywords),
            profanity_word_count=len(record.profanity_words),
        )

    # --- Policy checks ---------------------------------------------------------------
    def is_commenting_allowed(
        self,
        published_at: datetime | None,
        db: Session,
    ) -> PolicyDecision:
        """Whether new comments are accepted on content published at ``published_at``."""
        config = self.get_settings(db)
        if not config.comments_enabled:
            return PolicyDecision(allowed=False, reason="Comments are disabled")
        if comments_closed(config, published_at):
            return PolicyDecision(allowed=False, reason=closed_reason(config))
        return PolicyDecision(allowed=True)

    def check_rate_limit(
        self,
        db: Session,
        user_id: str | None = None,
        post_id: str | None = None,
        ip_address: str | None = None,
    ) -> PolicyDecision:
        """Whether the author may post another comment right now.

        Registered users are keyed by ``user_id``; guests by ``ip_address``.
        Without either identity there is nothing to count and the check passes.
        """
        config = self.get_settings(db)
        if user_id is None and ip_address is None:
            return PolicyDecision(allowed=True)

        repo = CommentRepository(db)
        if config.max_comments_per_hour > 0:
            recent = repo.count_recent(
                utcnow() - RATE_LIMIT_WINDOW, user_id=user_id, ip_address=ip_address
            )
            if recent >= config.max_comments_per_hour:
                return PolicyDecision(
                    allowed=False,
                    reason=hourly_limit_reason(config),
                    retry_after_seconds=int(RATE_LIMIT_WINDOW.total_seconds()),
                )

        if post_id is not None and config.max_comments_per_post_per_user > 0:
            on_post = repo.count_on_post(post_id, user_id=user_id, ip_address=ip_address)
            if on_post >= config.max_comments_per_post_per_user:
                return PolicyDecision(allowed=False, reason=post_quota_reason(config))

        return PolicyDecision(allowed=True)
