# src/comment_guard/services/moderation.py
"""Moderation services: status transitions, flags, pins, bulk actions and purges."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement
from sqlalchemy.orm import Session

from comment_guard.db.time import utcnow
from comment_guard.models import Comment, CommentStatus
from comment_guard.repositories import CommentRepository, text_search_condition
from comment_guard.schemas.comment import (
    MAX_BULK_IDS,
    CommentQuery,
    CommentResponse,
    CommentStats,
    PaginatedComments,
)
from comment_guard.schemas.settings import DEFAULT_CONFIG, CommentsConfig
from comment_guard.services.comments import record_learning_signal
from comment_guard.services.errors import CommentNotFoundError, PolicyViolationError
from comment_guard.services.events import CommentEvent, CommentEventBus, CommentEventPayload
from comment_guard.services.sanitize import sanitize_text

if TYPE_CHECKING:
    from comment_guard.services.admin_settings import CommentSettingsService

logger = logging.getLogger(__name__)

LEARNING_MANUAL_SPAM = "MANUAL_SPAM"
LEARNING_MANUAL_SPAM_BULK = "MANUAL_SPAM_BULK"
MANUAL_SPAM_SCORE = 100

# States a user report moves into FLAGGED; SPAM and REJECTED keep their status.
_FLAGGABLE = frozenset({CommentStatus.PENDING, CommentStatus.APPROVED, CommentStatus.FLAGGED})


class ModerationService:
    """Service handling moderator actions and maintenance."""

    def __init__(
        self,
        events: CommentEventBus,
        settings_service: CommentSettingsService | None = None,
        *,
        config: CommentsConfig = DEFAULT_CONFIG,
    ) -> None:
        self._events = events
        self._config = config
        if settings_service is not None:
            settings_service.register_consumer(self)

    @property
    def config(self) -> CommentsConfig:
        return self._config

    def update_config(self, config: CommentsConfig) -> None:
        """Receive a new configuration snapshot."""
        self._config = config

    # --- Helpers ---------------------------------------------------------------------
    @staticmethod
    def _get_or_raise(repo: CommentRepository, comment_id: str) -> Comment:
        comment = repo.get_by_id(comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id)
        return comment

    @staticmethod
    def _ensure_not_deleted(comment: Comment) -> None:
        if comment.deleted_at is not None:
            raise PolicyViolationError("Comment is deleted; restore it first")

    async def _emit(
        self,
        event: CommentEvent,
        comment: Comment,
        moderator_id: str | None = None,
        *,
        user_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        await self._events.emit(
            event,
            CommentEventPayload(
                event=event,
                comment_id=comment.id,
                post_id=comment.post_id,
                user_id=user_id if user_id is not None else comment.user_id,
                moderator_id=moderator_id,
                data=data or {},
            ),
        )

    @staticmethod
    def _bulk_ids(ids: Sequence[str]) -> list[str]:
        unique = list(dict.fromkeys(ids))
        if not unique:
            raise PolicyViolationError("At least one comment id is required")
        if len(unique) > MAX_BULK_IDS:
            raise PolicyViolationError(f"At most {MAX_BULK_IDS} comments per bulk action")
        return unique

    async def _set_status(
        self,
        comment_id: str,
        status: CommentStatus,
        moderator_id: str | None,
        event: CommentEvent,
        db: Session,
    ) -> Comment:
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)
        self._ensure_not_deleted(comment)

        previous = comment.status
        comment.status = status
        record_learning_signal(
            db, self._config, comment.id, status.value, {"moderator_id": moderator_id}
        )
        db.commit()
        db.refresh(comment)

        await self._emit(event, comment, moderator_id, data={"previous": previous.value})
        return comment

    # --- Single-item actions ---------------------------------------------------------
    async def approve(self, comment_id: str, moderator_id: str | None, db: Session) -> Comment:
        return await self._set_status(
            comment_id, CommentStatus.APPROVED, moderator_id, CommentEvent.APPROVED, db
        )

    async def reject(self, comment_id: str, moderator_id: str | None, db: Session) -> Comment:
        return await self._set_status(
            comment_id, CommentStatus.REJECTED, moderator_id, CommentEvent.REJECTED, db
        )

    async def mark_as_spam(
        self, comment_id: str, moderator_id: str | None, db: Session
    ) -> Comment:
        """Mark a comment as spam with the maximum score."""
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)
        self._ensure_not_deleted(comment)

        comment.status = CommentStatus.SPAM
        comment.spam_score = MANUAL_SPAM_SCORE
        record_learning_signal(
            db, self._config, comment.id, LEARNING_MANUAL_SPAM, {"moderator_id": moderator_id}
        )
        db.commit()
        db.refresh(comment)

        await self._emit(
            CommentEvent.SPAM_DETECTED,
            comment,
            moderator_id,
            data={"manual": True, "notify": self._config.notify_on_spam},
        )
        return comment

    async def flag(
        self,
        comment_id: str,
        reason: str,
        user_id: str | None,
        db: Session,
    ) -> Comment:
        """Record a user report against a comment.

        When the report count reaches ``auto_flag_threshold`` the comment is
        rejected in the same transaction and a second event is emitted.
        """
        cfg = self._config
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)
        if comment.deleted_at is not None:
            raise PolicyViolationError("Cannot flag a deleted comment")

        reason = sanitize_text(reason)[:500] or "unspecified"
        repo.increment_flag_count(comment_id)
        db.refresh(comment, attribute_names=["flag_count"])

        comment.flag_reasons = [*(comment.flag_reasons or []), reason]
        if comment.status in _FLAGGABLE:
            comment.status = CommentStatus.FLAGGED

        auto_rejected = (
            cfg.auto_flag_threshold > 0
            and comment.flag_count >= cfg.auto_flag_threshold
            and comment.status == CommentStatus.FLAGGED
        )
        if auto_rejected:
            comment.status = CommentStatus.REJECTED
        db.commit()
        db.refresh(comment)

        await self._emit(
            CommentEvent.FLAGGED,
            comment,
            user_id=user_id,
            data={
                "reason": reason,
                "flag_count": comment.flag_count,
                "notify": cfg.notify_on_flag,
            },
        )
        if auto_rejected:
            logger.info(
                "Comment %s auto-rejected after %d flags", comment.id, comment.flag_count
            )
            await self._emit(
                CommentEvent.REJECTED,
                comment,
                data={"auto": True, "flag_count": comment.flag_count},
            )
        return comment

    async def unflag(self, comment_id: str, moderator_id: str | None, db: Session) -> Comment:
        """Clear every report and approve the comment."""
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)
        self._ensure_not_deleted(comment)

        comment.status = CommentStatus.APPROVED
        comment.flag_count = 0
        comment.flag_reasons = []
        db.commit()
        db.refresh(comment)

        await self._emit(CommentEvent.UNFLAGGED, comment, moderator_id)
        return comment

    async def pin(
        self,
        comment_id: str,
        pinned: bool,
        moderator_id: str | None,
        db: Session,
    ) -> Comment:
        """Pin or unpin a comment, respecting the per-post pin limit."""
        cfg = self._config
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)

        if pinned:
            self._ensure_not_deleted(comment)
            if cfg.pinned_comment_limit > 0:
                already = repo.count_pinned(comment.post_id, exclude_id=comment.id)
                if already >= cfg.pinned_comment_limit:
                    raise PolicyViolationError(
                        f"Max {cfg.pinned_comment_limit} pinned comments per post reached"
                    )

        comment.is_pinned = pinned
        db.commit()
        db.refresh(comment)

        event = CommentEvent.PINNED if pinned else CommentEvent.UNPINNED
        await self._emit(event, comment, moderator_id)
        return comment

    async def resolve(
        self,
        comment_id: str,
        resolved: bool,
        moderator_id: str | None,
        db: Session,
    ) -> Comment:
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)

        comment.is_resolved = resolved
        db.commit()
        db.refresh(comment)

        event = CommentEvent.RESOLVED if resolved else CommentEvent.UNRESOLVED
        await self._emit(event, comment, moderator_id)
        return comment

    async def restore(self, comment_id: str, moderator_id: str | None, db: Session) -> Comment:
        """Bring a soft-deleted comment back into the moderation queue."""
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)
        if comment.deleted_at is None:
            raise PolicyViolationError("Comment is not deleted")

        comment.deleted_at = None
        comment.status = CommentStatus.PENDING
        db.commit()
        db.refresh(comment)

        await self._emit(CommentEvent.RESTORED, comment, moderator_id)
        return comment

    async def hard_delete(
        self, comment_id: str, moderator_id: str | None, db: Session
    ) -> None:
        """Permanently remove a comment with its votes and telemetry.

        Direct replies are kept and become top-level comments.
        """
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)
        post_id, user_id = comment.post_id, comment.user_id

        db.expunge(comment)
        repo.delete_with_dependents([comment_id])
        db.commit()
        db.expire_all()
        logger.info("Comment %s permanently deleted by %s", comment_id, moderator_id)

        await self._events.emit(
            CommentEvent.HARD_DELETED,
            CommentEventPayload(
                event=CommentEvent.HARD_DELETED,
                comment_id=comment_id,
                post_id=post_id,
                user_id=user_id,
                moderator_id=moderator_id,
            ),
        )

    # --- Bulk actions ----------------------------------------------------------------
    async def _bulk_status(
        self,
        ids: Sequence[str],
        status: CommentStatus,
        moderator_id: str | None,
        event: CommentEvent,
        db: Session,
        *,
        learning_action: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> int:
        repo = CommentRepository(db)
        targets = [
            comment
            for comment in repo.list_by_ids(self._bulk_ids(ids))
            if comment.deleted_at is None
        ]
        if not targets:
            return 0

        values: dict[str, Any] = {"status": status, **(extra or {})}
        affected = repo.update_fields([comment.id for comment in targets], **values)
        if learning_action is not None:
            for comment in targets:
                record_learning_signal(
                    db, self._config, comment.id, learning_action, {"moderator_id": moderator_id}
                )
        db.commit()
        logger.info("Bulk %s of %d comments by %s", status.value, affected, moderator_id)

        for comment in targets:
            await self._emit(event, comment, moderator_id, data={"bulk": True})
        return affected

    async def bulk_approve(
        self, ids: Sequence[str], moderator_id: str | None, db: Session
    ) -> int:
        return await self._bulk_status(
            ids, CommentStatus.APPROVED, moderator_id, CommentEvent.APPROVED, db
        )

    async def bulk_reject(
        self, ids: Sequence[str], moderator_id: str | None, db: Session
    ) -> int:
        return await self._bulk_status(
            ids, CommentStatus.REJECTED, moderator_id, CommentEvent.REJECTED, db
        )

    async def bulk_mark_as_spam(
        self, ids: Sequence[str], moderator_id: str | None, db: Session
    ) -> int:
        return await self._bulk_status(
            ids,
            CommentStatus.SPAM,
            moderator_id,
            CommentEvent.SPAM_DETECTED,
            db,
            learning_action=LEARNING_MANUAL_SPAM_BULK,
            extra={"spam_score": MANUAL_SPAM_SCORE},
        )

    async def bulk_delete(
        self, ids: Sequence[str], moderator_id: str | None, db: Session
    ) -> int:
        """Soft-delete every listed comment that is not deleted yet."""
        return await self._bulk_status(
            ids,
            CommentStatus.DELETED,
            moderator_id,
            CommentEvent.DELETED,
            db,
            extra={"deleted_at": utcnow()},
        )

    async def bulk_pin(
        self,
        ids: Sequence[str],
        pinned: bool,
        moderator_id: str | None,
        db: Session,
    ) -> int:
        """Pin or unpin many comments; pins beyond a post's limit are skipped."""
        cfg = self._config
        repo = CommentRepository(db)
        targets = repo.list_by_ids(self._bulk_ids(ids))

        selected: list[Comment] = []
        pinned_per_post: dict[str, int] = {}
        for comment in targets:
            if pinned:
                if comment.deleted_at is not None or comment.is_pinned:
                    continue
                if cfg.pinned_comment_limit > 0:
                    if comment.post_id not in pinned_per_post:
                        pinned_per_post[comment.post_id] = repo.count_pinned(comment.post_id)
                    if pinned_per_post[comment.post_id] >= cfg.pinned_comment_limit:
                        logger.info(
                            "Skipping pin of %s: post %s is at its pin limit",
                            comment.id,
                            comment.post_id,
                        )
                        continue
                    pinned_per_post[comment.post_id] += 1
            selected.append(comment)

        if not selected:
            return 0
        affected = repo.update_fields([comment.id for comment in selected], is_pinned=pinned)
        db.commit()

        event = CommentEvent.PINNED if pinned else CommentEvent.UNPINNED
        for comment in selected:
            await self._emit(event, comment, moderator_id, data={"bulk": True})
        return affected

    async def bulk_resolve(
        self,
        ids: Sequence[str],
        resolved: bool,
        moderator_id: str | None,
        db: Session,
    ) -> int:
        repo = CommentRepository(db)
        targets = repo.list_by_ids(self._bulk_ids(ids))
        if not targets:
            return 0
        affected = repo.update_fields([comment.id for comment in targets], is_resolved=resolved)
        db.commit()

        event = CommentEvent.RESOLVED if resolved else CommentEvent.UNRESOLVED
        for comment in targets:
            await self._emit(event, comment, moderator_id, data={"bulk": True})
        return affected

    # --- Queries ---------------------------------------------------------------------
    def find_all(self, query: CommentQuery, db: Session) -> PaginatedComments:
        """Filtered, sorted, paginated listing for the moderation queue."""
        conditions: list[ColumnElement[bool]] = []
        if query.status is not None:
            conditions.append(Comment.status == query.status)
        if query.post_id:
            conditions.append(Comment.post_id == query.post_id)
        if query.user_id:
            conditions.append(Comment.user_id == query.user_id)
        if query.is_pinned is not None:
            conditions.append(Comment.is_pinned.is_(query.is_pinned))
        if query.is_resolved is not None:
            conditions.append(Comment.is_resolved.is_(query.is_resolved))
        if query.search:
            text = sanitize_text(query.search)
            if text:
                conditions.append(text_search_condition(text))

        column = getattr(Comment, query.sort_by.value)
        order = column.asc() if query.sort_order == "asc" else column.desc()

        repo = CommentRepository(db)
        rows = repo.list_where(
            *conditions,
            order_by=(order, Comment.id.asc()),
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
        )
        return PaginatedComments.build(
            [CommentResponse.model_validate(row) for row in rows],
            total=repo.count(*conditions),
            page=query.page,
            limit=query.limit,
        )

    def get_stats(self, db: Session) -> CommentStats:
        return CommentRepository(db).stats(utcnow() - timedelta(days=1))

    # --- Maintenance -----------------------------------------------------------------
    def _purge(self, db: Session, *conditions: ColumnElement[bool]) -> int:
        repo = CommentRepository(db)
        ids = repo.list_ids(*conditions)
        if not ids:
            return 0
        removed = repo.delete_with_dependents(ids)
        db.commit()
        db.expire_all()
        return removed

    def purge_old_spam(self, db: Session) -> int:
        """Permanently remove spam older than the spam retention window."""
        cutoff = utcnow() - timedelta(days=self._config.spam_retention_days)
        removed = self._purge(
            db, Comment.status == CommentStatus.SPAM, Comment.created_at < cutoff
        )
        logger.info("Purged %d spam comments older than %s", removed, cutoff.isoformat())
        return removed

    def purge_deleted(self, db: Session) -> int:
        """Permanently remove comments soft-deleted before the retention window."""
        cutoff = utcnow() - timedelta(days=self._config.deleted_retention_days)
        removed = self._purge(
            db, Comment.deleted_at.is_not(None), Comment.deleted_at < cutoff
        )
        logger.info("Purged %d deleted comments older than %s", removed, cutoff.isoformat())
        return removed
