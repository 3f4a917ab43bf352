# src/comment_guard/services/comments.py
"""Comment lifecycle: submission, editing, deletion, voting and reads."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from comment_guard.db.time import as_utc, utcnow
from comment_guard.models import Comment, CommentStatus, VoteType
from comment_guard.repositories import CommentRepository, text_search_condition
from comment_guard.schemas.comment import (
    CommentCreate,
    CommentResponse,
    CommentThread,
    PaginatedComments,
    RequestMeta,
)
from comment_guard.schemas.settings import DEFAULT_CONFIG, CommentsConfig
from comment_guard.services.content_origin import ContentOriginLookup, SqlPostLookup
from comment_guard.services.errors import (
    CommentNotFoundError,
    DuplicateVoteError,
    NotAuthorizedError,
    PolicyViolationError,
    RateLimitError,
)
from comment_guard.services.events import CommentEvent, CommentEventBus, CommentEventPayload
from comment_guard.services.policies import (
    RATE_LIMIT_WINDOW,
    closed_reason,
    comments_closed,
    email_is_blocked,
    hourly_limit_reason,
    ip_is_blocked,
    post_quota_reason,
)
from comment_guard.services.sanitize import (
    sanitize_email,
    sanitize_html,
    sanitize_text,
    sanitize_url,
)
from comment_guard.services.spam import SpamService

if TYPE_CHECKING:
    from comment_guard.services.admin_settings import CommentSettingsService

logger = logging.getLogger(__name__)

# Levels of replies loaded below each root comment.
REPLY_TREE_DEPTH = 4

LEARNING_SUBMITTED = "SUBMITTED"
LEARNING_AUTO_SPAM = "AUTO_SPAM"


def visible_conditions() -> list[ColumnElement[bool]]:
    """Filter applied to public reads: approved and not deleted."""
    return [Comment.status == CommentStatus.APPROVED, Comment.deleted_at.is_(None)]


def record_learning_signal(
    db: Session,
    config: CommentsConfig,
    comment_id: str,
    action: str,
    metadata: dict[str, Any],
) -> None:
    """Write a telemetry row inside a savepoint; failures are logged and dropped."""
    if not config.enable_learning_signals:
        return
    db.flush()
    try:
        with db.begin_nested():
            CommentRepository(db).add_learning_signal(comment_id, action, metadata)
    except SQLAlchemyError:
        logger.warning("Failed to record %s learning signal for %s", action, comment_id, exc_info=True)


class CommentService:
    """Service handling the comment lifecycle and public reads.

    Holds the latest configuration snapshot pushed by the settings service.
    Call ``CommentSettingsService.get_settings`` once per request so a stale
    cache is refreshed before the service acts on it.
    """

    def __init__(
        self,
        spam: SpamService,
        events: CommentEventBus,
        settings_service: CommentSettingsService | None = None,
        post_lookup: ContentOriginLookup | None = None,
        *,
        config: CommentsConfig = DEFAULT_CONFIG,
    ) -> None:
        self._spam = spam
        self._events = events
        self._post_lookup = post_lookup or SqlPostLookup()
        self._config = config
        if settings_service is not None:
            settings_service.register_consumer(self)

    @property
    def config(self) -> CommentsConfig:
        return self._config

    def update_config(self, config: CommentsConfig) -> None:
        """Receive a new configuration snapshot."""
        self._config = config

    # --- Create ----------------------------------------------------------------------
    async def create(
        self,
        data: CommentCreate,
        db: Session,
        meta: RequestMeta | None = None,
    ) -> Comment:
        """Submit a new comment.

        Args:
            data: Comment payload
            db: Database session
            meta: Request metadata, when the caller has any

        Returns:
            The persisted comment

        Raises:
            PolicyViolationError: If any moderation policy rejects the comment
            RateLimitError: If the author exceeded an hourly or per-post quota
            CommentNotFoundError: If the parent comment does not exist
        """
        cfg = self._config
        repo = CommentRepository(db)
        ip_address = meta.ip_address if meta else None
        is_guest = data.user_id is None

        if not cfg.comments_enabled:
            raise PolicyViolationError("Comments are currently disabled")

        if cfg.close_comments_after_days > 0:
            published_at = self._post_lookup.published_at(data.post_id, db)
            if comments_closed(cfg, published_at):
                raise PolicyViolationError(closed_reason(cfg))

        if is_guest and not cfg.allow_guest_comments:
            raise PolicyViolationError("Guest comments are not allowed, please sign in")

        if ip_is_blocked(cfg, ip_address):
            logger.info("Rejected comment from blocked IP %s", ip_address)
            raise PolicyViolationError("Your IP address has been blocked")

        if email_is_blocked(cfg, data.author_email):
            logger.info("Rejected comment from blocked email on post %s", data.post_id)
            raise PolicyViolationError("This email address is not allowed")

        # Guests are only counted by IP while request metadata is being stored.
        quota_ip = ip_address if is_guest and cfg.track_metadata else None
        if data.user_id is not None or quota_ip is not None:
            if cfg.max_comments_per_hour > 0:
                recent = repo.count_recent(
                    utcnow() - RATE_LIMIT_WINDOW,
                    user_id=data.user_id,
                    ip_address=quota_ip,
                )
                if recent >= cfg.max_comments_per_hour:
                    raise RateLimitError(
                        hourly_limit_reason(cfg),
                        retry_after_seconds=int(RATE_LIMIT_WINDOW.total_seconds()),
                    )
            if cfg.max_comments_per_post_per_user > 0:
                on_post = repo.count_on_post(
                    data.post_id, user_id=data.user_id, ip_address=quota_ip
                )
                if on_post >= cfg.max_comments_per_post_per_user:
                    raise RateLimitError(post_quota_reason(cfg))

        if len(data.content) > cfg.max_content_length:
            raise PolicyViolationError(
                f"Comment must not exceed {cfg.max_content_length} characters"
            )
        content = sanitize_html(data.content)
        if not sanitize_text(content):
            raise PolicyViolationError("Comment content is empty")

        author_name = author_email = author_website = None
        if is_guest:
            if data.author_name and len(data.author_name) > cfg.max_author_name_length:
                raise PolicyViolationError(
                    f"Name must not exceed {cfg.max_author_name_length} characters"
                )
            if data.author_website and len(data.author_website) > cfg.max_website_length:
                raise PolicyViolationError(
                    f"Website must not exceed {cfg.max_website_length} characters"
                )
            author_name = sanitize_text(data.author_name) if data.author_name else None
            author_email = sanitize_email(data.author_email)
            author_website = sanitize_url(data.author_website)

        if data.parent_id is not None:
            if not cfg.enable_threading:
                raise PolicyViolationError("Threaded replies are disabled")
            parent = repo.get_by_id(data.parent_id)
            if parent is None:
                raise CommentNotFoundError(data.parent_id)
            if parent.post_id != data.post_id:
                raise PolicyViolationError("Parent comment belongs to a different post")
            depth = self._reply_depth(repo, data.parent_id)
            if depth >= cfg.max_reply_depth:
                raise PolicyViolationError(
                    f"Maximum reply depth of {cfg.max_reply_depth} reached"
                )

        result = self._spam.score(content, author_name, author_email, meta)
        content = self._spam.filter_profanity(content)

        if result.is_spam:
            status = CommentStatus.SPAM
        elif cfg.require_moderation:
            status = CommentStatus.PENDING
        elif (
            data.user_id is not None
            and repo.count_approved_by_user(data.user_id) >= cfg.auto_approve_threshold
        ):
            status = CommentStatus.APPROVED
        else:
            status = CommentStatus.PENDING

        comment = repo.add(
            Comment(
                post_id=data.post_id,
                parent_id=data.parent_id,
                user_id=data.user_id,
                author_name=author_name,
                author_email=author_email,
                author_website=author_website,
                ip_address=ip_address if cfg.track_metadata else None,
                user_agent=(meta.user_agent if meta else None) if cfg.track_metadata else None,
                content=content,
                status=status,
                spam_score=result.score,
                spam_signals=list(result.signals),
            )
        )
        record_learning_signal(
            db,
            cfg,
            comment.id,
            LEARNING_AUTO_SPAM if status == CommentStatus.SPAM else LEARNING_SUBMITTED,
            {"spam_score": result.score, "signals": list(result.signals)},
        )
        db.commit()
        db.refresh(comment)

        if status == CommentStatus.SPAM:
            logger.info("Comment %s scored as spam (%d): %s", comment.id, result.score, result.signals)

        event = CommentEvent.AUTO_APPROVED if status == CommentStatus.APPROVED else CommentEvent.CREATED
        await self._events.emit(
            event,
            CommentEventPayload(
                event=event,
                comment_id=comment.id,
                post_id=comment.post_id,
                user_id=comment.user_id,
                data={
                    "status": status.value,
                    "spam_score": result.score,
                    "parent_id": comment.parent_id,
                    "notify": cfg.notify_on_spam if status == CommentStatus.SPAM else False,
                },
            ),
        )
        return comment

    def _reply_depth(self, repo: CommentRepository, parent_id: str) -> int:
        """Count hops from ``parent_id`` up to its root, the parent included."""
        depth = 0
        current: str | None = parent_id
        # Bounded so a corrupted parent cycle cannot loop forever.
        for _ in range(self._config.max_reply_depth + 1):
            if current is None:
                break
            exists, next_parent = repo.get_parent_id(current)
            if not exists:
                break
            depth += 1
            current = next_parent
        return depth

    # --- Update / delete -------------------------------------------------------------
    def _get_or_raise(self, repo: CommentRepository, comment_id: str) -> Comment:
        comment = repo.get_by_id(comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id)
        return comment

    async def update(
        self,
        comment_id: str,
        content: str,
        db: Session,
        requester_id: str | None = None,
    ) -> Comment:
        """Edit a comment body.

        ``requester_id`` of ``None`` is a trusted moderator or system edit and
        skips the ownership and edit-window checks.
        """
        cfg = self._config
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)

        if comment.deleted_at is not None:
            raise PolicyViolationError("Cannot edit a deleted comment")
        if requester_id is not None:
            if comment.user_id != requester_id:
                raise NotAuthorizedError("Not authorized to edit this comment")
            if cfg.edit_window_minutes > 0:
                deadline = as_utc(comment.created_at) + timedelta(minutes=cfg.edit_window_minutes)
                if utcnow() > deadline:
                    raise PolicyViolationError(
                        f"Edit window of {cfg.edit_window_minutes} minutes has expired"
                    )

        if len(content) > cfg.max_content_length:
            raise PolicyViolationError(
                f"Comment must not exceed {cfg.max_content_length} characters"
            )
        sanitized = sanitize_html(content)
        if not sanitize_text(sanitized):
            raise PolicyViolationError("Comment content is empty")
        filtered = self._spam.filter_profanity(sanitized)
        result = self._spam.score(filtered, comment.author_name, comment.author_email)

        comment.content = filtered
        comment.is_edited = True
        comment.edited_at = utcnow()
        comment.spam_score = result.score
        comment.spam_signals = list(result.signals)
        if result.is_spam:
            comment.status = CommentStatus.SPAM
        db.commit()
        db.refresh(comment)

        await self._events.emit(
            CommentEvent.EDITED,
            CommentEventPayload(
                event=CommentEvent.EDITED,
                comment_id=comment.id,
                post_id=comment.post_id,
                user_id=comment.user_id,
                data={"status": comment.status.value, "spam_score": result.score},
            ),
        )
        return comment

    async def soft_delete(
        self,
        comment_id: str,
        db: Session,
        requester_id: str | None = None,
    ) -> Comment:
        """Mark a comment deleted while keeping its content for audit and restore."""
        repo = CommentRepository(db)
        comment = self._get_or_raise(repo, comment_id)

        if requester_id is not None and comment.user_id != requester_id:
            raise NotAuthorizedError("Not authorized to delete this comment")
        if comment.deleted_at is not None:
            raise PolicyViolationError("Comment is already deleted")

        comment.deleted_at = utcnow()
        comment.status = CommentStatus.DELETED
        db.commit()
        db.refresh(comment)

        await self._events.emit(
            CommentEvent.DELETED,
            CommentEventPayload(
                event=CommentEvent.DELETED,
                comment_id=comment.id,
                post_id=comment.post_id,
                user_id=comment.user_id,
                data={"requested_by": requester_id},
            ),
        )
        return comment

    # --- Voting ----------------------------------------------------------------------
    async def vote(
        self,
        comment_id: str,
        voter_id: str,
        vote_type: VoteType,
        db: Session,
    ) -> Comment:
        """Cast or switch a vote.

        A repeated vote of the same type is rejected. Switching type updates the
        vote row and both counters in one transaction.
        """
        if not self._config.enable_voting:
            raise PolicyViolationError("Voting is disabled")

        repo = CommentRepository(db)
        comment = repo.get_by_id(comment_id)
        if comment is None or comment.deleted_at is not None:
            raise CommentNotFoundError(comment_id)

        existing = repo.get_vote(comment_id, voter_id)
        previous = existing.vote_type if existing is not None else None
        if previous == vote_type:
            raise DuplicateVoteError("Already voted")

        try:
            if existing is not None:
                existing.vote_type = vote_type
                db.flush()
                if vote_type == VoteType.UP:
                    repo.apply_vote_delta(comment_id, up=1, down=-1)
                else:
                    repo.apply_vote_delta(comment_id, up=-1, down=1)
            else:
                repo.add_vote(comment_id, voter_id, vote_type)
                if vote_type == VoteType.UP:
                    repo.apply_vote_delta(comment_id, up=1)
                else:
                    repo.apply_vote_delta(comment_id, down=1)
            db.commit()
        except IntegrityError:
            # A concurrent request inserted the same (comment, voter) row first.
            db.rollback()
            raise DuplicateVoteError("Already voted") from None

        db.refresh(comment)
        await self._events.emit(
            CommentEvent.VOTED,
            CommentEventPayload(
                event=CommentEvent.VOTED,
                comment_id=comment.id,
                post_id=comment.post_id,
                user_id=voter_id,
                data={
                    "vote_type": vote_type.value,
                    "previous": previous.value if previous is not None else None,
                },
            ),
        )
        return comment

    # --- Reads -----------------------------------------------------------------------
    def find_by_id(self, comment_id: str, db: Session) -> Comment | None:
        """Return one comment regardless of status, or None."""
        return CommentRepository(db).get_by_id(comment_id)

    def find_by_post(
        self,
        post_id: str,
        db: Session,
        include_all: bool = False,
        skip: int | None = None,
        take: int | None = None,
    ) -> list[CommentThread]:
        """Return root comments of a post with up to four levels of replies.

        Roots are ordered pinned first, then oldest first; replies oldest first.
        """
        repo = CommentRepository(db)
        filters = [] if include_all else visible_conditions()

        roots = repo.list_where(
            Comment.post_id == post_id,
            Comment.parent_id.is_(None),
            *filters,
            order_by=(Comment.is_pinned.desc(), Comment.created_at.asc()),
            offset=skip,
            limit=take,
        )
        threads = [CommentThread.model_validate(root) for root in roots]

        level: dict[str, CommentThread] = {thread.id: thread for thread in threads}
        for _ in range(REPLY_TREE_DEPTH):
            if not level:
                break
            replies = repo.list_where(
                Comment.parent_id.in_(list(level)),
                *filters,
                order_by=(Comment.created_at.asc(),),
            )
            next_level: dict[str, CommentThread] = {}
            for reply in replies:
                thread = CommentThread.model_validate(reply)
                level[reply.parent_id].replies.append(thread)
                next_level[thread.id] = thread
            level = next_level
        return threads

    def count_by_post(self, post_id: str, db: Session) -> int:
        """Count visible comments on a post."""
        return CommentRepository(db).count(Comment.post_id == post_id, *visible_conditions())

    def _paginate(
        self,
        db: Session,
        conditions: list[ColumnElement[bool]],
        page: int,
        limit: int,
    ) -> PaginatedComments:
        repo = CommentRepository(db)
        page = max(page, 1)
        limit = max(limit, 1)
        rows = repo.list_where(
            *conditions,
            order_by=(Comment.created_at.desc(),),
            offset=(page - 1) * limit,
            limit=limit,
        )
        return PaginatedComments.build(
            [CommentResponse.model_validate(row) for row in rows],
            total=repo.count(*conditions),
            page=page,
            limit=limit,
        )

    def find_by_user(
        self,
        user_id: str,
        db: Session,
        page: int = 1,
        limit: int = 20,
        include_all: bool = False,
    ) -> PaginatedComments:
        """Return one page of a user's comments, newest first."""
        conditions = [Comment.user_id == user_id]
        if not include_all:
            conditions.extend(visible_conditions())
        return self._paginate(db, conditions, page, limit)

    def search(
        self,
        query: str,
        db: Session,
        page: int = 1,
        limit: int = 20,
        include_all: bool = False,
    ) -> PaginatedComments:
        """Case-insensitive search over comment content and guest author names."""
        text = sanitize_text(query)
        if not text:
            return PaginatedComments.build([], total=0, page=max(page, 1), limit=max(limit, 1))
        conditions = [text_search_condition(text)]
        if not include_all:
            conditions.extend(visible_conditions())
        return self._paginate(db, conditions, page, limit)
