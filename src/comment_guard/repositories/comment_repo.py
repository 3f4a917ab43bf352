"""Data access helpers for comments, votes and telemetry."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.orm import Session

from comment_guard.models.comment import Comment, CommentStatus
from comment_guard.models.learning_signal import LearningSignal
from comment_guard.models.vote import CommentVote, VoteType
from comment_guard.schemas.comment import CommentStats

__all__ = ["CommentRepository", "text_search_condition"]


class CommentRepository:
    """Thin wrapper around database access for comment entities.

    Counter changes are issued as single ``UPDATE ... SET col = col + n``
    statements so concurrent requests never overwrite each other.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    # --- Lookups ---------------------------------------------------------------------
    def get_by_id(self, comment_id: str) -> Comment | None:
        """Return a comment by identifier."""
        return self.session.get(Comment, comment_id)

    def get_parent_id(self, comment_id: str) -> tuple[bool, str | None]:
        """Return (exists, parent_id) for a comment without loading the row."""
        row = self.session.execute(
            select(Comment.parent_id).where(Comment.id == comment_id)
        ).first()
        if row is None:
            return False, None
        return True, row[0]

    def list_by_ids(self, ids: Sequence[str]) -> list[Comment]:
        """Return the comments among ``ids`` that exist."""
        if not ids:
            return []
        result = self.session.execute(select(Comment).where(Comment.id.in_(list(ids))))
        return list(result.scalars())

    def list_ids(self, *conditions: ColumnElement[bool]) -> list[str]:
        """Return identifiers of comments matching every condition."""
        result = self.session.execute(select(Comment.id).where(*conditions))
        return list(result.scalars())

    def list_where(
        self,
        *conditions: ColumnElement[bool],
        order_by: Sequence[Any] = (),
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[Comment]:
        """Return comments matching every condition."""
        stmt = select(Comment).where(*conditions).order_by(*order_by)
        if offset is not None:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def count(self, *conditions: ColumnElement[bool]) -> int:
        """Return the number of comments matching every condition."""
        stmt = select(func.count()).select_from(Comment).where(*conditions)
        return int(self.session.execute(stmt).scalar_one())

    def average_spam_score(self) -> float:
        """Return the mean spam score over all comments (0 when empty)."""
        value = self.session.execute(select(func.avg(Comment.spam_score))).scalar()
        return float(value or 0)

    def stats(self, since: datetime) -> CommentStats:
        """Aggregate counters for the moderation dashboard."""
        rows = self.session.execute(
            select(Comment.status, func.count()).group_by(Comment.status)
        ).all()
        by_status = {CommentStatus(status): int(total) for status, total in rows}
        return CommentStats(
            total=sum(by_status.values()),
            approved=by_status.get(CommentStatus.APPROVED, 0),
            pending=by_status.get(CommentStatus.PENDING, 0),
            spam=by_status.get(CommentStatus.SPAM, 0),
            flagged=by_status.get(CommentStatus.FLAGGED, 0),
            rejected=by_status.get(CommentStatus.REJECTED, 0),
            deleted=self.count(Comment.deleted_at.is_not(None)),
            pinned=self.count(Comment.is_pinned.is_(True)),
            resolved=self.count(Comment.is_resolved.is_(True)),
            today_count=self.count(Comment.created_at >= since),
            average_spam_score=round(self.average_spam_score(), 2),
        )

    # --- History-derived counts ------------------------------------------------------
    def count_recent(
        self,
        since: datetime,
        *,
        user_id: str | None = None,
        ip_address: str | None = None,
    ) -> int:
        """Count comments created since ``since`` by a user, or by a guest IP."""
        if user_id is not None:
            return self.count(Comment.user_id == user_id, Comment.created_at >= since)
        return self.count(
            Comment.ip_address == ip_address,
            Comment.user_id.is_(None),
            Comment.created_at >= since,
        )

    def count_on_post(
        self,
        post_id: str,
        *,
        user_id: str | None = None,
        ip_address: str | None = None,
    ) -> int:
        """Count non-deleted comments by one author on one post."""
        conditions: list[ColumnElement[bool]] = [
            Comment.post_id == post_id,
            Comment.deleted_at.is_(None),
        ]
        if user_id is not None:
            conditions.append(Comment.user_id == user_id)
        else:
            conditions.extend([Comment.ip_address == ip_address, Comment.user_id.is_(None)])
        return self.count(*conditions)

    def count_approved_by_user(self, user_id: str) -> int:
        """Count a user's approved comments."""
        return self.count(Comment.user_id == user_id, Comment.status == CommentStatus.APPROVED)

    def count_pinned(self, post_id: str, *, exclude_id: str | None = None) -> int:
        """Count pinned comments on a post, optionally ignoring one comment."""
        conditions: list[ColumnElement[bool]] = [
            Comment.post_id == post_id,
            Comment.is_pinned.is_(True),
        ]
        if exclude_id is not None:
            conditions.append(Comment.id != exclude_id)
        return self.count(*conditions)

    # --- Writes ----------------------------------------------------------------------
    def add(self, comment: Comment) -> Comment:
        """Stage a new comment and flush to assign defaults."""
        self.session.add(comment)
        self.session.flush()
        return comment

    def update_fields(self, comment_ids: Sequence[str], **values: Any) -> int:
        """Apply the same column values to every comment in ``comment_ids``."""
        if not comment_ids:
            return 0
        result = self.session.execute(
            update(Comment)
            .where(Comment.id.in_(list(comment_ids)))
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    def increment_flag_count(self, comment_id: str) -> None:
        """Atomically add one to a comment's flag counter."""
        self.session.execute(
            update(Comment)
            .where(Comment.id == comment_id)
            .values(flag_count=Comment.flag_count + 1)
            .execution_options(synchronize_session=False)
        )

    def apply_vote_delta(self, comment_id: str, *, up: int = 0, down: int = 0) -> None:
        """Atomically shift the vote counters of one comment in a single statement."""
        values: dict[str, Any] = {}
        if up:
            values["upvotes"] = Comment.upvotes + up
        if down:
            values["downvotes"] = Comment.downvotes + down
        if not values:
            return
        self.session.execute(
            update(Comment)
            .where(Comment.id == comment_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    # --- Votes -----------------------------------------------------------------------
    def get_vote(self, comment_id: str, voter_id: str) -> CommentVote | None:
        """Return a voter's vote on a comment, if any."""
        return self.session.get(CommentVote, (comment_id, voter_id))

    def add_vote(self, comment_id: str, voter_id: str, vote_type: VoteType) -> CommentVote:
        """Insert a vote row and flush so unique-key races surface immediately."""
        vote = CommentVote(comment_id=comment_id, voter_id=voter_id, vote_type=vote_type)
        self.session.add(vote)
        self.session.flush()
        return vote

    # --- Telemetry -------------------------------------------------------------------
    def add_learning_signal(
        self,
        comment_id: str,
        action: str,
        metadata: dict[str, Any],
    ) -> LearningSignal:
        """Insert a telemetry row."""
        signal = LearningSignal(comment_id=comment_id, action=action, metadata_=metadata)
        self.session.add(signal)
        self.session.flush()
        return signal

    # --- Removal ---------------------------------------------------------------------
    def delete_with_dependents(self, comment_ids: Sequence[str]) -> int:
        """Remove comments together with their votes and telemetry.

        Replies to removed comments are detached rather than removed. The caller
        owns the transaction; all statements commit or roll back together.
        """
        ids = list(comment_ids)
        if not ids:
            return 0
        self.session.execute(delete(CommentVote).where(CommentVote.comment_id.in_(ids)))
        self.session.execute(delete(LearningSignal).where(LearningSignal.comment_id.in_(ids)))
        self.session.execute(
            update(Comment)
            .where(Comment.parent_id.in_(ids), Comment.id.not_in(ids))
            .values(parent_id=None)
            .execution_options(synchronize_session=False)
        )
        # Self-references inside the batch must be cleared before the delete.
        self.session.execute(
            update(Comment)
            .where(Comment.id.in_(ids), Comment.parent_id.is_not(None))
            .values(parent_id=None)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(
            delete(Comment)
            .where(Comment.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)


def text_search_condition(query: str) -> ColumnElement[bool]:
    """Case-insensitive match on content or guest author name."""
    return or_(
        Comment.content.icontains(query, autoescape=True),
        Comment.author_name.icontains(query, autoescape=True),
    )
