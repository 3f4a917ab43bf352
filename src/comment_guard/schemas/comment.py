# src/comment_guard/schemas/comment.py
"""Comment-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from comment_guard.models.comment import CommentStatus
from comment_guard.models.vote import VoteType

MAX_BULK_IDS = 100


class CommentSortField(str, Enum):
    """Columns the moderation listing can be sorted by."""

    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    UPVOTES = "upvotes"
    DOWNVOTES = "downvotes"


class RequestMeta(BaseModel):
    """Caller-supplied request metadata; every field is optional."""

    ip_address: str | None = None
    user_agent: str | None = None


class CommentCreate(BaseModel):
    """Schema for submitting a new comment."""

    post_id: str = Field(..., min_length=1, max_length=64, description="Content item ID")
    content: str = Field(..., min_length=1, max_length=50_000, description="Comment body")
    parent_id: str | None = Field(None, description="Parent comment ID for replies")
    user_id: str | None = Field(None, description="Registered author; omit for guests")
    author_name: str | None = Field(None, max_length=500)
    author_email: str | None = Field(None, max_length=254)
    author_website: str | None = Field(None, max_length=2000)


class CommentUpdate(BaseModel):
    """Schema for editing a comment body."""

    content: str = Field(..., min_length=1, max_length=50_000)


class VoteCreate(BaseModel):
    """Schema for voting on a comment."""

    type: VoteType = Field(..., description="UP or DOWN")


class FlagCreate(BaseModel):
    """Schema for reporting a comment."""

    reason: str = Field(..., min_length=1, max_length=500)


class PinToggle(BaseModel):
    pinned: bool


class ResolveToggle(BaseModel):
    resolved: bool


class BulkIds(BaseModel):
    """Schema for bulk moderation actions."""

    ids: list[str] = Field(..., min_length=1, max_length=MAX_BULK_IDS)


class BulkPin(BulkIds):
    pinned: bool


class BulkResolve(BulkIds):
    resolved: bool


class CommentQuery(BaseModel):
    """Filters for the moderation listing."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: CommentSortField = CommentSortField.CREATED_AT
    sort_order: Literal["asc", "desc"] = "desc"
    status: CommentStatus | None = None
    post_id: str | None = None
    user_id: str | None = None
    search: str | None = None
    is_pinned: bool | None = None
    is_resolved: bool | None = None


class CommentResponse(BaseModel):
    """Schema for comment information returned by the API."""

    id: str
    post_id: str
    parent_id: str | None
    user_id: str | None
    author_name: str | None
    author_website: str | None
    content: str
    status: CommentStatus
    spam_score: int
    spam_signals: list[str]
    flag_count: int
    flag_reasons: list[str]
    upvotes: int
    downvotes: int
    is_pinned: bool
    is_resolved: bool
    is_edited: bool
    edited_at: datetime | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class CommentThread(CommentResponse):
    """A comment with its loaded replies."""

    replies: list[CommentThread] = Field(default_factory=list)


class PaginatedComments(BaseModel):
    """One page of comments."""

    data: list[CommentResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(
        cls,
        data: list[CommentResponse],
        *,
        total: int,
        page: int,
        limit: int,
    ) -> PaginatedComments:
        total_pages = -(-total // limit) if limit else 0
        return cls(
            data=data,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class CommentStats(BaseModel):
    """Aggregate moderation statistics."""

    total: int
    approved: int
    pending: int
    spam: int
    flagged: int
    rejected: int
    deleted: int
    pinned: int
    resolved: int
    today_count: int
    average_spam_score: float
