"""Pydantic schemas for the comment moderation engine."""

from .comment import (
    MAX_BULK_IDS,
    BulkIds,
    BulkPin,
    BulkResolve,
    CommentCreate,
    CommentQuery,
    CommentResponse,
    CommentSortField,
    CommentStats,
    CommentThread,
    CommentUpdate,
    FlagCreate,
    PaginatedComments,
    PinToggle,
    RequestMeta,
    ResolveToggle,
    VoteCreate,
)
from .settings import (
    DEFAULT_CONFIG,
    FAIL_SAFE_CONFIG,
    AdminOverview,
    BlockedListName,
    CommentSettingsResponse,
    CommentSettingsUpdate,
    CommentsConfig,
    ListEntries,
    PolicyDecision,
)

__all__ = [
    "MAX_BULK_IDS",
    "BulkIds", "BulkPin", "BulkResolve",
    "CommentCreate", "CommentUpdate", "CommentQuery", "CommentSortField",
    "CommentResponse", "CommentThread", "PaginatedComments", "CommentStats",
    "FlagCreate", "PinToggle", "ResolveToggle", "VoteCreate",
    "RequestMeta",
    "DEFAULT_CONFIG", "FAIL_SAFE_CONFIG",
    "AdminOverview", "BlockedListName", "CommentsConfig", "CommentSettingsUpdate",
    "CommentSettingsResponse", "ListEntries", "PolicyDecision",
]
