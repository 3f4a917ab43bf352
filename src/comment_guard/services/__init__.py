# src/comment_guard/services/__init__.py
"""Business logic services for comment moderation."""

from .admin_settings import CommentSettingsService, ConfigConsumer
from .comments import CommentService
from .content_origin import ContentOriginLookup, SqlPostLookup
from .errors import (
    CommentError,
    CommentNotFoundError,
    DuplicateVoteError,
    NotAuthorizedError,
    PolicyViolationError,
    RateLimitError,
)
from .events import CommentEvent, CommentEventBus, CommentEventPayload
from .moderation import ModerationService
from .registry import CommentServices, build_comment_services
from .spam import SpamCheckResult, SpamService

__all__ = [
    "CommentSettingsService",
    "ConfigConsumer",
    "CommentService",
    "ModerationService",
    "SpamService",
    "SpamCheckResult",
    "CommentEvent",
    "CommentEventBus",
    "CommentEventPayload",
    "CommentServices",
    "build_comment_services",
    "ContentOriginLookup",
    "SqlPostLookup",
    "CommentError",
    "CommentNotFoundError",
    "DuplicateVoteError",
    "NotAuthorizedError",
    "PolicyViolationError",
    "RateLimitError",
]
