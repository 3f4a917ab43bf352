# src/comment_guard/models/__init__.py
"""SQLAlchemy models for the comment moderation engine."""

from .comment import Comment, CommentStatus
from .learning_signal import LearningSignal
from .post import Post
from .settings import SETTINGS_ROW_ID, CommentSettings
from .vote import CommentVote, VoteType

__all__ = [
    "Comment", "CommentStatus",
    "CommentSettings", "SETTINGS_ROW_ID",
    "CommentVote", "VoteType",
    "LearningSignal",
    "Post",
]
