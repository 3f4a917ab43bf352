"""Error categories raised by the comment services."""

from __future__ import annotations


class CommentError(RuntimeError):
    """Base exception raised for comment-related failures."""


class PolicyViolationError(CommentError):
    """Raised when a request breaks a moderation policy.

    Covers disabled features, blocked actors, quotas, reply depth, expired edit
    windows and the pinned-comment limit. The message is safe to show to users.
    """


class RateLimitError(PolicyViolationError):
    """Raised when an actor exceeds an hourly or per-post comment quota."""

    def __init__(self, message: str, retry_after_seconds: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class DuplicateVoteError(PolicyViolationError):
    """Raised when a voter repeats the vote they already cast."""


class NotAuthorizedError(CommentError):
    """Raised when a requester edits or deletes a comment they do not own."""


class CommentNotFoundError(CommentError):
    """Raised when an operation targets a comment that does not exist."""

    def __init__(self, comment_id: str) -> None:
        super().__init__(f"Comment {comment_id} not found")
        self.comment_id = comment_id
