"""Persistence helpers for the comment moderation engine."""

from .comment_repo import CommentRepository, text_search_condition

__all__ = ["CommentRepository", "text_search_condition"]
