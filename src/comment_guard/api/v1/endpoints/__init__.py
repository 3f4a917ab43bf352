# src/comment_guard/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .comments import router as comments_router
from .moderation import router as moderation_router
from .settings import router as settings_router

__all__ = [
    "comments_router",
    "moderation_router",
    "settings_router",
]
