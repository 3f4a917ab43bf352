# src/comment_guard/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    comments_router,
    moderation_router,
    settings_router,
)

__all__ = [
    "comments_router",
    "moderation_router",
    "settings_router",
]
