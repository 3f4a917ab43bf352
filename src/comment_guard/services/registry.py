# src/comment_guard/services/registry.py
"""Construction of the comment service graph."""

from __future__ import annotations

from dataclasses import dataclass

from comment_guard.services.admin_settings import CommentSettingsService
from comment_guard.services.comments import CommentService
from comment_guard.services.content_origin import ContentOriginLookup, SqlPostLookup
from comment_guard.services.events import CommentEventBus
from comment_guard.services.moderation import ModerationService
from comment_guard.services.spam import SpamService


@dataclass(frozen=True)
class CommentServices:
    """Every service of one application instance, sharing one settings service."""

    settings: CommentSettingsService
    events: CommentEventBus
    spam: SpamService
    comments: CommentService
    moderation: ModerationService
    post_lookup: ContentOriginLookup


def build_comment_services(
    *,
    events: CommentEventBus | None = None,
    post_lookup: ContentOriginLookup | None = None,
) -> CommentServices:
    """Wire the services so each registers itself as a settings consumer."""
    settings_service = CommentSettingsService()
    events = events or CommentEventBus()
    spam = SpamService(settings_service)
    post_lookup = post_lookup or SqlPostLookup()
    return CommentServices(
        settings=settings_service,
        events=events,
        spam=spam,
        comments=CommentService(spam, events, settings_service, post_lookup),
        moderation=ModerationService(events, settings_service),
        post_lookup=post_lookup,
    )
