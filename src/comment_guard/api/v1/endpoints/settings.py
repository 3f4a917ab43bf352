"""Administrative endpoints for the moderation configuration."""

from __future__ import annotations

from fastapi import APIRouter, Query

from comment_guard.api.v1.dependencies import (
    ActorDep,
    ModeratorDep,
    RequestMetaDep,
    ServicesDep,
    SessionDep,
)
from comment_guard.schemas.settings import (
    AdminOverview,
    BlockedListName,
    CommentSettingsResponse,
    CommentSettingsUpdate,
    ListEntries,
    PolicyDecision,
)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=CommentSettingsResponse)
async def get_settings(
    db: SessionDep, services: ServicesDep, _moderator: ModeratorDep
) -> CommentSettingsResponse:
    return services.settings.get_settings_record(db)


@router.patch("", response_model=CommentSettingsResponse)
async def update_settings(
    payload: CommentSettingsUpdate,
    db: SessionDep,
    services: ServicesDep,
    moderator: ModeratorDep,
) -> CommentSettingsResponse:
    """Apply a partial update; every service sees it before the response is sent."""
    services.settings.update_settings(payload, db, updated_by=moderator.user_id)
    return services.settings.get_settings_record(db)


@router.get("/overview", response_model=AdminOverview)
async def get_overview(
    db: SessionDep, services: ServicesDep, _moderator: ModeratorDep
) -> AdminOverview:
    return services.settings.get_admin_overview(db)


@router.post("/blocked/{list_name}", response_model=CommentSettingsResponse)
async def add_blocked_entries(
    list_name: BlockedListName,
    payload: ListEntries,
    db: SessionDep,
    services: ServicesDep,
    moderator: ModeratorDep,
) -> CommentSettingsResponse:
    services.settings.add_to_blocked_list(list_name, payload.entries, db, moderator.user_id)
    return services.settings.get_settings_record(db)


@router.post("/blocked/{list_name}/remove", response_model=CommentSettingsResponse)
async def remove_blocked_entries(
    list_name: BlockedListName,
    payload: ListEntries,
    db: SessionDep,
    services: ServicesDep,
    moderator: ModeratorDep,
) -> CommentSettingsResponse:
    services.settings.remove_from_blocked_list(list_name, payload.entries, db, moderator.user_id)
    return services.settings.get_settings_record(db)


@router.post("/keywords", response_model=CommentSettingsResponse)
async def add_spam_keywords(
    payload: ListEntries, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> CommentSettingsResponse:
    services.settings.add_spam_keywords(payload.entries, db, moderator.user_id)
    return services.settings.get_settings_record(db)


@router.post("/keywords/remove", response_model=CommentSettingsResponse)
async def remove_spam_keywords(
    payload: ListEntries, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> CommentSettingsResponse:
    services.settings.remove_spam_keywords(payload.entries, db, moderator.user_id)
    return services.settings.get_settings_record(db)


@router.post("/profanity", response_model=CommentSettingsResponse)
async def add_profanity_words(
    payload: ListEntries, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> CommentSettingsResponse:
    services.settings.add_profanity_words(payload.entries, db, moderator.user_id)
    return services.settings.get_settings_record(db)


@router.post("/profanity/remove", response_model=CommentSettingsResponse)
async def remove_profanity_words(
    payload: ListEntries, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> CommentSettingsResponse:
    services.settings.remove_profanity_words(payload.entries, db, moderator.user_id)
    return services.settings.get_settings_record(db)


@router.get("/check/commenting", response_model=PolicyDecision)
async def check_commenting_allowed(
    db: SessionDep,
    services: ServicesDep,
    post_id: str = Query(..., min_length=1, max_length=64),
) -> PolicyDecision:
    """Whether a post currently accepts new comments."""
    published_at = services.post_lookup.published_at(post_id, db)
    return services.settings.is_commenting_allowed(published_at, db)


@router.get("/check/rate-limit", response_model=PolicyDecision)
async def check_rate_limit(
    db: SessionDep,
    services: ServicesDep,
    actor: ActorDep,
    meta: RequestMetaDep,
    post_id: str | None = Query(None, max_length=64),
) -> PolicyDecision:
    """Whether the caller may post another comment right now."""
    return services.settings.check_rate_limit(
        db,
        user_id=actor.user_id,
        post_id=post_id,
        ip_address=meta.ip_address if actor.is_guest else None,
    )
