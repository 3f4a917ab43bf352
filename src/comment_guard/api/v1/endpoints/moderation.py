"""Moderator endpoints for reviewing, flagging and cleaning up comments."""

from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from comment_guard.api.v1.dependencies import ModeratorDep, ServicesDep, SessionDep, UserDep
from comment_guard.models import Comment, CommentStatus
from comment_guard.schemas.comment import (
    BulkIds,
    BulkPin,
    BulkResolve,
    CommentQuery,
    CommentResponse,
    CommentSortField,
    CommentStats,
    FlagCreate,
    PaginatedComments,
    PinToggle,
    ResolveToggle,
)

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.get("/comments", response_model=PaginatedComments)
async def list_comments(
    db: SessionDep,
    services: ServicesDep,
    _moderator: ModeratorDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: CommentSortField = Query(CommentSortField.CREATED_AT),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    status_filter: CommentStatus | None = Query(None, alias="status"),
    post_id: str | None = Query(None),
    user_id: str | None = Query(None),
    search: str | None = Query(None, max_length=200),
    is_pinned: bool | None = Query(None),
    is_resolved: bool | None = Query(None),
) -> PaginatedComments:
    """Filtered moderation queue."""
    query = CommentQuery(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        status=status_filter,
        post_id=post_id,
        user_id=user_id,
        search=search,
        is_pinned=is_pinned,
        is_resolved=is_resolved,
    )
    return services.moderation.find_all(query, db)


@router.get("/stats", response_model=CommentStats)
async def get_stats(db: SessionDep, services: ServicesDep, _moderator: ModeratorDep) -> CommentStats:
    return services.moderation.get_stats(db)


@router.post("/comments/{comment_id}/approve", response_model=CommentResponse)
async def approve_comment(
    comment_id: str, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> Comment:
    return await services.moderation.approve(comment_id, moderator.user_id, db)


@router.post("/comments/{comment_id}/reject", response_model=CommentResponse)
async def reject_comment(
    comment_id: str, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> Comment:
    return await services.moderation.reject(comment_id, moderator.user_id, db)


@router.post("/comments/{comment_id}/spam", response_model=CommentResponse)
async def mark_comment_as_spam(
    comment_id: str, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> Comment:
    return await services.moderation.mark_as_spam(comment_id, moderator.user_id, db)


@router.post("/comments/{comment_id}/flag", response_model=CommentResponse)
async def flag_comment(
    comment_id: str,
    payload: FlagCreate,
    db: SessionDep,
    services: ServicesDep,
    actor: UserDep,
) -> Comment:
    """Report a comment; open to every signed-in user."""
    return await services.moderation.flag(comment_id, payload.reason, actor.user_id, db)


@router.post("/comments/{comment_id}/unflag", response_model=CommentResponse)
async def unflag_comment(
    comment_id: str, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> Comment:
    return await services.moderation.unflag(comment_id, moderator.user_id, db)


@router.post("/comments/{comment_id}/pin", response_model=CommentResponse)
async def pin_comment(
    comment_id: str,
    payload: PinToggle,
    db: SessionDep,
    services: ServicesDep,
    moderator: ModeratorDep,
) -> Comment:
    return await services.moderation.pin(comment_id, payload.pinned, moderator.user_id, db)


@router.post("/comments/{comment_id}/resolve", response_model=CommentResponse)
async def resolve_comment(
    comment_id: str,
    payload: ResolveToggle,
    db: SessionDep,
    services: ServicesDep,
    moderator: ModeratorDep,
) -> Comment:
    return await services.moderation.resolve(
        comment_id, payload.resolved, moderator.user_id, db
    )


@router.post("/comments/{comment_id}/restore", response_model=CommentResponse)
async def restore_comment(
    comment_id: str, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> Comment:
    return await services.moderation.restore(comment_id, moderator.user_id, db)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def hard_delete_comment(
    comment_id: str, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> Response:
    """Permanently delete a comment with its votes and telemetry."""
    await services.moderation.hard_delete(comment_id, moderator.user_id, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/bulk/approve")
async def bulk_approve(
    payload: BulkIds, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> dict[str, int]:
    return {"affected": await services.moderation.bulk_approve(payload.ids, moderator.user_id, db)}


@router.post("/bulk/reject")
async def bulk_reject(
    payload: BulkIds, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> dict[str, int]:
    return {"affected": await services.moderation.bulk_reject(payload.ids, moderator.user_id, db)}


@router.post("/bulk/spam")
async def bulk_mark_as_spam(
    payload: BulkIds, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> dict[str, int]:
    affected = await services.moderation.bulk_mark_as_spam(payload.ids, moderator.user_id, db)
    return {"affected": affected}


@router.post("/bulk/delete")
async def bulk_delete(
    payload: BulkIds, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> dict[str, int]:
    return {"affected": await services.moderation.bulk_delete(payload.ids, moderator.user_id, db)}


@router.post("/bulk/pin")
async def bulk_pin(
    payload: BulkPin, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> dict[str, int]:
    affected = await services.moderation.bulk_pin(
        payload.ids, payload.pinned, moderator.user_id, db
    )
    return {"affected": affected}


@router.post("/bulk/resolve")
async def bulk_resolve(
    payload: BulkResolve, db: SessionDep, services: ServicesDep, moderator: ModeratorDep
) -> dict[str, int]:
    affected = await services.moderation.bulk_resolve(
        payload.ids, payload.resolved, moderator.user_id, db
    )
    return {"affected": affected}


@router.post("/purge/spam")
async def purge_spam(
    db: SessionDep, services: ServicesDep, _moderator: ModeratorDep
) -> dict[str, int]:
    return {"removed": services.moderation.purge_old_spam(db)}


@router.post("/purge/deleted")
async def purge_deleted(
    db: SessionDep, services: ServicesDep, _moderator: ModeratorDep
) -> dict[str, int]:
    return {"removed": services.moderation.purge_deleted(db)}
