"""Public comment endpoints: submit, read, edit, delete and vote."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from comment_guard.api.v1.dependencies import (
    ActorDep,
    RequestMetaDep,
    ServicesDep,
    SessionDep,
    UserDep,
)
from comment_guard.models import Comment, CommentStatus
from comment_guard.schemas.comment import (
    CommentCreate,
    CommentResponse,
    CommentThread,
    CommentUpdate,
    PaginatedComments,
    VoteCreate,
)

router = APIRouter(prefix="/comments", tags=["comments"])


def _forbid_include_all(include_all: bool, allowed: bool) -> None:
    if include_all and not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Moderator role required to list every comment",
        )


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    payload: CommentCreate,
    db: SessionDep,
    services: ServicesDep,
    actor: ActorDep,
    meta: RequestMetaDep,
) -> Comment:
    """Submit a comment as the signed-in user, or as a guest without a token."""
    data = payload.model_copy(update={"user_id": actor.user_id})
    return await services.comments.create(data, db, meta)


@router.get("/post/{post_id}", response_model=list[CommentThread])
async def list_post_comments(
    post_id: str,
    db: SessionDep,
    services: ServicesDep,
    actor: ActorDep,
    include_all: bool = Query(False),
    skip: int | None = Query(None, ge=0),
    take: int | None = Query(None, ge=1, le=100),
) -> list[CommentThread]:
    """Root comments of a post with their reply tree."""
    _forbid_include_all(include_all, actor.is_moderator)
    return services.comments.find_by_post(
        post_id, db, include_all=include_all, skip=skip, take=take
    )


@router.get("/post/{post_id}/count")
async def count_post_comments(
    post_id: str,
    db: SessionDep,
    services: ServicesDep,
) -> dict[str, object]:
    return {"post_id": post_id, "count": services.comments.count_by_post(post_id, db)}


@router.get("/user/{user_id}", response_model=PaginatedComments)
async def list_user_comments(
    user_id: str,
    db: SessionDep,
    services: ServicesDep,
    actor: ActorDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    include_all: bool = Query(False),
) -> PaginatedComments:
    """A user's comments; the author and moderators may include hidden ones."""
    _forbid_include_all(include_all, actor.is_moderator or actor.user_id == user_id)
    return services.comments.find_by_user(
        user_id, db, page=page, limit=limit, include_all=include_all
    )


@router.get("/search", response_model=PaginatedComments)
async def search_comments(
    db: SessionDep,
    services: ServicesDep,
    actor: ActorDep,
    q: str = Query(..., min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    include_all: bool = Query(False),
) -> PaginatedComments:
    _forbid_include_all(include_all, actor.is_moderator)
    return services.comments.search(q, db, page=page, limit=limit, include_all=include_all)


@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(
    comment_id: str,
    db: SessionDep,
    services: ServicesDep,
    actor: ActorDep,
) -> Comment:
    """One comment; hidden comments are visible to their author and moderators only."""
    comment = services.comments.find_by_id(comment_id, db)
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    visible = comment.status == CommentStatus.APPROVED and comment.deleted_at is None
    if not visible and not actor.is_moderator and (
        actor.is_guest or actor.user_id != comment.user_id
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


@router.patch("/{comment_id}", response_model=CommentResponse)
async def edit_comment(
    comment_id: str,
    payload: CommentUpdate,
    db: SessionDep,
    services: ServicesDep,
    actor: UserDep,
) -> Comment:
    """Edit a comment; moderators may edit any comment outside the edit window."""
    requester_id = None if actor.is_moderator else actor.user_id
    return await services.comments.update(comment_id, payload.content, db, requester_id)


@router.delete("/{comment_id}", response_model=CommentResponse)
async def delete_comment(
    comment_id: str,
    db: SessionDep,
    services: ServicesDep,
    actor: UserDep,
) -> Comment:
    requester_id = None if actor.is_moderator else actor.user_id
    return await services.comments.soft_delete(comment_id, db, requester_id)


@router.post("/{comment_id}/vote", response_model=CommentResponse)
async def vote_comment(
    comment_id: str,
    payload: VoteCreate,
    db: SessionDep,
    services: ServicesDep,
    actor: UserDep,
) -> Comment:
    return await services.comments.vote(comment_id, str(actor.user_id), payload.type, db)
