# src/comment_guard/main.py
"""Main entry point for the Comment Guard API."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from comment_guard.api.v1 import comments_router, moderation_router, settings_router
from comment_guard.core.settings import settings
from comment_guard.services.errors import (
    CommentNotFoundError,
    DuplicateVoteError,
    NotAuthorizedError,
    PolicyViolationError,
    RateLimitError,
)
from comment_guard.services.registry import build_comment_services

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Comment moderation and abuse-prevention API",
    version=settings.app_version,
)
app.state.services = build_comment_services()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(comments_router, prefix="/api/v1")
app.include_router(moderation_router, prefix="/api/v1")
app.include_router(settings_router, prefix="/api/v1")


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(RateLimitError)
async def rate_limit_handler(_request: Request, exc: RateLimitError) -> JSONResponse:
    response = _error(status.HTTP_429_TOO_MANY_REQUESTS, exc)
    if exc.retry_after_seconds is not None:
        response.headers["Retry-After"] = str(exc.retry_after_seconds)
    return response


@app.exception_handler(DuplicateVoteError)
async def duplicate_vote_handler(_request: Request, exc: DuplicateVoteError) -> JSONResponse:
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(PolicyViolationError)
async def policy_handler(_request: Request, exc: PolicyViolationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(NotAuthorizedError)
async def not_authorized_handler(_request: Request, exc: NotAuthorizedError) -> JSONResponse:
    return _error(status.HTTP_403_FORBIDDEN, exc)


@app.exception_handler(CommentNotFoundError)
async def not_found_handler(_request: Request, exc: CommentNotFoundError) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(ValidationError)
async def validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(include_url=False, include_context=False)},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Comment moderation and abuse-prevention API",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("comment_guard.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
