"""Comment API endpoints.

Public routes accept submissions and serve comments; moderation routes
(status, delete, statistics) require the admin token.
"""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, HTTPException, Query, status

from comment_api.auth import AdminAccess
from comment_api.config import get_settings

from .dependencies import CommentRepositoryDep, StatsAggregatorDep, handle_comment_error
from .models import format_timestamp
from .repository import CommentError
from .schemas import (
    AdminInfoResponse,
    CommentResponse,
    CreateCommentRequest,
    MessageResponse,
    UpdateStatusRequest,
)


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.post(
    "",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    data: CreateCommentRequest,
    repository: CommentRepositoryDep,
) -> CommentResponse:
    """Submit a comment. New comments are inactive until a moderator activates them."""
    try:
        comment = await repository.create(
            post_id=data.post_id,
            username=data.username,
            mailaddress=data.mailaddress,
            text=data.text,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    return CommentResponse.from_comment(comment)


@router.get(
    "",
    response_model=list[CommentResponse],
    summary="List comments",
)
async def list_comments(
    repository: CommentRepositoryDep,
    post_id: str | None = None,
    include_inactive: str | None = Query(
        default=None, description='Only the literal "true" includes inactive comments'
    ),
) -> list[CommentResponse]:
    """List comments of one post, or of all posts when post_id is omitted."""
    show_inactive = include_inactive == "true"
    try:
        if post_id:
            comments = await repository.list_by_post(post_id, show_inactive)
        else:
            comments = await repository.list_all(show_inactive)
    except CommentError as e:
        raise handle_comment_error(e) from e

    return [CommentResponse.from_comment(c) for c in comments]


@router.get(
    "/admin/info",
    response_model=AdminInfoResponse,
    summary="Moderation statistics",
    dependencies=[AdminAccess],
)
async def get_admin_info(aggregator: StatsAggregatorDep) -> AdminInfoResponse:
    """Totals, per-post counts and recent activity over all comments."""
    settings = get_settings()
    try:
        stats = await aggregator.collect()
    except CommentError as e:
        raise handle_comment_error(e) from e

    return AdminInfoResponse.from_stats(
        stats,
        server_time=format_timestamp(datetime.now(UTC)),
        version=settings.version,
        stage=settings.stage,
    )


@router.get(
    "/{comment_id}",
    response_model=CommentResponse,
    summary="Get comment",
)
async def get_comment(
    comment_id: int,
    repository: CommentRepositoryDep,
) -> CommentResponse:
    """Get a single comment by id."""
    try:
        comment = await repository.get(comment_id)
    except CommentError as e:
        raise handle_comment_error(e) from e

    if comment.is_empty:
        logger.info("comment_not_found", comment_id=comment_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Comment not found",
        )

    return CommentResponse.from_comment(comment)


@router.put(
    "/{comment_id}/status",
    response_model=MessageResponse,
    summary="Activate or deactivate comment",
    dependencies=[AdminAccess],
)
async def update_comment_status(
    comment_id: int,
    data: UpdateStatusRequest,
    repository: CommentRepositoryDep,
) -> MessageResponse:
    """Set the moderation flag of a comment."""
    try:
        await repository.update_status(comment_id, data.active)
    except CommentError as e:
        raise handle_comment_error(e) from e

    return MessageResponse(message="Status updated")


@router.delete(
    "/{comment_id}",
    response_model=MessageResponse,
    summary="Delete comment",
    dependencies=[AdminAccess],
)
async def delete_comment(
    comment_id: int,
    repository: CommentRepositoryDep,
) -> MessageResponse:
    """Permanently remove a comment."""
    try:
        await repository.delete(comment_id)
    except CommentError as e:
        raise handle_comment_error(e) from e

    return MessageResponse(message="Comment deleted")
