"""Pydantic schemas for the comment API."""

from typing import Any

from pydantic import BaseModel, Field

from .models import Comment
from .stats import CommentStats


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCommentRequest(BaseModel):
    """Request to create a new comment. All fields are required and non-empty."""

    post_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    mailaddress: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class UpdateStatusRequest(BaseModel):
    """Request to change the moderation flag of a comment."""

    active: bool


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(BaseModel):
    """A single comment as exposed over HTTP."""

    id: int
    post_id: str
    username: str
    mailaddress: str
    text: str
    active: bool
    created_at: str

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(**comment.to_dict())


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str


class TopPostResponse(BaseModel):
    post_id: str
    comment_count: int


class AdminInfoResponse(BaseModel):
    """Moderation statistics for the admin panel."""

    total_comments: int
    active_comments: int
    inactive_comments: int
    unique_posts: int
    recent_comments: int = Field(description="Comments created in the last 24h")
    top_posts: list[TopPostResponse]
    server_time: str
    version: str
    stage: str

    @classmethod
    def from_stats(
        cls, stats: CommentStats, server_time: str, version: str, stage: str
    ) -> "AdminInfoResponse":
        data: dict[str, Any] = {
            "total_comments": stats.total_comments,
            "active_comments": stats.active_comments,
            "inactive_comments": stats.inactive_comments,
            "unique_posts": stats.unique_posts,
            "recent_comments": stats.recent_comments,
            "top_posts": [
                TopPostResponse(post_id=p.post_id, comment_count=p.comment_count)
                for p in stats.top_posts
            ],
        }
        return cls(**data, server_time=server_time, version=version, stage=stage)
