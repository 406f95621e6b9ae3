"""FastAPI dependencies for the comment API."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .repository import CommentError, CommentRepository
from .stats import CommentStatsAggregator


async def get_comment_repository(request: Request) -> CommentRepository:
    """Get the comment repository from app state."""
    repository = getattr(request.app.state, "comment_repository", None)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Comment service not available",
        )
    return repository


async def get_stats_aggregator(
    repository: Annotated[CommentRepository, Depends(get_comment_repository)],
) -> CommentStatsAggregator:
    return CommentStatsAggregator(repository)


CommentRepositoryDep = Annotated[CommentRepository, Depends(get_comment_repository)]
StatsAggregatorDep = Annotated[CommentStatsAggregator, Depends(get_stats_aggregator)]


def handle_comment_error(error: CommentError) -> HTTPException:
    """Convert comment errors to HTTP exceptions."""
    status_map = {
        "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(status_code=status_code, detail=error.message)
