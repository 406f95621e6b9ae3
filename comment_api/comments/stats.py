"""Moderation statistics derived from a full comment scan.

Nothing is stored: every call rescans through the repository, so results may
already be stale when they reach the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .models import Comment, parse_timestamp, utc_now


if TYPE_CHECKING:
    from .repository import CommentRepository


TOP_POSTS_LIMIT = 5
RECENT_WINDOW = timedelta(hours=24)


@dataclass
class PostCount:
    post_id: str
    comment_count: int


@dataclass
class CommentStats:
    """Aggregated counts over all stored comments."""

    total_comments: int = 0
    active_comments: int = 0
    inactive_comments: int = 0
    unique_posts: int = 0
    recent_comments: int = 0
    top_posts: list[PostCount] = field(default_factory=list)
    computed_at: datetime = field(default_factory=utc_now)


def compute_stats(comments: list[Comment], now: datetime | None = None) -> CommentStats:
    """Compute statistics for ``comments``.

    Top posts are ordered by descending comment count; posts with equal
    counts keep the order in which they were first encountered. A comment
    counts as recent when its created_at parses as RFC3339 and lies within
    the 24 hours before ``now``; unparsable timestamps are skipped.
    """
    now = now or utc_now()
    cutoff = now - RECENT_WINDOW

    stats = CommentStats(total_comments=len(comments), computed_at=now)
    per_post: dict[str, int] = {}

    for comment in comments:
        if comment.active:
            stats.active_comments += 1
        else:
            stats.inactive_comments += 1

        per_post[comment.post_id] = per_post.get(comment.post_id, 0) + 1

        created_at = parse_timestamp(comment.created_at)
        if created_at is not None and created_at > cutoff:
            stats.recent_comments += 1

    stats.unique_posts = len(per_post)
    # sorted() is stable, so ties stay in encounter order
    ranked = sorted(per_post.items(), key=lambda item: item[1], reverse=True)
    stats.top_posts = [
        PostCount(post_id=post_id, comment_count=count)
        for post_id, count in ranked[:TOP_POSTS_LIMIT]
    ]
    return stats


class CommentStatsAggregator:
    """Read-only statistics over ``CommentRepository.list_all``."""

    def __init__(self, repository: "CommentRepository"):
        self.repository = repository

    async def collect(self, now: datetime | None = None) -> CommentStats:
        comments = await self.repository.list_all(include_inactive=True)
        return compute_stats(comments, now=now)
