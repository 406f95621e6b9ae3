"""Comment storage and moderation.

Comments live in a key-value store as independent keys (or, optionally, one
JSON document each); ids come from an atomic counter and listing is a full
scan filtered in process.

Note: Router is not exported here to avoid circular imports.
Import directly from comment_api.comments.router when needed.
"""

from .models import COUNTER_KEY, Comment, StorageLayout
from .repository import CommentError, CommentRepository, CommentStoreError
from .stats import CommentStats, CommentStatsAggregator, PostCount, compute_stats


__all__ = [
    "COUNTER_KEY",
    "Comment",
    "CommentError",
    "CommentRepository",
    "CommentStats",
    "CommentStatsAggregator",
    "CommentStoreError",
    "PostCount",
    "StorageLayout",
    "compute_stats",
]
