"""Comment repository: maps Comment lifecycle operations onto store keys.

The store offers single-key atomicity, an atomic counter and key enumeration
by glob pattern, but no multi-key transactions and no secondary indexes.
Consequently:

- ids come from INCR on ``comment_counter`` and are never reused;
- with the ``fields`` layout the six field writes of a new comment are one
  non-transactional pipeline, so a concurrent reader (or a crash) can expose
  a partially written comment;
- every list operation scans all comments and filters in process, O(n) in
  the total number of comments regardless of the filter.

No in-process locking is done; the shared client is safe for concurrent use.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from redis.exceptions import RedisError

from .models import (
    COUNTER_KEY,
    Comment,
    StorageLayout,
    encode_active,
    field_key,
    field_keys,
    field_scan_pattern,
    parse_comment_id,
    record_key,
    record_scan_pattern,
)


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentStoreError(CommentError):
    """The key-value store failed or could not be reached."""

    def __init__(self, message: str = "Comment store unavailable"):
        super().__init__(message, "store_unavailable")


# ==============================================================================
# Repository
# ==============================================================================


class CommentRepository:
    """Create, read, moderate, delete and list comments in the store."""

    SCAN_BATCH_SIZE = 500

    def __init__(self, redis: "Redis", layout: StorageLayout = "fields"):
        self.redis = redis
        self.layout = layout

    @contextmanager
    def _store_call(self, operation: str, **fields: object) -> Iterator[None]:
        """Translate store failures into CommentStoreError."""
        try:
            yield
        except RedisError as e:
            logger.error(
                "comment_store_error",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **fields,
            )
            raise CommentStoreError(f"Store error during {operation}") from e

    # --------------------------------------------------------------------------
    # Single comment operations
    # --------------------------------------------------------------------------

    async def create(
        self,
        post_id: str,
        username: str,
        mailaddress: str,
        text: str,
    ) -> Comment:
        """Store a new, inactive comment and return it.

        Inputs are not validated here. If the counter increment fails nothing
        is written; if the field writes fail partway the comment may remain
        partially stored.
        """
        with self._store_call("generate_id"):
            comment_id = int(await self.redis.incr(COUNTER_KEY))

        comment = Comment.create(
            comment_id=comment_id,
            post_id=post_id,
            username=username,
            mailaddress=mailaddress,
            text=text,
        )

        with self._store_call("create", comment_id=comment_id):
            if self.layout == "record":
                await self.redis.set(record_key(comment_id), comment.to_record())
            else:
                pipe = self.redis.pipeline(transaction=False)
                for key, value in comment.to_fields().items():
                    pipe.set(key, value)
                await pipe.execute()

        logger.info("comment_created", comment_id=comment_id, post_id=post_id)
        return comment

    async def get(self, comment_id: int) -> Comment:
        """Read a comment in one batched read.

        Absent keys decode to empty strings / ``active=False``; no distinct
        not-found error is raised. Callers check ``Comment.is_empty``.
        """
        with self._store_call("get", comment_id=comment_id):
            if self.layout == "record":
                raw = await self.redis.get(record_key(comment_id))
                return self._decode_record(comment_id, raw)
            values = await self.redis.mget(field_keys(comment_id))
        return Comment.from_fields(comment_id, values)

    async def update_status(self, comment_id: int, active: bool) -> None:
        """Set the moderation flag.

        The id is not checked for existence. With the fields layout, updating
        an unknown id leaves a partial comment holding only the flag, which
        listings never report. With the record layout the write only replaces
        an existing document (SET XX), so an unknown or deleted id stays absent.
        """
        with self._store_call("update_status", comment_id=comment_id):
            if self.layout == "record":
                raw = await self.redis.get(record_key(comment_id))
                comment = self._decode_record(comment_id, raw)
                if comment.is_empty:
                    logger.info("comment_status_update_skipped", comment_id=comment_id)
                    return
                comment.active = active
                await self.redis.set(
                    record_key(comment_id), comment.to_record(), xx=True
                )
            else:
                await self.redis.set(
                    field_key(comment_id, "active"), encode_active(active)
                )

        logger.info("comment_status_updated", comment_id=comment_id, active=active)

    async def delete(self, comment_id: int) -> None:
        """Remove every key of a comment. Deleting an unknown id succeeds."""
        with self._store_call("delete", comment_id=comment_id):
            if self.layout == "record":
                removed = await self.redis.delete(record_key(comment_id))
            else:
                removed = await self.redis.delete(*field_keys(comment_id))

        logger.info("comment_deleted", comment_id=comment_id, keys_removed=removed)

    # --------------------------------------------------------------------------
    # Listing
    # --------------------------------------------------------------------------

    async def list_by_post(
        self, post_id: str, include_inactive: bool = False
    ) -> list[Comment]:
        """Comments whose post_id equals ``post_id`` exactly (case-sensitive).

        Inactive comments are only included when ``include_inactive`` is set.
        """
        with self._store_call("list_by_post", post_id=post_id):
            comment_ids = await self._scan_ids()
            scanned = len(comment_ids)

            if self.layout == "fields" and comment_ids:
                # Cheap pre-filter on the post_id key before loading full comments
                stored_post_ids = await self.redis.mget(
                    [field_key(cid, "post_id") for cid in comment_ids]
                )
                comment_ids = [
                    cid
                    for cid, stored in zip(comment_ids, stored_post_ids, strict=True)
                    if stored == post_id
                ]

            comments = await self._get_many(comment_ids)

        result = [
            c
            for c in comments
            if c.post_id == post_id and (c.active or include_inactive)
        ]
        logger.debug(
            "comments_listed_by_post",
            post_id=post_id,
            scanned=scanned,
            returned=len(result),
        )
        return result

    async def list_all(self, include_inactive: bool = False) -> list[Comment]:
        """Every stored comment, active ones only unless ``include_inactive``."""
        with self._store_call("list_all"):
            comments = await self._get_many(await self._scan_ids())

        return [c for c in comments if c.active or include_inactive]

    async def _scan_ids(self) -> list[int]:
        """Discover comment ids by enumerating keys, sorted ascending.

        SCAN may report a key more than once, so ids are de-duplicated.
        """
        pattern = (
            record_scan_pattern() if self.layout == "record" else field_scan_pattern()
        )
        comment_ids: set[int] = set()
        async for key in self.redis.scan_iter(
            match=pattern, count=self.SCAN_BATCH_SIZE
        ):
            comment_id = parse_comment_id(key)
            if comment_id is None:
                logger.warning("comment_key_unparsable", key=key)
                continue
            comment_ids.add(comment_id)
        return sorted(comment_ids)

    async def _get_many(self, comment_ids: list[int]) -> list[Comment]:
        """Load several comments in one round trip."""
        if not comment_ids:
            return []

        if self.layout == "record":
            raws = await self.redis.mget([record_key(cid) for cid in comment_ids])
            comments = [
                self._decode_record(cid, raw)
                for cid, raw in zip(comment_ids, raws, strict=True)
            ]
            # Documents deleted between SCAN and MGET read as empty
            return [c for c in comments if not c.is_empty]

        pipe = self.redis.pipeline(transaction=False)
        for cid in comment_ids:
            pipe.mget(field_keys(cid))
        rows = await pipe.execute()
        return [
            Comment.from_fields(cid, values)
            for cid, values in zip(comment_ids, rows, strict=True)
        ]

    def _decode_record(self, comment_id: int, raw: str | None) -> Comment:
        try:
            return Comment.from_record(comment_id, raw)
        except ValueError:
            # Corrupt documents read as absent, like missing field keys
            logger.warning("comment_record_corrupt", comment_id=comment_id)
            return Comment(id=comment_id)
