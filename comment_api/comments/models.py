"""Comment entity and its key-value store key scheme.

Two storage layouts are supported:

fields (default, compatible with existing deployments)
    Every comment is six independent string keys::

        comments/<id>/post_id
        comments/<id>/username
        comments/<id>/mailaddress
        comments/<id>/text
        comments/<id>/active        "true" / "false"
        comments/<id>/created_at    RFC3339

    There is no atomic record: a reader may observe a comment whose keys are
    only partially written. Listing enumerates ``comments/*/username``.

record
    Every comment is one JSON document at ``comment_records/<id>`` written
    with a single SET, so a comment is either fully visible or absent.

Both layouts draw ids from the ``comment_counter`` key.
"""

import json
import re
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Literal


StorageLayout = Literal["fields", "record"]

COUNTER_KEY = "comment_counter"

FIELD_KEY_PREFIX = "comments"
RECORD_KEY_PREFIX = "comment_records"

# Stored field suffixes, in the order they are read back
FIELD_NAMES = ("post_id", "username", "mailaddress", "text", "active", "created_at")

# Every comment written under the fields layout has this key, so enumerating it
# discovers all comment ids.
CANONICAL_FIELD = "username"

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Extended form with a literal T and a mandatory offset
RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})"
)


def field_key(comment_id: int, field_name: str) -> str:
    """Key of a single stored field, e.g. ``comments/7/username``."""
    return f"{FIELD_KEY_PREFIX}/{comment_id}/{field_name}"


def field_keys(comment_id: int) -> list[str]:
    """All six field keys of a comment, in ``FIELD_NAMES`` order."""
    return [field_key(comment_id, name) for name in FIELD_NAMES]


def field_scan_pattern() -> str:
    """Glob pattern matching the canonical field of every comment."""
    return f"{FIELD_KEY_PREFIX}/*/{CANONICAL_FIELD}"


def record_key(comment_id: int) -> str:
    """Key of a single-document comment, e.g. ``comment_records/7``."""
    return f"{RECORD_KEY_PREFIX}/{comment_id}"


def record_scan_pattern() -> str:
    """Glob pattern matching every single-document comment."""
    return f"{RECORD_KEY_PREFIX}/*"


def parse_comment_id(key: str) -> int | None:
    """Extract the comment id from a field or record key.

    Returns None for keys whose id segment is not a positive integer.
    """
    parts = key.split("/")
    if len(parts) < 2:
        return None
    try:
        comment_id = int(parts[1])
    except ValueError:
        return None
    return comment_id if comment_id > 0 else None


def encode_active(active: bool) -> str:
    return "true" if active else "false"


def decode_active(value: str | None) -> bool:
    """Decode the stored active flag.

    Older writers stored booleans as "1"/"0"; both spellings are accepted.
    """
    return value in ("true", "1")


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as an RFC3339 UTC string with second precision."""
    return moment.astimezone(UTC).strftime(RFC3339_FORMAT)


def parse_timestamp(value: str) -> datetime | None:
    """Parse an RFC3339 timestamp, returning None when it is malformed.

    Other ISO 8601 spellings, such as a space separator or the basic form,
    are rejected.
    """
    if not value or not RFC3339_PATTERN.fullmatch(value):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Comment:
    """A moderatable comment attached to a post identifier."""

    id: int
    post_id: str = ""
    username: str = ""
    mailaddress: str = ""
    text: str = ""
    active: bool = False
    created_at: str = ""

    @property
    def is_empty(self) -> bool:
        """True when nothing is stored for this id.

        The store has no separate existence marker, so a comment without a
        username is treated as absent.
        """
        return not self.username

    @classmethod
    def create(
        cls,
        comment_id: int,
        post_id: str,
        username: str,
        mailaddress: str,
        text: str,
        now: datetime | None = None,
    ) -> "Comment":
        """Build a new comment. New comments start inactive pending moderation."""
        return cls(
            id=comment_id,
            post_id=post_id,
            username=username,
            mailaddress=mailaddress,
            text=text,
            active=False,
            created_at=format_timestamp(now or utc_now()),
        )

    @classmethod
    def from_fields(cls, comment_id: int, values: list[str | None]) -> "Comment":
        """Build a comment from field values read in ``FIELD_NAMES`` order.

        Missing keys (None) decode to empty strings and ``active=False``.
        """
        data = dict(zip(FIELD_NAMES, values, strict=True))
        return cls(
            id=comment_id,
            post_id=data["post_id"] or "",
            username=data["username"] or "",
            mailaddress=data["mailaddress"] or "",
            text=data["text"] or "",
            active=decode_active(data["active"]),
            created_at=data["created_at"] or "",
        )

    def to_fields(self) -> dict[str, str]:
        """Map each field key to its stored string value."""
        return {
            field_key(self.id, "post_id"): self.post_id,
            field_key(self.id, "username"): self.username,
            field_key(self.id, "mailaddress"): self.mailaddress,
            field_key(self.id, "text"): self.text,
            field_key(self.id, "active"): encode_active(self.active),
            field_key(self.id, "created_at"): self.created_at,
        }

    @classmethod
    def from_record(cls, comment_id: int, raw: str | None) -> "Comment":
        """Build a comment from a JSON record; None yields the empty comment.

        Fields of the wrong type read as empty strings, and ``active`` is only
        set by a JSON ``true``. Raises ValueError for documents that are not
        JSON.
        """
        if not raw:
            return cls(id=comment_id)
        data = json.loads(raw)
        if not isinstance(data, dict):
            return cls(id=comment_id)

        def text_field(name: str) -> str:
            value = data.get(name)
            return value if isinstance(value, str) else ""

        return cls(
            id=comment_id,
            post_id=text_field("post_id"),
            username=text_field("username"),
            mailaddress=text_field("mailaddress"),
            text=text_field("text"),
            active=data.get("active") is True,
            created_at=text_field("created_at"),
        )

    def to_record(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)
