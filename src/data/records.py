"""
Record types written to and read from TSV files.

**Conceptual**: The fetch loop (an external collaborator that talks to the
social-media API) turns each status it receives into a Tweet and hands the
finished list to a TsvSerializer. The codec itself works with any record
type; Tweet is the one this project ships.

**Why a mutable dataclass with defaults?** The reader builds every record with
``Tweet()`` and then sets each column it finds on the line, so every field
needs a default and must be writable.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

# Timestamp format used by the v1.1 REST API, e.g. "Wed Oct 10 20:19:24 +0000 2018"
STATUS_CREATED_AT_FORMAT = "%a %b %d %H:%M:%S %z %Y"


@dataclass
class Tweet:
    """
    One status as stored in a tweets TSV.

    Attributes:
        id: Status id.
        time: Creation time in local time (timezone-aware).
        user: Author's screen name.
        text: Status text (may contain tabs and line breaks).
    """
    id: int = 0
    time: Optional[datetime] = None
    user: Optional[str] = None
    text: Optional[str] = None

    @classmethod
    def from_status(cls, status: Mapping[str, Any]) -> "Tweet":
        """
        Build a Tweet from a status payload.

        Accepts the keys ``id``, ``created_at`` (datetime, ISO 8601 text, or
        the v1.1 format), ``user.screen_name`` and ``full_text``/``text``.
        The creation time is converted to local time.

        Raises:
            KeyError: If ``id`` is missing.
            ValueError: If ``created_at`` text cannot be parsed.
        """
        created_at = status.get("created_at")
        if isinstance(created_at, str):
            created_at = parse_created_at(created_at)
        if created_at is not None:
            created_at = created_at.astimezone()

        user = status.get("user") or {}
        text = status.get("full_text", status.get("text"))

        return cls(
            id=int(status["id"]),
            time=created_at,
            user=user.get("screen_name"),
            text=text,
        )


def parse_created_at(text: str) -> datetime:
    """Parse a status timestamp in ISO 8601 or v1.1 REST format."""
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text, STATUS_CREATED_AT_FORMAT)
    except ValueError:
        raise ValueError(
            f"Unrecognised status timestamp {text!r}. Expected ISO 8601 "
            f"or '{STATUS_CREATED_AT_FORMAT}'."
        )


def sort_newest_first(tweets: Iterable[Tweet]) -> List[Tweet]:
    """Order tweets by time, newest first; tweets without a time go last."""
    return sorted(
        tweets,
        key=lambda tweet: tweet.time.timestamp() if tweet.time is not None else float("-inf"),
        reverse=True,
    )
