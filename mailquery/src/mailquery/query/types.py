"""Value types exchanged between the gateway, normalizer and planner."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class RawMessage:
    """One message as returned by the mailbox gateway.

    Attributes:
      uid: IMAP UID of the message.
      source: Full RFC822 bytes, or ``None`` when the server omitted them.
      envelope: ``imapclient`` envelope, or ``None``.
      flags: Message flags, or ``None`` when they were not returned.
    """

    uid: int
    source: Optional[bytes] = None
    envelope: Any = None
    flags: Optional[Tuple[Any, ...]] = None


@dataclass(frozen=True)
class MessageSummary:
    """Canonical summary returned to callers.

    ``is_unread`` is ``None`` when the flag set was unavailable, which is
    different from "read".
    """

    mailbox_id: int
    sender_display: str
    subject: str
    timestamp: Optional[datetime]
    is_unread: Optional[bool]
    snippet: str

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        # Absent timestamps sort as the epoch; the UID breaks ties.
        return (self.timestamp or EPOCH, self.mailbox_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.mailbox_id,
            "from": self.sender_display,
            "subject": self.subject,
            "date": self.timestamp.isoformat() if self.timestamp else None,
            "unread": self.is_unread,
            "snippet": self.snippet,
        }


def newest_first(summaries, limit: Optional[int] = None):
    """Sort ``summaries`` by timestamp descending and keep at most ``limit``."""

    ordered = sorted(summaries, key=lambda summary: summary.sort_key, reverse=True)
    return ordered if limit is None else ordered[:limit]
