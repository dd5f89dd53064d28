"""Convert fetched messages into :class:`MessageSummary` records.

What:
  Resolve the most plausible sender, subject, timestamp, unread state and
  preview of one fetched message, together with its sender candidate set.

Why:
  Servers and senders disagree about which fields are present. Summaries
  must still be produced for every message, and one malformed message must
  never abort a whole batch.

How:
  Parse the RFC822 source with :mod:`mailquery.utils.mime`, read the body
  headers first and fall back to the IMAP envelope field by field. Any
  parsing failure degrades to an envelope-only summary and is logged.

Interfaces:
  :class:`NormalizedMessage`, :func:`normalize_message`.

Invariants & Safety:
  - Sender display order: ``From`` header, envelope from, ``"(unknown sender)"``.
  - Timestamp order: ``Date`` header, envelope date, ``None``.
  - ``is_unread`` is ``None`` when flags are unavailable.
  - Timestamps are always timezone-aware; naive values are read as UTC.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Any, Optional

from ..utils.logging import JsonLogger, get_logger
from ..utils.mime import extract_plain_text, make_snippet, parse_message
from .sender import decode_header_value, envelope_address_text, extract_sender_candidates
from .types import MessageSummary, RawMessage

UNKNOWN_SENDER = "(unknown sender)"
NO_SUBJECT = "(no subject)"
SEEN_FLAG = "\\seen"

_LOGGER = get_logger("mailquery.normalizer")


@dataclass(frozen=True)
class NormalizedMessage:
    """Summary plus the transient sender candidates used for matching."""

    summary: MessageSummary
    sender_candidates: frozenset


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _header_text(message: Optional[EmailMessage], name: str) -> Optional[str]:
    if message is None:
        return None
    try:
        value = message.get(name)
    except Exception:  # header registry raises on some malformed values
        return None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _header_date(message: Optional[EmailMessage]) -> Optional[datetime]:
    if message is None:
        return None
    try:
        header = message.get("date")
        moment = getattr(header, "datetime", None) if header is not None else None
    except Exception:  # unparsable Date headers
        return None
    return _aware(moment)


def _unread(flags: Any) -> Optional[bool]:
    if flags is None:
        return None
    for flag in flags:
        text = flag.decode("ascii", errors="ignore") if isinstance(flag, bytes) else str(flag)
        if text.lower() == SEEN_FLAG:
            return False
    return True


def _envelope_subject(envelope: Any) -> Optional[str]:
    text = decode_header_value(getattr(envelope, "subject", None)).strip()
    return text or None


def _build(
    raw: RawMessage,
    message: Optional[EmailMessage],
    body_text: str,
) -> NormalizedMessage:
    envelope = raw.envelope
    sender = (
        _header_text(message, "from")
        or envelope_address_text(getattr(envelope, "from_", None))
        or UNKNOWN_SENDER
    )
    subject = _header_text(message, "subject") or _envelope_subject(envelope) or NO_SUBJECT
    timestamp = _header_date(message) or _aware(getattr(envelope, "date", None))
    summary = MessageSummary(
        mailbox_id=raw.uid,
        sender_display=sender,
        subject=subject,
        timestamp=timestamp,
        is_unread=_unread(raw.flags),
        snippet=make_snippet(body_text),
    )
    return NormalizedMessage(
        summary=summary,
        sender_candidates=extract_sender_candidates(message, envelope),
    )


def normalize_message(raw: RawMessage, *, logger: Optional[JsonLogger] = None) -> NormalizedMessage:
    """Produce the summary and sender candidates of ``raw``.

    What:
      Applies the field resolution orders documented in the module header.

    Why:
      Keeping every fallback in one function makes the degraded path easy to
      test and guarantees identical output for identical input.

    How:
      Parse the source when present and extract the plain-text body. If
      parsing or extraction fails, log a ``message degraded`` warning and
      rebuild the summary from the envelope and flags alone.

    Args:
      raw: Message fetched by the gateway.
      logger: Optional logger override (tests capture output this way).

    Returns:
      :class:`NormalizedMessage` for ``raw``.
    """

    log = logger or _LOGGER
    if raw.source:
        try:
            message = parse_message(raw.source)
            return _build(raw, message, extract_plain_text(message))
        except Exception as exc:  # one bad message must not fail the batch
            log.warning("message degraded", uid=raw.uid, error=type(exc).__name__)
    return _build(raw, None, "")
