"""MIME parsing helpers for message summaries.

What:
  Turn raw RFC822 payloads into :class:`email.message.EmailMessage` objects
  and extract a bounded, whitespace-collapsed plain-text preview.

Why:
  Fetched messages come from arbitrary senders: multipart trees, exotic
  charsets and broken encodings are routine. Summaries must be produced
  deterministically without letting one odd message abort a batch.

How:
  Use :class:`~email.parser.BytesParser` with the default policy, pick the
  preferred ``text/plain`` body via :meth:`EmailMessage.get_body`, decode it
  with the declared charset (falling back to lossy UTF-8), and truncate.

Interfaces:
  :func:`parse_message`, :func:`extract_plain_text`, :func:`collapse_whitespace`,
  :func:`make_snippet`.

Invariants & Safety:
  - Only ``text/plain`` content is used for previews; HTML-only messages yield
    an empty preview.
  - Decoding never raises; undecodable bytes are replaced.
  - Body text is capped at :data:`MAX_BODY_BYTES` before any further work.
"""
from __future__ import annotations

import re
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser

MAX_BODY_BYTES = 1_000_000
"""Soft upper bound for decoded body size in bytes."""

SNIPPET_LENGTH = 160

_WHITESPACE = re.compile(r"\s+")


def parse_message(raw: bytes) -> EmailMessage:
    """Parse raw message bytes with the modern ``email`` policy."""

    return BytesParser(policy=policy.default).parsebytes(raw)


def extract_plain_text(message: EmailMessage) -> str:
    """Return the preferred ``text/plain`` body of ``message``.

    What:
      Selects the plain-text alternative of a MIME tree.

    Why:
      Previews shown to the agent must be plain text; HTML markup would waste
      the small snippet budget.

    How:
      :meth:`EmailMessage.get_body` walks ``multipart/alternative`` and
      ``multipart/related`` containers and skips attachments. When the
      policy-aware :meth:`get_content` fails on an unknown charset or broken
      transfer encoding, the raw decoded payload is decoded leniently.

    Returns:
      Body text truncated to :data:`MAX_BODY_BYTES`, or ``""``.
    """

    body = message.get_body(preferencelist=("plain",))
    if body is None:
        return ""
    try:
        payload = body.get_content()
    except (LookupError, UnicodeError, ValueError, AssertionError):
        raw = body.get_payload(decode=True) or b""
        payload = raw.decode("utf-8", errors="replace")
    if isinstance(payload, bytes):
        payload = payload.decode(body.get_content_charset("utf-8"), errors="replace")
    return _truncate(str(payload))


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs into single spaces and trim the ends."""

    return _WHITESPACE.sub(" ", text).strip()


def make_snippet(text: str, length: int = SNIPPET_LENGTH) -> str:
    """Return the first ``length`` characters of the collapsed ``text``."""

    return collapse_whitespace(text)[:length]


def _truncate(text: str) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= MAX_BODY_BYTES:
        return text
    return encoded[:MAX_BODY_BYTES].decode("utf-8", errors="ignore")
