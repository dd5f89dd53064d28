"""Sender candidate extraction and normalised substring matching.

What:
  Collect every plausible sender identity of a message (``From``,
  ``Reply-To``, ``Sender``) and decide whether any of them contains a
  user-supplied filter string.

Why:
  Automated mail often carries a system address in ``From`` while the human
  lives in ``Reply-To`` or ``Sender``, and IMAP ``SEARCH FROM`` is unreliable
  for non-ASCII display names. Local matching over all candidates fixes both.

How:
  Header values parsed with the ``email`` default policy expose structured
  addresses; each header contributes its full text plus every display name
  and address spec. Matching case-folds, NFC-normalises and collapses
  whitespace on both sides before a plain substring test.

Interfaces:
  :func:`normalize_text`, :func:`sender_matches`,
  :func:`extract_sender_candidates`, :func:`envelope_address_text`,
  :func:`decode_header_value`.

Invariants & Safety:
  - An empty or absent filter matches everything.
  - No fuzzy or edit-distance matching is performed.
  - Malformed headers are skipped; extraction never raises.
"""
from __future__ import annotations

import re
import unicodedata
from email.header import decode_header, make_header
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Iterable, List, Optional, Sequence

SENDER_HEADERS = ("from", "reply-to", "sender")

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Fold case, normalise Unicode and collapse whitespace runs."""

    if not value:
        return ""
    text = unicodedata.normalize("NFC", str(value)).casefold()
    return _WHITESPACE.sub(" ", text).strip()


def sender_matches(candidates: Iterable[str], needle: Optional[str]) -> bool:
    """Return ``True`` when any candidate contains ``needle``.

    Examples:
      >>> sender_matches({"Alice <alice@x.com>"}, "alice")
      True
      >>> sender_matches({"Bob <bob@x.com>"}, "ALICE")
      False
    """

    wanted = normalize_text(needle)
    if not wanted:
        return True
    return any(wanted in normalize_text(candidate) for candidate in candidates)


def decode_header_value(value: Any) -> str:
    """Decode raw or RFC 2047 encoded header bytes into text."""

    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value)
    if "=?" not in text:
        return text
    try:
        return str(make_header(decode_header(text)))
    except (UnicodeError, LookupError, ValueError):
        return text


def _envelope_parts(address: Any) -> tuple[str, str]:
    name = decode_header_value(getattr(address, "name", None)).strip()
    mailbox = decode_header_value(getattr(address, "mailbox", None)).strip()
    host = decode_header_value(getattr(address, "host", None)).strip()
    if mailbox and host:
        return name, f"{mailbox}@{host}"
    return name, mailbox or host


def envelope_address_text(addresses: Optional[Sequence[Any]]) -> Optional[str]:
    """Render the first envelope address as ``Name <user@host>``.

    Args:
      addresses: Tuple of ``imapclient`` :class:`Address` entries (or ``None``).

    Returns:
      Display string, or ``None`` when nothing usable is present.
    """

    for address in addresses or ():
        name, spec = _envelope_parts(address)
        if spec or name:
            return formataddr((name, spec)) if spec else name
    return None


def _header_candidates(message: EmailMessage, name: str) -> List[str]:
    found: List[str] = []
    try:
        header = message.get(name)
        if header is None:
            return found
        found.append(str(header))
        for address in getattr(header, "addresses", ()):
            found.append(address.display_name)
            found.append(address.addr_spec)
    except Exception:  # malformed header values raise from the header registry
        return found
    return found


def _envelope_candidates(envelope: Any) -> List[str]:
    found: List[str] = []
    for attribute in ("from_", "reply_to", "sender"):
        addresses = getattr(envelope, attribute, None) or ()
        for address in addresses:
            name, spec = _envelope_parts(address)
            if name and spec:
                found.append(formataddr((name, spec)))
            found.extend([name, spec])
    return found


def extract_sender_candidates(message: Optional[EmailMessage], envelope: Any = None) -> frozenset[str]:
    """Build the deduplicated sender candidate set of one message.

    What:
      Gathers full header text, display names and addresses from ``From``,
      ``Reply-To`` and ``Sender``.

    Why:
      Matching against every identity lets ``"张三"`` find a message whose
      ``From`` is a mailing-list robot but whose ``Reply-To`` is the person.

    How:
      Reads the parsed body headers first; when they yield nothing (missing
      or unparsable source) the envelope addresses are used instead. Strings
      are trimmed and empty ones dropped.

    Args:
      message: Parsed message, or ``None`` when the source was unavailable.
      envelope: Optional ``imapclient`` envelope used as a fallback.

    Returns:
      Frozen set of candidate strings.
    """

    raw: List[str] = []
    if message is not None:
        for name in SENDER_HEADERS:
            raw.extend(_header_candidates(message, name))
    if not any(item and item.strip() for item in raw) and envelope is not None:
        raw.extend(_envelope_candidates(envelope))
    return frozenset(item.strip() for item in raw if item and item.strip())
