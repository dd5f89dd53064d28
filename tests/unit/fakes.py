"""In-memory IMAP doubles used by unit tests.

What:
  Provide :class:`FakeImapBackend`, a drop-in replacement for
  :class:`imapclient.IMAPClient`, :class:`FakeGateway`, a recording stand-in
  for :class:`mailquery.imap.client.MailboxGateway`, and message builders.

Why:
  Unit tests must exercise search, fetch and release behaviour without
  contacting real servers, and must be able to reproduce server quirks:
  non-ASCII ``FROM`` searches that match nothing or are rejected, fetch
  responses in arbitrary order, and dropped connections.

How:
  Messages are stored as raw RFC822 bytes with real ``imapclient`` envelope
  and address tuples. The backend evaluates the small criteria subset built
  by :func:`mailquery.imap.search.build_search`; the gateway double answers
  searches from configurable hit lists and yields fetches in reverse order.

Interfaces:
  :class:`FakeImapBackend`, :class:`FakeGateway`, :func:`make_message`,
  :func:`envelope_for`, :func:`raw_message`.

Invariants & Safety:
  - UIDs increment monotonically per backend instance.
  - Methods avoid network calls and operate solely on in-memory data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import format_datetime, getaddresses
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from imapclient.exceptions import IMAPClientAbortError, IMAPClientError, LoginError
from imapclient.response_types import Address, Envelope

from mailquery.errors import TransportError
from mailquery.imap.search import SearchPredicate
from mailquery.query.types import RawMessage

SEEN = b"\\Seen"


def make_message(
    *,
    sender: Optional[str] = "Alice <alice@x.com>",
    subject: Optional[str] = "Hello",
    sent_at: Optional[datetime] = datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc),
    body: Optional[str] = "Hi there,\n\n  see   you soon.",
    reply_to: Optional[str] = None,
    on_behalf_of: Optional[str] = None,
    html: Optional[str] = None,
) -> bytes:
    """Build RFC822 bytes for a message with the given headers and parts."""

    message = EmailMessage(policy=policy.default)
    if sender is not None:
        message["From"] = sender
    if reply_to is not None:
        message["Reply-To"] = reply_to
    if on_behalf_of is not None:
        message["Sender"] = on_behalf_of
    message["To"] = "owner@example.test"
    if subject is not None:
        message["Subject"] = subject
    if sent_at is not None:
        message["Date"] = format_datetime(sent_at)
    if body is not None:
        message.set_content(body)
        if html is not None:
            message.add_alternative(html, subtype="html")
    elif html is not None:
        message.set_content(html, subtype="html")
    return message.as_bytes()


def _addresses(value: Optional[str]) -> Optional[Tuple[Address, ...]]:
    if not value:
        return None
    result = []
    for name, spec in getaddresses([value]):
        mailbox, _, host = spec.partition("@")
        result.append(
            Address(name.encode("utf-8") if name else None, None, mailbox.encode(), host.encode())
        )
    return tuple(result)


def envelope_for(source: bytes, *, date_override: Optional[datetime] = None) -> Envelope:
    """Derive an ``imapclient`` envelope from RFC822 bytes."""

    message = BytesParser(policy=policy.default).parsebytes(source)
    header_date = message["Date"].datetime if message["Date"] is not None else None
    sender = str(message["From"]) if message["From"] is not None else None
    return Envelope(
        date_override or header_date,
        str(message["Subject"]).encode("utf-8") if message["Subject"] is not None else None,
        _addresses(sender),
        _addresses(str(message["Sender"])) if message["Sender"] is not None else None,
        _addresses(str(message["Reply-To"])) if message["Reply-To"] is not None else None,
        _addresses(str(message["To"])) if message["To"] is not None else None,
        None,
        None,
        None,
        None,
    )


def raw_message(uid: int, *, seen: Optional[bool] = False, with_envelope: bool = True, **kwargs) -> RawMessage:
    """Build a :class:`RawMessage` as the gateway would yield it."""

    source = make_message(**kwargs)
    flags: Optional[Tuple[bytes, ...]]
    if seen is None:
        flags = None
    else:
        flags = (SEEN,) if seen else ()
    return RawMessage(
        uid=uid,
        source=source,
        envelope=envelope_for(source) if with_envelope else None,
        flags=flags,
    )


@dataclass
class _StoredMessage:
    uid: int
    source: bytes
    envelope: Envelope
    flags: Tuple[bytes, ...]
    received: date


class FakeImapBackend:
    """Minimal IMAP backend satisfying the subset the gateway relies upon.

    Attributes:
      messages: Stored messages keyed by UID.
      calls: Ordered log of ``(method, args...)`` tuples.
      logouts / shutdowns: Release counters used by lifecycle tests.
    """

    def __init__(
        self,
        *,
        reject_login: bool = False,
        reject_utf8_search: bool = False,
        drop_on_fetch: bool = False,
    ) -> None:
        self.messages: Dict[int, _StoredMessage] = {}
        self.calls: List[tuple] = []
        self.reject_login = reject_login
        self.reject_utf8_search = reject_utf8_search
        self.drop_on_fetch = drop_on_fetch
        self.normalise_times = True
        self.selected: Optional[str] = None
        self.readonly: Optional[bool] = None
        self.logouts = 0
        self.shutdowns = 0
        self.uid_counter = 1

    # Test helpers -------------------------------------------------------
    def add(self, source: bytes, *, seen: bool = False, received: Optional[date] = None) -> int:
        """Store ``source`` under the next UID and return it."""

        uid = self.uid_counter
        self.uid_counter += 1
        envelope = envelope_for(source)
        if received is None:
            received = envelope.date.date() if envelope.date else date(2025, 1, 1)
        self.messages[uid] = _StoredMessage(
            uid=uid,
            source=source,
            envelope=envelope,
            flags=(SEEN,) if seen else (),
            received=received,
        )
        return uid

    # Session management -------------------------------------------------
    def login(self, username: str, password: str) -> None:
        self.calls.append(("login", username))
        if self.reject_login:
            raise LoginError("[AUTHENTICATIONFAILED] Invalid credentials")

    def select_folder(self, name: str, readonly: bool = False) -> dict:
        self.calls.append(("select_folder", name, readonly))
        self.selected = name
        self.readonly = readonly
        return {b"EXISTS": len(self.messages)}

    def logout(self) -> None:
        self.calls.append(("logout",))
        self.logouts += 1

    def shutdown(self) -> None:
        self.calls.append(("shutdown",))
        self.shutdowns += 1

    # Message operations -------------------------------------------------
    def search(self, criteria="ALL", charset=None) -> List[int]:
        """Evaluate the criteria subset produced by ``build_search``.

        ``FROM`` matches ASCII text case-insensitively against the raw
        ``From`` header and never matches non-ASCII text, mimicking servers
        that mishandle internationalised searches.
        """

        tokens = list(criteria) if not isinstance(criteria, str) else [criteria]
        self.calls.append(("search", tokens, charset))
        if charset and self.reject_utf8_search:
            raise IMAPClientError("SEARCH command error: BAD [b'Unsupported charset']")
        matches = []
        for uid, stored in sorted(self.messages.items()):
            if self._matches(stored, tokens):
                matches.append(uid)
        return matches

    def _matches(self, stored: _StoredMessage, tokens: Sequence[object]) -> bool:
        index = 0
        while index < len(tokens):
            keyword = tokens[index]
            if keyword == "ALL":
                index += 1
            elif keyword == "UNSEEN":
                if SEEN in stored.flags:
                    return False
                index += 1
            elif keyword == "SINCE":
                if stored.received < tokens[index + 1]:
                    return False
                index += 2
            elif keyword == "BEFORE":
                if stored.received >= tokens[index + 1]:
                    return False
                index += 2
            elif keyword == "FROM":
                needle = str(tokens[index + 1])
                if not needle.isascii():
                    return False
                header = BytesParser(policy=policy.compat32).parsebytes(stored.source).get("From", "")
                if needle.lower() not in str(header).lower():
                    return False
                index += 2
            else:
                raise IMAPClientError(f"unsupported criterion {keyword!r}")
        return True

    def fetch(self, uids: Iterable[int], parts: Iterable[bytes | str]) -> Dict[int, Dict[bytes, object]]:
        """Return requested parts for ``uids`` in descending UID order."""

        requested = [part.encode() if isinstance(part, str) else part for part in parts]
        uid_list = list(uids)
        self.calls.append(("fetch", uid_list, requested))
        if self.drop_on_fetch:
            raise IMAPClientAbortError("socket error: connection reset")
        response: Dict[int, Dict[bytes, object]] = {}
        for uid in sorted(uid_list, reverse=True):
            stored = self.messages.get(uid)
            if stored is None:
                continue
            payload: Dict[bytes, object] = {b"SEQ": uid}
            for part in requested:
                upper = part.upper()
                if upper == b"ENVELOPE":
                    payload[b"ENVELOPE"] = stored.envelope
                elif upper == b"FLAGS":
                    payload[b"FLAGS"] = stored.flags
                elif upper in {b"BODY.PEEK[]", b"BODY[]"}:
                    payload[b"BODY[]"] = stored.source
            response[uid] = payload
        return response

    def fetched_uids(self) -> List[int]:
        """Flatten every UID requested through ``fetch``."""

        return [uid for call in self.calls if call[0] == "fetch" for uid in call[1]]


@dataclass
class FakeGateway:
    """Recording double for the planner's gateway contract.

    Searches carrying a sender return ``sender_hits``; searches without one
    return every stored UID (optionally restricted to unread messages).
    Fetches yield in reverse request order.
    """

    messages: Sequence[RawMessage] = ()
    sender_hits: Sequence[int] = ()
    reject_sender_search: bool = False
    fail_after: Optional[int] = None
    searches: List[SearchPredicate] = field(default_factory=list)
    fetched: List[int] = field(default_factory=list)
    entered: int = 0
    released: int = 0

    def __enter__(self) -> "FakeGateway":
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.released += 1

    @property
    def by_uid(self) -> Dict[int, RawMessage]:
        return {message.uid: message for message in self.messages}

    def search(self, predicate: SearchPredicate) -> List[int]:
        from mailquery.errors import SearchRejected

        self.searches.append(predicate)
        if predicate.sender:
            if self.reject_sender_search:
                raise SearchRejected("BAD charset")
            return sorted(self.sender_hits)
        uids = []
        for uid, message in sorted(self.by_uid.items()):
            if predicate.unread_only and message.flags and SEEN in message.flags:
                continue
            uids.append(uid)
        return uids

    def fetch_many(self, uids: Iterable[int]) -> Iterator[RawMessage]:
        table = self.by_uid
        for count, uid in enumerate(reversed(list(uids))):
            if self.fail_after is not None and count >= self.fail_after:
                raise TransportError("connection reset by peer")
            self.fetched.append(uid)
            if uid in table:
                yield table[uid]
