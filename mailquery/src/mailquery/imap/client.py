"""Read-only IMAP gateway consumed by the query planner.

What:
  Wrap the third-party ``imapclient`` library behind the three operations the
  planner relies on: scoped connection, indexed search, and batched fetch.

Why:
  Direct use of ``imapclient`` exposes sharp edges: exceptions from
  ``imaplib``, sockets and TLS mixed together, accidental ``\\Seen`` updates
  through ``RFC822`` fetches, and timestamps silently shifted to the host's
  zone. Centralised guardrails keep every query predictable and make the
  planner testable against an in-memory double.

How:
  :class:`ImapConfig` is an explicit configuration object (no process-wide
  lookups). :class:`MailboxGateway` connects lazily, selects the mailbox in
  read-only mode, maps failures onto :mod:`mailquery.errors`, and streams
  messages in fixed-size batches using ``BODY.PEEK[]``.

Interfaces:
  :class:`ImapConfig`, :class:`MailboxGateway`.

Invariants & Safety:
  - All operations run in UID mode on a read-only selection.
  - The connection is released exactly once, on success and on failure.
  - ``fetch_many`` is a finite, single-pass iterator; its order follows the
    server, not the requested UID order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError, LoginError

from ..errors import AuthenticationError, SearchRejected, TransportError
from ..query.types import RawMessage
from ..utils.logging import JsonLogger, get_logger
from .search import SearchPredicate, build_search, needs_utf8

if TYPE_CHECKING:
    from ..config.schema import RuntimeConfig

FETCH_ITEMS = [b"ENVELOPE", b"FLAGS", b"BODY.PEEK[]"]


@dataclass
class ImapConfig:
    """Connection parameters for one IMAP account.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      port: IMAP port (defaults to 993).
      ssl: Whether to use implicit TLS.
      mailbox: Folder searched by queries.
      timeout: Socket timeout in seconds.
      fetch_batch_size: Number of UIDs requested per ``FETCH`` command.
    """

    host: str
    username: str
    password: str = field(repr=False)
    port: int = 993
    ssl: bool = True
    mailbox: str = "INBOX"
    timeout: float = 10.0
    fetch_batch_size: int = 50

    @classmethod
    def from_settings(cls, runtime: RuntimeConfig) -> "ImapConfig":
        """Build a config from validated runtime settings."""

        imap = runtime.imap
        return cls(
            host=imap.host,
            username=imap.username or "",
            password=imap.password.get_secret_value() if imap.password else "",
            port=imap.port,
            ssl=imap.ssl,
            mailbox=imap.mailbox,
            timeout=imap.timeout_s,
            fetch_batch_size=imap.fetch_batch_size,
        )


def _first(data: Dict[Any, Any], *keys: bytes) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


class MailboxGateway:
    """Scoped, read-only access to one mailbox.

    What:
      Owns a single ``imapclient.IMAPClient`` connection for the duration of
      one query.

    Why:
      Each query acquires, uses and releases its own connection; sharing is
      never needed and would complicate failure handling.

    How:
      :meth:`connect` logs in and selects the mailbox; :meth:`release` logs
      out (or shuts the socket down when logout fails). The context manager
      protocol maps onto these two methods.
    """

    def __init__(self, config: ImapConfig, *, logger: Optional[JsonLogger] = None):
        self._config = config
        self._client: Optional[IMAPClient] = None
        self._log = logger or get_logger("mailquery.imap")

    def __enter__(self) -> "MailboxGateway":
        return self.connect()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def config(self) -> ImapConfig:
        return self._config

    @property
    def client(self) -> IMAPClient:
        """Expose the underlying ``IMAPClient`` connection.

        Raises:
          RuntimeError: If accessed before :meth:`connect`.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    def connect(self) -> "MailboxGateway":
        """Open the connection, log in and select the mailbox read-only.

        What:
          Establishes the session used by :meth:`search` and
          :meth:`fetch_many`.

        Why:
          Credentials are static configuration; a rejection is reported as
          :class:`AuthenticationError` so callers do not retry, while network
          failures become :class:`TransportError`.

        How:
          Refuses empty credentials before touching the network. On any
          failure after the socket is opened, the connection is torn down
          before the mapped error is raised, so no session leaks when
          ``__exit__`` is never reached.

        Returns:
          ``self`` for use in ``with`` statements.

        Raises:
          AuthenticationError: Credentials missing or rejected.
          TransportError: Connection, TLS or protocol failure.
        """

        if self._client is not None:
            return self
        config = self._config
        if not config.username or not config.password:
            raise AuthenticationError("mailbox credentials are not configured")
        try:
            client = IMAPClient(config.host, port=config.port, ssl=config.ssl, timeout=config.timeout)
        except OSError as exc:
            self._log.error("mailbox connect failed", host=config.host, error=type(exc).__name__)
            raise TransportError(f"cannot connect to {config.host}:{config.port}: {exc}") from exc
        # Keep server-provided offsets on envelope dates.
        client.normalise_times = False
        self._client = client
        try:
            client.login(config.username, config.password)
            client.select_folder(config.mailbox, readonly=True)
        except LoginError as exc:
            self._teardown()
            self._log.error("mailbox login rejected", host=config.host)
            raise AuthenticationError(f"login rejected by {config.host}") from exc
        except (IMAPClientError, OSError) as exc:
            self._teardown()
            self._log.error("mailbox session failed", host=config.host, error=type(exc).__name__)
            raise TransportError(f"cannot open {config.mailbox} on {config.host}: {exc}") from exc
        return self

    def release(self) -> None:
        """Log out and drop the connection; a no-op when not connected."""

        if self._client is None:
            return
        try:
            self._client.logout()
        except (IMAPClientError, OSError) as exc:
            self._log.warning("mailbox logout failed", error=type(exc).__name__)
            self._teardown()
        finally:
            self._client = None

    def _teardown(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.shutdown()
        except OSError:
            pass

    def search(self, predicate: SearchPredicate) -> List[int]:
        """Run an indexed ``UID SEARCH`` for ``predicate``.

        Returns:
          Matching UIDs in ascending order.

        Raises:
          SearchRejected: The server answered ``NO``/``BAD``.
          TransportError: The connection dropped.
        """

        criteria = build_search(predicate)
        charset = "UTF-8" if needs_utf8(criteria) else None
        try:
            uids = self.client.search(criteria, charset=charset)
        except IMAPClientAbortError as exc:
            raise TransportError(f"connection lost during search: {exc}") from exc
        except IMAPClientError as exc:
            raise SearchRejected(f"search rejected by server: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"connection lost during search: {exc}") from exc
        return sorted(int(uid) for uid in uids)

    def fetch_many(self, uids: Iterable[int]) -> Iterator[RawMessage]:
        """Stream envelope, flags and source of ``uids`` batch by batch.

        Messages the server no longer holds are skipped. The iterator is
        lazy: a batch is requested only once the previous one is consumed.

        Raises:
          TransportError: The connection dropped or a ``FETCH`` failed.
        """

        pending = list(uids)
        size = max(1, self._config.fetch_batch_size)
        for start in range(0, len(pending), size):
            batch = pending[start:start + size]
            try:
                response = self.client.fetch(batch, FETCH_ITEMS)
            except (IMAPClientError, OSError) as exc:
                raise TransportError(f"fetch failed: {exc}") from exc
            for uid, data in response.items():
                flags = data.get(b"FLAGS")
                yield RawMessage(
                    uid=int(uid),
                    source=_first(data, b"BODY[]", b"RFC822"),
                    envelope=data.get(b"ENVELOPE"),
                    flags=tuple(flags) if flags is not None else None,
                )
