"""Pytest fixtures for unit tests requiring IMAP fakes.

What:
  Make ``tests/unit`` importable and expose fixtures backed by
  :class:`FakeImapBackend`: the backend itself, a gateway wired to it, and a
  string-backed logger.

Why:
  Gateway and planner tests assert on backend state (calls, release counters)
  while driving the real :class:`MailboxGateway`. A fresh fake per test keeps
  message flows deterministic and offline.

How:
  Append the unit directory to ``sys.path`` for local imports and monkeypatch
  ``mailquery.imap.client.IMAPClient`` so the gateway constructs the fake.

Interfaces:
  :func:`imap_backend`, :func:`gateway`, :func:`log_stream`, :func:`logger`.
"""

import io
import sys
from pathlib import Path

import pytest

from mailquery.imap.client import ImapConfig, MailboxGateway
from mailquery.utils.logging import JsonLogger

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def imap_backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    """Return a fake backend that every new gateway connection will use."""

    backend = FakeImapBackend()
    monkeypatch.setattr(
        "mailquery.imap.client.IMAPClient",
        lambda host, port=993, ssl=True, timeout=None, **_: backend,
    )
    return backend


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> JsonLogger:
    """JSON logger writing into :func:`log_stream`."""

    return JsonLogger(stream=log_stream, component="test")


@pytest.fixture
def gateway(imap_backend: FakeImapBackend, logger: JsonLogger) -> MailboxGateway:
    """Unconnected gateway using dummy credentials and two-message batches."""

    config = ImapConfig(
        host="localhost",
        username="user",
        password="pass",
        fetch_batch_size=2,
    )
    return MailboxGateway(config, logger=logger)
