"""Error taxonomy shared by the mailbox query engine.

What:
  Define the exception hierarchy raised by request validation, the mailbox
  gateway, and the tool registry.

Why:
  The agent layer surfaces every failure as a single descriptive error. Typed
  exceptions let callers tell a malformed request apart from rejected
  credentials or a dropped connection without parsing messages.

How:
  Every error derives from :class:`MailQueryError`. Validation errors also
  derive from :class:`ValueError` and carry the offending field name so the
  message can point at it.

Interfaces:
  :class:`MailQueryError`, :class:`ValidationError`,
  :class:`InvalidDateFormat`, :class:`InvalidWindowOrder`,
  :class:`InvalidFilter`, :class:`AuthenticationError`,
  :class:`TransportError`, :class:`SearchRejected`,
  :class:`UnknownToolError`.

Invariants & Safety:
  - Validation errors are raised before any network activity.
  - Authentication and transport errors are fatal for the current query; no
    retry happens at this layer.
"""
from __future__ import annotations

from typing import Optional


class MailQueryError(Exception):
    """Base class for all mailbox query failures."""


class ValidationError(MailQueryError, ValueError):
    """Raised when a filter request is malformed.

    Attributes:
      field: Name of the offending request field, or ``None`` when the error
        concerns the request as a whole.
    """

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidDateFormat(ValidationError):
    """A date boundary is not a ``yyyy-mm-dd`` calendar date."""

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"{field} must be a yyyy-mm-dd calendar date, got {value!r}", field=field)
        self.value = value


class InvalidWindowOrder(ValidationError):
    """``since`` is not strictly earlier than ``before``."""

    def __init__(self, since: object, before: object) -> None:
        super().__init__(
            f"since must be earlier than before (before is exclusive): since={since}, before={before}",
            field="since",
        )
        self.since = since
        self.before = before


class InvalidFilter(ValidationError):
    """Any other malformed request field (wrong type, unknown key, too long)."""


class AuthenticationError(MailQueryError):
    """Credentials are missing or were rejected by the mailbox server."""


class TransportError(MailQueryError):
    """The connection dropped or the server answered with a protocol error."""


class SearchRejected(TransportError):
    """The server refused a search command (``NO``/``BAD`` response)."""


class UnknownToolError(MailQueryError, LookupError):
    """Requested tool name is not registered."""


MailboxAuthenticationFailed = AuthenticationError
MailboxUnavailable = TransportError


__all__ = [
    "MailQueryError",
    "ValidationError",
    "InvalidDateFormat",
    "InvalidWindowOrder",
    "InvalidFilter",
    "AuthenticationError",
    "TransportError",
    "SearchRejected",
    "UnknownToolError",
    "MailboxAuthenticationFailed",
    "MailboxUnavailable",
]
