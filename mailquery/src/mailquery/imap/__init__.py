"""Facade for the IMAP integration layer.

What:
  Surface the :class:`~mailquery.imap.client.ImapConfig` data class, the
  :class:`~mailquery.imap.client.MailboxGateway` context manager and the
  search predicate used by the planner.

Why:
  Keeping the import surface minimal lets the planner depend on the gateway
  contract without reaching into helper modules.

Interfaces:
  ``ImapConfig``, ``MailboxGateway``, ``SearchPredicate``, ``build_search``.
"""

from .client import ImapConfig, MailboxGateway
from .search import SearchPredicate, build_search

__all__ = ["ImapConfig", "MailboxGateway", "SearchPredicate", "build_search"]
