"""Mailbox query engine.

What:
  Expose the request model, the planner entry points and the summary type.

Interfaces:
  ``FilterRequest``, ``parse_filter_request``, ``MessageSummary``,
  ``run_query``, ``list_inbox``, ``QueryOutcome``, ``sender_matches``,
  ``resolve_window``.
"""

from .planner import QueryOutcome, list_inbox, run_query
from .request import FilterRequest, parse_filter_request
from .sender import sender_matches
from .types import MessageSummary
from .window import resolve_window

__all__ = [
    "FilterRequest",
    "parse_filter_request",
    "MessageSummary",
    "QueryOutcome",
    "run_query",
    "list_inbox",
    "sender_matches",
    "resolve_window",
]
