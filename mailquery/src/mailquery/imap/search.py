"""Translate query predicates into IMAP search criteria.

What:
  Provide :class:`SearchPredicate`, the gateway-facing description of an
  indexed search, and :func:`build_search`, which renders it as the criteria
  list consumed by ``imapclient``.

Why:
  Keeping the translation in one place makes criteria deterministic and easy
  to unit test, and confines the IMAP date semantics (``SINCE`` inclusive,
  ``BEFORE`` exclusive, both date-only) to a single module.

How:
  Each populated predicate field appends a keyword and, where needed, a value.
  ``imapclient`` formats :class:`datetime.date` values as ``DD-Mon-YYYY``.

Interfaces:
  :class:`SearchPredicate`, :func:`build_search`, :func:`needs_utf8`.

Invariants & Safety:
  - Only whitelisted keywords are emitted; user text only ever appears as the
    value of ``FROM``.
  - An empty predicate renders as ``["ALL"]``.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional


@dataclass(frozen=True)
class SearchPredicate:
    """Server-side filter for one indexed search.

    Attributes:
      since: First included day.
      before: First excluded day.
      unread_only: Emit ``UNSEEN`` when true.
      sender: Text for ``FROM``; servers may ignore or mishandle non-ASCII.
    """

    since: Optional[date] = None
    before: Optional[date] = None
    unread_only: bool = False
    sender: Optional[str] = None

    def without_sender(self) -> "SearchPredicate":
        """Return the same predicate with the sender criterion removed."""

        return replace(self, sender=None)


def build_search(predicate: SearchPredicate) -> List[object]:
    """Convert ``predicate`` into ``imapclient`` search criteria.

    Args:
      predicate: Filter to translate.

    Returns:
      Flat criteria list such as ``["SINCE", date(2025, 1, 10), "UNSEEN"]``.
    """

    criteria: List[object] = []
    if predicate.since is not None:
        criteria.extend(["SINCE", predicate.since])
    if predicate.before is not None:
        criteria.extend(["BEFORE", predicate.before])
    if predicate.unread_only:
        criteria.append("UNSEEN")
    if predicate.sender:
        criteria.extend(["FROM", predicate.sender])
    return criteria or ["ALL"]


def needs_utf8(criteria: List[object]) -> bool:
    """Return whether any textual criterion contains non-ASCII characters."""

    return any(isinstance(item, str) and not item.isascii() for item in criteria)
