"""Plan and execute mailbox queries.

What:
  Orchestrate one query: validate the window, run the indexed search, choose
  between the indexed path and the bounded fallback scan, then normalise,
  filter, sort and truncate the fetched messages.

Why:
  IMAP ``SEARCH`` is fast but cannot reliably match partial or non-ASCII
  sender text. The fallback trades latency, bounded by ``scan_budget``, for
  correctness on that dimension. An exhaustive scan of the whole mailbox is
  never acceptable, so a very old match outside the budget may be missed; this
  is a documented approximation.

How:
  :func:`plan_query` returns a tagged variant, :class:`IndexedPlan` or
  :class:`ScanPlan`, holding the UIDs to fetch. :func:`execute_plan` streams
  those UIDs through the normalizer (and the sender matcher for scans).
  :func:`run_query` wraps both inside the gateway's scoped connection.

Interfaces:
  :class:`IndexedPlan`, :class:`ScanPlan`, :class:`QueryOutcome`,
  :func:`build_predicate`, :func:`plan_query`, :func:`execute_plan`,
  :func:`run_query`, :func:`list_inbox`, :func:`tail`.

Invariants & Safety:
  - The scan path runs only when a sender filter is set and the indexed search
    returned nothing.
  - Results are sorted by timestamp descending (absent timestamps as the
    epoch, UID as tie-breaker) and never exceed ``limit``.
  - UIDs are assumed to grow with arrival time, so the tail of the ascending
    UID list holds the newest messages. Servers that renumber or import old
    mail break this heuristic; the final re-sort keeps the output ordered, but
    the selected window may then miss newer messages.
  - The connection is released on every exit path.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from ..errors import SearchRejected
from ..imap.search import SearchPredicate
from ..utils.logging import JsonLogger, get_logger
from .normalizer import normalize_message
from .request import FilterRequest, parse_filter_request
from .sender import sender_matches
from .types import MessageSummary, RawMessage, newest_first
from .window import DEFAULT_TIMEZONE, DateWindow, resolve_window

_LOGGER = get_logger("mailquery.planner")


class MailboxAccess(Protocol):
    """Operations the planner needs from a connected mailbox."""

    def search(self, predicate: SearchPredicate) -> List[int]:
        ...

    def fetch_many(self, uids: Iterable[int]) -> Iterable[RawMessage]:
        ...


class ScopedMailbox(Protocol):
    """A mailbox gateway that must be entered before use."""

    def __enter__(self) -> MailboxAccess:
        ...

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> Any:
        ...


@dataclass(frozen=True)
class IndexedPlan:
    """Fetch the newest ``limit`` UIDs returned by the indexed search."""

    uids: Tuple[int, ...]

    strategy = "indexed"


@dataclass(frozen=True)
class ScanPlan:
    """Fetch up to ``scan_budget`` recent UIDs and match senders locally."""

    uids: Tuple[int, ...]
    sender_filter: str

    strategy = "scanned"


QueryPlan = Union[IndexedPlan, ScanPlan]


@dataclass(frozen=True)
class QueryOutcome:
    """Result of one query plus the metadata used for logging and tests."""

    strategy: str
    messages: Tuple[MessageSummary, ...]
    inspected: int


def tail(uids: Sequence[int], count: int) -> Tuple[int, ...]:
    """Return the last ``count`` UIDs (the newest ones), or none for ``count <= 0``."""

    if count <= 0:
        return ()
    return tuple(uids[-count:])


def build_predicate(request: FilterRequest, window: Optional[DateWindow] = None) -> SearchPredicate:
    """Translate a validated request into an indexed-search predicate."""

    since = window.since if window is not None else request.since
    before = window.before if window is not None else request.before
    return SearchPredicate(
        since=since,
        before=before,
        unread_only=request.unread_only,
        sender=request.sender_filter,
    )


def plan_query(
    request: FilterRequest,
    mailbox: MailboxAccess,
    *,
    window: Optional[DateWindow] = None,
    logger: Optional[JsonLogger] = None,
) -> QueryPlan:
    """Run the indexed search and select the execution strategy.

    What:
      Returns :class:`ScanPlan` when a sender filter is set and the indexed
      search found nothing, otherwise :class:`IndexedPlan`.

    Why:
      Separating strategy selection from execution lets each branch be tested
      in isolation against a recording gateway.

    How:
      The first search includes the sender. A server rejection of that search
      (typically a ``BAD`` for non-ASCII criteria) counts as an empty result.
      The fallback repeats the search without the sender and keeps the newest
      ``scan_budget`` UIDs.

    Args:
      request: Validated filter request.
      mailbox: Connected gateway.
      window: Pre-validated window; derived from ``request`` when omitted.
      logger: Optional logger override.

    Returns:
      The selected plan.

    Raises:
      TransportError: The connection failed during a search.
    """

    log = logger or _LOGGER
    predicate = build_predicate(request, window)
    try:
        matched = mailbox.search(predicate)
    except SearchRejected as exc:
        if predicate.sender is None:
            raise
        log.warning("sender search rejected", error=str(exc))
        matched = []
    if request.sender_filter and not matched:
        broader = mailbox.search(predicate.without_sender())
        plan: QueryPlan = ScanPlan(
            uids=tail(broader, request.scan_budget),
            sender_filter=request.sender_filter,
        )
        log.info("fallback scan selected", candidates=len(broader), inspecting=len(plan.uids))
        return plan
    return IndexedPlan(uids=tail(matched, request.limit))


def execute_plan(
    plan: QueryPlan,
    mailbox: MailboxAccess,
    limit: int,
    *,
    logger: Optional[JsonLogger] = None,
) -> QueryOutcome:
    """Fetch, normalise, filter, sort and truncate according to ``plan``.

    The fetch order is irrelevant: results are re-sorted before truncation.
    """

    log = logger or _LOGGER
    if not plan.uids:
        return QueryOutcome(strategy=plan.strategy, messages=(), inspected=0)
    kept: List[MessageSummary] = []
    inspected = 0
    for raw in mailbox.fetch_many(plan.uids):
        inspected += 1
        normalized = normalize_message(raw, logger=log)
        if isinstance(plan, ScanPlan) and not sender_matches(
            normalized.sender_candidates, plan.sender_filter
        ):
            continue
        kept.append(normalized.summary)
    return QueryOutcome(
        strategy=plan.strategy,
        messages=tuple(newest_first(kept, limit)),
        inspected=inspected,
    )


def run_query(
    request: Union[FilterRequest, dict, None],
    gateway: ScopedMailbox,
    *,
    tz: Union[tzinfo, str] = DEFAULT_TIMEZONE,
    logger: Optional[JsonLogger] = None,
) -> QueryOutcome:
    """Validate ``request`` and execute it over a scoped gateway connection.

    What:
      The single entry point used by the tool registry and the CLI.

    Why:
      Validation must complete before any network use, and the connection
      must be released whatever happens afterwards.

    How:
      Parse the request and resolve the window in the owner's zone first,
      then enter the gateway context, plan and execute. Authentication and
      transport errors propagate unchanged; no partial result is returned.

    Raises:
      ValidationError: Malformed request (before connecting).
      AuthenticationError: Credentials missing or rejected.
      TransportError: Connection or protocol failure.
    """

    log = logger or _LOGGER
    validated = parse_filter_request(request)
    window = resolve_window(validated.since, validated.before, tz)
    log.info(
        "query started",
        since=window.since_at.isoformat() if window.since_at else None,
        before=window.before_at.isoformat() if window.before_at else None,
        unread_only=validated.unread_only,
        sender_filter=validated.sender_filter,
        limit=validated.limit,
    )
    with gateway as mailbox:
        plan = plan_query(validated, mailbox, window=window, logger=log)
        outcome = execute_plan(plan, mailbox, validated.limit, logger=log)
    log.info(
        "query completed",
        strategy=outcome.strategy,
        inspected=outcome.inspected,
        returned=len(outcome.messages),
    )
    return outcome


def list_inbox(
    request: Union[FilterRequest, dict, None],
    gateway: ScopedMailbox,
    *,
    tz: Union[tzinfo, str] = DEFAULT_TIMEZONE,
    logger: Optional[JsonLogger] = None,
) -> List[MessageSummary]:
    """Return the newest-first summaries matching ``request``."""

    return list(run_query(request, gateway, tz=tz, logger=logger).messages)
