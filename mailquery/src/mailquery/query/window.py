"""Calendar-date window validation anchored to the mailbox owner's zone.

What:
  Parse the optional ``since``/``before`` boundaries of a query and enforce
  that ``since`` is strictly earlier than ``before``.

Why:
  Dates arrive as loosely formatted strings from the agent layer. Interpreting
  them in the host's zone would shift the window by a day whenever the host and
  the mailbox owner live in different zones, so every boundary is anchored to
  one configured zone.

How:
  Strings must match ``yyyy-mm-dd`` exactly and form a real calendar date. The
  resulting :class:`DateWindow` keeps plain :class:`datetime.date` values for
  IMAP ``SINCE``/``BEFORE`` criteria and exposes zone-aware midnights for
  logging and display.

Interfaces:
  :class:`DateWindow`, :func:`parse_calendar_date`, :func:`resolve_window`,
  :func:`today_window`, :func:`load_zone`.

Invariants & Safety:
  - ``before`` is exclusive: a window ``2025-01-10`` .. ``2025-01-11`` covers
    exactly January 10th.
  - An explicitly supplied but malformed boundary is an error, never dropped.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import InvalidDateFormat, InvalidWindowOrder

DEFAULT_TIMEZONE = "Asia/Shanghai"

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class DateWindow:
    """Validated query window.

    Attributes:
      since: First included day, or ``None`` for an open start.
      before: First excluded day, or ``None`` for an open end.
      tz: Zone in which both days are interpreted.
    """

    since: Optional[date]
    before: Optional[date]
    tz: tzinfo

    @property
    def since_at(self) -> Optional[datetime]:
        """Midnight of ``since`` in the owner's zone."""

        if self.since is None:
            return None
        return datetime.combine(self.since, time.min, tzinfo=self.tz)

    @property
    def before_at(self) -> Optional[datetime]:
        """Midnight of ``before`` in the owner's zone."""

        if self.before is None:
            return None
        return datetime.combine(self.before, time.min, tzinfo=self.tz)

    def contains(self, moment: datetime) -> bool:
        """Return whether ``moment`` falls inside the half-open window."""

        since_at = self.since_at
        before_at = self.before_at
        if since_at is not None and moment < since_at:
            return False
        if before_at is not None and moment >= before_at:
            return False
        return True


def load_zone(name: str) -> tzinfo:
    """Resolve an IANA zone name, raising :class:`ValueError` when unknown."""

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown time zone {name!r}") from exc


def parse_calendar_date(value: Union[str, date, None], field: str) -> Optional[date]:
    """Parse one date boundary.

    What:
      Convert a ``yyyy-mm-dd`` string (or an existing :class:`date`) into a
      :class:`date`.

    Why:
      The agent layer is expected to do the natural-language interpretation;
      this layer only checks the format so that typos fail loudly.

    How:
      ``None`` passes through. Datetimes are rejected because their time part
      would be silently discarded. Strings must match the fixed pattern and
      then survive :meth:`date.fromisoformat`, which rejects impossible days
      such as ``2025-02-30``.

    Args:
      value: Raw boundary.
      field: Field name used in the error message.

    Returns:
      The parsed day or ``None``.

    Raises:
      InvalidDateFormat: When ``value`` is not a valid calendar date.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        raise InvalidDateFormat(field, value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        raise InvalidDateFormat(field, value)
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDateFormat(field, value) from exc


def resolve_window(
    since: Union[str, date, None],
    before: Union[str, date, None],
    tz: Union[tzinfo, str] = DEFAULT_TIMEZONE,
) -> DateWindow:
    """Validate both boundaries and their ordering.

    Raises:
      InvalidDateFormat: When a boundary is malformed.
      InvalidWindowOrder: When ``since >= before``.
    """

    zone = load_zone(tz) if isinstance(tz, str) else tz
    since_day = parse_calendar_date(since, "since")
    before_day = parse_calendar_date(before, "before")
    if since_day is not None and before_day is not None and since_day >= before_day:
        raise InvalidWindowOrder(since_day.isoformat(), before_day.isoformat())
    return DateWindow(since=since_day, before=before_day, tz=zone)


def today_window(tz: Union[tzinfo, str] = DEFAULT_TIMEZONE, now: Optional[datetime] = None) -> DateWindow:
    """Return an open-ended window starting at the owner's local midnight."""

    zone = load_zone(tz) if isinstance(tz, str) else tz
    current = now.astimezone(zone) if now is not None else datetime.now(zone)
    return DateWindow(since=current.date(), before=None, tz=zone)
