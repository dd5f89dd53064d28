"""Validated filter requests accepted by the query engine.

What:
  Define :class:`FilterRequest`, the immutable description of one mailbox
  query, and :func:`parse_filter_request`, which validates the loosely typed
  payloads sent by the agent layer.

Why:
  Tool arguments are produced by a language model and arrive as arbitrary
  JSON. Unknown keys, wrong types and impossible dates must be rejected with
  an error that names the offending field, while ``limit`` and
  ``scan_budget`` are clamped instead of rejected.

How:
  A pydantic model with ``extra="forbid"`` performs the structural checks.
  ``before`` validators raise :class:`~pydantic_core.PydanticCustomError` with
  dedicated error types, which :func:`parse_filter_request` translates into
  the :mod:`mailquery.errors` taxonomy.

Interfaces:
  :class:`FilterRequest`, :func:`parse_filter_request`, ``LIMIT_RANGE``,
  ``SCAN_BUDGET_RANGE``.

Invariants & Safety:
  - ``since < before`` whenever both are present.
  - ``1 <= limit <= 200`` and ``0 <= scan_budget <= 20000`` after clamping.
  - ``sender_filter`` is trimmed, at most 120 characters, ``None`` if blank.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool
from pydantic import ValidationError as _PydanticValidationError
from pydantic import field_validator, model_validator
from pydantic_core import PydanticCustomError

from ..errors import InvalidDateFormat, InvalidFilter, InvalidWindowOrder, ValidationError
from .window import parse_calendar_date

DEFAULT_LIMIT = 10
LIMIT_RANGE = (1, 200)
DEFAULT_SCAN_BUDGET = 2000
SCAN_BUDGET_RANGE = (0, 20000)
SENDER_FILTER_MAX = 120

_FIELD_ALIASES = {
    "unreadOnly": "unread_only",
    "senderFilter": "sender_filter",
    "from": "sender_filter",
    "scanBudget": "scan_budget",
    "scan": "scan_budget",
}


def _clamp_int(value: Any, field: str, default: int, bounds: tuple) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise PydanticCustomError("invalid_filter", "{field} must be an integer", {"field": field})
    if isinstance(value, float):
        if not value.is_integer():
            raise PydanticCustomError("invalid_filter", "{field} must be an integer", {"field": field})
        value = int(value)
    if not isinstance(value, int):
        raise PydanticCustomError("invalid_filter", "{field} must be an integer", {"field": field})
    low, high = bounds
    return max(low, min(high, value))


class FilterRequest(BaseModel):
    """Immutable, validated query constraints.

    Attributes:
      since: First included day (owner's zone).
      before: First excluded day (owner's zone).
      unread_only: Restrict to messages without ``\\Seen``.
      sender_filter: Free-text sender filter.
      limit: Maximum number of summaries returned.
      scan_budget: Maximum number of messages the fallback scan inspects.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    since: Optional[date] = None
    before: Optional[date] = None
    unread_only: StrictBool = Field(
        default=False, validation_alias=AliasChoices("unread_only", "unreadOnly")
    )
    sender_filter: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sender_filter", "senderFilter", "from")
    )
    limit: int = DEFAULT_LIMIT
    scan_budget: int = Field(
        default=DEFAULT_SCAN_BUDGET,
        validation_alias=AliasChoices("scan_budget", "scanBudget", "scan"),
    )

    @field_validator("since", "before", mode="before")
    @classmethod
    def _parse_day(cls, value: Any, info) -> Optional[date]:
        try:
            return parse_calendar_date(value, info.field_name)
        except InvalidDateFormat:
            raise PydanticCustomError(
                "invalid_date_format",
                "{field} must be a yyyy-mm-dd calendar date",
                {"field": info.field_name, "value": repr(value)},
            ) from None

    @field_validator("sender_filter", mode="before")
    @classmethod
    def _trim_sender(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise PydanticCustomError("invalid_filter", "sender_filter must be a string", {})
        trimmed = value.strip()
        if not trimmed:
            return None
        if len(trimmed) > SENDER_FILTER_MAX:
            raise PydanticCustomError(
                "invalid_filter",
                "sender_filter must be at most {limit} characters",
                {"limit": SENDER_FILTER_MAX},
            )
        return trimmed

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> int:
        return _clamp_int(value, "limit", DEFAULT_LIMIT, LIMIT_RANGE)

    @field_validator("scan_budget", mode="before")
    @classmethod
    def _clamp_scan_budget(cls, value: Any) -> int:
        return _clamp_int(value, "scan_budget", DEFAULT_SCAN_BUDGET, SCAN_BUDGET_RANGE)

    @model_validator(mode="after")
    def _check_order(self) -> "FilterRequest":
        if self.since is not None and self.before is not None and self.since >= self.before:
            raise PydanticCustomError(
                "invalid_window_order",
                "since must be earlier than before",
                {"since": self.since.isoformat(), "before": self.before.isoformat()},
            )
        return self


def _translate(exc: _PydanticValidationError) -> ValidationError:
    error = exc.errors()[0]
    kind = error["type"]
    ctx = error.get("ctx") or {}
    loc = error.get("loc") or ()
    key = str(loc[0]) if loc else None
    field = _FIELD_ALIASES.get(key, key) if key else None
    if kind == "invalid_date_format":
        return InvalidDateFormat(ctx.get("field", field or "date"), ctx.get("value"))
    if kind == "invalid_window_order":
        return InvalidWindowOrder(ctx.get("since"), ctx.get("before"))
    if kind == "extra_forbidden":
        return InvalidFilter(f"unknown field {key!r}", field=key)
    return InvalidFilter(f"{field}: {error['msg']}" if field else error["msg"], field=field)


def parse_filter_request(payload: Any) -> FilterRequest:
    """Validate a loosely typed payload into a :class:`FilterRequest`.

    What:
      Accepts an existing request, ``None`` (all defaults) or a mapping using
      either snake_case names or the agent-facing aliases (``unreadOnly``,
      ``from``, ``scan``...).

    Why:
      Callers should see exactly one error type per failure, naming the
      field, rather than pydantic's aggregated report.

    How:
      Run :meth:`FilterRequest.model_validate` and translate the first
      reported error.

    Raises:
      InvalidDateFormat: A date boundary is malformed.
      InvalidWindowOrder: ``since >= before``.
      InvalidFilter: Any other malformed field or a non-mapping payload.
    """

    if isinstance(payload, FilterRequest):
        return payload
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise InvalidFilter("filter request must be a mapping")
    try:
        return FilterRequest.model_validate(dict(payload))
    except _PydanticValidationError as exc:
        raise _translate(exc) from None
