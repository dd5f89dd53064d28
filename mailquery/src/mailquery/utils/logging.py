"""Structured JSON logging with redaction of message content.

What:
  Offer a tiny facade over Python streams so every mailquery component emits
  single-line JSON log entries with consistent fields.

Why:
  Query diagnostics are grepped by operators and collected by shared
  infrastructure. A fixed layout keeps parsing trivial, and redaction keeps
  subjects, previews, filter strings and credentials out of the logs.

How:
  :class:`JsonLogger` stores a target stream and a component label. Extra
  keyword arguments are scrubbed recursively before being serialised with
  :func:`json.dump`.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every entry carries ``ts``, ``lvl``, ``msg`` and ``component``.
  - Keys listed in :data:`SENSITIVE_KEYS` are replaced with ``[redacted]``,
    including inside nested dictionaries.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset({"subject", "body", "snippet", "password", "sender_filter"})


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits one JSON object per line with timestamp, severity, component and
      optional context fields.

    Why:
      Centralising the format keeps redaction in one place and gives tests a
      stable contract to assert on.

    How:
      :meth:`log` builds the canonical payload and merges a redacted copy of
      ``extra``; :meth:`debug`, :meth:`info`, :meth:`warning` and
      :meth:`error` are thin wrappers.
    """

    stream: Any = field(default_factory=lambda: sys.stderr)
    component: str = "mailquery"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), ensure_ascii=False, default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    def child(self, component: str) -> "JsonLogger":
        """Return a logger writing to the same stream under ``component``."""

        return JsonLogger(stream=self.stream, component=component)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS and value is not None:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component``.

    Entries go to ``stderr`` so that CLI commands can keep ``stdout`` for
    their JSON results.
    """

    return JsonLogger(component=component)
