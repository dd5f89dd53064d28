"""Expose the public utility surface for mailquery.

What:
  Re-export the logging and MIME helpers used across the query engine.

Why:
  Callers import ``from mailquery.utils import get_logger`` without depending
  on module filenames.

Interfaces:
  ``get_logger``, ``JsonLogger``, ``parse_message``, ``extract_plain_text``,
  ``make_snippet``.
"""

from .logging import JsonLogger, get_logger
from .mime import extract_plain_text, make_snippet, parse_message

__all__ = [
    "JsonLogger",
    "get_logger",
    "parse_message",
    "extract_plain_text",
    "make_snippet",
]
