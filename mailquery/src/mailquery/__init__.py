"""
Module: mailquery.__init__

What:
  Package root of the mailbox query engine used by the chat assistant's
  mail tools.

Interfaces:
  - config: Runtime configuration schema and loader.
  - imap: Read-only IMAP gateway and search criteria.
  - query: Request validation, planning, normalisation and matching.
  - tools: Tool registry invoked by the agent layer.
  - utils: Logging and MIME helpers.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "imap",
    "query",
    "tools",
    "utils",
]
