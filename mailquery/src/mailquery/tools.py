"""Tool registry exposed to the chat agent.

What:
  Map tool names used by the agent's tool-invocation protocol onto the query
  engine and render results as JSON-ready dictionaries.

Why:
  The agent layer only knows tool names and loosely typed argument objects.
  A registry keeps the wiring (configuration, gateway construction, owner
  time zone) in one place so route handlers stay trivial.

How:
  Each :class:`ToolSpec` carries a description and parameter schema for the
  agent prompt plus a handler. :func:`invoke_tool` resolves the runtime
  configuration, builds a fresh gateway per call through a factory, and
  delegates to :func:`mailquery.query.planner.list_inbox`.

Interfaces:
  :class:`ToolSpec`, :data:`TOOLS`, :func:`invoke_tool`,
  :func:`describe_tools`, :func:`default_gateway_factory`.

Invariants & Safety:
  - Every invocation acquires its own connection; nothing is shared.
  - Unknown tool names raise :class:`~mailquery.errors.UnknownToolError`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config.loader import get_runtime_config
from .config.schema import RuntimeConfig
from .errors import InvalidFilter, UnknownToolError
from .imap.client import ImapConfig, MailboxGateway
from .query.planner import ScopedMailbox, list_inbox
from .query.window import today_window

GatewayFactory = Callable[[RuntimeConfig], ScopedMailbox]


def default_gateway_factory(runtime: RuntimeConfig) -> MailboxGateway:
    """Build an IMAP gateway from the runtime settings."""

    return MailboxGateway(ImapConfig.from_settings(runtime))


@dataclass(frozen=True)
class ToolSpec:
    """Registered tool: agent-facing metadata plus its handler."""

    name: str
    description: str
    parameters: Mapping[str, Mapping[str, Any]]
    handler: Callable[..., List[Dict[str, Any]]]

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {key: dict(value) for key, value in self.parameters.items()},
        }


def _list_inbox(
    payload: Mapping[str, Any],
    *,
    runtime: RuntimeConfig,
    gateway_factory: GatewayFactory,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    summaries = list_inbox(payload, gateway_factory(runtime), tz=runtime.owner.timezone)
    return [summary.to_dict() for summary in summaries]


def _list_today_inbox(
    payload: Mapping[str, Any],
    *,
    runtime: RuntimeConfig,
    gateway_factory: GatewayFactory,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    unknown = sorted(set(payload) - {"limit"})
    if unknown:
        raise InvalidFilter(f"unknown field {unknown[0]!r}", field=unknown[0])
    window = today_window(runtime.owner.timezone, now=now)
    request = {"since": window.since.isoformat(), "limit": payload.get("limit")}
    summaries = list_inbox(request, gateway_factory(runtime), tz=window.tz)
    return [summary.to_dict() for summary in summaries]


TOOLS: Dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="mail.listInbox",
            description=(
                "List inbox message summaries, newest first. since/before are yyyy-mm-dd in the "
                "mailbox owner's time zone and before is exclusive. 'from' filters by sender "
                "address or display name (partial, case-insensitive, any language); when the "
                "server cannot match it, up to 'scan' recent messages are inspected locally."
            ),
            parameters={
                "since": {"type": "string", "optional": True},
                "before": {"type": "string", "optional": True},
                "limit": {"type": "number", "default": 10},
                "unreadOnly": {"type": "boolean", "default": False},
                "from": {"type": "string", "optional": True},
                "scan": {"type": "number", "default": 2000},
            },
            handler=_list_inbox,
        ),
        ToolSpec(
            name="mail.listTodayInbox",
            description="List today's inbox message summaries (owner's time zone), newest first.",
            parameters={"limit": {"type": "number", "default": 10}},
            handler=_list_today_inbox,
        ),
    )
}


def describe_tools() -> List[Dict[str, Any]]:
    """Return name, description and parameters of every registered tool."""

    return [spec.describe() for spec in TOOLS.values()]


def invoke_tool(
    name: str,
    payload: Optional[Mapping[str, Any]] = None,
    *,
    runtime: Optional[RuntimeConfig] = None,
    gateway_factory: Optional[GatewayFactory] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Invoke the tool ``name`` with the agent-supplied ``payload``.

    What:
      Resolves the tool, the configuration and the gateway, then runs the
      handler.

    Why:
      Route handlers and the CLI share this single code path, so validation
      and error semantics are identical everywhere.

    How:
      ``runtime`` defaults to :func:`get_runtime_config`; ``gateway_factory``
      defaults to :func:`default_gateway_factory`. ``now`` pins the clock for
      the today listing.

    Raises:
      UnknownToolError: ``name`` is not registered.
      ValidationError: The payload is malformed.
      AuthenticationError: Credentials missing or rejected.
      TransportError: Connection or protocol failure.
    """

    spec = TOOLS.get(name)
    if spec is None:
        raise UnknownToolError(f"unknown tool {name!r}")
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise InvalidFilter("tool arguments must be an object")
    settings = runtime or get_runtime_config()
    factory = gateway_factory or default_gateway_factory
    return spec.handler(payload, runtime=settings, gateway_factory=factory, now=now)
