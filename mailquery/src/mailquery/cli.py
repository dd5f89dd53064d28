"""mailquery command-line interface.

What:
  Provide a Typer-based entry point exposing the agent tools to operators:
  ``list`` (filtered inbox listing), ``today`` (today's messages) and
  ``tools`` (tool descriptions for prompt authors).

Why:
  Operators debugging an assistant conversation need to replay exactly what
  the agent asked for. Routing the CLI through :func:`mailquery.tools.invoke_tool`
  guarantees the same validation, fallback and error semantics.

How:
  Each command assembles a tool payload from its options, loads the runtime
  configuration, invokes the tool and prints the JSON result on stdout.
  Errors are printed on stderr with their kind.

Interfaces:
  ``app`` (Typer application), ``list_command``, ``today_command``,
  ``tools_command``, ``main``.

Invariants & Safety:
  - Exit codes: ``0`` success, ``2`` invalid request, ``1`` configuration or
    mailbox failure.
  - Only the JSON result is written to stdout; logs go to stderr.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .config.loader import ConfigLoadError, load_runtime_config
from .errors import MailQueryError, ValidationError
from .tools import describe_tools, invoke_tool


app = typer.Typer(help="Query a mailbox the way the chat assistant does")

LOGGER = logging.getLogger("mailquery.cli")

_CONFIG_OPTION = typer.Option(None, "--config", help="Path to config.yaml")


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _run(tool: str, payload: Dict[str, Any], config: Optional[Path]) -> None:
    LOGGER.debug("invoking %s", tool)
    try:
        runtime = load_runtime_config(config)
        result = invoke_tool(tool, payload, runtime=runtime)
    except ValidationError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=2)
    except (ConfigLoadError, MailQueryError) as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1)
    _emit(result)


@app.command("list")
def list_command(
    since: Optional[str] = typer.Option(None, help="First included day (yyyy-mm-dd)"),
    before: Optional[str] = typer.Option(None, help="First excluded day (yyyy-mm-dd)"),
    unread_only: bool = typer.Option(False, "--unread-only", help="Only unread messages"),
    sender: Optional[str] = typer.Option(None, "--from", help="Sender address or name fragment"),
    limit: int = typer.Option(10, help="Maximum number of summaries (1-200)"),
    scan: int = typer.Option(2000, help="Fallback scan budget (0-20000)"),
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List inbox summaries matching the given filters."""

    payload: Dict[str, Any] = {"limit": limit, "scan": scan, "unreadOnly": unread_only}
    if since is not None:
        payload["since"] = since
    if before is not None:
        payload["before"] = before
    if sender is not None:
        payload["from"] = sender
    _run("mail.listInbox", payload, config)


@app.command("today")
def today_command(
    limit: int = typer.Option(10, help="Maximum number of summaries (1-200)"),
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List messages received since midnight in the owner's time zone."""

    _run("mail.listTodayInbox", {"limit": limit}, config)


@app.command("tools")
def tools_command() -> None:
    """Print the registered tool descriptions."""

    _emit(describe_tools())


def main() -> None:
    """Console-script entry point."""

    logging.basicConfig(level=logging.WARNING)
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
