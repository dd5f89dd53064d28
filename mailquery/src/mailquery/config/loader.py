"""Strict loader for the mailquery runtime configuration.

What:
  Locate, parse and validate ``config.yaml`` and overlay IMAP credentials from
  the environment.

Why:
  Configuration lives outside the package and can be malformed. Centralising
  discovery and validation means the gateway always receives an explicit,
  fully validated configuration object instead of reading process-wide state.

How:
  Resolve candidate paths from an explicit argument, ``MAILQUERY_CONFIG_PATH``
  and well-known defaults. Parse YAML with ``yaml.safe_load``, validate with
  :class:`~mailquery.config.schema.RuntimeConfig`, then apply the
  ``MAILQUERY_IMAP_USERNAME`` / ``MAILQUERY_IMAP_PASSWORD`` overrides.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :class:`ConfigLoadError`,
  :class:`RuntimeConfigError`.

Invariants:
  - Every returned configuration has passed strict pydantic validation.
  - The cache honours explicit reload requests and path changes.
  - Missing credentials are not a load error; the gateway reports them as an
    authentication failure at connect time.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be located, read or validated."""


CONFIG_ENV = "MAILQUERY_CONFIG_PATH"
USERNAME_ENV = "MAILQUERY_IMAP_USERNAME"
PASSWORD_ENV = "MAILQUERY_IMAP_PASSWORD"

_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("/etc/mailquery/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    The explicit argument wins, then ``MAILQUERY_CONFIG_PATH``, then the
    default locations. Duplicates are dropped while preserving order.
    """

    seen: set[Path] = set()
    ordered = []
    if path is not None:
        ordered.append(path)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        ordered.append(Path(env_path))
    ordered.extend(_DEFAULT_LOCATIONS)
    for candidate in ordered:
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    return payload


def parse_runtime_config(
    payload: Mapping[str, Any],
    *,
    environ: Optional[Mapping[str, str]] = None,
    source: str = "<memory>",
) -> RuntimeConfig:
    """Validate ``payload`` and apply environment credential overrides.

    Args:
      payload: Decoded configuration mapping.
      environ: Environment used for overrides (defaults to ``os.environ``).
      source: Label included in error messages.

    Raises:
      RuntimeConfigError: If validation fails.
    """

    env = os.environ if environ is None else environ
    try:
        config = RuntimeConfig.model_validate(dict(payload))
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration {source}: {exc}") from exc
    return config.with_credentials(env.get(USERNAME_ENV), env.get(PASSWORD_ENV))


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    return parse_runtime_config(payload, source=str(path))


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the precedence chain, parse it, and return a
      validated :class:`RuntimeConfig`.

    Why:
      The CLI and the tool registry both need the settings; caching avoids
      repeated disk IO while ``reload`` enables deterministic refreshes.

    How:
      Consult the cache unless ``reload`` is requested or another explicit
      path is given, then try candidates until one exists.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` forces a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If no suitable configuration file can be located or
        validated.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    listing = ", ".join(searched) if searched else "<none>"
    raise RuntimeConfigError(f"Unable to locate config.yaml (searched: {listing})")


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
