"""mailquery configuration package.

What:
  Provide the import surface for configuration loading and the pydantic
  schema used by the CLI and the tool registry.

Why:
  Callers should go through the validated loader rather than reading YAML or
  environment variables themselves.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config /
    parse_runtime_config: Resolve ``config.yaml`` and cache the result.
  - RuntimeConfig / ImapSettings / OwnerSettings: Pydantic models.
  - ConfigLoadError / RuntimeConfigError: Loader failures.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    parse_runtime_config,
    reset_runtime_config,
)
from .schema import ImapSettings, OwnerSettings, RuntimeConfig

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "parse_runtime_config",
    "reset_runtime_config",
    "ImapSettings",
    "OwnerSettings",
    "RuntimeConfig",
]
