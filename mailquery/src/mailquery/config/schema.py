"""Pydantic models describing the mailquery runtime configuration."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from ..query.window import DEFAULT_TIMEZONE, load_zone


class ImapSettings(BaseModel):
    """Server connection settings for the queried mailbox."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(min_length=1)
    port: int = Field(default=993, gt=0, lt=65536)
    ssl: bool = True
    mailbox: str = "INBOX"
    timeout_s: float = Field(default=10.0, gt=0)
    fetch_batch_size: int = Field(default=50, gt=0, le=1000)
    username: Optional[str] = None
    password: Optional[SecretStr] = None


class OwnerSettings(BaseModel):
    """Mailbox owner preferences."""

    model_config = ConfigDict(extra="forbid")

    timezone: str = DEFAULT_TIMEZONE

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        load_zone(value)
        return value


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    imap: ImapSettings
    owner: OwnerSettings = Field(default_factory=OwnerSettings)

    def with_credentials(self, username: Optional[str], password: Optional[str]) -> "RuntimeConfig":
        """Return a copy whose IMAP credentials are overridden when given."""

        update = {}
        if username:
            update["username"] = username
        if password:
            update["password"] = SecretStr(password)
        if not update:
            return self
        return self.model_copy(update={"imap": self.imap.model_copy(update=update)})
