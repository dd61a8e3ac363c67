"""Configuration models for Toolwire.

ServerConfig describes how to launch a tool-provider process and the
time budgets applied to the session talking to it.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_STARTUP_TIMEOUT = 30.0
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_SHUTDOWN_GRACE = 5.0


class ServerConfig(BaseModel):
    """Launch and timeout settings for one tool-provider process.

    Example::

        from toolwire import ServerConfig
        config = ServerConfig(command="sql", args=["-mcp"])
    """

    model_config = {"frozen": True}

    command: str
    args: list[str] = Field(default_factory=list)
    env: Optional[dict[str, str]] = None  # None = inherit the parent environment
    cwd: Optional[str] = None
    client_id: Optional[str] = None  # None = derived from the command name
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE

    @field_validator("command")
    @classmethod
    def _command_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("command must not be empty")
        return value

    @field_validator("startup_timeout", "request_timeout", "shutdown_grace")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    def resolved_client_id(self) -> str:
        """Return ``client_id``, falling back to the executable's base name."""
        if self.client_id:
            return self.client_id
        return os.path.basename(self.command) or self.command
