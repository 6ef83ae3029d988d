# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
BusHook Configuration — Environment-driven settings.

All settings are loaded from environment variables (or .env file) and may
be overridden by command-line flags in bushook.main.
"""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class HookSettings(BaseSettings):
    """Service configuration loaded from environment."""

    # --- Redis ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL of the subject bus",
    )
    REDIS_USERNAME: Optional[str] = Field(
        default=None,
        description="ACL username for the Redis connection",
    )
    REDIS_PASSWORD: Optional[str] = Field(
        default=None,
        description="Password for the Redis connection",
    )
    TLS_CERT: Optional[str] = Field(
        default=None,
        description="TLS client certificate file",
    )
    TLS_KEY: Optional[str] = Field(
        default=None,
        description="Private key file for the client certificate",
    )
    TLS_CA_CERT: Optional[str] = Field(
        default=None,
        description="CA certificate to verify the server against",
    )
    CLIENT_NAME: str = Field(
        default="bushook",
        description="Connection name reported via CLIENT SETNAME",
    )
    CHANNEL_PREFIX: str = Field(
        default="hook",
        min_length=1,
        description="Redis channel prefix; subject s travels on <prefix>:s",
    )

    # --- Reconnect ---
    RECONNECT_WAIT: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between reconnect attempts",
    )
    RECONNECT_TOTAL_WAIT: float = Field(
        default=600.0,
        gt=0,
        description="Total seconds to keep reconnecting before giving up",
    )

    # --- Hooks ---
    HOOK_FILE: Optional[str] = Field(
        default=None,
        description="Path to the TOML (or YAML) hook definition file",
    )
    PID_FILE: Optional[str] = Field(
        default=None,
        description="Create a PID file at this path",
    )
    OUTPUT_PREVIEW_LENGTH: int = Field(
        default=80,
        ge=1,
        description="Characters of command output shown in log lines",
    )

    # --- Logging ---
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(
        default="json",
        pattern="^(json|text)$",
        description="Log output: json | text",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }
