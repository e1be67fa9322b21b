"""Pydantic v2 models for agentwire.yaml configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentwire.constants import DEFAULT_TIMEOUT_SECONDS
from agentwire.engine.invocation import DEFAULT_MODEL_ALIASES
from agentwire.transport.remote import DEFAULT_CONNECT_TIMEOUT, DEFAULT_KEEPALIVE_INTERVAL


class AgentSection(BaseModel):
    """How the agent CLI is located and invoked."""

    model_config = ConfigDict(extra="forbid")

    binary: str | None = Field(
        default=None,
        description="Agent CLI binary; auto-resolved when omitted",
    )
    workdir: str | None = Field(
        default=None,
        description="Working directory for local invocations",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        description="Global deadline for one invocation",
    )
    model_aliases: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_MODEL_ALIASES),
        description="Short model names mapped to full model identifiers",
    )


class RemoteConfig(BaseModel):
    """SSH endpoint for the remote binding."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(description="Remote host as 'user@host' or 'host'")
    port: int = Field(default=22, ge=1, le=65535, description="SSH port")
    key_path: str | None = Field(
        default=None,
        description="Private key file; ssh-agent is used when omitted",
    )
    password: str | None = Field(
        default=None,
        description="Password (also answers keyboard-interactive prompts)",
    )
    workdir: str = Field(default="~", description="Remote working directory")
    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT,
        gt=0,
        description="Seconds allowed for connect and handshake",
    )
    keepalive_interval: float = Field(
        default=DEFAULT_KEEPALIVE_INTERVAL,
        ge=0,
        description="Seconds between keepalives (0 to disable)",
    )

    @field_validator("host")
    @classmethod
    def _validate_host(cls, value: str) -> str:
        value = value.strip()
        if not value or value.endswith("@"):
            msg = f"Invalid host '{value}', expected 'user@host' or 'host'"
            raise ValueError(msg)
        return value


class AgentWireConfig(BaseModel):
    """Top-level agentwire.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1", description="Config schema version")
    agent: AgentSection = Field(
        default_factory=AgentSection,
        description="Agent CLI settings",
    )
    remote: RemoteConfig | None = Field(
        default=None,
        description="SSH endpoint; selects the remote binding when present",
    )
