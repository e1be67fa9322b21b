"""Error taxonomy for agent sessions.

Only ``TransportError``, ``UpstreamError`` and ``AgentTimeoutError`` ever
reach a caller's error handler.  ``ProtocolError`` is absorbed inside the
engine and ``SessionAborted`` is reported through ``done`` alone.
"""

from __future__ import annotations

from typing import Literal

TransportErrorKind = Literal[
    "refused",
    "unresolvable",
    "timed_out",
    "auth_failed",
    "spawn",
    "exec",
    "stream",
    "other",
]


class AgentWireError(Exception):
    """Base class for every error raised or delivered by agentwire."""


class TransportError(AgentWireError):
    """The channel to the agent could not be opened or broke mid-stream."""

    def __init__(self, message: str, kind: TransportErrorKind = "other") -> None:
        super().__init__(message)
        self.kind: TransportErrorKind = kind


class ProtocolError(AgentWireError):
    """A stdout line is not a JSON object."""

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message)
        self.line = line


class UpstreamError(AgentWireError):
    """The agent exited unsuccessfully and left something on stderr."""

    def __init__(self, message: str, exit_code: int | None, stderr: str) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class AgentTimeoutError(AgentWireError, TimeoutError):
    """The global deadline for the invocation expired."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Agent subprocess timed out after {timeout:g}s")
        self.timeout = timeout


class SessionAborted(AgentWireError):
    """The caller cancelled the invocation."""


class ConfigError(AgentWireError):
    """User-facing configuration error."""
