"""Transport protocol shared by the local and remote agent bindings."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

#: Bytes requested per transport read.
READ_CHUNK_BYTES = 64 * 1024


@runtime_checkable
class Transport(Protocol):
    """Byte-duplex channel to one agent process.

    ``open`` starts the agent and closes its input immediately; the agent
    runs non-interactively.  Reads return ``b""`` at end of stream.
    Failures to open or to read raise ``TransportError``.
    """

    @property
    def description(self) -> str:
        """Short human-readable target, used in logs."""
        ...

    async def open(self) -> None:
        """Start the agent process and close its input."""
        ...

    async def read_stdout(self) -> bytes:
        """Read the next chunk of agent stdout."""
        ...

    async def read_stderr(self) -> bytes:
        """Read the next chunk of agent stderr."""
        ...

    async def wait(self) -> int | None:
        """Wait for the agent to exit; return its exit code if known."""
        ...

    def terminate(self) -> None:
        """Ask the agent to stop.  Idempotent and non-blocking."""
        ...

    async def close(self) -> None:
        """Force-terminate if needed and release every resource.  Idempotent."""
        ...
