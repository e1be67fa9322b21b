"""Local transport — runs the agent CLI as an asyncio subprocess."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from agentwire.errors import TransportError
from agentwire.transport.base import READ_CHUNK_BYTES

logger = logging.getLogger(__name__)

#: Seconds to wait after SIGTERM before SIGKILL.
_SIGTERM_WAIT = 3.0

#: Env vars stripped from the agent subprocess.  ``CLAUDECODE`` makes the
#: CLI believe it is nested inside another agent session; without
#: ``ANTHROPIC_API_KEY`` it uses subscription auth instead of prompting for
#: key setup, which would hang on the closed stdin.
_STRIPPED_ENV_KEYS = {"CLAUDECODE", "ANTHROPIC_API_KEY"}

#: Max V8 heap size (MB) for the Node.js agent CLI.
_NODE_HEAP_LIMIT_MB = 2048

#: Install locations checked before falling back to ``PATH``.
_BINARY_CANDIDATES = (
    Path.home() / ".local" / "bin" / "claude",
    Path("/opt/homebrew/bin/claude"),
    Path("/usr/local/bin/claude"),
    Path("/usr/bin/claude"),
)


def find_agent_binary(name: str = "claude") -> str:
    """Resolve the agent CLI binary, preferring well-known install paths."""
    for candidate in _BINARY_CANDIDATES:
        if candidate.name == name and candidate.is_file():
            return str(candidate)
    return shutil.which(name) or name


def agent_environment(base: Mapping[str, str] | None = None) -> dict[str, str]:
    """Environment for the agent subprocess.

    Drops ``_STRIPPED_ENV_KEYS`` and caps the Node.js heap unless the caller
    already set ``--max-old-space-size``.
    """
    source = os.environ if base is None else base
    env = {k: v for k, v in source.items() if k not in _STRIPPED_ENV_KEYS}
    node_opts = env.get("NODE_OPTIONS", "")
    if "--max-old-space-size" not in node_opts:
        separator = " " if node_opts else ""
        heap_flag = f"--max-old-space-size={_NODE_HEAP_LIMIT_MB}"
        env["NODE_OPTIONS"] = f"{node_opts}{separator}{heap_flag}"
    return env


def write_mcp_config(servers: Mapping[str, Any]) -> Path:
    """Write ``{"mcpServers": servers}`` to a temp file and return its path."""
    fd, name = tempfile.mkstemp(prefix="mcp-", suffix=".json")
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        json.dump({"mcpServers": dict(servers)}, fh)
    return Path(name)


class LocalTransport:
    """Runs ``binary *args`` as a subprocess in its own session.

    Stdin is a pipe that is closed right after spawn.  ``terminate`` sends
    SIGTERM; ``close`` escalates to SIGKILL after ``_SIGTERM_WAIT`` seconds
    and removes any *cleanup_paths* (e.g. a temporary MCP config).
    """

    def __init__(
        self,
        binary: str,
        args: list[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        cleanup_paths: Iterable[Path] = (),
        kill_grace: float = _SIGTERM_WAIT,
    ) -> None:
        self._binary = binary
        self._args = args
        self._cwd = cwd
        self._env = dict(env) if env is not None else agent_environment()
        self._cleanup_paths = list(cleanup_paths)
        self._kill_grace = kill_grace
        self._proc: asyncio.subprocess.Process | None = None
        self._terminated = False
        self._closed = False

    @property
    def description(self) -> str:
        return f"local:{self._binary}"

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    async def open(self) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                *self._args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                env=self._env,
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            self._remove_cleanup_paths()
            msg = (
                f"Claude CLI not found: {self._binary}. "
                "Make sure 'claude' is installed and on your PATH "
                "(npm install -g @anthropic-ai/claude-code)."
            )
            raise TransportError(msg, kind="spawn") from exc
        except OSError as exc:
            self._remove_cleanup_paths()
            msg = f"Failed to start claude: {exc}. Binary: {self._binary}"
            raise TransportError(msg, kind="spawn") from exc

        self._proc = proc
        logger.info("spawned %s (pid %d)", self._binary, proc.pid)

        # Non-interactive: the agent must never wait on input.
        if proc.stdin is not None:
            proc.stdin.close()

    async def read_stdout(self) -> bytes:
        proc = self._require_proc()
        if proc.stdout is None:
            return b""
        return await self._read(proc.stdout, "stdout")

    async def read_stderr(self) -> bytes:
        proc = self._require_proc()
        if proc.stderr is None:
            return b""
        return await self._read(proc.stderr, "stderr")

    async def wait(self) -> int | None:
        proc = self._require_proc()
        return await proc.wait()

    def terminate(self) -> None:
        proc = self._proc
        if self._terminated or proc is None or proc.returncode is not None:
            return
        self._terminated = True
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        proc = self._proc
        if proc is not None and proc.returncode is None:
            self.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=self._kill_grace)
            except TimeoutError:
                logger.warning(
                    "pid %d ignored SIGTERM for %.0fs, sending SIGKILL",
                    proc.pid,
                    self._kill_grace,
                )
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        self._remove_cleanup_paths()

    def _require_proc(self) -> asyncio.subprocess.Process:
        if self._proc is None:
            msg = "Transport is not open"
            raise TransportError(msg, kind="other")
        return self._proc

    async def _read(self, stream: asyncio.StreamReader, name: str) -> bytes:
        try:
            return await stream.read(READ_CHUNK_BYTES)
        except (ConnectionResetError, BrokenPipeError, OSError) as exc:
            msg = f"Failed to read agent {name}: {exc}"
            raise TransportError(msg, kind="stream") from exc

    def _remove_cleanup_paths(self) -> None:
        for path in self._cleanup_paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("could not remove %s: %s", path, exc)
        self._cleanup_paths = []
