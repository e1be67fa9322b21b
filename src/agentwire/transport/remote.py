"""Remote transport — runs the agent CLI over an SSH exec channel."""

from __future__ import annotations

import asyncio
import errno
import getpass
import logging
import os
import shlex
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import asyncssh

from agentwire.errors import TransportError
from agentwire.transport.base import READ_CHUNK_BYTES

logger = logging.getLogger(__name__)

#: Seconds allowed for TCP connect plus SSH handshake and auth.
DEFAULT_CONNECT_TIMEOUT = 20.0

#: Seconds between SSH keepalive requests.
DEFAULT_KEEPALIVE_INTERVAL = 30.0

#: Connect timeout used by ``check_connection``.
CHECK_TIMEOUT = 12.0

#: Extends PATH on the remote host to cover npm-global, nvm and ~/.local installs.
_REMOTE_PATH_EXPORT = (
    'export PATH="$PATH:/usr/local/bin:/usr/bin:$HOME/.npm-global/bin:'
    '$HOME/.local/bin:$(npm root -g 2>/dev/null)/../.bin"'
)


def parse_host(host: str) -> tuple[str, str]:
    """Split ``user@host`` into ``(username, hostname)``.

    Without an ``@`` the current OS user is assumed.
    """
    at = host.rfind("@")
    if at > 0:
        return host[:at], host[at + 1 :]
    return getpass.getuser(), host


def _quote_path(path: str) -> str:
    # Keep ~ expandable by the remote shell.
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        return '"$HOME"/' + shlex.quote(path[2:])
    return shlex.quote(path)


def build_remote_command(args: list[str], workdir: str = "~", binary: str = "claude") -> str:
    """Wrap the agent invocation in a login shell on the remote host.

    ``bash -lc`` sources the login profile so ``PATH`` finds the CLI.
    ``IS_SANDBOX=1`` lets the CLI run as root with permissions skipped;
    the nesting marker and API key are unset so the CLI uses its own login.
    The working directory is created if missing.
    """
    inner = " && ".join(
        [
            _REMOTE_PATH_EXPORT,
            "export IS_SANDBOX=1",
            "unset CLAUDECODE ANTHROPIC_API_KEY",
            f"mkdir -p {_quote_path(workdir)}",
            f"cd {_quote_path(workdir)}",
            shlex.join([binary, *args]),
        ]
    )
    return f"bash -lc {shlex.quote(inner)}"


@dataclass
class RemoteEndpoint:
    """Where and how to reach the remote agent host."""

    hostname: str
    username: str
    port: int = 22
    key_path: Path | None = None
    password: str | None = None
    workdir: str = "~"
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL

    @classmethod
    def from_host(cls, host: str, **kwargs: Any) -> RemoteEndpoint:
        username, hostname = parse_host(host)
        key_path = kwargs.pop("key_path", None)
        if key_path is not None:
            key_path = Path(os.path.expanduser(str(key_path)))
        return cls(hostname=hostname, username=username, key_path=key_path, **kwargs)

    @property
    def label(self) -> str:
        return f"{self.username}@{self.hostname}"

    def connect_options(self, connect_timeout: float | None = None) -> dict[str, Any]:
        """Keyword arguments for ``asyncssh.connect``.

        Auth preference: password (also used for keyboard-interactive), then
        the explicit key file, then whatever ssh-agent offers.  Host keys are
        accepted without a known_hosts check.
        """
        options: dict[str, Any] = {
            "host": self.hostname,
            "port": self.port,
            "username": self.username,
            "known_hosts": None,
            "connect_timeout": connect_timeout or self.connect_timeout,
            "keepalive_interval": self.keepalive_interval,
        }
        if self.password:
            options["password"] = self.password
            options["client_keys"] = None
        elif self.key_path is not None and self.key_path.is_file():
            options["client_keys"] = [str(self.key_path)]
        return options


def classify_connect_error(exc: BaseException, endpoint: RemoteEndpoint) -> TransportError:
    """Map a connection failure to a ``TransportError`` with a readable cause."""
    if isinstance(exc, TransportError):
        return exc
    if isinstance(exc, asyncssh.PermissionDenied):
        msg = f"SSH auth failed, check password/key for {endpoint.label}"
        return TransportError(msg, kind="auth_failed")
    if isinstance(exc, socket.gaierror):
        return TransportError(f"Host not found: {endpoint.hostname}", kind="unresolvable")
    if isinstance(exc, ConnectionRefusedError) or (
        isinstance(exc, OSError) and exc.errno == errno.ECONNREFUSED
    ):
        msg = f"SSH connection refused, is sshd running on port {endpoint.port}?"
        return TransportError(msg, kind="refused")
    if isinstance(exc, TimeoutError) or (
        isinstance(exc, OSError) and exc.errno == errno.ETIMEDOUT
    ):
        msg = f"SSH connection timed out to {endpoint.hostname}"
        return TransportError(msg, kind="timed_out")
    if isinstance(exc, asyncssh.Error):
        return TransportError(f"SSH error: {exc.reason}", kind="other")
    return TransportError(f"SSH error: {exc}", kind="other")


async def _connect(
    endpoint: RemoteEndpoint, connect_timeout: float | None = None
) -> asyncssh.SSHClientConnection:
    try:
        return await asyncssh.connect(**endpoint.connect_options(connect_timeout))
    except (OSError, asyncssh.Error, TimeoutError) as exc:
        raise classify_connect_error(exc, endpoint) from exc


class RemoteTransport:
    """Runs the agent on a remote host through an SSH exec channel."""

    def __init__(self, endpoint: RemoteEndpoint, args: list[str], binary: str = "claude") -> None:
        self._endpoint = endpoint
        self._command = build_remote_command(args, endpoint.workdir, binary)
        self._conn: asyncssh.SSHClientConnection | None = None
        self._process: asyncssh.SSHClientProcess[bytes] | None = None
        self._terminated = False
        self._closed = False

    @property
    def description(self) -> str:
        return f"ssh:{self._endpoint.label}:{self._endpoint.port}"

    @property
    def command(self) -> str:
        return self._command

    async def open(self) -> None:
        self._conn = await _connect(self._endpoint)
        try:
            self._process = await self._conn.create_process(self._command, encoding=None)
        except (asyncssh.Error, OSError) as exc:
            self._conn.close()
            msg = f"SSH exec failed: {exc}"
            raise TransportError(msg, kind="exec") from exc

        logger.info("started remote agent on %s", self.description)

        # Non-interactive: the agent must never wait on input.
        self._process.stdin.write_eof()

    async def read_stdout(self) -> bytes:
        process = self._require_process()
        return await self._read(process.stdout, "stdout")

    async def read_stderr(self) -> bytes:
        process = self._require_process()
        return await self._read(process.stderr, "stderr")

    async def wait(self) -> int | None:
        process = self._require_process()
        try:
            completed = await process.wait(check=False)
        except (asyncssh.Error, OSError) as exc:
            msg = f"SSH stream error: {exc}"
            raise TransportError(msg, kind="stream") from exc
        return completed.returncode

    def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True
        if self._process is not None:
            self._process.close()
        if self._conn is not None:
            self._conn.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.terminate()
        if self._conn is not None:
            await self._conn.wait_closed()

    def _require_process(self) -> asyncssh.SSHClientProcess[bytes]:
        if self._process is None:
            msg = "Transport is not open"
            raise TransportError(msg, kind="other")
        return self._process

    async def _read(self, stream: asyncssh.SSHReader[bytes], name: str) -> bytes:
        try:
            return await stream.read(READ_CHUNK_BYTES)
        except (asyncssh.Error, OSError) as exc:
            msg = f"SSH stream error on {name}: {exc}"
            raise TransportError(msg, kind="stream") from exc


async def check_connection(endpoint: RemoteEndpoint, timeout: float = CHECK_TIMEOUT) -> float:
    """Connect, run ``echo ok`` and return the round-trip latency in ms.

    Raises:
        TransportError: With a classified cause when the check fails.
    """
    if endpoint.key_path is not None and not endpoint.password and not endpoint.key_path.is_file():
        raise TransportError(f"SSH key not found: {endpoint.key_path}", kind="auth_failed")

    start = time.monotonic()
    try:
        async with asyncio.timeout(timeout + 2):
            conn = await _connect(endpoint, connect_timeout=timeout)
            async with conn:
                result = await conn.run("echo ok", check=False)
    except TimeoutError as exc:
        raise TransportError(
            f"Connection timed out ({timeout:g}s)", kind="timed_out"
        ) from exc
    except asyncssh.Error as exc:
        raise classify_connect_error(exc, endpoint) from exc

    stdout = result.stdout
    if isinstance(stdout, bytes):
        stdout = stdout.decode(errors="replace")
    if result.exit_status == 0 and (stdout or "").strip() == "ok":
        return (time.monotonic() - start) * 1000
    msg = f"SSH test failed (exit {result.exit_status})"
    raise TransportError(msg, kind="exec")
