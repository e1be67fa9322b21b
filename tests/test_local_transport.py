"""Tests for the local subprocess transport."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agentwire.errors import TransportError
from agentwire.transport.base import Transport
from agentwire.transport.local import (
    LocalTransport,
    agent_environment,
    find_agent_binary,
    write_mcp_config,
)

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


class MockStream:
    """Async-aware mock stream that returns queued chunks, then EOF."""

    def __init__(self, *chunks: bytes) -> None:
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        for chunk in chunks:
            self._queue.put_nowait(chunk)
        self._queue.put_nowait(b"")

    async def read(self, n: int = -1) -> bytes:
        return await self._queue.get()


def _make_mock_process(
    stdout: MockStream | None = None,
    stderr: MockStream | None = None,
    returncode: int | None = None,
) -> MagicMock:
    proc = MagicMock()
    proc.pid = 4242
    proc.returncode = returncode
    proc.stdin = MagicMock()
    proc.stdout = stdout or MockStream()
    proc.stderr = stderr or MockStream()
    proc.wait = AsyncMock(return_value=0)
    proc.terminate = MagicMock()
    proc.kill = MagicMock()
    return proc


# ------------------------------------------------------------------ #
# Environment and setup helpers
# ------------------------------------------------------------------ #


class TestAgentEnvironment:
    def test_strips_nesting_and_api_key(self) -> None:
        env = agent_environment(
            {"PATH": "/usr/bin", "CLAUDECODE": "1", "ANTHROPIC_API_KEY": "sk-test"}
        )
        assert "CLAUDECODE" not in env
        assert "ANTHROPIC_API_KEY" not in env
        assert env["PATH"] == "/usr/bin"

    def test_adds_heap_cap(self) -> None:
        env = agent_environment({"NODE_OPTIONS": "--trace-warnings"})
        assert env["NODE_OPTIONS"] == "--trace-warnings --max-old-space-size=2048"

    def test_keeps_existing_heap_cap(self) -> None:
        env = agent_environment({"NODE_OPTIONS": "--max-old-space-size=512"})
        assert env["NODE_OPTIONS"] == "--max-old-space-size=512"


class TestFindAgentBinary:
    def test_falls_back_to_path(self) -> None:
        with (
            patch("agentwire.transport.local._BINARY_CANDIDATES", ()),
            patch("shutil.which", return_value="/custom/bin/claude"),
        ):
            assert find_agent_binary() == "/custom/bin/claude"

    def test_bare_name_when_not_found(self) -> None:
        with (
            patch("agentwire.transport.local._BINARY_CANDIDATES", ()),
            patch("shutil.which", return_value=None),
        ):
            assert find_agent_binary() == "claude"

    def test_prefers_known_location(self, tmp_path: Path) -> None:
        binary = tmp_path / "claude"
        binary.write_text("#!/bin/sh\n")
        with patch("agentwire.transport.local._BINARY_CANDIDATES", (binary,)):
            assert find_agent_binary() == str(binary)


def test_write_mcp_config() -> None:
    path = write_mcp_config({"git": {"command": "mcp-git"}})
    try:
        assert path.name.startswith("mcp-")
        assert json.loads(path.read_text()) == {"mcpServers": {"git": {"command": "mcp-git"}}}
    finally:
        path.unlink()


# ------------------------------------------------------------------ #
# Transport lifecycle
# ------------------------------------------------------------------ #


class TestLocalTransport:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(LocalTransport("claude", []), Transport)

    async def test_open_spawns_and_closes_stdin(self) -> None:
        proc = _make_mock_process()
        transport = LocalTransport("claude", ["--print", "-p", "hi"], env={"PATH": "/bin"})
        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            await transport.open()

        args, kwargs = mock_exec.call_args
        assert args == ("claude", "--print", "-p", "hi")
        assert kwargs["start_new_session"] is True
        assert kwargs["env"] == {"PATH": "/bin"}
        assert kwargs["stdin"] == asyncio.subprocess.PIPE
        proc.stdin.close.assert_called_once()
        assert transport.pid == 4242

    async def test_reads_until_eof(self) -> None:
        proc = _make_mock_process(stdout=MockStream(b"a\n", b"b\n"), stderr=MockStream(b"warn\n"))
        transport = LocalTransport("claude", [])
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            await transport.open()

        assert await transport.read_stdout() == b"a\n"
        assert await transport.read_stdout() == b"b\n"
        assert await transport.read_stdout() == b""
        assert await transport.read_stderr() == b"warn\n"
        assert await transport.wait() == 0

    async def test_missing_binary(self, tmp_path: Path) -> None:
        cleanup = tmp_path / "mcp.json"
        cleanup.write_text("{}")
        transport = LocalTransport("/nope/claude", [], cleanup_paths=[cleanup])
        with (
            patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError()),
            pytest.raises(TransportError, match="Claude CLI not found") as exc_info,
        ):
            await transport.open()
        assert exc_info.value.kind == "spawn"
        assert not cleanup.exists()

    async def test_spawn_os_error(self) -> None:
        transport = LocalTransport("claude", [])
        with (
            patch("asyncio.create_subprocess_exec", side_effect=PermissionError("denied")),
            pytest.raises(TransportError, match="Failed to start claude") as exc_info,
        ):
            await transport.open()
        assert exc_info.value.kind == "spawn"

    async def test_read_error_wrapped(self) -> None:
        proc = _make_mock_process()
        proc.stdout = MagicMock()
        proc.stdout.read = AsyncMock(side_effect=ConnectionResetError("reset"))
        transport = LocalTransport("claude", [])
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            await transport.open()
        with pytest.raises(TransportError) as exc_info:
            await transport.read_stdout()
        assert exc_info.value.kind == "stream"

    async def test_read_before_open(self) -> None:
        with pytest.raises(TransportError, match="not open"):
            await LocalTransport("claude", []).read_stdout()

    async def test_terminate_sends_sigterm_once(self) -> None:
        proc = _make_mock_process()
        transport = LocalTransport("claude", [])
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            await transport.open()
        transport.terminate()
        transport.terminate()
        proc.terminate.assert_called_once()

    async def test_terminate_after_exit_is_noop(self) -> None:
        proc = _make_mock_process(returncode=0)
        transport = LocalTransport("claude", [])
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            await transport.open()
        transport.terminate()
        proc.terminate.assert_not_called()

    async def test_close_escalates_to_sigkill(self, tmp_path: Path) -> None:
        proc = _make_mock_process()
        hang = asyncio.Event()

        async def _wait() -> int:
            if not proc.kill.called:
                await hang.wait()
            return -9

        proc.wait = AsyncMock(side_effect=_wait)
        cleanup = tmp_path / "mcp.json"
        cleanup.write_text("{}")
        transport = LocalTransport("claude", [], cleanup_paths=[cleanup], kill_grace=0.01)
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            await transport.open()

        await transport.close()
        await transport.close()

        proc.terminate.assert_called_once()
        proc.kill.assert_called_once()
        assert not cleanup.exists()

    async def test_close_without_open(self) -> None:
        await LocalTransport("claude", []).close()
