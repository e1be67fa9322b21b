"""Shared test doubles for agentwire tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import pytest

from agentwire.errors import TransportError


class FakeTransport:
    """Queue-backed transport double.

    Chunks given up front are followed by EOF unless *hang* is set, in
    which case stdout stays open until ``terminate`` (or ``finish``).
    """

    def __init__(
        self,
        stdout: Iterable[bytes] = (),
        stderr: Iterable[bytes] = (),
        exit_code: int | None = 0,
        open_error: TransportError | None = None,
        read_error: TransportError | None = None,
        hang: bool = False,
    ) -> None:
        self._stdout: asyncio.Queue[bytes] = asyncio.Queue()
        self._stderr: asyncio.Queue[bytes] = asyncio.Queue()
        for chunk in stdout:
            self._stdout.put_nowait(chunk)
        for chunk in stderr:
            self._stderr.put_nowait(chunk)
        self._stderr.put_nowait(b"")
        if not hang:
            self._stdout.put_nowait(b"")
        self._exited = asyncio.Event()
        if not hang:
            self._exited.set()
        self.exit_code = exit_code
        self.open_error = open_error
        self.read_error = read_error
        self.opened = False
        self.terminate_calls = 0
        self.close_calls = 0

    @property
    def description(self) -> str:
        return "fake"

    def feed(self, chunk: bytes) -> None:
        self._stdout.put_nowait(chunk)

    def finish(self) -> None:
        """Signal stdout EOF and process exit."""
        self._stdout.put_nowait(b"")
        self._exited.set()

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    async def read_stdout(self) -> bytes:
        chunk = await self._stdout.get()
        if not chunk and self.read_error is not None:
            raise self.read_error
        return chunk

    async def read_stderr(self) -> bytes:
        return await self._stderr.get()

    async def wait(self) -> int | None:
        await self._exited.wait()
        return self.exit_code

    def terminate(self) -> None:
        self.terminate_calls += 1
        self.finish()

    async def close(self) -> None:
        self.close_calls += 1


@pytest.fixture
def make_transport():
    """Return the ``FakeTransport`` class for building per-test doubles."""
    return FakeTransport
