"""HandlerSet — the caller-facing sink for one stream session."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from agentwire.constants import Handler
from agentwire.engine.outputs import (
    DoneOutput,
    ErrorOutput,
    RateLimitOutput,
    ResultOutput,
    SessionIdOutput,
    StreamOutput,
    TextOutput,
    ThinkingOutput,
    ToolOutput,
)

logger = logging.getLogger(__name__)


def _callback_args(output: StreamOutput) -> tuple[Any, ...]:
    """Positional arguments a registered callback receives for *output*."""
    if isinstance(output, TextOutput):
        return (output.text,)
    if isinstance(output, ThinkingOutput):
        return (output.thinking,)
    if isinstance(output, ToolOutput):
        return (output.name, output.input)
    if isinstance(output, RateLimitOutput):
        return (output.info,)
    if isinstance(output, ResultOutput):
        return (output.payload,)
    if isinstance(output, SessionIdOutput):
        return (output.session_id,)
    if isinstance(output, ErrorOutput):
        return (output.exception if output.exception is not None else output.error,)
    if isinstance(output, DoneOutput):
        return (output.session_id,)
    return ()


class HandlerSet:
    """Optional callbacks for one agent invocation, with chainable registration.

    Every callback is optional and may be a plain function or a coroutine
    function.  Callback signatures:

    * ``on_text(text)``, ``on_thinking(text)``
    * ``on_tool(name, input)``, where *input* is already a display string
    * ``on_rate_limit(info)``, ``on_result(payload)``
    * ``on_session_id(session_id)``
    * ``on_error(exc)``, where *exc* is an ``AgentWireError``
    * ``on_done(session_id)``, which fires exactly once

    A callback that raises is logged and skipped; it never interrupts the
    stream or prevents ``done``.

    Outputs can also be consumed in order with ``async for out in
    handlers.events()``; iteration ends after the ``DoneOutput``.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._queues: list[asyncio.Queue[StreamOutput]] = []
        self._listeners: list[Callable[[StreamOutput], None]] = []
        self._finished = asyncio.Event()
        self._done: DoneOutput | None = None
        self.task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def on_text(self, fn: Handler) -> HandlerSet:
        return self._register("text", fn)

    def on_tool(self, fn: Handler) -> HandlerSet:
        return self._register("tool", fn)

    def on_thinking(self, fn: Handler) -> HandlerSet:
        return self._register("thinking", fn)

    def on_rate_limit(self, fn: Handler) -> HandlerSet:
        return self._register("rate_limit", fn)

    def on_result(self, fn: Handler) -> HandlerSet:
        return self._register("result", fn)

    def on_session_id(self, fn: Handler) -> HandlerSet:
        return self._register("session_id", fn)

    def on_error(self, fn: Handler) -> HandlerSet:
        return self._register("error", fn)

    def on_done(self, fn: Handler) -> HandlerSet:
        return self._register("done", fn)

    def add_listener(self, listener: Callable[[StreamOutput], None]) -> HandlerSet:
        """Observe every output before callbacks run (e.g. a recorder)."""
        self._listeners.append(listener)
        return self

    def _register(self, name: str, fn: Handler) -> HandlerSet:
        self._handlers[name] = fn
        return self

    # ------------------------------------------------------------------ #
    # Consumption
    # ------------------------------------------------------------------ #

    @property
    def done(self) -> bool:
        return self._done is not None

    @property
    def outcome(self) -> DoneOutput | None:
        """The ``DoneOutput`` once the session has finished."""
        return self._done

    def events(self) -> AsyncIterator[StreamOutput]:
        """Return an ordered async iterator over every output from now on."""
        queue: asyncio.Queue[StreamOutput] = asyncio.Queue()
        if self._done is not None:
            queue.put_nowait(self._done)
        else:
            self._queues.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue[StreamOutput]) -> AsyncIterator[StreamOutput]:
        try:
            while True:
                output = await queue.get()
                yield output
                if isinstance(output, DoneOutput):
                    return
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    async def wait(self) -> str | None:
        """Wait for ``done`` and return its session id."""
        await self._finished.wait()
        return self._done.session_id if self._done is not None else None

    # ------------------------------------------------------------------ #
    # Delivery (called by StreamSession)
    # ------------------------------------------------------------------ #

    async def dispatch(self, output: StreamOutput) -> None:
        """Deliver *output* to listeners, iterators and its callback."""
        if self._done is not None:
            logger.warning("dropping %s output delivered after done", output.type)
            return
        if isinstance(output, DoneOutput):
            self._done = output

        for listener in self._listeners:
            try:
                listener(output)
            except Exception:
                logger.exception("output listener raised on %s", output.type)
        for queue in self._queues:
            queue.put_nowait(output)

        handler = self._handlers.get(output.type)
        if handler is not None:
            await self._invoke(output.type, handler, _callback_args(output))

        if isinstance(output, DoneOutput):
            self._finished.set()

    async def _invoke(self, name: str, handler: Handler, args: tuple[Any, ...]) -> None:
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("%s handler raised", name)
