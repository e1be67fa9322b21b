"""StreamSession — drives one agent invocation from spawn to ``done``."""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from agentwire.constants import (
    DEFAULT_TIMEOUT_SECONDS,
    MAX_ERROR_CHARS,
    MAX_LINE_BUFFER_BYTES,
    MAX_STDERR_CHARS,
)
from agentwire.engine.events import SessionIdHint, classify, parse_line
from agentwire.engine.framing import LineFramer
from agentwire.engine.handlers import HandlerSet
from agentwire.engine.outputs import (
    DoneOutput,
    DoneReason,
    ErrorOutput,
    SessionIdOutput,
    StreamOutput,
)
from agentwire.engine.reconstructor import MessageReconstructor
from agentwire.engine.resolver import SessionResolver
from agentwire.errors import (
    AgentTimeoutError,
    AgentWireError,
    ProtocolError,
    SessionAborted,
    TransportError,
    UpstreamError,
)
from agentwire.helpers import filter_stderr_noise, format_stderr_preview
from agentwire.transport.base import Transport

logger = logging.getLogger(__name__)

SessionState = Literal["starting", "running", "finishing", "done", "aborted"]


class StreamSession:
    """One agent invocation: transport, framing, classification, completion.

    States run ``starting -> running -> finishing -> done``, or end in
    ``aborted`` when the caller sets *cancel* (or cancels the task running
    ``run``).  Process exit, deadline expiry and abort all funnel into a
    single ``_finish`` that:

    1. flushes the unterminated stdout tail (skipped on abort);
    2. settles a textual session id if no structured one arrived;
    3. reports the error for this outcome, if any;
    4. dispatches ``DoneOutput`` exactly once;
    5. closes the transport.

    Non-JSON stdout lines are scanned for a session id and otherwise
    skipped while streaming.  The final unterminated tail is the one
    exception: it is delivered as text when it is not JSON.
    """

    def __init__(
        self,
        transport: Transport,
        handlers: HandlerSet,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        cancel: asyncio.Event | None = None,
        resume_session_id: str | None = None,
        max_buffer_bytes: int = MAX_LINE_BUFFER_BYTES,
    ) -> None:
        self._transport = transport
        self._handlers = handlers
        self._timeout = timeout
        self._cancel = cancel
        self._stdout = LineFramer(max_buffer_bytes, name=f"{transport.description} stdout")
        self._stderr = LineFramer(max_buffer_bytes, name=f"{transport.description} stderr")
        self._stderr_text = ""
        self._resolver = SessionResolver(fallback=resume_session_id)
        self._reconstructor = MessageReconstructor()
        self._state: SessionState = "starting"
        self._finished = False
        self._error: AgentWireError | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str | None:
        """Best-known agent session id."""
        return self._resolver.best_known

    @property
    def error(self) -> AgentWireError | None:
        """The error that ended the session, including ``SessionAborted``."""
        return self._error

    @property
    def stderr_text(self) -> str:
        return self._stderr_text

    @property
    def stdout_framer(self) -> LineFramer:
        return self._stdout

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def run(self) -> None:
        """Run the invocation to completion.  ``done`` always fires."""
        try:
            await self._transport.open()
        except TransportError as exc:
            logger.error("%s: %s", self._transport.description, exc)
            await self._finish(None, "failed", error=exc, flush=False)
            return
        except asyncio.CancelledError:
            await self._finish(None, "aborted", flush=False)
            raise

        self._state = "running"
        pump = asyncio.create_task(self._pump())
        waiters: set[asyncio.Task[object]] = {pump}
        abort: asyncio.Task[object] | None = None
        if self._cancel is not None:
            abort = asyncio.create_task(self._cancel.wait())
            waiters.add(abort)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self._timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await self._stop(pump, abort)
            await self._finish(None, "aborted", flush=False)
            raise

        if pump in done:
            await self._stop(abort, terminate=False)
            try:
                exit_code = pump.result()
            except TransportError as exc:
                logger.error("%s: %s", self._transport.description, exc)
                await self._finish(None, "failed", error=exc)
                return
            except Exception as exc:
                logger.error("%s: error reading agent output: %s", self._transport.description, exc)
                error = TransportError(f"Error reading agent output: {exc}", kind="stream")
                await self._finish(None, "failed", error=error)
                return
            await self._finish(exit_code, "completed")
        elif abort is not None and abort in done:
            logger.info("%s: aborted by caller", self._transport.description)
            await self._stop(pump)
            await self._finish(None, "aborted", flush=False)
        else:
            logger.error(
                "%s: deadline of %ss exceeded, terminating",
                self._transport.description,
                self._timeout,
            )
            await self._stop(pump, abort)
            error = AgentTimeoutError(self._timeout or 0.0)
            await self._finish(None, "timeout", error=error)

    async def _stop(self, *tasks: asyncio.Task[object] | None, terminate: bool = True) -> None:
        """Cancel *tasks*, terminating the transport first to unblock reads."""
        pending = [t for t in tasks if t is not None]
        if terminate:
            self._transport.terminate()
        for task in pending:
            if not task.done():
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _finish(
        self,
        exit_code: int | None,
        reason: DoneReason,
        error: AgentWireError | None = None,
        flush: bool = True,
    ) -> None:
        if self._finished:
            return
        self._finished = True
        self._state = "finishing"

        try:
            if flush:
                for line in self._stdout.finish():
                    await self._handle_line(line, final=True)
                for line in self._stderr.finish():
                    await self._handle_stderr_line(line)

            settled = self._resolver.settle()
            if settled is not None:
                await self._dispatch(SessionIdOutput(session_id=settled))

            if reason == "aborted":
                self._error = SessionAborted("Session aborted by caller")
            elif error is not None:
                self._error = error
                await self._dispatch(ErrorOutput.from_exception(error))
            elif reason == "completed" and exit_code != 0:
                reason = "failed"
                self._error = self._upstream_error(exit_code)
                if self._error is not None:
                    await self._dispatch(ErrorOutput.from_exception(self._error))

            await self._dispatch(
                DoneOutput(session_id=self._resolver.best_known, reason=reason)
            )
        finally:
            self._state = "aborted" if reason == "aborted" else "done"
            await self._transport.close()

    def _upstream_error(self, exit_code: int | None) -> UpstreamError | None:
        stderr_text = self._stderr_text.strip()
        real = filter_stderr_noise(stderr_text)
        if not real:
            logger.warning(
                "%s: exited with code %s and no stderr",
                self._transport.description,
                exit_code,
            )
            return None
        logger.error(
            "%s: exited with code %s. Stderr:\n  %s",
            self._transport.description,
            exit_code,
            format_stderr_preview(real),
        )
        return UpstreamError(real[:MAX_ERROR_CHARS], exit_code=exit_code, stderr=stderr_text)

    # ------------------------------------------------------------------ #
    # Stream pumps
    # ------------------------------------------------------------------ #

    async def _pump(self) -> int | None:
        """Read stdout and stderr to EOF, then return the exit code."""
        stderr_task = asyncio.create_task(self._pump_stderr())
        try:
            while True:
                chunk = await self._transport.read_stdout()
                if not chunk:
                    break
                for line in self._stdout.feed(chunk):
                    await self._handle_line(line)
            await stderr_task
        finally:
            if not stderr_task.done():
                stderr_task.cancel()
                await asyncio.gather(stderr_task, return_exceptions=True)
        return await self._transport.wait()

    async def _pump_stderr(self) -> None:
        while True:
            chunk = await self._transport.read_stderr()
            if not chunk:
                return
            for line in self._stderr.feed(chunk):
                await self._handle_stderr_line(line)

    # ------------------------------------------------------------------ #
    # Line handling
    # ------------------------------------------------------------------ #

    async def _handle_line(self, line: str, final: bool = False) -> None:
        try:
            raw = parse_line(line)
        except ProtocolError:
            if self._scan_for_session_id(line):
                return
            if final:
                await self._dispatch_all(self._reconstructor.plain_text(line))
            else:
                logger.warning(
                    "%s: non-JSON stdout line: %s",
                    self._transport.description,
                    line[:200],
                )
            return

        for event in classify(raw):
            if isinstance(event, SessionIdHint):
                if self._resolver.offer(event.value):
                    await self._dispatch(SessionIdOutput(session_id=event.value))
                continue
            await self._dispatch_all(self._reconstructor.apply(event))

    async def _handle_stderr_line(self, line: str) -> None:
        room = MAX_STDERR_CHARS - len(self._stderr_text)
        if room > 0:
            self._stderr_text += (line + "\n")[:room]
        self._scan_for_session_id(line)

    def _scan_for_session_id(self, text: str) -> bool:
        return self._resolver.scan(text) is not None

    async def _dispatch(self, output: StreamOutput) -> None:
        await self._handlers.dispatch(output)

    async def _dispatch_all(self, outputs: list[StreamOutput]) -> None:
        for output in outputs:
            await self._handlers.dispatch(output)
