"""Shared constants and type aliases for the agentwire engine."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

#: Hard ceiling for decoded-but-unframed stdout content (10 MiB).
MAX_LINE_BUFFER_BYTES = 10 * 1024 * 1024

#: Characters of stderr retained per session.
MAX_STDERR_CHARS = 8192

#: Characters of filtered stderr delivered in a single upstream error.
MAX_ERROR_CHARS = 1000

#: Default global deadline for one agent invocation (30 minutes).
DEFAULT_TIMEOUT_SECONDS = 1800.0

#: Env var (milliseconds) that overrides the configured deadline.
TIMEOUT_ENV_VAR = "CLAUDE_TIMEOUT_MS"

#: Stderr lines containing any of these are startup noise, not errors.
STDERR_NOISE_MARKERS = ("Loaded MCP", "Starting MCP")

#: Separator inserted between successive streamed text blocks.
TEXT_BLOCK_SEPARATOR = "\n\n"

#: Callback accepted by ``HandlerSet`` registrations (sync or async).
Handler = Callable[..., Awaitable[None] | None]

#: Raw JSON object decoded from one agent stdout line.
RawEvent = dict[str, Any]
