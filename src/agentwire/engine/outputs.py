"""Pydantic models for the outputs a stream session delivers to callers."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, PrivateAttr, Tag

from agentwire.errors import AgentWireError, TransportError

DoneReason = Literal["completed", "failed", "timeout", "aborted"]


class _OutputBase(BaseModel):
    """Envelope fields shared by every delivered output.

    ``ts`` and ``seq`` stay empty until an ``OutputRecorder`` stamps them.
    """

    model_config = ConfigDict(extra="forbid")

    ts: str = Field(default="", description="ISO 8601 timestamp with milliseconds")
    seq: int = Field(default=0, ge=0, description="Monotonic sequence number")


class TextOutput(_OutputBase):
    """Assistant text, streamed or assembled."""

    type: Literal["text"] = "text"
    text: str = Field(description="Text content")


class ThinkingOutput(_OutputBase):
    """Assistant thinking text."""

    type: Literal["thinking"] = "thinking"
    thinking: str = Field(description="Thinking content")


class ToolOutput(_OutputBase):
    """A tool invocation by the agent."""

    type: Literal["tool"] = "tool"
    name: str = Field(description="Tool name")
    input: str = Field(description="Tool input rendered for display")


class RateLimitOutput(_OutputBase):
    """Rate-limit information from the agent."""

    type: Literal["rate_limit"] = "rate_limit"
    info: dict[str, Any] = Field(description="Verbatim rate_limit_info payload")


class ResultOutput(_OutputBase):
    """The agent's terminal ``result`` event."""

    type: Literal["result"] = "result"
    payload: dict[str, Any] = Field(description="Verbatim result event")


class SessionIdOutput(_OutputBase):
    """The agent's session id, delivered once when resolved."""

    type: Literal["session_id"] = "session_id"
    session_id: str = Field(description="Agent session identifier")


class ErrorOutput(_OutputBase):
    """A failure surfaced to the caller."""

    type: Literal["error"] = "error"
    error: str = Field(description="Human-readable error description")
    error_type: str = Field(description="Error class name")
    kind: str | None = Field(
        default=None,
        description="Transport failure kind (refused, unresolvable, ...)",
    )

    _exception: AgentWireError | None = PrivateAttr(default=None)

    @classmethod
    def from_exception(cls, exc: AgentWireError) -> ErrorOutput:
        out = cls(
            error=str(exc),
            error_type=type(exc).__name__,
            kind=exc.kind if isinstance(exc, TransportError) else None,
        )
        out._exception = exc
        return out

    @property
    def exception(self) -> AgentWireError | None:
        return self._exception


class DoneOutput(_OutputBase):
    """Emitted exactly once per invocation, always last."""

    type: Literal["done"] = "done"
    session_id: str | None = Field(
        default=None,
        description="Best-known agent session id (null if none)",
    )
    reason: DoneReason = Field(default="completed", description="Why the session ended")


def _output_discriminator(v: Any) -> str:
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


StreamOutput = Annotated[
    Annotated[TextOutput, Tag("text")]
    | Annotated[ThinkingOutput, Tag("thinking")]
    | Annotated[ToolOutput, Tag("tool")]
    | Annotated[RateLimitOutput, Tag("rate_limit")]
    | Annotated[ResultOutput, Tag("result")]
    | Annotated[SessionIdOutput, Tag("session_id")]
    | Annotated[ErrorOutput, Tag("error")]
    | Annotated[DoneOutput, Tag("done")],
    Discriminator(_output_discriminator),
]
"""Discriminated union of every output type."""
