"""Pydantic models for agent wire events and the line classifier."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from agentwire.constants import RawEvent
from agentwire.errors import ProtocolError


class _EventBase(BaseModel):
    """Common configuration for classified wire events."""

    model_config = ConfigDict(extra="forbid")


class MessageStart(_EventBase):
    """A new assistant turn begins."""

    kind: Literal["message_start"] = "message_start"


class ContentBlockStart(_EventBase):
    """A content block opens at *index*."""

    kind: Literal["content_block_start"] = "content_block_start"
    index: int = Field(default=0, description="Block index within the message")
    content_type: str | None = Field(
        default=None,
        description="Block type: text, thinking, tool_use, ...",
    )


class ContentBlockDelta(_EventBase):
    """An incremental fragment of a text or thinking block."""

    kind: Literal["content_block_delta"] = "content_block_delta"
    index: int = Field(default=0, description="Block index within the message")
    delta: Literal["text", "thinking"] = Field(description="Fragment kind")
    payload: str = Field(description="Fragment content")


class TextBlock(_EventBase):
    type: Literal["text"] = "text"
    index: int
    text: str


class ThinkingBlock(_EventBase):
    type: Literal["thinking"] = "thinking"
    index: int
    thinking: str


class ToolUseBlock(_EventBase):
    type: Literal["tool_use"] = "tool_use"
    index: int
    name: str
    input: Any = None
    id: str | None = None

    def display_input(self) -> str:
        """Tool input as a displayable string (indented JSON unless already text)."""
        if isinstance(self.input, str):
            return self.input
        return json.dumps(self.input, indent=2, ensure_ascii=False, default=str)


ContentBlock = Annotated[
    TextBlock | ThinkingBlock | ToolUseBlock,
    Field(discriminator="type"),
]


class AssembledMessage(_EventBase):
    """A complete assistant message carrying every content block."""

    kind: Literal["assistant"] = "assistant"
    blocks: list[ContentBlock] = Field(default_factory=list)


class RateLimitEvent(_EventBase):
    """Quota information, forwarded verbatim."""

    kind: Literal["rate_limit"] = "rate_limit"
    info: dict[str, Any]


class Result(_EventBase):
    """Terminal payload for the turn, forwarded verbatim."""

    kind: Literal["result"] = "result"
    payload: dict[str, Any]


class SessionIdHint(_EventBase):
    """A structured ``session_id`` field seen on any event."""

    kind: Literal["session_id"] = "session_id"
    value: str


def _event_discriminator(v: Any) -> str:
    if isinstance(v, dict):
        return str(v.get("kind", ""))
    return str(getattr(v, "kind", ""))


AgentEvent = Annotated[
    Annotated[MessageStart, Tag("message_start")]
    | Annotated[ContentBlockStart, Tag("content_block_start")]
    | Annotated[ContentBlockDelta, Tag("content_block_delta")]
    | Annotated[AssembledMessage, Tag("assistant")]
    | Annotated[RateLimitEvent, Tag("rate_limit")]
    | Annotated[Result, Tag("result")]
    | Annotated[SessionIdHint, Tag("session_id")],
    Discriminator(_event_discriminator),
]
"""Discriminated union of every classified wire event."""


# ------------------------------------------------------------------ #
# Classification
# ------------------------------------------------------------------ #


def parse_line(line: str) -> RawEvent:
    """Decode one framed stdout line into a JSON object.

    Raises:
        ProtocolError: If the line is not JSON or not a JSON object.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        msg = f"Malformed JSON: {exc.msg}"
        raise ProtocolError(msg, line) from exc
    if not isinstance(data, dict):
        msg = f"Expected a JSON object, got {type(data).__name__}"
        raise ProtocolError(msg, line)
    return data


def classify(raw: RawEvent) -> list[AgentEvent]:
    """Tag a decoded wire object as zero or more ``AgentEvent`` values.

    The ``type`` field picks the variant; objects without a recognised type
    that carry ``role == "assistant"`` are treated as assembled messages.
    Claude CLI wraps raw API events as ``{"type": "stream_event",
    "event": {...}}``; those envelopes are unwrapped.  Any ``session_id``
    field additionally yields a ``SessionIdHint`` after the main event.
    """
    events: list[AgentEvent] = []
    event_type = raw.get("type")

    if event_type == "stream_event":
        inner = raw.get("event")
        if isinstance(inner, dict):
            events.extend(classify(inner))

    elif event_type == "message_start":
        events.append(MessageStart())

    elif event_type == "content_block_start":
        block = raw.get("content_block")
        content_type = block.get("type") if isinstance(block, dict) else None
        events.append(
            ContentBlockStart(
                index=_index(raw),
                content_type=content_type if isinstance(content_type, str) else None,
            )
        )

    elif event_type == "content_block_delta":
        delta = raw.get("delta")
        if isinstance(delta, dict):
            event = _classify_delta(_index(raw), delta)
            if event is not None:
                events.append(event)

    elif event_type == "assistant" or (
        event_type is None and raw.get("role") == "assistant"
    ):
        events.append(AssembledMessage(blocks=_content_blocks(raw)))

    elif event_type == "rate_limit_event":
        info = raw.get("rate_limit_info")
        if isinstance(info, dict) and info:
            events.append(RateLimitEvent(info=info))

    elif event_type == "result":
        events.append(Result(payload=raw))

    session_id = raw.get("session_id")
    if isinstance(session_id, str) and session_id:
        events.append(SessionIdHint(value=session_id))

    return events


def _index(raw: RawEvent) -> int:
    index = raw.get("index")
    if isinstance(index, int) and not isinstance(index, bool):
        return index
    return 0


def _classify_delta(index: int, delta: dict[str, Any]) -> ContentBlockDelta | None:
    delta_type = delta.get("type")
    if delta_type == "text_delta":
        text = delta.get("text")
        if isinstance(text, str) and text:
            return ContentBlockDelta(index=index, delta="text", payload=text)
    elif delta_type == "thinking_delta":
        thinking = delta.get("thinking")
        if isinstance(thinking, str) and thinking:
            return ContentBlockDelta(index=index, delta="thinking", payload=thinking)
    # input_json_delta, signature_delta, ... carry nothing to emit.
    return None


def _content_blocks(raw: RawEvent) -> list[TextBlock | ThinkingBlock | ToolUseBlock]:
    content = raw.get("content")
    if not content:
        message = raw.get("message")
        if isinstance(message, dict):
            content = message.get("content")
    if not content:
        return []
    if not isinstance(content, list):
        return [TextBlock(index=0, text=str(content))]

    blocks: list[TextBlock | ThinkingBlock | ToolUseBlock] = []
    for i, block in enumerate(content):
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text")
            if isinstance(text, str) and text:
                blocks.append(TextBlock(index=i, text=text))
        elif block_type == "thinking":
            thinking = block.get("thinking")
            if isinstance(thinking, str) and thinking:
                blocks.append(ThinkingBlock(index=i, thinking=thinking))
        elif block_type == "tool_use":
            tool_id = block.get("id")
            blocks.append(
                ToolUseBlock(
                    index=i,
                    name=str(block.get("name", "")),
                    input=block.get("input", {}),
                    id=tool_id if isinstance(tool_id, str) else None,
                )
            )
    return blocks
