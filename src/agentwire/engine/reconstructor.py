"""Message reconstruction — dedupe streamed deltas against assembled messages."""

from __future__ import annotations

from agentwire.constants import TEXT_BLOCK_SEPARATOR
from agentwire.engine.events import (
    AgentEvent,
    AssembledMessage,
    ContentBlockDelta,
    ContentBlockStart,
    MessageStart,
    RateLimitEvent,
    Result,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
)
from agentwire.engine.outputs import (
    RateLimitOutput,
    ResultOutput,
    StreamOutput,
    TextOutput,
    ThinkingOutput,
    ToolOutput,
)


class MessageReconstructor:
    """Turns classified events into caller outputs, each content block once.

    Block indices delivered through ``content_block_delta`` are remembered
    until the next ``message_start``.  When the assembled assistant message
    arrives, blocks at those indices are skipped; blocks never streamed are
    emitted from the assembled message instead.

    ``SessionIdHint`` events are not handled here; the session routes them
    to its resolver.
    """

    def __init__(self) -> None:
        self._streamed: set[int] = set()
        self._has_emitted_text = False

    @property
    def streamed_indices(self) -> frozenset[int]:
        return frozenset(self._streamed)

    @property
    def has_emitted_text(self) -> bool:
        return self._has_emitted_text

    def apply(self, event: AgentEvent) -> list[StreamOutput]:
        """Return the outputs *event* produces, updating dedupe state."""
        if isinstance(event, MessageStart):
            self._streamed = set()
            return []

        if isinstance(event, ContentBlockStart):
            if event.content_type == "text" and self._has_emitted_text:
                return [TextOutput(text=TEXT_BLOCK_SEPARATOR)]
            return []

        if isinstance(event, ContentBlockDelta):
            self._streamed.add(event.index)
            if event.delta == "text":
                self._has_emitted_text = True
                return [TextOutput(text=event.payload)]
            return [ThinkingOutput(thinking=event.payload)]

        if isinstance(event, AssembledMessage):
            return self._assembled(event)

        if isinstance(event, RateLimitEvent):
            return [RateLimitOutput(info=event.info)]

        if isinstance(event, Result):
            return [ResultOutput(payload=event.payload)]

        return []

    def plain_text(self, text: str) -> list[StreamOutput]:
        """Deliver a non-JSON line as assistant text."""
        self._has_emitted_text = True
        return [TextOutput(text=text)]

    def _assembled(self, message: AssembledMessage) -> list[StreamOutput]:
        outputs: list[StreamOutput] = []
        for block in message.blocks:
            # Deltas only ever carry text and thinking, so tool_use blocks
            # are always sourced from the assembled message.
            if isinstance(block, ToolUseBlock):
                outputs.append(ToolOutput(name=block.name, input=block.display_input()))
                continue
            if block.index in self._streamed:
                continue
            if isinstance(block, TextBlock):
                self._has_emitted_text = True
                outputs.append(TextOutput(text=block.text))
            elif isinstance(block, ThinkingBlock):
                outputs.append(ThinkingOutput(thinking=block.thinking))
        return outputs
