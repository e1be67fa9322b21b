"""Stream session engine: framing, classification, lifecycle."""

from agentwire.engine.handlers import HandlerSet
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
from agentwire.engine.runner import AgentRunner, create_runner
from agentwire.engine.session import StreamSession

__all__ = [
    "AgentRunner",
    "DoneOutput",
    "ErrorOutput",
    "HandlerSet",
    "RateLimitOutput",
    "ResultOutput",
    "SessionIdOutput",
    "StreamOutput",
    "StreamSession",
    "TextOutput",
    "ThinkingOutput",
    "ToolOutput",
    "create_runner",
]
