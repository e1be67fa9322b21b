"""Command-line arguments for a non-interactive agent invocation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

#: Default short aliases accepted for ``model``.
DEFAULT_MODEL_ALIASES: dict[str, str] = {
    "opus": "claude-opus-4-6",
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5",
}


def build_agent_args(
    prompt: str,
    session_id: str | None = None,
    model: str | None = None,
    max_turns: int | None = None,
    system_prompt: str | None = None,
    allowed_tools: Sequence[str] | None = None,
    mcp_config: Path | None = None,
    model_aliases: Mapping[str, str] | None = None,
) -> list[str]:
    """Build the agent CLI argument list (binary excluded).

    Selects streaming JSON output with partial messages so deltas arrive as
    they are generated.  Each allowed tool is its own argument after
    ``--allowedTools``; they are never comma-joined.
    """
    aliases = DEFAULT_MODEL_ALIASES if model_aliases is None else model_aliases
    args = ["--print"]

    if session_id:
        args.extend(["--resume", session_id])
    if model:
        args.extend(["--model", aliases.get(model, model)])
    if max_turns:
        args.extend(["--max-turns", str(max_turns)])
    if system_prompt:
        args.extend(["--system-prompt", system_prompt])
    if allowed_tools:
        args.extend(["--allowedTools", *allowed_tools])
    if mcp_config is not None:
        args.extend(["--mcp-config", str(mcp_config)])

    args.append("--dangerously-skip-permissions")
    # --verbose is required alongside stream-json in print mode.
    args.extend(["--output-format", "stream-json", "--verbose"])
    args.append("--include-partial-messages")
    args.extend(["-p", prompt])
    return args
