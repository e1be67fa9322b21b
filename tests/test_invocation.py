"""Tests for agent CLI argument construction."""

from __future__ import annotations

from pathlib import Path

from agentwire.engine.invocation import build_agent_args


class TestBuildAgentArgs:
    def test_minimal(self) -> None:
        assert build_agent_args("hello") == [
            "--print",
            "--dangerously-skip-permissions",
            "--output-format",
            "stream-json",
            "--verbose",
            "--include-partial-messages",
            "-p",
            "hello",
        ]

    def test_all_options_in_order(self) -> None:
        args = build_agent_args(
            "go",
            session_id="abc123",
            model="opus",
            max_turns=5,
            system_prompt="Be terse.",
            allowed_tools=["Read", "Edit", "Bash(git:*)"],
            mcp_config=Path("/tmp/mcp-1.json"),
        )
        assert args[:15] == [
            "--print",
            "--resume",
            "abc123",
            "--model",
            "claude-opus-4-6",
            "--max-turns",
            "5",
            "--system-prompt",
            "Be terse.",
            "--allowedTools",
            "Read",
            "Edit",
            "Bash(git:*)",
            "--mcp-config",
            "/tmp/mcp-1.json",
        ]
        assert args[-2:] == ["-p", "go"]

    def test_tools_never_comma_joined(self) -> None:
        args = build_agent_args("x", allowed_tools=["Read", "Write"])
        assert "Read,Write" not in args
        start = args.index("--allowedTools")
        assert args[start + 1 : start + 3] == ["Read", "Write"]

    def test_unknown_model_passed_through(self) -> None:
        args = build_agent_args("x", model="claude-custom-1")
        assert args[args.index("--model") + 1] == "claude-custom-1"

    def test_custom_aliases_replace_defaults(self) -> None:
        args = build_agent_args("x", model="opus", model_aliases={"big": "claude-big"})
        assert args[args.index("--model") + 1] == "opus"

    def test_empty_tool_list_omitted(self) -> None:
        assert "--allowedTools" not in build_agent_args("x", allowed_tools=[])
