"""agentwire run — send one prompt to the agent and stream the reply."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any

import click

from agentwire.config import ConfigError, load_config
from agentwire.engine.runner import AgentRunner, create_runner
from agentwire.errors import AgentWireError
from agentwire.recorder import OutputRecorder

#: Exit status after the user aborts with Ctrl+C.
_EXIT_ABORTED = 130

#: Characters of tool input echoed to the terminal.
_TOOL_PREVIEW_CHARS = 300


@click.command()
@click.argument("prompt")
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
@click.option(
    "--local/--remote",
    "local",
    default=None,
    help="Force the local or SSH binding (default: SSH when configured).",
)
@click.option(
    "-s", "--session", "session_id", default=None, help="Agent session id to resume."
)
@click.option("-m", "--model", default=None, help="Model name or alias.")
@click.option("--max-turns", type=int, default=None, help="Agent turn limit.")
@click.option(
    "-t",
    "--tool",
    "tools",
    multiple=True,
    help="Allowed tool (repeat for several).",
)
@click.option("--system-prompt", default=None, help="System prompt override.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Deadline in seconds (overrides config).",
)
@click.option(
    "--record",
    "record_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for a JSONL recording of every output.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def run(
    prompt: str,
    config_file: str | None,
    local: bool | None,
    session_id: str | None,
    model: str | None,
    max_turns: int | None,
    tools: tuple[str, ...],
    system_prompt: str | None,
    timeout: float | None,
    record_dir: str | None,
    verbose: bool,
) -> None:
    """Run PROMPT through the agent, streaming text to stdout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(Path(config_file) if config_file else None)
        if timeout is not None:
            config.agent.timeout_seconds = timeout
        runner = create_runner(config, remote=None if local is None else not local)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    exit_code = asyncio.run(
        _run_prompt(
            runner,
            prompt,
            session_id=session_id,
            model=model,
            max_turns=max_turns,
            allowed_tools=list(tools) or None,
            system_prompt=system_prompt,
            record_dir=Path(record_dir) if record_dir else None,
        )
    )
    if exit_code:
        raise SystemExit(exit_code)


async def _run_prompt(
    runner: AgentRunner,
    prompt: str,
    record_dir: Path | None = None,
    **options: Any,
) -> int:
    """Stream one invocation to the terminal and return the exit status."""
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, cancel.set)

    errors: list[AgentWireError | str] = []
    handlers = runner.run(prompt, cancel=cancel, **options)
    (
        handlers.on_text(_echo_text)
        .on_thinking(_echo_thinking)
        .on_tool(_echo_tool)
        .on_rate_limit(_echo_rate_limit)
        .on_error(lambda exc: _echo_error(exc, errors))
    )
    if record_dir is not None:
        recorder = OutputRecorder(record_dir)
        recorder.attach(handlers)
        click.echo(f"Recording to {recorder.path}", err=True)

    try:
        session_id = await handlers.wait()
        if handlers.task is not None:
            await handlers.task
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    click.echo()
    click.echo(f"session: {session_id or '-'}", err=True)

    outcome = handlers.outcome
    if outcome is not None and outcome.reason == "aborted":
        click.echo("Aborted.", err=True)
        return _EXIT_ABORTED
    return 1 if errors else 0


def _echo_text(text: str) -> None:
    click.echo(text, nl=False)


def _echo_thinking(text: str) -> None:
    click.echo(click.style(text, dim=True), nl=False, err=True)


def _echo_tool(name: str, tool_input: str) -> None:
    preview = tool_input
    if len(preview) > _TOOL_PREVIEW_CHARS:
        preview = preview[:_TOOL_PREVIEW_CHARS] + "..."
    click.echo(click.style(f"\n[tool] {name}", fg="cyan"), err=True)
    if preview:
        click.echo(click.style(f"  {preview}", dim=True), err=True)


def _echo_rate_limit(info: dict[str, Any]) -> None:
    status = info.get("status", "unknown")
    click.echo(click.style(f"\n[rate limit] {status}", fg="yellow"), err=True)


def _echo_error(exc: AgentWireError | str, errors: list[AgentWireError | str]) -> None:
    errors.append(exc)
    click.echo(click.style(f"\nError: {exc}", fg="red"), err=True)
