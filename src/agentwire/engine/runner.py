"""AgentRunner — the caller-facing entry point for agent invocations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from agentwire.constants import DEFAULT_TIMEOUT_SECONDS
from agentwire.engine.handlers import HandlerSet
from agentwire.engine.invocation import DEFAULT_MODEL_ALIASES, build_agent_args
from agentwire.engine.session import StreamSession
from agentwire.errors import ConfigError
from agentwire.transport.base import Transport
from agentwire.transport.local import LocalTransport, find_agent_binary, write_mcp_config
from agentwire.transport.remote import RemoteEndpoint, RemoteTransport

if TYPE_CHECKING:
    from agentwire.config.models import AgentWireConfig

logger = logging.getLogger(__name__)

#: Builds a transport from the agent argument list and an optional MCP config.
TransportFactory = Callable[[list[str], Path | None], Transport]


class AgentRunner:
    """Starts agent invocations and returns their ``HandlerSet``.

    The transport binding is decided once by *transport_factory*; every
    invocation after that flows through the same ``StreamSession`` code.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        model_aliases: Mapping[str, str] | None = None,
        supports_mcp: bool = True,
    ) -> None:
        self._transport_factory = transport_factory
        self._timeout = timeout
        self._model_aliases = dict(model_aliases or DEFAULT_MODEL_ALIASES)
        self._supports_mcp = supports_mcp
        self.last_session: StreamSession | None = None

    def run(
        self,
        prompt: str,
        session_id: str | None = None,
        model: str | None = None,
        max_turns: int | None = None,
        allowed_tools: Sequence[str] | None = None,
        cancel: asyncio.Event | None = None,
        system_prompt: str | None = None,
        mcp_servers: Mapping[str, Any] | None = None,
    ) -> HandlerSet:
        """Start one invocation and return its handlers.

        Must be called with a running event loop.  The session runs as a
        task that has not started yet when this returns, so handlers
        registered right away see every output.

        Args:
            prompt: Prompt passed with ``-p``.
            session_id: Agent session to resume.  Also the fallback id
                reported by ``done`` when the agent never announces one.
            model: Model name or configured alias.
            max_turns: Agent turn limit.
            allowed_tools: Tool names, each passed as its own argument.
            cancel: Setting this event aborts the invocation.
            system_prompt: System prompt override.
            mcp_servers: MCP server definitions (local binding only).
        """
        mcp_config: Path | None = None
        if mcp_servers:
            if self._supports_mcp:
                mcp_config = write_mcp_config(mcp_servers)
            else:
                logger.warning("MCP servers are not supported by this transport, ignoring")

        args = build_agent_args(
            prompt,
            session_id=session_id,
            model=model,
            max_turns=max_turns,
            system_prompt=system_prompt,
            allowed_tools=allowed_tools,
            mcp_config=mcp_config,
            model_aliases=self._model_aliases,
        )
        transport = self._transport_factory(args, mcp_config)

        handlers = HandlerSet()
        session = StreamSession(
            transport,
            handlers,
            timeout=self._timeout,
            cancel=cancel,
            resume_session_id=session_id,
        )
        self.last_session = session
        handlers.task = asyncio.get_running_loop().create_task(session.run())
        return handlers


def local_transport_factory(
    binary: str | None = None, workdir: Path | None = None
) -> TransportFactory:
    """Factory for ``LocalTransport``; the MCP config file is removed on close."""
    resolved = binary or find_agent_binary()

    def factory(args: list[str], mcp_config: Path | None) -> Transport:
        cleanup = [mcp_config] if mcp_config is not None else []
        return LocalTransport(resolved, args, cwd=workdir, cleanup_paths=cleanup)

    return factory


def remote_transport_factory(endpoint: RemoteEndpoint, binary: str = "claude") -> TransportFactory:
    """Factory for ``RemoteTransport`` against *endpoint*."""

    def factory(args: list[str], mcp_config: Path | None) -> Transport:
        return RemoteTransport(endpoint, args, binary=binary)

    return factory


def remote_endpoint(config: AgentWireConfig) -> RemoteEndpoint:
    """Build the SSH endpoint from the ``remote`` config section."""
    remote = config.remote
    if remote is None:
        msg = "No 'remote' section configured in agentwire.yaml"
        raise ConfigError(msg)
    return RemoteEndpoint.from_host(
        remote.host,
        port=remote.port,
        key_path=remote.key_path,
        password=remote.password,
        workdir=remote.workdir,
        connect_timeout=remote.connect_timeout,
        keepalive_interval=remote.keepalive_interval,
    )


def create_runner(config: AgentWireConfig, remote: bool | None = None) -> AgentRunner:
    """Build an ``AgentRunner`` from configuration.

    *remote* forces a binding; ``None`` picks remote exactly when a
    ``remote`` section is configured.
    """
    use_remote = config.remote is not None if remote is None else remote
    agent = config.agent

    if use_remote:
        endpoint = remote_endpoint(config)
        factory = remote_transport_factory(endpoint, binary=agent.binary or "claude")
        logger.info("using remote binding %s", endpoint.label)
    else:
        workdir = Path(agent.workdir).expanduser() if agent.workdir else None
        factory = local_transport_factory(agent.binary, workdir)
        logger.info("using local binding")

    return AgentRunner(
        factory,
        timeout=agent.timeout_seconds,
        model_aliases=agent.model_aliases,
        supports_mcp=not use_remote,
    )
