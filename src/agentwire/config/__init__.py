"""agentwire configuration: YAML loading and validation."""

from agentwire.config.models import AgentSection, AgentWireConfig, RemoteConfig
from agentwire.config.parser import DEFAULT_CONFIG_NAME, ConfigError, load_config

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "AgentSection",
    "AgentWireConfig",
    "ConfigError",
    "RemoteConfig",
    "load_config",
]
