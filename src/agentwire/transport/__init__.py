"""Transport bindings: local subprocess and SSH exec channel."""

from agentwire.transport.base import Transport
from agentwire.transport.local import LocalTransport
from agentwire.transport.remote import RemoteEndpoint, RemoteTransport, check_connection

__all__ = [
    "LocalTransport",
    "RemoteEndpoint",
    "RemoteTransport",
    "Transport",
    "check_connection",
]
