"""Long-lived reanalyze-server management."""

from reanalyst.server.models import ServerExited, ServerHandle, ServerLog
from reanalyst.server.registry import ServerRegistry, remove_socket_file

__all__ = [
    "ServerExited",
    "ServerHandle",
    "ServerLog",
    "ServerRegistry",
    "remove_socket_file",
]
