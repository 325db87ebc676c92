"""Core layer: configuration resolution, connection orchestration, error translation.

Rules
-----
* No ``print()`` calls.
* No file reads or writes and no network I/O; collaborators are injected.
  The one process lookup is ``Path.home()`` when ``HOME`` is unset.
* No imports from ``cli`` or ``infra``.
"""

from helm_cli.core.config import ConfigResolver
from helm_cli.core.connection import ConnectionManager
from helm_cli.core.errors import translate
from helm_cli.core.models import Channel, ConnectionConfig, PluginDescriptor, TLSConfig
from helm_cli.core.protocols import ClusterAccessor, ForwardHandle, ReleaseClient

__all__: list[str] = [
    "Channel",
    "ClusterAccessor",
    "ConfigResolver",
    "ConnectionConfig",
    "ConnectionManager",
    "ForwardHandle",
    "PluginDescriptor",
    "ReleaseClient",
    "TLSConfig",
    "translate",
]
