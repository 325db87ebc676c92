"""Infrastructure layer: external system integration.

This layer wraps all interaction with the Kubernetes API, TLS material,
the plugin directory, and the Tiller transport.  Every raw third-party
exception must be caught here and re-raised as a
:class:`~helm_cli.exceptions.HelmError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Third-party packages are imported lazily, inside the functions that
  need them.
"""

from helm_cli.infra.kube import KubeClusterAccessor, PortForwardTunnel, accessor_for_context
from helm_cli.infra.plugins import DiscoveryResult, PluginLoader, run_plugin
from helm_cli.infra.release_client import HttpReleaseClient, client_for_channel
from helm_cli.infra.tls import build_credential

__all__: list[str] = [
    "DiscoveryResult",
    "HttpReleaseClient",
    "KubeClusterAccessor",
    "PluginLoader",
    "PortForwardTunnel",
    "accessor_for_context",
    "build_credential",
    "client_for_channel",
    "run_plugin",
]
