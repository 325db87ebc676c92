"""helm-cli: bootstrap and command router for the Helm package manager.

Resolves connection configuration, reaches Tiller (directly or through a
Kubernetes port-forward), and routes built-in and plugin commands.
"""

from helm_cli.version import __version__

__all__: list[str] = ["__version__"]
