"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols, never on concrete
implementations, so the Kubernetes client, TLS loading and the remote
client can all be replaced by fakes in tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from helm_cli.core.models import Channel, TLSConfig


class ForwardHandle(Protocol):
    """A running port-forward from a local port into the cluster."""

    local_port: int

    def close(self) -> None:
        """Stop forwarding and release the local port."""
        ...  # pragma: no cover


class ClusterAccessor(Protocol):
    """Access to one Kubernetes cluster (one kubeconfig context)."""

    def forward(self, namespace: str) -> ForwardHandle:
        """Open a port-forward to Tiller running in *namespace*.

        Blocks until the local port is assigned.

        Raises
        ------
        TunnelFailedError
            When no Tiller pod is found or forwarding cannot start.
        """
        ...  # pragma: no cover


AccessorFactory = Callable[[str], ClusterAccessor]
"""Build a :class:`ClusterAccessor` for a kubeconfig context name.

Raises :class:`~helm_cli.exceptions.ConfigUnavailableError` when the
configuration cannot be loaded.
"""

CredentialBuilder = Callable[[TLSConfig], Any]
"""Build a transport credential from a :class:`TLSConfig`.

Raises :class:`~helm_cli.exceptions.TLSConfigInvalidError` when any
required certificate or key cannot be loaded.
"""


class ReleaseClient(Protocol):
    """A client that can be asked to perform a named remote operation."""

    def call(self, operation: str, **params: Any) -> Any:
        """Run *operation* on Tiller and return its decoded response.

        Raises
        ------
        RemoteCallError
            When the remote operation fails.
        """
        ...  # pragma: no cover


ClientFactory = Callable[[Channel], ReleaseClient]
