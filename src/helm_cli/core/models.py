"""Domain models for helm-cli.

All models are **frozen** dataclasses, immutable value objects resolved
once at process start and passed explicitly to the components that need
them.  They carry zero I/O and no dependencies on external packages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_TILLER_NAMESPACE: str = "kube-system"
"""Namespace Tiller is looked up in when neither flag nor env var is set."""


# ---------------------------------------------------------------------------
# Connection configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Where Tiller lives and how to reach it."""

    home: str
    """Expanded Helm home directory (also exported as ``HELM_HOME``)."""

    remote_address: str = ""
    """``host:port`` of Tiller.  Empty means "tunnel through the cluster"."""

    cluster_context: str = ""
    """kubeconfig context name.  Empty selects the current context."""

    remote_namespace: str = DEFAULT_TILLER_NAMESPACE
    """Namespace Tiller runs in.  Never empty."""

    debug: bool = False
    """Verbose output requested with ``--debug``."""

    def __post_init__(self) -> None:
        if not self.remote_namespace:
            object.__setattr__(self, "remote_namespace", DEFAULT_TILLER_NAMESPACE)


@dataclass(frozen=True, slots=True)
class TLSConfig:
    """Client-side TLS settings for commands that talk to Tiller."""

    enable: bool = False
    verify: bool = False
    ca_cert_path: str = ""
    cert_path: str = ""
    key_path: str = ""

    @property
    def enabled(self) -> bool:
        """``True`` when a transport credential must be built.

        ``verify`` implies ``enable``.
        """
        return self.enable or self.verify


# ---------------------------------------------------------------------------
# Channel
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Channel:
    """Resolved target handed to command handlers to build a remote client.

    ``credential`` is the transport credential (an ``ssl.SSLContext`` when
    built by :mod:`helm_cli.infra.tls`) or ``None`` for an unsecured channel.
    """

    address: str
    credential: Any = None

    @property
    def secure(self) -> bool:
        return self.credential is not None


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PluginDescriptor:
    """A plugin discovered under ``$HELM_HOME/plugins``."""

    name: str
    """Command name the plugin is registered under."""

    directory: Path
    """Directory holding ``plugin.yaml``."""

    command: str
    """Command line to run, before environment expansion."""

    short_help: str = ""
    long_help: str = ""
    version: str = ""

    ignore_flags: bool = False
    """Drop ``--flag`` tokens before forwarding arguments."""

    use_tunnel: bool = False
    """Open the Tiller tunnel first and pass its address in ``HELM_HOST``."""

    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    """Unrecognised manifest keys, kept for ``plugin list``."""
