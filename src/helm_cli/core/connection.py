"""Connection establishment: tunnel to Tiller plus optional TLS.

:class:`ConnectionManager` owns the only port-forward a process ever
opens.  The forward is created lazily on the first
:meth:`~ConnectionManager.ensure_connected` call, and
:meth:`~ConnectionManager.teardown` releases it exactly once.

Guarantees
----------
* No Kubernetes access at all when a remote address is configured.
* No partial channel: a failure at any step raises before anything is
  returned, and a tunnel opened before a TLS failure is still released
  by :meth:`teardown`.
* No ``print()``: debug lines go through the injected *debug* callable.
"""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any

from helm_cli.core.models import Channel, ConnectionConfig, TLSConfig
from helm_cli.core.protocols import AccessorFactory, CredentialBuilder, ForwardHandle
from helm_cli.exceptions import ConfigUnavailableError, HelmError, TunnelFailedError


class ConnectionManager:
    """Lazily resolve a :class:`Channel` to Tiller for one invocation.

    Parameters
    ----------
    config:
        Resolved connection settings.
    tls:
        Resolved TLS settings.  ``None`` for commands without TLS flags.
    accessor_factory:
        Builds a cluster accessor for a kubeconfig context.  Only called
        when ``config.remote_address`` is empty.
    credential_builder:
        Turns a :class:`TLSConfig` into a transport credential.
    debug:
        Optional sink for verbose diagnostics.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        tls: TLSConfig | None = None,
        *,
        accessor_factory: AccessorFactory,
        credential_builder: CredentialBuilder,
        debug: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config
        self._tls = tls if tls is not None else TLSConfig()
        self._accessor_factory = accessor_factory
        self._credential_builder = credential_builder
        self._debug = debug

        self._address: str = config.remote_address
        self._tunnel: ForwardHandle | None = None
        self._channel: Channel | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def tls(self) -> TLSConfig:
        return self._tls

    @property
    def address(self) -> str:
        """Configured or derived Tiller address; empty before tunnelling."""
        return self._address

    @property
    def tunnel(self) -> ForwardHandle | None:
        return self._tunnel

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ensure_address(self) -> str:
        """Return the Tiller address, opening the tunnel if none is configured."""
        if self._address:
            return self._address

        context = self._config.cluster_context
        try:
            accessor = self._accessor_factory(context)
        except HelmError:
            raise
        except Exception as exc:
            raise ConfigUnavailableError(
                f"could not get kubernetes config for context '{context}': {exc}"
            ) from exc

        try:
            handle = accessor.forward(self._config.remote_namespace)
        except HelmError:
            raise
        except Exception as exc:
            raise TunnelFailedError(f"could not create tunnel to tiller: {exc}") from exc

        self._tunnel = handle
        self._address = f"localhost:{handle.local_port}"
        self._log(f"Created tunnel using local port: '{handle.local_port}'")
        return self._address

    def ensure_connected(self) -> Channel:
        """Return the channel to Tiller, establishing it on first use.

        Raises
        ------
        ConfigUnavailableError
            The kubeconfig context could not be loaded.
        TunnelFailedError
            The port-forward could not be created.
        TLSConfigInvalidError
            TLS material required by the settings could not be loaded.
        """
        if self._channel is not None:
            return self._channel

        address = self.ensure_address()
        self._log(f'SERVER: "{address}"')

        credential: Any = None
        if self._tls.enabled:
            credential = self._credential_builder(self._tls)

        self._channel = Channel(address=address, credential=credential)
        return self._channel

    def teardown(self) -> None:
        """Close the tunnel if one was opened.  Safe to call repeatedly."""
        tunnel, self._tunnel = self._tunnel, None
        if tunnel is not None:
            tunnel.close()

    # ------------------------------------------------------------------
    # Context-manager protocol
    # ------------------------------------------------------------------

    def __enter__(self) -> ConnectionManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.teardown()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _log(self, message: str) -> None:
        if self._config.debug and self._debug is not None:
            self._debug(message)
