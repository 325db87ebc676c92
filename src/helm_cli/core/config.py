"""Connection configuration resolution.

Each setting is resolved with the precedence *explicit flag* >
*environment variable* > *compiled default*.  Resolution never fails:
anything unset falls through to its default.

The resolver works on an injected environment mapping (``os.environ``
by default) so that tests never touch process state.
"""

from __future__ import annotations

import os
from collections import ChainMap
from collections.abc import MutableMapping
from pathlib import Path

from helm_cli.core.models import DEFAULT_TILLER_NAMESPACE, ConnectionConfig, TLSConfig
from helm_cli.utils.env import expand_env, is_truthy

HOME_ENV_VAR: str = "HELM_HOME"
HOST_ENV_VAR: str = "HELM_HOST"
TILLER_NAMESPACE_ENV_VAR: str = "TILLER_NAMESPACE"
NO_PLUGINS_ENV_VAR: str = "HELM_NO_PLUGINS"

TLS_CA_CERT_DEFAULT: str = "$HELM_HOME/ca.pem"
TLS_CERT_DEFAULT: str = "$HELM_HOME/cert.pem"
TLS_KEY_DEFAULT: str = "$HELM_HOME/key.pem"


class ConfigResolver:
    """Resolve :class:`ConnectionConfig` and :class:`TLSConfig` from flags and env.

    Parameters
    ----------
    environ:
        Environment mapping to read from.  Resolving the home directory
        writes ``HELM_HOME`` back into it so handlers and plugin processes
        observe the same value.
    """

    def __init__(self, environ: MutableMapping[str, str] | None = None) -> None:
        self._environ: MutableMapping[str, str] = os.environ if environ is None else environ
        # HELM_HOME as it was before this resolver exported anything.
        self._initial_home: str = expand_env(self._environ.get(HOME_ENV_VAR, ""), self._environ)

    @property
    def environ(self) -> MutableMapping[str, str]:
        return self._environ

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def expand_path(self, value: str, *, overrides: dict[str, str] | None = None) -> str:
        """Expand ``$VAR`` and ``${VAR}`` against the resolver's environment.

        Unknown variables expand to the empty string.
        """
        if overrides:
            return expand_env(value, ChainMap(overrides, self._environ))
        return expand_env(value, self._environ)

    # ------------------------------------------------------------------
    # Per-field defaults
    # ------------------------------------------------------------------

    def default_home(self) -> str:
        if self._initial_home:
            return self._initial_home
        user_home = self._environ.get("HOME") or str(Path.home())
        return os.path.join(user_home, ".helm")

    def default_host(self) -> str:
        return self._environ.get(HOST_ENV_VAR, "")

    def default_namespace(self) -> str:
        if namespace := self._environ.get(TILLER_NAMESPACE_ENV_VAR):
            return namespace
        return DEFAULT_TILLER_NAMESPACE

    def plugins_disabled(self) -> bool:
        return is_truthy(self._environ.get(NO_PLUGINS_ENV_VAR))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_home(self, flag: str | None = None) -> str:
        """Resolve, expand and re-export the Helm home directory.

        ``$HELM_HOME`` inside the value refers to the variable as it was
        before any export, so resolving twice yields the same directory.
        """
        home = self.expand_path(
            flag or self.default_home(),
            overrides={HOME_ENV_VAR: self._initial_home},
        )
        self._environ[HOME_ENV_VAR] = home
        return home

    def resolve(
        self,
        *,
        home: str | None = None,
        host: str | None = None,
        kube_context: str | None = None,
        tiller_namespace: str | None = None,
        debug: bool = False,
    ) -> ConnectionConfig:
        """Build the process-wide :class:`ConnectionConfig`.

        ``None`` (or empty) flag values mean "not given on the command line".
        """
        resolved_home = self.resolve_home(home)
        return ConnectionConfig(
            home=resolved_home,
            remote_address=host or self.default_host(),
            cluster_context=kube_context or "",
            remote_namespace=tiller_namespace or self.default_namespace(),
            debug=debug,
        )

    def resolve_tls(
        self,
        *,
        enable: bool = False,
        verify: bool = False,
        ca_cert: str | None = None,
        cert: str | None = None,
        key: str | None = None,
    ) -> TLSConfig:
        """Build a :class:`TLSConfig`, expanding file paths without checking them.

        Must run after :meth:`resolve_home` so ``$HELM_HOME`` in the
        defaults points at the resolved home.
        """
        return TLSConfig(
            enable=enable,
            verify=verify,
            ca_cert_path=self.expand_path(ca_cert or TLS_CA_CERT_DEFAULT),
            cert_path=self.expand_path(cert or TLS_CERT_DEFAULT),
            key_path=self.expand_path(key or TLS_KEY_DEFAULT),
        )
