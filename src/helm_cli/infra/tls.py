"""Infrastructure: build the TLS transport credential for the Tiller channel.

This module is the **only** place that touches certificate files.  Every
``ssl`` / ``OSError`` failure is re-raised as
:class:`~helm_cli.exceptions.TLSConfigInvalidError`.

Modes
-----
* ``verify``: the server chain is validated against the CA certificate
  and the client certificate/key are presented.
* ``enable`` only: the client certificate/key are presented but the
  server certificate is not validated.
"""

from __future__ import annotations

import os
import ssl

from helm_cli.core.models import TLSConfig
from helm_cli.exceptions import TLSConfigInvalidError


def _require_readable(label: str, path: str) -> None:
    if not path:
        raise TLSConfigInvalidError(f"{label} path is empty")
    if not os.path.isfile(path):
        raise TLSConfigInvalidError(
            f"{label} {path!r} does not exist",
            hint="Set the path with the matching --tls-* flag or place the file in $HELM_HOME.",
        )
    if not os.access(path, os.R_OK):
        raise TLSConfigInvalidError(f"{label} {path!r} is not readable")


def build_credential(tls: TLSConfig) -> ssl.SSLContext:
    """Return an ``ssl.SSLContext`` for *tls*.

    Raises
    ------
    TLSConfigInvalidError
        When a required file is missing, unreadable, or not valid PEM.
    """
    _require_readable("TLS certificate", tls.cert_path)
    _require_readable("TLS key", tls.key_path)
    if tls.verify:
        _require_readable("TLS CA certificate", tls.ca_cert_path)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    try:
        context.load_cert_chain(certfile=tls.cert_path, keyfile=tls.key_path)
    except (ssl.SSLError, OSError) as exc:
        raise TLSConfigInvalidError(
            f"could not read x509 key pair (cert: {tls.cert_path!r}, key: {tls.key_path!r}): {exc}",
        ) from exc

    if tls.verify:
        try:
            context.load_verify_locations(cafile=tls.ca_cert_path)
        except (ssl.SSLError, OSError) as exc:
            raise TLSConfigInvalidError(
                f"failed to append certificates from file {tls.ca_cert_path!r}: {exc}",
            ) from exc
        # Only the chain is verified, never the hostname.
        context.check_hostname = False
        context.verify_mode = ssl.CERT_REQUIRED
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    return context
