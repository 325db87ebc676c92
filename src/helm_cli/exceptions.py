"""Custom exception hierarchy for helm-cli.

All exceptions that cross layer boundaries must inherit from
:class:`HelmError`.  Raw third-party exceptions (kubernetes, httpx,
PyYAML, ssl) must NEVER propagate beyond the infrastructure layer; they
must be caught and re-raised as a typed subclass defined here.

Hierarchy
---------
HelmError
├── UsageError
├── ConnectionError
│   ├── ConfigUnavailableError
│   ├── TunnelFailedError
│   └── TLSConfigInvalidError
├── RemoteCallError
├── PluginError
└── EnvironmentError
"""

from __future__ import annotations

from enum import Enum


class HelmError(Exception):
    """Base exception for all helm-cli errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Argument handling -----------------------------------------------------

class UsageError(HelmError):
    """Raised when a command receives the wrong number or shape of arguments."""


def check_args_length(args_received: int, *required_args: str) -> None:
    """Raise :class:`UsageError` unless exactly ``len(required_args)`` were given.

    The message names every expected argument, e.g.
    ``This command needs 2 arguments: release name, revision``.
    """
    expected = len(required_args)
    if args_received == expected:
        return
    noun = "argument" if expected == 1 else "arguments"
    raise UsageError(
        f"This command needs {expected} {noun}: {', '.join(required_args)}",
    )


# --- Connection establishment ----------------------------------------------

class ConnectionErrorKind(str, Enum):
    """Which step of connection establishment failed."""

    CONFIG_UNAVAILABLE = "ConfigUnavailable"
    TUNNEL_FAILED = "TunnelFailed"
    TLS_CONFIG_INVALID = "TLSConfigInvalid"


class ConnectionError(HelmError):
    """Raised when a channel to Tiller cannot be established."""

    kind: ConnectionErrorKind = ConnectionErrorKind.TUNNEL_FAILED


class ConfigUnavailableError(ConnectionError):
    """Raised when the Kubernetes configuration for a context cannot be loaded."""

    kind = ConnectionErrorKind.CONFIG_UNAVAILABLE


class TunnelFailedError(ConnectionError):
    """Raised when the port-forward to Tiller could not be created."""

    kind = ConnectionErrorKind.TUNNEL_FAILED


class TLSConfigInvalidError(ConnectionError):
    """Raised when TLS certificate or key material is missing or malformed.

    This is a misconfiguration, not a transient failure; the CLI exits
    with a distinct status instead of retrying.
    """

    kind = ConnectionErrorKind.TLS_CONFIG_INVALID


# --- Remote operations -----------------------------------------------------

class RemoteErrorKind(str, Enum):
    """Status reported by the remote-call layer for a failed operation."""

    UNKNOWN = "Unknown"
    NOT_FOUND = "NotFound"
    INVALID_ARGUMENT = "InvalidArgument"
    ALREADY_EXISTS = "AlreadyExists"
    UNAVAILABLE = "Unavailable"
    DEADLINE_EXCEEDED = "DeadlineExceeded"
    UNIMPLEMENTED = "Unimplemented"
    INTERNAL = "Internal"


class RemoteCallError(HelmError):
    """Raised when a remote operation on Tiller fails.

    Carries the remote-supplied human-readable ``description`` separately
    from the transport wrapping, so callers never need to parse ``str()``.
    """

    def __init__(
        self,
        description: str,
        *,
        kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN,
        hint: str | None = None,
    ) -> None:
        super().__init__(f"rpc error: code = {kind.value} desc = {description}", hint=hint)
        self.kind: RemoteErrorKind = kind
        self.description: str = description


# --- Plugins ---------------------------------------------------------------

class PluginError(HelmError):
    """Raised when a plugin descriptor is malformed or its program cannot run."""


# --- Environment / tooling -------------------------------------------------

class EnvironmentError(HelmError):
    """Raised when a required runtime dependency is not available."""
