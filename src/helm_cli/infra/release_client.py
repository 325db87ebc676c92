"""httpx-backed :class:`~helm_cli.core.protocols.ReleaseClient`.

Each named operation is a JSON ``POST`` to ``/v1/<Operation>`` on the
Tiller address.  A secured channel switches the scheme to ``https`` and
uses the channel credential as the SSL context.

Failures never escape as raw httpx exceptions: they become
:class:`~helm_cli.exceptions.RemoteCallError` carrying a typed
:class:`~helm_cli.exceptions.RemoteErrorKind` and the remote-supplied
description.
"""

from __future__ import annotations

from typing import Any

from helm_cli.core.models import Channel
from helm_cli.exceptions import EnvironmentError, RemoteCallError, RemoteErrorKind
from helm_cli.version import __version__

DEFAULT_TIMEOUT_SECONDS: float = 300.0

_STATUS_KINDS: dict[int, RemoteErrorKind] = {
    400: RemoteErrorKind.INVALID_ARGUMENT,
    404: RemoteErrorKind.NOT_FOUND,
    409: RemoteErrorKind.ALREADY_EXISTS,
    501: RemoteErrorKind.UNIMPLEMENTED,
    503: RemoteErrorKind.UNAVAILABLE,
    504: RemoteErrorKind.DEADLINE_EXCEEDED,
}


def _load_httpx() -> Any:
    try:
        import httpx
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "httpx is not installed. Install with: pip install httpx",
        ) from exc
    return httpx


def _kind_from(name: Any, status_code: int) -> RemoteErrorKind:
    if isinstance(name, str):
        try:
            return RemoteErrorKind(name)
        except ValueError:
            pass
    if status_code >= 500 and status_code not in _STATUS_KINDS:
        return RemoteErrorKind.INTERNAL
    return _STATUS_KINDS.get(status_code, RemoteErrorKind.UNKNOWN)


class HttpReleaseClient:
    """Perform named Tiller operations over HTTP(S).

    Usage::

        client = HttpReleaseClient(channel)
        status = client.call("GetReleaseStatus", name="happy-panda")
    """

    def __init__(
        self,
        channel: Channel,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Any = None,
    ) -> None:
        httpx = _load_httpx()
        scheme = "https" if channel.secure else "http"
        self._channel = channel
        self._client = httpx.Client(
            base_url=f"{scheme}://{channel.address}",
            verify=channel.credential if channel.secure else True,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": f"helm-cli/{__version__}", "X-Helm-Version": __version__},
            transport=transport,
        )

    @property
    def channel(self) -> Channel:
        return self._channel

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpReleaseClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def call(self, operation: str, **params: Any) -> Any:
        httpx = _load_httpx()
        try:
            response = self._client.post(f"/v1/{operation}", json=params)
        except httpx.TimeoutException as exc:
            raise RemoteCallError(
                f"timed out waiting for {operation}",
                kind=RemoteErrorKind.DEADLINE_EXCEEDED,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteCallError(
                f"transport is closing: {exc}",
                kind=RemoteErrorKind.UNAVAILABLE,
                hint="Check that tiller is running and reachable.",
            ) from exc

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise RemoteCallError(
                    f"malformed response for {operation}",
                    kind=RemoteErrorKind.INTERNAL,
                ) from exc

        raise self._error_from(response)

    @staticmethod
    def _error_from(response: Any) -> RemoteCallError:
        """Decode ``{"error": {"code": ..., "message": ...}}`` error bodies."""
        description = response.text.strip() or response.reason_phrase
        code: Any = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error", body)
            if isinstance(error, dict):
                description = str(error.get("message") or description)
                code = error.get("code")
            elif isinstance(error, str):
                description = error
        return RemoteCallError(description, kind=_kind_from(code, response.status_code))


def client_for_channel(channel: Channel) -> HttpReleaseClient:
    """Factory matching :data:`~helm_cli.core.protocols.ClientFactory`."""
    return HttpReleaseClient(channel)
