"""Translation of remote-call failures into user-facing errors."""

from __future__ import annotations

from helm_cli.exceptions import HelmError, RemoteCallError


def translate(err: BaseException | None) -> BaseException | None:
    """Strip transport wrapping from remote-call errors.

    A :class:`RemoteCallError` becomes a :class:`HelmError` whose message
    is exactly the remote-supplied description (the original stays
    reachable through ``__cause__``).  ``None`` and every other error are
    returned unchanged.
    """
    if err is None:
        return None
    if isinstance(err, RemoteCallError):
        translated = HelmError(err.description, hint=err.hint)
        translated.__cause__ = err
        return translated
    return err
