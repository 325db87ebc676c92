"""Environment-variable helpers shared by configuration and plugins."""

from __future__ import annotations

import re
from collections.abc import Mapping

_ENV_REF = re.compile(r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))")

_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "y", "on"})


def expand_env(value: str, environ: Mapping[str, str]) -> str:
    """Expand ``$VAR`` and ``${VAR}`` references in *value* using *environ*.

    Unknown variables expand to the empty string.
    """

    def _lookup(match: re.Match[str]) -> str:
        return environ.get(match.group("braced") or match.group("bare"), "")

    return _ENV_REF.sub(_lookup, value)


def is_truthy(value: str | None) -> bool:
    """Interpret an environment flag such as ``HELM_NO_PLUGINS=1``."""
    return value is not None and value.strip().lower() in _TRUTHY
