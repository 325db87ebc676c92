"""Shared utilities: Helm home layout and environment helpers.

Rules
-----
* No business logic.
* No I/O beyond path arithmetic.
* Importable by any layer.
"""

from helm_cli.utils.env import expand_env, is_truthy
from helm_cli.utils.paths import HelmHome

__all__: list[str] = ["HelmHome", "expand_env", "is_truthy"]
