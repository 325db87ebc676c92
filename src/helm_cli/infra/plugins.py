"""Infrastructure: plugin discovery and execution.

A plugin is a subdirectory of ``$HELM_HOME/plugins`` holding a
``plugin.yaml`` manifest::

    name: "keybase"
    version: "0.1.0"
    usage: "Integrate Keybase.io tools with Helm"
    description: |-
      This plugin provides Keybase services to Helm.
    ignoreFlags: false
    useTunnel: false
    command: "$HELM_PLUGIN_DIR/keybase.sh"

Discovery never fails: a missing or unreadable plugins directory means
"no plugins", and a malformed manifest is skipped with a warning.
Warnings are returned to the caller; this module performs no
user-facing output.
"""

from __future__ import annotations

import shlex
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from helm_cli.core.models import PluginDescriptor
from helm_cli.exceptions import EnvironmentError, PluginError
from helm_cli.utils.env import expand_env
from helm_cli.utils.paths import HelmHome

MANIFEST_NAME: str = "plugin.yaml"

_KNOWN_KEYS: frozenset[str] = frozenset(
    {"name", "version", "usage", "description", "command", "ignoreFlags", "useTunnel"},
)


def _load_yaml() -> Any:
    try:
        import yaml
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "PyYAML is not installed. Install with: pip install PyYAML",
        ) from exc
    return yaml


# ---------------------------------------------------------------------------
# Manifest parsing
# ---------------------------------------------------------------------------

def load_descriptor(directory: Path) -> PluginDescriptor:
    """Parse ``<directory>/plugin.yaml`` into a :class:`PluginDescriptor`.

    Raises
    ------
    PluginError
        When the manifest cannot be read or lacks ``name`` / ``command``.
    """
    yaml = _load_yaml()
    manifest = directory / MANIFEST_NAME
    try:
        raw = yaml.safe_load(manifest.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PluginError(f"cannot read {manifest}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise PluginError(f"cannot parse {manifest}: {exc}") from exc

    if not isinstance(raw, dict):
        raise PluginError(f"{manifest} is not a mapping")

    name = str(raw.get("name") or "").strip()
    command = str(raw.get("command") or "").strip()
    if not name:
        raise PluginError(f"{manifest} has no name")
    if not command:
        raise PluginError(f"{manifest} has no command")
    if any(ch.isspace() for ch in name):
        raise PluginError(f"{manifest}: plugin name {name!r} contains whitespace")

    return PluginDescriptor(
        name=name,
        directory=directory,
        command=command,
        short_help=str(raw.get("usage") or ""),
        long_help=str(raw.get("description") or ""),
        version=str(raw.get("version") or ""),
        ignore_flags=bool(raw.get("ignoreFlags", False)),
        use_tunnel=bool(raw.get("useTunnel", False)),
        extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
    )


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class DiscoveryResult:
    """Descriptors found under a plugins root plus non-fatal warnings."""

    descriptors: list[PluginDescriptor] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class PluginLoader:
    """Scan a plugins directory for plugin descriptors.

    Parameters
    ----------
    plugins_root:
        Directory to scan (normally ``$HELM_HOME/plugins``).
    disabled:
        ``True`` when ``HELM_NO_PLUGINS`` is set; :meth:`discover` then
        returns nothing without touching the filesystem.
    """

    def __init__(self, plugins_root: Path, *, disabled: bool = False) -> None:
        self._root = plugins_root
        self._disabled = disabled

    @property
    def root(self) -> Path:
        return self._root

    def discover(self) -> DiscoveryResult:
        """Return one descriptor per subdirectory holding a manifest.

        Subdirectories are visited in name order so that the first of two
        plugins declaring the same name is stable across runs.
        """
        result = DiscoveryResult()
        if self._disabled:
            return result

        try:
            entries = sorted(p for p in self._root.iterdir() if p.is_dir())
        except OSError:
            return result

        for entry in entries:
            if not (entry / MANIFEST_NAME).is_file():
                continue
            try:
                result.descriptors.append(load_descriptor(entry))
            except PluginError as exc:
                result.warnings.append(f"skipping plugin in {entry}: {exc}")
        return result


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def plugin_environment(
    descriptor: PluginDescriptor,
    *,
    home: str,
    host: str,
    namespace: str,
    debug: bool,
    base: Mapping[str, str],
) -> dict[str, str]:
    """Environment handed to a plugin process."""
    layout = HelmHome.of(home)
    env = dict(base)
    env.update(
        {
            "HELM_PLUGIN_NAME": descriptor.name,
            "HELM_PLUGIN_DIR": str(descriptor.directory),
            "HELM_PLUGIN": str(layout.plugins),
            "HELM_BIN": sys.argv[0] if sys.argv and sys.argv[0] else "helm",
            "HELM_HOME": home,
            "HELM_PATH_REPOSITORY": str(layout.repository),
            "HELM_PATH_REPOSITORY_FILE": str(layout.repository_file),
            "HELM_PATH_CACHE": str(layout.cache),
            "HELM_PATH_LOCAL_REPOSITORY": str(layout.local_repository),
            "HELM_PATH_STARTER": str(layout.starters),
            "HELM_HOST": host,
            "TILLER_NAMESPACE": namespace,
            "HELM_DEBUG": "1" if debug else "0",
        },
    )
    return env


def prepare_command(
    descriptor: PluginDescriptor,
    args: Sequence[str],
    env: Mapping[str, str],
) -> list[str]:
    """Expand the manifest command and append the forwarded arguments."""
    try:
        argv = shlex.split(expand_env(descriptor.command, env))
    except ValueError as exc:
        raise PluginError(f"plugin {descriptor.name!r} has a malformed command: {exc}") from exc
    if not argv:
        raise PluginError(f"plugin {descriptor.name!r} has an empty command")

    main = Path(argv[0])
    if not main.is_absolute() and (descriptor.directory / main).is_file():
        argv[0] = str(descriptor.directory / main)

    forwarded = list(args)
    if descriptor.ignore_flags:
        forwarded = [a for a in forwarded if not a.startswith("-")]
    return argv + forwarded


def run_plugin(argv: Sequence[str], env: Mapping[str, str]) -> int:
    """Run a prepared plugin command and return its exit status.

    Raises
    ------
    PluginError
        When the program cannot be started at all.
    """
    try:
        completed = subprocess.run(list(argv), env=dict(env), check=False)
    except OSError as exc:
        raise PluginError(f"cannot run plugin program {argv[0]!r}: {exc}") from exc
    return completed.returncode
