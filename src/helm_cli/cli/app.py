"""CLI application entry point for helm-cli.

This module is the **sole error boundary** for the entire application.
It catches :class:`~helm_cli.exceptions.HelmError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages on
stderr and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here.  Command behaviour lives in
  :mod:`helm_cli.cli.commands`, routing in :mod:`helm_cli.cli.router`.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import sys
from collections.abc import Collection, MutableMapping, Sequence
from typing import TextIO

from helm_cli.cli import exit_codes
from helm_cli.cli.commands import builtin_commands, plugin_commands
from helm_cli.cli.console import console
from helm_cli.cli.router import CommandRouter, command_index
from helm_cli.core.config import ConfigResolver
from helm_cli.core.errors import translate
from helm_cli.exceptions import HelmError, TLSConfigInvalidError
from helm_cli.infra.plugins import PluginLoader
from helm_cli.utils.paths import HelmHome


def _home_flag(argv: Sequence[str], builtin_names: Collection[str]) -> str | None:
    """Return the ``--home`` value without parsing the full command line.

    Plugins live below the home directory, so it is needed before the
    command tree (and therefore the parser) exists.  Anything after a
    command name that is not a built-in belongs to a plugin and is not
    scanned.
    """
    index = command_index(argv)
    if index is not None and argv[index] not in builtin_names:
        argv = argv[:index]
    for i, token in enumerate(argv):
        if token == "--":
            break
        if token == "--home" and i + 1 < len(argv):
            return argv[i + 1]
        if token.startswith("--home="):
            return token.partition("=")[2]
    return None


def build_router(
    argv: Sequence[str],
    *,
    environ: MutableMapping[str, str] | None = None,
    out: TextIO | None = None,
) -> CommandRouter:
    """Assemble the command tree: built-ins plus discovered plugins."""
    builtins = builtin_commands()
    resolver = ConfigResolver(environ)
    home = resolver.resolve_home(_home_flag(argv, {node.name for node in builtins}))

    loader = PluginLoader(HelmHome.of(home).plugins, disabled=resolver.plugins_disabled())
    discovered = loader.discover()
    for warning in discovered.warnings:
        console.warn(warning)

    return CommandRouter(
        builtins,
        plugin_commands(discovered.descriptors),
        resolver=resolver,
        out=out,
    )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(
    argv: Sequence[str] | None = None,
    *,
    environ: MutableMapping[str, str] | None = None,
    out: TextIO | None = None,
) -> int:
    """Run the helm CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.
    environ:
        Environment mapping; ``os.environ`` when ``None``.
    out:
        Stream for command output; ``sys.stdout`` when ``None``.

    Returns
    -------
    int
        OS process exit code.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    router = build_router(args, environ=environ, out=out)
    return router.dispatch(args)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except TLSConfigInvalidError as exc:
        console.error(str(exc), exc.hint)
        sys.exit(exit_codes.TLS_CONFIG_INVALID)
    except HelmError as exc:
        shown = translate(exc)
        console.error(str(shown), getattr(shown, "hint", None))
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
