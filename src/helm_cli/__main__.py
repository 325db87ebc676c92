"""Allow ``python -m helm_cli`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m helm_cli`` behaves identically to the ``helm`` console
script.
"""

from __future__ import annotations

from helm_cli.cli.app import cli

if __name__ == "__main__":
    cli()
