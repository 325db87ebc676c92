"""Exit-code constants used by the CLI layer.

Centralised here so that every exit path uses a well-known, tested
value rather than magic integers scattered across the codebase.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Clean exit: the command completed without error."""

GENERAL_ERROR: int = 1
"""A known HelmError (usage, connection, remote call) was caught and displayed."""

TLS_CONFIG_INVALID: int = 2
"""TLS certificate/key material could not be loaded; nothing was sent to Tiller."""

UNEXPECTED_ERROR: int = 3
"""An unhandled exception escaped all known error boundaries."""

KEYBOARD_INTERRUPT: int = 130
"""User pressed Ctrl+C.  Follows POSIX convention (128 + SIGINT=2)."""
