"""CLI console helpers with optional Rich support.

Diagnostics (warnings, errors, debug lines, deprecation notices) go to
stderr through :data:`console`; command results go to stdout through the
stream handed to each invocation.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version``, ``home``)
remain functional even when Rich is not installed.
"""

from __future__ import annotations

import re
import sys
from typing import Any

from helm_cli.exceptions import EnvironmentError

_MARKUP = re.compile(r"\[/?(?:bold |dim )?(?:red|green|yellow|cyan|bold|dim)\]")


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``EnvironmentError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise EnvironmentError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def get_rich_console() -> Any:
	"""Create a Rich console instance targeting stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=True)


def _escape(text: str) -> str:
	try:
		from rich.markup import escape
	except ModuleNotFoundError:
		return text
	return escape(text)


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy with Rich fallback."""

	def print(self, *objects: object) -> None:
		"""Render with Rich when available, else plain stderr print."""
		try:
			rich_console = get_rich_console()
		except EnvironmentError:
			print(*(_MARKUP.sub("", str(o)) for o in objects), file=sys.stderr)
			return
		rich_console.print(*objects)

	def warn(self, message: str) -> None:
		self.print(f"[yellow]WARNING:[/yellow] {_escape(message)}")

	def error(self, message: str, hint: str | None = None) -> None:
		self.print(f"[bold red]Error:[/bold red] {_escape(message)}")
		if hint:
			self.print(f"[yellow]Hint:[/yellow] {_escape(hint)}")

	def debug(self, message: str) -> None:
		self.print(f"[dim]{_escape(message)}[/dim]")


console = _ConsoleProxy()
