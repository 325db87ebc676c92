"""Command tree assembly and dispatch.

The tree is a plain :class:`CommandNode` structure built once per
process: built-in commands first, then plugin commands merged in by
:func:`merge_plugins` (built-ins always win a name collision).  The
argparse parser is derived from the tree, never the other way round.

Dispatch lifecycle
------------------
1. Parse ``argv`` (argparse failures become :class:`UsageError`).
2. Resolve the :class:`ConnectionConfig` from flags and environment.
3. Surface a deprecation notice, then validate the positional count.
4. Pre-dispatch hook: expand TLS file paths (remote commands only).
5. Run the handler.
6. Post-dispatch hook: tear the tunnel down, even on error.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Iterable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TextIO

from helm_cli.cli import exit_codes
from helm_cli.cli.console import console
from helm_cli.core.config import (
    TLS_CA_CERT_DEFAULT,
    TLS_CERT_DEFAULT,
    TLS_KEY_DEFAULT,
    ConfigResolver,
)
from helm_cli.core.connection import ConnectionManager
from helm_cli.core.errors import translate
from helm_cli.core.models import Channel, ConnectionConfig, PluginDescriptor
from helm_cli.core.protocols import AccessorFactory, ClientFactory, CredentialBuilder, ReleaseClient
from helm_cli.exceptions import RemoteCallError, UsageError, check_args_length
from helm_cli.infra.kube import accessor_for_context
from helm_cli.infra.release_client import client_for_channel
from helm_cli.infra.tls import build_credential
from helm_cli.version import __version__

Handler = Callable[["Invocation"], "int | None"]

GLOBAL_USAGE = """The Kubernetes package manager

To begin working with Helm, run the 'helm init' command:

	$ helm init

This will set up any necessary local configuration.

Common actions from this point include:

- helm search:    search for charts
- helm fetch:     download a chart to your local directory to view
- helm install:   upload the chart to Kubernetes
- helm list:      list releases of charts

Environment:
  $HELM_HOME          set an alternative location for Helm files. By default, these are stored in ~/.helm
  $HELM_HOST          set an alternative Tiller host. The format is host:port
  $HELM_NO_PLUGINS    disable plugins. Set HELM_NO_PLUGINS=1 to disable plugins.
  $TILLER_NAMESPACE   set an alternative Tiller namespace (default "kube-system")
  $KUBECONFIG         set an alternative Kubernetes configuration file (default "~/.kube/config")
"""


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FlagSpec:
    """Declaration of one ``--long`` option (optionally with a short alias)."""

    name: str
    help: str = ""
    default: Any = None
    is_bool: bool = False
    short: str | None = None
    type: Callable[[str], Any] | None = None
    append: bool = False

    @property
    def dest(self) -> str:
        return self.name.replace("-", "_")

    def add_to(self, parser: argparse.ArgumentParser, *, inherited: bool = False) -> None:
        """Register on *parser*.

        Inherited copies on sub-parsers use ``SUPPRESS`` as default so a
        value given before the sub-command is not overwritten.
        """
        names = [f"--{self.name}"]
        if self.short:
            names.insert(0, f"-{self.short}")
        kwargs: dict[str, Any] = {"dest": self.dest, "help": self.help}
        if self.is_bool:
            kwargs["action"] = "store_true"
            default: Any = bool(self.default)
        else:
            if self.append:
                kwargs["action"] = "append"
            if self.type is not None:
                kwargs["type"] = self.type
            kwargs["metavar"] = self.dest.upper()
            default = self.default
        kwargs["default"] = argparse.SUPPRESS if inherited else default
        parser.add_argument(*names, **kwargs)


PERSISTENT_FLAGS: tuple[FlagSpec, ...] = (
    FlagSpec("home", "location of your Helm config. Overrides $HELM_HOME"),
    FlagSpec("host", "address of tiller. Overrides $HELM_HOST"),
    FlagSpec("kube-context", "name of the kubeconfig context to use"),
    FlagSpec("debug", "enable verbose output", is_bool=True),
    FlagSpec("tiller-namespace", "namespace of tiller. Overrides $TILLER_NAMESPACE"),
)

TLS_FLAGS: tuple[FlagSpec, ...] = (
    FlagSpec("tls-ca-cert", "path to TLS CA certificate file", default=TLS_CA_CERT_DEFAULT),
    FlagSpec("tls-cert", "path to TLS certificate file", default=TLS_CERT_DEFAULT),
    FlagSpec("tls-key", "path to TLS key file", default=TLS_KEY_DEFAULT),
    FlagSpec("tls-verify", "enable TLS for request and verify remote", is_bool=True),
    FlagSpec("tls", "enable TLS for request", is_bool=True),
)

_PERSISTENT_VALUE_FLAGS = frozenset(f.name for f in PERSISTENT_FLAGS if not f.is_bool)
_PERSISTENT_BOOL_FLAGS = frozenset(f.name for f in PERSISTENT_FLAGS if f.is_bool)


def command_index(argv: Sequence[str]) -> int | None:
    """Return the index of the command name after leading persistent flags.

    ``None`` when any other option comes first or no command is given.
    """
    i = 0
    while i < len(argv):
        token = argv[i]
        if token.startswith("--"):
            name, has_value, _ = token[2:].partition("=")
            if name in _PERSISTENT_BOOL_FLAGS or (name in _PERSISTENT_VALUE_FLAGS and has_value):
                i += 1
                continue
            if name in _PERSISTENT_VALUE_FLAGS:
                i += 2
                continue
            return None
        if token.startswith("-"):
            return None
        return i
    return None


# ---------------------------------------------------------------------------
# Command tree
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class CommandNode:
    """One entry of the command tree, built-in or plugin-provided."""

    name: str
    short_help: str = ""
    long_help: str = ""
    handler: Handler | None = None
    args: tuple[str, ...] = ()
    optional_args: tuple[str, ...] = ()
    variadic: bool = False
    flags: list[FlagSpec] = field(default_factory=list)
    children: list[CommandNode] = field(default_factory=list)
    deprecated: str | None = None
    hidden: bool = False
    remote: bool = False
    plugin: PluginDescriptor | None = None

    def child(self, name: str) -> CommandNode | None:
        return next((c for c in self.children if c.name == name), None)

    def add(self, *nodes: CommandNode) -> CommandNode:
        """Append *nodes* as children; sibling names must stay unique."""
        for node in nodes:
            if self.child(node.name) is not None:
                raise ValueError(f"duplicate command {node.name!r} under {self.name!r}")
            self.children.append(node)
        return self

    def walk(self, path: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], CommandNode]]:
        """Yield ``(path, node)`` depth-first, root first with an empty path."""
        yield path, self
        for child in self.children:
            yield from child.walk(path + (child.name,))

    @property
    def runnable(self) -> bool:
        return self.handler is not None

    def arg_usage(self) -> str:
        parts = [a.upper().replace(" ", "_") for a in self.args]
        parts += [f"[{a.upper().replace(' ', '_')}]" for a in self.optional_args]
        if self.variadic and self.args:
            parts[-1] += "..."
        return " ".join(parts)

    def check_args(self, received: int) -> None:
        """Raise :class:`UsageError` unless *received* positionals fit the declaration."""
        if self.plugin is not None:
            return
        if self.variadic:
            if received < len(self.args):
                noun = "argument" if len(self.args) == 1 else "arguments"
                raise UsageError(
                    f"This command needs at least {len(self.args)} {noun}: {', '.join(self.args)}",
                )
            return
        if self.optional_args:
            low, high = len(self.args), len(self.args) + len(self.optional_args)
            if not low <= received <= high:
                names = ", ".join(self.args + self.optional_args)
                raise UsageError(f"This command accepts {low} to {high} arguments: {names}")
            return
        check_args_length(received, *self.args)


def with_tls(node: CommandNode) -> CommandNode:
    """Give *node* the client-side TLS flags and mark it as talking to Tiller."""
    node.flags.extend(TLS_FLAGS)
    node.remote = True
    return node


def mark_deprecated(node: CommandNode, notice: str) -> CommandNode:
    node.deprecated = notice
    return node


def merge_plugins(root: CommandNode, plugins: Iterable[CommandNode]) -> list[str]:
    """Add plugin nodes to *root*; return one warning per skipped plugin.

    A plugin whose name is already taken (by a built-in, or by an earlier
    plugin) is not added.
    """
    warnings: list[str] = []
    for node in plugins:
        existing = root.child(node.name)
        if existing is None:
            root.children.append(node)
            continue
        owner = "another plugin" if existing.plugin is not None else "a built-in command"
        where = f" ({node.plugin.directory})" if node.plugin is not None else ""
        warnings.append(f"plugin {node.name!r}{where} ignored: the name is used by {owner}")
    return warnings


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Invocation:
    """Everything a handler needs for one dispatched command."""

    node: CommandNode
    path: tuple[str, ...]
    args: list[str]
    options: dict[str, Any]
    config: ConnectionConfig
    connections: ConnectionManager
    router: CommandRouter
    out: TextIO
    environ: MutableMapping[str, str]
    _client: ReleaseClient | None = field(default=None, init=False, repr=False)

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name.replace("-", "_"), default)

    def echo(self, text: str = "") -> None:
        self.out.write(f"{text}\n")

    def debug(self, message: str) -> None:
        if self.config.debug:
            console.debug(message)

    def channel(self) -> Channel:
        return self.connections.ensure_connected()

    def client(self) -> ReleaseClient:
        if self._client is None:
            self._client = self.router.client_factory(self.channel())
        return self._client

    def call(self, operation: str, **params: Any) -> Any:
        """Run a remote operation, translating remote failures for the user."""
        client = self.client()
        self.debug(f"calling {operation}")
        try:
            return client.call(operation, **params)
        except RemoteCallError as exc:
            raise translate(exc) from exc

    def close(self) -> None:
        client, self._client = self._client, None
        close = getattr(client, "close", None)
        if callable(close):
            close()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises :class:`UsageError` instead of exiting."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message, hint=f"Run '{self.prog} --help' for usage.")


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class CommandRouter:
    """Own the command tree for one process and dispatch exactly one command.

    Parameters
    ----------
    commands:
        Built-in top-level command nodes.
    plugins:
        Plugin command nodes; merged once, built-ins take precedence.
    resolver:
        Configuration resolver (defaults to one over ``os.environ``).
    """

    def __init__(
        self,
        commands: Iterable[CommandNode],
        plugins: Iterable[CommandNode] = (),
        *,
        resolver: ConfigResolver | None = None,
        accessor_factory: AccessorFactory = accessor_for_context,
        credential_builder: CredentialBuilder = build_credential,
        client_factory: ClientFactory = client_for_channel,
        out: TextIO | None = None,
        warn: Callable[[str], None] | None = None,
        prog: str = "helm",
    ) -> None:
        self.root = CommandNode(
            prog,
            short_help="The Helm package manager for Kubernetes.",
            long_help=GLOBAL_USAGE,
        )
        self.root.add(*commands)
        self.resolver = resolver if resolver is not None else ConfigResolver()
        self.accessor_factory = accessor_factory
        self.credential_builder = credential_builder
        self.client_factory = client_factory
        self._out = out
        self._warn = warn if warn is not None else console.warn
        self._parsers: dict[tuple[str, ...], argparse.ArgumentParser] = {}

        for warning in merge_plugins(self.root, plugins):
            self._warn(warning)

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def plugins(self) -> list[PluginDescriptor]:
        return [c.plugin for c in self.root.children if c.plugin is not None]

    def find(self, path: Sequence[str]) -> CommandNode | None:
        node: CommandNode | None = self.root
        for name in path:
            node = node.child(name) if node is not None else None
        return node

    # ------------------------------------------------------------------
    # Parser construction
    # ------------------------------------------------------------------

    def build_parser(self) -> argparse.ArgumentParser:
        self._parsers = {}
        parser = _ArgumentParser(
            prog=self.root.name,
            description=self.root.long_help,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "-V",
            "--version",
            action="version",
            version=f"%(prog)s {__version__}",
        )
        for flag in PERSISTENT_FLAGS:
            flag.add_to(parser)
        self._populate(parser, self.root, ())
        return parser

    def _populate(
        self,
        parser: argparse.ArgumentParser,
        node: CommandNode,
        path: tuple[str, ...],
    ) -> None:
        self._parsers[path] = parser
        parser.set_defaults(_path=path)
        if path:
            for flag in PERSISTENT_FLAGS:
                flag.add_to(parser, inherited=True)
        for flag in node.flags:
            flag.add_to(parser)

        if node.children:
            subparsers = parser.add_subparsers(title="Available Commands", metavar="<command>")
            for child in node.children:
                kwargs: dict[str, Any] = {
                    "description": child.long_help or child.short_help,
                    "formatter_class": argparse.RawDescriptionHelpFormatter,
                }
                if not child.hidden:
                    suffix = " (deprecated)" if child.deprecated else ""
                    kwargs["help"] = f"{child.short_help}{suffix}"
                if child.plugin is not None:
                    kwargs["add_help"] = False
                child_parser = subparsers.add_parser(child.name, **kwargs)
                if child.plugin is not None:
                    self._parsers[path + (child.name,)] = child_parser
                    continue
                self._populate(child_parser, child, path + (child.name,))
        elif node.runnable:
            parser.add_argument("args", nargs="*", metavar=node.arg_usage() or "ARGS")

    def _persistent_parser(self) -> argparse.ArgumentParser:
        parser = _ArgumentParser(prog=self.root.name, add_help=False)
        for flag in PERSISTENT_FLAGS:
            flag.add_to(parser)
        return parser

    def _split_plugin_invocation(
        self,
        argv: Sequence[str],
    ) -> tuple[list[str], CommandNode, list[str]] | None:
        """Detect ``[persistent flags] <plugin> [anything]``.

        Plugin arguments are forwarded verbatim, so they must not go
        through argparse.
        """
        i = command_index(argv)
        if i is None:
            return None
        node = self.root.child(argv[i])
        if node is None or node.plugin is None:
            return None
        return list(argv[:i]), node, list(argv[i + 1:])

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, argv: Sequence[str]) -> int:
        """Parse *argv*, run the matching command and return its exit code."""
        split = self._split_plugin_invocation(argv)
        if split is not None:
            flag_argv, node, args = split
            namespace = self._persistent_parser().parse_args(flag_argv)
            path: tuple[str, ...] = (node.name,)
        else:
            namespace = self.build_parser().parse_args(list(argv))
            path = tuple(getattr(namespace, "_path", ()))
            node = self.find(path) or self.root
            args = list(getattr(namespace, "args", []) or [])

        config = self.resolver.resolve(
            home=namespace.home,
            host=namespace.host,
            kube_context=namespace.kube_context,
            tiller_namespace=namespace.tiller_namespace,
            debug=namespace.debug,
        )

        if not node.runnable:
            self._parsers[path].print_help(self.out)
            return exit_codes.SUCCESS

        if node.deprecated:
            console.print(f'Command "{node.name}" is deprecated, {node.deprecated.rstrip()}')

        node.check_args(len(args))

        options = {
            k: v for k, v in vars(namespace).items() if not k.startswith("_") and k != "args"
        }
        invocation = Invocation(
            node=node,
            path=path,
            args=args,
            options=options,
            config=config,
            connections=self._pre_dispatch(node, config, options),
            router=self,
            out=self.out,
            environ=self.resolver.environ,
        )
        try:
            result = node.handler(invocation)  # type: ignore[misc]
        finally:
            self._post_dispatch(invocation)
        return exit_codes.SUCCESS if result is None else int(result)

    def _pre_dispatch(
        self,
        node: CommandNode,
        config: ConnectionConfig,
        options: dict[str, Any],
    ) -> ConnectionManager:
        tls = None
        if node.remote:
            tls = self.resolver.resolve_tls(
                enable=bool(options.get("tls")),
                verify=bool(options.get("tls_verify")),
                ca_cert=options.get("tls_ca_cert"),
                cert=options.get("tls_cert"),
                key=options.get("tls_key"),
            )
        return ConnectionManager(
            config,
            tls,
            accessor_factory=self.accessor_factory,
            credential_builder=self.credential_builder,
            debug=console.debug,
        )

    @staticmethod
    def _post_dispatch(invocation: Invocation) -> None:
        try:
            invocation.close()
        finally:
            invocation.connections.teardown()
