"""Built-in command declarations and handlers.

Release commands talk to Tiller through :meth:`Invocation.call` and carry
the TLS flags; chart commands operate on local files only.  Rendering is
deliberately plain: one ``key: value`` or table row per line on stdout.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from helm_cli.cli import exit_codes
from helm_cli.cli.router import CommandNode, FlagSpec, Invocation, mark_deprecated, with_tls
from helm_cli.core.models import PluginDescriptor
from helm_cli.exceptions import HelmError, UsageError
from helm_cli.infra.plugins import plugin_environment, prepare_command, run_plugin
from helm_cli.utils.paths import HelmHome
from helm_cli.version import __version__


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------

def _render(inv: Invocation, result: Any) -> None:
    if result is None:
        return
    if isinstance(result, str):
        inv.echo(result)
        return
    inv.echo(json.dumps(result, indent=2, sort_keys=True, default=str))


def _render_table(inv: Invocation, headers: tuple[str, ...], rows: Iterable[tuple[Any, ...]]) -> None:
    rows = [tuple(str(c) for c in row) for row in rows]
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(c)) for w, c in zip(widths, row)]
    for row in (headers, *rows):
        inv.echo("\t".join(c.ljust(w) for c, w in zip(row, widths)).rstrip())


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise UsageError(f"invalid number {value!r}") from None
    if number < 0:
        raise UsageError(f"number must not be negative: {value!r}")
    return number


# ---------------------------------------------------------------------------
# Release commands (talk to Tiller)
# ---------------------------------------------------------------------------

def _install(inv: Invocation) -> int:
    response = inv.call(
        "InstallRelease",
        chart=inv.args[0],
        name=inv.option("name") or "",
        namespace=inv.option("namespace") or "",
        values=inv.option("values") or [],
        version=inv.option("version") or "",
        dry_run=bool(inv.option("dry_run")),
    )
    release = response.get("release", {}) if isinstance(response, dict) else {}
    inv.echo(f"NAME:   {release.get('name', inv.option('name') or '')}")
    if release.get("info"):
        _render(inv, release["info"])
    return exit_codes.SUCCESS


def _upgrade(inv: Invocation) -> int:
    release_name, chart = inv.args
    inv.call(
        "UpdateRelease",
        name=release_name,
        chart=chart,
        install=bool(inv.option("install")),
        values=inv.option("values") or [],
        version=inv.option("version") or "",
        dry_run=bool(inv.option("dry_run")),
    )
    inv.echo(f'Release "{release_name}" has been upgraded. Happy Helming!')
    return exit_codes.SUCCESS


def _rollback(inv: Invocation) -> int:
    release_name, revision = inv.args
    inv.call(
        "RollbackRelease",
        name=release_name,
        version=_positive_int(revision),
        dry_run=bool(inv.option("dry_run")),
    )
    inv.echo("Rollback was a success! Happy Helming!")
    return exit_codes.SUCCESS


def _status(inv: Invocation) -> int:
    _render(inv, inv.call("GetReleaseStatus", name=inv.args[0], version=inv.option("revision") or 0))
    return exit_codes.SUCCESS


def _get(inv: Invocation) -> int:
    _render(inv, inv.call("GetReleaseContent", name=inv.args[0], version=inv.option("revision") or 0))
    return exit_codes.SUCCESS


def _history(inv: Invocation) -> int:
    response = inv.call("GetHistory", name=inv.args[0], max=inv.option("max"))
    releases = response.get("releases", []) if isinstance(response, dict) else []
    _render_table(
        inv,
        ("REVISION", "UPDATED", "STATUS", "CHART", "DESCRIPTION"),
        (
            (
                r.get("version", ""),
                r.get("updated", ""),
                r.get("status", ""),
                r.get("chart", ""),
                r.get("description", ""),
            )
            for r in releases
        ),
    )
    return exit_codes.SUCCESS


def _list(inv: Invocation) -> int:
    response = inv.call(
        "ListReleases",
        filter=inv.args[0] if inv.args else "",
        limit=inv.option("max"),
        offset=inv.option("offset") or "",
        namespace=inv.option("namespace") or "",
        all=bool(inv.option("all")),
    )
    releases = response.get("releases", []) if isinstance(response, dict) else []
    if inv.option("short"):
        for r in releases:
            inv.echo(str(r.get("name", "")))
        return exit_codes.SUCCESS
    _render_table(
        inv,
        ("NAME", "REVISION", "UPDATED", "STATUS", "CHART", "NAMESPACE"),
        (
            (
                r.get("name", ""),
                r.get("version", ""),
                r.get("updated", ""),
                r.get("status", ""),
                r.get("chart", ""),
                r.get("namespace", ""),
            )
            for r in releases
        ),
    )
    return exit_codes.SUCCESS


def _delete(inv: Invocation) -> int:
    for name in inv.args:
        inv.call(
            "UninstallRelease",
            name=name,
            purge=bool(inv.option("purge")),
            dry_run=bool(inv.option("dry_run")),
        )
        inv.echo(f'release "{name}" deleted')
    return exit_codes.SUCCESS


def _release_test(inv: Invocation) -> int:
    response = inv.call("RunReleaseTest", name=inv.args[0], cleanup=bool(inv.option("cleanup")))
    results = response.get("results", []) if isinstance(response, dict) else []
    failed = False
    for result in results:
        inv.echo(str(result.get("msg", "")))
        failed = failed or result.get("status") == "FAILURE"
    if failed:
        raise HelmError(f"test failed for release {inv.args[0]!r}")
    return exit_codes.SUCCESS


def _reset(inv: Invocation) -> int:
    inv.call("ResetTiller", force=bool(inv.option("force")))
    if inv.option("remove_helm_home"):
        shutil.rmtree(inv.config.home, ignore_errors=True)
    inv.echo("Tiller has been uninstalled from your Kubernetes Cluster.")
    return exit_codes.SUCCESS


def _version(inv: Invocation) -> int:
    client_only = bool(inv.option("client"))
    server_only = bool(inv.option("server"))
    if not server_only:
        inv.echo(f'Client: &version.Version{{SemVer:"v{__version__}"}}')
    if not client_only:
        response = inv.call("GetVersion") or {}
        sem_ver = response.get("version", {}).get("sem_ver", "") if isinstance(response, dict) else ""
        inv.echo(f'Server: &version.Version{{SemVer:"{sem_ver}"}}')
    return exit_codes.SUCCESS


_VALUES_FLAG = FlagSpec("values", "specify values in a YAML file (can specify multiple)", short="f", append=True)
_DRY_RUN_FLAG = FlagSpec("dry-run", "simulate the operation", is_bool=True)
_CHART_VERSION_FLAG = FlagSpec("version", "specify the exact chart version to use")
_REVISION_FLAG = FlagSpec("revision", "get the named release with revision", type=_positive_int)


def release_commands() -> list[CommandNode]:
    return [
        with_tls(CommandNode(
            "delete",
            "given a release name, delete the release from Kubernetes",
            handler=_delete,
            args=("release name",),
            variadic=True,
            flags=[_DRY_RUN_FLAG, FlagSpec("purge", "remove the release from the store", is_bool=True)],
        )),
        with_tls(CommandNode(
            "get",
            "download a named release",
            handler=_get,
            args=("release name",),
            flags=[_REVISION_FLAG],
        )),
        with_tls(CommandNode(
            "history",
            "fetch release history",
            handler=_history,
            args=("release name",),
            flags=[FlagSpec("max", "maximum number of revision to include in history", default=256, type=_positive_int)],
        )),
        with_tls(CommandNode(
            "install",
            "install a chart archive",
            handler=_install,
            args=("chart name",),
            flags=[
                FlagSpec("name", "release name. If unspecified, it will autogenerate one for you", short="n"),
                FlagSpec("namespace", "namespace to install the release into"),
                _VALUES_FLAG,
                _DRY_RUN_FLAG,
                _CHART_VERSION_FLAG,
            ],
        )),
        with_tls(CommandNode(
            "list",
            "list releases",
            handler=_list,
            optional_args=("filter",),
            flags=[
                FlagSpec("short", "output short (quiet) listing format", short="q", is_bool=True),
                FlagSpec("max", "maximum number of releases to fetch", short="m", default=256, type=_positive_int),
                FlagSpec("offset", "next release name in the list, used to offset from start value", short="o"),
                FlagSpec("all", "show all releases, not just the ones marked DEPLOYED", is_bool=True),
                FlagSpec("namespace", "show releases within a specific namespace"),
            ],
        )),
        with_tls(CommandNode(
            "rollback",
            "roll back a release to a previous revision",
            handler=_rollback,
            args=("release name", "revision number"),
            flags=[_DRY_RUN_FLAG],
        )),
        with_tls(CommandNode(
            "status",
            "displays the status of the named release",
            handler=_status,
            args=("release name",),
            flags=[_REVISION_FLAG],
        )),
        with_tls(CommandNode(
            "upgrade",
            "upgrade a release",
            handler=_upgrade,
            args=("release name", "chart path"),
            flags=[
                FlagSpec("install", "run an install if a release by this name doesn't already exist", short="i", is_bool=True),
                _VALUES_FLAG,
                _DRY_RUN_FLAG,
                _CHART_VERSION_FLAG,
            ],
        )),
        with_tls(CommandNode(
            "test",
            "test a release",
            long_help="The test command runs the tests for a release.",
            handler=_release_test,
            args=("release name",),
            flags=[FlagSpec("cleanup", "delete test pods upon completion", is_bool=True)],
        )),
        with_tls(CommandNode(
            "reset",
            "uninstalls Tiller from a cluster",
            handler=_reset,
            flags=[
                FlagSpec("force", "forces Tiller uninstall even if there are releases installed", short="f", is_bool=True),
                FlagSpec("remove-helm-home", "if set deletes $HELM_HOME", is_bool=True),
            ],
        )),
        with_tls(CommandNode(
            "version",
            "print the client/server version information",
            handler=_version,
            flags=[
                FlagSpec("client", "client version only", short="c", is_bool=True),
                FlagSpec("server", "server version only", short="s", is_bool=True),
            ],
        )),
    ]


# ---------------------------------------------------------------------------
# Chart commands (local files; chart toolkit not bundled)
# ---------------------------------------------------------------------------

def _chart_toolkit(inv: Invocation) -> int:
    raise HelmError(
        f"'{' '.join(('helm', *inv.path))}' needs the chart toolkit, which is not bundled with this client.",
        hint="Use a full Helm distribution for chart authoring and repository management.",
    )


def _chart(name: str, short_help: str, **kwargs: Any) -> CommandNode:
    return CommandNode(name, short_help, handler=_chart_toolkit, **kwargs)


def chart_commands() -> list[CommandNode]:
    return [
        _chart("create", "create a new chart with the given name", args=("name",)),
        CommandNode(
            "dependency",
            "manage a chart's dependencies",
            children=[
                _chart("build", "rebuild the charts/ directory based on the requirements.lock file", args=("chart",)),
                _chart("list", "list the dependencies for the given chart", args=("chart",)),
                _chart("update", "update charts/ based on the contents of requirements.yaml", args=("chart",)),
            ],
        ),
        _chart("fetch", "download a chart from a repository and (optionally) unpack it in local directory",
               args=("chart URL | repo/chartname",), variadic=True),
        _chart("inspect", "inspect a chart", args=("chart",)),
        _chart("lint", "examines a chart for possible issues", optional_args=("path",)),
        _chart("package", "package a chart directory into a chart archive", args=("chart path",), variadic=True),
        CommandNode(
            "repo",
            "add, list, remove, update, and index chart repositories",
            children=[
                _chart("add", "add a chart repository", args=("name", "url")),
                _chart("index", "generate an index file given a directory containing packaged charts", args=("directory",)),
                _chart("list", "list chart repositories"),
                _chart("remove", "remove a chart repository", args=("name of chart repository",)),
                _chart("update", "update information on available charts in the chart repositories"),
            ],
        ),
        _chart("search", "search for a keyword in charts", optional_args=("keyword",)),
        _chart("serve", "start a local http web server"),
        _chart("verify", "verify that a chart at the given path has been signed and is valid", args=("path",)),
    ]


# ---------------------------------------------------------------------------
# Utility commands
# ---------------------------------------------------------------------------

def _home(inv: Invocation) -> int:
    inv.echo(inv.config.home)
    if inv.config.debug:
        layout = HelmHome.of(inv.config.home)
        inv.echo(f"Repository: {layout.repository}")
        inv.echo(f"RepositoryFile: {layout.repository_file}")
        inv.echo(f"Cache: {layout.cache}")
        inv.echo(f"Starters: {layout.starters}")
        inv.echo(f"LocalRepository: {layout.local_repository}")
        inv.echo(f"Plugins: {layout.plugins}")
    return exit_codes.SUCCESS


def _init(inv: Invocation) -> int:
    layout = HelmHome.of(inv.config.home)
    if inv.option("dry_run"):
        for directory in layout.directories():
            inv.echo(f"would create {directory}")
        return exit_codes.SUCCESS

    for directory in layout.directories():
        if directory.exists() and not directory.is_dir():
            raise HelmError(f"{directory} must be a directory")
        if not directory.exists():
            inv.debug(f"Creating {directory}")
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise HelmError(f"could not create {directory}: {exc}") from exc

    if not layout.repository_file.exists():
        inv.debug(f"Creating {layout.repository_file}")
        layout.repository_file.write_text("apiVersion: v1\nrepositories: []\n", encoding="utf-8")

    inv.echo(f"$HELM_HOME has been configured at {layout}.")
    inv.echo("Not installing Tiller due to 'client-only' flag having been set")
    inv.echo("Happy Helming!")
    return exit_codes.SUCCESS


def _plugin_list(inv: Invocation) -> int:
    _render_table(
        inv,
        ("NAME", "VERSION", "DESCRIPTION"),
        ((p.name, p.version, p.short_help) for p in inv.router.plugins),
    )
    return exit_codes.SUCCESS


def _completion(inv: Invocation) -> int:
    from helm_cli.cli.completion import bash_completion

    shell = inv.args[0]
    if shell != "bash":
        raise UsageError(f"Unsupported shell type {shell!r}", hint="Supported shells: bash")
    inv.out.write(bash_completion(inv.router.root))
    return exit_codes.SUCCESS


def _docs(inv: Invocation) -> int:
    from helm_cli.cli.completion import write_markdown_docs

    written = write_markdown_docs(inv.router.root, Path(inv.option("dir") or "./"))
    inv.debug(f"wrote {len(written)} pages")
    return exit_codes.SUCCESS


def utility_commands() -> list[CommandNode]:
    return [
        CommandNode(
            "completion",
            "Generate autocompletions script for the specified shell (bash)",
            long_help=(
                "Generate autocompletions script for Helm for the specified shell (bash).\n\n"
                "This command can generate shell autocompletions. e.g.\n\n"
                "\t$ helm completion bash\n\n"
                "Can be sourced as such\n\n"
                "\t$ source <(helm completion bash)"
            ),
            handler=_completion,
            args=("SHELL",),
        ),
        CommandNode(
            "home",
            "displays the location of HELM_HOME",
            long_help="This command displays the location of HELM_HOME. This is where\nany helm configuration files live.",
            handler=_home,
        ),
        CommandNode(
            "init",
            "initialize Helm on both client and server",
            handler=_init,
            flags=[
                FlagSpec("client-only", "if set does not install Tiller", short="c", is_bool=True),
                FlagSpec("dry-run", "do not create local directories", is_bool=True),
            ],
        ),
        CommandNode(
            "plugin",
            "add, list, or remove Helm plugins",
            children=[CommandNode("list", "list installed Helm plugins", handler=_plugin_list)],
        ),
        CommandNode(
            "docs",
            "Generate documentation as markdown",
            handler=_docs,
            hidden=True,
            flags=[FlagSpec("dir", "directory to which documentation is written", default="./")],
        ),
    ]


def builtin_commands() -> list[CommandNode]:
    """All built-in top-level commands, in declaration order."""
    return [
        *chart_commands(),
        *release_commands(),
        *utility_commands(),
        mark_deprecated(
            _chart("update", "refresh repository information (alias of 'helm repo update')"),
            "use 'helm repo update'\n",
        ),
    ]


# ---------------------------------------------------------------------------
# Plugin commands
# ---------------------------------------------------------------------------

def _plugin_handler(descriptor: PluginDescriptor) -> Callable[[Invocation], int]:
    def _run(inv: Invocation) -> int:
        host = inv.connections.address
        if descriptor.use_tunnel:
            host = inv.connections.ensure_address()
        env = plugin_environment(
            descriptor,
            home=inv.config.home,
            host=host,
            namespace=inv.config.remote_namespace,
            debug=inv.config.debug,
            base=inv.environ,
        )
        argv = prepare_command(descriptor, inv.args, env)
        inv.debug(f"running plugin {descriptor.name}: {' '.join(argv)}")
        return run_plugin(argv, env)

    return _run


def plugin_commands(descriptors: Iterable[PluginDescriptor]) -> list[CommandNode]:
    """Convert discovered plugins into command nodes, one per descriptor."""
    return [
        CommandNode(
            descriptor.name,
            descriptor.short_help,
            long_help=descriptor.long_help,
            handler=_plugin_handler(descriptor),
            plugin=descriptor,
        )
        for descriptor in descriptors
    ]
