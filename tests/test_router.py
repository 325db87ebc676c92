"""Tests for the command tree and dispatch (cli/router.py).

Routers are built from small hand-made trees so each test controls the
handlers it dispatches to.  Cluster access and TLS are faked.

Coverage:
* Sub-command tree walk and positional forwarding.
* Persistent flags before and after the sub-command.
* TLS flags only on remote commands; path expansion pre-dispatch.
* Usage errors (unknown command, wrong argument count) never run a handler.
* Deprecation notices.
* Teardown after success and after failure.
* Plugin merge: built-ins win, first plugin wins among plugins.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from conftest import FakeAccessorFactory, FakeClient
from helm_cli.cli import exit_codes
from helm_cli.cli.router import (
    CommandNode,
    CommandRouter,
    Invocation,
    mark_deprecated,
    merge_plugins,
    with_tls,
)
from helm_cli.core.config import ConfigResolver
from helm_cli.core.models import PluginDescriptor
from helm_cli.exceptions import HelmError, RemoteCallError, RemoteErrorKind, UsageError


class Recorder:
    """Handler recording each invocation and returning a fixed code."""

    def __init__(self, code: int | None = None, action: Any = None) -> None:
        self.code = code
        self.action = action
        self.invocations: list[Invocation] = []

    def __call__(self, inv: Invocation) -> int | None:
        self.invocations.append(inv)
        if self.action is not None:
            self.action(inv)
        return self.code

    @property
    def last(self) -> Invocation:
        return self.invocations[-1]


def _plugin_node(name: str, handler: Any, directory: str = "/plugins/x") -> CommandNode:
    descriptor = PluginDescriptor(name=name, directory=Path(directory), command="true")
    return CommandNode(name, "plugin", handler=handler, plugin=descriptor)


def _router(
    commands: list[CommandNode],
    environ: dict[str, str],
    *,
    plugins: list[CommandNode] | None = None,
    accessor_factory: FakeAccessorFactory | None = None,
    credential_builder: Any = None,
    client: FakeClient | None = None,
    warnings: list[str] | None = None,
    out: io.StringIO | None = None,
) -> CommandRouter:
    return CommandRouter(
        commands,
        plugins or [],
        resolver=ConfigResolver(environ),
        accessor_factory=accessor_factory or FakeAccessorFactory(),
        credential_builder=credential_builder or MagicMock(return_value="credential"),
        client_factory=lambda channel: client or FakeClient(),
        out=out or io.StringIO(),
        warn=(warnings.append if warnings is not None else lambda message: None),
    )


# ---------------------------------------------------------------------------
# Tree walk
# ---------------------------------------------------------------------------

class TestDispatch:
    def test_routes_to_nested_command(self, environ: dict[str, str]) -> None:
        add = Recorder()
        repo = CommandNode("repo", "repos", children=[CommandNode("add", handler=add, args=("name", "url"))])
        router = _router([repo], environ)

        code = router.dispatch(["repo", "add", "stable", "https://charts.example.com"])

        assert code == exit_codes.SUCCESS
        assert add.last.args == ["stable", "https://charts.example.com"]
        assert add.last.path == ("repo", "add")

    def test_handler_exit_code_is_returned(self, environ: dict[str, str]) -> None:
        router = _router([CommandNode("status", handler=Recorder(code=7), args=("release name",))], environ)
        assert router.dispatch(["status", "happy-panda"]) == 7

    def test_group_without_handler_prints_help(self, environ: dict[str, str]) -> None:
        out = io.StringIO()
        repo = CommandNode("repo", "repos", children=[CommandNode("add", "add a repo", handler=Recorder())])
        router = _router([repo], environ, out=out)

        assert router.dispatch(["repo"]) == exit_codes.SUCCESS
        assert "add a repo" in out.getvalue()

    def test_hidden_command_still_dispatches(self, environ: dict[str, str]) -> None:
        docs = Recorder()
        router = _router([CommandNode("docs", handler=docs, hidden=True)], environ)
        router.dispatch(["docs"])
        assert len(docs.invocations) == 1

    def test_find(self, environ: dict[str, str]) -> None:
        add = CommandNode("add", handler=Recorder())
        router = _router([CommandNode("repo", children=[add])], environ)
        assert router.find(["repo", "add"]) is add
        assert router.find(["repo", "nope"]) is None

    def test_duplicate_builtin_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicate"):
            CommandNode("root").add(CommandNode("a"), CommandNode("a"))


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------

class TestPersistentFlags:
    @pytest.mark.parametrize(
        "argv",
        [
            ["--host", "tiller:1", "status", "x"],
            ["status", "--host", "tiller:1", "x"],
            ["status", "x", "--host=tiller:1"],
        ],
    )
    def test_host_accepted_anywhere(self, environ: dict[str, str], argv: list[str]) -> None:
        status = Recorder()
        router = _router([CommandNode("status", handler=status, args=("release name",))], environ)

        router.dispatch(argv)

        assert status.last.config.remote_address == "tiller:1"
        assert status.last.args == ["x"]

    def test_persistent_flags_reach_nested_commands(self, environ: dict[str, str]) -> None:
        add = Recorder()
        router = _router([CommandNode("repo", children=[CommandNode("add", handler=add)])], environ)

        router.dispatch(["--debug", "repo", "add", "--tiller-namespace", "helm", "--kube-context", "prod"])

        assert add.last.config.debug is True
        assert add.last.config.remote_namespace == "helm"
        assert add.last.config.cluster_context == "prod"

    def test_home_flag_overrides_env(self, environ: dict[str, str], tmp_path: Path) -> None:
        home = Recorder()
        router = _router([CommandNode("home", handler=home)], environ)
        router.dispatch(["home", "--home", str(tmp_path / "other")])
        assert home.last.config.home == str(tmp_path / "other")
        assert environ["HELM_HOME"] == str(tmp_path / "other")


class TestTLSFlags:
    def test_tls_flags_rejected_on_local_command(self, environ: dict[str, str]) -> None:
        home = Recorder()
        router = _router([CommandNode("home", handler=home)], environ)

        with pytest.raises(UsageError):
            router.dispatch(["home", "--tls"])
        assert home.invocations == []

    def test_tls_defaults_expand_against_home(self, environ: dict[str, str]) -> None:
        builder = MagicMock(return_value="credential")
        status = Recorder(action=lambda inv: inv.channel())
        router = _router(
            [with_tls(CommandNode("status", handler=status))],
            {**environ, "HELM_HOST": "tiller:1"},
            credential_builder=builder,
        )

        router.dispatch(["status", "--tls"])

        tls = builder.call_args.args[0]
        home = environ["HELM_HOME"]
        assert tls.enable is True and tls.verify is False
        assert tls.ca_cert_path == f"{home}/ca.pem"
        assert tls.cert_path == f"{home}/cert.pem"
        assert tls.key_path == f"{home}/key.pem"

    def test_explicit_tls_paths_are_expanded(self, environ: dict[str, str]) -> None:
        builder = MagicMock(return_value="credential")
        status = Recorder(action=lambda inv: inv.channel())
        router = _router(
            [with_tls(CommandNode("status", handler=status))],
            {**environ, "HELM_HOST": "tiller:1", "CERTS": "/etc/helm"},
            credential_builder=builder,
        )

        router.dispatch(["status", "--tls-verify", "--tls-ca-cert", "$CERTS/ca.pem"])

        tls = builder.call_args.args[0]
        assert tls.verify is True
        assert tls.ca_cert_path == "/etc/helm/ca.pem"

    def test_no_credential_without_tls_flags(self, environ: dict[str, str]) -> None:
        builder = MagicMock()
        status = Recorder(action=lambda inv: inv.channel())
        router = _router(
            [with_tls(CommandNode("status", handler=status))],
            {**environ, "HELM_HOST": "tiller:1"},
            credential_builder=builder,
        )

        router.dispatch(["status"])

        builder.assert_not_called()
        assert status.last.channel().secure is False


# ---------------------------------------------------------------------------
# Usage errors
# ---------------------------------------------------------------------------

class TestUsageErrors:
    def test_unknown_command(self, environ: dict[str, str]) -> None:
        with pytest.raises(UsageError, match="invalid choice"):
            _router([CommandNode("home", handler=Recorder())], environ).dispatch(["nope"])

    @pytest.mark.parametrize(
        ("argv", "message"),
        [
            (["rollback"], "This command needs 2 arguments: release name, revision"),
            (["rollback", "a"], "This command needs 2 arguments: release name, revision"),
            (["rollback", "a", "1", "extra"], "This command needs 2 arguments: release name, revision"),
        ],
    )
    def test_wrong_argument_count(self, environ: dict[str, str], argv: list[str], message: str) -> None:
        rollback = Recorder()
        accessor_factory = FakeAccessorFactory()
        router = _router(
            [with_tls(CommandNode("rollback", handler=rollback, args=("release name", "revision")))],
            environ,
            accessor_factory=accessor_factory,
        )

        with pytest.raises(UsageError) as exc_info:
            router.dispatch(argv)

        assert str(exc_info.value) == message
        assert rollback.invocations == []
        assert accessor_factory.contexts == []

    def test_variadic_requires_minimum(self, environ: dict[str, str]) -> None:
        delete = Recorder()
        router = _router([CommandNode("delete", handler=delete, args=("release name",), variadic=True)], environ)

        with pytest.raises(UsageError, match="at least 1 argument: release name"):
            router.dispatch(["delete"])
        router.dispatch(["delete", "a", "b", "c"])
        assert delete.last.args == ["a", "b", "c"]

    def test_optional_arguments(self, environ: dict[str, str]) -> None:
        listing = Recorder()
        router = _router([CommandNode("list", handler=listing, optional_args=("filter",))], environ)

        router.dispatch(["list"])
        router.dispatch(["list", "prod-"])
        with pytest.raises(UsageError, match="accepts 0 to 1 arguments: filter"):
            router.dispatch(["list", "a", "b"])

    def test_unknown_flag(self, environ: dict[str, str]) -> None:
        with pytest.raises(UsageError, match="unrecognized arguments"):
            _router([CommandNode("home", handler=Recorder())], environ).dispatch(["home", "--bogus"])


# ---------------------------------------------------------------------------
# Deprecation
# ---------------------------------------------------------------------------

class TestDeprecation:
    def test_notice_shown_and_handler_runs(
        self, environ: dict[str, str], capsys: pytest.CaptureFixture[str],
    ) -> None:
        update = Recorder()
        node = mark_deprecated(CommandNode("update", handler=update), "use 'helm repo update'\n")
        router = _router([node], environ)

        code = router.dispatch(["update"])

        assert code == exit_codes.SUCCESS
        assert len(update.invocations) == 1
        err = capsys.readouterr().err
        assert "deprecated" in err
        assert "use 'helm repo update'" in err


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestTeardownHook:
    def test_tunnel_closed_after_success(self, environ: dict[str, str]) -> None:
        factory = FakeAccessorFactory()
        status = Recorder(action=lambda inv: inv.channel())
        router = _router([with_tls(CommandNode("status", handler=status))], environ, accessor_factory=factory)

        router.dispatch(["status"])

        assert factory.accessor.handle.close_calls == 1
        assert status.last.connections.tunnel is None

    def test_tunnel_closed_after_handler_error(self, environ: dict[str, str]) -> None:
        factory = FakeAccessorFactory()

        def _fail(inv: Invocation) -> None:
            inv.channel()
            raise HelmError("handler failed")

        router = _router([with_tls(CommandNode("status", handler=_fail))], environ, accessor_factory=factory)

        with pytest.raises(HelmError, match="handler failed"):
            router.dispatch(["status"])
        assert factory.accessor.handle.close_calls == 1

    def test_teardown_without_tunnel_is_harmless(self, environ: dict[str, str]) -> None:
        factory = FakeAccessorFactory()
        router = _router([CommandNode("home", handler=Recorder())], environ, accessor_factory=factory)
        assert router.dispatch(["home"]) == exit_codes.SUCCESS
        assert factory.contexts == []

    def test_client_closed_after_dispatch(self, environ: dict[str, str]) -> None:
        client = FakeClient({"GetReleaseStatus": {"status": "DEPLOYED"}})
        status = Recorder(action=lambda inv: inv.call("GetReleaseStatus", name="x"))
        router = _router(
            [with_tls(CommandNode("status", handler=status))],
            {**environ, "HELM_HOST": "tiller:1"},
            client=client,
        )

        router.dispatch(["status"])

        assert client.calls == [("GetReleaseStatus", {"name": "x"})]
        assert client.closed is True


class TestRemoteErrors:
    def test_remote_errors_reach_caller_translated(self, environ: dict[str, str]) -> None:
        client = FakeClient(
            {"GetReleaseStatus": RemoteCallError("release not found", kind=RemoteErrorKind.NOT_FOUND)},
        )
        status = Recorder(action=lambda inv: inv.call("GetReleaseStatus", name="x"))
        router = _router(
            [with_tls(CommandNode("status", handler=status))],
            {**environ, "HELM_HOST": "tiller:1"},
            client=client,
        )

        with pytest.raises(HelmError) as exc_info:
            router.dispatch(["status"])

        assert str(exc_info.value) == "release not found"
        assert not isinstance(exc_info.value, RemoteCallError)


# ---------------------------------------------------------------------------
# Plugin merge
# ---------------------------------------------------------------------------

class TestPluginMerge:
    def test_builtin_wins_over_two_plugins(self, environ: dict[str, str]) -> None:
        builtin = Recorder(code=0)
        first, second = Recorder(code=11), Recorder(code=12)
        warnings: list[str] = []
        router = _router(
            [CommandNode("status", handler=builtin, optional_args=("release name",))],
            environ,
            plugins=[_plugin_node("status", first, "/p/one"), _plugin_node("status", second, "/p/two")],
            warnings=warnings,
        )

        code = router.dispatch(["status", "x"])

        assert code == 0
        assert len(builtin.invocations) == 1
        assert first.invocations == [] and second.invocations == []
        assert len(warnings) == 2
        assert all("built-in" in w for w in warnings)
        assert [c.name for c in router.root.children].count("status") == 1

    def test_first_plugin_wins_among_plugins(self) -> None:
        root = CommandNode("helm")
        first = _plugin_node("keybase", Recorder(), "/p/a")
        warnings = merge_plugins(root, [first, _plugin_node("keybase", Recorder(), "/p/b")])
        assert root.children == [first]
        assert warnings and "another plugin" in warnings[0]

    def test_plugin_receives_raw_arguments(self, environ: dict[str, str]) -> None:
        plugin = Recorder(code=5)
        router = _router([], environ, plugins=[_plugin_node("keybase", plugin)])

        code = router.dispatch(["--debug", "keybase", "sign", "--key", "abc", "-x"])

        assert code == 5
        assert plugin.last.args == ["sign", "--key", "abc", "-x"]
        assert plugin.last.config.debug is True

    def test_plugin_listed_in_help(self, environ: dict[str, str]) -> None:
        out = io.StringIO()
        router = _router([], environ, plugins=[_plugin_node("keybase", Recorder())], out=out)
        router.dispatch([])
        assert "keybase" in out.getvalue()

    def test_plugins_property(self, environ: dict[str, str]) -> None:
        router = _router([], environ, plugins=[_plugin_node("keybase", Recorder())])
        assert [p.name for p in router.plugins] == ["keybase"]
