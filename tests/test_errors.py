"""Tests for remote-error translation (core/errors.py)."""

from __future__ import annotations

from helm_cli.core.errors import translate
from helm_cli.exceptions import HelmError, RemoteCallError, RemoteErrorKind, UsageError


class TestTranslate:
    def test_none_passes_through(self) -> None:
        assert translate(None) is None

    def test_remote_error_exposes_description_only(self) -> None:
        original = RemoteCallError("release not found", kind=RemoteErrorKind.NOT_FOUND)

        translated = translate(original)

        assert str(translated) == "release not found"
        assert "rpc error" not in str(translated)
        assert not isinstance(translated, RemoteCallError)
        assert isinstance(translated, HelmError)
        assert translated.__cause__ is original

    def test_hint_is_preserved(self) -> None:
        translated = translate(RemoteCallError("transport is closing", hint="is tiller running?"))
        assert isinstance(translated, HelmError)
        assert translated.hint == "is tiller running?"

    def test_other_errors_unchanged(self) -> None:
        usage = UsageError("This command needs 1 argument: release name")
        runtime = RuntimeError("boom")
        assert translate(usage) is usage
        assert translate(runtime) is runtime

    def test_pure(self) -> None:
        original = RemoteCallError("release not found")
        translate(original)
        assert str(original) == "rpc error: code = Unknown desc = release not found"
