"""Shared pytest fixtures and configuration for the helm-cli test suite.

Guidelines
----------
* No network or cluster access in any test.
* Kubernetes, TLS and the remote client are faked at the core protocol
  boundary unless a test targets the infra adapter itself.
* Tests never read or write the real process environment: every
  resolver gets its own ``environ`` dict.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pytest

from helm_cli.core.config import ConfigResolver
from helm_cli.exceptions import RemoteCallError

TLS_FIXTURES = Path(__file__).parent / "fixtures" / "tls"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeHandle:
    """Forward handle that only counts ``close()`` calls."""

    def __init__(self, local_port: int = 44134) -> None:
        self.local_port = local_port
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1


class FakeAccessor:
    """Cluster accessor returning a fixed handle (or raising)."""

    def __init__(self, handle: FakeHandle | None = None, error: Exception | None = None) -> None:
        self.handle = handle if handle is not None else FakeHandle()
        self.error = error
        self.namespaces: list[str] = []

    def forward(self, namespace: str) -> FakeHandle:
        self.namespaces.append(namespace)
        if self.error is not None:
            raise self.error
        return self.handle


class FakeAccessorFactory:
    """Callable accessor factory recording requested contexts."""

    def __init__(self, accessor: FakeAccessor | None = None, error: Exception | None = None) -> None:
        self.accessor = accessor if accessor is not None else FakeAccessor()
        self.error = error
        self.contexts: list[str] = []

    def __call__(self, context: str) -> FakeAccessor:
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.accessor


class FakeClient:
    """Release client answering from a dict of canned responses."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def call(self, operation: str, **params: Any) -> Any:
        self.calls.append((operation, params))
        response = self.responses.get(operation)
        if isinstance(response, RemoteCallError):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def helm_home(tmp_path: Path) -> Path:
    home = tmp_path / "helm-home"
    home.mkdir()
    return home


@pytest.fixture
def environ(helm_home: Path, tmp_path: Path) -> dict[str, str]:
    return {"HOME": str(tmp_path), "HELM_HOME": str(helm_home)}


@pytest.fixture
def resolver(environ: dict[str, str]) -> ConfigResolver:
    return ConfigResolver(environ)


@pytest.fixture
def accessor_factory() -> FakeAccessorFactory:
    return FakeAccessorFactory()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def tls_files() -> dict[str, str]:
    return {
        "ca": str(TLS_FIXTURES / "ca.pem"),
        "cert": str(TLS_FIXTURES / "cert.pem"),
        "key": str(TLS_FIXTURES / "key.pem"),
    }
