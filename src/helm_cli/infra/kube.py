"""Kubernetes-backed :class:`~helm_cli.core.protocols.ClusterAccessor`.

This module is the **only** place in the codebase that imports
``kubernetes``.  It loads the kubeconfig for a context, locates the
running Tiller pod, and forwards an ephemeral local port to it.  All
kubernetes exceptions are re-raised as
:class:`~helm_cli.exceptions.ConfigUnavailableError` or
:class:`~helm_cli.exceptions.TunnelFailedError`.

Threading
---------
:class:`PortForwardTunnel` runs one daemon thread accepting local
connections and one per accepted connection pumping bytes to a
websocket port-forward stream.  :meth:`PortForwardTunnel.close` stops
the accept loop and closes every open stream.
"""

from __future__ import annotations

import select
import socket
import threading
from typing import Any

from helm_cli.exceptions import ConfigUnavailableError, EnvironmentError, TunnelFailedError

TILLER_POD_SELECTOR: str = "app=helm,name=tiller"
TILLER_PORT: int = 44134

_BUFFER_SIZE = 65536


def _load_kubernetes() -> Any:
    try:
        import kubernetes
        import kubernetes.config
        import kubernetes.stream
    except ModuleNotFoundError as exc:
        raise EnvironmentError(
            "kubernetes is not installed. Install with: pip install kubernetes",
        ) from exc
    return kubernetes


# ---------------------------------------------------------------------------
# Tunnel
# ---------------------------------------------------------------------------

class PortForwardTunnel:
    """Local TCP listener relaying each connection to a pod port.

    Parameters
    ----------
    open_stream:
        Zero-argument callable returning a connected socket-like object
        for one new forwarded stream into the pod.
    host:
        Local interface to bind.
    """

    def __init__(self, open_stream: Any, *, host: str = "127.0.0.1") -> None:
        self._open_stream = open_stream
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._streams: list[Any] = []

        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            self._server.bind((host, 0))
            self._server.listen()
        except OSError as exc:
            self._server.close()
            raise TunnelFailedError(f"could not listen on a local port: {exc}") from exc

        self.local_port: int = self._server.getsockname()[1]
        self._thread = threading.Thread(
            target=self._accept_loop,
            name=f"tiller-tunnel-{self.local_port}",
            daemon=True,
        )
        self._thread.start()

    @property
    def closed(self) -> bool:
        return self._stopped.is_set()

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._streams) // 2

    def close(self) -> None:
        """Stop accepting and close all open streams.  Idempotent."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        try:
            # Wakes a thread blocked in accept().
            self._server.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._server.close()
        self._thread.join(timeout=1.0)
        with self._lock:
            streams, self._streams = self._streams, []
        for stream in streams:
            try:
                stream.close()
            except OSError:
                pass

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _accept_loop(self) -> None:
        while not self._stopped.is_set():
            try:
                conn, _ = self._server.accept()
            except OSError:
                return
            if self._stopped.is_set():
                conn.close()
                return
            threading.Thread(target=self._relay, args=(conn,), daemon=True).start()

    def _relay(self, conn: socket.socket) -> None:
        try:
            remote = self._open_stream()
        except Exception:  # noqa: BLE001
            # Only this connection is dropped; the listener keeps running.
            conn.close()
            return

        with self._lock:
            self._streams.extend((conn, remote))

        try:
            peers = {conn: remote, remote: conn}
            while not self._stopped.is_set():
                readable, _, _ = select.select(list(peers), [], [], 0.5)
                for src in readable:
                    data = src.recv(_BUFFER_SIZE)
                    if not data:
                        return
                    peers[src].sendall(data)
        except OSError:
            return
        finally:
            with self._lock:
                self._streams = [s for s in self._streams if s is not conn and s is not remote]
            for end in (conn, remote):
                try:
                    end.close()
                except OSError:
                    pass


# ---------------------------------------------------------------------------
# Cluster accessor
# ---------------------------------------------------------------------------

class KubeClusterAccessor:
    """Concrete :class:`ClusterAccessor` for one kubeconfig context.

    Usage::

        accessor = KubeClusterAccessor.for_context("minikube")
        tunnel = accessor.forward("kube-system")
        ...
        tunnel.close()
    """

    def __init__(self, core_api: Any, *, context: str = "") -> None:
        self._core = core_api
        self._context = context

    @classmethod
    def for_context(cls, context: str) -> KubeClusterAccessor:
        """Load kubeconfig (``$KUBECONFIG`` or ``~/.kube/config``) for *context*.

        Raises
        ------
        ConfigUnavailableError
            When the configuration cannot be loaded.
        """
        kubernetes = _load_kubernetes()
        try:
            api_client = kubernetes.config.new_client_from_config(context=context or None)
        except Exception as exc:
            raise ConfigUnavailableError(
                f"could not get kubernetes config for context '{context}': {exc}",
                hint="Check $KUBECONFIG and the --kube-context flag.",
            ) from exc
        return cls(kubernetes.client.CoreV1Api(api_client), context=context)

    def find_tiller_pod(self, namespace: str) -> str:
        """Return the name of a running Tiller pod in *namespace*."""
        try:
            pods = self._core.list_namespaced_pod(namespace, label_selector=TILLER_POD_SELECTOR)
        except Exception as exc:
            raise TunnelFailedError(f"could not list pods in namespace '{namespace}': {exc}") from exc

        for pod in pods.items:
            if getattr(pod.status, "phase", None) == "Running":
                return pod.metadata.name
        raise TunnelFailedError(
            f"could not find tiller in namespace '{namespace}'",
            hint="Run 'helm init' or set --tiller-namespace / $TILLER_NAMESPACE.",
        )

    def forward(self, namespace: str) -> PortForwardTunnel:
        pod_name = self.find_tiller_pod(namespace)
        kubernetes = _load_kubernetes()

        def _open_stream() -> Any:
            forward = kubernetes.stream.portforward(
                self._core.connect_get_namespaced_pod_portforward,
                pod_name,
                namespace,
                ports=str(TILLER_PORT),
            )
            return forward.socket(TILLER_PORT)

        return PortForwardTunnel(_open_stream)


def accessor_for_context(context: str) -> KubeClusterAccessor:
    """Factory matching :data:`~helm_cli.core.protocols.AccessorFactory`."""
    return KubeClusterAccessor.for_context(context)
