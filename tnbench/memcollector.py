"""Track the peak memory use of a Docker container while a benchmark runs."""

from __future__ import annotations

import http.client
import json
import os
import socket
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any, Protocol
from urllib.parse import quote, urlparse

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"


class DockerClient(Protocol):
    """What the collector needs from a Docker Engine client."""

    def list_containers(self) -> list[dict[str, Any]]: ...

    def stats(self, container_id: str) -> Iterable[Mapping[str, Any]]: ...

    def close(self) -> None: ...


class _UnixHTTPConnection(http.client.HTTPConnection):
    def __init__(self, path: str) -> None:
        super().__init__("localhost")
        self._path = path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.connect(self._path)
        self.sock = sock


class _DockerAPI:
    """A minimal Docker Engine API client speaking HTTP over a socket."""

    def __init__(self, host: str | None = None) -> None:
        url = urlparse(host or os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST)
        if url.scheme not in ("unix", "tcp", "http"):
            raise ValueError(f"unsupported Docker host: {host!r}")
        self._url = url
        self._connections: list[http.client.HTTPConnection] = []
        self._lock = threading.Lock()

    def _connect(self) -> http.client.HTTPConnection:
        if self._url.scheme == "unix":
            conn: http.client.HTTPConnection = _UnixHTTPConnection(self._url.path)
        else:
            conn = http.client.HTTPConnection(self._url.hostname or "localhost",
                                              self._url.port or 2375)
        with self._lock:
            self._connections.append(conn)
        return conn

    def _get(self, path: str) -> tuple[http.client.HTTPConnection, http.client.HTTPResponse]:
        conn = self._connect()
        conn.request("GET", path)
        response = conn.getresponse()
        if response.status != 200:
            body = response.read().decode("utf-8", "replace").strip()
            conn.close()
            raise RuntimeError(f"Docker API {path} returned {response.status}: {body}")
        return conn, response

    def list_containers(self) -> list[dict[str, Any]]:
        conn, response = self._get("/containers/json?all=1")
        try:
            return json.loads(response.read())
        finally:
            conn.close()

    def stats(self, container_id: str) -> Iterator[dict[str, Any]]:
        conn, response = self._get(f"/containers/{quote(container_id)}/stats?stream=1")
        try:
            for line in iter(response.readline, b""):
                line = line.strip()
                if line:
                    yield json.loads(line)
        finally:
            conn.close()

    def close(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            if conn.sock is not None:
                try:
                    conn.sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
            conn.close()


def memory_usage_from_stats(stats: Mapping[str, Any]) -> int:
    """Return the memory use in a stats sample, excluding page cache."""
    memory = stats.get("memory_stats") or {}
    usage = int(memory.get("usage", 0))
    cache = int((memory.get("stats") or {}).get("cache", 0))
    return max(0, usage - cache)


def find_container_id(containers: Iterable[Mapping[str, Any]], container_name: str) -> str:
    """Return the id of the container with the given name."""
    for container in containers:
        for name in container.get("Names") or ():
            if name.removeprefix("/") == container_name:
                return container["Id"]
    raise LookupError(f"container {container_name} not found")


class DockerMemoryCollector:
    """Samples a container's memory use in a background thread and keeps the peak."""

    def __init__(
        self,
        container_name: str,
        client_factory: Callable[[], DockerClient] | None = None,
    ) -> None:
        self.container_name = container_name
        self._client_factory = client_factory or _DockerAPI
        self._client: DockerClient | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._max_usage = 0
        self._error: BaseException | None = None
        self._first_sample = threading.Event()
        self._signal = threading.Event()
        self._stopped = threading.Event()

    def __enter__(self) -> DockerMemoryCollector:
        if self._thread is None:
            self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> DockerMemoryCollector:
        """Start collecting in the background."""
        if self._thread is not None:
            raise RuntimeError("collector already started")
        self._thread = threading.Thread(target=self._run, daemon=True,
                                        name=f"memstats-{self.container_name}")
        self._thread.start()
        return self

    def _fail(self, message: str, cause: BaseException) -> None:
        error = RuntimeError(f"{message}: {cause}")
        error.__cause__ = cause
        with self._lock:
            if self._error is None:
                self._error = error
        self._signal.set()

    def _take_error(self) -> BaseException | None:
        with self._lock:
            error, self._error = self._error, None
        return error

    def _run(self) -> None:
        try:
            try:
                client = self._client_factory()
            except Exception as exc:
                self._fail("error creating Docker client", exc)
                return
            with self._lock:
                if self._stopped.is_set():
                    client.close()
                    return
                self._client = client
            try:
                self._collect(client)
            finally:
                client.close()
        finally:
            self._signal.set()

    def _collect(self, client: DockerClient) -> None:
        try:
            container_id = find_container_id(client.list_containers(), self.container_name)
        except Exception as exc:
            self._fail("error getting container ID", exc)
            return
        try:
            for sample in client.stats(container_id):
                if self._stopped.is_set():
                    return
                usage = memory_usage_from_stats(sample)
                with self._lock:
                    self._max_usage = max(self._max_usage, usage)
                if not self._first_sample.is_set():
                    self._first_sample.set()
                    self._signal.set()
        except Exception as exc:
            if not self._stopped.is_set():
                self._fail("error decoding stats", exc)

    def wait_for_first_sample(self) -> None:
        """Block until the first sample arrives; raise what went wrong otherwise."""
        if self._thread is None:
            raise RuntimeError("collector not started")
        self._signal.wait()
        error = self._take_error()
        if error is not None:
            raise error
        if self._first_sample.is_set():
            return
        if self._stopped.is_set():
            raise RuntimeError("collector stopped")
        raise RuntimeError("stats stream ended before the first sample")

    def max_memory_usage(self) -> int:
        """Return the highest memory use seen so far, in bytes."""
        error = self._take_error()
        if error is not None:
            raise error
        with self._lock:
            return self._max_usage

    def stop(self) -> None:
        """Stop collecting and wait for the background thread to finish."""
        self._stopped.set()
        self._signal.set()
        with self._lock:
            client = self._client
        if client is not None:
            client.close()
        if self._thread is not None:
            self._thread.join()
        error = self._take_error()
        if error is not None:
            raise error


def start_docker_memory_collector(container_name: str) -> DockerMemoryCollector:
    """Create a collector for ``container_name`` and start it."""
    return DockerMemoryCollector(container_name).start()