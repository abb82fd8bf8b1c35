import threading

import pytest

from tnbench.memcollector import (
    DockerMemoryCollector,
    find_container_id,
    memory_usage_from_stats,
)

CONTAINER = "kwil-testing-postgres"


class FakeClient:
    def __init__(self, samples, containers=None, list_error=None, stream_error=None):
        self.samples = samples
        self.containers = containers if containers is not None else [
            {"Id": "abc123", "Names": ["/" + CONTAINER]}
        ]
        self.list_error = list_error
        self.stream_error = stream_error
        self.closed = threading.Event()
        self.drained = threading.Event()
        self.requested_id = None

    def list_containers(self):
        if self.list_error:
            raise self.list_error
        return self.containers

    def stats(self, container_id):
        self.requested_id = container_id
        for sample in self.samples:
            yield sample
        self.drained.set()
        if self.stream_error:
            raise self.stream_error
        self.closed.wait(5)

    def close(self):
        self.closed.set()


def sample(usage, cache=None):
    memory = {"usage": usage}
    if cache is not None:
        memory["stats"] = {"cache": cache}
    return {"memory_stats": memory}


def test_memory_usage_excludes_cache():
    assert memory_usage_from_stats(sample(1000, 200)) == 800


def test_memory_usage_without_cache():
    assert memory_usage_from_stats(sample(4096)) == 4096


def test_memory_usage_never_negative():
    assert memory_usage_from_stats(sample(10, 50)) == 0


def test_find_container_id_strips_slash():
    containers = [
        {"Id": "other", "Names": ["/something-else"]},
        {"Id": "target", "Names": ["/" + CONTAINER]},
    ]
    assert find_container_id(containers, CONTAINER) == "target"


def test_find_container_id_missing():
    with pytest.raises(LookupError, match="not found"):
        find_container_id([{"Id": "x", "Names": ["/y"]}], CONTAINER)


def test_collects_peak_usage():
    client = FakeClient([sample(100), sample(300), sample(200)])
    collector = DockerMemoryCollector(CONTAINER, client_factory=lambda: client).start()
    collector.wait_for_first_sample()
    assert client.drained.wait(5)
    collector.stop()
    assert collector.max_memory_usage() == 300
    assert client.requested_id == "abc123"
    assert client.closed.is_set()


def test_context_manager_stops():
    client = FakeClient([sample(512)])
    with DockerMemoryCollector(CONTAINER, client_factory=lambda: client) as collector:
        collector.wait_for_first_sample()
        assert client.drained.wait(5)
    assert collector.max_memory_usage() == 512
    assert client.closed.is_set()


def test_missing_container_reported():
    client = FakeClient([sample(1)], containers=[])
    collector = DockerMemoryCollector(CONTAINER, client_factory=lambda: client).start()
    with pytest.raises(RuntimeError, match="error getting container ID"):
        collector.wait_for_first_sample()
    collector.stop()
    assert collector.max_memory_usage() == 0


def test_decode_error_reported():
    client = FakeClient([], stream_error=ValueError("bad json"))
    collector = DockerMemoryCollector(CONTAINER, client_factory=lambda: client).start()
    with pytest.raises(RuntimeError, match="error decoding stats"):
        collector.wait_for_first_sample()
    collector.stop()


def test_client_creation_error_raised_on_stop():
    def factory():
        raise OSError("no socket")

    collector = DockerMemoryCollector(CONTAINER, client_factory=factory).start()
    with pytest.raises(RuntimeError, match="error creating Docker client"):
        collector.stop()


def test_start_twice_rejected():
    client = FakeClient([sample(1)])
    collector = DockerMemoryCollector(CONTAINER, client_factory=lambda: client).start()
    with pytest.raises(RuntimeError, match="already started"):
        collector.start()
    collector.stop()
    assert client.closed.is_set()


def test_wait_before_start_rejected():
    collector = DockerMemoryCollector(CONTAINER, client_factory=lambda: FakeClient([]))
    with pytest.raises(RuntimeError, match="not started"):
        collector.wait_for_first_sample()