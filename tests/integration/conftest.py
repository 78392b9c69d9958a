"""Shared fixtures for podwatch integration tests.

Provides an in-memory pod event source and pod factories built from real
kubernetes-asyncio models, so full watch sessions run without a cluster.
"""

from __future__ import annotations

import asyncio

import pytest
from kubernetes_asyncio.client import (
    V1Container,
    V1ContainerState,
    V1ContainerStateRunning,
    V1ContainerStateTerminated,
    V1ContainerStateWaiting,
    V1ContainerStatus,
    V1ObjectMeta,
    V1Pod,
    V1PodSpec,
    V1PodStatus,
)

from podwatch.collector.source import PodEventSource, PodWatchStream, WatchEvent

# ---------------------------------------------------------------------------
# Pod factories
# ---------------------------------------------------------------------------

_STATES = {
    "Running": lambda: V1ContainerState(running=V1ContainerStateRunning()),
    "Pending": lambda: V1ContainerState(waiting=V1ContainerStateWaiting(reason="ContainerCreating")),
    "Terminated": lambda: V1ContainerState(terminated=V1ContainerStateTerminated(exit_code=0)),
}


def make_pod(
    name: str = "p1",
    namespace: str = "ns",
    containers: dict[str, str] | None = None,
    init_containers: dict[str, str] | None = None,
) -> V1Pod:
    """Build a V1Pod whose containers are in the given states (Running/Pending/Terminated)."""
    containers = containers or {"c1": "Running"}
    init_containers = init_containers or {}

    def status(cname: str, state: str) -> V1ContainerStatus:
        return V1ContainerStatus(
            name=cname,
            image="registry.local/app:1.0",
            image_id="",
            ready=state == "Running",
            restart_count=0,
            state=_STATES[state](),
        )

    return V1Pod(
        metadata=V1ObjectMeta(name=name, namespace=namespace, labels={"app": "web"}),
        spec=V1PodSpec(
            containers=[V1Container(name=c) for c in containers],
            init_containers=[V1Container(name=c) for c in init_containers] or None,
        ),
        status=V1PodStatus(
            phase="Running",
            container_statuses=[status(c, s) for c, s in containers.items()],
            init_container_statuses=[status(c, s) for c, s in init_containers.items()] or None,
        ),
    )


# ---------------------------------------------------------------------------
# In-memory source
# ---------------------------------------------------------------------------


class MemoryPodStream(PodWatchStream):
    def __init__(self) -> None:
        self._queue: asyncio.Queue[WatchEvent | None] = asyncio.Queue()
        self.stop_calls = 0

    def emit(self, event_type: str, pod: object) -> None:
        self._queue.put_nowait(WatchEvent(type=event_type, obj=pod))

    def close(self) -> None:
        self._queue.put_nowait(None)

    def __aiter__(self) -> MemoryPodStream:
        return self

    async def __anext__(self) -> WatchEvent:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def stop(self) -> None:
        self.stop_calls += 1


class MemoryPodSource(PodEventSource):
    def __init__(self) -> None:
        self.stream = MemoryPodStream()
        self.subscriptions: list[str] = []

    async def subscribe(self, label_selector: str) -> PodWatchStream:
        self.subscriptions.append(label_selector)
        return self.stream


@pytest.fixture
def pod_source() -> MemoryPodSource:
    return MemoryPodSource()
