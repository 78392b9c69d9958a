"""TargetWatcher: turns pod watch events into added/removed container targets.

One watch session owns one background task. The task reads raw pod events in
arrival order, filters pods and containers, and sends a Target on the
``added`` or ``removed`` channel for every qualifying container transition.
Sends are rendezvous, so a slow consumer throttles event processing.

The session ends when the upstream stream ends (or reports an error) or when
the watcher is stopped. Either way the upstream watch is stopped and both
channels are closed; closing is the only end-of-session signal consumers see.
"""

from __future__ import annotations

import asyncio
import re
from types import TracebackType
from typing import Any

import structlog
from kubernetes_asyncio.client import V1Pod

from podwatch.collector.channel import TargetChannel
from podwatch.collector.container_state import ContainerStateClassifier
from podwatch.collector.source import (
    PodEventSource,
    PodWatchStream,
    WatchEvent,
    WatchEventType,
    WatchSetupError,
)
from podwatch.models.targets import Target
from podwatch.observability.metrics import targets_total, watch_events_total

_log = structlog.get_logger(component="collector.target_watcher")


class TargetWatcher:
    """Filter/tracker over a single pod watch session.

    Args:
        source:                   Opens the pod watch.
        pod_filter:               Pods whose name does not match are ignored.
        container_filter:         Containers whose name does not match are ignored.
        container_exclude_filter: Containers whose name matches are ignored,
                                  even when ``container_filter`` matches.
        init_containers:          Also consider init containers.
        container_state:          Classifies container states as active.
        label_selector:           Passed to ``source.subscribe``.
    """

    def __init__(
        self,
        source: PodEventSource,
        *,
        pod_filter: re.Pattern[str],
        container_filter: re.Pattern[str],
        container_exclude_filter: re.Pattern[str] | None = None,
        init_containers: bool = False,
        container_state: ContainerStateClassifier,
        label_selector: str = "",
    ) -> None:
        self._source = source
        self._pod_filter = pod_filter
        self._container_filter = container_filter
        self._container_exclude_filter = container_exclude_filter
        self._init_containers = init_containers
        self._container_state = container_state
        self._label_selector = label_selector

        # Pod names with an emitted add not yet followed by a remove. Kept as
        # a list: repeated adds for the same pod accumulate entries, and each
        # remove drops only the first one.
        self._active: list[str] = []

        self._added = TargetChannel("added")
        self._removed = TargetChannel("removed")
        self._task: asyncio.Task[None] | None = None
        self._stream: PodWatchStream | None = None
        self._finished = False

    @property
    def active_pods(self) -> tuple[str, ...]:
        """Snapshot of the active-pod registry, in insertion order."""
        return tuple(self._active)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> tuple[TargetChannel, TargetChannel]:
        """Open the watch and start processing events in the background.

        Returns:
            ``(added, removed)`` channels of Target.

        Raises:
            WatchSetupError: the watch could not be established. No task is
                started and no target is ever produced.
            RuntimeError:    the watcher was already started.
        """
        if self._task is not None:
            raise RuntimeError("TargetWatcher already started")

        try:
            stream = await self._source.subscribe(self._label_selector)
        except WatchSetupError:
            raise
        except Exception as exc:
            raise WatchSetupError(self._label_selector, exc) from exc

        self._stream = stream
        _log.debug("target_watcher_started", label_selector=self._label_selector)
        self._task = asyncio.create_task(self._run(stream), name="target-watcher")
        return self._added, self._removed

    async def stop(self) -> None:
        """Cancel the session and wait until both channels are closed.

        Idempotent; a no-op if the watcher was never started.
        """
        task = self._task
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await self._finish()

    async def wait_closed(self) -> None:
        """Wait until the session has ended for any reason."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            await self._finish()

    async def __aenter__(self) -> tuple[TargetChannel, TargetChannel]:
        return await self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Processing loop
    # ------------------------------------------------------------------

    async def _run(self, stream: PodWatchStream) -> None:
        try:
            while True:
                # A pending cancellation is raised here, ahead of any event
                # the stream already has buffered.
                await asyncio.sleep(0)
                try:
                    event = await stream.__anext__()
                except StopAsyncIteration:
                    _log.info("upstream_watch_closed", reason="end_of_stream")
                    return

                watch_events_total.labels(event_type=event.type or "UNKNOWN").inc()
                if event.type == WatchEventType.ERROR:
                    _log.info("upstream_watch_closed", reason="error")
                    return
                await self._handle_event(event)
        except asyncio.CancelledError:
            _log.debug("target_watcher_cancelled")
            raise
        except Exception as exc:
            _log.error("target_watcher_failed", error=str(exc), exc_info=True)
        finally:
            await self._finish()

    async def _finish(self) -> None:
        # A task cancelled before its first step never enters _run, so stop()
        # and wait_closed() also call this.
        if self._finished or self._stream is None:
            return
        self._finished = True
        await self._stream.stop()
        await self._added.close()
        await self._removed.close()
        _log.debug("target_watcher_stopped", active_pods=len(self._active))

    async def _handle_event(self, event: WatchEvent) -> None:
        pod = event.obj
        if not isinstance(pod, V1Pod):
            return

        metadata = pod.metadata
        name = (metadata.name if metadata else None) or ""
        namespace = (metadata.namespace if metadata else None) or ""
        if not self._pod_filter.search(name):
            return

        if event.type in (WatchEventType.ADDED, WatchEventType.MODIFIED):
            await self._handle_update(pod, namespace, name)
        elif event.type == WatchEventType.DELETED:
            await self._handle_delete(pod, namespace, name)

    async def _handle_update(self, pod: V1Pod, namespace: str, name: str) -> None:
        status = pod.status
        statuses: list[Any] = []
        if status is not None:
            statuses.extend(status.container_statuses or [])
            if self._init_containers:
                statuses.extend(status.init_container_statuses or [])

        for container in statuses:
            if not self._wants_container(container.name):
                continue

            target = Target(namespace=namespace, pod=name, container=container.name)
            if self._container_state.matches(container.state):
                self._active.append(name)
                await self._emit(self._added, target)
            elif self._container_state.has_wildcard():
                if _index_of(self._active, name) == -1:
                    self._active.append(name)
                    await self._emit(self._added, target)
            # Wildcard off: only a pod with an outstanding add gets a removal.
            elif self._forget(name):
                await self._emit(self._removed, target)

    async def _handle_delete(self, pod: V1Pod, namespace: str, name: str) -> None:
        spec = pod.spec
        containers: list[Any] = []
        if spec is not None:
            containers.extend(spec.containers or [])
            if self._init_containers:
                containers.extend(spec.init_containers or [])

        for container in containers:
            if not self._wants_container(container.name):
                continue
            self._forget(name)
            await self._emit(self._removed, Target(namespace=namespace, pod=name, container=container.name))

    def _wants_container(self, name: str) -> bool:
        if not self._container_filter.search(name):
            return False
        if self._container_exclude_filter is not None and self._container_exclude_filter.search(name):
            return False
        return True

    def _forget(self, pod_name: str) -> bool:
        """Drop the first registry entry for *pod_name*; False if there was none."""
        index = _index_of(self._active, pod_name)
        if index == -1:
            return False
        del self._active[index]
        return True

    async def _emit(self, channel: TargetChannel, target: Target) -> None:
        await channel.send(target)
        targets_total.labels(direction=channel.name).inc()
        _log.debug(f"target_{channel.name}", target=target.id)


def _index_of(names: list[str], name: str) -> int:
    """Index of the first occurrence of *name* in *names*, or -1."""
    for index, candidate in enumerate(names):
        if candidate == name:
            return index
    return -1
