"""Pod event sources consumed by the target watcher.

PodEventSource       -- ABC: ``subscribe(label_selector)`` opens a watch.
PodWatchStream       -- ABC: async iterator of WatchEvent plus ``stop()``.
KubernetesPodSource  -- kubernetes-asyncio implementation over CoreV1Api.

Reconnection is not handled here: when the API server ends or breaks the
watch, the stream yields a single terminal ERROR event (on failure) and then
ends. Callers that want a long-lived watch open a new session.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import client, watch
from kubernetes_asyncio.client.exceptions import ApiException

_log = structlog.get_logger(component="collector.source")


class WatchEventType(StrEnum):
    """Event kinds delivered by a Kubernetes watch."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class WatchEvent:
    """One raw watch event: its kind and the (possibly foreign) payload."""

    type: str
    obj: Any = None


class WatchSetupError(Exception):
    """Raised when a pod watch could not be established."""

    def __init__(self, label_selector: str, cause: BaseException) -> None:
        super().__init__(f"failed to set up watch (labelSelector={label_selector!r}): {cause}")
        self.label_selector = label_selector
        self.cause = cause


class PodWatchStream(ABC):
    """An open pod watch subscription."""

    @abstractmethod
    def __aiter__(self) -> PodWatchStream: ...

    @abstractmethod
    async def __anext__(self) -> WatchEvent: ...

    @abstractmethod
    async def stop(self) -> None:
        """Release the subscription and its connection. Safe to call more than once."""


class PodEventSource(ABC):
    """Something that can open a pod watch scoped by a label selector."""

    @abstractmethod
    async def subscribe(self, label_selector: str) -> PodWatchStream:
        """Open a watch; raise WatchSetupError if it cannot be established."""


class _KubernetesWatchStream(PodWatchStream):
    """Adapts ``kubernetes_asyncio.watch.Watch`` to PodWatchStream."""

    def __init__(
        self,
        watcher: watch.Watch,
        list_func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        self._watch = watcher
        self._events = watcher.stream(list_func, *args, **kwargs)
        self._stopped = False
        self._failed = False

    def __aiter__(self) -> _KubernetesWatchStream:
        return self

    async def __anext__(self) -> WatchEvent:
        if self._stopped or self._failed:
            raise StopAsyncIteration
        try:
            raw = await self._events.__anext__()
        except (ApiException, aiohttp.ClientError) as exc:
            # Newer kubernetes-asyncio releases raise on ERROR events instead
            # of yielding them; both end the stream the same way.
            self._failed = True
            _log.warning("pod_watch_stream_failed", error=str(exc))
            return WatchEvent(type=WatchEventType.ERROR)

        event_type = str(raw.get("type", ""))
        if event_type == WatchEventType.ERROR:
            self._failed = True
            _log.warning("pod_watch_error_event", status=raw.get("raw_object"))
        return WatchEvent(type=event_type, obj=raw.get("object"))

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._watch.stop()
        # Watch closes itself only when its own __anext__ raises. A session
        # cancelled between reads still holds the response and the Watch's ApiClient.
        try:
            await self._watch.close()
        except Exception as exc:
            _log.debug("pod_watch_close_failed", error=str(exc))


class KubernetesPodSource(PodEventSource):
    """Pod watches against the Kubernetes API via kubernetes-asyncio.

    Args:
        core_v1:         CoreV1Api instance.
        namespace:       Namespace to watch; empty or None watches all namespaces.
        timeout_seconds: Optional server-side watch timeout.
    """

    def __init__(
        self,
        core_v1: client.CoreV1Api,
        namespace: str | None = None,
        timeout_seconds: int | None = None,
    ) -> None:
        self._v1 = core_v1
        self._namespace = namespace or None
        self._timeout_seconds = timeout_seconds

    def _list_call(self) -> tuple[Callable[..., Awaitable[Any]], tuple[str, ...]]:
        if self._namespace:
            return self._v1.list_namespaced_pod, (self._namespace,)
        return self._v1.list_pod_for_all_namespaces, ()

    async def subscribe(self, label_selector: str) -> PodWatchStream:
        list_func, args = self._list_call()
        # The watch request itself is lazy; a one-item list surfaces RBAC and
        # connectivity failures before any event is consumed.
        try:
            await list_func(*args, label_selector=label_selector, limit=1)
        except (ApiException, aiohttp.ClientError) as exc:
            _log.error(
                "pod_watch_setup_failed",
                namespace=self._namespace or "*",
                label_selector=label_selector,
                error=str(exc),
            )
            raise WatchSetupError(label_selector, exc) from exc

        kwargs: dict[str, Any] = {"label_selector": label_selector}
        if self._timeout_seconds is not None:
            kwargs["timeout_seconds"] = self._timeout_seconds
        _log.debug("pod_watch_opened", namespace=self._namespace or "*", label_selector=label_selector)
        return _KubernetesWatchStream(watch.Watch(), list_func, *args, **kwargs)
