"""Collector package for podwatch.

Turns a Kubernetes pod watch into two streams of container targets: those to
start observing and those to stop observing.

Submodules
----------
source          -- PodEventSource / PodWatchStream contracts and the
                   kubernetes-asyncio implementation.
container_state -- ContainerStateClassifier and ContainerStateFilter.
channel         -- TargetChannel: closable rendezvous channel of Target.
target_watcher  -- TargetWatcher: the filter/tracker session.
"""

from podwatch.collector.channel import ChannelClosedError, TargetChannel
from podwatch.collector.container_state import (
    ContainerStateClassifier,
    ContainerStateFilter,
    ContainerStateName,
    InvalidContainerStateError,
)
from podwatch.collector.source import (
    KubernetesPodSource,
    PodEventSource,
    PodWatchStream,
    WatchEvent,
    WatchEventType,
    WatchSetupError,
)
from podwatch.collector.target_watcher import TargetWatcher

__all__ = [
    "ChannelClosedError",
    "ContainerStateClassifier",
    "ContainerStateFilter",
    "ContainerStateName",
    "InvalidContainerStateError",
    "KubernetesPodSource",
    "PodEventSource",
    "PodWatchStream",
    "TargetChannel",
    "TargetWatcher",
    "WatchEvent",
    "WatchEventType",
    "WatchSetupError",
]
