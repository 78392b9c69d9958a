"""Configuration data structures."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from podwatch.collector.source import PodEventSource
    from podwatch.collector.target_watcher import TargetWatcher


@dataclass
class WatchConfig:
    """Target watch session configuration."""

    namespace: str = ""
    pod_query: str = ".*"
    container_query: str = ".*"
    exclude_container: str = ""
    init_containers: bool = True
    container_state: str = "running"
    label_selector: str = ""

    def build_watcher(self, source: PodEventSource) -> TargetWatcher:
        """Compile the filters and construct a TargetWatcher over *source*."""
        from podwatch.collector.container_state import ContainerStateFilter
        from podwatch.collector.target_watcher import TargetWatcher

        return TargetWatcher(
            source,
            pod_filter=re.compile(self.pod_query),
            container_filter=re.compile(self.container_query),
            container_exclude_filter=re.compile(self.exclude_container) if self.exclude_container else None,
            init_containers=self.init_containers,
            container_state=ContainerStateFilter.parse(self.container_state),
            label_selector=self.label_selector,
        )


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class PodWatchConfig:
    """Top-level podwatch configuration."""

    watch: WatchConfig = field(default_factory=WatchConfig)
    log: LogConfig = field(default_factory=LogConfig)
