"""Prometheus counters for the target watcher."""

from __future__ import annotations

from prometheus_client import Counter

watch_events_total = Counter(
    "podwatch_watch_events_total",
    "Raw pod watch events received by the target watcher",
    ["event_type"],
)

targets_total = Counter(
    "podwatch_targets_total",
    "Targets emitted by the target watcher",
    ["direction"],
)
