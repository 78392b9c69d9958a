"""Core data structures for podwatch."""

from podwatch.models.config import LogConfig, PodWatchConfig, WatchConfig
from podwatch.models.targets import Target

__all__ = [
    "LogConfig",
    "PodWatchConfig",
    "Target",
    "WatchConfig",
]
