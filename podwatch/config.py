"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from podwatch.collector.container_state import ContainerStateFilter
from podwatch.models.config import LogConfig, PodWatchConfig, WatchConfig


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"PODWATCH_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _validate_pattern(key: str, value: str) -> str:
    try:
        re.compile(value)
    except re.error as exc:
        raise ValueError(f"Invalid regular expression for PODWATCH_{key}: {value!r} ({exc})") from exc
    return value


def _validate_container_state(value: str) -> str:
    # Raises InvalidContainerStateError (a ValueError) on unknown names.
    ContainerStateFilter.parse(value)
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> PodWatchConfig:
    """Load configuration from PODWATCH_* environment variables."""
    exclude = _env("EXCLUDE_CONTAINER", "")
    return PodWatchConfig(
        watch=WatchConfig(
            namespace=_env("NAMESPACE", ""),
            pod_query=_validate_pattern("POD_QUERY", _env("POD_QUERY", ".*")),
            container_query=_validate_pattern("CONTAINER_QUERY", _env("CONTAINER_QUERY", ".*")),
            exclude_container=_validate_pattern("EXCLUDE_CONTAINER", exclude) if exclude else "",
            init_containers=_env_bool("INIT_CONTAINERS", True),
            container_state=_validate_container_state(_env("CONTAINER_STATE", "running")),
            label_selector=_env("LABEL_SELECTOR", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
