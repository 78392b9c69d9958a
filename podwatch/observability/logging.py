"""Structured logging for podwatch.

Every line is one JSON object on stderr (or a console rendering for local
runs) carrying ``service``, ``component``, ``level`` and ``ts``.

What gets logged:
  - target transitions: ``target_added`` / ``target_removed`` from the
    watcher (debug) and ``watch_target`` / ``unwatch_target`` from the app
  - session boundaries: ``upstream_watch_closed`` (with ``reason``),
    ``target_watcher_cancelled``, ``target_watcher_stopped``
  - Kubernetes failures: ``pod_watch_setup_failed``, ``pod_watch_stream_failed``
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

SERVICE_NAME = "podwatch"


def _add_service(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog output to stderr.

    ``fmt="json"`` emits one JSON object per line; ``fmt="console"`` uses
    structlog's human-readable renderer.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer(colors=False) if fmt == "console" else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger bound to a podwatch component (``app``, ``collector.target_watcher``, ...)."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
