"""Application bootstrap for podwatch.

Wires components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → target watcher → consumers

Every target transition is written as a structured log line
(``watch_target`` / ``unwatch_target``). The process exits when the watch
session ends or on SIGTERM/SIGINT.
"""

from __future__ import annotations

import asyncio
import re
import signal
from typing import TYPE_CHECKING

from podwatch.collector.channel import TargetChannel
from podwatch.collector.source import WatchSetupError
from podwatch.config import load_config
from podwatch.models.config import PodWatchConfig
from podwatch.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog
    from kubernetes_asyncio import client as k8s_client

    from podwatch.collector.target_watcher import TargetWatcher


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class PodWatchApp:
    """Application root.  Owns the API client, the watcher and its consumers.

    ``stop()`` is safe to call on an app that was never started or is
    already stopped. Called while ``start()`` is in flight, it only records
    the request and ``start()`` shuts the app down once startup returns.
    """

    def __init__(self, config: PodWatchConfig | None = None) -> None:
        self.config = config
        self._api_client: k8s_client.ApiClient | None = None
        self._watcher: TargetWatcher | None = None
        self._consumers: list[asyncio.Task[None]] = []
        self._running = False
        self._starting = False
        self._stopping = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        if self.config is None:
            try:
                self.config = load_config()
            except ValueError as exc:
                raise _ComponentError("config", exc) from exc

        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("podwatch starting", version=_podwatch_version())

        self._starting = True
        try:
            await self._start_k8s_client()
            if not self._stopping:
                await self._start_watcher()
        finally:
            self._starting = False

        self._running = True
        if self._stopping:
            self._log.info("shutdown requested during startup")
            await self.stop()
            return
        self._log.info(
            "podwatch started",
            namespace=self.config.watch.namespace or "*",
            label_selector=self.config.watch.label_selector,
        )

    async def _start_k8s_client(self) -> None:
        """Load in-cluster config, falling back to kubeconfig, and build an ApiClient."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            from kubernetes_asyncio import client as k8s_client
            from kubernetes_asyncio import config as k8s_config

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_watcher(self) -> None:
        """Open the pod watch and attach one consumer per target channel."""
        assert self._log is not None
        assert self.config is not None
        assert self._api_client is not None
        self._log.debug("starting target watcher")
        try:
            from kubernetes_asyncio import client as k8s_client

            from podwatch.collector.source import KubernetesPodSource

            source = KubernetesPodSource(
                k8s_client.CoreV1Api(self._api_client),
                namespace=self.config.watch.namespace,
            )
            watcher = self.config.watch.build_watcher(source)
            added, removed = await watcher.start()
        except (WatchSetupError, ValueError, re.error) as exc:
            raise _ComponentError("target_watcher", exc) from exc

        self._watcher = watcher
        self._consumers = [
            asyncio.create_task(self._consume(added, "watch_target"), name="consume-added"),
            asyncio.create_task(self._consume(removed, "unwatch_target"), name="consume-removed"),
        ]
        self._log.info("target watcher started")

    async def _consume(self, channel: TargetChannel, event: str) -> None:
        log = self._log or get_logger("app")
        async for target in channel:
            log.info(event, namespace=target.namespace, pod=target.pod, container=target.container)

    async def wait(self) -> None:
        """Block until the watch session ends and both channels are drained."""
        if self._consumers:
            await asyncio.gather(*self._consumers, return_exceptions=True)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop the watcher, then the consumers, then the API client."""
        self._stopping = True
        if self._starting:
            return
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("podwatch shutting down")
        self._running = False

        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

        # Closed channels end the consumers; gather just collects them.
        if self._consumers:
            await asyncio.gather(*self._consumers, return_exceptions=True)
        self._consumers.clear()

        if self._api_client is not None:
            try:
                await self._api_client.close()
            except Exception as exc:
                log.debug("k8s client close raised (non-fatal)", error=str(exc))
            self._api_client = None

        log.info("podwatch stopped")


def _podwatch_version() -> str:
    from podwatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until the session ends."""
    app = PodWatchApp()
    loop = asyncio.get_running_loop()

    shutdown: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown
        if shutdown is not None:
            return
        shutdown = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        await app.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if shutdown is not None:
            await shutdown
        if app.running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
