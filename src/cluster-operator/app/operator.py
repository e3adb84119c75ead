"""Operator driver lifecycle.

CSI drivers start only after the first cluster is added. Every later
operator config change re-runs the driver update, which consults the
version gate before anything is started.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from shared.config import OperatorSettings
from shared.observability import get_logger

from .errors import ClusterControlError, ResolutionCancelledError
from .services.driver_gate import DriverEligibilityGate, parse_server_version
from .services.external_credentials import ExternalCredentialResolver
from .services.kube_store import KubeStore

logger = get_logger(__name__)

# Called with (rbd_enabled, cephfs_enabled) once the gate allows drivers
DriverStarter = Callable[[bool, bool], Awaitable[None]]


class OperatorConfigError(ClusterControlError):
    """Raised when the operator itself is misconfigured."""

    pass


class Operator:
    """Owns the driver gate and the operator's background tasks."""

    def __init__(
        self,
        settings: OperatorSettings,
        store: KubeStore,
        start_csi_drivers: DriverStarter,
        gate: DriverEligibilityGate | None = None,
    ):
        self.settings = settings
        self.store = store
        self.start_csi_drivers = start_csi_drivers
        self.gate = gate or DriverEligibilityGate.from_settings(settings.csi)
        self.delayed_daemons_started = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def namespace_to_watch(self) -> str:
        """Operator namespace, or "" for all namespaces."""
        if self.settings.current_namespace_only:
            return self.settings.operator_namespace
        return ""

    def _require_namespace(self) -> None:
        if not self.settings.operator_namespace:
            raise OperatorConfigError(
                "operator namespace is not provided. expose it via downward API "
                "using environment variable POD_NAMESPACE"
            )

    async def start_drivers(self) -> None:
        """Start drivers the first time a cluster is added."""
        if self.delayed_daemons_started:
            return

        self.delayed_daemons_started = True
        try:
            await self.update_drivers()
        except Exception:
            # allow the next cluster add to try again
            self.delayed_daemons_started = False
            raise

    async def update_drivers(self) -> None:
        """Re-evaluate the gate and (re)start the enabled drivers."""
        # no cluster has been started yet
        if not self.delayed_daemons_started:
            return

        self._require_namespace()

        if not self.gate.any_driver_enabled:
            logger.info("CSI driver is not enabled")
            return

        major, minor = parse_server_version(*await self.store.get_server_version())
        if not self.gate.evaluate(major, minor):
            logger.info(
                "CSI drivers disabled for this platform version",
                version=f"{major}.{minor}",
                gate_state=self.gate.state.value,
            )
            return

        await self.start_csi_drivers(self.gate.rbd_enabled, self.gate.cephfs_enabled)
        logger.info(
            "CSI drivers started",
            rbd=self.gate.rbd_enabled,
            cephfs=self.gate.cephfs_enabled,
        )

    def watch_external_cluster(
        self,
        resolver: ExternalCredentialResolver,
        namespace: str,
        stop: asyncio.Event,
    ) -> asyncio.Task:
        """Resolve external credentials in a background task."""
        task = asyncio.create_task(
            resolver.populate_external_cluster_info(namespace, stop),
            name=f"external-cluster:{namespace}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("Background task cancelled", task=task.get_name())
            return
        error = task.exception()
        if isinstance(error, ResolutionCancelledError):
            logger.info("Background task stopped", task=task.get_name())
        elif error is not None:
            logger.error(
                "Background task failed",
                task=task.get_name(),
                error=str(error),
                error_type=type(error).__name__,
            )
        else:
            logger.info("Background task finished", task=task.get_name())

    async def run(self, stop: asyncio.Event) -> None:
        """Run until ``stop`` is set, then stop background tasks."""
        self._require_namespace()

        if self.namespace_to_watch:
            logger.info("Watching the current namespace for a cluster CRD",
                        namespace=self.namespace_to_watch)
        else:
            logger.info("Watching all namespaces for cluster CRDs")

        await stop.wait()
        logger.info("Shutdown signal received, exiting...")

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        # outcomes are logged by _on_task_done
        await asyncio.gather(*tasks, return_exceptions=True)
