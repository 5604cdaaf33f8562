"""Local setup commands: start, stop, status, delete and logs.

The broker is always started first: its routing table is rewritten from
the manifest, and its address is handed to every other adapter as K_SINK.
"""

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from localmesh.components import Broker, Capability, Component, build_component, get_component
from localmesh.context import LocalContext
from localmesh.errors import ManifestError
from localmesh.logging import get_component_logger
from localmesh.routing.triggers import TRIGGER_KIND, Trigger
from localmesh.types import AdapterContainer, ContainerState, LogEntry


@dataclass
class ComponentStatus:
    """One row of the status table."""
    name: str
    kind: str
    state: ContainerState
    url: Optional[str] = None


class LocalSetup:
    """Whole-setup operations over the manifest's runnable components."""

    def __init__(self, context: LocalContext) -> None:
        self._context = context
        self._manifest = context.manifest
        self._orchestrator = context.orchestrator
        self._reconciler = context.reconciler
        self._logger = get_component_logger("local_setup", context.logger)

    def _runnables(self) -> List[Component]:
        self._manifest.read()
        components = [build_component(r) for r in self._manifest.records()]
        return [c for c in components if c.has(Capability.RUNNABLE)]

    async def start_all(self, restart: bool = False) -> List[AdapterContainer]:
        """Start every runnable component, broker first.

        Raises:
            BatchError: one or more non-broker adapters failed to start
        """
        components = self._runnables()
        broker = next((c for c in components if isinstance(c, Broker)), None)

        started: List[AdapterContainer] = []
        env = {}
        if broker is not None:
            await self._reconciler.sync()
            container = await self._orchestrator.start(broker, restart_existing=restart)
            started.append(container)
            env = {"K_SINK": container.url(self._context.settings.adapter_host)}

        rest = [c for c in components if c is not broker]
        started.extend(await self._orchestrator.start_all(rest, restart_existing=restart, env=env))

        self._logger.info("setup_started", components=len(started), restart=restart)
        return started

    async def stop_all(self) -> List[str]:
        names = [c.name for c in self._runnables()]
        await self._orchestrator.stop_all(names)
        self._logger.info("setup_stopped", components=len(names))
        return names

    async def status(self) -> List[ComponentStatus]:
        rows = []
        for component in self._runnables():
            state = await self._orchestrator.status(component.name)
            url = None
            if state == ContainerState.READY:
                url = await self._orchestrator.endpoint(component.name)
            rows.append(ComponentStatus(component.name, component.kind, state, url))
        return rows

    async def delete(self, name: str) -> List[Trigger]:
        """Remove a component or a trigger from the setup.

        A component's adapter is stopped and every trigger delivering to it
        is removed along with its record.

        Returns:
            Triggers removed by the deletion.
        """
        self._manifest.read()
        if self._manifest.find(name) is None and self._manifest.get(TRIGGER_KIND, name) is not None:
            async with self._reconciler.transaction() as txn:
                trigger = txn.get(name)
                if not txn.remove(name):
                    raise ManifestError(f"trigger {name!r} is not routed by this broker")
            self._logger.info("trigger_deleted", trigger=name)
            return [trigger]

        component = get_component(self._manifest, name)
        if component.has(Capability.RUNNABLE):
            await self._orchestrator.stop(name)

        async with self._reconciler.transaction() as txn:
            removed = txn.remove_target(name)
            if not self._manifest.remove(name, component.kind):
                raise ManifestError(f"component {name!r} not found in manifest")
        self._logger.info("component_deleted", name=name, kind=component.kind, triggers=len(removed))
        return removed

    def logs(self, name: str) -> AsyncIterator[LogEntry]:
        """Follow the adapter logs of a runnable component."""
        self._manifest.read()
        get_component(self._manifest, name).as_runnable()
        return self._orchestrator.stream_logs(name)


__all__ = ["ComponentStatus", "LocalSetup"]
