"""Container Orchestrator - materializes runnable components as adapters.

This implements adapter management for a local setup:
- Start (reuse or replace, then readiness probe)
- Stop (idempotent)
- Status (no side effects)
- Batch start/stop (one task per component, joined at a barrier)
- Log streaming with error classification

The orchestrator owns one long-lived runtime handle, opened on entry and
closed on exit, and a LogErrorReporter task with the same lifetime.

Usage:
    async with ContainerOrchestrator(runtime, settings, logger=logger) as orch:
        container = await orch.start(transformation)
        await orch.start_all(components)
        async for entry in orch.stream_logs("sockeye"):
            ...
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence

from localmesh.components import Component
from localmesh.errors import BatchError, InfraError, UnreadyError
from localmesh.logging import get_component_logger
from localmesh.protocols import ContainerRuntimeProtocol, LoggerProtocol
from localmesh.runtime.lifecycle import ContainerLifecycle
from localmesh.runtime.probe import ReadinessProbe
from localmesh.settings import Settings
from localmesh.types import AdapterContainer, ContainerState, LogEntry

# Docker multiplexed stream frames start with an 8-byte header:
# [stream type, 0, 0, 0, size (4 bytes BE)]
_STREAM_HEADER_SIZE = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_stream_header(line: bytes) -> bytes:
    """Drop a docker stream multiplexing header if the line carries one."""
    if (
        len(line) >= _STREAM_HEADER_SIZE
        and line[0] in (0, 1, 2)
        and line[1:4] == b"\x00\x00\x00"
    ):
        return line[_STREAM_HEADER_SIZE:]
    return line


def parse_log_line(component: str, line: bytes) -> Optional[LogEntry]:
    """Decode one adapter log line; None if it is not a JSON record."""
    payload = strip_stream_header(line).strip()
    if not payload:
        return None
    try:
        record = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(record, dict):
        return None
    return LogEntry(
        component=component,
        severity=str(record.get("severity", "")),
        message=str(record.get("message", "")),
    )


class LogErrorReporter:
    """Background task that reports adapter error log entries.

    Entries are published from any log stream; the reporter drains them
    until stopped. Stopping cancels and joins the task.
    """

    def __init__(self, logger: LoggerProtocol, maxsize: int = 1000) -> None:
        self._logger = logger.bind(component="log_error_reporter")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self._reported = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def reported(self) -> int:
        return self._reported

    def publish(self, entry: LogEntry) -> None:
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self._logger.warning("adapter_error_dropped", adapter=entry.component)

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="log-error-reporter")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            # Report what is already queued before shutting down
            while not self._queue.empty():
                self._report(self._queue.get_nowait())
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _run_loop(self) -> None:
        while True:
            entry = await self._queue.get()
            self._report(entry)

    def _report(self, entry: LogEntry) -> None:
        self._reported += 1
        self._logger.error(
            "adapter_error",
            adapter=entry.component,
            severity=entry.severity,
            message=entry.message,
        )


class ContainerOrchestrator:
    """Starts, stops and watches adapter containers."""

    def __init__(
        self,
        runtime: ContainerRuntimeProtocol,
        settings: Settings,
        logger: Optional[LoggerProtocol] = None,
        probe: Optional[ReadinessProbe] = None,
    ) -> None:
        self._runtime = runtime
        self._settings = settings
        self._logger = get_component_logger("orchestrator", logger)
        self._lifecycle = ContainerLifecycle(self._logger)
        self._probe = probe or ReadinessProbe(
            retries=settings.connect_retries,
            delay=settings.connect_retry_delay,
            logger=self._logger,
        )
        self._reporter = LogErrorReporter(self._logger)
        self._opened = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self) -> None:
        if self._opened:
            return
        await self._runtime.open()
        await self._reporter.start()
        self._opened = True

    async def close(self) -> None:
        if not self._opened:
            return
        self._opened = False
        try:
            await self._reporter.stop()
        finally:
            await self._runtime.close()

    async def __aenter__(self) -> "ContainerOrchestrator":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def lifecycle(self) -> ContainerLifecycle:
        return self._lifecycle

    @property
    def reporter(self) -> LogErrorReporter:
        return self._reporter

    # =========================================================================
    # Single container operations
    # =========================================================================

    async def start(
        self,
        component: Component,
        restart_existing: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> AdapterContainer:
        """Materialize a runnable component as a ready adapter container.

        Raises:
            NotRunnableError: component has no image
            InfraError: runtime failure
            UnreadyError: adapter never answered the probe
        """
        runnable = component.as_runnable()
        spec = runnable.container_spec(self._settings, env)
        name = spec.name

        if not restart_existing:
            existing = await self._runtime.find(name)
            tracked = self._lifecycle.state(name)
            # A container that never answered a probe is replaced, not adopted
            if (
                existing is not None
                and existing.running
                and tracked not in (ContainerState.STARTING, ContainerState.UNREADY)
            ):
                self._logger.info("container_reused", name=name, host_port=existing.host_port)
                return self._lifecycle.adopt(AdapterContainer(
                    name=name,
                    image=existing.image or spec.image,
                    host_port=existing.host_port,
                    container_id=existing.container_id,
                    started_at=_utcnow(),
                ))

        container = self._lifecycle.begin(name, spec.image)
        try:
            await self._runtime.remove(name)
            running = await self._runtime.run(spec)
            if running.host_port is None:
                raise InfraError(f"container {name!r} has no published port")
        except (Exception, asyncio.CancelledError):
            self._lifecycle.transition(name, ContainerState.STOPPED, reason="run_failed")
            raise

        container.container_id = running.container_id
        container.host_port = running.host_port

        try:
            attempts = await self._probe.wait_ready(name, self._settings.probe_host, running.host_port)
        except UnreadyError:
            self._lifecycle.transition(name, ContainerState.UNREADY, reason="probe_exhausted")
            self._logger.warning("container_unready", name=name, retries=self._probe.retries)
            raise
        except asyncio.CancelledError:
            self._lifecycle.transition(name, ContainerState.UNREADY, reason="cancelled")
            raise

        container.started_at = _utcnow()
        self._lifecycle.transition(name, ContainerState.READY)
        self._logger.info(
            "container_started",
            name=name,
            image=spec.image,
            host_port=container.host_port,
            attempts=attempts,
        )
        return container

    async def stop(self, name: str) -> None:
        """Remove the named container. Absence is not an error."""
        await self._runtime.remove(name)
        if self._lifecycle.get(name) is not None:
            self._lifecycle.transition(name, ContainerState.STOPPED, reason="stopped")
        self._logger.info("container_stopped", name=name)

    async def status(self, name: str) -> ContainerState:
        """Current lifecycle state; queries only."""
        found = await self._runtime.find(name)
        tracked = self._lifecycle.get(name)

        if found is None:
            if tracked is not None and tracked.state != ContainerState.ABSENT:
                return ContainerState.STOPPED
            return ContainerState.ABSENT
        if not found.running:
            return ContainerState.STOPPED
        if tracked is not None and tracked.state in (
            ContainerState.STARTING,
            ContainerState.READY,
            ContainerState.UNREADY,
        ):
            return tracked.state
        return ContainerState.READY

    async def endpoint(self, name: str) -> str:
        """URL other adapters use to deliver events to `name`."""
        tracked = self._lifecycle.get(name)
        if tracked is not None and tracked.is_ready():
            return tracked.url(self._settings.adapter_host)

        found = await self._runtime.find(name)
        if found is None or not found.running or found.host_port is None:
            raise InfraError(f"{name!r} is not running")
        return f"http://{self._settings.adapter_host}:{found.host_port}"

    # =========================================================================
    # Batch operations
    # =========================================================================

    async def start_all(
        self,
        components: Sequence[Component],
        restart_existing: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> List[AdapterContainer]:
        """Start every component concurrently.

        All tasks are joined before returning. The first failure cancels the
        siblings still in flight; the raised BatchError names every failed
        and every cancelled component. Containers that did start stay
        tracked.
        """
        if not components:
            return []

        tasks: Dict[asyncio.Task, str] = {}
        for component in components:
            task = asyncio.create_task(
                self.start(component, restart_existing, env),
                name=f"start:{component.name}",
            )
            tasks[task] = component.name

        failures: Dict[str, Exception] = {}
        cancelled: List[str] = []

        try:
            pending = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
                for task in done:
                    if not task.cancelled() and task.exception() is not None:
                        failures[tasks[task]] = task.exception()
                if failures and pending:
                    for task in pending:
                        task.cancel()
                    await asyncio.gather(*pending, return_exceptions=True)
                    for task in pending:
                        if task.cancelled():
                            cancelled.append(tasks[task])
                        elif task.exception() is not None:
                            failures[tasks[task]] = task.exception()
                    pending = set()
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        started = [
            task.result() for task in tasks
            if not task.cancelled() and task.exception() is None
        ]

        if failures:
            order = [c.name for c in components]
            ordered = {name: failures[name] for name in order if name in failures}
            self._logger.error(
                "batch_start_failed",
                failed=list(ordered),
                cancelled=cancelled,
                started=[c.name for c in started],
            )
            raise BatchError("start", ordered, cancelled)

        self._logger.info("batch_started", count=len(started))
        return started

    async def stop_all(self, names: Sequence[str]) -> None:
        """Stop every named container concurrently; failures are aggregated."""
        results = await asyncio.gather(
            *(self.stop(name) for name in names),
            return_exceptions=True,
        )
        failures = {
            name: result for name, result in zip(names, results)
            if isinstance(result, Exception)
        }
        if failures:
            raise BatchError("stop", failures)

    # =========================================================================
    # Logs
    # =========================================================================

    async def stream_logs(self, name: str) -> AsyncIterator[LogEntry]:
        """Lazy, unbounded sequence of structured adapter log entries.

        Error entries (severity other than INFO/WARNING) are also published
        to the error reporter.
        """
        async for line in self._runtime.logs(name, follow=True):
            entry = parse_log_line(name, line)
            if entry is None:
                self._logger.debug("adapter_output", adapter=name, line=line.decode(errors="replace"))
                continue
            if entry.is_error():
                self._reporter.publish(entry)
            yield entry


__all__ = [
    "ContainerOrchestrator",
    "LogErrorReporter",
    "parse_log_line",
    "strip_stream_header",
]
