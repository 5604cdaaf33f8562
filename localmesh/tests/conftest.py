"""Pytest configuration for localmesh tests.

Provides an in-memory container runtime, an instant readiness probe and
tmp_path-backed stores so orchestrator and reconciler behavior can be
tested without a docker daemon.
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional

import pytest

from localmesh.broker.config import BrokerConfigStore
from localmesh.context import LocalContext
from localmesh.manifest.store import YamlManifestStore
from localmesh.routing.reconciler import BrokerReconciler
from localmesh.runtime.orchestrator import ContainerOrchestrator
from localmesh.runtime.probe import ReadinessProbe
from localmesh.settings import Settings
from localmesh.types import ContainerSpec, RuntimeContainer


# =============================================================================
# PYTEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (may use mocks)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests across stores, reconciler and orchestrator"
    )


# =============================================================================
# FAKE RUNTIME
# =============================================================================

class FakeRuntime:
    """In-memory ContainerRuntimeProtocol implementation.

    Knobs:
        fail_run: name -> exception raised by run()
        fail_remove: name -> exception raised by remove()
        run_delay: name -> seconds run() sleeps before starting
        log_lines: name -> raw lines yielded by logs()
    """

    def __init__(self) -> None:
        self.containers: Dict[str, RuntimeContainer] = {}
        self.specs: Dict[str, ContainerSpec] = {}
        self.fail_run: Dict[str, Exception] = {}
        self.fail_remove: Dict[str, Exception] = {}
        self.run_delay: Dict[str, float] = {}
        self.log_lines: Dict[str, List[bytes]] = {}
        self.run_calls: List[str] = []
        self.removed: List[str] = []
        self.opened = False
        self.closed = False
        self._next_port = 49152

    def add_running(self, name: str, host_port: int, image: str = "") -> RuntimeContainer:
        container = RuntimeContainer(
            container_id=f"id-{name}",
            name=name,
            status="running",
            host_port=host_port,
            image=image,
        )
        self.containers[name] = container
        return container

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def run(self, spec: ContainerSpec) -> RuntimeContainer:
        self.run_calls.append(spec.name)
        if spec.name in self.run_delay:
            await asyncio.sleep(self.run_delay[spec.name])
        if spec.name in self.fail_run:
            raise self.fail_run[spec.name]
        self._next_port += 1
        self.specs[spec.name] = spec
        return self.add_running(spec.name, self._next_port, spec.image)

    async def find(self, name: str) -> Optional[RuntimeContainer]:
        return self.containers.get(name)

    async def remove(self, name: str) -> None:
        if name in self.fail_remove:
            raise self.fail_remove[name]
        self.containers.pop(name, None)
        self.removed.append(name)

    async def logs(self, name: str, follow: bool = True) -> AsyncIterator[bytes]:
        for line in self.log_lines.get(name, []):
            yield line


async def _always_connect(host: str, port: int) -> None:
    return None


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        config_base=tmp_path,
        context="test",
        connect_retries=3,
        connect_retry_delay=0.0,
        _env_file=None,
    )


@pytest.fixture
def instant_probe(mock_logger):
    """Probe whose first attempt always succeeds."""
    return ReadinessProbe(retries=3, delay=0.0, logger=mock_logger, connect=_always_connect)


@pytest.fixture
def orchestrator(fake_runtime, settings, mock_logger, instant_probe):
    return ContainerOrchestrator(fake_runtime, settings, logger=mock_logger, probe=instant_probe)


@pytest.fixture
def manifest(settings, mock_logger):
    return YamlManifestStore(settings.manifest_path, logger=mock_logger)


@pytest.fixture
def broker_config(settings, mock_logger):
    return BrokerConfigStore(settings.broker_config_path, logger=mock_logger)


@pytest.fixture
def reconciler(manifest, broker_config, settings, mock_logger):
    return BrokerReconciler(manifest, broker_config, broker=settings.broker_name, logger=mock_logger)


@pytest.fixture
def local_context(settings, mock_logger, manifest, broker_config, reconciler, orchestrator):
    return LocalContext(
        settings=settings,
        logger=mock_logger,
        manifest=manifest,
        broker_config=broker_config,
        reconciler=reconciler,
        orchestrator=orchestrator,
    )
