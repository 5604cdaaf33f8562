"""LocalContext - dependency container for one local setup.

The CLI is the composition root: it builds one LocalContext per command
and hands it to the command implementations, which get every collaborator
from here rather than from globals.

Usage:
    context = create_context(settings, logger=logger)
    async with context.orchestrator:
        await LocalSetup(context).start_all()
"""

from dataclasses import dataclass
from typing import Dict, Optional

from localmesh.broker.config import BrokerConfigStore
from localmesh.components import find_broker
from localmesh.errors import InfraError
from localmesh.logging import get_component_logger
from localmesh.manifest.store import YamlManifestStore
from localmesh.protocols import (
    ContainerRuntimeProtocol,
    LoggerProtocol,
    ManifestStoreProtocol,
)
from localmesh.routing.reconciler import BrokerReconciler
from localmesh.runtime.docker import DockerCliRuntime
from localmesh.runtime.orchestrator import ContainerOrchestrator
from localmesh.settings import Settings, get_settings


@dataclass
class LocalContext:
    """Collaborators shared by every command of one local setup.

    Attributes:
        settings: Local setup configuration
        logger: Root logger for the command
        manifest: Component records
        broker_config: Broker routing table file
        reconciler: Trigger reconciliation engine
        orchestrator: Adapter container orchestrator
    """

    settings: Settings
    logger: LoggerProtocol
    manifest: ManifestStoreProtocol
    broker_config: BrokerConfigStore
    reconciler: BrokerReconciler
    orchestrator: ContainerOrchestrator

    async def sink_env(self) -> Dict[str, str]:
        """Environment pointing producers at the running broker, if any."""
        broker = find_broker(self.manifest)
        if broker is None:
            return {}
        try:
            url = await self.orchestrator.endpoint(broker.name)
        except InfraError:
            self.logger.warning("broker_not_running", broker=broker.name)
            return {}
        return {"K_SINK": url}


def create_context(
    settings: Optional[Settings] = None,
    logger: Optional[LoggerProtocol] = None,
    runtime: Optional[ContainerRuntimeProtocol] = None,
) -> LocalContext:
    """Build a LocalContext from settings.

    Args:
        settings: Configuration (process-wide settings if None)
        logger: Root logger (context logger if None)
        runtime: Container runtime (docker CLI client if None)
    """
    settings = settings or get_settings()
    logger = get_component_logger("localmesh", logger).bind(context=settings.context)

    manifest = YamlManifestStore(settings.manifest_path, logger=logger)
    broker_config = BrokerConfigStore(settings.broker_config_path, logger=logger)
    reconciler = BrokerReconciler(
        manifest,
        broker_config,
        broker=settings.broker_name,
        logger=logger,
    )
    runtime = runtime or DockerCliRuntime(
        binary=settings.docker_binary,
        concurrency=settings.runtime_concurrency,
        logger=logger,
    )
    orchestrator = ContainerOrchestrator(runtime, settings, logger=logger)

    return LocalContext(
        settings=settings,
        logger=logger,
        manifest=manifest,
        broker_config=broker_config,
        reconciler=reconciler,
        orchestrator=orchestrator,
    )


__all__ = ["LocalContext", "create_context"]
