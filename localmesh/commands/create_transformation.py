"""Create transformation command.

Adds a transformation to the local setup and wires it in:

1. Resolve the target (existing, consumer, running) and the sources
   (existing, producers) before anything changes.
2. Store the transformation in the manifest and start its adapter.
3. With a target: route the transformation's output type to the target.
4. For each --eventTypes value, then each --source value: route the
   matching events to the transformation and drop the target's catch-all
   trigger for the same single filter.
5. With neither filter given: every trigger that delivered to the target
   now delivers to the transformation instead.

Routing for each filter value runs in its own reconciliation transaction;
a failure stops the loop and names the failing filter, while routes for
earlier values stay applied.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

import yaml

from localmesh.components import Transformation, default_output_type, get_component
from localmesh.context import LocalContext
from localmesh.errors import LocalMeshError, RouteError, SpecError
from localmesh.logging import get_component_logger
from localmesh.routing.filters import FilterSet, build_exact_filter
from localmesh.routing.triggers import Trigger, TriggerTarget
from localmesh.types import AdapterContainer

EXAMPLE_TRANSFORMATION = """context:
- operation: add
  paths:
  - key: source
    value: some-test-source
data:
- operation: store
  paths:
  - key: $foo
    value: Body
- operation: delete
  paths:
  - key:
- operation: add
  paths:
  - key: foo
    value: $foo"""


# =============================================================================
# SPEC INPUT
# =============================================================================

def read_transformation_input(stdin: TextIO, stdout: TextIO) -> str:
    """Interactively read a transformation spec.

    Lines are read until the first empty one. Empty input falls back to the
    example transformation.
    """
    stdout.write(f"Transformation example:\n\n{EXAMPLE_TRANSFORMATION}\n\n")
    stdout.write("Insert transformation below\nPress Enter key twice to finish:\n")
    stdout.flush()

    lines: List[str] = []
    for line in stdin:
        line = line.rstrip("\r\n")
        if not line:
            break
        lines.append(line)

    text = "\n".join(lines).strip("\n")
    if not text.strip():
        return EXAMPLE_TRANSFORMATION
    return text


def load_transformation_file(path: Path) -> str:
    try:
        return Path(path).read_text()
    except OSError as e:
        raise SpecError(f"spec file read: {e}") from e


def parse_transformation_spec(text: str) -> Dict[str, Any]:
    """Decode a YAML transformation spec into a mapping."""
    try:
        spec = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecError(f"decode spec: {e}") from e
    if spec is None:
        return {}
    if not isinstance(spec, dict):
        raise SpecError("decode spec: transformation spec must be a mapping")
    return spec


# =============================================================================
# CREATE
# =============================================================================

@dataclass
class CreateResult:
    """What a create transformation call changed."""
    name: str
    event_type: str
    container: AdapterContainer
    restarted: bool = False
    target: Optional[str] = None
    target_trigger: Optional[Trigger] = None
    routes: List[Trigger] = field(default_factory=list)
    superseded: List[Trigger] = field(default_factory=list)
    retargeted: List[Trigger] = field(default_factory=list)


class TransformationCreator:
    """Implements `create transformation` against a LocalContext."""

    def __init__(self, context: LocalContext) -> None:
        self._context = context
        self._manifest = context.manifest
        self._reconciler = context.reconciler
        self._orchestrator = context.orchestrator
        self._logger = get_component_logger("create_transformation", context.logger)

    async def create(
        self,
        name: str,
        spec: Dict[str, Any],
        target: Optional[str] = None,
        sources: Sequence[str] = (),
        event_types: Sequence[str] = (),
    ) -> CreateResult:
        """Create (or update) a transformation and reconcile routing.

        Raises:
            ManifestError: target or a source is not in the manifest
            NotConsumerError: target cannot receive events
            NotProducerError: a source cannot emit events
            InfraError: target not running, or the runtime failed
            UnreadyError: transformation adapter never became ready
            RouteError: routing for one filter value failed
        """
        self._manifest.read()

        target_url = None
        if target:
            get_component(self._manifest, target).as_consumer()
            target_url = await self._orchestrator.endpoint(target)

        source_values = [
            get_component(self._manifest, source).as_producer().event_source()
            for source in sources
        ]

        transformation = Transformation(name, spec)
        declared = transformation.event_types()
        if declared:
            event_type = declared[0]
        else:
            event_type = default_output_type(name)
            transformation.set_event_type(event_type)

        self._logger.info("updating_manifest", transformation=name)
        restart = self._manifest.add(transformation.to_record())

        self._logger.info("starting_container", transformation=name, restart=restart)
        container = await self._orchestrator.start(
            transformation,
            restart_existing=restart,
            env=await self._context.sink_env(),
        )

        result = CreateResult(
            name=name,
            event_type=event_type,
            container=container,
            restarted=restart,
            target=target,
        )
        consumer = TriggerTarget(name=name, url=container.url(self._context.settings.adapter_host))

        if restart:
            # Replaced adapter listens on a new host port
            async with self._reconciler.transaction() as txn:
                stale = [t for t in txn.target_triggers(name) if t.target.url != consumer.url]
                txn.retarget(stale, consumer)

        snapshot: List[Trigger] = []
        if target:
            output = FilterSet.of(build_exact_filter("type", event_type))
            async with self._reconciler.transaction() as txn:
                snapshot = [
                    t for t in txn.target_triggers(target)
                    if not t.same_route(output, target)
                ]
                result.target_trigger = txn.route(TriggerTarget(name=target, url=target_url), output)

        for key, values in (("type", event_types), ("source", source_values)):
            for value in values:
                try:
                    filters = FilterSet.of(build_exact_filter(key, value))
                    async with self._reconciler.transaction() as txn:
                        result.routes.append(txn.route(consumer, filters))
                        result.superseded.extend(txn.supersede(snapshot, filters))
                except LocalMeshError as e:
                    raise RouteError(key, value, e) from e

        if not event_types and not source_values and snapshot:
            async with self._reconciler.transaction() as txn:
                result.retargeted = txn.retarget(snapshot, consumer)

        self._logger.info(
            "transformation_created",
            transformation=name,
            event_type=event_type,
            routes=len(result.routes),
            superseded=len(result.superseded),
            retargeted=len(result.retargeted),
        )
        return result


__all__ = [
    "EXAMPLE_TRANSFORMATION",
    "CreateResult",
    "TransformationCreator",
    "load_transformation_file",
    "parse_transformation_spec",
    "read_transformation_input",
]
