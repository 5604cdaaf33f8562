"""Component model.

Variants and their capabilities:
    Source          producer, runnable
    Transformation  producer, consumer, runnable
    Target          consumer, runnable
    Broker          consumer, runnable
    Trigger         (none)
"""

from typing import Optional

from localmesh.components.base import (
    Capability,
    Component,
    ConsumerMixin,
    ProducerMixin,
    RunnableMixin,
)
from localmesh.components.broker import Broker
from localmesh.components.source import Source
from localmesh.components.target import Target
from localmesh.components.transformation import (
    TRANSFORMATION_KIND,
    Transformation,
    default_output_type,
)
from localmesh.components.trigger import TriggerComponent
from localmesh.errors import ManifestError, SpecError
from localmesh.protocols import ManifestStoreProtocol
from localmesh.routing.triggers import TRIGGER_KIND
from localmesh.types import ManifestRecord


def build_component(record: ManifestRecord) -> Component:
    """Materialize the component variant a manifest record describes."""
    kind = record.kind
    if kind == TRANSFORMATION_KIND:
        return Transformation(record.name, record.spec, record.api_version)
    if kind == TRIGGER_KIND:
        return TriggerComponent(record.name, kind, record.spec, record.api_version)
    if kind.endswith("Broker") or kind == "Broker":
        return Broker(record.name, kind, record.spec, record.api_version)
    if kind.endswith("Source"):
        return Source(record.name, kind, record.spec, record.api_version)
    if kind.endswith("Target"):
        return Target(record.name, kind, record.spec, record.api_version)
    raise SpecError(f"unknown component kind {kind!r} for {record.name!r}")


def get_component(manifest: ManifestStoreProtocol, name: str) -> Component:
    """Look up a component by name only."""
    record = manifest.find(name)
    if record is None:
        raise ManifestError(f"component {name!r} not found in manifest")
    return build_component(record)


def find_broker(manifest: ManifestStoreProtocol) -> Optional[Broker]:
    for record in manifest.records():
        component = build_component(record)
        if isinstance(component, Broker):
            return component
    return None


__all__ = [
    "Capability",
    "Component",
    "ConsumerMixin",
    "ProducerMixin",
    "RunnableMixin",
    "Broker",
    "Source",
    "Target",
    "Transformation",
    "TriggerComponent",
    "default_output_type",
    "build_component",
    "get_component",
    "find_broker",
]
