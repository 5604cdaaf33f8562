"""Component base class and capability mixins.

Each variant declares its capability set as a class attribute; the set is
fixed when the component is constructed. Callers ask for a capability with
as_producer()/as_consumer()/as_runnable() and get a typed error when the
component lacks it.
"""

import copy
import json
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional

from localmesh.errors import NotConsumerError, NotProducerError, NotRunnableError, SpecError
from localmesh.types import ContainerSpec, ManifestRecord

if TYPE_CHECKING:
    from localmesh.settings import Settings


class Capability(str, Enum):
    """What a component can do in a local setup."""
    PRODUCER = "producer"          # Emits typed events
    CONSUMER = "consumer"          # Accepts events on a reachable port
    RUNNABLE = "runnable"          # Maps to a container image


class Component:
    """A named, typed building block of a local setup."""

    API_VERSION: str = ""
    CAPABILITIES: FrozenSet[Capability] = frozenset()

    def __init__(
        self,
        name: str,
        kind: str,
        spec: Optional[Dict[str, Any]] = None,
        api_version: Optional[str] = None,
    ) -> None:
        if not name:
            raise SpecError(f"{kind} name must not be empty")
        self._name = name
        self._kind = kind
        self._spec: Dict[str, Any] = copy.deepcopy(spec) if spec else {}
        self._api_version = api_version or self.API_VERSION
        self._capabilities = frozenset(self.CAPABILITIES)

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def spec(self) -> Dict[str, Any]:
        return self._spec

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return self._capabilities

    def has(self, capability: Capability) -> bool:
        return capability in self._capabilities

    def as_producer(self) -> "ProducerMixin":
        if not self.has(Capability.PRODUCER):
            raise NotProducerError(self._name)
        return self  # type: ignore[return-value]

    def as_consumer(self) -> "ConsumerMixin":
        if not self.has(Capability.CONSUMER):
            raise NotConsumerError(self._name)
        return self  # type: ignore[return-value]

    def as_runnable(self) -> "RunnableMixin":
        if not self.has(Capability.RUNNABLE):
            raise NotRunnableError(self._name, self._kind)
        return self  # type: ignore[return-value]

    def to_record(self) -> ManifestRecord:
        return ManifestRecord.build(self._api_version, self._kind, self._name, copy.deepcopy(self._spec))

    def __repr__(self) -> str:
        caps = ",".join(sorted(c.value for c in self._capabilities))
        return f"{type(self).__name__}(name={self._name}, kind={self._kind}, capabilities={caps})"


class ProducerMixin:
    """Event producer. Variants override event type storage as needed."""

    _name: str
    _spec: Dict[str, Any]

    def event_types(self) -> List[str]:
        types = self._spec.get("eventTypes") or []
        if not isinstance(types, list):
            raise SpecError(f"{self._name}: eventTypes must be a list")
        return [str(t) for t in types]

    def set_event_type(self, event_type: str) -> None:
        self._spec["eventTypes"] = [event_type]

    def event_source(self) -> str:
        """Value of the CloudEvents `source` attribute on emitted events."""
        return str(self._spec.get("eventSource") or self._name)


class ConsumerMixin:
    """Event consumer."""

    _spec: Dict[str, Any]

    def consumed_event_types(self) -> List[str]:
        types = self._spec.get("eventTypes") or []
        return [str(t) for t in types]


class RunnableMixin:
    """Component backed by an adapter container."""

    _name: str
    _kind: str
    _spec: Dict[str, Any]

    def image_name(self) -> str:
        return f"{self._kind.lower()}-adapter"

    def image(self, registry: str, version: str) -> str:
        return f"{registry}/{self.image_name()}:{version}"

    def container_env(self) -> Dict[str, str]:
        return {"COMPONENT_SPEC": json.dumps(self._spec, sort_keys=True)}

    def container_spec(
        self,
        settings: "Settings",
        env: Optional[Dict[str, str]] = None,
    ) -> ContainerSpec:
        merged = {"COMPONENT_NAME": self._name, **self.container_env(), **(env or {})}
        return ContainerSpec(
            name=self._name,
            image=self.image(settings.registry, settings.version),
            internal_port=settings.adapter_port,
            env=merged,
            labels={
                "localmesh.context": settings.context,
                "localmesh.kind": self._kind,
            },
        )


__all__ = [
    "Capability",
    "Component",
    "ProducerMixin",
    "ConsumerMixin",
    "RunnableMixin",
]
