"""Transformation component.

A transformation consumes events, rewrites them with declarative
operations and emits the result back into the broker. Its spec has two
operation lists:

    context:                # CloudEvents attributes
    - operation: add
      paths:
      - key: type
        value: my-transformation.output
    data:                   # payload
    - operation: store
      paths:
      - key: $foo
        value: Body

The emitted event type is whatever the `add` operations on the `type`
attribute set.
"""

import json
from typing import Any, Dict, List, Optional

from localmesh.components.base import (
    Capability,
    Component,
    ConsumerMixin,
    ProducerMixin,
    RunnableMixin,
)
from localmesh.errors import SpecError

TRANSFORMATION_API_VERSION = "flow.triggermesh.io/v1alpha1"
TRANSFORMATION_KIND = "Transformation"


def default_output_type(name: str) -> str:
    """Event type a transformation emits when it declares none."""
    return f"{name}.output"


class Transformation(ProducerMixin, ConsumerMixin, RunnableMixin, Component):
    """Bumblebee-style event transformation."""

    API_VERSION = TRANSFORMATION_API_VERSION
    CAPABILITIES = frozenset({Capability.PRODUCER, Capability.CONSUMER, Capability.RUNNABLE})

    def __init__(
        self,
        name: str,
        spec: Optional[Dict[str, Any]] = None,
        api_version: Optional[str] = None,
    ) -> None:
        super().__init__(name, TRANSFORMATION_KIND, spec, api_version)
        for section in ("context", "data"):
            ops = self._spec.get(section)
            if ops is not None and not isinstance(ops, list):
                raise SpecError(f"transformation {name!r}: {section} must be a list of operations")

    def _context_ops(self) -> List[Dict[str, Any]]:
        return self._spec.setdefault("context", [])

    def event_types(self) -> List[str]:
        types = []
        for op in self._spec.get("context") or []:
            if not isinstance(op, dict) or op.get("operation") != "add":
                continue
            for path in op.get("paths") or []:
                if isinstance(path, dict) and path.get("key") == "type" and path.get("value"):
                    types.append(str(path["value"]))
        return types

    def set_event_type(self, event_type: str) -> None:
        self.set_event_attributes({"type": event_type})

    def set_event_attributes(self, attributes: Dict[str, str]) -> None:
        """Append an `add` context operation setting each attribute."""
        self._context_ops().append({
            "operation": "add",
            "paths": [{"key": k, "value": v} for k, v in attributes.items()],
        })

    def consumed_event_types(self) -> List[str]:
        return []

    def image_name(self) -> str:
        return "transformation-adapter"

    def container_env(self) -> Dict[str, str]:
        return {
            "TRANSFORMATION_CONTEXT": json.dumps(self._spec.get("context") or []),
            "TRANSFORMATION_DATA": json.dumps(self._spec.get("data") or []),
        }


__all__ = [
    "TRANSFORMATION_API_VERSION",
    "TRANSFORMATION_KIND",
    "Transformation",
    "default_output_type",
]
