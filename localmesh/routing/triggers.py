"""Triggers: named routes from the broker to one consumer.

A Trigger lives twice: as a manifest record (kind Trigger) and as an entry
of the broker configuration file. Both projections are built here.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict

from localmesh.broker.config import BrokerFilter, BrokerTarget, BrokerTrigger
from localmesh.errors import ManifestError, SpecError
from localmesh.routing.filters import FilterSet, equivalent
from localmesh.types import ManifestRecord

TRIGGER_API_VERSION = "eventing.triggermesh.io/v1alpha1"
TRIGGER_KIND = "Trigger"


@dataclass(frozen=True)
class TriggerTarget:
    """Consumer reference: component name plus reachable URL."""
    name: str
    url: str = ""


@dataclass
class Trigger:
    """Route from the broker to `target`, scoped by `filters`."""
    name: str
    filters: FilterSet = field(default_factory=FilterSet)
    target: TriggerTarget = field(default_factory=lambda: TriggerTarget(name=""))
    broker: str = ""

    def same_route(self, filters: FilterSet, target_name: str) -> bool:
        return self.target.name == target_name and equivalent(self.filters, filters)

    def set_target(self, target: TriggerTarget) -> None:
        self.target = target

    # =========================================================================
    # Projections
    # =========================================================================

    def to_record(self) -> ManifestRecord:
        return ManifestRecord.build(
            TRIGGER_API_VERSION,
            TRIGGER_KIND,
            self.name,
            {
                "broker": self.broker,
                "filters": self.filters.to_dicts(),
                "target": {"name": self.target.name, "url": self.target.url},
            },
        )

    @classmethod
    def from_record(cls, record: ManifestRecord) -> "Trigger":
        if record.kind != TRIGGER_KIND:
            raise ManifestError(f"record {record.name!r} is a {record.kind}, not a Trigger")
        spec = record.spec
        target = spec.get("target") or {}
        if not isinstance(target, dict) or not target.get("name"):
            raise SpecError(f"trigger {record.name!r} has no target")
        return cls(
            name=record.name,
            filters=FilterSet.from_dicts(spec.get("filters") or []),
            target=TriggerTarget(name=str(target["name"]), url=str(target.get("url", ""))),
            broker=str(spec.get("broker", "")),
        )

    def to_broker_entry(self) -> BrokerTrigger:
        return BrokerTrigger(
            name=self.name,
            filters=[BrokerFilter(key=f.key, value=f.value) for f in self.filters],
            target=BrokerTarget(name=self.target.name, url=self.target.url),
        )

    @classmethod
    def from_broker_entry(cls, entry: BrokerTrigger, broker: str = "") -> "Trigger":
        return cls(
            name=entry.name,
            filters=FilterSet.from_dicts(f.model_dump() for f in entry.filters),
            target=TriggerTarget(name=entry.target.name, url=entry.target.url),
            broker=broker,
        )


def trigger_name(broker: str, filters: FilterSet, target_name: str) -> str:
    """Deterministic name for an unnamed route.

    Order of filters does not change the name, so equivalent routes always
    collide on the same name.
    """
    canonical: Dict[str, Any] = {
        "filters": sorted(filters.pairs()),
        "target": target_name,
    }
    digest = hashlib.sha256(json.dumps(canonical, sort_keys=True).encode()).hexdigest()[:8]
    return f"{broker}-trigger-{digest}"


__all__ = [
    "TRIGGER_API_VERSION",
    "TRIGGER_KIND",
    "TriggerTarget",
    "Trigger",
    "trigger_name",
]
