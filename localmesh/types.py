"""Core localmesh types.

- ContainerState: adapter container lifecycle states
- ContainerSpec: what the runtime needs to run one adapter
- RuntimeContainer: what the runtime reports back about a container
- AdapterContainer: orchestrator's view of a live adapter
- LogEntry: one classified adapter log record
- ManifestRecord: one declarative component record
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# CONTAINER STATES
# =============================================================================

class ContainerState(str, Enum):
    """Adapter container lifecycle states.

    State transitions:
        ABSENT -> STARTING -> (READY | UNREADY) -> STOPPED
        STOPPED -> STARTING (explicit Start)
    """
    ABSENT = "absent"              # No container with this name
    STARTING = "starting"          # Created, readiness probe in progress
    READY = "ready"                # Probe answered
    UNREADY = "unready"            # Probe budget exhausted
    STOPPED = "stopped"            # Removed or exited


# =============================================================================
# RUNTIME EXCHANGE TYPES
# =============================================================================

@dataclass
class ContainerSpec:
    """Container run request handed to the runtime client."""
    name: str
    image: str
    internal_port: int = 8080
    env: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    volumes: Dict[str, str] = field(default_factory=dict)  # host path -> container path
    command: List[str] = field(default_factory=list)


@dataclass
class RuntimeContainer:
    """Container as reported by the runtime."""
    container_id: str
    name: str
    status: str                    # runtime status string, e.g. "running", "exited"
    host_port: Optional[int] = None
    image: str = ""

    @property
    def running(self) -> bool:
        return self.status == "running"


@dataclass
class AdapterContainer:
    """A live adapter bound to exactly one runnable component."""
    name: str
    image: str
    host_port: Optional[int] = None
    state: ContainerState = ContainerState.ABSENT
    container_id: str = ""
    started_at: Optional[datetime] = None

    def is_ready(self) -> bool:
        return self.state == ContainerState.READY

    def url(self, host: str) -> str:
        """Consumer URL other adapters use to reach this container."""
        return f"http://{host}:{self.host_port}"


@dataclass
class LogEntry:
    """Structured adapter log record."""
    component: str
    severity: str
    message: str

    def is_error(self) -> bool:
        return self.severity not in ("INFO", "WARNING")


# =============================================================================
# MANIFEST RECORDS
# =============================================================================

class RecordMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class ManifestRecord(BaseModel):
    """Manifest record: {apiVersion, kind, metadata.name, spec}.

    The spec payload is opaque here; only the matching component variant
    interprets it.
    """
    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(alias="apiVersion")
    kind: str
    metadata: RecordMetadata
    spec: Dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind, self.metadata.name)

    @classmethod
    def build(cls, api_version: str, kind: str, name: str, spec: Dict[str, Any]) -> "ManifestRecord":
        return cls(apiVersion=api_version, kind=kind, metadata=RecordMetadata(name=name), spec=spec)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


__all__ = [
    "ContainerState",
    "ContainerSpec",
    "RuntimeContainer",
    "AdapterContainer",
    "LogEntry",
    "RecordMetadata",
    "ManifestRecord",
]
