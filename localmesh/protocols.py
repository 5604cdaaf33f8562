"""Protocol interfaces for localmesh collaborators.

The orchestrator and reconciler depend only on these protocols:
- LoggerProtocol: structured logging (injected)
- ContainerRuntimeProtocol: the single long-lived container engine handle
- ManifestStoreProtocol: external manifest store
- BrokerConfigStoreProtocol: broker routing table persistence
"""

from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    AsyncIterator,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from localmesh.types import ContainerSpec, ManifestRecord, RuntimeContainer

if TYPE_CHECKING:
    from localmesh.broker.config import BrokerConfig


# =============================================================================
# LOGGING
# =============================================================================

@runtime_checkable
class LoggerProtocol(Protocol):
    """Structured logging interface."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def bind(self, **kwargs: Any) -> "LoggerProtocol": ...


# =============================================================================
# CONTAINER RUNTIME
# =============================================================================

@runtime_checkable
class ContainerRuntimeProtocol(Protocol):
    """Container engine client.

    Lifecycle: open/close (one handle per process)
    Containers: run/find/remove
    Output: logs (async line iterator)

    Implementations must be safe for concurrent use from several tasks.
    """

    async def open(self) -> None: ...
    async def close(self) -> None: ...

    async def run(self, spec: ContainerSpec) -> RuntimeContainer: ...
    async def find(self, name: str) -> Optional[RuntimeContainer]: ...
    async def remove(self, name: str) -> None: ...

    def logs(self, name: str, follow: bool = True) -> AsyncIterator[bytes]: ...


# =============================================================================
# PERSISTENCE
# =============================================================================

@runtime_checkable
class ManifestStoreProtocol(Protocol):
    """Manifest store: ordered component records keyed by (kind, name)."""

    def read(self) -> None: ...
    def write(self) -> None: ...
    def add(self, record: ManifestRecord) -> bool: ...
    def remove(self, name: str, kind: str) -> bool: ...
    def get(self, kind: str, name: str) -> Optional[ManifestRecord]: ...
    def find(self, name: str) -> Optional[ManifestRecord]: ...
    def records(self, kind: Optional[str] = None) -> List[ManifestRecord]: ...
    def snapshot(self) -> List[ManifestRecord]: ...
    def restore(self, records: List[ManifestRecord]) -> None: ...


@runtime_checkable
class BrokerConfigStoreProtocol(Protocol):
    """Broker configuration file consumed by the broker adapter."""

    def load(self) -> "BrokerConfig": ...
    def save(self, config: "BrokerConfig") -> None: ...
    def locked(self) -> AsyncContextManager[Any]: ...


__all__ = [
    "LoggerProtocol",
    "ContainerRuntimeProtocol",
    "ManifestStoreProtocol",
    "BrokerConfigStoreProtocol",
]
