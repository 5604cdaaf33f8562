"""localmesh - local event mesh simulator.

Materializes declared event-flow components (sources, transformations,
targets, a broker and its triggers) as local adapter containers and keeps
the broker's routing table consistent as components come and go.

Packages:
- components: component model and capabilities
- routing: filters, triggers and the broker reconciler
- runtime: container lifecycle, readiness probe and orchestrator
- commands: command implementations used by the CLI
"""

from localmesh.errors import (
    BatchError,
    InfraError,
    LocalMeshError,
    ManifestError,
    NotConsumerError,
    NotProducerError,
    NotRunnableError,
    RouteConflictError,
    RouteError,
    SpecError,
    UnreadyError,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "LocalMeshError",
    "InfraError",
    "ManifestError",
    "SpecError",
    "NotRunnableError",
    "UnreadyError",
    "RouteConflictError",
    "NotConsumerError",
    "NotProducerError",
    "RouteError",
    "BatchError",
]
