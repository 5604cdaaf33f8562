"""Error taxonomy for localmesh.

Every core operation raises one of these to its caller; nothing in the
core terminates the process. The CLI is the only place that turns an
error into an exit code.

- InfraError: container engine unreachable or misconfigured
- ManifestError: record not found, decode failure
- SpecError: malformed component specification
- UnreadyError: adapter never answered the readiness probe
- RouteConflictError: duplicate-route invariant violated
- NotConsumerError / NotProducerError: capability mismatch
"""

from typing import Dict, List, Optional, Sequence


class LocalMeshError(Exception):
    """Base exception for localmesh."""
    pass


class InfraError(LocalMeshError):
    """Container runtime is unreachable, misconfigured or a call failed."""
    pass


class ManifestError(LocalMeshError):
    """Manifest record missing or manifest document cannot be decoded."""
    pass


class SpecError(LocalMeshError):
    """Component specification is malformed."""
    pass


class NotRunnableError(SpecError):
    """Component has no container image."""

    def __init__(self, name: str, kind: str):
        self.name = name
        self.kind = kind
        super().__init__(f"{kind} {name!r} is not runnable")


class UnreadyError(LocalMeshError):
    """Adapter did not answer the readiness probe within the retry budget."""

    def __init__(self, name: str, attempts: int, address: str):
        self.name = name
        self.attempts = attempts
        self.address = address
        super().__init__(
            f"adapter {name!r} is not ready: no answer on {address} "
            f"after {attempts} attempts"
        )


class RouteConflictError(LocalMeshError):
    """Two triggers would hold equivalent filters and the same target."""

    def __init__(self, trigger: str, existing: str, target: str):
        self.trigger = trigger
        self.existing = existing
        self.target = target
        super().__init__(
            f"trigger {trigger!r} duplicates route of {existing!r} to {target!r}"
        )


class NotConsumerError(LocalMeshError):
    """Named component cannot be used as an event target."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name!r} is not an event consumer")


class NotProducerError(LocalMeshError):
    """Named component cannot be used as an event source."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name!r} is not an event producer")


class RouteError(LocalMeshError):
    """Routing for one filter value failed during a multi-filter creation.

    Routes applied for earlier filter values stay in effect.
    """

    def __init__(self, key: str, value: str, cause: Exception):
        self.key = key
        self.value = value
        self.cause = cause
        super().__init__(f"route {key}={value}: {cause}")


class BatchError(LocalMeshError):
    """One or more components failed during a concurrent batch operation."""

    def __init__(
        self,
        operation: str,
        failures: Dict[str, Exception],
        cancelled: Optional[Sequence[str]] = None,
    ):
        self.operation = operation
        self.failures = dict(failures)
        self.cancelled: List[str] = list(cancelled or [])
        parts = [f"{name}: {err}" for name, err in self.failures.items()]
        message = f"{operation} failed for {len(self.failures)} component(s): " + "; ".join(parts)
        if self.cancelled:
            message += f" (cancelled: {', '.join(self.cancelled)})"
        super().__init__(message)


__all__ = [
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
