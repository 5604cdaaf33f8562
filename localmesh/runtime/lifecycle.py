"""Container lifecycle table.

Tracks one AdapterContainer per component name and enforces the state
machine:

    ABSENT -> STARTING -> (READY | UNREADY) -> STOPPED -> STARTING ...

UNREADY is terminal for a Start attempt; a new Start goes through STOPPED.
Invalid transitions are refused and logged, never raised.
"""

import threading
from typing import Dict, Optional

from localmesh.protocols import LoggerProtocol
from localmesh.types import AdapterContainer, ContainerState

# Valid state transitions
_VALID_TRANSITIONS: Dict[ContainerState, set[ContainerState]] = {
    ContainerState.ABSENT: {ContainerState.STARTING},
    ContainerState.STARTING: {
        ContainerState.READY,      # Probe answered
        ContainerState.UNREADY,    # Probe budget exhausted
        ContainerState.STOPPED,    # Run failed or cancelled
    },
    ContainerState.READY: {ContainerState.STOPPED},
    ContainerState.UNREADY: {ContainerState.STOPPED},
    ContainerState.STOPPED: {ContainerState.STARTING},
}


class ContainerLifecycle:
    """Adapter container table.

    Thread-safe; shared by every concurrent Start/Stop of one orchestrator.

    Usage:
        lifecycle = ContainerLifecycle(logger)

        container = lifecycle.begin("sockeye", image)
        ...
        lifecycle.transition("sockeye", ContainerState.READY)
    """

    def __init__(self, logger: LoggerProtocol) -> None:
        self._logger = logger.bind(component="container_lifecycle")
        self._containers: Dict[str, AdapterContainer] = {}
        self._lock = threading.RLock()

    def get(self, name: str) -> Optional[AdapterContainer]:
        with self._lock:
            return self._containers.get(name)

    def state(self, name: str) -> ContainerState:
        with self._lock:
            container = self._containers.get(name)
            return container.state if container else ContainerState.ABSENT

    def begin(self, name: str, image: str) -> AdapterContainer:
        """Enter STARTING for a new Start attempt.

        A container left READY or UNREADY by an earlier attempt is moved to
        STOPPED first (restart semantics).
        """
        with self._lock:
            container = self._containers.get(name)
            if container is None:
                container = AdapterContainer(name=name, image=image)
                self._containers[name] = container
            elif container.state in (ContainerState.READY, ContainerState.UNREADY):
                self.transition(name, ContainerState.STOPPED, reason="replaced")

            container.image = image
            container.host_port = None
            container.container_id = ""
            self.transition(name, ContainerState.STARTING)
            return container

    def adopt(self, container: AdapterContainer) -> AdapterContainer:
        """Track an already running container as READY.

        An entry this table holds as STARTING or UNREADY is left as is: such a
        container has not answered a probe, so it is returned unchanged.
        """
        with self._lock:
            existing = self._containers.get(container.name)
            if existing is None:
                container.state = ContainerState.READY
                self._containers[container.name] = container
                self._logger.debug("container_adopted", name=container.name, host_port=container.host_port)
                return container

            if existing.state in (ContainerState.STARTING, ContainerState.UNREADY):
                self._logger.warning(
                    "adopt_refused",
                    name=container.name,
                    state=existing.state.value,
                )
                return existing

            existing.host_port = container.host_port
            existing.container_id = container.container_id
            if existing.state != ContainerState.READY:
                self.transition(container.name, ContainerState.STARTING, reason="adopted")
                self.transition(container.name, ContainerState.READY, reason="adopted")
            return existing

    def transition(
        self,
        name: str,
        new_state: ContainerState,
        reason: Optional[str] = None,
    ) -> bool:
        """Transition a container to a new state."""
        with self._lock:
            container = self._containers.get(name)
            if not container:
                self._logger.warning("transition_unknown_container", name=name)
                return False

            old_state = container.state

            if new_state not in _VALID_TRANSITIONS.get(old_state, set()):
                self._logger.warning(
                    "invalid_state_transition",
                    name=name,
                    old_state=old_state.value,
                    new_state=new_state.value,
                )
                return False

            container.state = new_state

            self._logger.debug(
                "state_transition",
                name=name,
                old_state=old_state.value,
                new_state=new_state.value,
                reason=reason,
            )
            return True


__all__ = ["ContainerLifecycle"]
