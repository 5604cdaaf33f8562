"""Broker component.

The broker runs its own image rather than a component adapter: it reads
the routing table from the broker configuration file, which is mounted
into the container.
"""

from typing import TYPE_CHECKING, Dict, List, Optional

from localmesh.components.base import Capability, Component, ConsumerMixin, RunnableMixin
from localmesh.types import ContainerSpec

if TYPE_CHECKING:
    from localmesh.settings import Settings

BROKER_API_VERSION = "eventing.triggermesh.io/v1alpha1"
BROKER_CONFIG_MOUNT = "/etc/triggermesh/broker.conf"


class Broker(ConsumerMixin, RunnableMixin, Component):
    """Local in-memory broker."""

    API_VERSION = BROKER_API_VERSION
    CAPABILITIES = frozenset({Capability.CONSUMER, Capability.RUNNABLE})

    def image_name(self) -> str:
        return "memory-broker"

    def consumed_event_types(self) -> List[str]:
        return []

    def container_spec(
        self,
        settings: "Settings",
        env: Optional[Dict[str, str]] = None,
    ) -> ContainerSpec:
        spec = super().container_spec(settings, env)
        spec.volumes[str(settings.broker_config_path)] = BROKER_CONFIG_MOUNT
        spec.command = ["start", "--broker-config-path", BROKER_CONFIG_MOUNT]
        return spec
