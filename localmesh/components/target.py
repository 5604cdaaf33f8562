"""Event targets: adapters that deliver events to external systems."""

from localmesh.components.base import Capability, Component, ConsumerMixin, RunnableMixin

TARGET_API_VERSION = "targets.triggermesh.io/v1alpha1"


class Target(ConsumerMixin, RunnableMixin, Component):
    """Event target, e.g. a CloudEventsTarget."""

    API_VERSION = TARGET_API_VERSION
    CAPABILITIES = frozenset({Capability.CONSUMER, Capability.RUNNABLE})
