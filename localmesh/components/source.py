"""Event sources: adapters that emit events into the broker."""

from localmesh.components.base import Capability, Component, ProducerMixin, RunnableMixin

SOURCE_API_VERSION = "sources.triggermesh.io/v1alpha1"


class Source(ProducerMixin, RunnableMixin, Component):
    """Event source, e.g. a WebhookSource or PingSource."""

    API_VERSION = SOURCE_API_VERSION
    CAPABILITIES = frozenset({Capability.PRODUCER, Capability.RUNNABLE})
