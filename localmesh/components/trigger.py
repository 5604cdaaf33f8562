"""Trigger component: a manifest-only record with no capabilities."""

from localmesh.components.base import Component
from localmesh.routing.triggers import TRIGGER_API_VERSION


class TriggerComponent(Component):
    """Manifest view of a broker trigger."""

    API_VERSION = TRIGGER_API_VERSION
    CAPABILITIES = frozenset()
