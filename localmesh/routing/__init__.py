"""Trigger routing: attribute filters, triggers and the broker reconciler."""

from localmesh.routing.filters import (
    AttributeFilter,
    FilterSet,
    build_exact_filter,
    equivalent,
    matches,
)
from localmesh.routing.reconciler import BrokerReconciler, ReconcileTransaction
from localmesh.routing.triggers import (
    TRIGGER_API_VERSION,
    TRIGGER_KIND,
    Trigger,
    TriggerTarget,
    trigger_name,
)

__all__ = [
    "AttributeFilter",
    "FilterSet",
    "build_exact_filter",
    "equivalent",
    "matches",
    "BrokerReconciler",
    "ReconcileTransaction",
    "TRIGGER_API_VERSION",
    "TRIGGER_KIND",
    "Trigger",
    "TriggerTarget",
    "trigger_name",
]
