"""Broker configuration file model and store."""

from localmesh.broker.config import (
    BrokerConfig,
    BrokerConfigStore,
    BrokerFilter,
    BrokerTarget,
    BrokerTrigger,
)

__all__ = [
    "BrokerConfig",
    "BrokerConfigStore",
    "BrokerFilter",
    "BrokerTarget",
    "BrokerTrigger",
]
