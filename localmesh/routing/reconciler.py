"""Broker Reconciler - keeps trigger routing consistent.

Translates component lifecycle changes into trigger mutations:
- route: create (or find) the trigger for a (filters, target) pair
- supersede: drop catch-all triggers replaced by a dedicated route
- retarget: point existing triggers at a new consumer
- remove_target: drop every trigger aimed at a removed component

All mutations happen inside a transaction. The transaction holds the broker
configuration's exclusive write scope, computes the full mutation set in
memory, then writes the broker configuration followed by the manifest. If
the manifest write fails, the previous broker configuration is restored.

Invariant: no two triggers of one broker hold equivalent filters and the
same target.

Usage:
    reconciler = BrokerReconciler(manifest, config_store, broker="local", logger=logger)

    async with reconciler.transaction() as txn:
        existing = txn.target_triggers("sockeye")
        txn.route(TriggerTarget("tr", url), FilterSet.of(build_exact_filter("type", "foo")))
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set

from localmesh.broker.config import BrokerConfig
from localmesh.errors import RouteConflictError
from localmesh.logging import get_component_logger
from localmesh.protocols import BrokerConfigStoreProtocol, LoggerProtocol, ManifestStoreProtocol
from localmesh.routing.filters import FilterSet, equivalent
from localmesh.routing.triggers import TRIGGER_KIND, Trigger, TriggerTarget, trigger_name


class ReconcileTransaction:
    """In-memory trigger set for one reconciliation."""

    def __init__(
        self,
        triggers: Iterable[Trigger],
        broker: str,
        logger: LoggerProtocol,
    ) -> None:
        self._broker = broker
        self._logger = logger
        self._triggers: Dict[str, Trigger] = {}
        self._changed: Dict[str, Trigger] = {}
        self._removed: Set[str] = set()

        for trigger in triggers:
            self._check_unique(trigger.name, trigger.filters, trigger.target.name)
            self._triggers[trigger.name] = trigger

    def _check_unique(self, name: str, filters: FilterSet, target_name: str) -> None:
        for other in self._triggers.values():
            if other.name != name and other.same_route(filters, target_name):
                raise RouteConflictError(name, other.name, target_name)

    # =========================================================================
    # Queries
    # =========================================================================

    def triggers(self) -> List[Trigger]:
        return list(self._triggers.values())

    def get(self, name: str) -> Optional[Trigger]:
        return self._triggers.get(name)

    def target_triggers(self, target_name: str) -> List[Trigger]:
        return [t for t in self._triggers.values() if t.target.name == target_name]

    @property
    def changed(self) -> List[Trigger]:
        return list(self._changed.values())

    @property
    def removed(self) -> List[str]:
        return sorted(self._removed)

    # =========================================================================
    # Mutations
    # =========================================================================

    def route(
        self,
        target: TriggerTarget,
        filters: FilterSet,
        name: Optional[str] = None,
    ) -> Trigger:
        """Create or update the trigger routing `filters` to `target`.

        Idempotent: an existing trigger with an equivalent route is returned
        instead of creating a second one.
        """
        for trigger in self._triggers.values():
            if not trigger.same_route(filters, target.name):
                continue
            if name and trigger.name != name:
                raise RouteConflictError(name, trigger.name, target.name)
            if trigger.target.url != target.url:
                trigger.set_target(target)
                self._mark_changed(trigger)
                self._logger.info("trigger_updated", trigger=trigger.name, target=target.name)
            return trigger

        name = name or trigger_name(self._broker, filters, target.name)
        existing = self._triggers.get(name)
        if existing is not None:
            existing.filters = filters
            existing.set_target(target)
            self._mark_changed(existing)
            self._logger.info("trigger_updated", trigger=name, target=target.name, filters=str(filters))
            return existing

        trigger = Trigger(name=name, filters=filters, target=target, broker=self._broker)
        self._triggers[name] = trigger
        self._mark_changed(trigger)
        self._logger.info("trigger_created", trigger=name, target=target.name, filters=str(filters))
        return trigger

    def supersede(self, candidates: Iterable[Trigger], filters: FilterSet) -> List[Trigger]:
        """Remove candidates whose single-filter set is equivalent to `filters`."""
        removed = []
        for candidate in candidates:
            current = self._triggers.get(candidate.name)
            if current is None or len(current.filters) != 1:
                continue
            if not equivalent(current.filters, filters):
                continue
            self.remove(current.name)
            removed.append(current)
            self._logger.info(
                "trigger_superseded",
                trigger=current.name,
                target=current.target.name,
                filters=str(filters),
            )
        return removed

    def retarget(self, triggers: Iterable[Trigger], target: TriggerTarget) -> List[Trigger]:
        """Rewrite triggers in place to point at `target`."""
        updated = []
        for trigger in triggers:
            current = self._triggers.get(trigger.name)
            if current is None:
                continue
            self._check_unique(current.name, current.filters, target.name)
            old_target = current.target.name
            current.set_target(target)
            self._mark_changed(current)
            updated.append(current)
            self._logger.info(
                "trigger_retargeted",
                trigger=current.name,
                old_target=old_target,
                new_target=target.name,
            )
        return updated

    def remove(self, name: str) -> bool:
        if self._triggers.pop(name, None) is None:
            return False
        self._changed.pop(name, None)
        self._removed.add(name)
        return True

    def remove_target(self, target_name: str) -> List[Trigger]:
        """Remove every trigger aimed at `target_name`."""
        removed = self.target_triggers(target_name)
        for trigger in removed:
            self.remove(trigger.name)
            self._logger.info("trigger_removed", trigger=trigger.name, target=target_name)
        return removed

    def _mark_changed(self, trigger: Trigger) -> None:
        self._removed.discard(trigger.name)
        self._changed[trigger.name] = trigger

    def broker_config(self) -> BrokerConfig:
        return BrokerConfig(triggers=[t.to_broker_entry() for t in self._triggers.values()])


class BrokerReconciler:
    """Applies reconciliation transactions to manifest and broker config."""

    def __init__(
        self,
        manifest: ManifestStoreProtocol,
        config_store: BrokerConfigStoreProtocol,
        broker: str,
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        self._manifest = manifest
        self._config_store = config_store
        self._broker = broker
        self._logger = get_component_logger("reconciler", logger).bind(broker=broker)

    def _load_triggers(self) -> List[Trigger]:
        triggers = []
        for record in self._manifest.records(TRIGGER_KIND):
            trigger = Trigger.from_record(record)
            if trigger.broker and trigger.broker != self._broker:
                continue
            triggers.append(trigger)
        return triggers

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ReconcileTransaction]:
        """Exclusive reconciliation scope.

        Changes are committed only when the body completes without error.
        """
        async with self._config_store.locked():
            self._manifest.read()
            previous = self._config_store.load()
            # Existing broker config must already honour the invariant
            ReconcileTransaction(
                (Trigger.from_broker_entry(e, self._broker) for e in previous.triggers),
                self._broker,
                self._logger,
            )
            txn = ReconcileTransaction(self._load_triggers(), self._broker, self._logger)

            yield txn

            self._commit(txn, previous)

    def _commit(self, txn: ReconcileTransaction, previous: BrokerConfig) -> None:
        if not txn.changed and not txn.removed:
            return

        self._config_store.save(txn.broker_config())

        snapshot = self._manifest.snapshot()
        try:
            for name in txn.removed:
                self._manifest.remove(name, TRIGGER_KIND)
            for trigger in txn.changed:
                self._manifest.add(trigger.to_record())
        except Exception:
            self._logger.error("reconcile_rollback", removed=txn.removed, changed=[t.name for t in txn.changed])
            try:
                self._config_store.save(previous)
            finally:
                self._manifest.restore(snapshot)
                self._manifest.write()
            raise

        self._logger.debug(
            "reconcile_committed",
            changed=[t.name for t in txn.changed],
            removed=txn.removed,
        )

    # =========================================================================
    # Single-mutation helpers
    # =========================================================================

    async def route(
        self,
        target: TriggerTarget,
        filters: FilterSet,
        name: Optional[str] = None,
    ) -> Trigger:
        async with self.transaction() as txn:
            return txn.route(target, filters, name)

    async def target_triggers(self, target_name: str) -> List[Trigger]:
        async with self.transaction() as txn:
            return txn.target_triggers(target_name)

    async def remove_target(self, target_name: str) -> List[Trigger]:
        async with self.transaction() as txn:
            return txn.remove_target(target_name)

    async def sync(self) -> BrokerConfig:
        """Rewrite the broker configuration from the manifest's triggers."""
        async with self.transaction() as txn:
            config = txn.broker_config()
            self._config_store.save(config)
            return config


__all__ = ["ReconcileTransaction", "BrokerReconciler"]
