"""Unit tests for the manifest store and the broker configuration store."""

import asyncio

import pytest

from localmesh.broker.config import (
    BrokerConfig,
    BrokerConfigStore,
    BrokerFilter,
    BrokerTarget,
    BrokerTrigger,
)
from localmesh.components import Source, Target
from localmesh.errors import ManifestError
from localmesh.manifest.store import YamlManifestStore
from localmesh.protocols import BrokerConfigStoreProtocol
from localmesh.types import ManifestRecord


def broker_trigger(name, value="foo", target="sockeye"):
    return BrokerTrigger(
        name=name,
        filters=[BrokerFilter(key="type", value=value)],
        target=BrokerTarget(name=target, url="http://host.docker.internal:49153"),
    )


# =============================================================================
# MANIFEST
# =============================================================================

class TestManifestStore:
    """Test YAML manifest persistence."""

    def test_missing_file_is_empty(self, manifest):
        manifest.read()
        assert manifest.records() == []

    def test_add_reports_existing_record(self, manifest):
        manifest.read()
        record = Source("webhook", "WebhookSource").to_record()

        assert manifest.add(record) is False
        assert manifest.add(record) is True
        assert len(manifest.records()) == 1

    def test_records_persist_in_order(self, manifest, mock_logger):
        manifest.read()
        manifest.add(Source("webhook", "WebhookSource").to_record())
        manifest.add(Target("sockeye", "CloudEventsTarget").to_record())

        reopened = YamlManifestStore(manifest.path, logger=mock_logger)
        reopened.read()
        assert [r.name for r in reopened.records()] == ["webhook", "sockeye"]
        assert reopened.records()[0].api_version == "sources.triggermesh.io/v1alpha1"

    def test_duplicate_records_rejected(self, manifest):
        document = "apiVersion: v1\nkind: WebhookSource\nmetadata:\n  name: webhook\n"
        manifest.path.parent.mkdir(parents=True, exist_ok=True)
        manifest.path.write_text(f"{document}---\n{document}")

        with pytest.raises(ManifestError, match="duplicate"):
            manifest.read()

    def test_invalid_document_rejected(self, manifest):
        manifest.path.parent.mkdir(parents=True, exist_ok=True)
        manifest.path.write_text("kind: WebhookSource\n")

        with pytest.raises(ManifestError):
            manifest.read()

    def test_find_skips_triggers(self, manifest):
        manifest.read()
        manifest.add(ManifestRecord.build("v1", "Trigger", "sockeye", {"target": {"name": "x"}}))
        assert manifest.find("sockeye") is None
        assert manifest.get("Trigger", "sockeye") is not None

    def test_remove(self, manifest):
        manifest.read()
        manifest.add(Source("webhook", "WebhookSource").to_record())

        assert manifest.remove("webhook", "WebhookSource") is True
        assert manifest.remove("webhook", "WebhookSource") is False
        assert manifest.records() == []

    def test_snapshot_is_independent(self, manifest):
        manifest.read()
        manifest.add(Source("webhook", "WebhookSource", {"eventTypes": ["a"]}).to_record())

        snapshot = manifest.snapshot()
        manifest.records()[0].spec["eventTypes"].append("b")
        manifest.restore(snapshot)

        assert manifest.records()[0].spec["eventTypes"] == ["a"]


# =============================================================================
# BROKER CONFIG
# =============================================================================

class TestBrokerConfig:
    """Test the routing table model."""

    def test_store_satisfies_protocol(self, broker_config):
        assert isinstance(broker_config, BrokerConfigStoreProtocol)


class TestBrokerConfigStore:
    """Test routing table persistence and locking."""

    def test_missing_file_is_empty(self, broker_config):
        assert broker_config.load().triggers == []

    def test_save_and_load(self, broker_config):
        broker_config.save(BrokerConfig(triggers=[broker_trigger("t1")]))

        loaded = broker_config.load()
        assert loaded.triggers[0].name == "t1"
        assert loaded.triggers[0].target.name == "sockeye"

    def test_undecodable_file(self, broker_config):
        broker_config.path.parent.mkdir(parents=True, exist_ok=True)
        broker_config.path.write_text("triggers: [unclosed")

        with pytest.raises(ManifestError):
            broker_config.load()

    def test_invalid_schema(self, broker_config):
        broker_config.path.parent.mkdir(parents=True, exist_ok=True)
        broker_config.path.write_text("triggers:\n- name: t1\n")

        with pytest.raises(ManifestError):
            broker_config.load()

    @pytest.mark.asyncio
    async def test_locked_scopes_are_exclusive(self, broker_config):
        events = []

        async def worker(tag):
            async with broker_config.locked():
                events.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                events.append(f"{tag}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self, tmp_path, mock_logger):
        store = BrokerConfigStore(tmp_path / "broker.conf", logger=mock_logger)

        with pytest.raises(RuntimeError):
            async with store.locked():
                raise RuntimeError("boom")

        async with store.locked():
            pass
