"""Unit tests for ContainerLifecycle state machine."""

import pytest

from localmesh.runtime.lifecycle import ContainerLifecycle
from localmesh.types import AdapterContainer, ContainerState


@pytest.fixture
def lifecycle(mock_logger):
    return ContainerLifecycle(mock_logger)


class TestBegin:
    """Test entering STARTING."""

    def test_unknown_container_is_absent(self, lifecycle):
        assert lifecycle.state("tr") == ContainerState.ABSENT
        assert lifecycle.get("tr") is None

    def test_begin_new_container(self, lifecycle):
        container = lifecycle.begin("tr", "img:latest")
        assert container.state == ContainerState.STARTING
        assert container.image == "img:latest"

    def test_begin_replaces_ready_container(self, lifecycle):
        container = lifecycle.begin("tr", "img:v1")
        container.host_port = 49153
        lifecycle.transition("tr", ContainerState.READY)

        replaced = lifecycle.begin("tr", "img:v2")
        assert replaced.state == ContainerState.STARTING
        assert replaced.host_port is None
        assert replaced.image == "img:v2"

    def test_begin_after_unready(self, lifecycle):
        lifecycle.begin("tr", "img")
        lifecycle.transition("tr", ContainerState.UNREADY)
        assert lifecycle.begin("tr", "img").state == ContainerState.STARTING


class TestTransitions:
    """Test transition validation."""

    def test_valid_path(self, lifecycle):
        lifecycle.begin("tr", "img")
        assert lifecycle.transition("tr", ContainerState.READY) is True
        assert lifecycle.transition("tr", ContainerState.STOPPED) is True
        assert lifecycle.state("tr") == ContainerState.STOPPED

    def test_invalid_transition_refused(self, lifecycle, mock_logger):
        lifecycle.begin("tr", "img")
        lifecycle.transition("tr", ContainerState.READY)

        assert lifecycle.transition("tr", ContainerState.STARTING) is False
        assert lifecycle.state("tr") == ContainerState.READY
        mock_logger.warning.assert_called()

    def test_unready_cannot_become_ready(self, lifecycle):
        lifecycle.begin("tr", "img")
        lifecycle.transition("tr", ContainerState.UNREADY)
        assert lifecycle.transition("tr", ContainerState.READY) is False

    def test_unknown_container(self, lifecycle):
        assert lifecycle.transition("nope", ContainerState.READY) is False


class TestAdopt:
    """Test tracking already running containers."""

    def test_adopt_marks_ready(self, lifecycle):
        container = lifecycle.adopt(AdapterContainer(name="tr", image="img", host_port=49153))
        assert container.state == ContainerState.READY
        assert lifecycle.get("tr").host_port == 49153

    def test_adopt_refreshes_ready_entry(self, lifecycle):
        first = lifecycle.adopt(AdapterContainer(name="tr", image="img", host_port=49153))
        second = lifecycle.adopt(AdapterContainer(name="tr", image="img", host_port=49200))
        assert second is first
        assert first.host_port == 49200

    def test_adopt_leaves_unready_entry(self, lifecycle, mock_logger):
        lifecycle.begin("tr", "img")
        lifecycle.transition("tr", ContainerState.UNREADY)

        container = lifecycle.adopt(AdapterContainer(name="tr", image="img", host_port=49200))

        assert container.state == ContainerState.UNREADY
        assert container.host_port is None
        mock_logger.warning.assert_called_with("adopt_refused", name="tr", state="unready")

    def test_adopt_leaves_starting_entry(self, lifecycle):
        lifecycle.begin("tr", "img")
        container = lifecycle.adopt(AdapterContainer(name="tr", image="img", host_port=49200))
        assert container.state == ContainerState.STARTING

    def test_adopt_stopped_entry_goes_through_starting(self, lifecycle):
        lifecycle.begin("tr", "img")
        lifecycle.transition("tr", ContainerState.STOPPED)

        container = lifecycle.adopt(AdapterContainer(name="tr", image="img", host_port=49200))

        assert container.state == ContainerState.READY
        assert container.host_port == 49200
