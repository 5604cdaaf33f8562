"""Unit tests for the docker CLI runtime client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from localmesh.errors import InfraError
from localmesh.runtime.docker import DockerCliRuntime, parse_inspect
from localmesh.types import ContainerSpec

SUBPROCESS = "localmesh.runtime.docker.asyncio.create_subprocess_exec"


def make_process(returncode=0, stdout=b"", stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


def inspect_document(name="tr", status="running", port="49153"):
    return {
        "Id": "0123456789abcdef",
        "Name": f"/{name}",
        "State": {"Status": status},
        "Config": {"Image": "gcr.io/triggermesh/transformation-adapter:latest"},
        "NetworkSettings": {"Ports": {"8080/tcp": [{"HostIp": "0.0.0.0", "HostPort": port}]}},
    }


@pytest.fixture
def runtime(mock_logger):
    return DockerCliRuntime(logger=mock_logger)


class TestParseInspect:
    """Test inspect document decoding."""

    def test_running_container(self):
        container = parse_inspect(inspect_document())
        assert container.name == "tr"
        assert container.running is True
        assert container.host_port == 49153
        assert container.image.endswith("transformation-adapter:latest")

    def test_unpublished_port(self):
        document = inspect_document(status="exited")
        document["NetworkSettings"]["Ports"] = {"8080/tcp": None}
        container = parse_inspect(document)
        assert container.running is False
        assert container.host_port is None


class TestOpen:
    """Test daemon reachability check."""

    @pytest.mark.asyncio
    async def test_open_checks_daemon(self, runtime):
        with patch(SUBPROCESS, new=AsyncMock(return_value=make_process(stdout=b"24.0.7\n"))) as exec_:
            await runtime.open()
        assert exec_.call_args.args[:2] == ("docker", "version")

    @pytest.mark.asyncio
    async def test_open_fails_when_daemon_down(self, runtime):
        proc = make_process(returncode=1, stderr=b"Cannot connect to the Docker daemon")
        with patch(SUBPROCESS, new=AsyncMock(return_value=proc)):
            with pytest.raises(InfraError, match="not reachable"):
                await runtime.open()

    @pytest.mark.asyncio
    async def test_missing_binary(self, runtime):
        with patch(SUBPROCESS, new=AsyncMock(side_effect=FileNotFoundError())):
            with pytest.raises(InfraError, match="not found"):
                await runtime.open()


class TestContainers:
    """Test run/find/remove."""

    @pytest.mark.asyncio
    async def test_run_builds_arguments(self, runtime):
        spec = ContainerSpec(
            name="local",
            image="gcr.io/triggermesh/memory-broker:latest",
            env={"B": "2", "A": "1"},
            volumes={"/tmp/broker.conf": "/etc/triggermesh/broker.conf"},
            command=["start"],
        )
        inspect = make_process(stdout=json.dumps([inspect_document("local")]).encode())
        with patch(SUBPROCESS, new=AsyncMock(side_effect=[make_process(stdout=b"id\n"), inspect])) as exec_:
            container = await runtime.run(spec)

        args = list(exec_.call_args_list[0].args)
        assert args[:3] == ["docker", "run", "--detach"]
        assert args[args.index("--publish") + 1] == "8080"
        assert args.index("A=1") < args.index("B=2")
        assert "/tmp/broker.conf:/etc/triggermesh/broker.conf" in args
        assert args[-2:] == ["gcr.io/triggermesh/memory-broker:latest", "start"]
        assert container.host_port == 49153

    @pytest.mark.asyncio
    async def test_run_failure(self, runtime):
        proc = make_process(returncode=125, stderr=b"pull access denied")
        with patch(SUBPROCESS, new=AsyncMock(return_value=proc)):
            with pytest.raises(InfraError, match="pull access denied"):
                await runtime.run(ContainerSpec(name="tr", image="img"))

    @pytest.mark.asyncio
    async def test_find_missing_container(self, runtime):
        proc = make_process(returncode=1, stderr=b"Error: No such object: tr")
        with patch(SUBPROCESS, new=AsyncMock(return_value=proc)):
            assert await runtime.find("tr") is None

    @pytest.mark.asyncio
    async def test_remove_ignores_missing(self, runtime):
        proc = make_process(returncode=1, stderr=b"Error: No such container: tr")
        with patch(SUBPROCESS, new=AsyncMock(return_value=proc)):
            await runtime.remove("tr")

    @pytest.mark.asyncio
    async def test_remove_failure(self, runtime):
        proc = make_process(returncode=1, stderr=b"permission denied")
        with patch(SUBPROCESS, new=AsyncMock(return_value=proc)):
            with pytest.raises(InfraError):
                await runtime.remove("tr")


class TestLogs:
    """Test log line streaming."""

    @pytest.mark.asyncio
    async def test_logs_yield_lines(self, runtime):
        proc = make_process()
        proc.stdout = MagicMock()
        proc.stdout.readline = AsyncMock(side_effect=[b"first\n", b"second\r\n", b""])

        with patch(SUBPROCESS, new=AsyncMock(return_value=proc)) as exec_:
            lines = [line async for line in runtime.logs("tr")]

        assert lines == [b"first", b"second"]
        assert exec_.call_args.args == ("docker", "logs", "--follow", "tr")
