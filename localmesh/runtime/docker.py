"""Docker CLI runtime client.

Implements ContainerRuntimeProtocol by driving the `docker` binary through
asyncio subprocesses. Each call is an independent subprocess, so one client
handle is safe to share between concurrent tasks; a semaphore bounds how
many docker invocations run at once.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from localmesh.errors import InfraError
from localmesh.logging import get_component_logger
from localmesh.protocols import LoggerProtocol
from localmesh.types import ContainerSpec, RuntimeContainer

# Lets adapters reach host-published ports of their peers on Linux hosts
_HOST_GATEWAY = "host.docker.internal:host-gateway"


class DockerCliRuntime:
    """Container runtime backed by the docker CLI.

    Usage:
        runtime = DockerCliRuntime(logger=logger)
        await runtime.open()
        container = await runtime.run(spec)
        ...
        await runtime.close()
    """

    def __init__(
        self,
        binary: str = "docker",
        concurrency: int = 8,
        logger: Optional[LoggerProtocol] = None,
        command_timeout: float = 300.0,
    ) -> None:
        self._binary = binary
        self._semaphore = asyncio.Semaphore(concurrency)
        self._command_timeout = command_timeout
        self._logger = get_component_logger("docker_runtime", logger)
        self._log_processes: Set[asyncio.subprocess.Process] = set()
        self._opened = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self) -> None:
        """Check that the docker daemon answers."""
        if self._opened:
            return
        code, out, err = await self._exec("version", "--format", "{{.Server.Version}}")
        if code != 0:
            raise InfraError(f"docker daemon is not reachable: {err.strip() or out.strip()}")
        self._opened = True
        self._logger.debug("docker_runtime_opened", server_version=out.strip())

    async def close(self) -> None:
        """Terminate log followers still attached to containers."""
        for proc in list(self._log_processes):
            await self._terminate(proc)
        self._log_processes.clear()
        self._opened = False

    # =========================================================================
    # Containers
    # =========================================================================

    async def run(self, spec: ContainerSpec) -> RuntimeContainer:
        args = self._run_args(spec)
        code, out, err = await self._exec(*args)
        if code != 0:
            raise InfraError(f"cannot start container {spec.name!r}: {err.strip()}")

        container = await self.find(spec.name)
        if container is None:
            raise InfraError(f"container {spec.name!r} disappeared after start")
        self._logger.debug(
            "docker_container_started",
            name=spec.name,
            image=spec.image,
            container_id=container.container_id[:12],
            host_port=container.host_port,
        )
        return container

    async def find(self, name: str) -> Optional[RuntimeContainer]:
        code, out, err = await self._exec("inspect", "--type", "container", name)
        if code != 0:
            if "no such" in err.lower():
                return None
            raise InfraError(f"cannot inspect container {name!r}: {err.strip()}")
        try:
            documents = json.loads(out)
        except json.JSONDecodeError as e:
            raise InfraError(f"cannot decode inspect output for {name!r}: {e}") from e
        if not documents:
            return None
        return parse_inspect(documents[0])

    async def remove(self, name: str) -> None:
        code, _, err = await self._exec("rm", "--force", name)
        if code != 0 and "no such container" not in err.lower():
            raise InfraError(f"cannot remove container {name!r}: {err.strip()}")

    async def logs(self, name: str, follow: bool = True) -> AsyncIterator[bytes]:
        """Yield container output line by line (stdout and stderr merged)."""
        args = ["logs"]
        if follow:
            args.append("--follow")
        args.append(name)
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise InfraError(f"container runtime {self._binary!r} not found") from e

        self._log_processes.add(proc)
        try:
            assert proc.stdout is not None
            while True:
                line = await proc.stdout.readline()
                if not line:
                    break
                yield line.rstrip(b"\r\n")
        finally:
            self._log_processes.discard(proc)
            await self._terminate(proc)

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_args(self, spec: ContainerSpec) -> List[str]:
        args = [
            "run",
            "--detach",
            "--pull", "missing",
            "--name", spec.name,
            "--publish", str(spec.internal_port),
            "--add-host", _HOST_GATEWAY,
        ]
        for key, value in sorted(spec.env.items()):
            args += ["--env", f"{key}={value}"]
        for key, value in sorted(spec.labels.items()):
            args += ["--label", f"{key}={value}"]
        for host_path, container_path in sorted(spec.volumes.items()):
            args += ["--volume", f"{host_path}:{container_path}"]
        args.append(spec.image)
        args += spec.command
        return args

    async def _exec(self, *args: str) -> Tuple[int, str, str]:
        async with self._semaphore:
            try:
                proc = await asyncio.create_subprocess_exec(
                    self._binary,
                    *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as e:
                raise InfraError(f"container runtime {self._binary!r} not found") from e

            try:
                stdout, stderr = await asyncio.wait_for(
                    proc.communicate(), timeout=self._command_timeout
                )
            except asyncio.TimeoutError:
                await self._terminate(proc)
                raise InfraError(f"docker {args[0]} timed out after {self._command_timeout}s")
            except asyncio.CancelledError:
                await self._terminate(proc)
                raise

        return proc.returncode or 0, stdout.decode(errors="replace"), stderr.decode(errors="replace")

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()


def parse_inspect(document: Dict[str, Any]) -> RuntimeContainer:
    """Build a RuntimeContainer from one `docker inspect` document."""
    state = document.get("State") or {}
    ports = (document.get("NetworkSettings") or {}).get("Ports") or {}

    host_port = None
    for port_key in sorted(ports):
        bindings = ports.get(port_key) or []
        if port_key.endswith("/tcp") and bindings:
            host_port = int(bindings[0]["HostPort"])
            break

    return RuntimeContainer(
        container_id=document.get("Id", ""),
        name=str(document.get("Name", "")).lstrip("/"),
        status=state.get("Status", "unknown"),
        host_port=host_port,
        image=(document.get("Config") or {}).get("Image", ""),
    )


__all__ = ["DockerCliRuntime", "parse_inspect"]
