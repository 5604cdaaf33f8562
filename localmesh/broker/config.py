"""Broker configuration file.

The broker adapter reads its routing table from a YAML file:

    triggers:
    - name: local-trigger-1a2b3c4d
      filters:
      - key: type
        value: tr.output
      target:
        name: sockeye
        url: http://host.docker.internal:49153

Writes are atomic (temp file + rename) and exclusive: callers hold
`BrokerConfigStore.locked()` around a load/compute/save sequence.
"""

import asyncio
import fcntl
import os
import tempfile
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import AsyncIterator, Iterator, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from localmesh.errors import InfraError, ManifestError
from localmesh.logging import get_component_logger
from localmesh.protocols import LoggerProtocol


class BrokerFilter(BaseModel):
    key: str
    value: str


class BrokerTarget(BaseModel):
    name: str
    url: str = ""


class BrokerTrigger(BaseModel):
    name: str
    filters: List[BrokerFilter] = Field(default_factory=list)
    target: BrokerTarget


class BrokerConfig(BaseModel):
    """Broker routing table, a projection of the manifest's triggers."""
    triggers: List[BrokerTrigger] = Field(default_factory=list)


class BrokerConfigStore:
    """YAML-backed broker configuration with exclusive write scopes.

    The in-process asyncio lock serializes concurrent reconciliations in one
    event loop; the advisory file lock serializes concurrent CLI processes.
    """

    def __init__(self, path: Path, logger: Optional[LoggerProtocol] = None) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._lock = asyncio.Lock()
        self._logger = get_component_logger("broker_config", logger)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> BrokerConfig:
        """Load the routing table; a missing file is an empty table."""
        if not self._path.exists():
            return BrokerConfig()
        try:
            data = yaml.safe_load(self._path.read_text()) or {}
            return BrokerConfig.model_validate(data)
        except (yaml.YAMLError, ValidationError) as e:
            raise ManifestError(f"cannot decode broker config {self._path}: {e}") from e

    def save(self, config: BrokerConfig) -> None:
        """Atomically replace the routing table on disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = yaml.safe_dump(config.model_dump(), sort_keys=False)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp, self._path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise InfraError(f"cannot write broker config {self._path}: {e}") from e

        self._logger.debug("broker_config_saved", path=str(self._path), triggers=len(config.triggers))

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._lock_path, "a") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    @asynccontextmanager
    async def locked(self) -> AsyncIterator["BrokerConfigStore"]:
        """Exclusive write scope, released on every exit path."""
        async with self._lock:
            lock_cm = self._file_lock()
            await asyncio.to_thread(lock_cm.__enter__)
            try:
                yield self
            finally:
                lock_cm.__exit__(None, None, None)


__all__ = [
    "BrokerFilter",
    "BrokerTarget",
    "BrokerTrigger",
    "BrokerConfig",
    "BrokerConfigStore",
]
