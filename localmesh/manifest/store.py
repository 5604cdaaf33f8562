"""File-backed manifest store.

The manifest is a multi-document YAML file, one component record per
document, in creation order. Every add/remove is written through to disk
atomically.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from localmesh.errors import InfraError, ManifestError
from localmesh.logging import get_component_logger
from localmesh.protocols import LoggerProtocol
from localmesh.routing.triggers import TRIGGER_KIND
from localmesh.types import ManifestRecord


class YamlManifestStore:
    """Ordered component records keyed by (kind, name)."""

    def __init__(self, path: Path, logger: Optional[LoggerProtocol] = None) -> None:
        self._path = Path(path)
        self._records: List[ManifestRecord] = []
        self._logger = get_component_logger("manifest", logger)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> None:
        """Load records from disk; a missing file is an empty manifest."""
        if not self._path.exists():
            self._records = []
            return
        try:
            documents = [d for d in yaml.safe_load_all(self._path.read_text()) if d]
        except yaml.YAMLError as e:
            raise ManifestError(f"cannot parse manifest {self._path}: {e}") from e

        records: List[ManifestRecord] = []
        seen: Dict[tuple, int] = {}
        for i, document in enumerate(documents):
            try:
                record = ManifestRecord.model_validate(document)
            except ValidationError as e:
                raise ManifestError(f"manifest {self._path} document {i}: {e}") from e
            if record.key in seen:
                raise ManifestError(f"duplicate manifest record {record.kind}/{record.name}")
            seen[record.key] = i
            records.append(record)
        self._records = records

    def write(self) -> None:
        """Atomically replace the manifest file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = yaml.safe_dump_all(
            [r.to_document() for r in self._records],
            sort_keys=False,
        )
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp, self._path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise InfraError(f"cannot write manifest {self._path}: {e}") from e

    def add(self, record: ManifestRecord) -> bool:
        """Insert or replace a record.

        Returns:
            True if a record with the same (kind, name) already existed,
            meaning a running adapter must be restarted.
        """
        existed = False
        for i, existing in enumerate(self._records):
            if existing.key == record.key:
                self._records[i] = record
                existed = True
                break
        else:
            self._records.append(record)

        self.write()
        self._logger.debug(
            "manifest_record_added",
            kind=record.kind,
            name=record.name,
            replaced=existed,
        )
        return existed

    def remove(self, name: str, kind: str) -> bool:
        before = len(self._records)
        self._records = [r for r in self._records if r.key != (kind, name)]
        if len(self._records) == before:
            return False
        self.write()
        self._logger.debug("manifest_record_removed", kind=kind, name=name)
        return True

    def get(self, kind: str, name: str) -> Optional[ManifestRecord]:
        for record in self._records:
            if record.key == (kind, name):
                return record
        return None

    def find(self, name: str) -> Optional[ManifestRecord]:
        """First non-trigger record with this name."""
        for record in self._records:
            if record.name == name and record.kind != TRIGGER_KIND:
                return record
        return None

    def records(self, kind: Optional[str] = None) -> List[ManifestRecord]:
        if kind is None:
            return list(self._records)
        return [r for r in self._records if r.kind == kind]

    def snapshot(self) -> List[ManifestRecord]:
        return [r.model_copy(deep=True) for r in self._records]

    def restore(self, records: List[ManifestRecord]) -> None:
        self._records = list(records)


__all__ = ["YamlManifestStore"]
