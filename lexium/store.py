from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from lexium.config import AUX_DOCUMENTS, DATA_FILE_NAME, STORAGE_DIR
from lexium.loader import Dataset, LoaderError, decode_bytes, load_dataset_bytes

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the storage collaborator cannot supply a file."""


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Read-only view of the loaded table and documents, shared by all requests."""

    dataset: Dataset = field(default_factory=Dataset.empty)
    documents: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    table_name: str | None = None
    loaded_at: str = field(default_factory=_utc_now_iso)

    @property
    def file_names(self) -> list[str]:
        names = [self.table_name] if self.table_name else []
        return names + sorted(self.documents.keys())


class Storage(ABC):
    @abstractmethod
    def table_name(self) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def read_table(self) -> bytes | None:
        raise NotImplementedError

    @abstractmethod
    def read_documents(self) -> dict[str, str]:
        raise NotImplementedError


class DirectoryStorage(Storage):
    """Reads the tabular file and auxiliary documents from a local directory. Never writes."""

    def __init__(
        self,
        root: str | Path = STORAGE_DIR,
        data_file_name: str = DATA_FILE_NAME,
        document_names: tuple[str, ...] = AUX_DOCUMENTS,
    ) -> None:
        self.root = Path(root)
        self.data_file_name = data_file_name
        self.document_names = document_names

    def _table_path(self) -> Path | None:
        primary = self.root / self.data_file_name
        if primary.is_file():
            return primary
        if not self.root.is_dir():
            return None
        candidates = sorted(path for path in self.root.glob("*.csv") if path.is_file())
        if not candidates:
            return None
        logger.warning("Using %s (could not find %s).", candidates[0].name, primary)
        return candidates[0]

    def table_name(self) -> str | None:
        path = self._table_path()
        return path.name if path else None

    def read_table(self) -> bytes | None:
        path = self._table_path()
        if path is None:
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Could not read {path}: {exc}") from exc

    def read_documents(self) -> dict[str, str]:
        documents: dict[str, str] = {}
        for name in self.document_names:
            path = self.root / name
            if not path.is_file():
                continue
            try:
                documents[name] = decode_bytes(path.read_bytes()).replace("\x00", "")
            except (OSError, LoaderError) as exc:
                raise StorageError(f"Could not read {path}: {exc}") from exc
        return documents


def build_snapshot(storage: Storage) -> Snapshot:
    """Load a fresh snapshot. Storage failures degrade to an empty table / no documents."""
    table_name: str | None = None
    try:
        table_name = storage.table_name()
        dataset = load_dataset_bytes(storage.read_table())
    except (StorageError, LoaderError) as exc:
        logger.error("Tabular file unavailable: %s", exc)
        dataset = Dataset.empty()

    try:
        documents = storage.read_documents()
    except StorageError as exc:
        logger.error("Auxiliary documents unavailable: %s", exc)
        documents = {}

    return Snapshot(
        dataset=dataset,
        documents=MappingProxyType(dict(documents)),
        table_name=table_name,
    )


class SnapshotStore:
    """
    Owns the current Snapshot and swaps it atomically on reload.

    Readers take a reference with `current()` and keep using it for the whole
    request, so a concurrent reload never exposes a half-built snapshot.
    """

    def __init__(self, storage: Storage, snapshot: Snapshot | None = None) -> None:
        self.storage = storage
        self._lock = threading.Lock()
        self._snapshot = snapshot if snapshot is not None else Snapshot()

    def current(self) -> Snapshot:
        return self._snapshot

    def reload(self) -> Snapshot:
        fresh = build_snapshot(self.storage)
        with self._lock:
            self._snapshot = fresh
        logger.info(
            "Snapshot reloaded: table=%s rows=%s documents=%s",
            fresh.table_name,
            fresh.dataset.row_count,
            sorted(fresh.documents.keys()),
        )
        return fresh

    def replace(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
