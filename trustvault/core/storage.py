import os
import json
import tempfile
import threading
import time
import structlog
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from trustvault import config
from trustvault.core.errors import StoreReadError, StoreWriteError
from trustvault.core.utils import ensure_dir_exists
from trustvault.models.fingerprint import DocumentRecord, NewDocumentRecord

logger = structlog.get_logger()

SCHEMA_VERSION = 1


class KeyValueStorage:
    """Durable key -> string storage capability backing the vector store."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    """Process-local storage, used in tests and ephemeral deployments."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """One JSON file per key inside a directory; writes replace the file atomically."""

    def __init__(self, directory: str = None):
        self.directory = Path(directory or config.VECTOR_STORE_DIR)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        ensure_dir_exists(str(self.directory))
        temp_fd, temp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(temp_path, self._path(key))
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


class UnsupportedSchemaError(StoreReadError):
    """Blob was written by a newer schema version."""
    pass


class VectorStore:
    """
    Append-only local store of document records used for similarity checks.

    Records live in a single JSON blob ``{"version": 1, "records": [...]}``
    under one key. Reads never raise: an unreadable or corrupt blob lists as
    empty. Writes raise StoreWriteError and are not retried.

    Appends within one process are serialized; separate processes sharing the
    same medium are not coordinated and may lose each other's appends.
    """

    def __init__(self,
                 storage: KeyValueStorage = None,
                 key: str = None,
                 dimension: Optional[int] = None):
        self.storage = storage if storage is not None else JsonFileStorage()
        self.key = key or config.VECTOR_STORE_KEY
        self.dimension = dimension
        self._write_lock = threading.Lock()

    def _read(self) -> List[DocumentRecord]:
        try:
            raw = self.storage.get(self.key)
        except Exception as e:
            raise StoreReadError(f"Failed to read vector store: {e}") from e

        if raw is None:
            return []

        try:
            blob = json.loads(raw)
        except ValueError as e:
            raise StoreReadError(f"Vector store blob is not valid JSON: {e}") from e

        # Unversioned blobs are a bare array of records
        if isinstance(blob, list):
            items = blob
        elif isinstance(blob, dict):
            version = blob.get("version")
            if not isinstance(version, int) or version > SCHEMA_VERSION:
                raise UnsupportedSchemaError(f"Unsupported vector store version: {version!r}")
            items = blob.get("records", [])
        else:
            raise StoreReadError("Vector store blob has unexpected shape")

        try:
            return [DocumentRecord.model_validate(item) for item in items]
        except (ValidationError, TypeError) as e:
            raise StoreReadError(f"Vector store contains invalid records: {e}") from e

    def list_records(self) -> List[DocumentRecord]:
        """All records in insertion order; empty when the store is unreadable."""
        try:
            records = self._read()
        except StoreReadError as e:
            logger.error("Error reading vectors from storage", key=self.key, error=str(e))
            return []

        if self.dimension is not None:
            usable = [r for r in records if len(r.embedding) == self.dimension]
            if len(usable) != len(records):
                logger.warning("Ignoring stored vectors with wrong dimension", key=self.key,
                               skipped=len(records) - len(usable), expected=self.dimension)
            records = usable

        logger.debug("Loaded stored vectors", key=self.key, count=len(records))
        return records

    def count(self) -> int:
        return len(self.list_records())

    def append(self, record: NewDocumentRecord) -> DocumentRecord:
        """
        Persist a new record, assigning its timestamp.

        Returns:
            The stored record

        Raises:
            StoreWriteError: the record was not saved
        """
        if self.dimension is not None and len(record.embedding) != self.dimension:
            raise StoreWriteError(
                f"Embedding has dimension {len(record.embedding)}, expected {self.dimension}")

        with self._write_lock:
            try:
                records = self._read()
            except UnsupportedSchemaError as e:
                raise StoreWriteError(f"Refusing to overwrite vector store: {e}") from e
            except StoreReadError as e:
                logger.warning("Discarding unreadable vector store on append", key=self.key, error=str(e))
                records = []

            now_ms = int(time.time() * 1000)
            last_ms = records[-1].timestamp if records else 0
            stored = DocumentRecord(**record.model_dump(), timestamp=max(now_ms, last_ms))
            records.append(stored)

            blob = {"version": SCHEMA_VERSION, "records": [r.to_storage() for r in records]}
            try:
                self.storage.set(self.key, json.dumps(blob))
            except Exception as e:
                logger.error("Error saving vector to storage", key=self.key, error=str(e))
                raise StoreWriteError(f"Failed to save vector: {e}") from e

        logger.info("Stored vector", key=self.key, hash=stored.vector_hash, count=len(records))
        return stored

    def clear_all(self) -> None:
        """Remove every record."""
        with self._write_lock:
            try:
                self.storage.delete(self.key)
            except Exception as e:
                logger.error("Error clearing vectors", key=self.key, error=str(e))
                raise StoreWriteError(f"Failed to clear vectors: {e}") from e
        logger.info("Cleared stored vectors", key=self.key)
