"""
Whole-document JSON storage.

The hub keeps one JSON document per resource key. Two backends are
provided: rows of the ``Document`` model (default) and one file per key
in a directory, which matches the flat-file layout older deployments
already have on disk.

Writes to the same key never overlap: each key has its own re-entrant
lock, and ``update()`` holds it across the read-modify-write. Different
keys are independent.
"""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from django.db import DatabaseError, transaction

from .exceptions import StorageFailure
from .models import Document

logger = logging.getLogger(__name__)

FIX_KEY = 'fix'
CREDENTIALS_KEY = 'credentials'
POI_KEY = 'poi'
CONFIG_KEY = 'config'

# File names used by the flat-file backend
FILE_NAMES: dict[str, str] = {
    FIX_KEY: 'latest-gps.json',
    CREDENTIALS_KEY: 'wifi.json',
    POI_KEY: 'poi.json',
    CONFIG_KEY: 'config.json',
}


class DocumentStore(ABC):
    """Read/write whole JSON documents by key."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def lock_for(self, key: str) -> threading.RLock:
        """Return the lock serialising writes to ``key``."""
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def read(self, key: str) -> Any | None:
        """
        Read a document.

        Returns:
            The decoded document, or None if it was never written

        Raises:
            StorageFailure: If the backend cannot be read
        """
        return self._read(key)

    def write(self, key: str, value: Any) -> None:
        """
        Replace a document wholesale.

        Raises:
            StorageFailure: If the backend cannot be written
        """
        with self.lock_for(key):
            self._write(key, value)
        logger.debug("Stored document '%s'", key)

    def update(self, key: str, mutate: Callable[[Any | None], Any]) -> Any:
        """
        Read, transform and rewrite a document without interleaving writers.

        Args:
            key: Document key
            mutate: Receives the current document (None if absent) and
                returns the replacement

        Returns:
            The document that was written
        """
        with self.lock_for(key):
            new_value = mutate(self._read(key))
            self._write(key, new_value)
        logger.debug("Updated document '%s'", key)
        return new_value

    @abstractmethod
    def _read(self, key: str) -> Any | None:
        ...

    @abstractmethod
    def _write(self, key: str, value: Any) -> None:
        ...


class DatabaseDocumentStore(DocumentStore):
    """Documents as rows of the ``Document`` model."""

    def _read(self, key: str) -> Any | None:
        try:
            document = Document.objects.filter(key=key).first()
        except DatabaseError as e:
            raise StorageFailure(key, f"read failed: {e}") from e
        if document is None:
            return None
        return document.payload

    def _write(self, key: str, value: Any) -> None:
        try:
            with transaction.atomic():
                Document.objects.update_or_create(key=key, defaults={'payload': value})
        except DatabaseError as e:
            raise StorageFailure(key, f"write failed: {e}") from e


class FileDocumentStore(DocumentStore):
    """
    Documents as JSON files in a directory.

    A write goes to a temporary file in the same directory which is then
    renamed over the target, so readers see either the old or the new
    document and never a truncated one.
    """

    def __init__(self, directory: Path) -> None:
        super().__init__()
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """Return the file backing ``key``."""
        return self.directory / FILE_NAMES.get(key, f"{key}.json")

    def _read(self, key: str) -> Any | None:
        path = self.path_for(key)
        try:
            text = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageFailure(key, f"cannot read {path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageFailure(key, f"{path} is not valid JSON: {e}") from e

    def _write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        try:
            text = json.dumps(value, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageFailure(key, f"not JSON serialisable: {e}") from e
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.name}.", suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageFailure(key, f"cannot write {path}: {e}") from e


def build_document_store(backend: str, directory: Path) -> DocumentStore:
    """
    Create the document store selected in settings.

    Args:
        backend: 'database' or 'files'
        directory: Directory for the 'files' backend

    Raises:
        ValueError: If the backend name is unknown
    """
    if backend == 'database':
        return DatabaseDocumentStore()
    if backend == 'files':
        return FileDocumentStore(directory)
    raise ValueError(f"Expected DOCUMENT_STORE to be 'database' or 'files', got '{backend}'")
