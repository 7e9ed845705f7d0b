"""Open the SQLite collection embedded in an Anki package (.apkg).

An .apkg file is a zip archive holding a SQLite database named
``collection.anki2`` (or ``collection.anki21``) and an optional ``media``
manifest. The database is opened through a backend chosen once per
process:

- ``MemoryBackend`` deserialises the blob straight into an in-memory
  connection (needs ``sqlite3.Connection.deserialize``).
- ``FileBackend`` writes the blob to a uniquely named scratch file and
  deletes it when the database is closed.
"""

from __future__ import annotations

import io
import logging
import os
import sqlite3
import tempfile
import zipfile
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from mnemo.core.errors import ConfigurationError, StructuralError

logger = logging.getLogger(__name__)

COLLECTION_NAMES = ("collection.anki2", "collection.anki21")
COMPRESSED_COLLECTION_NAME = "collection.anki21b"
MEDIA_NAME = "media"

# SQLite header bytes 18/19: file format write/read version (2 = WAL)
_WAL_VERSION = b"\x02\x02"
_LEGACY_VERSION = b"\x01\x01"


class Cursor:
    """Forward-only cursor over a prepared query."""

    def __init__(self, cursor: sqlite3.Cursor):
        self._cursor: sqlite3.Cursor | None = cursor
        self._row: sqlite3.Row | None = None

    def step(self) -> bool:
        """Advance to the next row; False once the rows are exhausted."""
        if self._cursor is None:
            return False
        self._row = self._cursor.fetchone()
        return self._row is not None

    def row_as_map(self) -> dict:
        """The current row as a column -> value dict."""
        return dict(self._row) if self._row is not None else {}

    def free(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
        self._cursor = None
        self._row = None

    def __iter__(self) -> Iterator[dict]:
        while self.step():
            yield self.row_as_map()

    def __enter__(self) -> Cursor:
        return self

    def __exit__(self, *exc) -> None:
        self.free()


class CollectionDatabase:
    """An open collection database; ``close()`` releases every resource."""

    def __init__(self, conn: sqlite3.Connection, cleanup: Callable[[], None] | None = None):
        conn.row_factory = sqlite3.Row
        self._conn: sqlite3.Connection | None = conn
        self._cleanup = cleanup

    @property
    def closed(self) -> bool:
        return self._conn is None

    def prepare(self, sql: str, params: tuple = ()) -> Cursor:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Cannot prepare a query on a closed collection")
        return Cursor(self._conn.execute(sql, params))

    def close(self) -> None:
        """Close the connection and run the backend cleanup. Safe to call twice."""
        conn, self._conn = self._conn, None
        cleanup, self._cleanup = self._cleanup, None
        try:
            if conn is not None:
                conn.close()
        finally:
            if cleanup is not None:
                cleanup()

    def __enter__(self) -> CollectionDatabase:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Backend(ABC):
    """Turns raw database bytes into an open CollectionDatabase."""

    name: str

    @abstractmethod
    def open_database(self, data: bytes) -> CollectionDatabase: ...


class MemoryBackend(Backend):
    name = "memory"

    @staticmethod
    def available() -> bool:
        return hasattr(sqlite3.Connection, "deserialize")

    def open_database(self, data: bytes) -> CollectionDatabase:
        conn = sqlite3.connect(":memory:")
        try:
            conn.deserialize(data)
        except Exception:
            conn.close()
            raise
        return CollectionDatabase(conn)


class FileBackend(Backend):
    name = "file"

    def __init__(self, tmp_dir: Path | None = None):
        self.tmp_dir = tmp_dir

    def open_database(self, data: bytes) -> CollectionDatabase:
        fd, path = tempfile.mkstemp(prefix="anki-import-", suffix=".db", dir=self.tmp_dir)

        def cleanup() -> None:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            conn = sqlite3.connect(path)
        except Exception:
            cleanup()
            raise
        return CollectionDatabase(conn, cleanup=cleanup)


@lru_cache
def detect_backend() -> Backend:
    """Choose the backend for this process (in-memory when supported)."""
    backend: Backend = MemoryBackend() if MemoryBackend.available() else FileBackend()
    logger.debug("Using %s SQLite backend for package imports", backend.name)
    return backend


def get_backend(name: str = "auto") -> Backend:
    """Resolve a configured backend name.

    Raises:
        ConfigurationError: unknown name, or the memory backend is unsupported here
    """
    if name == "auto":
        return detect_backend()
    if name == "memory":
        if not MemoryBackend.available():
            raise ConfigurationError("The memory backend needs sqlite3 deserialize support")
        return MemoryBackend()
    if name == "file":
        return FileBackend()
    raise ConfigurationError(f"Unknown SQLite backend: {name!r} (expected auto, memory or file)")


@dataclass
class OpenPackage:
    collection_name: str
    has_media: bool
    db: CollectionDatabase


def open_archive(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise StructuralError(f"Invalid .apkg file: not a valid zip archive ({e})") from e


def locate_collection(archive: zipfile.ZipFile) -> str:
    """Name of the collection database entry.

    Raises:
        StructuralError: no supported collection entry exists
    """
    names = set(archive.namelist())
    for name in COLLECTION_NAMES:
        if name in names:
            return name
    if COMPRESSED_COLLECTION_NAME in names:
        raise StructuralError(
            "Invalid .apkg file: only a zstd-compressed collection (collection.anki21b) "
            "was found, which is not supported; re-export with legacy compatibility"
        )
    raise StructuralError("Invalid .apkg file: collection database not found")


def _normalize_header(blob: bytes) -> bytes:
    """Switch a WAL-mode header back to rollback-journal so the blob opens standalone."""
    if len(blob) >= 20 and blob[18:20] == _WAL_VERSION:
        return blob[:18] + _LEGACY_VERSION + blob[20:]
    return blob


class ContainerReader:
    """Locates and opens the collection database inside an .apkg archive."""

    def __init__(self, backend: Backend | None = None):
        self.backend = backend or detect_backend()

    @contextmanager
    def open(self, data: bytes) -> Iterator[OpenPackage]:
        """Open the package's collection; the database is closed on exit.

        Raises:
            StructuralError: unreadable archive, missing collection, or a
                collection that is not a SQLite database
        """
        with open_archive(data) as archive:
            name = locate_collection(archive)
            try:
                blob = archive.read(name)
            except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                raise StructuralError(f"Failed to extract {name}: {e}") from e
            has_media = MEDIA_NAME in archive.namelist()

        try:
            db = self.backend.open_database(_normalize_header(blob))
        except sqlite3.Error as e:
            raise StructuralError(f"Failed to open {name}: {e}") from e

        try:
            try:
                db.prepare("SELECT count(*) FROM sqlite_master").free()
            except sqlite3.DatabaseError as e:
                raise StructuralError(f"{name} is not a readable SQLite database: {e}") from e
            yield OpenPackage(collection_name=name, has_media=has_media, db=db)
        finally:
            db.close()
