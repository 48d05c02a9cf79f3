# Overview: Durable snapshot of the in-memory relational store.

"""
Snapshot Store

The relational store is an in-memory SQLite database. Durability comes from
writing a full serialized copy of it to host storage after every committed
write. One file per version key:

    <SNAPSHOT_DIR>/<SNAPSHOT_KEY>

Changing the key is the strategy for breaking schema changes: the old file
is simply never read again.

INVARIANTS:
- save() writes to a temp file and os.replace()s it, so a crash mid-write
  leaves the previous snapshot intact.
- reset() invalidates the handle BEFORE deleting the file; a write racing
  with the reset raises instead of resurrecting the old data.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
from pathlib import Path

from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class SnapshotError(RuntimeError):
    """Raised when the snapshot cannot be read or written."""


class SnapshotCorruptError(SnapshotError):
    """Raised when persisted bytes are not a loadable database image."""


class SnapshotInvalidatedError(SnapshotError):
    """Raised when writing through a handle that was reset."""


class SnapshotStore:
    def __init__(self, directory: str | os.PathLike, key: str):
        self.directory = Path(directory)
        self.key = key
        self._valid = True

    @property
    def path(self) -> Path:
        return self.directory / self.key

    @property
    def is_valid(self) -> bool:
        return self._valid

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> bytes | None:
        """Return the persisted bytes, or None when nothing was saved yet."""
        if not self.exists():
            return None
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise SnapshotError(f"Cannot read snapshot {self.path}: {exc}") from exc

    def save(self, data: bytes) -> None:
        if not self._valid:
            raise SnapshotInvalidatedError("Snapshot handle was reset; reopen it before saving")
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.key}.", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise SnapshotError(f"Cannot write snapshot {self.path}: {exc}") from exc
        logger.debug("Snapshot saved to %s (%d bytes)", self.path, len(data))

    def reset(self) -> None:
        """Invalidate this handle, then discard the persisted snapshot."""
        self._valid = False
        if self.exists():
            self.path.unlink()
        logger.warning("Snapshot %s discarded", self.path)

    def reopen(self) -> None:
        self._valid = True


def _driver_connection(connection) -> sqlite3.Connection:
    return connection.connection.driver_connection


def dump_from(engine: Engine) -> bytes:
    """Serialize the whole in-memory database behind engine."""
    with engine.connect() as conn:
        return bytes(_driver_connection(conn).serialize())


def load_into(engine: Engine, data: bytes) -> None:
    """Replace the in-memory database behind engine with data."""
    with engine.connect() as conn:
        raw = _driver_connection(conn)
        try:
            raw.deserialize(data)
            raw.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.DatabaseError as exc:
            raise SnapshotCorruptError(f"Snapshot is not a valid database image: {exc}") from exc
