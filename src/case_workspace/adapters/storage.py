"""Snapshot storage implementations for case-workspace.

Every storage keeps one JSON snapshot under a fixed key and implements
ISnapshotStorage:
  - MemorySnapshotStorage   process-local, for tests and ephemeral runs
  - JsonFileSnapshotStorage one <key>.json file, replaced atomically
  - SqlSnapshotStorage      one row in the cw_snapshots table (SQLAlchemy)

Storages raise on I/O or decode failures; the store decides how to react.
"""

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column
from sqlalchemy.pool import StaticPool

from case_workspace.core.interfaces import ISnapshotStorage
from case_workspace.observability import get_logger
from case_workspace.settings import Settings

logger = get_logger(__name__)


class MemorySnapshotStorage(ISnapshotStorage):
    """Keeps the last saved snapshot as a JSON string in memory.

    Args:
        initial: Optional snapshot to serve from the first load().
    """

    def __init__(self, initial: Any | None = None) -> None:
        self._payload: str | None = json.dumps(initial) if initial is not None else None
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self) -> Any | None:
        with self._lock:
            payload = self._payload
        return json.loads(payload) if payload is not None else None

    def save(self, snapshot: dict[str, Any]) -> None:
        payload = json.dumps(snapshot)
        with self._lock:
            self._payload = payload
            self.save_count += 1


class JsonFileSnapshotStorage(ISnapshotStorage):
    """Stores the snapshot as ``<directory>/<key>.json``.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash never leaves a half-written snapshot behind.

    Args:
        directory: Directory holding snapshot files; created on first save.
        key: Storage key used as the file stem.
    """

    def __init__(self, directory: str | Path, key: str) -> None:
        self._directory = Path(directory)
        self._path = self._directory / f"{key}.json"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Any | None:
        if not self._path.exists():
            return None
        return json.loads(self._path.read_text(encoding="utf-8"))

    def save(self, snapshot: dict[str, Any]) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{self._path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                json.dump(snapshot, stream, ensure_ascii=False)
            os.replace(temp_name, self._path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise


class _Base(DeclarativeBase):
    pass


class SnapshotRecord(_Base):
    """One persisted workspace snapshot.

    Table: cw_snapshots
    """

    __tablename__ = "cw_snapshots"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def create_snapshot_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine suitable for the background snapshot writer.

    In-memory SQLite gets a single shared connection so that every thread
    sees the same database.
    """
    if database_url in {"sqlite://", "sqlite:///:memory:"}:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url)


class SqlSnapshotStorage(ISnapshotStorage):
    """Stores the snapshot as one row of ``cw_snapshots`` keyed by storage key.

    Args:
        engine: SQLAlchemy engine; the table is created if missing.
        key: Storage key used as the primary key.
    """

    def __init__(self, engine: Engine, key: str) -> None:
        self._engine = engine
        self._key = key
        _Base.metadata.create_all(engine)

    def load(self) -> Any | None:
        with Session(self._engine) as session:
            record = session.get(SnapshotRecord, self._key)
            if record is None:
                return None
            return json.loads(record.payload)

    def save(self, snapshot: dict[str, Any]) -> None:
        with Session(self._engine) as session:
            session.merge(
                SnapshotRecord(
                    key=self._key,
                    payload=json.dumps(snapshot, ensure_ascii=False),
                    saved_at=datetime.now(timezone.utc),
                )
            )
            session.commit()

    def dispose(self) -> None:
        """Close pooled connections; called by the store on close."""
        self._engine.dispose()


def build_storage(settings: Settings) -> ISnapshotStorage:
    """Build the storage selected by settings.storage_backend.

    Args:
        settings: Service settings.

    Returns:
        A storage implementing ISnapshotStorage.
    """
    logger.info("snapshot_storage_selected", backend=settings.storage_backend, key=settings.storage_key)
    if settings.storage_backend == "json_file":
        return JsonFileSnapshotStorage(settings.storage_path, settings.storage_key)
    if settings.storage_backend == "sql":
        return SqlSnapshotStorage(create_snapshot_engine(settings.database_url), settings.storage_key)
    return MemorySnapshotStorage()
