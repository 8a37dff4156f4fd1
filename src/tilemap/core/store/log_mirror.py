"""Read access to a local mirror of the checksum database log."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import UTC, datetime

import structlog
from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError

from tilemap.contracts.errors import StoreError
from tilemap.contracts.records import Entry
from tilemap.core.store.database import StoreDatabase
from tilemap.core.store.schema import checkpoints_table, leaf_metadata_table, mirror_metadata

logger = structlog.get_logger(__name__)

# Rows fetched per round trip when streaming entries
_STREAM_CHUNK = 1000


class LogMirror:
    """SQL-backed LogMirror.

    Reads the leafMetadata and checkpoints tables written by the
    checksum database auditor. The write helpers exist for seeding
    mirrors in tests and local tooling; a build never calls them.
    """

    def __init__(self, db: StoreDatabase) -> None:
        self._db = db

    @classmethod
    def from_url(cls, url: str, *, create_tables: bool = True) -> LogMirror:
        """Open a mirror by SQLAlchemy URL.

        Raises:
            StoreError: If the database cannot be opened
        """
        return cls(StoreDatabase(url, mirror_metadata, create_tables=create_tables))

    @classmethod
    def in_memory(cls) -> LogMirror:
        """Create an empty in-memory mirror for testing."""
        return cls(StoreDatabase.in_memory(mirror_metadata))

    @property
    def db(self) -> StoreDatabase:
        return self._db

    def close(self) -> None:
        self._db.close()

    def metadata(self) -> tuple[bytes | None, int]:
        """Return the most recent checkpoint and the number of mirrored entries.

        An empty mirror returns (None, 0). The caller decides whether a
        missing checkpoint is fatal.

        Raises:
            StoreError: If the mirror cannot be read
        """
        try:
            with self._db.connection() as conn:
                checkpoint = conn.execute(
                    select(checkpoints_table.c.checkpoint).order_by(desc(checkpoints_table.c.datetime)).limit(1)
                ).scalar_one_or_none()
                total = conn.execute(select(func.count()).select_from(leaf_metadata_table)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read log mirror metadata: {e}") from e
        return checkpoint, int(total)

    def entries(self, start: int, end: int) -> Iterator[Entry]:
        """Yield entries with start <= id < end.

        Lazy: rows are streamed as the caller iterates. The log is
        append-only, so iterating again with the same bounds yields the
        same entries.

        Raises:
            ValueError: If bounds are negative or inverted
            StoreError: If the mirror cannot be read
        """
        if start < 0 or end < start:
            raise ValueError(f"invalid entry range [{start}, {end})")
        query = (
            select(leaf_metadata_table)
            .where(leaf_metadata_table.c.id >= start)
            .where(leaf_metadata_table.c.id < end)
            .order_by(leaf_metadata_table.c.id)
        )
        try:
            with self._db.engine.connect() as conn:
                result = conn.execution_options(yield_per=_STREAM_CHUNK).execute(query)
                for row in result:
                    yield Entry(
                        entry_id=row.id,
                        module=row.module,
                        version=row.version,
                        repo_hash=row.repohash,
                        mod_hash=row.modhash,
                    )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read log entries [{start}, {end}): {e}") from e

    def add_entries(self, entries: Iterable[Entry]) -> int:
        """Append entries to the mirror. Returns the number inserted.

        Raises:
            StoreError: If the insert fails (e.g. a duplicate id)
        """
        rows = [
            {
                "id": e.entry_id,
                "module": e.module,
                "version": e.version,
                "repohash": e.repo_hash,
                "modhash": e.mod_hash,
            }
            for e in entries
        ]
        if not rows:
            return 0
        try:
            with self._db.connection() as conn:
                conn.execute(leaf_metadata_table.insert(), rows)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to append log entries: {e}") from e
        logger.debug("log_entries_added", count=len(rows))
        return len(rows)

    def add_checkpoint(self, checkpoint: bytes, at: datetime | None = None) -> None:
        """Record a checkpoint observed at time `at` (default: now).

        Raises:
            StoreError: If the insert fails
        """
        try:
            with self._db.connection() as conn:
                conn.execute(checkpoints_table.insert().values(datetime=at or datetime.now(UTC), checkpoint=checkpoint))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to record checkpoint: {e}") from e
