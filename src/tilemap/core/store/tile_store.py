"""Revisioned tile storage.

A revision moves through three states:

    allocated  -> next_write_revision() recorded it in revision_allocations
    written    -> write_tiles() stored some or all of its tiles
    committed  -> commit_revision() inserted its revisions row

Only committed revisions are visible to readers. commit_revision() is
the last write of a build, so a reader that finds a revisions row can
rely on every tile of that revision already being durable.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from sqlalchemy import Connection, and_, bindparam, desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tilemap.contracts.errors import RevisionConflictError, StoreError
from tilemap.contracts.records import RevisionInfo, TileRow
from tilemap.core.store.database import StoreDatabase
from tilemap.core.store.schema import map_metadata, revision_allocations_table, revisions_table, tiles_table

logger = structlog.get_logger(__name__)

_STREAM_CHUNK = 500


@dataclass(frozen=True, slots=True)
class ReclaimResult:
    """Outcome of deleting the tiles of abandoned revisions."""

    revisions: tuple[int, ...]
    tiles_deleted: int


class TileStore:
    """SQL-backed TileStore."""

    def __init__(self, db: StoreDatabase) -> None:
        self._db = db

    @classmethod
    def from_url(cls, url: str) -> TileStore:
        """Open (creating if needed) a tile store by SQLAlchemy URL.

        Raises:
            StoreError: If the database cannot be opened
        """
        return cls(StoreDatabase(url, map_metadata))

    @classmethod
    def in_memory(cls) -> TileStore:
        """Create an empty in-memory tile store for testing."""
        return cls(StoreDatabase.in_memory(map_metadata))

    @property
    def db(self) -> StoreDatabase:
        return self._db

    def close(self) -> None:
        self._db.close()

    # === Revision lifecycle ===

    def next_write_revision(self) -> int:
        """Allocate the next revision number.

        The number is one greater than every revision ever allocated or
        committed, and the allocation is recorded before it is returned,
        so a build that dies before committing still consumes its number.

        Raises:
            StoreError: If the allocation cannot be recorded
        """
        try:
            with self._db.connection() as conn:
                revision = self._highest_known_revision(conn) + 1
                conn.execute(revision_allocations_table.insert().values(revision=revision, allocated_at=datetime.now(UTC)))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to allocate write revision: {e}") from e
        logger.debug("revision_allocated", revision=revision)
        return revision

    def latest_revision(self) -> RevisionInfo | None:
        """Return the most recent committed revision, or None if there is none.

        Raises:
            StoreError: If the store cannot be read
        """
        try:
            with self._db.connection() as conn:
                return self._latest_revision(conn)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read latest revision: {e}") from e

    def commit_revision(self, revision: int, checkpoint: bytes, covered_entries: int) -> RevisionInfo:
        """Make a revision visible to readers.

        Raises:
            RevisionConflictError: If the revision was never allocated, is
                already committed, is not newer than the latest committed
                revision, or covers fewer entries than it
            StoreError: If the write fails
        """
        committed_at = datetime.now(UTC)
        try:
            with self._db.connection() as conn:
                self._require_allocated(conn, revision)
                if self._is_committed(conn, revision):
                    raise RevisionConflictError(f"revision {revision} is already committed")
                latest = self._latest_revision(conn)
                if latest is not None:
                    if revision <= latest.revision:
                        raise RevisionConflictError(f"revision {revision} is not newer than committed revision {latest.revision}")
                    if covered_entries < latest.covered_entries:
                        raise RevisionConflictError(
                            f"revision {revision} covers {covered_entries} entries, fewer than the {latest.covered_entries} "
                            f"covered by revision {latest.revision}"
                        )
                conn.execute(
                    revisions_table.insert().values(
                        revision=revision,
                        datetime=committed_at,
                        logCheckpoint=checkpoint,
                        count=covered_entries,
                    )
                )
        except IntegrityError as e:
            raise RevisionConflictError(f"revision {revision} was committed concurrently: {e}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to commit revision {revision}: {e}") from e
        logger.info("revision_committed", revision=revision, covered_entries=covered_entries)
        return RevisionInfo(revision=revision, checkpoint=checkpoint, covered_entries=covered_entries, committed_at=committed_at)

    # === Tiles ===

    def write_tiles(self, revision: int, rows: Iterable[TileRow]) -> int:
        """Persist a batch of tile rows for an uncommitted revision.

        Idempotent per (revision, path): a row for a path already stored
        in this revision replaces it. Within one batch the last row for a
        path wins. Returns the number of rows written.

        Raises:
            RevisionConflictError: If a row is tagged with another revision,
                or the revision is unallocated or already committed
            StoreError: If the write fails
        """
        by_path: dict[bytes, TileRow] = {}
        for row in rows:
            if row.revision != revision:
                raise RevisionConflictError(f"tile row for revision {row.revision} written to revision {revision}")
            by_path[row.path] = row
        if not by_path:
            return 0

        try:
            with self._db.connection() as conn:
                self._require_allocated(conn, revision)
                if self._is_committed(conn, revision):
                    raise RevisionConflictError(f"revision {revision} is committed; its tiles are immutable")
                conn.execute(
                    tiles_table.delete().where(
                        and_(
                            tiles_table.c.revision == bindparam("b_revision"),
                            tiles_table.c.path == bindparam("b_path"),
                        )
                    ),
                    [{"b_revision": revision, "b_path": path} for path in by_path],
                )
                conn.execute(
                    tiles_table.insert(),
                    [{"revision": revision, "path": row.path, "tile": row.payload} for row in by_path.values()],
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write {len(by_path)} tiles for revision {revision}: {e}") from e
        return len(by_path)

    def read_tiles(self, revision: int) -> Iterator[TileRow]:
        """Yield every tile row of a committed revision.

        Raises:
            StoreError: If the revision is not committed or the read fails
        """
        try:
            with self._db.connection() as conn:
                committed = self._is_committed(conn, revision)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read revision {revision}: {e}") from e
        if not committed:
            raise StoreError(f"revision {revision} is not committed")

        query = select(tiles_table).where(tiles_table.c.revision == revision).order_by(tiles_table.c.path)
        try:
            with self._db.engine.connect() as conn:
                result = conn.execution_options(yield_per=_STREAM_CHUNK).execute(query)
                for row in result:
                    yield TileRow(revision=row.revision, path=row.path, payload=row.tile)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read tiles of revision {revision}: {e}") from e

    def tile_count(self, revision: int) -> int:
        """Number of tile rows stored under a revision, committed or not."""
        try:
            with self._db.connection() as conn:
                count = conn.execute(select(func.count()).select_from(tiles_table).where(tiles_table.c.revision == revision)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to count tiles of revision {revision}: {e}") from e
        return int(count)

    # === Abandoned builds ===

    def orphaned_revisions(self) -> list[int]:
        """Allocated revisions that were never committed and are now superseded.

        Only revisions below the latest committed revision count: a newer
        uncommitted allocation may belong to a build still in progress.
        """
        try:
            with self._db.connection() as conn:
                return self._orphaned_revisions(conn)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list orphaned revisions: {e}") from e

    def reclaim_orphans(self) -> ReclaimResult:
        """Delete the tiles of every orphaned revision.

        Allocation rows are kept so the numbers stay retired.
        """
        try:
            with self._db.connection() as conn:
                orphans = self._orphaned_revisions(conn)
                if not orphans:
                    return ReclaimResult(revisions=(), tiles_deleted=0)
                result = conn.execute(tiles_table.delete().where(tiles_table.c.revision.in_(orphans)))
                deleted = result.rowcount
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to reclaim orphaned tiles: {e}") from e
        logger.info("orphans_reclaimed", revisions=orphans, tiles_deleted=deleted)
        return ReclaimResult(revisions=tuple(orphans), tiles_deleted=deleted)

    # === Helpers (run inside the caller's transaction) ===

    @staticmethod
    def _highest_known_revision(conn: Connection) -> int:
        allocated = conn.execute(select(func.max(revision_allocations_table.c.revision))).scalar_one_or_none()
        committed = conn.execute(select(func.max(revisions_table.c.revision))).scalar_one_or_none()
        known = [r for r in (allocated, committed) if r is not None]
        return max(known) if known else -1

    @staticmethod
    def _latest_revision(conn: Connection) -> RevisionInfo | None:
        row = conn.execute(select(revisions_table).order_by(desc(revisions_table.c.revision)).limit(1)).first()
        if row is None:
            return None
        return RevisionInfo(
            revision=row.revision,
            checkpoint=row.logCheckpoint,
            covered_entries=row.count,
            committed_at=row.datetime,
        )

    @staticmethod
    def _is_committed(conn: Connection, revision: int) -> bool:
        found = conn.execute(select(revisions_table.c.revision).where(revisions_table.c.revision == revision)).first()
        return found is not None

    @staticmethod
    def _require_allocated(conn: Connection, revision: int) -> None:
        found = conn.execute(
            select(revision_allocations_table.c.revision).where(revision_allocations_table.c.revision == revision)
        ).first()
        if found is None:
            raise RevisionConflictError(f"revision {revision} was never allocated by next_write_revision()")

    @staticmethod
    def _orphaned_revisions(conn: Connection) -> list[int]:
        latest = conn.execute(select(func.max(revisions_table.c.revision))).scalar_one_or_none()
        if latest is None:
            return []
        query = (
            select(revision_allocations_table.c.revision)
            .where(revision_allocations_table.c.revision < latest)
            .where(revision_allocations_table.c.revision.not_in(select(revisions_table.c.revision)))
            .order_by(revision_allocations_table.c.revision)
        )
        return [row.revision for row in conn.execute(query)]
