"""Capability protocols for the build's external collaborators.

These protocols define what the orchestrator needs from the log
mirror, the tile store and the tree builder. They carry exactly the
operations the build uses, so in-memory fakes can stand in for the
SQL-backed stores in tests.

Collaborators:
- LogMirror: read-only local copy of the source log
- TileStore: revisioned store of map tiles
- TreeBuilder: pure construction of a tile set from leaves
"""

from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from tilemap.contracts.records import Entry, Leaf, RevisionInfo, Tile, TileRow


@runtime_checkable
class LogMirrorProtocol(Protocol):
    """Read-only view over the mirrored log.

    Example:
        checkpoint, total = mirror.metadata()
        for entry in mirror.entries(0, total):
            ...
    """

    def metadata(self) -> tuple[bytes | None, int]:
        """Return the latest checkpoint (None if absent) and the entry count.

        Raises:
            StoreError: If the mirror cannot be read
        """
        ...

    def entries(self, start: int, end: int) -> Iterator[Entry]:
        """Yield entries with start <= entry_id < end.

        Restartable: calling again with the same bounds yields the
        same set.
        """
        ...


@runtime_checkable
class TileStoreProtocol(Protocol):
    """Revisioned store of map tiles.

    Lifecycle of one build:
    1. next_write_revision() - allocate a fresh number
    2. write_tiles(rev, rows) - once or more, in batches
    3. commit_revision(rev, checkpoint, count) - makes rev visible

    If step 3 never happens the tiles of rev are orphaned, never
    visible through latest_revision().
    """

    def next_write_revision(self) -> int:
        """Allocate a revision number that has never been handed out."""
        ...

    def latest_revision(self) -> RevisionInfo | None:
        """Return the most recent committed revision, or None."""
        ...

    def write_tiles(self, revision: int, rows: Iterable[TileRow]) -> int:
        """Persist rows for an uncommitted revision. Returns rows written."""
        ...

    def read_tiles(self, revision: int) -> Iterator[TileRow]:
        """Yield every row of a committed revision."""
        ...

    def commit_revision(self, revision: int, checkpoint: bytes, covered_entries: int) -> RevisionInfo:
        """Finalize a revision. Must be the last write of a build."""
        ...


@runtime_checkable
class TreeBuilderProtocol(Protocol):
    """Pure construction of a complete tile set.

    Both operations must be deterministic in their inputs and
    independent of the order of leaves and tiles.
    """

    name: str

    def create(
        self,
        leaves: Iterable[Leaf],
        tree_id: int,
        hash_algorithm: str,
        prefix_strata: int,
    ) -> list[Tile]:
        """Build every tile of a new tree from leaves alone."""
        ...

    def update(
        self,
        prior_tiles: Iterable[Tile],
        leaves: Iterable[Leaf],
        tree_id: int,
        hash_algorithm: str,
        prefix_strata: int,
    ) -> list[Tile]:
        """Build every tile of a tree that extends prior_tiles with leaves."""
        ...
