"""Record types that flow between the stores and the build graph.

Leaf module: no intra-package imports beyond enums.
All records are frozen; transforms produce new records, never mutate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from tilemap.contracts.enums import BuildMode


@dataclass(frozen=True, slots=True)
class Entry:
    """One record of the checksum database log.

    Attributes:
        entry_id: Position in the log (0-based, contiguous)
        module: Module path, e.g. "golang.org/x/text"
        version: Module version, e.g. "v0.3.2"
        repo_hash: Hash line for the module zip ("h1:...")
        mod_hash: Hash line for the module's go.mod file ("h1:...")
    """

    entry_id: int
    module: str
    version: str
    repo_hash: str
    mod_hash: str

    @property
    def key(self) -> str:
        return f"{self.module} {self.version}"


@dataclass(frozen=True, slots=True)
class Leaf:
    """A keyed value ready for insertion into the tree.

    Both fields are digests produced by the tree hasher; key width is
    fixed for a given hash algorithm.
    """

    key: bytes
    value: bytes


@dataclass(frozen=True, slots=True)
class TileLeaf:
    """One slot of a tile: a path suffix below the tile and its hash."""

    path: bytes
    hash: bytes


@dataclass(frozen=True, slots=True)
class Tile:
    """One node of the stratified prefix tree.

    Attributes:
        path: Byte prefix locating the tile (b"" for the root tile)
        root_hash: Commitment to every leaf below this tile
        leaves: Slots sorted by path
    """

    path: bytes
    root_hash: bytes
    leaves: tuple[TileLeaf, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class TileRow:
    """Storage form of a tile in the tile store's tiles table."""

    revision: int
    path: bytes
    payload: bytes


@dataclass(frozen=True, slots=True)
class RevisionInfo:
    """Metadata of a committed revision."""

    revision: int
    checkpoint: bytes
    covered_entries: int
    committed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class BuildRange:
    """Resolved [start_id, end_id) span and mode for one build.

    last_revision is the committed revision being updated, or None in
    full mode.
    """

    start_id: int
    end_id: int
    mode: BuildMode
    last_revision: int | None = None

    @property
    def size(self) -> int:
        return self.end_id - self.start_id
