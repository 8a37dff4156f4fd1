"""Build plan and result types.

This module is a leaf: it must not import from other orchestrator
submodules, which import from here.
"""

from __future__ import annotations

from dataclasses import dataclass

from tilemap.contracts.enums import BuildMode
from tilemap.contracts.records import BuildRange
from tilemap.engine.runner import RunStats


@dataclass(frozen=True)
class BuildPlan:
    """Everything fixed before the build graph is assembled.

    Attributes:
        revision: Allocated revision the tiles are written to
        range: Entry range and mode of this build
        checkpoint: Log checkpoint the revision will be bound to
        tree_id: Salt for all tree hashing
        hash_algorithm: hashlib algorithm name
        prefix_strata: Number of one-byte strata above the leaf tiles
        write_batch_size: Rows per sink batch
        build_version_list: Whether to add per-module version list leaves
    """

    revision: int
    range: BuildRange
    checkpoint: bytes
    tree_id: int
    hash_algorithm: str
    prefix_strata: int
    write_batch_size: int
    build_version_list: bool = False

    @property
    def mode(self) -> BuildMode:
        return self.range.mode


@dataclass
class BuildResult:
    """Outcome of a committed build."""

    revision: int
    range: BuildRange
    checkpoint: bytes
    tiles_written: int
    graph_hash: str
    stats: RunStats
    duration_seconds: float

    @property
    def mode(self) -> BuildMode:
        return self.range.mode
