"""Shared contracts: records, errors, enums, events and protocols.

Leaf package: nothing here imports from tilemap.core, tilemap.engine
or any other subsystem.
"""

from tilemap.contracts.enums import BuildMode, BuildPhase, BuildStatus, OutputFormat, PhaseAction, StageKind
from tilemap.contracts.errors import (
    BuildError,
    ConfigError,
    MissingCheckpointError,
    RangeError,
    RevisionConflictError,
    StoreError,
    TileMapError,
)
from tilemap.contracts.events import BuildSummary, PhaseCompleted, PhaseError, PhaseStarted
from tilemap.contracts.protocols import LogMirrorProtocol, TileStoreProtocol, TreeBuilderProtocol
from tilemap.contracts.records import BuildRange, Entry, Leaf, RevisionInfo, Tile, TileLeaf, TileRow

__all__ = [
    "BuildError",
    "BuildMode",
    "BuildPhase",
    "BuildRange",
    "BuildStatus",
    "BuildSummary",
    "ConfigError",
    "Entry",
    "Leaf",
    "LogMirrorProtocol",
    "MissingCheckpointError",
    "OutputFormat",
    "PhaseAction",
    "PhaseCompleted",
    "PhaseError",
    "PhaseStarted",
    "RangeError",
    "RevisionConflictError",
    "RevisionInfo",
    "StageKind",
    "StoreError",
    "Tile",
    "TileLeaf",
    "TileMapError",
    "TileRow",
    "TileStoreProtocol",
    "TreeBuilderProtocol",
]
