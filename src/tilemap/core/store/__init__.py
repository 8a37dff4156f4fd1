"""Stores: the log mirror the build reads and the tile store it writes.

Primary API:
    LogMirror - Read access to the mirrored log
    TileStore - Revisioned tile persistence
    StoreDatabase - Connection management shared by both
"""

from tilemap.core.store.database import SchemaCompatibilityError, StoreDatabase
from tilemap.core.store.log_mirror import LogMirror
from tilemap.core.store.tile_store import ReclaimResult, TileStore

__all__ = [
    "LogMirror",
    "ReclaimResult",
    "SchemaCompatibilityError",
    "StoreDatabase",
    "TileStore",
]
