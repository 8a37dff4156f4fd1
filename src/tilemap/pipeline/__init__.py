"""Record transforms used by the build graph.

- EntryLeaves: log entry -> leaves (map)
- VersionLists: entries -> one leaf per module (combine)
- TileToRow / row_to_tile: tile <-> storage row (map)
"""

from tilemap.pipeline.entries import EntryLeaves
from tilemap.pipeline.rows import TileToRow, row_to_tile, tile_from_payload, tile_to_payload
from tilemap.pipeline.version_list import VersionLists, build_version_lists, semver_key

__all__ = [
    "EntryLeaves",
    "TileToRow",
    "VersionLists",
    "build_version_lists",
    "row_to_tile",
    "semver_key",
    "tile_from_payload",
    "tile_to_payload",
]
