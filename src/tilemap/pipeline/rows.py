"""Tile <-> storage row conversion.

Tile payloads are canonical JSON (RFC 8785) with byte fields base64
encoded, so equal tiles always serialize to equal bytes.

Example payload:
    {"leaves":[{"hash":"...","path":"AQ=="}],"path":"","root_hash":"..."}
"""

from __future__ import annotations

import base64
import json
from typing import Any

from tilemap.contracts.records import Tile, TileLeaf, TileRow
from tilemap.core.canonical import canonical_json


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def tile_to_payload(tile: Tile) -> bytes:
    """Serialize a tile to its stored payload."""
    doc = {
        "path": _b64(tile.path),
        "root_hash": _b64(tile.root_hash),
        "leaves": [{"path": _b64(leaf.path), "hash": _b64(leaf.hash)} for leaf in tile.leaves],
    }
    return canonical_json(doc).encode("utf-8")


def tile_from_payload(payload: bytes) -> Tile:
    """Parse a stored payload back into a Tile.

    Raises:
        ValueError: If the payload is not a well-formed tile document
    """
    try:
        doc: dict[str, Any] = json.loads(payload)
        return Tile(
            path=_unb64(doc["path"]),
            root_hash=_unb64(doc["root_hash"]),
            leaves=tuple(TileLeaf(path=_unb64(leaf["path"]), hash=_unb64(leaf["hash"])) for leaf in doc["leaves"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"malformed tile payload: {e}") from e


class TileToRow:
    """Map stage: tile to a storage row tagged with the build's revision."""

    def __init__(self, revision: int) -> None:
        self._revision = revision

    def __call__(self, tile: Tile) -> tuple[TileRow]:
        return (TileRow(revision=self._revision, path=tile.path, payload=tile_to_payload(tile)),)


def row_to_tile(row: TileRow) -> tuple[Tile]:
    """Map stage: stored row back to its tile.

    Raises:
        ValueError: If the payload is malformed or disagrees with the row's path
    """
    tile = tile_from_payload(row.payload)
    if tile.path != row.path:
        raise ValueError(f"tile payload path {tile.path.hex()!r} does not match row path {row.path.hex()!r}")
    return (tile,)
