"""Stratified prefix-tree builder.

Keys are split into `prefix_strata` one-byte strata followed by a final
stratum holding the remaining key bytes:

    depth 0               root tile, path b""
    depth 1..strata-1     one tile per populated byte prefix
    depth strata          leaf tiles; slots are key suffixes -> leaf values

A tile at depth d < strata holds one slot per populated child, keyed by
the child's next path byte and carrying the child's root hash. Every
build returns the complete tile set, root included, so a revision can
be read without reference to earlier revisions.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

import structlog

from tilemap.contracts.records import Leaf, Tile, TileLeaf
from tilemap.tree.hashing import TreeHasher

logger = structlog.get_logger(__name__)


class DuplicateKeyError(ValueError):
    """Raised when one batch of leaves holds the same key twice."""

    pass


class TileMismatchError(ValueError):
    """Raised when prior tiles were not built with the given tree parameters."""

    pass


class StratifiedTreeBuilder:
    """Builds and updates stratified tile sets.

    Stateless: one instance can serve any number of builds and threads.
    """

    name = "stratified"

    def create(
        self,
        leaves: Iterable[Leaf],
        tree_id: int,
        hash_algorithm: str,
        prefix_strata: int,
    ) -> list[Tile]:
        """Build every tile of a tree holding exactly `leaves`.

        Raises:
            DuplicateKeyError: If two leaves share a key
            ValueError: If a key has the wrong width for the algorithm
        """
        hasher = TreeHasher(tree_id, hash_algorithm)
        values = _collect_leaves(leaves, hasher, prefix_strata)
        leaf_tiles = _build_leaf_tiles(hasher, values)
        return _assemble(hasher, leaf_tiles, prefix_strata)

    def update(
        self,
        prior_tiles: Iterable[Tile],
        leaves: Iterable[Leaf],
        tree_id: int,
        hash_algorithm: str,
        prefix_strata: int,
    ) -> list[Tile]:
        """Build every tile of the tree `prior_tiles` extended with `leaves`.

        A new leaf whose key already exists replaces the old value. Leaf
        tiles untouched by the new leaves are carried over unchanged;
        touched ones and every upper-stratum tile are recomputed.

        Raises:
            DuplicateKeyError: If two new leaves share a key
            TileMismatchError: If a prior leaf tile does not verify under
                these parameters, or its depth disagrees with prefix_strata
        """
        hasher = TreeHasher(tree_id, hash_algorithm)
        new_values = _collect_leaves(leaves, hasher, prefix_strata)

        prior_leaf_tiles: dict[bytes, Tile] = {}
        prior_root: Tile | None = None
        for tile in prior_tiles:
            if len(tile.path) > prefix_strata:
                raise TileMismatchError(f"prior tile at depth {len(tile.path)} is deeper than prefix_strata={prefix_strata}")
            if tile.path == b"":
                prior_root = tile
            if len(tile.path) < prefix_strata:
                # Upper strata are always rebuilt
                continue
            if hasher.hash_tile(tile.path, tile.leaves) != tile.root_hash:
                raise TileMismatchError(f"prior tile {tile.path.hex()!r} does not verify for tree_id={tree_id} with {hasher.algorithm}")
            prior_leaf_tiles[tile.path] = tile

        # The leaf tiles must account for the whole prior tree, or leaves
        # held at another depth would be dropped
        if prior_root is None:
            raise TileMismatchError("prior tile set has no root tile")
        rebuilt_root = _assemble(hasher, prior_leaf_tiles, prefix_strata)[0]
        if rebuilt_root.root_hash != prior_root.root_hash:
            raise TileMismatchError(
                f"prior leaf tiles at depth {prefix_strata} do not reproduce the prior root; "
                f"was it built with a different prefix_strata?"
            )

        touched: dict[bytes, dict[bytes, bytes]] = defaultdict(dict)
        for prefix, suffixes in new_values.items():
            merged = touched[prefix]
            prior = prior_leaf_tiles.get(prefix)
            if prior is not None:
                merged.update((slot.path, slot.hash) for slot in prior.leaves)
            merged.update(suffixes)

        leaf_tiles = dict(prior_leaf_tiles)
        leaf_tiles.update(_build_leaf_tiles(hasher, touched))
        logger.debug(
            "tree_update",
            prior_leaf_tiles=len(prior_leaf_tiles),
            touched_leaf_tiles=len(touched),
            new_leaves=sum(len(v) for v in new_values.values()),
        )
        return _assemble(hasher, leaf_tiles, prefix_strata)


def _collect_leaves(leaves: Iterable[Leaf], hasher: TreeHasher, prefix_strata: int) -> dict[bytes, dict[bytes, bytes]]:
    """Group leaves by leaf-tile prefix: prefix -> {key suffix: value}."""
    grouped: dict[bytes, dict[bytes, bytes]] = defaultdict(dict)
    for leaf in leaves:
        if len(leaf.key) != hasher.digest_size:
            raise ValueError(f"leaf key is {len(leaf.key)} bytes, expected {hasher.digest_size} for {hasher.algorithm}")
        prefix, suffix = leaf.key[:prefix_strata], leaf.key[prefix_strata:]
        slots = grouped[prefix]
        if suffix in slots:
            raise DuplicateKeyError(f"duplicate leaf key {leaf.key.hex()}")
        slots[suffix] = leaf.value
    return grouped


def _build_leaf_tiles(hasher: TreeHasher, grouped: dict[bytes, dict[bytes, bytes]]) -> dict[bytes, Tile]:
    return {
        prefix: hasher.make_tile(prefix, [TileLeaf(path=suffix, hash=value) for suffix, value in slots.items()])
        for prefix, slots in grouped.items()
    }


def _assemble(hasher: TreeHasher, leaf_tiles: dict[bytes, Tile], prefix_strata: int) -> list[Tile]:
    """Build the upper strata over leaf_tiles and return the full tile set.

    Ordered by (depth, path) so output is identical for identical input.
    """
    all_tiles = list(leaf_tiles.values())
    level = leaf_tiles
    for depth in range(prefix_strata - 1, -1, -1):
        children: dict[bytes, list[TileLeaf]] = defaultdict(list)
        for path, tile in level.items():
            children[path[:depth]].append(TileLeaf(path=path[depth : depth + 1], hash=tile.root_hash))
        level = {path: hasher.make_tile(path, slots) for path, slots in children.items()}
        all_tiles.extend(level.values())
    if b"" not in level:
        # Empty tree
        all_tiles.append(hasher.make_tile(b"", []))
    return sorted(all_tiles, key=lambda t: (len(t.path), t.path))
