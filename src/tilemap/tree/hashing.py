"""Hashing for keys, leaves, tiles and version logs.

All hashes use one hashlib algorithm chosen by name. Leaf and tile
hashes are salted with the tree ID so that trees sharing a store can
never produce colliding tiles. Domain-separation prefixes keep leaf
hashes and tile hashes from being confused for each other.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

from tilemap.contracts.records import Tile, TileLeaf

_LEAF_PREFIX = b"\x00"
_NODE_PREFIX = b"\x01"


class TreeHasher:
    """Hash functions bound to one tree ID and algorithm.

    Instances are immutable and safe to share between threads.
    """

    def __init__(self, tree_id: int, algorithm: str) -> None:
        self._algorithm = algorithm.lower()
        if self._algorithm not in hashlib.algorithms_available:
            raise ValueError(f"unknown hash algorithm: {algorithm!r}")
        self._digest_size = hashlib.new(self._algorithm).digest_size
        if self._digest_size == 0:
            raise ValueError(f"hash algorithm {algorithm!r} has variable-length output")
        self._tree_id = tree_id
        self._salt = tree_id.to_bytes(8, "big", signed=True)

    @property
    def tree_id(self) -> int:
        return self._tree_id

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def digest_size(self) -> int:
        """Width in bytes of every key and hash this hasher produces."""
        return self._digest_size

    def digest(self, *parts: bytes) -> bytes:
        h = hashlib.new(self._algorithm)
        for part in parts:
            h.update(part)
        return h.digest()

    def hash_key(self, key: str) -> bytes:
        """Map a textual key to its fixed-width tree key (unsalted)."""
        return self.digest(key.encode("utf-8"))

    def hash_leaf(self, key: bytes, value: bytes) -> bytes:
        """Commit to a value stored under key in this tree."""
        return self.digest(_LEAF_PREFIX, self._salt, key, value)

    def hash_tile(self, path: bytes, leaves: Sequence[TileLeaf]) -> bytes:
        """Commit to a tile's position and its sorted slots.

        Lengths are encoded before variable-length fields so that no two
        distinct tiles share an encoding.
        """
        h = hashlib.new(self._algorithm)
        h.update(_NODE_PREFIX)
        h.update(self._salt)
        h.update(len(path).to_bytes(2, "big"))
        h.update(path)
        for leaf in leaves:
            h.update(len(leaf.path).to_bytes(2, "big"))
            h.update(leaf.path)
            h.update(leaf.hash)
        return h.digest()

    def make_tile(self, path: bytes, leaves: Sequence[TileLeaf]) -> Tile:
        """Build a Tile with slots sorted by path and its root hash computed."""
        ordered = tuple(sorted(leaves, key=lambda leaf: leaf.path))
        return Tile(path=path, root_hash=self.hash_tile(path, ordered), leaves=ordered)

    def merkle_root(self, items: Sequence[bytes]) -> bytes:
        """RFC 6962 Merkle tree hash of an ordered list of items.

        MTH({}) = H(), MTH({d}) = H(0x00 || d), and for n > 1 with k the
        largest power of two below n:
        MTH(D[n]) = H(0x01 || MTH(D[0:k]) || MTH(D[k:n])).
        """
        if not items:
            return self.digest()
        if len(items) == 1:
            return self.digest(_LEAF_PREFIX, items[0])
        split = 1 << ((len(items) - 1).bit_length() - 1)
        return self.digest(_NODE_PREFIX, self.merkle_root(items[:split]), self.merkle_root(items[split:]))
