"""Leaf derivation: checksum database entries to map leaves."""

from __future__ import annotations

from tilemap.contracts.records import Entry, Leaf
from tilemap.tree.hashing import TreeHasher


class EntryLeaves:
    """Map stage: one log entry to the two leaves it commits.

    An entry for module M at version V yields:
    - key H("M V")        -> leaf hash of the module zip hash
    - key H("M V/go.mod") -> leaf hash of the go.mod hash

    These are the two lines the checksum database serves for every
    module version, so a client can look up either by its go.sum line.
    """

    def __init__(self, tree_id: int, hash_algorithm: str) -> None:
        self._hasher = TreeHasher(tree_id, hash_algorithm)

    def __call__(self, entry: Entry) -> tuple[Leaf, Leaf]:
        repo_key = self._hasher.hash_key(entry.key)
        mod_key = self._hasher.hash_key(f"{entry.key}/go.mod")
        return (
            Leaf(key=repo_key, value=self._hasher.hash_leaf(repo_key, entry.repo_hash.encode("utf-8"))),
            Leaf(key=mod_key, value=self._hasher.hash_leaf(mod_key, entry.mod_hash.encode("utf-8"))),
        )
