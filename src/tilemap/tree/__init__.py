"""Prefix-tree construction.

StratifiedTreeBuilder is the built-in TreeBuilder; TreeHasher holds the
hash functions it and the leaf-derivation transforms share.
"""

from tilemap.tree.hashing import TreeHasher
from tilemap.tree.stratified import DuplicateKeyError, StratifiedTreeBuilder, TileMismatchError

__all__ = [
    "DuplicateKeyError",
    "StratifiedTreeBuilder",
    "TileMismatchError",
    "TreeHasher",
]
