"""Per-module version lists.

For every module seen in the build range, emits one leaf keyed by the
module path whose value commits to the RFC 6962 Merkle root of the
module's versions in semantic version order. A client holding that
root can verify the full list of versions the log knows for a module.

The list is derived from every entry of the module in the range, which
is why version lists need a full build: an incremental range only sees
the versions added since the last revision.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable

from tilemap.contracts.records import Entry, Leaf
from tilemap.tree.hashing import TreeHasher

# Go module versions are semantic versions with a mandatory "v" prefix,
# e.g. v1.2.3, v0.0.0-20191109021931-daa7c04131f5, v2.0.0+incompatible
_SEMVER_PATTERN = re.compile(r"^v(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$")


def semver_key(version: str) -> tuple[object, ...]:
    """Sort key implementing semantic version precedence.

    Pre-releases sort before their release; pre-release identifiers
    compare numerically when numeric, lexically otherwise, with numeric
    identifiers first. Build metadata does not affect precedence, and
    the raw string breaks ties. Strings that are not semantic versions
    sort after all valid versions, lexically.
    """
    match = _SEMVER_PATTERN.match(version)
    if match is None:
        return (1, (), (), version)
    core = (int(match.group(1)), int(match.group(2)), int(match.group(3)))
    prerelease = match.group(4)
    if prerelease is None:
        pre_key: tuple[object, ...] = (1,)
    else:
        pre_key = (0, tuple((0, int(part), "") if part.isdigit() else (1, 0, part) for part in prerelease.split(".")))
    return (0, core, pre_key, version)


def build_version_lists(entries: Iterable[Entry], tree_id: int, hash_algorithm: str) -> list[Leaf]:
    """One leaf per module committing to its versions, ordered by module."""
    hasher = TreeHasher(tree_id, hash_algorithm)
    versions: dict[str, set[str]] = defaultdict(set)
    for entry in entries:
        versions[entry.module].add(entry.version)

    leaves = []
    for module in sorted(versions):
        ordered = sorted(versions[module], key=semver_key)
        key = hasher.hash_key(module)
        root = hasher.merkle_root([v.encode("utf-8") for v in ordered])
        leaves.append(Leaf(key=key, value=hasher.hash_leaf(key, root)))
    return leaves


class VersionLists:
    """Combine stage adapter for build_version_lists."""

    def __init__(self, tree_id: int, hash_algorithm: str) -> None:
        self._tree_id = tree_id
        self._hash_algorithm = hash_algorithm

    def __call__(self, entries: Iterable[Entry]) -> list[Leaf]:
        return build_version_lists(entries, self._tree_id, self._hash_algorithm)
