"""Tests for entry to leaf derivation."""

from tilemap.contracts import Entry
from tilemap.tree import TreeHasher

_ENTRY = Entry(entry_id=0, module="golang.org/x/text", version="v0.3.2", repo_hash="h1:repo=", mod_hash="h1:mod=")


class TestEntryLeaves:
    """Tests for EntryLeaves."""

    def test_two_leaves_per_entry(self) -> None:
        from tilemap.pipeline import EntryLeaves

        hasher = TreeHasher(12345, "sha256")
        repo, mod = EntryLeaves(12345, "sha256")(_ENTRY)

        assert repo.key == hasher.hash_key("golang.org/x/text v0.3.2")
        assert repo.value == hasher.hash_leaf(repo.key, b"h1:repo=")
        assert mod.key == hasher.hash_key("golang.org/x/text v0.3.2/go.mod")
        assert mod.value == hasher.hash_leaf(mod.key, b"h1:mod=")

    def test_tree_id_salts_values_not_keys(self) -> None:
        from tilemap.pipeline import EntryLeaves

        first = EntryLeaves(1, "sha256")(_ENTRY)
        second = EntryLeaves(2, "sha256")(_ENTRY)

        assert [leaf.key for leaf in first] == [leaf.key for leaf in second]
        assert [leaf.value for leaf in first] != [leaf.value for leaf in second]

    def test_key_width_follows_algorithm(self) -> None:
        from tilemap.pipeline import EntryLeaves

        leaves = EntryLeaves(12345, "sha512")(_ENTRY)
        assert {len(leaf.key) for leaf in leaves} == {64}
