"""Property tests for tree construction and graph execution."""

import hashlib

from hypothesis import given, settings
from hypothesis import strategies as st

from tilemap.contracts.records import Leaf
from tilemap.tree import StratifiedTreeBuilder

TREE_ID = 12345
ALGORITHM = "sha256"


def _leaf(n: int, value: bytes = b"v") -> Leaf:
    return Leaf(key=hashlib.sha256(n.to_bytes(4, "big")).digest(), value=hashlib.sha256(value + n.to_bytes(4, "big")).digest())


key_sets = st.sets(st.integers(min_value=0, max_value=10_000), max_size=60)


class TestTreeProperties:
    """Laws of StratifiedTreeBuilder."""

    @settings(deadline=None)
    @given(key_sets, st.randoms(use_true_random=False), st.integers(min_value=0, max_value=3))
    def test_leaf_order_does_not_matter(self, keys: set[int], rnd: object, strata: int) -> None:
        leaves = [_leaf(n) for n in keys]
        shuffled = list(leaves)
        rnd.shuffle(shuffled)  # type: ignore[attr-defined]
        builder = StratifiedTreeBuilder()

        assert builder.create(leaves, TREE_ID, ALGORITHM, strata) == builder.create(shuffled, TREE_ID, ALGORITHM, strata)

    @settings(deadline=None)
    @given(key_sets, key_sets, st.integers(min_value=0, max_value=3))
    def test_update_equals_create_of_union(self, old_keys: set[int], new_keys: set[int], strata: int) -> None:
        new_keys = new_keys - old_keys
        old = [_leaf(n) for n in old_keys]
        new = [_leaf(n) for n in new_keys]
        builder = StratifiedTreeBuilder()

        prior = builder.create(old, TREE_ID, ALGORITHM, strata)
        updated = builder.update(prior, new, TREE_ID, ALGORITHM, strata)

        assert updated == builder.create(old + new, TREE_ID, ALGORITHM, strata)

    @settings(deadline=None)
    @given(key_sets.filter(bool), st.integers(min_value=0, max_value=3))
    def test_replaced_values_win(self, keys: set[int], strata: int) -> None:
        builder = StratifiedTreeBuilder()
        prior = builder.create([_leaf(n) for n in keys], TREE_ID, ALGORITHM, strata)
        changed = [_leaf(n, b"new") for n in sorted(keys)[:3]]
        untouched = [_leaf(n) for n in sorted(keys)[3:]]

        updated = builder.update(prior, changed, TREE_ID, ALGORITHM, strata)

        assert updated == builder.create(changed + untouched, TREE_ID, ALGORITHM, strata)

    @settings(deadline=None)
    @given(key_sets, st.integers(min_value=0, max_value=3))
    def test_exactly_one_root(self, keys: set[int], strata: int) -> None:
        tiles = StratifiedTreeBuilder().create([_leaf(n) for n in keys], TREE_ID, ALGORITHM, strata)

        assert [t.path for t in tiles].count(b"") == 1
        assert all(len(t.path) <= strata for t in tiles)


class TestRunnerProperties:
    """The runner produces the same records however work is split."""

    @settings(deadline=None, max_examples=50)
    @given(
        st.lists(st.integers(), max_size=200),
        st.integers(min_value=1, max_value=4),
        st.integers(min_value=1, max_value=16),
        st.integers(min_value=1, max_value=50),
    )
    def test_map_output_multiset(self, records: list[int], workers: int, chunk: int, batch: int) -> None:
        from tilemap.core.dag import TransformGraph
        from tilemap.engine import DataflowRunner

        written: list[int] = []
        graph = TransformGraph()
        graph.add_source("numbers", lambda: records, output_type=int)
        graph.add_map("doubled", "numbers", lambda n: [n, n * 2], input_type=int, output_type=int)
        graph.add_sink("sink", "doubled", written.extend, input_type=int, batch_size=batch)

        stats = DataflowRunner(max_workers=workers, chunk_size=chunk).run(graph)

        expected = [out for n in records for out in (n, n * 2)]
        assert sorted(written) == sorted(expected)
        assert stats.records_written["sink"] == len(expected)
        assert stats.batches_written["sink"] == -(-len(expected) // batch)
