"""Tests for canonical JSON serialization and hashing."""

import math

import pytest
import rfc8785


class TestCanonicalJson:
    """Tests for canonical_json."""

    def test_sorted_keys_no_whitespace(self) -> None:
        from tilemap.core.canonical import canonical_json

        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, value: float) -> None:
        from tilemap.core.canonical import canonical_json

        with pytest.raises(rfc8785.CanonicalizationError):
            canonical_json({"x": value})


class TestStableHash:
    """Tests for stable_hash."""

    def test_key_order_does_not_matter(self) -> None:
        from tilemap.core.canonical import stable_hash

        assert stable_hash({"a": 1, "b": 2}) == stable_hash({"b": 2, "a": 1})

    def test_sha256_hex(self) -> None:
        from tilemap.core.canonical import stable_hash

        digest = stable_hash({"a": 1})
        assert len(digest) == 64
        int(digest, 16)


class TestGraphTopologyHash:
    """Tests for compute_graph_topology_hash."""

    @staticmethod
    def _graph(first: str, second: str, batch_size: int = 10) -> object:
        from tilemap.core.dag import TransformGraph

        graph = TransformGraph()
        graph.add_source(first, list, output_type=int)
        graph.add_source(second, list, output_type=int)
        graph.add_flatten("both", ["a", "b"], output_type=int)
        graph.add_sink("sink", "both", len, input_type=int, batch_size=batch_size)
        return graph

    def test_insertion_order_independent(self) -> None:
        from tilemap.core.canonical import compute_graph_topology_hash

        assert compute_graph_topology_hash(self._graph("a", "b")) == compute_graph_topology_hash(self._graph("b", "a"))

    def test_different_wiring_differs(self) -> None:
        from tilemap.core.canonical import compute_graph_topology_hash
        from tilemap.core.dag import TransformGraph

        other = TransformGraph()
        other.add_source("a", list, output_type=int)
        other.add_sink("sink", "a", len, input_type=int, batch_size=10)

        assert compute_graph_topology_hash(self._graph("a", "b")) != compute_graph_topology_hash(other)
