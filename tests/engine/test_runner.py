"""Tests for DataflowRunner."""

from collections import Counter

import pytest

from tilemap.core.dag import TransformGraph


def _collecting_graph(records: list[int], fn, batch_size: int = 3) -> tuple[TransformGraph, list[list[int]]]:  # type: ignore[no-untyped-def]
    batches: list[list[int]] = []

    def write(batch: list[int]) -> int:
        batches.append(batch)
        return len(batch)

    graph = TransformGraph()
    graph.add_source("src", lambda: iter(records), output_type=int)
    graph.add_map("map", "src", fn, input_type=int, output_type=int)
    graph.add_sink("sink", "map", write, input_type=int, batch_size=batch_size)
    return graph, batches


class TestRunner:
    """Tests for graph execution."""

    def test_map_and_batched_sink(self) -> None:
        from tilemap.engine import DataflowRunner

        graph, batches = _collecting_graph(list(range(10)), lambda x: [x + 1])
        stats = DataflowRunner(max_workers=1).run(graph)

        assert sorted(x for batch in batches for x in batch) == list(range(1, 11))
        assert [len(b) for b in batches] == [3, 3, 3, 1]
        assert stats.records_out == {"src": 10, "map": 10}
        assert stats.records_written == {"sink": 10}
        assert stats.batches_written == {"sink": 4}
        assert stats.duration_seconds >= 0

    def test_parallel_map_same_multiset(self) -> None:
        from tilemap.engine import DataflowRunner

        records = list(range(500))
        graph, batches = _collecting_graph(records, lambda x: [x, x * 1000], batch_size=64)
        DataflowRunner(max_workers=4, chunk_size=16).run(graph)

        produced = Counter(x for batch in batches for x in batch)
        assert produced == Counter(records) + Counter(x * 1000 for x in records)

    def test_map_may_drop_records(self) -> None:
        from tilemap.engine import DataflowRunner

        graph, batches = _collecting_graph(list(range(6)), lambda x: [x] if x % 2 else [])
        DataflowRunner(max_workers=1).run(graph)

        assert sorted(x for batch in batches for x in batch) == [1, 3, 5]

    def test_sink_returning_none_counts_batch(self) -> None:
        from tilemap.engine import DataflowRunner

        graph = TransformGraph()
        graph.add_source("src", lambda: range(5), output_type=int)
        graph.add_sink("sink", "src", lambda batch: None, input_type=int, batch_size=2)

        stats = DataflowRunner().run(graph)
        assert stats.records_written == {"sink": 5}
        assert stats.batches_written == {"sink": 3}

    def test_flatten_and_combine(self) -> None:
        from tilemap.engine import DataflowRunner

        written: list[int] = []
        graph = TransformGraph()
        graph.add_source("a", lambda: [1, 2], output_type=int)
        graph.add_source("b", lambda: [10], output_type=int)
        graph.add_flatten("both", ["a", "b"], output_type=int)
        graph.add_combine(
            "total",
            {"values": "both", "offsets": "b"},
            lambda values, offsets: [sum(values) + sum(offsets)],
            input_types={"values": int, "offsets": int},
            output_type=int,
        )
        graph.add_sink("sink", "total", written.extend, input_type=int, batch_size=10)

        DataflowRunner().run(graph)
        assert written == [23]

    def test_stage_failure_wrapped(self) -> None:
        from tilemap.contracts import BuildError
        from tilemap.engine import DataflowRunner

        def explode(x: int) -> list[int]:
            raise ValueError("bad record")

        graph, batches = _collecting_graph([1, 2, 3], explode)

        with pytest.raises(BuildError, match="bad record") as exc_info:
            DataflowRunner(max_workers=1).run(graph)

        assert exc_info.value.stage == "map"
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert batches == []

    def test_parallel_failure_wrapped(self) -> None:
        from tilemap.contracts import BuildError
        from tilemap.engine import DataflowRunner

        def explode_on_seven(x: int) -> list[int]:
            if x == 7:
                raise RuntimeError("seven")
            return [x]

        graph, batches = _collecting_graph(list(range(100)), explode_on_seven)

        with pytest.raises(BuildError) as exc_info:
            DataflowRunner(max_workers=4, chunk_size=5).run(graph)
        assert exc_info.value.stage == "map"
        assert batches == []

    def test_output_type_enforced(self) -> None:
        from tilemap.contracts import BuildError
        from tilemap.engine import DataflowRunner

        graph, _ = _collecting_graph([1], lambda x: [str(x)])

        with pytest.raises(BuildError, match="produced str"):
            DataflowRunner().run(graph)

    def test_invalid_graph_runs_nothing(self) -> None:
        from tilemap.core.dag import GraphValidationError
        from tilemap.engine import DataflowRunner

        called: list[bool] = []
        graph = TransformGraph()
        graph.add_source("src", lambda: called.append(True) or [], output_type=int)

        with pytest.raises(GraphValidationError):
            DataflowRunner().run(graph)
        assert called == []

    @pytest.mark.parametrize("kwargs", [{"max_workers": 0}, {"chunk_size": 0}])
    def test_invalid_parameters(self, kwargs: dict[str, int]) -> None:
        from tilemap.engine import DataflowRunner

        with pytest.raises(ValueError):
            DataflowRunner(**kwargs)
