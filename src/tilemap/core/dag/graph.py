"""TransformGraph: a statically typed dataflow graph of build stages.

Each stage is declared with explicit input and output record types and
wired to its upstream stages by name. The graph only describes the
computation; DataflowRunner executes it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

import networkx as nx

from tilemap.contracts.enums import StageKind
from tilemap.core.dag.models import GraphValidationError, StageInfo, StageInput


class TransformGraph:
    """Typed graph of source, map, flatten, combine and sink stages.

    Wraps a NetworkX DiGraph. Stages must be added after the stages they
    read from, so a graph built only through the add_* methods cannot
    reference an unknown stage.

    Example:
        graph = TransformGraph()
        graph.add_source("entries", lambda: mirror.entries(0, 10), output_type=Entry)
        graph.add_map("leaves", "entries", derive_leaves, input_type=Entry, output_type=Leaf)
        graph.add_sink("sink", "leaves", write_batch, input_type=Leaf, batch_size=100)
        graph.validate()
    """

    def __init__(self) -> None:
        self._graph: nx.DiGraph[str] = nx.DiGraph()

    @property
    def node_count(self) -> int:
        """Number of stages in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Number of stage-to-stage edges."""
        return self._graph.number_of_edges()

    def get_stage(self, name: str) -> StageInfo:
        """Get the StageInfo of a stage.

        Raises:
            KeyError: If no stage has that name
        """
        if not self._graph.has_node(name):
            raise KeyError(f"Stage not found: {name}")
        info: StageInfo = self._graph.nodes[name]["info"]
        return info

    def stages(self) -> list[StageInfo]:
        """All stages, in insertion order."""
        return [data["info"] for _, data in self._graph.nodes(data=True)]

    def edges(self) -> list[tuple[str, str]]:
        return list(self._graph.edges())

    def sources(self) -> list[str]:
        return [s.name for s in self.stages() if s.kind == StageKind.SOURCE]

    def sinks(self) -> list[str]:
        return [s.name for s in self.stages() if s.kind == StageKind.SINK]

    def consumers(self, name: str) -> list[str]:
        """Stages reading the output of `name`."""
        return list(self._graph.successors(name))

    def topological_order(self) -> list[str]:
        """Stage names in dependency order; ties broken by name for stable runs."""
        return list(nx.lexicographical_topological_sort(self._graph))

    # === Construction ===

    def add_source(self, name: str, fn: Callable[[], Iterable[Any]], *, output_type: type) -> str:
        """Add a stage producing records from outside the graph."""
        self._add(StageInfo(name=name, kind=StageKind.SOURCE, fn=fn, output_type=output_type))
        return name

    def add_map(
        self,
        name: str,
        upstream: str,
        fn: Callable[[Any], Iterable[Any]],
        *,
        input_type: type,
        output_type: type,
    ) -> str:
        """Add a per-record stage emitting zero or more outputs per input.

        The function must be pure: the runner calls it from many threads
        in no particular order.
        """
        inputs = (StageInput(param="records", upstream=upstream, record_type=input_type),)
        self._add(StageInfo(name=name, kind=StageKind.MAP, fn=fn, inputs=inputs, output_type=output_type))
        return name

    def add_flatten(self, name: str, upstreams: Sequence[str], *, output_type: type) -> str:
        """Add a stage whose output is the union of its inputs."""
        if len(upstreams) < 2:
            raise GraphValidationError(f"flatten stage '{name}' needs at least two inputs, got {len(upstreams)}")
        inputs = tuple(StageInput(param=f"input_{i}", upstream=up, record_type=output_type) for i, up in enumerate(upstreams))
        self._add(StageInfo(name=name, kind=StageKind.FLATTEN, fn=None, inputs=inputs, output_type=output_type))
        return name

    def add_combine(
        self,
        name: str,
        inputs: Mapping[str, str],
        fn: Callable[..., Iterable[Any]],
        *,
        input_types: Mapping[str, type],
        output_type: type,
    ) -> str:
        """Add a whole-collection stage.

        Args:
            name: Stage name
            inputs: Function parameter name -> upstream stage name
            fn: Called once with every input collection as a keyword argument
            input_types: Function parameter name -> record type
            output_type: Type of every output record
        """
        if set(inputs) != set(input_types):
            raise GraphValidationError(f"combine stage '{name}' declares types for {sorted(input_types)} but inputs {sorted(inputs)}")
        wired = tuple(StageInput(param=param, upstream=up, record_type=input_types[param]) for param, up in inputs.items())
        self._add(StageInfo(name=name, kind=StageKind.COMBINE, fn=fn, inputs=wired, output_type=output_type))
        return name

    def add_sink(
        self,
        name: str,
        upstream: str,
        fn: Callable[[list[Any]], int | None],
        *,
        input_type: type,
        batch_size: int,
    ) -> str:
        """Add a stage writing its input out in batches of batch_size."""
        if batch_size <= 0:
            raise GraphValidationError(f"sink stage '{name}' batch_size must be positive, got {batch_size}")
        inputs = (StageInput(param="records", upstream=upstream, record_type=input_type),)
        self._add(StageInfo(name=name, kind=StageKind.SINK, fn=fn, inputs=inputs, batch_size=batch_size))
        return name

    def _add(self, info: StageInfo) -> None:
        if self._graph.has_node(info.name):
            raise GraphValidationError(f"Duplicate stage name: '{info.name}'")
        for inp in info.inputs:
            if not self._graph.has_node(inp.upstream):
                raise GraphValidationError(f"Stage '{info.name}' reads from unknown stage '{inp.upstream}'")
            if self.get_stage(inp.upstream).kind == StageKind.SINK:
                raise GraphValidationError(f"Stage '{info.name}' reads from sink '{inp.upstream}', which has no output")
        self._graph.add_node(info.name, info=info)
        for inp in info.inputs:
            self._graph.add_edge(inp.upstream, info.name)

    # === Validation ===

    def validate(self) -> None:
        """Validate the graph structure and record types.

        Validates:
        1. Graph is acyclic
        2. At least one source and one sink exist
        3. Every stage is reachable from a source
        4. Every non-sink stage feeds something
        5. Each input's declared record type accepts the upstream output type

        Raises:
            GraphValidationError: If validation fails
        """
        if not nx.is_directed_acyclic_graph(self._graph):
            cycle = nx.find_cycle(self._graph)
            raise GraphValidationError("Graph contains a cycle: " + " -> ".join(edge[0] for edge in cycle))

        sources = self.sources()
        if not sources:
            raise GraphValidationError("Graph must have at least one source")
        if not self.sinks():
            raise GraphValidationError("Graph must have at least one sink")

        reachable: set[str] = set(sources)
        for source in sources:
            reachable |= nx.descendants(self._graph, source)
        unreachable = sorted(set(self._graph.nodes) - reachable)
        if unreachable:
            raise GraphValidationError(f"Stages not reachable from any source: {unreachable}")

        dangling = sorted(s.name for s in self.stages() if s.kind != StageKind.SINK and self._graph.out_degree(s.name) == 0)
        if dangling:
            raise GraphValidationError(f"Stages whose output is never consumed: {dangling}")

        for stage in self.stages():
            for inp in stage.inputs:
                produced = self.get_stage(inp.upstream).output_type
                if produced is None or not issubclass(produced, inp.record_type):
                    produced_name = produced.__qualname__ if produced is not None else "nothing"
                    raise GraphValidationError(
                        f"Stage '{stage.name}' expects {inp.record_type.__qualname__} from '{inp.upstream}', which produces {produced_name}"
                    )
