"""DataflowRunner: executes a TransformGraph to completion.

Stages run in topological order and each stage's output is
materialized before its consumers start. Map stages fan their records
out over a thread pool; no ordering is guaranteed between records of
the same stage, which is why every stage function must be pure.

The runner is synchronous from the caller's perspective: run() is the
single join point and returns only after every sink batch is written.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import batched, chain
from typing import Any

import structlog

from tilemap.contracts.enums import StageKind
from tilemap.contracts.errors import BuildError
from tilemap.core.dag import StageInfo, TransformGraph

logger = structlog.get_logger(__name__)


@dataclass
class RunStats:
    """Counters from one graph execution.

    Attributes:
        records_out: Records produced per non-sink stage
        records_written: Records handed to each sink
        batches_written: Sink batches per sink
        duration_seconds: Wall time of the whole run
    """

    records_out: dict[str, int] = field(default_factory=dict)
    records_written: dict[str, int] = field(default_factory=dict)
    batches_written: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0


class DataflowRunner:
    """Executes transform graphs with a bounded worker pool.

    Usage:
        runner = DataflowRunner(max_workers=8)
        stats = runner.run(graph)
    """

    def __init__(self, max_workers: int = 4, *, chunk_size: int = 256) -> None:
        """Initialize runner.

        Args:
            max_workers: Threads used by map stages (1 = run inline)
            chunk_size: Records handed to a worker per task
        """
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._max_workers = max_workers
        self._chunk_size = chunk_size

    def run(self, graph: TransformGraph) -> RunStats:
        """Validate and execute the graph.

        Raises:
            GraphValidationError: If the graph is malformed (nothing runs)
            BuildError: If any stage raises; no later stage runs
        """
        graph.validate()
        stats = RunStats()
        started = time.monotonic()

        outputs: dict[str, list[Any]] = {}
        # Outputs are released once every consumer has read them
        pending_consumers = {name: len(graph.consumers(name)) for name in graph.topological_order()}

        for name in graph.topological_order():
            stage = graph.get_stage(name)
            stage_started = time.monotonic()
            try:
                if stage.kind == StageKind.SINK:
                    written, batches = self._run_sink(stage, outputs[stage.inputs[0].upstream])
                    stats.records_written[name] = written
                    stats.batches_written[name] = batches
                else:
                    produced = self._run_stage(stage, outputs)
                    stats.records_out[name] = len(produced)
                    outputs[name] = produced
            except BuildError:
                raise
            except Exception as e:
                logger.error("stage_failed", stage=name, kind=stage.kind.value, error=str(e))
                raise BuildError(f"Stage '{name}' failed: {type(e).__name__}: {e}", stage=name) from e

            for upstream in stage.upstreams:
                pending_consumers[upstream] -= 1
                if pending_consumers[upstream] == 0:
                    del outputs[upstream]

            logger.debug(
                "stage_completed",
                stage=name,
                kind=stage.kind.value,
                records=stats.records_out.get(name, stats.records_written.get(name)),
                duration_seconds=round(time.monotonic() - stage_started, 3),
            )

        stats.duration_seconds = time.monotonic() - started
        return stats

    def _run_stage(self, stage: StageInfo, outputs: dict[str, list[Any]]) -> list[Any]:
        if stage.kind == StageKind.SOURCE:
            produced = list(self._call(stage)())
        elif stage.kind == StageKind.MAP:
            produced = self._run_map(self._call(stage), outputs[stage.inputs[0].upstream])
        elif stage.kind == StageKind.FLATTEN:
            produced = list(chain.from_iterable(outputs[inp.upstream] for inp in stage.inputs))
        elif stage.kind == StageKind.COMBINE:
            kwargs = {inp.param: outputs[inp.upstream] for inp in stage.inputs}
            produced = list(self._call(stage)(**kwargs))
        else:
            raise ValueError(f"Unknown stage kind: {stage.kind}")

        if stage.output_type is not None:
            for record in produced:
                if not isinstance(record, stage.output_type):
                    raise TypeError(f"produced {type(record).__qualname__}, declared {stage.output_type.__qualname__}")
        return produced

    def _run_map(self, fn: Callable[[Any], Iterable[Any]], records: list[Any]) -> list[Any]:
        def process_chunk(chunk: tuple[Any, ...]) -> list[Any]:
            return [out for record in chunk for out in fn(record)]

        chunks = list(batched(records, self._chunk_size))
        if self._max_workers == 1 or len(chunks) <= 1:
            return [out for chunk in chunks for out in process_chunk(chunk)]

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            # map() re-raises the first worker exception here
            results = list(pool.map(process_chunk, chunks))
        return list(chain.from_iterable(results))

    def _run_sink(self, stage: StageInfo, records: list[Any]) -> tuple[int, int]:
        assert stage.batch_size is not None  # add_sink() guarantees it
        write = self._call(stage)
        written = 0
        batches = 0
        for batch in batched(records, stage.batch_size):
            count = write(list(batch))
            written += count if count is not None else len(batch)
            batches += 1
        return written, batches

    @staticmethod
    def _call(stage: StageInfo) -> Callable[..., Any]:
        if stage.fn is None:
            raise ValueError(f"Stage '{stage.name}' has no function")
        return stage.fn
