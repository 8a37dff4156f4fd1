"""BuildOrchestrator: runs one map build from mirror metadata to commit.

Phases, in order:

    CONFIG    reject contradictory mode flags (no I/O)
    METADATA  read checkpoint and entry count from the log mirror
    RANGE     resolve the entry range (reads the tile store when incremental)
    ALLOCATE  allocate a fresh revision number
    GRAPH     assemble and validate the build graph
    EXECUTE   run the graph; tiles are written by its sink
    COMMIT    bind the revision to the checkpoint, making it visible

Nothing is written before ALLOCATE. A failure after it leaves the
allocated revision uncommitted: its tiles are orphaned and can be
reclaimed, and the number is never handed out again.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from tilemap.contracts.enums import BuildMode, BuildPhase, BuildStatus, PhaseAction
from tilemap.contracts.errors import BuildError, MissingCheckpointError
from tilemap.contracts.events import BuildSummary, PhaseCompleted, PhaseError, PhaseStarted
from tilemap.contracts.protocols import LogMirrorProtocol, TileStoreProtocol, TreeBuilderProtocol
from tilemap.contracts.records import BuildRange
from tilemap.core.canonical import compute_graph_topology_hash
from tilemap.core.config import BuildSettings, resolve_config
from tilemap.core.dag import GraphValidationError
from tilemap.core.events import EventBusProtocol, NullEventBus
from tilemap.engine.orchestrator.pipeline import STAGE_SINK, assemble_build_graph
from tilemap.engine.orchestrator.types import BuildPlan, BuildResult
from tilemap.engine.range import check_build_mode, resolve_build_range
from tilemap.engine.runner import DataflowRunner

logger = structlog.get_logger(__name__)


class BuildOrchestrator:
    """Orchestrates one build invocation.

    Single-threaded control code: the only concurrency is inside the
    runner, and run() blocks until the graph has finished.

    Example:
        orchestrator = BuildOrchestrator(settings, mirror, store, StratifiedTreeBuilder())
        result = orchestrator.run()
    """

    def __init__(
        self,
        settings: BuildSettings,
        log_mirror: LogMirrorProtocol,
        tile_store: TileStoreProtocol,
        tree_builder: TreeBuilderProtocol,
        *,
        runner: DataflowRunner | None = None,
        event_bus: EventBusProtocol | None = None,
    ) -> None:
        self._settings = settings
        self._log_mirror = log_mirror
        self._tile_store = tile_store
        self._tree_builder = tree_builder
        self._runner = runner if runner is not None else DataflowRunner(max_workers=settings.concurrency.max_workers)
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()

    @contextmanager
    def _phase(self, phase: BuildPhase, action: PhaseAction, target: str | None = None) -> Iterator[None]:
        phase_start = time.perf_counter()
        self._events.emit(PhaseStarted(phase=phase, action=action, target=target))
        try:
            yield
        except Exception as e:
            self._events.emit(PhaseError(phase=phase, error=e, target=target))
            raise
        self._events.emit(PhaseCompleted(phase=phase, duration_seconds=time.perf_counter() - phase_start))

    def run(self) -> BuildResult:
        """Execute the build and commit a new revision.

        Raises:
            ConfigError: Contradictory mode flags (before any I/O)
            MissingCheckpointError: The mirror holds no checkpoint
            RangeError: No valid entry range
            StoreError: Mirror or tile store I/O failed, or the commit conflicted
            BuildError: A graph stage failed; the revision stays uncommitted
        """
        settings = self._settings
        run_start = time.perf_counter()
        mode: BuildMode | None = None
        build_range: BuildRange | None = None
        revision: int | None = None

        try:
            with self._phase(BuildPhase.CONFIG, PhaseAction.VALIDATING):
                mode = check_build_mode(settings.incremental_update, settings.build_version_list)

            with self._phase(BuildPhase.METADATA, PhaseAction.READING):
                checkpoint, total_entries = self._log_mirror.metadata()
                if checkpoint is None:
                    raise MissingCheckpointError("log mirror has no checkpoint to bind the revision to")

            with self._phase(BuildPhase.RANGE, PhaseAction.RESOLVING):
                build_range = resolve_build_range(
                    total_entries,
                    settings.count,
                    incremental=settings.incremental_update,
                    build_version_list=settings.build_version_list,
                    tile_store=self._tile_store,
                )

            with self._phase(BuildPhase.ALLOCATE, PhaseAction.ALLOCATING):
                revision = self._tile_store.next_write_revision()

            log = logger.bind(revision=revision, mode=mode.value, start_id=build_range.start_id, end_id=build_range.end_id)
            log.info(
                "build_started",
                total_entries=total_entries,
                entries=build_range.size,
                last_revision=build_range.last_revision,
                config=resolve_config(settings),
            )

            plan = BuildPlan(
                revision=revision,
                range=build_range,
                checkpoint=checkpoint,
                tree_id=settings.tree_id,
                hash_algorithm=settings.hash_algorithm,
                prefix_strata=settings.prefix_strata,
                write_batch_size=settings.write_batch_size,
                build_version_list=settings.build_version_list,
            )

            with self._phase(BuildPhase.GRAPH, PhaseAction.BUILDING):
                try:
                    graph = assemble_build_graph(plan, self._log_mirror, self._tile_store, self._tree_builder)
                    graph.validate()
                except GraphValidationError as e:
                    raise BuildError(f"Invalid build graph: {e}") from e
                graph_hash = compute_graph_topology_hash(graph)
            log.debug("graph_assembled", stages=graph.node_count, graph_hash=graph_hash)

            with self._phase(BuildPhase.EXECUTE, PhaseAction.EXECUTING, target=f"revision {revision}"):
                stats = self._runner.run(graph)

            with self._phase(BuildPhase.COMMIT, PhaseAction.COMMITTING, target=f"revision {revision}"):
                self._tile_store.commit_revision(revision, checkpoint, build_range.end_id)

        except Exception as e:
            duration = time.perf_counter() - run_start
            if revision is not None:
                logger.error("build_failed", revision=revision, error=str(e), abandoned=True)
            else:
                logger.error("build_failed", error=str(e))
            self._events.emit(
                BuildSummary(
                    status=BuildStatus.FAILED,
                    mode=mode,
                    revision=revision,
                    start_id=build_range.start_id if build_range is not None else None,
                    end_id=build_range.end_id if build_range is not None else None,
                    tiles_written=0,
                    duration_seconds=duration,
                    exit_code=1,
                )
            )
            raise

        duration = time.perf_counter() - run_start
        tiles_written = stats.records_written.get(STAGE_SINK, 0)
        log.info("build_committed", tiles_written=tiles_written, duration_seconds=round(duration, 3))
        self._events.emit(
            BuildSummary(
                status=BuildStatus.COMMITTED,
                mode=mode,
                revision=revision,
                start_id=build_range.start_id,
                end_id=build_range.end_id,
                tiles_written=tiles_written,
                duration_seconds=duration,
                exit_code=0,
            )
        )
        return BuildResult(
            revision=revision,
            range=build_range,
            checkpoint=checkpoint,
            tiles_written=tiles_written,
            graph_hash=graph_hash,
            stats=stats,
            duration_seconds=duration,
        )
