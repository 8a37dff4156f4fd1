"""Tests for build graph assembly."""

import pytest

from tilemap.contracts import BuildMode, BuildRange
from tilemap.core.store import LogMirror, TileStore
from tilemap.engine import BuildPlan, assemble_build_graph
from tilemap.tree import StratifiedTreeBuilder


def _plan(mode: BuildMode = BuildMode.FULL, *, version_lists: bool = False, last_revision: int | None = None) -> BuildPlan:
    start = 0 if mode == BuildMode.FULL else 5
    return BuildPlan(
        revision=1,
        range=BuildRange(start_id=start, end_id=10, mode=mode, last_revision=last_revision),
        checkpoint=b"cp",
        tree_id=12345,
        hash_algorithm="sha256",
        prefix_strata=2,
        write_batch_size=50,
        build_version_list=version_lists,
    )


def _stage_names(plan: BuildPlan, log_mirror: LogMirror, tile_store: TileStore) -> set[str]:
    graph = assemble_build_graph(plan, log_mirror, tile_store, StratifiedTreeBuilder())
    graph.validate()
    return {stage.name for stage in graph.stages()}


class TestAssembleBuildGraph:
    """Tests for the stage wiring of each build shape."""

    def test_full(self, log_mirror: LogMirror, tile_store: TileStore) -> None:
        assert _stage_names(_plan(), log_mirror, tile_store) == {"entries", "leaves", "tiles", "rows", "sink"}

    def test_full_with_version_lists(self, log_mirror: LogMirror, tile_store: TileStore) -> None:
        names = _stage_names(_plan(version_lists=True), log_mirror, tile_store)
        assert names == {"entries", "leaves", "version_lists", "all_leaves", "tiles", "rows", "sink"}

    def test_incremental(self, log_mirror: LogMirror, tile_store: TileStore) -> None:
        names = _stage_names(_plan(BuildMode.INCREMENTAL, last_revision=0), log_mirror, tile_store)
        assert names == {"entries", "leaves", "prior_rows", "prior_tiles", "tiles", "rows", "sink"}

    def test_tiles_reads_flattened_leaves(self, log_mirror: LogMirror, tile_store: TileStore) -> None:
        graph = assemble_build_graph(_plan(version_lists=True), log_mirror, tile_store, StratifiedTreeBuilder())
        assert graph.get_stage("tiles").upstreams == ("all_leaves",)

    def test_sink_batch_size(self, log_mirror: LogMirror, tile_store: TileStore) -> None:
        graph = assemble_build_graph(_plan(), log_mirror, tile_store, StratifiedTreeBuilder())
        assert graph.get_stage("sink").batch_size == 50

    def test_incremental_without_prior_revision(self, log_mirror: LogMirror, tile_store: TileStore) -> None:
        with pytest.raises(ValueError, match="no prior revision"):
            assemble_build_graph(_plan(BuildMode.INCREMENTAL), log_mirror, tile_store, StratifiedTreeBuilder())
