"""Build graph assembly.

Full build (version_lists and all_leaves only with version lists):

    entries -> leaves -------------------> all_leaves -> tiles -> rows -> sink
    entries -> version_lists -----------/

Incremental build:

    entries -> leaves ------------------> tiles -> rows -> sink
    prior_rows -> prior_tiles ----------/
"""

from __future__ import annotations

from collections.abc import Iterable

from tilemap.contracts.enums import BuildMode
from tilemap.contracts.protocols import LogMirrorProtocol, TileStoreProtocol, TreeBuilderProtocol
from tilemap.contracts.records import Entry, Leaf, Tile, TileRow
from tilemap.core.dag import TransformGraph
from tilemap.engine.orchestrator.types import BuildPlan
from tilemap.pipeline import EntryLeaves, TileToRow, VersionLists, row_to_tile

STAGE_ENTRIES = "entries"
STAGE_LEAVES = "leaves"
STAGE_VERSION_LISTS = "version_lists"
STAGE_ALL_LEAVES = "all_leaves"
STAGE_PRIOR_ROWS = "prior_rows"
STAGE_PRIOR_TILES = "prior_tiles"
STAGE_TILES = "tiles"
STAGE_ROWS = "rows"
STAGE_SINK = "sink"


def assemble_build_graph(
    plan: BuildPlan,
    log_mirror: LogMirrorProtocol,
    tile_store: TileStoreProtocol,
    tree_builder: TreeBuilderProtocol,
) -> TransformGraph:
    """Wire the stages of one build.

    The returned graph is not yet validated or run.

    Raises:
        GraphValidationError: If wiring fails
        ValueError: If an incremental plan names no prior revision
    """
    graph = TransformGraph()
    start, end = plan.range.start_id, plan.range.end_id

    graph.add_source(STAGE_ENTRIES, lambda: log_mirror.entries(start, end), output_type=Entry)
    leaves = graph.add_map(
        STAGE_LEAVES,
        STAGE_ENTRIES,
        EntryLeaves(plan.tree_id, plan.hash_algorithm),
        input_type=Entry,
        output_type=Leaf,
    )

    if plan.build_version_list:
        graph.add_combine(
            STAGE_VERSION_LISTS,
            {"entries": STAGE_ENTRIES},
            VersionLists(plan.tree_id, plan.hash_algorithm),
            input_types={"entries": Entry},
            output_type=Leaf,
        )
        leaves = graph.add_flatten(STAGE_ALL_LEAVES, [STAGE_LEAVES, STAGE_VERSION_LISTS], output_type=Leaf)

    if plan.mode == BuildMode.FULL:

        def create_tiles(leaves: Iterable[Leaf]) -> list[Tile]:
            return tree_builder.create(leaves, plan.tree_id, plan.hash_algorithm, plan.prefix_strata)

        graph.add_combine(STAGE_TILES, {"leaves": leaves}, create_tiles, input_types={"leaves": Leaf}, output_type=Tile)
    else:
        last_revision = plan.range.last_revision
        if last_revision is None:
            raise ValueError("incremental build plan has no prior revision")

        def update_tiles(prior_tiles: Iterable[Tile], leaves: Iterable[Leaf]) -> list[Tile]:
            return tree_builder.update(prior_tiles, leaves, plan.tree_id, plan.hash_algorithm, plan.prefix_strata)

        graph.add_source(STAGE_PRIOR_ROWS, lambda: tile_store.read_tiles(last_revision), output_type=TileRow)
        graph.add_map(STAGE_PRIOR_TILES, STAGE_PRIOR_ROWS, row_to_tile, input_type=TileRow, output_type=Tile)
        graph.add_combine(
            STAGE_TILES,
            {"prior_tiles": STAGE_PRIOR_TILES, "leaves": leaves},
            update_tiles,
            input_types={"prior_tiles": Tile, "leaves": Leaf},
            output_type=Tile,
        )

    graph.add_map(STAGE_ROWS, STAGE_TILES, TileToRow(plan.revision), input_type=Tile, output_type=TileRow)
    graph.add_sink(
        STAGE_SINK,
        STAGE_ROWS,
        lambda batch: tile_store.write_tiles(plan.revision, batch),
        input_type=TileRow,
        batch_size=plan.write_batch_size,
    )
    return graph
