"""Build mode and entry range resolution.

Decides which entries of the log mirror a build covers:

    full:         [0, end)
    incremental:  [covered entries of the latest revision, end)

where end is the whole mirror, or `count` when one is given.
"""

from __future__ import annotations

import structlog

from tilemap.contracts.enums import BuildMode
from tilemap.contracts.errors import ConfigError, RangeError
from tilemap.contracts.protocols import TileStoreProtocol
from tilemap.contracts.records import BuildRange

logger = structlog.get_logger(__name__)


def check_build_mode(incremental: bool, build_version_list: bool) -> BuildMode:
    """Reject contradictory mode flags.

    Version lists are derived from every entry of a module, which an
    incremental range does not see.

    Raises:
        ConfigError: If both flags are set
    """
    if incremental and build_version_list:
        raise ConfigError("incremental updates cannot build version lists: use a full build with build_version_list")
    return BuildMode.INCREMENTAL if incremental else BuildMode.FULL


def resolve_build_range(
    total_entries: int,
    count: int,
    *,
    incremental: bool,
    build_version_list: bool,
    tile_store: TileStoreProtocol,
) -> BuildRange:
    """Resolve the half-open range of entry IDs a build covers.

    Args:
        total_entries: Entries available in the log mirror
        count: Entries to use from the beginning of the log, or -1 for all
        incremental: Extend the latest revision instead of rebuilding
        build_version_list: Whether version lists were requested
        tile_store: Consulted for the latest revision in incremental mode only

    Raises:
        ConfigError: If the mode flags contradict each other
        RangeError: If count exceeds the mirror, there is no revision to
            extend, or the range does not advance past it
    """
    mode = check_build_mode(incremental, build_version_list)

    if count > total_entries:
        raise RangeError(f"wanted {count} entries but only {total_entries} available")
    end_id = total_entries if count < 0 else count

    if mode == BuildMode.FULL:
        return BuildRange(start_id=0, end_id=end_id, mode=mode)

    last = tile_store.latest_revision()
    if last is None:
        raise RangeError("incremental update requested but the tile store has no committed revision")
    start_id = last.covered_entries
    if start_id >= end_id:
        raise RangeError(f"no new entries: revision {last.revision} covers {start_id} entries, build would end at {end_id}")

    logger.debug("incremental_range", last_revision=last.revision, start_id=start_id, end_id=end_id)
    return BuildRange(start_id=start_id, end_id=end_id, mode=mode, last_revision=last.revision)
