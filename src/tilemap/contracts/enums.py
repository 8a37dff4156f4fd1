"""Enumerations shared across the build engine."""

from enum import StrEnum


class BuildMode(StrEnum):
    """How a revision is derived.

    FULL ignores every prior tile and consumes [0, end).
    INCREMENTAL reuses the latest committed revision's tiles and
    consumes [covered, end).
    """

    FULL = "full"
    INCREMENTAL = "incremental"


class StageKind(StrEnum):
    """Kinds of stage in a transform graph."""

    SOURCE = "source"
    MAP = "map"
    FLATTEN = "flatten"
    COMBINE = "combine"
    SINK = "sink"


class BuildPhase(StrEnum):
    """Build lifecycle phases for observability events."""

    CONFIG = "config"
    METADATA = "metadata"
    RANGE = "range"
    ALLOCATE = "allocate"
    GRAPH = "graph"
    EXECUTE = "execute"
    COMMIT = "commit"


class PhaseAction(StrEnum):
    """What a phase is doing when it starts."""

    VALIDATING = "validating"
    READING = "reading"
    RESOLVING = "resolving"
    ALLOCATING = "allocating"
    BUILDING = "building"
    EXECUTING = "executing"
    COMMITTING = "committing"


class BuildStatus(StrEnum):
    """Final status of a build invocation."""

    COMMITTED = "committed"
    FAILED = "failed"


class OutputFormat(StrEnum):
    """CLI output formats."""

    CONSOLE = "console"
    JSON = "json"
