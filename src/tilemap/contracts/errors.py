"""Exception taxonomy for map builds.

Every failure of a build invocation is one of these. All of them are
terminal for the invocation: nothing at this layer retries, and the CLI
maps each of them to a non-zero exit status.
"""


class TileMapError(Exception):
    """Base class for all tilemap errors."""

    pass


class ConfigError(TileMapError):
    """Raised for invalid or contradictory settings.

    Reported before any store is read.
    """

    pass


class RangeError(TileMapError):
    """Raised when no valid entry range exists for the requested build.

    Covers: fewer entries available than requested, an incremental
    update with no prior revision, and an incremental range that does
    not advance past the prior revision.
    """

    pass


class MissingCheckpointError(RangeError):
    """Raised when the log mirror holds no checkpoint to bind a revision to."""

    pass


class StoreError(TileMapError):
    """Raised when reading or writing the log mirror or tile store fails."""

    pass


class RevisionConflictError(StoreError):
    """Raised when a write would break revision ordering.

    Examples: committing a revision twice, committing a revision that
    covers fewer entries than its predecessor, writing tiles into an
    already committed revision.
    """

    pass


class BuildError(TileMapError):
    """Raised when a stage of the build graph fails.

    Attributes:
        stage: Name of the graph stage that raised
    """

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
