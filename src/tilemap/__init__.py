"""tilemap: Revisioned verifiable-map builds over a checkpointed log.

Builds a prefix tree of tiles from a local mirror of the Go module
checksum database and stores each build as a committed revision.
"""

__version__ = "0.1.0"
