"""SQLAlchemy table definitions for the log mirror and the tile store.

Uses SQLAlchemy Core (not ORM) for explicit control over queries
and compatibility with multiple database backends.

Table and column names match the databases produced by the checksum
database auditor (log mirror) and read by map clients (tile store),
so existing files can be opened in place.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
)

# === Log mirror ===

mirror_metadata = MetaData()

leaf_metadata_table = Table(
    "leafMetadata",
    mirror_metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("module", Text, nullable=False),
    Column("version", Text, nullable=False),
    Column("repohash", Text, nullable=False),
    Column("modhash", Text, nullable=False),
)

checkpoints_table = Table(
    "checkpoints",
    mirror_metadata,
    Column("datetime", DateTime(timezone=True), primary_key=True),
    Column("checkpoint", LargeBinary, nullable=False),
)

# === Tile store ===

map_metadata = MetaData()

tiles_table = Table(
    "tiles",
    map_metadata,
    Column("revision", Integer, nullable=False),
    Column("path", LargeBinary, nullable=False),
    Column("tile", LargeBinary, nullable=False),
    # Same path in different revisions = distinct rows
    PrimaryKeyConstraint("revision", "path"),
)

revisions_table = Table(
    "revisions",
    map_metadata,
    Column("revision", Integer, primary_key=True, autoincrement=False),
    Column("datetime", DateTime(timezone=True), nullable=False),
    Column("logCheckpoint", LargeBinary, nullable=False),
    Column("count", Integer, nullable=False),
)

# Write-ahead record of every number handed out by next_write_revision().
# A row here without a matching revisions row is an abandoned build.
# Optional: created on open in databases that predate it.
revision_allocations_table = Table(
    "revision_allocations",
    map_metadata,
    Column("revision", Integer, primary_key=True, autoincrement=False),
    Column("allocated_at", DateTime(timezone=True), nullable=False),
    info={"optional": True},
)
