"""Schema snapshot helpers."""

from bi_sqlguard.schema.snapshot import (
    SNAPSHOT_FORMAT_VERSION,
    SchemaSnapshot,
    SnapshotError,
    load_schema_snapshot,
    save_schema_snapshot,
)

__all__ = [
    "SNAPSHOT_FORMAT_VERSION",
    "SchemaSnapshot",
    "SnapshotError",
    "load_schema_snapshot",
    "save_schema_snapshot",
]
