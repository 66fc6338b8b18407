"""Schema snapshot persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from bi_sqlguard.models.schema import DatabaseSchema

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = "1.0"


class SnapshotError(RuntimeError):
    """Raised when schema snapshot operations fail."""


@dataclass(frozen=True)
class SchemaSnapshot:
    """Versioned schema snapshot representation."""

    snapshot_format_version: str
    generated_at: str
    database: str
    tables: list[DatabaseSchema]

    def to_dict(self) -> dict[str, object]:
        return {
            "snapshot_format_version": self.snapshot_format_version,
            "generated_at": self.generated_at,
            "database": self.database,
            "tables": [table.to_dict() for table in self.tables],
        }


def _now_iso() -> str:
    return datetime.now(tz=UTC).replace(microsecond=0).isoformat()


def _ensure_unique(tables: Sequence[DatabaseSchema]) -> None:
    seen: set[str] = set()
    for table in tables:
        key = table.table_name.lower()
        if key in seen:
            raise SnapshotError(f"Duplicate table name in schema snapshot: '{table.table_name}'.")
        seen.add(key)


def _parse_tables(payload: Any) -> list[DatabaseSchema]:
    if not isinstance(payload, list):
        raise SnapshotError("Schema snapshot is missing a valid 'tables' list.")

    tables: list[DatabaseSchema] = []
    for position, entry in enumerate(payload):
        try:
            tables.append(DatabaseSchema.model_validate(entry))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'table'}: {error['msg']}"
                for error in exc.errors()
            )
            raise SnapshotError(f"Table entry {position} is invalid: {problems}") from exc
    _ensure_unique(tables)
    return tables


def save_schema_snapshot(
    snapshot_path: Path,
    tables: Sequence[DatabaseSchema],
    database: str,
) -> SchemaSnapshot:
    """Persist table descriptors to snapshot JSON with format metadata."""
    _ensure_unique(tables)
    try:
        snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SnapshotError(f"Failed to create snapshot directory: {exc}") from exc

    snapshot = SchemaSnapshot(
        snapshot_format_version=SNAPSHOT_FORMAT_VERSION,
        generated_at=_now_iso(),
        database=database,
        tables=list(tables),
    )
    try:
        snapshot_path.write_text(
            json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise SnapshotError(f"Failed to write schema snapshot file: {exc}") from exc
    logger.info("Saved schema snapshot with %d tables to %s", len(snapshot.tables), snapshot_path)
    return snapshot


def load_schema_snapshot(snapshot_path: Path) -> SchemaSnapshot:
    """Load and validate schema snapshot JSON."""
    if not snapshot_path.exists():
        raise SnapshotError(f"Schema snapshot file does not exist: {snapshot_path}")

    try:
        payload = json.loads(snapshot_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Schema snapshot file is not valid JSON: {exc}") from exc
    except OSError as exc:
        raise SnapshotError(f"Failed to read schema snapshot file: {exc}") from exc

    if not isinstance(payload, dict):
        raise SnapshotError("Schema snapshot payload root must be a JSON object.")

    version = payload.get("snapshot_format_version")
    if version != SNAPSHOT_FORMAT_VERSION:
        raise SnapshotError(
            "Unsupported schema snapshot format version: "
            f"{version!r}. Expected {SNAPSHOT_FORMAT_VERSION!r}."
        )

    generated_at = payload.get("generated_at")
    if not isinstance(generated_at, str) or not generated_at.strip():
        raise SnapshotError("Schema snapshot is missing a valid 'generated_at' value.")

    database = payload.get("database")
    if not isinstance(database, str) or not database.strip():
        raise SnapshotError("Schema snapshot is missing a valid 'database' field.")

    tables = _parse_tables(payload.get("tables"))
    logger.debug("Loaded schema snapshot with %d tables from %s", len(tables), snapshot_path)
    return SchemaSnapshot(
        snapshot_format_version=version,
        generated_at=generated_at,
        database=database,
        tables=tables,
    )
