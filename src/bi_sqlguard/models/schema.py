"""Schema snapshot models consumed by the schema cross-reference."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ColumnSchema(BaseModel):
    """Single column of a table descriptor."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: str = ""
    nullable: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("column name cannot be empty.")
        return normalized


class DatabaseSchema(BaseModel):
    """Table descriptor as returned by the schema introspection service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table_name: str = Field(alias="tableName", min_length=1)
    columns: list[ColumnSchema] = Field(default_factory=list)

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("tableName cannot be empty.")
        return normalized

    @property
    def column_names(self) -> frozenset[str]:
        """Lower-cased column names for case-insensitive lookups."""
        return frozenset(column.name.lower() for column in self.columns)

    def to_dict(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)
