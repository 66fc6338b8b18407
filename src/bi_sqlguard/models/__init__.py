"""Typed models shared across bi-sqlguard."""

from bi_sqlguard.models.schema import ColumnSchema, DatabaseSchema

__all__ = [
    "ColumnSchema",
    "DatabaseSchema",
]
