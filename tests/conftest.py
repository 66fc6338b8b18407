"""Shared fixtures for bi-sqlguard tests."""

from __future__ import annotations

import pytest

from bi_sqlguard.models import ColumnSchema, DatabaseSchema


def _table(name: str, *columns: str) -> DatabaseSchema:
    return DatabaseSchema(
        table_name=name,
        columns=[ColumnSchema(name=column, type="VARCHAR") for column in columns],
    )


@pytest.fixture
def users_schema() -> list[DatabaseSchema]:
    return [_table("users", "id", "name", "email")]


@pytest.fixture
def shop_schema() -> list[DatabaseSchema]:
    return [
        _table("users", "id", "name", "email"),
        _table("orders", "id", "user_id", "amount"),
    ]


@pytest.fixture
def sales_schema() -> list[dict[str, object]]:
    """Wire-shaped schema as the introspection service returns it."""
    return [
        {
            "tableName": "sales",
            "columns": [
                {"name": "id", "type": "INT", "nullable": False},
                {"name": "product", "type": "VARCHAR", "nullable": True},
                {"name": "amount", "type": "DECIMAL", "nullable": True},
                {"name": "date", "type": "DATE", "nullable": True},
            ],
        }
    ]
