"""Schema snapshots: built-in demo schema and DuckDB introspection."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

import duckdb
import streamlit as st

from prismsql.core.models import SchemaColumn, SchemaTable


def _col(name: str, data_type: str, nullable: bool) -> SchemaColumn:
    return SchemaColumn(name=name, data_type=data_type, nullable=nullable)


DEMO_SCHEMA: tuple[SchemaTable, ...] = (
    SchemaTable(
        name="demo_users",
        columns=(
            _col("id", "uuid", False),
            _col("email", "varchar", False),
            _col("name", "varchar", True),
            _col("status", "varchar", True),
            _col("created_at", "timestamp", False),
        ),
    ),
    SchemaTable(
        name="demo_orders",
        columns=(
            _col("id", "uuid", False),
            _col("user_id", "uuid", True),
            _col("total_amount", "numeric", False),
            _col("status", "varchar", True),
            _col("created_at", "timestamp", False),
        ),
    ),
    SchemaTable(
        name="demo_products",
        columns=(
            _col("id", "uuid", False),
            _col("name", "varchar", False),
            _col("price", "numeric", False),
            _col("category", "varchar", True),
            _col("in_stock", "boolean", True),
            _col("created_at", "timestamp", False),
        ),
    ),
)

DEFAULT_ALLOWED_TABLES: tuple[str, ...] = ("demo_users", "demo_products")


def schema_from_payload(tables: Iterable[Mapping[str, Any]]) -> tuple[SchemaTable, ...]:
    """Build a snapshot from request-style dicts (table_name/column_name keys)."""
    return tuple(
        table if isinstance(table, SchemaTable) else SchemaTable.from_dict(table)
        for table in tables
    )


def load_schema_snapshot(duckdb_path: str) -> tuple[SchemaTable, ...]:
    """Read tables and columns from a DuckDB file, columns in declaration order."""
    con = duckdb.connect(duckdb_path, read_only=True)
    try:
        rows = con.execute(
            """
            SELECT table_name, column_name, data_type, is_nullable
            FROM information_schema.columns
            WHERE table_schema = 'main'
            ORDER BY table_name, ordinal_position
            """
        ).fetchall()
    finally:
        con.close()

    grouped: dict[str, list[SchemaColumn]] = {}
    for table_name, column_name, data_type, is_nullable in rows:
        grouped.setdefault(table_name, []).append(
            SchemaColumn.from_dict(
                {
                    "column_name": column_name,
                    "data_type": data_type,
                    "is_nullable": is_nullable,
                }
            )
        )
    return tuple(SchemaTable(name=name, columns=tuple(cols)) for name, cols in grouped.items())


def get_active_source_info(duckdb_path: str) -> dict[str, str]:
    """Return small metadata for the active DuckDB source."""
    path = Path(duckdb_path)
    exists = path.exists()
    size_bytes = path.stat().st_size if exists else 0
    size_mb = round(size_bytes / (1024 * 1024), 2) if exists else 0.0
    return {
        "engine": "DuckDB",
        "path": str(path.resolve()) if exists else str(path),
        "exists": "yes" if exists else "no",
        "size_mb": f"{size_mb}",
    }


def refresh_schema_cache() -> None:
    """Drop cached schema snapshots so the console re-reads the database."""
    st.cache_data.clear()
