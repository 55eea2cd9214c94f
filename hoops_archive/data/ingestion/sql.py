"""Small SQL helpers shared by the ingestion steps."""

from __future__ import annotations

from typing import Dict, List

import duckdb

from ..normalize import normalize_column_name


def quote_ident(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def table_exists(conn: duckdb.DuckDBPyConnection, table: str) -> bool:
    row = conn.execute(
        """
        SELECT COUNT(*) FROM information_schema.tables
        WHERE table_schema = 'main' AND lower(table_name) = lower(?)
        """,
        [table],
    ).fetchone()
    return bool(row and row[0])


def table_columns(conn: duckdb.DuckDBPyConnection, table: str) -> List[str]:
    rows = conn.execute(
        """
        SELECT column_name FROM information_schema.columns
        WHERE table_schema = 'main' AND lower(table_name) = lower(?)
        ORDER BY ordinal_position
        """,
        [table],
    ).fetchall()
    return [r[0] for r in rows]


def column_index(columns: List[str]) -> Dict[str, str]:
    """Map normalized column names to the actual names; first one wins."""
    index: Dict[str, str] = {}
    for name in columns:
        index.setdefault(normalize_column_name(name), name)
    return index


def count_rows(conn: duckdb.DuckDBPyConnection, table: str) -> int:
    return int(conn.execute(f"SELECT COUNT(*) FROM {quote_ident(table)}").fetchone()[0])


def drop_table(conn: duckdb.DuckDBPyConnection, table: str) -> None:
    conn.execute(f"DROP TABLE IF EXISTS {quote_ident(table)}")
