"""Key validators for consolidated tables."""

from __future__ import annotations

from typing import List, Sequence

import duckdb

from .sql import quote_ident, table_columns, table_exists


def _check_table(conn: duckdb.DuckDBPyConnection, table: str, columns: Sequence[str]) -> List[str]:
    if not table_exists(conn, table):
        return [f"{table} does not exist"]
    present = {c.lower() for c in table_columns(conn, table)}
    missing = [c for c in columns if c.lower() not in present]
    if missing:
        return [f"{table} missing columns: {', '.join(missing)}"]
    return []


def validate_unique_key(conn: duckdb.DuckDBPyConnection, table: str, columns: Sequence[str]) -> List[str]:
    errors = _check_table(conn, table, columns)
    if errors:
        return errors

    key = ", ".join(quote_ident(c) for c in columns)
    row = conn.execute(
        f"""
        SELECT COUNT(*) FROM (
            SELECT {key} FROM {quote_ident(table)} GROUP BY {key} HAVING COUNT(*) > 1
        ) AS dup
        """
    ).fetchone()
    duplicates = int(row[0]) if row else 0
    if duplicates:
        errors.append(f"{table} has {duplicates} duplicate keys on ({', '.join(columns)})")
    return errors


def validate_not_null(conn: duckdb.DuckDBPyConnection, table: str, columns: Sequence[str]) -> List[str]:
    errors = _check_table(conn, table, columns)
    if errors:
        return errors

    for column in columns:
        row = conn.execute(
            f"SELECT COUNT(*) FROM {quote_ident(table)} WHERE {quote_ident(column)} IS NULL"
        ).fetchone()
        nulls = int(row[0]) if row else 0
        if nulls:
            errors.append(f"{table}.{column} has {nulls} null values")
    return errors
