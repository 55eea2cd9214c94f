"""Creates and bulk-loads one raw table per registry entry.

EXPLICIT datasets are staged through DuckDB's CSV reader with every column
read as text, then each declared column is trimmed, stripped of
missing-value sentinels and cast with ``TRY_CAST`` so a malformed cell
becomes NULL instead of failing the load. Columns are matched to CSV
headers by name, never by position: an exact case-insensitive match wins,
then the normalized name.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import duckdb

from ...errors import SchemaLoadError
from ..normalize import normalize_column_name
from .registry import DEFAULT_REGISTRY, Column, Dataset, Mode
from .sources import VirtualFileRegistrar, fetch_and_register
from .sql import count_rows, drop_table, quote_ident, quote_literal

logger = logging.getLogger(__name__)

DEFAULT_MISSING_VALUE_TOKENS = ("NA", "N/A", "NaN", "-", "")

TRUE_TOKENS = ("true", "t", "yes", "y", "1")
FALSE_TOKENS = ("false", "f", "no", "n", "0")

STATUS_LOADED = "loaded"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


@dataclass
class DatasetResult:
    key: str
    table: str
    source_file: str
    optional: bool
    status: str
    rows: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self.status == STATUS_LOADED

    def to_dict(self) -> Dict:
        return asdict(self)


def _literal_list(values: Sequence[str]) -> str:
    return ", ".join(quote_literal(v) for v in values)


def _csv_reader(path: Path) -> str:
    return (
        f"read_csv({quote_literal(path.as_posix())}, header=true, all_varchar=true, "
        "ignore_errors=true, null_padding=true)"
    )


def _auto_reader(path: Path) -> str:
    return (
        f"read_csv({quote_literal(path.as_posix())}, header=true, ignore_errors=true, "
        "normalize_names=true, sample_size=-1, nullstr='NA')"
    )


def cast_expression(column: Column, value_sql: str) -> str:
    """SQL casting an already-cleaned text expression to ``column.type``."""
    if column.type == "VARCHAR":
        return value_sql
    if column.type == "INTEGER":
        return (
            f"COALESCE(TRY_CAST({value_sql} AS INTEGER), "
            f"TRY_CAST(TRY_CAST({value_sql} AS DOUBLE) AS INTEGER))"
        )
    if column.type == "DOUBLE":
        return f"TRY_CAST({value_sql} AS DOUBLE)"
    if column.type == "BOOLEAN":
        lowered = f"lower({value_sql})"
        return (
            f"CASE WHEN {lowered} IN ({_literal_list(TRUE_TOKENS)}) THEN TRUE "
            f"WHEN {lowered} IN ({_literal_list(FALSE_TOKENS)}) THEN FALSE ELSE NULL END"
        )
    if column.type == "DATE":
        candidates = [f"TRY_CAST({value_sql} AS DATE)"]
        for fmt in column.date_formats:
            candidates.append(f"CAST(try_strptime({value_sql}, {quote_literal(fmt)}) AS DATE)")
        if len(candidates) == 1:
            return candidates[0]
        return f"COALESCE({', '.join(candidates)})"
    raise ValueError(f"Unsupported column type {column.type!r}")


class TableBuilder:
    """Loads every registry dataset into its raw table, in registry order."""

    def __init__(
        self,
        connection: duckdb.DuckDBPyConnection,
        fetcher,
        registrar: VirtualFileRegistrar,
        missing_value_tokens: Sequence[str] = DEFAULT_MISSING_VALUE_TOKENS,
        keep_staged_files: bool = False,
    ):
        self.conn = connection
        self.fetcher = fetcher
        self.registrar = registrar
        self.missing_value_tokens = tuple(missing_value_tokens)
        self.keep_staged_files = keep_staged_files

    def build_all(self, registry: Sequence[Dataset] = DEFAULT_REGISTRY) -> List[DatasetResult]:
        return [self.build(dataset) for dataset in registry]

    def build(self, dataset: Dataset) -> DatasetResult:
        fetched = fetch_and_register(self.fetcher, self.registrar, dataset.source_file)
        if not fetched.ok:
            # A table left over from an earlier run would hide the missing source.
            self._drop_quietly(dataset.table)
            status = STATUS_SKIPPED if dataset.optional else STATUS_FAILED
            if dataset.optional:
                logger.warning("Skipping optional dataset %s: %s", dataset.key, fetched.error)
            else:
                logger.error("Required dataset %s could not be fetched: %s", dataset.key, fetched.error)
            return DatasetResult(
                key=dataset.key,
                table=dataset.table,
                source_file=dataset.source_file,
                optional=dataset.optional,
                status=status,
                error=str(fetched.error),
                error_kind=fetched.status.value,
            )

        try:
            if dataset.mode is Mode.AUTO:
                rows = self._load_auto(dataset, fetched.path)
            else:
                rows = self._load_explicit(dataset, fetched.path)
        except SchemaLoadError as exc:
            self._drop_quietly(dataset.table)
            logger.error("Failed to load dataset %s: %s", dataset.key, exc)
            return DatasetResult(
                key=dataset.key,
                table=dataset.table,
                source_file=dataset.source_file,
                optional=dataset.optional,
                status=STATUS_FAILED,
                error=str(exc),
                error_kind="schema_load",
            )
        finally:
            if not self.keep_staged_files:
                self.registrar.unregister(dataset.source_file)

        logger.info("Loaded %s rows into %s", rows, dataset.table)
        return DatasetResult(
            key=dataset.key,
            table=dataset.table,
            source_file=dataset.source_file,
            optional=dataset.optional,
            status=STATUS_LOADED,
            rows=rows,
        )

    def read_headers(self, path: Path) -> List[str]:
        cursor = self.conn.execute(f"SELECT * FROM {_csv_reader(path)} LIMIT 0")
        return [col[0] for col in cursor.description]

    def _clean(self, source_sql: str) -> str:
        trimmed = f"trim({source_sql})"
        if not self.missing_value_tokens:
            return trimmed
        return (
            f"CASE WHEN {trimmed} IN ({_literal_list(self.missing_value_tokens)}) "
            f"THEN NULL ELSE {trimmed} END"
        )

    def select_list(self, dataset: Dataset, headers: Sequence[str]) -> List[str]:
        exact: Dict[str, str] = {}
        by_key: Dict[str, str] = {}
        for header in headers:
            exact.setdefault(header.strip().lower(), header)
            key = normalize_column_name(header)
            if key in by_key:
                logger.warning(
                    "%s: headers %r and %r both normalize to %r; %r is matched by exact name only",
                    dataset.source_file,
                    by_key[key],
                    header,
                    key,
                    header,
                )
                continue
            by_key[key] = header

        expressions = []
        for column in dataset.columns:
            header = exact.get(column.header.strip().lower()) or by_key.get(column.header_key)
            if header is None:
                logger.debug("%s: header %r not present, loading NULL", dataset.source_file, column.header)
                expressions.append(f"CAST(NULL AS {column.type})")
                continue
            expressions.append(cast_expression(column, self._clean(quote_ident(header))))
        return expressions

    def _load_explicit(self, dataset: Dataset, path: Path) -> int:
        table = quote_ident(dataset.table)
        try:
            headers = self.read_headers(path)
            column_defs = ", ".join(f"{quote_ident(c.name)} {c.type}" for c in dataset.columns)
            column_names = ", ".join(quote_ident(c.name) for c in dataset.columns)
            select_sql = ", ".join(self.select_list(dataset, headers))

            drop_table(self.conn, dataset.table)
            self.conn.execute(f"CREATE TABLE {table} ({column_defs})")
            self.conn.execute(
                f"INSERT INTO {table} ({column_names}) SELECT {select_sql} FROM {_csv_reader(path)}"
            )
            return count_rows(self.conn, dataset.table)
        except duckdb.Error as exc:
            raise SchemaLoadError(dataset.table, str(exc)) from exc

    def _load_auto(self, dataset: Dataset, path: Path) -> int:
        try:
            drop_table(self.conn, dataset.table)
            self.conn.execute(
                f"CREATE TABLE {quote_ident(dataset.table)} AS SELECT * FROM {_auto_reader(path)}"
            )
            return count_rows(self.conn, dataset.table)
        except duckdb.Error as exc:
            raise SchemaLoadError(dataset.table, str(exc)) from exc

    def _drop_quietly(self, table: str) -> None:
        try:
            drop_table(self.conn, table)
        except duckdb.Error as exc:
            logger.warning("Could not drop stale table %s: %s", table, exc)
