"""The single read interface over the consolidated store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

import duckdb
import pandas as pd

from ..errors import QueryExecutionError

logger = logging.getLogger(__name__)


def to_primitive(value: Any) -> Any:
    """Coerce engine values to plain Python types."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def to_json_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass
class QueryResult:
    """Rows of one query, or the typed error it failed with.

    An empty ``rows`` with ``error is None`` is a valid empty answer; an
    empty ``rows`` with an error means the query never ran.
    """

    sql: str
    params: Union[List[Any], Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[QueryExecutionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def raise_for_error(self) -> "QueryResult":
        if self.error is not None:
            raise self.error
        return self

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.columns)

    def to_json_rows(self) -> List[Dict[str, Any]]:
        return [{k: to_json_value(v) for k, v in row.items()} for row in self.rows]


class QueryGateway:
    """Executes parameter-bound SQL and returns plain records."""

    def __init__(self, connection: duckdb.DuckDBPyConnection):
        self.conn = connection

    def execute(self, sql: str, params: Union[Sequence[Any], Mapping[str, Any], None] = None) -> QueryResult:
        """Run ``sql`` with positional ``?`` params or a mapping for ``$name`` params."""
        bound: Union[List[Any], Dict[str, Any]]
        if isinstance(params, Mapping):
            bound = dict(params)
        else:
            bound = list(params) if params is not None else []
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql, bound)
            description = cursor.description or []
            columns = [col[0] for col in description]
            raw_rows = cursor.fetchall() if description else []
        except duckdb.Error as exc:
            error = QueryExecutionError(sql, str(exc), bound)
            logger.warning("Query failed: %s", error)
            return QueryResult(sql=sql, params=bound, error=error)
        finally:
            cursor.close()

        rows = [{name: to_primitive(value) for name, value in zip(columns, row)} for row in raw_rows]
        return QueryResult(sql=sql, params=bound, columns=columns, rows=rows)
