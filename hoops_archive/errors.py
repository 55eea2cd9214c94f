"""Error taxonomy for ingestion and query execution."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Union


class HoopsArchiveError(Exception):
    """Base class for every error raised by the archive."""


class FetchError(HoopsArchiveError):
    """A source CSV could not be retrieved."""

    def __init__(self, file_name: str, message: str):
        super().__init__(f"{file_name}: {message}")
        self.file_name = file_name


class FetchNotFound(FetchError):
    """The source file does not exist at the configured location."""


class FetchTransient(FetchError):
    """Network or IO failure while reading the source file."""


class SchemaLoadError(HoopsArchiveError):
    """Creating or bulk-loading a raw table failed as a whole."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


class ConsolidationError(HoopsArchiveError):
    """A derived table could not be built from its sources."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


class QueryExecutionError(HoopsArchiveError):
    """The engine rejected a query at execution time."""

    def __init__(self, sql: str, message: str, params: Union[Sequence, Mapping, None] = None):
        super().__init__(message)
        self.sql = sql
        if isinstance(params, Mapping):
            self.params = dict(params)
        else:
            self.params = list(params) if params is not None else []
        self.message = message

    def __str__(self) -> str:
        return f"{self.message} (query: {self.sql.strip()})"


class StoreNotReadyError(HoopsArchiveError):
    """Queries were requested before the store reached READY."""
