"""Basketball statistics CSVs ingested and consolidated into a DuckDB store."""

from .errors import (
    ConsolidationError,
    FetchError,
    FetchNotFound,
    FetchTransient,
    HoopsArchiveError,
    QueryExecutionError,
    SchemaLoadError,
    StoreNotReadyError,
)
from .store import InitState, QueryGateway, QueryResult, StatsQueries, StatsStore, StoreConfig, StoreStatus

__version__ = "0.1.0"

__all__ = [
    "ConsolidationError",
    "FetchError",
    "FetchNotFound",
    "FetchTransient",
    "HoopsArchiveError",
    "QueryExecutionError",
    "SchemaLoadError",
    "StoreNotReadyError",
    "InitState",
    "QueryGateway",
    "QueryResult",
    "StatsQueries",
    "StatsStore",
    "StoreConfig",
    "StoreStatus",
]
