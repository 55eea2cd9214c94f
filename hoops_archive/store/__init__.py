"""Store lifecycle and the read-side query surface."""

from .gatekeeper import InitState, StatsStore, StoreConfig, StoreStatus, get_store, reset_store
from .gateway import QueryGateway, QueryResult
from .queries import ALLOWED_SORT_COLUMNS, SortState, StatsQueries, apply_sort, paginate

__all__ = [
    "InitState",
    "StatsStore",
    "StoreConfig",
    "StoreStatus",
    "get_store",
    "reset_store",
    "QueryGateway",
    "QueryResult",
    "ALLOWED_SORT_COLUMNS",
    "SortState",
    "StatsQueries",
    "apply_sort",
    "paginate",
]
