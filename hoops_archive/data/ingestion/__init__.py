"""CSV ingestion: registry, fetchers, raw tables, consolidation, indexes."""

from .consolidation import CONSOLIDATED_TABLES, REQUIRED_TABLES, Consolidator, DerivedResult
from .indexes import IndexResult, build_indexes
from .pipeline import IngestionConfig, IngestionPipeline, IngestionReport
from .registry import DEFAULT_REGISTRY, Column, Dataset, Mode
from .sources import DirectoryCsvFetcher, FetchResult, FetchStatus, HttpCsvFetcher, VirtualFileRegistrar
from .table_builder import DatasetResult, TableBuilder

__all__ = [
    "CONSOLIDATED_TABLES",
    "REQUIRED_TABLES",
    "Consolidator",
    "DerivedResult",
    "IndexResult",
    "build_indexes",
    "IngestionConfig",
    "IngestionPipeline",
    "IngestionReport",
    "DEFAULT_REGISTRY",
    "Column",
    "Dataset",
    "Mode",
    "DirectoryCsvFetcher",
    "FetchResult",
    "FetchStatus",
    "HttpCsvFetcher",
    "VirtualFileRegistrar",
    "DatasetResult",
    "TableBuilder",
]
