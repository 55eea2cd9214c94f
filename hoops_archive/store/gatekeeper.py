"""Initialization gatekeeper for the consolidated stats store.

``StatsStore`` owns the DuckDB connection and runs ingestion at most once:
the first ``initialize()`` call starts the run and every concurrent caller
waits on the same future. A database file that already holds every
consolidated table is reused without fetching anything.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

import duckdb

from ..data.ingestion.consolidation import CONSOLIDATED_TABLES
from ..data.ingestion.pipeline import IngestionConfig, IngestionPipeline, IngestionReport
from ..data.ingestion.registry import DEFAULT_REGISTRY, Dataset
from ..data.ingestion.sources import DirectoryCsvFetcher, HttpCsvFetcher
from ..data.ingestion.sql import quote_ident
from ..errors import StoreNotReadyError
from .gateway import QueryGateway

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class InitState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class StoreConfig:
    """Where the store lives and where its CSV sources come from."""

    database_path: str = "data/hoops_archive.duckdb"
    base_url: Optional[str] = None
    source_dir: Optional[str] = None
    request_timeout: Optional[float] = None
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)


@dataclass
class StoreStatus:
    state: InitState
    degraded: bool = False
    restored: bool = False
    report: Optional[IngestionReport] = None
    error: Optional[str] = None

    @property
    def availability(self) -> str:
        if self.state is InitState.FAILED:
            return "failed"
        if self.state is InitState.READY:
            return "degraded" if self.degraded else "ready"
        return "initializing"

    def to_dict(self):
        return {
            "state": self.state.value,
            "availability": self.availability,
            "degraded": self.degraded,
            "restored": self.restored,
            "error": self.error,
            "report": self.report.to_dict() if self.report is not None else None,
        }


class StatsStore:
    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        fetcher=None,
        registry: Sequence[Dataset] = DEFAULT_REGISTRY,
    ):
        self.config = config or StoreConfig()
        self.registry = tuple(registry)
        self._fetcher = fetcher
        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._status = StoreStatus(InitState.UNINITIALIZED)

    @property
    def state(self) -> InitState:
        with self._lock:
            return self._status.state

    def status(self) -> StoreStatus:
        with self._lock:
            return self._status

    def initialize(self) -> StoreStatus:
        """Run (or join) the one initialization and return its outcome."""
        with self._lock:
            owner = self._future is None
            if owner:
                self._future = Future()
                self._status = StoreStatus(InitState.INITIALIZING)
            future = self._future

        if owner:
            try:
                status = self._run()
            except BaseException as exc:
                with self._lock:
                    self._status = StoreStatus(InitState.FAILED, error=str(exc))
                future.set_exception(exc)
                raise
            with self._lock:
                self._status = status
            future.set_result(status)
        return future.result()

    def gateway(self) -> QueryGateway:
        with self._lock:
            if self._status.state is not InitState.READY or self._conn is None:
                raise StoreNotReadyError(f"store is {self._status.state.value}, not ready")
            return QueryGateway(self._conn)

    def close(self) -> None:
        with self._lock:
            if self._future is not None and not self._future.done():
                raise RuntimeError("cannot close the store while initialization is in flight")
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._future = None
            self._status = StoreStatus(InitState.UNINITIALIZED)

    def build_fetcher(self):
        if self._fetcher is not None:
            return self._fetcher
        if self.config.source_dir:
            return DirectoryCsvFetcher(self.config.source_dir)
        if self.config.base_url:
            return HttpCsvFetcher(self.config.base_url, timeout=self.config.request_timeout)
        raise ValueError("StoreConfig needs either source_dir or base_url to ingest data")

    def _connect(self) -> duckdb.DuckDBPyConnection:
        path = self.config.database_path
        if path != MEMORY_DATABASE:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return duckdb.connect(path)

    def _run(self) -> StoreStatus:
        try:
            conn = self._connect()
        except duckdb.Error as exc:
            logger.error("Could not open %s: %s", self.config.database_path, exc)
            return StoreStatus(InitState.FAILED, error=str(exc))
        with self._lock:
            self._conn = conn

        try:
            if self._has_persisted_tables(conn):
                degraded = self._has_empty_tables(conn)
                logger.info("Reusing consolidated tables in %s", self.config.database_path)
                return StoreStatus(InitState.READY, degraded=degraded, restored=True)

            report = IngestionPipeline(conn, self.build_fetcher(), self.registry, self.config.ingestion).run()
        except Exception as exc:
            logger.exception("Store initialization failed")
            return StoreStatus(InitState.FAILED, error=str(exc))

        problems = []
        if report.missing_required_tables:
            problems.append(f"required tables missing after ingestion: {', '.join(report.missing_required_tables)}")
        if report.failed_required_datasets:
            problems.append(f"required datasets failed to load: {', '.join(report.failed_required_datasets)}")
        if problems:
            error = "; ".join(problems)
            logger.error(error)
            return StoreStatus(InitState.FAILED, degraded=True, report=report, error=error)

        if report.degraded:
            logger.warning("Store ready with a degraded table set")
        return StoreStatus(InitState.READY, degraded=report.degraded, report=report)

    def _has_persisted_tables(self, conn: duckdb.DuckDBPyConnection) -> bool:
        placeholders = ", ".join("?" for _ in CONSOLIDATED_TABLES)
        row = conn.execute(
            f"""
            SELECT COUNT(DISTINCT lower(table_name)) FROM information_schema.tables
            WHERE table_schema = 'main' AND lower(table_name) IN ({placeholders})
            """,
            [name.lower() for name in CONSOLIDATED_TABLES],
        ).fetchone()
        return bool(row) and int(row[0]) == len(CONSOLIDATED_TABLES)

    def _has_empty_tables(self, conn: duckdb.DuckDBPyConnection) -> bool:
        for name in CONSOLIDATED_TABLES:
            row = conn.execute(f"SELECT COUNT(*) FROM {quote_ident(name)}").fetchone()
            if not row or not row[0]:
                return True
        return False


_store_lock = threading.Lock()
_store: Optional[StatsStore] = None


def get_store(config: Optional[StoreConfig] = None, fetcher=None) -> StatsStore:
    """Process-wide store; ``config`` only applies on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = StatsStore(config, fetcher=fetcher)
        return _store


def reset_store() -> None:
    global _store
    with _store_lock:
        if _store is not None:
            _store.close()
        _store = None
