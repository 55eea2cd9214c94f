"""One full ingestion run: raw tables, derived tables, indexes, validation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import duckdb

from .consolidation import DERIVED_TABLES, REQUIRED_TABLES, STATUS_FAILED, Consolidator, DerivedResult
from .indexes import IndexResult, build_indexes
from .registry import DEFAULT_REGISTRY, Dataset
from .sources import VirtualFileRegistrar
from .table_builder import DEFAULT_MISSING_VALUE_TOKENS, DatasetResult, TableBuilder
from .validators import validate_not_null, validate_unique_key

logger = logging.getLogger(__name__)

UNIQUE_KEYS: Dict[str, Tuple[str, ...]] = {
    "Players": ("player_id",),
    "TeamSeasonRecords": ("team_code", "season_id"),
    "PlayerSeasonStats": ("player_id", "season", "team_code", "stat_variant"),
    "DraftPicks": ("season", "overall_pick"),
    "Games": ("game_id",),
}

NOT_NULL_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "Players": ("player_id",),
    "TeamSeasonRecords": ("team_code", "season_id"),
    "Games": ("game_id", "season_type"),
}


@dataclass
class IngestionConfig:
    """Configuration for a single ingestion run."""

    staging_dir: str = "data/raw/staging"
    missing_value_tokens: Tuple[str, ...] = DEFAULT_MISSING_VALUE_TOKENS
    keep_staged_files: bool = False
    strict_validation: bool = False
    report_path: Optional[str] = None


@dataclass
class IngestionReport:
    datasets: List[DatasetResult] = field(default_factory=list)
    derived: List[DerivedResult] = field(default_factory=list)
    indexes: List[IndexResult] = field(default_factory=list)
    validation_errors: Dict[str, List[str]] = field(default_factory=dict)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    @property
    def missing_required_tables(self) -> List[str]:
        built = {d.table for d in self.derived if d.status != STATUS_FAILED}
        return [name for name in REQUIRED_TABLES if name not in built]

    @property
    def failed_required_datasets(self) -> List[str]:
        return [d.key for d in self.datasets if not d.optional and not d.loaded]

    @property
    def degraded(self) -> bool:
        return any(not d.loaded for d in self.datasets) or any(not d.built for d in self.derived)

    def to_dict(self) -> Dict:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "degraded": self.degraded,
            "missing_required_tables": self.missing_required_tables,
            "failed_required_datasets": self.failed_required_datasets,
            "datasets": [d.to_dict() for d in self.datasets],
            "derived": [d.to_dict() for d in self.derived],
            "indexes": [i.to_dict() for i in self.indexes],
            "validation_errors": self.validation_errors,
        }


class IngestionPipeline:
    """Runs Table Builder, Consolidation, Index Builder and validators in order."""

    def __init__(
        self,
        connection: duckdb.DuckDBPyConnection,
        fetcher,
        registry: Sequence[Dataset] = DEFAULT_REGISTRY,
        config: Optional[IngestionConfig] = None,
    ):
        self.conn = connection
        self.fetcher = fetcher
        self.registry = tuple(registry)
        self.config = config or IngestionConfig()
        self.registrar = VirtualFileRegistrar(self.config.staging_dir)
        self.table_builder = TableBuilder(
            connection,
            fetcher,
            self.registrar,
            missing_value_tokens=self.config.missing_value_tokens,
            keep_staged_files=self.config.keep_staged_files,
        )
        self.consolidator = Consolidator(connection)

    def run(self) -> IngestionReport:
        report = IngestionReport(started_at=datetime.now(timezone.utc).isoformat())

        report.datasets = self.table_builder.build_all(self.registry)
        loaded = sum(1 for d in report.datasets if d.loaded)
        logger.info("Loaded %s of %s datasets", loaded, len(report.datasets))

        report.derived = self.consolidator.run(DERIVED_TABLES)
        report.indexes = build_indexes(self.conn)
        report.validation_errors = self._validate(report.derived)

        report.finished_at = datetime.now(timezone.utc).isoformat()
        if self.config.report_path:
            self._write(report)
        return report

    def _validate(self, derived: Sequence[DerivedResult]) -> Dict[str, List[str]]:
        validation_errors: Dict[str, List[str]] = {}
        for result in derived:
            if result.status == STATUS_FAILED:
                continue
            errors: List[str] = []
            if result.table in UNIQUE_KEYS:
                errors.extend(validate_unique_key(self.conn, result.table, UNIQUE_KEYS[result.table]))
            if result.table in NOT_NULL_COLUMNS:
                errors.extend(validate_not_null(self.conn, result.table, NOT_NULL_COLUMNS[result.table]))
            if errors:
                logger.warning("%s validation errors: %s", result.table, errors)
            validation_errors[result.table] = errors
            self._assert_valid(result.table, errors)
        return validation_errors

    def _assert_valid(self, table: str, errors: List[str]) -> None:
        if errors and self.config.strict_validation:
            raise ValueError(f"{table} validation failed: {errors[:5]}")

    def _write(self, report: IngestionReport) -> str:
        path = Path(self.config.report_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        return str(path)
