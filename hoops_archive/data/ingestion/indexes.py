"""Lookup indexes on the consolidated tables.

Indexes only change latency, never results, so every failure here is
logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import duckdb

from .sql import quote_ident, table_exists

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexSpec:
    name: str
    table: str
    columns: Tuple[str, ...]


@dataclass
class IndexResult:
    name: str
    table: str
    columns: Tuple[str, ...]
    created: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        payload = asdict(self)
        payload["columns"] = list(self.columns)
        return payload


DEFAULT_INDEXES: Tuple[IndexSpec, ...] = (
    IndexSpec("idx_players_player_id", "Players", ("player_id",)),
    IndexSpec("idx_team_season_records_team_season", "TeamSeasonRecords", ("team_code", "season_id")),
    IndexSpec("idx_player_season_stats_player_season", "PlayerSeasonStats", ("player_id", "season")),
    IndexSpec("idx_draft_picks_season", "DraftPicks", ("season",)),
    IndexSpec("idx_games_season_type", "Games", ("season", "season_type")),
)


def build_indexes(
    conn: duckdb.DuckDBPyConnection,
    specs: Sequence[IndexSpec] = DEFAULT_INDEXES,
) -> List[IndexResult]:
    results: List[IndexResult] = []
    for spec in specs:
        if not table_exists(conn, spec.table):
            logger.warning("Skipping index %s: table %s does not exist", spec.name, spec.table)
            results.append(IndexResult(spec.name, spec.table, spec.columns, False, f"table {spec.table} does not exist"))
            continue
        columns = ", ".join(quote_ident(c) for c in spec.columns)
        try:
            conn.execute(f"CREATE INDEX IF NOT EXISTS {quote_ident(spec.name)} ON {quote_ident(spec.table)} ({columns})")
        except duckdb.Error as exc:
            logger.warning("Could not create index %s: %s", spec.name, exc)
            results.append(IndexResult(spec.name, spec.table, spec.columns, False, str(exc)))
            continue
        results.append(IndexResult(spec.name, spec.table, spec.columns, True))
    return results
