"""Derived tables built from the raw per-file tables.

Downstream queries only ever read the tables named in
``CONSOLIDATED_TABLES``. Each build is a full replace: the table is dropped,
recreated from its declared column list and filled with one
``INSERT ... BY NAME SELECT``. Raw columns are looked up by normalized name,
so a raw table that lacks a column contributes NULLs and a missing
non-driving raw table behaves like an empty relation.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import duckdb

from ...errors import ConsolidationError
from ..normalize import normalize_column_name
from .sql import column_index, count_rows, drop_table, quote_ident, quote_literal, table_columns, table_exists

logger = logging.getLogger(__name__)

STATUS_BUILT = "built"
STATUS_PLACEHOLDER = "placeholder"
STATUS_FAILED = "failed"

MULTI_TEAM_PATTERN = "^(TOT|[0-9]+TM)$"

PLAYOFF_SEASON_TYPES = ("playoffs", "playoff", "post", "postseason", "po")
REGULAR_SEASON_TYPES = ("regular season", "regular", "reg", "rs")

Field = Tuple[str, str, Tuple[str, ...]]


def _f(name: str, type_: str = "VARCHAR", *aliases: str) -> Field:
    return (name, type_, aliases)


def _tiebreak(names: Iterable[str]) -> str:
    """Order by every listed column so row_number() keeps the same row on each run."""
    return ", ".join(f"{quote_ident(name)} NULLS LAST" for name in names)


@dataclass(frozen=True)
class DerivedTable:
    name: str
    columns: Tuple[Tuple[str, str], ...]
    required: bool = False


PLAYERS = DerivedTable(
    name="Players",
    required=True,
    columns=(
        ("player_id", "VARCHAR"),
        ("player_name", "VARCHAR"),
        ("is_hall_of_famer", "BOOLEAN"),
        ("is_active", "BOOLEAN"),
        ("position", "VARCHAR"),
        ("height", "VARCHAR"),
        ("weight", "INTEGER"),
        ("birth_date", "DATE"),
        ("college", "VARCHAR"),
        ("draft", "VARCHAR"),
        ("first_season", "INTEGER"),
        ("last_season", "INTEGER"),
        ("num_seasons", "INTEGER"),
    ),
)

TEAM_SEASON_RECORDS = DerivedTable(
    name="TeamSeasonRecords",
    required=True,
    columns=(
        ("team_code", "VARCHAR"),
        ("season_id", "INTEGER"),
        ("league", "VARCHAR"),
        ("team_name", "VARCHAR"),
        ("wins", "INTEGER"),
        ("losses", "INTEGER"),
        ("win_loss_percentage", "DOUBLE"),
        ("made_playoffs", "BOOLEAN"),
        ("offensive_rating", "DOUBLE"),
        ("defensive_rating", "DOUBLE"),
        ("net_rating", "DOUBLE"),
        ("pace", "DOUBLE"),
        ("margin_of_victory", "DOUBLE"),
        ("srs", "DOUBLE"),
        ("coaches", "VARCHAR"),
        ("season_leader", "VARCHAR"),
        ("total_points", "INTEGER"),
        ("total_rebounds", "INTEGER"),
        ("total_assists", "INTEGER"),
    ),
)

# Output stat column -> raw header candidates across the totals, per-game
# and advanced files.
STAT_FIELDS: Tuple[Field, ...] = (
    _f("g", "INTEGER"),
    _f("gs", "INTEGER"),
    _f("mp", "DOUBLE", "mp_per_game"),
    _f("fg", "DOUBLE", "fg_per_game"),
    _f("fga", "DOUBLE", "fga_per_game"),
    _f("fg_pct", "DOUBLE", "fg_percent"),
    _f("fg3", "DOUBLE", "x3p", "x3p_per_game"),
    _f("fg3a", "DOUBLE", "x3pa", "x3pa_per_game"),
    _f("fg3_pct", "DOUBLE", "x3p_percent"),
    _f("ft", "DOUBLE", "ft_per_game"),
    _f("fta", "DOUBLE", "fta_per_game"),
    _f("ft_pct", "DOUBLE", "ft_percent"),
    _f("orb", "DOUBLE", "orb_per_game"),
    _f("drb", "DOUBLE", "drb_per_game"),
    _f("trb", "DOUBLE", "trb_per_game"),
    _f("ast", "DOUBLE", "ast_per_game"),
    _f("stl", "DOUBLE", "stl_per_game"),
    _f("blk", "DOUBLE", "blk_per_game"),
    _f("tov", "DOUBLE", "tov_per_game"),
    _f("pf", "DOUBLE", "pf_per_game"),
    _f("pts", "DOUBLE", "pts_per_game"),
    _f("e_fg_pct", "DOUBLE", "e_fg_percent"),
    _f("per", "DOUBLE"),
    _f("ts_pct", "DOUBLE", "ts_percent"),
    _f("usg_pct", "DOUBLE", "usg_percent"),
    _f("ows", "DOUBLE"),
    _f("dws", "DOUBLE"),
    _f("ws", "DOUBLE"),
    _f("ws_per_48", "DOUBLE", "ws_48"),
    _f("obpm", "DOUBLE"),
    _f("dbpm", "DOUBLE"),
    _f("bpm", "DOUBLE"),
    _f("vorp", "DOUBLE"),
)

STAT_IDENTITY_FIELDS: Tuple[Field, ...] = (
    _f("player_id"),
    _f("player_name", "VARCHAR", "player"),
    _f("season", "INTEGER"),
    _f("team_code", "VARCHAR", "tm", "team"),
    _f("league", "VARCHAR", "lg"),
    _f("position", "VARCHAR", "pos"),
    _f("age", "INTEGER"),
)

STAT_VARIANTS: Tuple[Tuple[str, str], ...] = (
    ("per_game", "raw_player_per_game"),
    ("totals", "raw_player_totals"),
    ("advanced", "raw_player_advanced"),
    ("playoffs_per_game", "raw_player_playoffs_per_game"),
)

PLAYER_SEASON_STATS = DerivedTable(
    name="PlayerSeasonStats",
    columns=(
        ("player_id", "VARCHAR"),
        ("player_name", "VARCHAR"),
        ("season", "INTEGER"),
        ("team_code", "VARCHAR"),
        ("league", "VARCHAR"),
        ("position", "VARCHAR"),
        ("age", "INTEGER"),
        ("stat_variant", "VARCHAR"),
        ("is_multi_team_total", "BOOLEAN"),
    )
    + tuple((name, type_) for name, type_, _ in STAT_FIELDS),
)

DRAFT_PICKS = DerivedTable(
    name="DraftPicks",
    columns=(
        ("season", "INTEGER"),
        ("league", "VARCHAR"),
        ("overall_pick", "INTEGER"),
        ("round_number", "INTEGER"),
        ("round_pick", "INTEGER"),
        ("team_code", "VARCHAR"),
        ("team_name", "VARCHAR"),
        ("player_name", "VARCHAR"),
        ("player_id", "VARCHAR"),
        ("college", "VARCHAR"),
    ),
)

GAMES = DerivedTable(
    name="Games",
    columns=(
        ("game_id", "VARCHAR"),
        ("game_date", "DATE"),
        ("season", "INTEGER"),
        ("season_type", "VARCHAR"),
        ("home_team", "VARCHAR"),
        ("away_team", "VARCHAR"),
        ("home_pts", "INTEGER"),
        ("away_pts", "INTEGER"),
        ("home_reb", "INTEGER"),
        ("away_reb", "INTEGER"),
        ("home_ast", "INTEGER"),
        ("away_ast", "INTEGER"),
        ("home_tov", "INTEGER"),
        ("away_tov", "INTEGER"),
    ),
)

DERIVED_TABLES: Tuple[DerivedTable, ...] = (
    PLAYERS,
    TEAM_SEASON_RECORDS,
    PLAYER_SEASON_STATS,
    DRAFT_PICKS,
    GAMES,
)

CONSOLIDATED_TABLES: Tuple[str, ...] = tuple(t.name for t in DERIVED_TABLES)
REQUIRED_TABLES: Tuple[str, ...] = tuple(t.name for t in DERIVED_TABLES if t.required)


@dataclass
class DerivedResult:
    table: str
    required: bool
    status: str
    rows: int = 0
    error: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    @property
    def built(self) -> bool:
        return self.status == STATUS_BUILT

    def to_dict(self) -> Dict:
        return asdict(self)


class Consolidator:
    """Runs the fixed, ordered sequence of derived-table builds."""

    def __init__(self, connection: duckdb.DuckDBPyConnection):
        self.conn = connection
        self._builders = {
            PLAYERS.name: self._players_sql,
            TEAM_SEASON_RECORDS.name: self._team_season_records_sql,
            PLAYER_SEASON_STATS.name: self._player_season_stats_sql,
            DRAFT_PICKS.name: self._draft_picks_sql,
            GAMES.name: self._games_sql,
        }

    def run(self, tables: Sequence[DerivedTable] = DERIVED_TABLES) -> List[DerivedResult]:
        return [self.build(table) for table in tables]

    def build(self, table: DerivedTable) -> DerivedResult:
        notes: List[str] = []
        try:
            select_sql = self._builders[table.name](notes)
            drop_table(self.conn, table.name)
            self._create(table)
            self.conn.execute(f"INSERT INTO {quote_ident(table.name)} BY NAME {select_sql}")
            rows = count_rows(self.conn, table.name)
        except (ConsolidationError, duckdb.Error) as exc:
            logger.error("Failed to build %s: %s", table.name, exc)
            return self._fail(table, exc, notes)

        for note in notes:
            logger.info("%s: %s", table.name, note)
        logger.info("Built %s with %s rows", table.name, rows)
        return DerivedResult(table=table.name, required=table.required, status=STATUS_BUILT, rows=rows, notes=notes)

    def _create(self, table: DerivedTable) -> None:
        column_defs = ", ".join(f"{quote_ident(name)} {type_}" for name, type_ in table.columns)
        self.conn.execute(f"CREATE TABLE {quote_ident(table.name)} ({column_defs})")

    def _fail(self, table: DerivedTable, exc: Exception, notes: List[str]) -> DerivedResult:
        status = STATUS_FAILED
        try:
            drop_table(self.conn, table.name)
            if not table.required:
                self._create(table)
                status = STATUS_PLACEHOLDER
        except duckdb.Error as cleanup_exc:
            logger.warning("Could not reset %s after failure: %s", table.name, cleanup_exc)
        return DerivedResult(table=table.name, required=table.required, status=status, error=str(exc), notes=notes)

    def project(self, table: str, fields: Sequence[Field]) -> str:
        """SELECT over ``table`` exposing ``fields`` under their output names.

        A missing table yields an empty relation with the same typed columns.
        """
        if not table_exists(self.conn, table):
            nulls = ", ".join(f"CAST(NULL AS {type_}) AS {quote_ident(name)}" for name, type_, _ in fields)
            return f"SELECT {nulls} WHERE FALSE"

        index = column_index(table_columns(self.conn, table))
        expressions = []
        for name, type_, aliases in fields:
            actual = None
            for candidate in (name,) + tuple(aliases):
                actual = index.get(normalize_column_name(candidate))
                if actual is not None:
                    break
            if actual is None:
                expressions.append(f"CAST(NULL AS {type_}) AS {quote_ident(name)}")
            else:
                expressions.append(f"TRY_CAST({quote_ident(actual)} AS {type_}) AS {quote_ident(name)}")
        return f"SELECT {', '.join(expressions)} FROM {quote_ident(table)}"

    def _require(self, table: str, derived: str) -> None:
        if not table_exists(self.conn, table):
            raise ConsolidationError(derived, f"driving table {table} is missing")

    def _scalar(self, sql: str) -> int:
        row = self.conn.execute(sql).fetchone()
        return int(row[0] or 0) if row else 0

    def _players_sql(self, notes: List[str]) -> str:
        self._require("raw_player_career_info", PLAYERS.name)
        career_fields = (
            _f("player_id"),
            _f("player", "VARCHAR", "player_name"),
            _f("hof", "BOOLEAN"),
            _f("num_seasons", "INTEGER"),
            _f("first_seas", "INTEGER", "first_season"),
            _f("last_seas", "INTEGER", "last_season"),
        )
        career = self.project("raw_player_career_info", career_fields)
        bio_fields = (
            _f("player_id"),
            _f("player"),
            _f("pos", "VARCHAR", "position"),
            _f("ht", "VARCHAR", "height"),
            _f("wt", "INTEGER", "weight"),
            _f("birth_date", "DATE"),
            _f("college"),
            _f("draft"),
        )
        bio = self.project("raw_player_directory", bio_fields)
        if not table_exists(self.conn, "raw_player_directory"):
            notes.append("bio source missing; bio columns are NULL")
        return f"""
            WITH career_src AS (
                SELECT * REPLACE (lower(trim(player_id)) AS player_id) FROM ({career}) AS c
            ),
            career AS (
                SELECT * FROM career_src
                WHERE player_id IS NOT NULL AND player_id <> ''
                QUALIFY row_number() OVER (
                    PARTITION BY player_id
                    ORDER BY last_seas DESC NULLS LAST, {_tiebreak(name for name, _, _ in career_fields)}
                ) = 1
            ),
            bio_src AS (
                SELECT * REPLACE (lower(trim(player_id)) AS player_id) FROM ({bio}) AS b
            ),
            bio AS (
                SELECT * FROM bio_src
                WHERE player_id IS NOT NULL AND player_id <> ''
                QUALIFY row_number() OVER (
                    PARTITION BY player_id
                    ORDER BY birth_date NULLS LAST, {_tiebreak(name for name, _, _ in bio_fields)}
                ) = 1
            ),
            latest AS (
                SELECT max(last_seas) AS last_seas FROM career
            )
            SELECT
                career.player_id AS player_id,
                COALESCE(career.player, bio.player) AS player_name,
                COALESCE(career.hof, FALSE) AS is_hall_of_famer,
                COALESCE(career.last_seas = latest.last_seas, FALSE) AS is_active,
                bio.pos AS position,
                bio.ht AS height,
                bio.wt AS weight,
                bio.birth_date AS birth_date,
                bio.college AS college,
                bio.draft AS draft,
                career.first_seas AS first_season,
                career.last_seas AS last_season,
                career.num_seasons AS num_seasons
            FROM career
            CROSS JOIN latest
            LEFT JOIN bio ON bio.player_id = career.player_id
            ORDER BY career.player_id
        """

    def _team_season_records_sql(self, notes: List[str]) -> str:
        self._require("raw_team_summaries", TEAM_SEASON_RECORDS.name)
        source = self.project(
            "raw_team_summaries",
            (
                _f("season", "INTEGER"),
                _f("lg"),
                _f("team"),
                _f("abbreviation", "VARCHAR", "team_code", "abbrev"),
                _f("playoffs", "BOOLEAN"),
                _f("w", "INTEGER"),
                _f("l", "INTEGER"),
                _f("mov", "DOUBLE"),
                _f("srs", "DOUBLE"),
                _f("o_rtg", "DOUBLE"),
                _f("d_rtg", "DOUBLE"),
                _f("n_rtg", "DOUBLE"),
                _f("pace", "DOUBLE"),
                _f("coaches"),
                _f("top_ws"),
                _f("pts", "INTEGER"),
                _f("trb", "INTEGER"),
                _f("ast", "INTEGER"),
            ),
        )
        keyed = f"""
            SELECT
                upper(trim(replace(abbreviation, '*', ''))) AS team_code,
                season AS season_id,
                lg AS league,
                trim(replace(team, '*', '')) AS team_name,
                w AS wins,
                l AS losses,
                COALESCE(playoffs, strpos(team, '*') > 0, FALSE) AS made_playoffs,
                o_rtg AS offensive_rating,
                d_rtg AS defensive_rating,
                COALESCE(n_rtg, o_rtg - d_rtg) AS net_rating,
                pace,
                mov AS margin_of_victory,
                srs,
                coaches,
                top_ws AS season_leader,
                pts AS total_points,
                trb AS total_rebounds,
                ast AS total_assists
            FROM ({source}) AS s
            WHERE abbreviation IS NOT NULL
              AND trim(replace(abbreviation, '*', '')) <> ''
              AND season IS NOT NULL
        """

        total = self._scalar(f"SELECT COUNT(*) FROM ({source}) AS s")
        kept = self._scalar(f"SELECT COUNT(*) FROM ({keyed}) AS k")
        distinct = self._scalar(f"SELECT COUNT(*) FROM (SELECT DISTINCT team_code, season_id FROM ({keyed}) AS k) AS d")
        if total > kept:
            notes.append(f"dropped {total - kept} rows without team_code/season_id")
        if kept > distinct:
            notes.append(f"collapsed {kept - distinct} duplicate team-season rows")

        tiebreak = _tiebreak(name for name, _ in TEAM_SEASON_RECORDS.columns if name != "win_loss_percentage")
        return f"""
            SELECT
                *,
                CASE
                    WHEN COALESCE(wins, 0) + COALESCE(losses, 0) > 0
                    THEN round(CAST(COALESCE(wins, 0) AS DOUBLE) / (COALESCE(wins, 0) + COALESCE(losses, 0)), 3)
                    ELSE NULL
                END AS win_loss_percentage
            FROM ({keyed}) AS k
            QUALIFY row_number() OVER (
                PARTITION BY team_code, season_id
                ORDER BY COALESCE(wins, 0) + COALESCE(losses, 0) DESC, {tiebreak}
            ) = 1
            ORDER BY season_id, team_code
        """

    def _player_season_stats_sql(self, notes: List[str]) -> str:
        present = [table for _, table in STAT_VARIANTS if table_exists(self.conn, table)]
        if not present:
            raise ConsolidationError(PLAYER_SEASON_STATS.name, "no player stat tables are loaded")

        fields = STAT_IDENTITY_FIELDS + STAT_FIELDS
        parts = [
            f"SELECT {quote_literal(variant)} AS stat_variant, * FROM ({self.project(table, fields)}) AS v"
            for variant, table in STAT_VARIANTS
        ]
        union = "\nUNION ALL\n".join(parts)
        missing = [table for _, table in STAT_VARIANTS if table not in present]
        if missing:
            notes.append(f"missing stat sources: {', '.join(missing)}")

        tiebreak = _tiebreak(name for name, _, _ in STAT_IDENTITY_FIELDS + STAT_FIELDS)
        return f"""
            WITH stats AS (
                SELECT * REPLACE (
                    lower(trim(player_id)) AS player_id,
                    upper(trim(replace(team_code, '*', ''))) AS team_code
                )
                FROM ({union}) AS u
            )
            SELECT
                *,
                COALESCE(regexp_matches(team_code, {quote_literal(MULTI_TEAM_PATTERN)}), FALSE) AS is_multi_team_total
            FROM stats
            WHERE player_id IS NOT NULL AND player_id <> '' AND season IS NOT NULL
            QUALIFY row_number() OVER (
                PARTITION BY player_id, season, team_code, stat_variant
                ORDER BY g DESC NULLS LAST, {tiebreak}
            ) = 1
            ORDER BY player_id, season, stat_variant, team_code
        """

    def _draft_picks_sql(self, notes: List[str]) -> str:
        self._require("raw_draft_history", DRAFT_PICKS.name)
        picks = self.project(
            "raw_draft_history",
            (
                _f("season", "INTEGER"),
                _f("lg"),
                _f("overall_pick", "INTEGER", "pk"),
                _f("round", "INTEGER", "rd"),
                _f("round_pick", "INTEGER"),
                _f("tm", "VARCHAR", "team"),
                _f("player"),
                _f("player_id"),
                _f("college"),
            ),
        )
        abbrev = self.project(
            "raw_team_abbrev",
            (_f("season", "INTEGER"), _f("team"), _f("abbreviation", "VARCHAR", "team_code")),
        )
        players = self.project(PLAYERS.name, (_f("player_id"),))
        if not table_exists(self.conn, "raw_team_abbrev"):
            notes.append("team abbreviation source missing; team_name is NULL")

        tiebreak = _tiebreak(("player_id", "player", "lg", "round", "round_pick", "tm", "college"))
        return f"""
            WITH picks AS (
                SELECT * FROM ({picks}) AS d
                WHERE overall_pick IS NOT NULL AND season IS NOT NULL
                QUALIFY row_number() OVER (
                    PARTITION BY season, overall_pick
                    ORDER BY {tiebreak}
                ) = 1
            ),
            teams AS (
                SELECT
                    season,
                    upper(trim(abbreviation)) AS team_code,
                    min(trim(replace(team, '*', ''))) AS team_name
                FROM ({abbrev}) AS a
                WHERE abbreviation IS NOT NULL
                GROUP BY season, upper(trim(abbreviation))
            ),
            players AS (
                SELECT DISTINCT player_id FROM ({players}) AS p
            )
            SELECT
                picks.season AS season,
                picks.lg AS league,
                picks.overall_pick AS overall_pick,
                picks."round" AS round_number,
                picks.round_pick AS round_pick,
                upper(trim(picks.tm)) AS team_code,
                teams.team_name AS team_name,
                picks.player AS player_name,
                players.player_id AS player_id,
                picks.college AS college
            FROM picks
            LEFT JOIN teams
                ON teams.season = picks.season AND teams.team_code = upper(trim(picks.tm))
            LEFT JOIN players
                ON players.player_id = lower(trim(picks.player_id))
            ORDER BY picks.season, picks.overall_pick
        """

    def _games_sql(self, notes: List[str]) -> str:
        self._require("raw_games", GAMES.name)
        source = self.project(
            "raw_games",
            (
                _f("game_id"),
                _f("game_date", "DATE"),
                _f("season", "INTEGER"),
                _f("season_type"),
                _f("home_team", "VARCHAR", "team_abbreviation_home"),
                _f("away_team", "VARCHAR", "team_abbreviation_away"),
                _f("home_pts", "INTEGER", "pts_home"),
                _f("away_pts", "INTEGER", "pts_away"),
                _f("home_reb", "INTEGER", "reb_home"),
                _f("away_reb", "INTEGER", "reb_away"),
                _f("home_ast", "INTEGER", "ast_home"),
                _f("away_ast", "INTEGER", "ast_away"),
                _f("home_tov", "INTEGER", "tov_home"),
                _f("away_tov", "INTEGER", "tov_away"),
            ),
        )
        playoff_types = ", ".join(quote_literal(v) for v in PLAYOFF_SEASON_TYPES)
        regular_types = ", ".join(quote_literal(v) for v in REGULAR_SEASON_TYPES)
        typed = f"""
            SELECT
                * REPLACE (
                    trim(game_id) AS game_id,
                    upper(trim(home_team)) AS home_team,
                    upper(trim(away_team)) AS away_team,
                    CASE
                        WHEN lower(trim(season_type)) IN ({regular_types}) THEN 'Regular Season'
                        WHEN lower(trim(season_type)) IN ({playoff_types}) THEN 'Playoffs'
                        ELSE NULL
                    END AS season_type,
                    COALESCE(
                        season,
                        CASE WHEN month(game_date) >= 10 THEN year(game_date) + 1 ELSE year(game_date) END
                    ) AS season
                )
            FROM ({source}) AS r
            WHERE game_id IS NOT NULL AND trim(game_id) <> ''
        """

        unresolved = self._scalar(f"SELECT COUNT(*) FROM ({typed}) AS t WHERE season_type IS NULL")
        if unresolved:
            notes.append(f"dropped {unresolved} games with an unresolved season_type")

        tiebreak = _tiebreak(name for name, _ in GAMES.columns)
        return f"""
            SELECT * FROM ({typed}) AS t
            WHERE season_type IS NOT NULL
            QUALIFY row_number() OVER (PARTITION BY game_id ORDER BY {tiebreak}) = 1
            ORDER BY game_date, game_id
        """
