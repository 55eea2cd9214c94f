"""Parameter-bound queries over the consolidated tables.

Filter values are always bound with ``?``. ORDER BY identifiers cannot be
bound, so they are only taken from ``ALLOWED_SORT_COLUMNS``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..data.ingestion.consolidation import DERIVED_TABLES
from ..data.ingestion.sql import quote_ident
from ..data.normalize import (
    extract_player_id,
    extract_team_code,
    format_season,
    is_valid_season,
    normalize_player_id,
    normalize_team_code,
    parse_season,
)
from .gateway import QueryGateway, QueryResult

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
LEADERS_LIMIT = 20

# Computed columns exposed by the catalog queries below.
_DERIVED_SORT_COLUMNS = ("stat_value", "start_year", "end_year", "draft_year")

ALLOWED_SORT_COLUMNS = frozenset(
    {name for table in DERIVED_TABLES for name, _ in table.columns} | set(_DERIVED_SORT_COLUMNS)
)

# stat column -> stat_variant it is ranked from
LEADER_STATS: Dict[str, str] = {
    "pts": "per_game",
    "trb": "per_game",
    "ast": "per_game",
    "stl": "per_game",
    "blk": "per_game",
    "tov": "per_game",
    "mp": "per_game",
    "fg_pct": "per_game",
    "fg3_pct": "per_game",
    "ft_pct": "per_game",
    "e_fg_pct": "per_game",
    "per": "advanced",
    "ts_pct": "advanced",
    "usg_pct": "advanced",
    "ws": "advanced",
    "ws_per_48": "advanced",
    "bpm": "advanced",
    "vorp": "advanced",
}


@dataclass
class SortState:
    """Sort column and direction for a table view."""

    key: Optional[str] = None
    descending: bool = False

    def request(self, key: str) -> "SortState":
        """Sort by ``key``; asking for the current ascending key flips it."""
        if key not in ALLOWED_SORT_COLUMNS:
            logger.warning("Ignoring sort on column not in allow-list: %r", key)
            return self
        if self.key == key and not self.descending:
            return SortState(key, True)
        return SortState(key, False)


def _strip(sql: str) -> str:
    return sql.strip().rstrip(";").strip()


def _player_key(value: str) -> str:
    """Accept a bare slug or a player page URL."""
    player_id = normalize_player_id(value)
    return extract_player_id(player_id) or player_id


def _team_key(value: str) -> str:
    code = extract_team_code(str(value).strip()) if value else None
    return normalize_team_code(code or value)


def apply_sort(sql: str, sort: Optional[SortState]) -> str:
    if sort is None or sort.key is None:
        return _strip(sql)
    if sort.key not in ALLOWED_SORT_COLUMNS:
        raise ValueError(f"Sort column not allowed: {sort.key!r}")
    direction = "DESC" if sort.descending else "ASC"
    return f"SELECT * FROM ({_strip(sql)}) AS t ORDER BY {quote_ident(sort.key)} {direction} NULLS LAST"


def paginate(
    sql: str,
    params: Optional[Sequence[Any]] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Tuple[str, List[Any]]:
    """Append a bound LIMIT/OFFSET for the 1-based ``page``."""
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    bound = list(params or [])
    return f"{_strip(sql)} LIMIT ? OFFSET ?", bound + [page_size, (page - 1) * page_size]


class StatsQueries:
    """Read queries behind the player, team, season, draft and playoff views."""

    def __init__(self, gateway: QueryGateway):
        self.gateway = gateway

    def table(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        sort: Optional[SortState] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> QueryResult:
        paged_sql, bound = paginate(apply_sort(sql, sort), params, page, page_size)
        return self.gateway.execute(paged_sql, bound)

    def search_players(self, term: str = "") -> QueryResult:
        return self.gateway.execute(
            """
            SELECT player_id, player_name, is_active, is_hall_of_famer
            FROM Players
            WHERE player_name ILIKE ?
            ORDER BY player_name ASC
            """,
            [f"%{term}%"],
        )

    def player_profile(self, player_id: str) -> QueryResult:
        return self.gateway.execute(
            "SELECT * FROM Players WHERE player_id = ?",
            [_player_key(player_id)],
        )

    def player_seasons(self, player_id: str, stat_variant: str = "per_game") -> QueryResult:
        return self.gateway.execute(
            """
            SELECT *
            FROM PlayerSeasonStats
            WHERE player_id = ? AND stat_variant = ?
            ORDER BY season ASC, is_multi_team_total DESC, team_code ASC
            """,
            [_player_key(player_id), stat_variant],
        )

    def teams_index(self, term: str = "") -> QueryResult:
        return self.gateway.execute(
            """
            SELECT
                team_code,
                team_name,
                MIN(season_id) AS start_year,
                MAX(season_id) AS end_year
            FROM TeamSeasonRecords
            WHERE team_name ILIKE ?
            GROUP BY team_code, team_name
            ORDER BY team_name ASC
            """,
            [f"%{term}%"],
        )

    def team_history(self, team_code: str) -> QueryResult:
        return self.gateway.execute(
            """
            SELECT
                season_id, team_name, wins, losses, win_loss_percentage,
                made_playoffs, offensive_rating, defensive_rating, net_rating, coaches
            FROM TeamSeasonRecords
            WHERE team_code = ?
            ORDER BY season_id ASC
            """,
            [_team_key(team_code)],
        )

    def team_season(self, team_code: str, season) -> QueryResult:
        return self.gateway.execute(
            "SELECT * FROM TeamSeasonRecords WHERE team_code = ? AND season_id = ?",
            [_team_key(team_code), parse_season(season)],
        )

    def team_roster(self, team_code: str, season) -> QueryResult:
        return self.gateway.execute(
            """
            SELECT
                s.player_id, s.player_name, p.position, s.age, s.g, s.gs,
                s.mp, s.pts, s.trb, s.ast
            FROM PlayerSeasonStats AS s
            LEFT JOIN Players AS p ON p.player_id = s.player_id
            WHERE s.team_code = ? AND s.season = ? AND s.stat_variant = 'per_game'
            ORDER BY s.pts DESC NULLS LAST
            """,
            [_team_key(team_code), parse_season(season)],
        )

    def season_standings(self, season) -> QueryResult:
        return self.gateway.execute(
            """
            SELECT team_code, team_name, league, wins, losses, win_loss_percentage, made_playoffs, srs
            FROM TeamSeasonRecords
            WHERE season_id = ?
            ORDER BY wins DESC NULLS LAST, team_name ASC
            """,
            [parse_season(season)],
        )

    def seasons(self) -> QueryResult:
        """Every season with team records, newest first, with a ``"2023-24"`` style label."""
        result = self.gateway.execute(
            "SELECT DISTINCT season_id AS season FROM TeamSeasonRecords ORDER BY season DESC"
        )
        if result.ok:
            result.columns.append("label")
            for row in result.rows:
                row["label"] = format_season(row["season"])
        return result

    def latest_season(self) -> Optional[int]:
        result = self.gateway.execute(
            "SELECT MAX(season) AS latest_season FROM PlayerSeasonStats WHERE stat_variant = 'per_game'"
        )
        row = result.first()
        if row is None or row["latest_season"] is None:
            return None
        return int(row["latest_season"])

    def season_leaders(self, stat: str, season=None, league: str = "NBA", limit: int = LEADERS_LIMIT) -> QueryResult:
        """Top players for ``stat``; multi-team total rows and zero-game rows are excluded."""
        if stat not in LEADER_STATS:
            raise ValueError(f"Unknown leader stat: {stat!r}")
        season_year = parse_season(season) if season is not None else self.latest_season()
        if season is not None and not is_valid_season(season_year):
            raise ValueError(f"Invalid season: {season!r}")
        return self.gateway.execute(
            f"""
            SELECT
                s.player_id,
                COALESCE(p.player_name, s.player_name) AS player_name,
                s.team_code,
                s.{quote_ident(stat)} AS stat_value
            FROM PlayerSeasonStats AS s
            LEFT JOIN Players AS p ON p.player_id = s.player_id
            WHERE s.season = ?
              AND s.league = ?
              AND s.stat_variant = ?
              AND NOT s.is_multi_team_total
              AND s.g > 0
              AND s.{quote_ident(stat)} IS NOT NULL
            ORDER BY stat_value DESC, player_name ASC
            LIMIT ?
            """,
            [season_year, league, LEADER_STATS[stat], limit],
        )

    def draft_years(self) -> QueryResult:
        return self.gateway.execute("SELECT DISTINCT season AS draft_year FROM DraftPicks ORDER BY draft_year DESC")

    def draft_class(self, season) -> QueryResult:
        return self.gateway.execute(
            """
            SELECT overall_pick, round_number, round_pick, team_code, team_name, player_id, player_name, college
            FROM DraftPicks
            WHERE season = ?
            ORDER BY overall_pick ASC
            """,
            [parse_season(season)],
        )

    def playoff_games(self, season) -> QueryResult:
        return self.gateway.execute(
            """
            SELECT game_id, game_date, home_team, away_team, home_pts, away_pts
            FROM Games
            WHERE season = ? AND season_type = 'Playoffs'
            ORDER BY game_date ASC, game_id ASC
            """,
            [parse_season(season)],
        )
