"""Static registry of CSV datasets and the raw tables they load into.

Adding a dataset is a data change: append a ``Dataset`` to
``DEFAULT_REGISTRY``. Order matters, every raw table must be loaded before
consolidation reads it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Sequence, Tuple

from ..normalize import normalize_column_name

SUPPORTED_TYPES = ("VARCHAR", "INTEGER", "DOUBLE", "BOOLEAN", "DATE")


class Mode(str, Enum):
    EXPLICIT = "explicit"
    AUTO = "auto"


@dataclass(frozen=True)
class Column:
    """A typed column and the CSV header it is read from."""

    name: str
    type: str = "VARCHAR"
    source: Optional[str] = None
    date_formats: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.type not in SUPPORTED_TYPES:
            raise ValueError(f"Unsupported column type {self.type!r} for {self.name}")

    @property
    def header(self) -> str:
        return self.source or self.name

    @property
    def header_key(self) -> str:
        return normalize_column_name(self.header)


@dataclass(frozen=True)
class Dataset:
    key: str
    source_file: str
    table: str
    mode: Mode = Mode.EXPLICIT
    columns: Tuple[Column, ...] = ()
    optional: bool = False

    def __post_init__(self):
        if self.mode is Mode.EXPLICIT and not self.columns:
            raise ValueError(f"Dataset {self.key} is EXPLICIT but declares no columns")
        if self.mode is Mode.AUTO and self.columns:
            raise ValueError(f"Dataset {self.key} is AUTO and must not declare columns")
        names = [c.name for c in self.columns]
        if len(names) != len(set(names)):
            raise ValueError(f"Dataset {self.key} declares duplicate columns")


def _c(name: str, type_: str = "VARCHAR", source: Optional[str] = None, date_formats: Tuple[str, ...] = ()) -> Column:
    return Column(name=name, type=type_, source=source, date_formats=date_formats)


_PER_GAME_COLUMNS = (
    _c("seas_id", "INTEGER"),
    _c("season", "INTEGER"),
    _c("player_id"),
    _c("player"),
    _c("birth_year"),
    _c("pos"),
    _c("age", "INTEGER"),
    _c("experience", "INTEGER"),
    _c("lg"),
    _c("tm"),
    _c("g", "INTEGER"),
    _c("gs", "INTEGER"),
    _c("mp_per_game", "DOUBLE"),
    _c("fg_per_game", "DOUBLE"),
    _c("fga_per_game", "DOUBLE"),
    _c("fg_percent", "DOUBLE"),
    _c("x3p_per_game", "DOUBLE"),
    _c("x3pa_per_game", "DOUBLE"),
    _c("x3p_percent", "DOUBLE"),
    _c("x2p_per_game", "DOUBLE"),
    _c("x2pa_per_game", "DOUBLE"),
    _c("x2p_percent", "DOUBLE"),
    _c("e_fg_percent", "DOUBLE"),
    _c("ft_per_game", "DOUBLE"),
    _c("fta_per_game", "DOUBLE"),
    _c("ft_percent", "DOUBLE"),
    _c("orb_per_game", "DOUBLE"),
    _c("drb_per_game", "DOUBLE"),
    _c("trb_per_game", "DOUBLE"),
    _c("ast_per_game", "DOUBLE"),
    _c("stl_per_game", "DOUBLE"),
    _c("blk_per_game", "DOUBLE"),
    _c("tov_per_game", "DOUBLE"),
    _c("pf_per_game", "DOUBLE"),
    _c("pts_per_game", "DOUBLE"),
)

_TOTALS_COLUMNS = (
    _c("seas_id", "INTEGER"),
    _c("season", "INTEGER"),
    _c("player_id"),
    _c("player"),
    _c("pos"),
    _c("age", "INTEGER"),
    _c("lg"),
    _c("tm"),
    _c("g", "INTEGER"),
    _c("gs", "INTEGER"),
    _c("mp", "INTEGER"),
    _c("fg", "INTEGER"),
    _c("fga", "INTEGER"),
    _c("fg_percent", "DOUBLE"),
    _c("x3p", "INTEGER"),
    _c("x3pa", "INTEGER"),
    _c("x3p_percent", "DOUBLE"),
    _c("e_fg_percent", "DOUBLE"),
    _c("ft", "INTEGER"),
    _c("fta", "INTEGER"),
    _c("ft_percent", "DOUBLE"),
    _c("orb", "INTEGER"),
    _c("drb", "INTEGER"),
    _c("trb", "INTEGER"),
    _c("ast", "INTEGER"),
    _c("stl", "INTEGER"),
    _c("blk", "INTEGER"),
    _c("tov", "INTEGER"),
    _c("pf", "INTEGER"),
    _c("pts", "INTEGER"),
)

DEFAULT_REGISTRY: Tuple[Dataset, ...] = (
    Dataset(
        key="player_career_info",
        source_file="Player Career Info.csv",
        table="raw_player_career_info",
        columns=(
            _c("player_id"),
            _c("player"),
            _c("hof", "BOOLEAN"),
            _c("num_seasons", "INTEGER"),
            _c("first_seas", "INTEGER"),
            _c("last_seas", "INTEGER"),
        ),
    ),
    Dataset(
        key="player_directory",
        source_file="Player Directory.csv",
        table="raw_player_directory",
        optional=True,
        columns=(
            _c("player_id"),
            _c("player", source="Player"),
            _c("pos", source="Pos"),
            _c("ht", source="Ht"),
            _c("wt", "INTEGER", source="Wt"),
            _c("birth_date", "DATE", source="Date of Birth", date_formats=("%B %d, %Y", "%b %d, %Y")),
            _c("college", source="College"),
            _c("draft", source="Draft"),
        ),
    ),
    Dataset(
        key="player_season_info",
        source_file="Player Season Info.csv",
        table="raw_player_season_info",
        optional=True,
        columns=(
            _c("season", "INTEGER"),
            _c("seas_id", "INTEGER"),
            _c("player_id"),
            _c("player"),
            _c("birth_year"),
            _c("pos"),
            _c("age", "INTEGER"),
            _c("lg"),
            _c("tm"),
            _c("experience", "INTEGER"),
        ),
    ),
    Dataset(
        key="player_per_game",
        source_file="Player Per Game.csv",
        table="raw_player_per_game",
        columns=_PER_GAME_COLUMNS,
    ),
    Dataset(
        key="player_totals",
        source_file="Player Totals.csv",
        table="raw_player_totals",
        optional=True,
        columns=_TOTALS_COLUMNS,
    ),
    Dataset(
        key="player_advanced",
        source_file="Advanced.csv",
        table="raw_player_advanced",
        mode=Mode.AUTO,
        optional=True,
    ),
    Dataset(
        key="player_playoffs_per_game",
        source_file="Player Playoffs Per Game.csv",
        table="raw_player_playoffs_per_game",
        optional=True,
        columns=_PER_GAME_COLUMNS,
    ),
    Dataset(
        key="team_summaries",
        source_file="Team Summaries.csv",
        table="raw_team_summaries",
        columns=(
            _c("season", "INTEGER"),
            _c("lg"),
            _c("team"),
            _c("abbreviation"),
            _c("playoffs", "BOOLEAN"),
            _c("w", "INTEGER"),
            _c("l", "INTEGER"),
            _c("mov", "DOUBLE"),
            _c("srs", "DOUBLE"),
            _c("o_rtg", "DOUBLE"),
            _c("d_rtg", "DOUBLE"),
            _c("n_rtg", "DOUBLE"),
            _c("pace", "DOUBLE"),
            _c("coaches"),
            _c("top_ws"),
            _c("pts", "INTEGER"),
            _c("trb", "INTEGER"),
            _c("ast", "INTEGER"),
        ),
    ),
    Dataset(
        key="team_abbrev",
        source_file="Team Abbrev.csv",
        table="raw_team_abbrev",
        optional=True,
        columns=(
            _c("season", "INTEGER"),
            _c("lg"),
            _c("team"),
            _c("playoffs", "BOOLEAN"),
            _c("abbreviation"),
        ),
    ),
    Dataset(
        key="draft_history",
        source_file="Draft History.csv",
        table="raw_draft_history",
        optional=True,
        columns=(
            _c("season", "INTEGER"),
            _c("lg"),
            _c("overall_pick", "INTEGER"),
            _c("round", "INTEGER"),
            _c("round_pick", "INTEGER"),
            _c("tm"),
            _c("player"),
            _c("player_id"),
            _c("college"),
        ),
    ),
    Dataset(
        key="games",
        source_file="Games.csv",
        table="raw_games",
        optional=True,
        columns=(
            _c("game_id"),
            _c("game_date", "DATE", date_formats=("%Y-%m-%d %H:%M:%S", "%m/%d/%Y")),
            _c("season", "INTEGER"),
            _c("season_type"),
            _c("home_team", source="team_abbreviation_home"),
            _c("away_team", source="team_abbreviation_away"),
            _c("home_pts", "INTEGER", source="pts_home"),
            _c("away_pts", "INTEGER", source="pts_away"),
            _c("home_reb", "INTEGER", source="reb_home"),
            _c("away_reb", "INTEGER", source="reb_away"),
            _c("home_ast", "INTEGER", source="ast_home"),
            _c("away_ast", "INTEGER", source="ast_away"),
            _c("home_tov", "INTEGER", source="tov_home"),
            _c("away_tov", "INTEGER", source="tov_away"),
        ),
    ),
)


def iter_datasets(registry: Sequence[Dataset] = DEFAULT_REGISTRY) -> Iterator[Dataset]:
    return iter(tuple(registry))


def get_dataset(key: str, registry: Sequence[Dataset] = DEFAULT_REGISTRY) -> Dataset:
    for dataset in registry:
        if dataset.key == key:
            return dataset
    raise KeyError(f"Unknown dataset: {key}")


def required_datasets(registry: Sequence[Dataset] = DEFAULT_REGISTRY) -> Tuple[Dataset, ...]:
    return tuple(d for d in registry if not d.optional)
