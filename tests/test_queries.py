"""Tests for the query catalog, sorting and pagination."""

import datetime

import pytest

from conftest import ALL_FILES, MemoryFetcher
from hoops_archive.data.ingestion.pipeline import IngestionConfig
from hoops_archive.store.gatekeeper import StatsStore, StoreConfig
from hoops_archive.store.queries import SortState, StatsQueries, apply_sort, paginate


@pytest.fixture
def queries(tmp_path):
    store = StatsStore(
        StoreConfig(database_path=":memory:", ingestion=IngestionConfig(staging_dir=str(tmp_path / "staging"))),
        fetcher=MemoryFetcher(ALL_FILES),
    )
    store.initialize()
    yield StatsQueries(store.gateway())
    store.close()


def test_sort_state_toggles_direction():
    sort = SortState().request("pts")
    assert (sort.key, sort.descending) == ("pts", False)
    sort = sort.request("pts")
    assert (sort.key, sort.descending) == ("pts", True)
    sort = sort.request("pts")
    assert (sort.key, sort.descending) == ("pts", False)
    assert sort.request("ast") == SortState("ast", False)


def test_sort_state_ignores_unknown_column():
    sort = SortState("pts", True)
    assert sort.request("pts; DROP TABLE Players") is sort


def test_apply_sort_quotes_allowed_column():
    sql = apply_sort("SELECT * FROM Players;", SortState("player_name", True))
    assert sql == 'SELECT * FROM (SELECT * FROM Players) AS t ORDER BY "player_name" DESC NULLS LAST'
    assert apply_sort("SELECT 1", None) == "SELECT 1"
    with pytest.raises(ValueError):
        apply_sort("SELECT 1", SortState("1; --"))


def test_paginate_binds_limit_and_offset():
    sql, params = paginate("SELECT * FROM Players WHERE is_active = ?", [True], page=3, page_size=10)
    assert sql.endswith("LIMIT ? OFFSET ?")
    assert params == [True, 10, 20]
    with pytest.raises(ValueError):
        paginate("SELECT 1", page=0)


def test_table_sorts_and_pages(queries):
    sort = SortState().request("player_name")
    first = queries.table("SELECT player_id, player_name FROM Players", sort=sort, page=1, page_size=3)
    second = queries.table("SELECT player_id, player_name FROM Players", sort=sort, page=2, page_size=3)

    assert [r["player_name"] for r in first] == ["Kobe Bryant", "LeBron James", "Russell Westbrook"]
    assert [r["player_name"] for r in second] == ["Stephen Curry"]


def test_search_players_binds_term(queries):
    assert [r["player_id"] for r in queries.search_players("cur")] == ["curryst01"]
    assert len(queries.search_players()) == 4
    assert queries.search_players("'; DROP TABLE Players; --").rows == []
    assert len(queries.search_players()) == 4


def test_player_profile_accepts_page_url(queries):
    by_slug = queries.player_profile("jamesle01").first()
    by_url = queries.player_profile("https://www.basketball-reference.com/players/j/jamesle01.html").first()
    assert by_slug == by_url
    assert by_slug["birth_date"] == datetime.date(1984, 12, 30)


def test_player_seasons_lists_total_row_first(queries):
    seasons = queries.player_seasons("westbru01")
    assert [(r["season"], r["team_code"]) for r in seasons] == [
        (2023, "TOT"),
        (2023, "LAC"),
        (2023, "LAL"),
        (2024, "LAC"),
    ]


def test_season_leaders_skip_multi_team_rows(queries):
    leaders = queries.season_leaders("pts", 2024)
    assert [(r["player_id"], r["stat_value"]) for r in leaders] == [("curryst01", 26.4), ("jamesle01", 25.7)]

    old = queries.season_leaders("pts", "2022-23")
    assert [r["team_code"] for r in old] == ["LAL", "LAC"]


def test_season_leaders_defaults_to_latest_season(queries):
    assert queries.latest_season() == 2024
    leaders = queries.season_leaders("ws")
    assert [r["player_id"] for r in leaders] == ["jamesle01", "curryst01"]


def test_season_leaders_rejects_unknown_stat_and_season(queries):
    with pytest.raises(ValueError):
        queries.season_leaders("pts; DROP TABLE Players")
    with pytest.raises(ValueError):
        queries.season_leaders("pts", 1900)


def test_team_queries(queries):
    history = queries.team_history("bos*")
    assert [(r["season_id"], r["wins"]) for r in history] == [(2024, 64)]

    season = queries.team_season("/teams/GSW/2024.html", "2023-24").first()
    assert season["team_name"] == "Golden State Warriors"

    roster = queries.team_roster("LAL", 2024)
    assert [r["player_id"] for r in roster] == ["jamesle01"]

    standings = queries.season_standings(2024)
    assert [r["team_code"] for r in standings] == ["BOS", "LAL", "GSW"]

    index = queries.teams_index("cav")
    assert index.rows == [
        {"team_code": "CLE", "team_name": "Cleveland Cavaliers", "start_year": 2004, "end_year": 2004}
    ]


def test_draft_queries(queries):
    assert [r["draft_year"] for r in queries.draft_years()] == [2009, 2003]

    picks = queries.draft_class(2003)
    assert [(r["overall_pick"], r["team_name"], r["player_id"]) for r in picks] == [
        (1, "Cleveland Cavaliers", "jamesle01"),
        (2, "Detroit Pistons", None),
    ]


def test_playoff_games(queries):
    games = queries.playoff_games(2024)
    assert [r["game_id"] for r in games] == ["0042300401", "0042300402"]
    assert queries.playoff_games(1999).rows == []


def test_seasons_carry_display_labels(queries):
    assert queries.seasons().rows == [
        {"season": 2024, "label": "2023-24"},
        {"season": 2004, "label": "2003-04"},
    ]
