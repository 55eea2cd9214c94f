"""Tests for the query gateway."""

import pytest

from hoops_archive.errors import QueryExecutionError
from hoops_archive.store.gateway import QueryGateway


def test_execute_returns_plain_records(conn):
    result = QueryGateway(conn).execute("SELECT 1 AS x")
    assert result.ok
    assert result.rows == [{"x": 1}]
    assert list(result) == [{"x": 1}]
    assert len(result) == 1
    assert result.columns == ["x"]


def test_malformed_query_returns_typed_error_and_no_rows(conn):
    result = QueryGateway(conn).execute("SELEC nonsense FROM", [1])

    assert not result.ok
    assert result.rows == []
    assert isinstance(result.error, QueryExecutionError)
    assert result.error.sql == "SELEC nonsense FROM"
    assert result.error.params == [1]
    assert "SELEC nonsense FROM" in str(result.error)
    with pytest.raises(QueryExecutionError):
        result.raise_for_error()


def test_missing_table_is_an_error_not_an_empty_result(conn):
    result = QueryGateway(conn).execute("SELECT * FROM Nowhere")
    assert result.error is not None
    assert result.rows == []


def test_empty_result_is_valid_data(conn):
    conn.execute("CREATE TABLE Players (player_id VARCHAR)")
    result = QueryGateway(conn).execute("SELECT player_id FROM Players WHERE player_id = ?", ["nobody"])
    assert result.ok
    assert result.rows == []
    assert result.columns == ["player_id"]
    assert result.raise_for_error() is result


def test_values_are_coerced_to_python_primitives(conn):
    result = QueryGateway(conn).execute("SELECT CAST(1.25 AS DECIMAL(5, 2)) AS d, 'a' AS s, NULL AS n")
    row = result.first()
    assert row == {"d": 1.25, "s": "a", "n": None}
    assert isinstance(row["d"], float)


def test_to_frame_and_json_rows(conn):
    result = QueryGateway(conn).execute("SELECT 2024 AS season, DATE '2024-06-06' AS game_date")
    frame = result.to_frame()
    assert list(frame.columns) == ["season", "game_date"]
    assert frame.iloc[0]["season"] == 2024
    assert result.to_json_rows() == [{"season": 2024, "game_date": "2024-06-06"}]


def test_statements_without_result_set(conn):
    result = QueryGateway(conn).execute("CREATE TABLE t (a INTEGER)")
    assert result.ok
    assert result.rows == []


def test_mapping_params_bind_by_name(conn):
    conn.execute("CREATE TABLE Players (player_id VARCHAR, first_season INTEGER)")
    conn.execute("INSERT INTO Players VALUES ('jamesle01', 2004), ('curryst01', 2010)")

    result = QueryGateway(conn).execute(
        "SELECT player_id FROM Players WHERE first_season = $season", {"season": 2010}
    )

    assert result.ok
    assert result.params == {"season": 2010}
    assert result.rows == [{"player_id": "curryst01"}]

    failed = QueryGateway(conn).execute("SELECT $missing AS x FROM Nowhere", {"missing": 1})
    assert failed.error.params == {"missing": 1}
