"""Tests for raw table creation and bulk loading."""

import datetime

from conftest import DIRECTORY_CSV, MemoryFetcher, rows
from hoops_archive.data.ingestion.registry import Column, Dataset, Mode, get_dataset
from hoops_archive.data.ingestion.sources import VirtualFileRegistrar
from hoops_archive.data.ingestion.sql import table_columns, table_exists
from hoops_archive.data.ingestion.table_builder import TableBuilder

SAMPLE = Dataset(
    key="sample",
    source_file="Sample.csv",
    table="raw_sample",
    columns=(
        Column("player_id"),
        Column("games", "INTEGER", source="G"),
        Column("ppg", "DOUBLE", source="PTS/G"),
        Column("hof", "BOOLEAN", source="HOF"),
        Column("debut", "DATE", source="Debut", date_formats=("%m/%d/%Y",)),
        Column("college"),
    ),
)

SAMPLE_CSV = """PTS/G,G,player_id,HOF,Debut
25.7,71,jamesle01,no,10/29/2003
NA,12.0,curryst01,Y,2009-10-28
abc,-,bryanko01,TRUE,NA
 30.1 , 1 ,  jordami01  ,maybe,garbage
"""


def _builder(conn, tmp_path, files, keep=False):
    registrar = VirtualFileRegistrar(str(tmp_path / "staging"))
    return TableBuilder(conn, MemoryFetcher(files), registrar, keep_staged_files=keep)


def test_explicit_load_maps_headers_by_name_and_coerces_values(conn, tmp_path):
    builder = _builder(conn, tmp_path, {"Sample.csv": SAMPLE_CSV})
    result = builder.build(SAMPLE)

    assert result.status == "loaded"
    assert result.rows == 4
    assert table_columns(conn, "raw_sample") == ["player_id", "games", "ppg", "hof", "debut", "college"]

    loaded = {r["player_id"]: r for r in rows(conn, "SELECT * FROM raw_sample")}
    assert loaded["jamesle01"]["games"] == 71
    assert loaded["jamesle01"]["ppg"] == 25.7
    assert loaded["jamesle01"]["hof"] is False
    assert loaded["jamesle01"]["debut"] == datetime.date(2003, 10, 29)

    # sentinel tokens and unparseable cells become NULL
    assert loaded["curryst01"]["ppg"] is None
    assert loaded["curryst01"]["games"] == 12
    assert loaded["curryst01"]["hof"] is True
    assert loaded["curryst01"]["debut"] == datetime.date(2009, 10, 28)
    assert loaded["bryanko01"]["ppg"] is None
    assert loaded["bryanko01"]["games"] is None
    assert loaded["bryanko01"]["debut"] is None

    # whitespace is trimmed before casting
    assert loaded["jordami01"]["ppg"] == 30.1
    assert loaded["jordami01"]["games"] == 1
    assert loaded["jordami01"]["hof"] is None
    assert loaded["jordami01"]["debut"] is None

    # declared column without a matching header
    assert all(r["college"] is None for r in loaded.values())


def test_player_directory_parses_long_form_birth_dates(conn, tmp_path):
    builder = _builder(conn, tmp_path, {"Player Directory.csv": DIRECTORY_CSV})
    result = builder.build(get_dataset("player_directory"))

    assert result.loaded
    lebron = rows(conn, "SELECT * FROM raw_player_directory WHERE player_id = 'jamesle01'")[0]
    assert lebron["birth_date"] == datetime.date(1984, 12, 30)
    assert lebron["wt"] == 250
    assert lebron["pos"] == "F-G"
    assert lebron["college"] is None
    assert lebron["draft"].startswith("Cleveland Cavaliers")


def test_auto_mode_infers_schema(conn, tmp_path):
    dataset = Dataset(key="adv", source_file="Advanced.csv", table="raw_adv", mode=Mode.AUTO)
    csv_text = "Season,Player Name,ws_48,G\n2024,LeBron James,0.163,71\n2024,Stephen Curry,NA,74\n"
    builder = _builder(conn, tmp_path, {"Advanced.csv": csv_text})

    result = builder.build(dataset)

    assert result.loaded
    assert result.rows == 2
    assert "ws_48" in table_columns(conn, "raw_adv")
    curry = rows(conn, "SELECT * FROM raw_adv WHERE player_name = 'Stephen Curry'")[0]
    assert curry["ws_48"] is None
    assert curry["g"] == 74


def test_missing_optional_dataset_is_skipped_and_stale_table_dropped(conn, tmp_path):
    optional = Dataset(key="opt", source_file="Optional.csv", table="raw_opt", optional=True, columns=(Column("a"),))
    conn.execute("CREATE TABLE raw_opt (a VARCHAR)")
    conn.execute("INSERT INTO raw_opt VALUES ('stale')")

    result = _builder(conn, tmp_path, {}).build(optional)

    assert result.status == "skipped"
    assert result.error_kind == "not_found"
    assert not table_exists(conn, "raw_opt")


def test_missing_required_dataset_fails_without_stopping_the_loop(conn, tmp_path):
    required = Dataset(key="req", source_file="Required.csv", table="raw_req", columns=(Column("a"),))
    later = Dataset(key="later", source_file="Later.csv", table="raw_later", columns=(Column("a"),))
    builder = _builder(conn, tmp_path, {"Later.csv": "a\n1\n2\n"})

    results = builder.build_all([required, later])

    assert [r.status for r in results] == ["failed", "loaded"]
    assert results[0].error_kind == "not_found"
    assert results[1].rows == 2


def test_transient_fetch_error_is_reported_distinctly(conn, tmp_path):
    dataset = Dataset(key="t", source_file="T.csv", table="raw_t", optional=True, columns=(Column("a"),))
    registrar = VirtualFileRegistrar(str(tmp_path / "staging"))
    builder = TableBuilder(conn, MemoryFetcher({"T.csv": "a\n1\n"}, transient={"T.csv"}), registrar)

    result = builder.build(dataset)

    assert result.status == "skipped"
    assert result.error_kind == "transient_error"


def test_staged_file_is_removed_unless_kept(conn, tmp_path):
    files = {"Sample.csv": SAMPLE_CSV}
    _builder(conn, tmp_path, files).build(SAMPLE)
    assert not (tmp_path / "staging" / "Sample.csv").exists()

    _builder(conn, tmp_path, files, keep=True).build(SAMPLE)
    assert (tmp_path / "staging" / "Sample.csv").exists()


def test_reloading_replaces_rows(conn, tmp_path):
    builder = _builder(conn, tmp_path, {"Sample.csv": SAMPLE_CSV})
    builder.build(SAMPLE)
    second = builder.build(SAMPLE)
    assert second.rows == 4
    assert rows(conn, "SELECT COUNT(*) AS n FROM raw_sample")[0]["n"] == 4


def test_headers_that_normalize_alike_map_by_exact_name(conn, tmp_path, caplog):
    shooting = Dataset(
        key="shooting",
        source_file="Shooting.csv",
        table="raw_shooting",
        columns=(
            Column("fg", "INTEGER", source="FG"),
            Column("fg_pct", "DOUBLE", source="fg%"),
            Column("w", "INTEGER", source="W"),
            Column("w_l_pct", "DOUBLE", source="W/L%"),
        ),
    )
    builder = _builder(conn, tmp_path, {"Shooting.csv": "FG%,FG,W,W/L%\n0.5,10,64,0.780\n"})

    result = builder.build(shooting)

    assert result.loaded
    assert rows(conn, "SELECT * FROM raw_shooting") == [{"fg": 10, "fg_pct": 0.5, "w": 64, "w_l_pct": 0.78}]
    assert "both normalize to 'fg'" in caplog.text
