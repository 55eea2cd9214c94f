"""Shared fixtures: in-memory CSV sources and DuckDB connections."""

import threading
import time

import duckdb
import pytest

from hoops_archive.errors import FetchNotFound, FetchTransient

CAREER_CSV = """player_id,player,hof,num_seasons,first_seas,last_seas
jamesle01,LeBron James,FALSE,21,2004,2024
curryst01,Stephen Curry,FALSE,15,2010,2024
westbru01,Russell Westbrook,FALSE,16,2009,2024
bryanko01,Kobe Bryant,TRUE,20,1997,2016
"""

DIRECTORY_CSV = """player_id,Player,Pos,Ht,Wt,Date of Birth,College,Draft
jamesle01,LeBron James,F-G,6-9,250,"December 30, 1984",NA,"Cleveland Cavaliers, 1st round (1st pick, 1st overall), 2003"
curryst01,Stephen Curry,G,6-2,185,"March 14, 1988",Davidson,"Golden State Warriors, 1st round (7th pick, 7th overall), 2009"
bryanko01,Kobe Bryant,G-F,6-6,212,"August 23, 1978",NA,"Charlotte Hornets, 1st round (13th pick, 13th overall), 1996"
"""

SEASON_INFO_CSV = """season,seas_id,player_id,player,birth_year,pos,age,lg,tm,experience
2024,31001,jamesle01,LeBron James,NA,PF,39,NBA,LAL,21
2024,31002,curryst01,Stephen Curry,NA,PG,35,NBA,GSW,15
"""

PER_GAME_CSV = """seas_id,season,player_id,player,pos,age,lg,tm,g,gs,mp_per_game,fg_percent,trb_per_game,ast_per_game,pts_per_game
31001,2024,jamesle01,LeBron James,PF,39,NBA,LAL,71,71,35.3,0.540,7.3,8.3,25.7
31002,2024,curryst01,Stephen Curry,PG,35,NBA,GSW,74,74,32.7,0.450,4.5,5.1,26.4
31003,2023,westbru01,Russell Westbrook,PG,34,NBA,TOT,73,24,29.1,0.436,5.8,7.5,15.9
31004,2023,westbru01,Russell Westbrook,PG,34,NBA,LAL,52,3,28.7,0.417,6.2,7.5,15.9
31005,2023,westbru01,Russell Westbrook,PG,34,NBA,LAC,21,21,30.2,0.489,4.9,7.6,15.8
31006,2024,westbru01,Russell Westbrook,PG,35,NBA,LAC,68,11,22.5,0.454,5.0,4.5,NA
31007,2004,jamesle01,LeBron James,SG,19,NBA,CLE,79,79,39.5,0.417,5.5,5.9,20.9
"""

TOTALS_CSV = """season,player_id,player,pos,age,lg,tm,g,gs,mp,fg,fga,pts
2024,jamesle01,LeBron James,PF,39,NBA,LAL,71,71,2504,685,1269,1822
2024,curryst01,Stephen Curry,PG,35,NBA,GSW,74,74,2421,650,1445,1956
"""

ADVANCED_CSV = """season,lg,player,player_id,age,team,pos,g,gs,mp,per,ts_percent,ws,ws_48,bpm,vorp
2024,NBA,LeBron James,jamesle01,39,LAL,PF,71,71,2504,23.7,0.630,8.5,0.163,6.6,4.4
2024,NBA,Stephen Curry,curryst01,35,GSW,PG,74,74,2421,21.2,0.616,6.9,0.137,4.8,3.5
"""

PLAYOFFS_PER_GAME_CSV = """season,player_id,player,pos,age,lg,tm,g,gs,mp_per_game,pts_per_game
2024,jamesle01,LeBron James,PF,39,NBA,LAL,5,5,40.8,27.8
"""

TEAM_SUMMARIES_CSV = """season,lg,team,abbreviation,playoffs,w,l,mov,srs,o_rtg,d_rtg,n_rtg,pace,pts,trb,ast
2024,NBA,Boston Celtics*,BOS,TRUE,64,18,11.3,10.75,122.2,110.6,11.6,97.2,9887,3770,2201
2024,NBA,Golden State Warriors,GSW,FALSE,46,36,3.0,2.57,118.0,115.2,2.8,100.3,NA,NA,NA
2024,NBA,Los Angeles Lakers*,LAL,NA,47,35,0.6,0.94,116.9,116.2,NA,101.3,9677,3622,2346
2024,NBA,League Average,NA,NA,NA,NA,0.0,0.0,116.7,116.7,NA,98.6,9548,3575,2178
2004,NBA,Cleveland Cavaliers,CLE,FALSE,35,47,-2.3,-2.52,99.0,101.5,-2.5,90.1,7582,3487,1836
"""

TEAM_ABBREV_CSV = """season,lg,team,playoffs,abbreviation
2003,NBA,Cleveland Cavaliers,FALSE,CLE
2003,NBA,Detroit Pistons*,TRUE,DET
2009,NBA,Golden State Warriors,FALSE,GSW
"""

DRAFT_CSV = """season,lg,overall_pick,round,round_pick,tm,player,player_id,college
2003,NBA,1,1,1,CLE,LeBron James,jamesle01,NA
2003,NBA,2,1,2,DET,Darko Milicic,milicda01,NA
2003,NBA,2,1,2,DET,Darko Milicic,milicda01,NA
2009,NBA,7,1,7,GSW,Stephen Curry,curryst01,Davidson
"""

GAMES_CSV = """game_id,game_date,season_type,team_abbreviation_home,team_abbreviation_away,pts_home,pts_away,reb_home,reb_away
0042300401,2024-06-06 00:00:00,Playoffs,BOS,DAL,107,89,46,41
0042300402,2024-06-09 00:00:00,Playoffs,BOS,DAL,105,98,43,42
0022300001,2023-10-24 00:00:00,Regular Season,DEN,LAL,119,107,48,36
0022300001,2023-10-24 00:00:00,Regular Season,DEN,LAL,119,107,48,36
0012300001,2023-10-05 00:00:00,Pre Season,BOS,NYK,110,100,40,40
"""

ALL_FILES = {
    "Player Career Info.csv": CAREER_CSV,
    "Player Directory.csv": DIRECTORY_CSV,
    "Player Season Info.csv": SEASON_INFO_CSV,
    "Player Per Game.csv": PER_GAME_CSV,
    "Player Totals.csv": TOTALS_CSV,
    "Advanced.csv": ADVANCED_CSV,
    "Player Playoffs Per Game.csv": PLAYOFFS_PER_GAME_CSV,
    "Team Summaries.csv": TEAM_SUMMARIES_CSV,
    "Team Abbrev.csv": TEAM_ABBREV_CSV,
    "Draft History.csv": DRAFT_CSV,
    "Games.csv": GAMES_CSV,
}


class MemoryFetcher:
    """Serves CSV text from a dict and records every fetch."""

    def __init__(self, files, transient=(), delay=0.0):
        self.files = dict(files)
        self.transient = set(transient)
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, file_name):
        with self._lock:
            self.calls.append(file_name)
        if self.delay:
            time.sleep(self.delay)
        if file_name in self.transient:
            raise FetchTransient(file_name, "connection reset")
        if file_name not in self.files:
            raise FetchNotFound(file_name, "HTTP 404")
        return self.files[file_name]


def rows(conn, sql, params=None):
    cursor = conn.execute(sql, params or [])
    names = [d[0] for d in cursor.description]
    return [dict(zip(names, row)) for row in cursor.fetchall()]


@pytest.fixture
def conn():
    connection = duckdb.connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def all_files():
    return dict(ALL_FILES)


@pytest.fixture
def fetcher(all_files):
    return MemoryFetcher(all_files)


@pytest.fixture
def source_dir(tmp_path, all_files):
    directory = tmp_path / "csv"
    directory.mkdir()
    for name, text in all_files.items():
        (directory / name).write_text(text, encoding="utf-8")
    return directory
