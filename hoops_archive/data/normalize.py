"""Shared column / team / player / season normalization.

Header matching in the table builder, the consolidation column lookup and
the query catalog all go through these helpers so that ``"Date of Birth"``,
``"date_of_birth"`` and ``"DATE OF BIRTH"`` resolve to the same column
everywhere.
"""

from __future__ import annotations

import html as _html
import re
import unicodedata
from datetime import date
from typing import Optional, Union

FIRST_SEASON = 1947

_PLAYER_ID_RE = re.compile(r"^[a-z]+[a-z0-9]*\d{2}$")
_PLAYER_URL_RE = re.compile(r"/players/(?:[a-z]/)?([a-z]+[a-z0-9]*\d{2})")
_TEAM_CODE_RE = re.compile(r"^[A-Z0-9]{2,4}$")
_TEAM_URL_RE = re.compile(r"/teams/([A-Z0-9]{2,4})")
_SEASON_RANGE_RE = re.compile(r"^(\d{4})-(\d{2})$")
_SEASON_YEAR_RE = re.compile(r"^(\d{4})$")


def normalize_column_name(name: str) -> str:
    """Convert a CSV header to a canonical underscore-delimited name.

    Steps:
    1. Decode HTML entities (``&amp;`` → ``&``)
    2. NFKD-normalize Unicode and strip combining marks
    3. Lowercase
    4. Replace non-alphanumeric characters with ``_``
    5. Collapse repeated underscores and strip leading/trailing ``_``

    Examples::

        >>> normalize_column_name("Date of Birth")
        'date_of_birth'
        >>> normalize_column_name("W/L%")
        'w_l'
        >>> normalize_column_name("  Tm ")
        'tm'
    """
    if not name:
        return ""
    s = _html.unescape(str(name))
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.lower()
    s = re.sub(r"[^a-z0-9]", "_", s)
    s = re.sub(r"_+", "_", s)
    return s.strip("_")


def normalize_team_code(code: Optional[str]) -> str:
    """Upper-case a team abbreviation and drop the BRef playoff ``*`` marker."""
    if not code:
        return ""
    return str(code).strip().rstrip("*").strip().upper()


def normalize_player_id(value: Optional[str]) -> str:
    if not value:
        return ""
    return str(value).strip().lower()


def extract_player_id(value: Optional[str]) -> Optional[str]:
    """Return a BRef player slug from a bare slug or a ``/players/<slug>`` URL."""
    if not value:
        return None
    value = str(value).strip()
    if _PLAYER_ID_RE.match(value):
        return value
    match = _PLAYER_URL_RE.search(value)
    return match.group(1) if match else None


def extract_team_code(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = str(value).strip()
    if _TEAM_CODE_RE.match(value):
        return value
    match = _TEAM_URL_RE.search(value)
    return match.group(1) if match else None


def format_season(season: Optional[int]) -> str:
    """Format a season-ending year for display (2024 → ``"2023-24"``)."""
    if not season or season < FIRST_SEASON:
        return "Unknown"
    return f"{season - 1}-{str(season)[-2:]}"


def parse_season(value: Union[str, int, None]) -> Optional[int]:
    """Parse ``2024``, ``"2024"`` or ``"2023-24"`` into a season-ending year."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    match = _SEASON_RANGE_RE.match(text)
    if match:
        return int(match.group(1)) + 1
    match = _SEASON_YEAR_RE.match(text)
    if match:
        return int(match.group(1))
    return None


def current_season(today: Optional[date] = None) -> int:
    """Season-ending year for ``today``; the season rolls over in October."""
    today = today or date.today()
    return today.year + 1 if today.month >= 10 else today.year


def is_valid_season(season: Optional[int], today: Optional[date] = None) -> bool:
    if not isinstance(season, int) or isinstance(season, bool):
        return False
    return FIRST_SEASON <= season <= current_season(today)
