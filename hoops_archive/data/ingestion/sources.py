"""CSV fetchers and the virtual file registrar.

A fetcher turns a registry file name into CSV text and signals
``FetchNotFound`` (file absent) distinctly from ``FetchTransient``
(network / IO failure) so callers can layer a retry policy on the latter
without ambiguity. The registrar stages the text where DuckDB's CSV reader
can address it by path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

import requests

from ...errors import FetchError, FetchNotFound, FetchTransient

logger = logging.getLogger(__name__)

NOT_FOUND_STATUS_CODES = {404, 410}


class FetchStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"


@dataclass
class FetchResult:
    file_name: str
    status: FetchStatus
    path: Optional[Path] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.SUCCESS


class HttpCsvFetcher:
    """Fetches CSV files served under a fixed base URL."""

    def __init__(self, base_url: str, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "text/csv, text/plain;q=0.9, */*;q=0.1",
            }
        )

    def url_for(self, file_name: str) -> str:
        return f"{self.base_url}{quote(file_name)}"

    def fetch(self, file_name: str) -> str:
        url = self.url_for(file_name)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchTransient(file_name, f"request failed: {exc}") from exc

        if response.status_code in NOT_FOUND_STATUS_CODES:
            raise FetchNotFound(file_name, f"HTTP {response.status_code} from {url}")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise FetchTransient(file_name, f"HTTP {response.status_code} from {url}") from exc

        return response.content.decode("utf-8", errors="replace")


class DirectoryCsvFetcher:
    """Reads CSV files from a local directory (dataset checkouts, tests)."""

    def __init__(self, source_dir: str):
        self.source_dir = Path(source_dir)

    def fetch(self, file_name: str) -> str:
        path = self.source_dir / file_name
        if not path.is_file():
            raise FetchNotFound(file_name, f"not found in {self.source_dir}")
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchTransient(file_name, f"could not read {path}: {exc}") from exc


class VirtualFileRegistrar:
    """Stages CSV text as named files the engine can read by path."""

    def __init__(self, staging_dir: str):
        self.staging_dir = Path(staging_dir)
        self._registered: Dict[str, Path] = {}

    def register(self, file_name: str, text: str) -> Path:
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        path = self.staging_dir / Path(file_name).name
        if text.startswith("\ufeff"):
            text = text[1:]
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise FetchTransient(file_name, f"could not stage file: {exc}") from exc
        self._registered[file_name] = path
        return path

    def unregister(self, file_name: str) -> None:
        path = self._registered.pop(file_name, None)
        if path is not None and path.exists():
            path.unlink()

    def path_for(self, file_name: str) -> Optional[Path]:
        return self._registered.get(file_name)

    @property
    def registered(self) -> Dict[str, Path]:
        return dict(self._registered)


def fetch_and_register(fetcher, registrar: VirtualFileRegistrar, file_name: str) -> FetchResult:
    """Fetch ``file_name`` and stage it; never raises for fetch failures."""
    try:
        text = fetcher.fetch(file_name)
        path = registrar.register(file_name, text)
    except FetchNotFound as exc:
        return FetchResult(file_name, FetchStatus.NOT_FOUND, error=exc)
    except FetchTransient as exc:
        return FetchResult(file_name, FetchStatus.TRANSIENT_ERROR, error=exc)
    logger.debug("Registered %s at %s", file_name, path)
    return FetchResult(file_name, FetchStatus.SUCCESS, path=path)
