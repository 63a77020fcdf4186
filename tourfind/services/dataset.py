"""
Dataset Service - Load the external spreadsheet/CSV dataset.

Sources, in order of preference:
  1. Fresh cache entry (when caching is enabled)
  2. Remote URL (Google Sheets share links are rewritten to CSV export)
  3. Local file

Payloads are parsed as CSV or JSON (fetch_mode "auto" decides by file
extension, content type, then content) and normalized into ExternalRow
records. Any failure yields an empty row list and a warning, so a broken
dataset never stops an index build.
"""

import csv
import io
import json
import re
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

from tourfind.config import ExternalDataConfig
from tourfind.errors import DatasetError
from tourfind.index.models import ExternalRow
from tourfind.services.cache import DatasetCache

_SHEETS_URL = re.compile(r"https://docs\.google\.com/spreadsheets/d/([A-Za-z0-9_-]+)")
_GID = re.compile(r"[#&?]gid=(\d+)")


def to_export_url(url: str) -> str:
    """Rewrite a Google Sheets share/edit link to its CSV export URL."""
    match = _SHEETS_URL.match(url)
    if not match or "/export" in url:
        return url
    gid = _GID.search(url)
    export = f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv"
    if gid:
        export += f"&gid={gid.group(1)}"
    return export


def detect_format(fetch_mode: str, source: str, content_type: str, text: str) -> str:
    """Resolve 'auto' to 'csv' or 'json'."""
    if fetch_mode in ("csv", "json"):
        return fetch_mode
    lowered = source.lower().split("?")[0]
    if lowered.endswith(".json") or "json" in content_type:
        return "json"
    if lowered.endswith(".csv") or "csv" in content_type or "format=csv" in source:
        return "csv"
    return "json" if text.lstrip().startswith(("[", "{")) else "csv"


def parse_csv(text: str) -> list[dict]:
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    return [dict(row) for row in reader]


def parse_json(text: str) -> list[dict]:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise DatasetError(f"Invalid JSON dataset: {e}") from e

    if isinstance(data, dict):
        for key in ("rows", "data", "items"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise DatasetError("JSON dataset must be a list of objects")
    return [record for record in data if isinstance(record, dict)]


def normalize_rows(records: list[dict]) -> list[ExternalRow]:
    """Convert raw records to rows, dropping rows with no id, tag or name."""
    rows = []
    for index, record in enumerate(records):
        row = ExternalRow.from_mapping(record, index)
        if row.is_empty:
            logger.debug(f"External row {index} has no id, tag or name, skipping")
            continue
        rows.append(row)
    return rows


class DatasetLoader:
    """Fetch and normalize external rows according to ExternalDataConfig."""

    def __init__(
        self,
        config: ExternalDataConfig,
        cache: Optional[DatasetCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.cache = cache
        self.transport = transport

    async def load(self) -> list[ExternalRow]:
        """Return normalized rows; never raises."""
        if not self.config.enabled:
            return []

        cached = self._from_cache()
        if cached is not None:
            logger.debug(f"Using {len(cached)} cached external rows")
            return cached

        try:
            source, content_type, text = await self._fetch()
            fmt = detect_format(self.config.fetch_mode, source, content_type, text)
            records = parse_json(text) if fmt == "json" else parse_csv(text)
            rows = normalize_rows(records)
        except (DatasetError, httpx.HTTPError, OSError, UnicodeDecodeError, csv.Error) as e:
            logger.warning(f"External dataset unavailable, continuing without it: {e}")
            return []
        except Exception:
            logger.exception("Unexpected error loading external dataset, continuing without it")
            return []

        logger.info(f"Loaded {len(rows)} external rows from {source}")
        if self.cache is not None and self.config.cache_enabled:
            self.cache.store(self.config.storage_key, rows)
        return rows

    def _from_cache(self) -> Optional[list[ExternalRow]]:
        if self.cache is None or not self.config.cache_enabled:
            return None
        max_age = self.config.cache_timeout_minutes * 60
        if max_age <= 0:
            return None
        return self.cache.load(self.config.storage_key, max_age)

    async def _fetch(self) -> tuple[str, str, str]:
        """Return (source, content_type, text)."""
        if self.config.url:
            url = to_export_url(self.config.url)
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.config.timeout_seconds,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return url, response.headers.get("content-type", ""), response.text

        if self.config.local_file:
            path = Path(self.config.local_file).expanduser()
            return str(path), "", path.read_text(encoding="utf-8")

        raise DatasetError("External data is enabled but neither url nor local_file is set")
