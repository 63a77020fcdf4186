"""
TourSearch - Session object wiring the index, query and dispatch layers.

One TourSearch per host. It owns the settings value, the current
SearchIndex, the last search term and the registry of pending navigation
handlers. Rebuilds are serialized per event loop; the index reference is
swapped in one assignment, so a search always sees either the old or the
new index.
"""

import asyncio
from typing import Any, Iterable, Optional

import httpx
from loguru import logger

from tourfind.config import (
    ContentConfig,
    DispatchConfig,
    ExternalDataConfig,
    FilterConfig,
    IndexConfig,
    LabelConfig,
    QueryConfig,
    ResultsConfig,
    Settings,
)
from tourfind.dispatch import Dispatcher, PendingHandlers
from tourfind.dispatch.dispatcher import STRATEGY_FAILED
from tourfind.index import FilterPipeline, SearchIndex, assemble, reconcile, traverse
from tourfind.index.models import ExternalRow, IndexEntry
from tourfind.search import QueryEngine, SearchOutcome, SearchResult, group_results
from tourfind.search.router import STATE_RESULTS, default_router
from tourfind.services import DatasetCache, DatasetLoader
from tourfind.utils.scheduling import ManualScheduler


class TourSearch:
    """Search session over one tour host."""

    def __init__(
        self,
        host: Any,
        settings: Optional[Settings] = None,
        scheduler=None,
        cache: Optional[DatasetCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host = host
        self.settings = settings or Settings()
        self.scheduler = scheduler or ManualScheduler()
        self.cache = cache
        self.transport = transport
        self.pending = PendingHandlers()
        self.term = ""

        self._index = SearchIndex()
        self._router = default_router()
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop = None
        self._membership_version = 0
        self._built_version = -1

    @property
    def index(self) -> SearchIndex:
        return self._index

    @property
    def stale(self) -> bool:
        """True when settings changed index membership since the last build."""
        return self._built_version != self._membership_version

    async def rebuild(self) -> SearchIndex:
        """
        Load external data and rebuild the index.

        Concurrent calls run one after another. On failure the previous
        index stays in place.
        """
        async with self._rebuild_lock():
            settings = self.settings
            version = self._membership_version
            try:
                loader = DatasetLoader(ExternalDataConfig.from_settings(settings), self.cache, self.transport)
                rows = await loader.load()
                index = self._build(settings, rows)
            except Exception:
                logger.exception("Index rebuild failed, keeping previous index")
                return self._index

            self._index = index
            self._built_version = version
            return index

    def _rebuild_lock(self) -> asyncio.Lock:
        """Rebuild lock for the running event loop; a new loop gets a new lock."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def build(self, rows: Iterable[ExternalRow] = ()) -> SearchIndex:
        """Synchronous build from the host and already-loaded rows."""
        index = self._build(self.settings, rows)
        self._index = index
        self._built_version = self._membership_version
        return index

    def _build(self, settings: Settings, rows: Iterable[ExternalRow]) -> SearchIndex:
        content = ContentConfig.from_settings(settings)
        pipeline = FilterPipeline(FilterConfig.from_settings(settings), content)
        entries = traverse(self.host, pipeline, LabelConfig.from_settings(settings), content)

        rows = list(rows)
        if rows:
            entries = reconcile(entries, rows, ExternalDataConfig.from_settings(settings), pipeline)
        return assemble(entries, IndexConfig.from_settings(settings))

    def search(self, term: Optional[str] = None) -> SearchOutcome:
        """Run a term (the last one when omitted) against the current index."""
        if term is not None:
            self.term = term
        try:
            engine = QueryEngine(QueryConfig.from_settings(self.settings), self._router)
            return engine.run(self.term, self._index)
        except Exception:
            logger.exception(f"Search for '{self.term}' failed")
            return SearchOutcome(state=STATE_RESULTS)

    def grouped(self, term: Optional[str] = None) -> dict[str, list[SearchResult]]:
        """Search, then group results by kind for rendering."""
        outcome = self.search(term)
        return group_results(outcome.results, ResultsConfig.from_settings(self.settings))

    def select(self, entry: IndexEntry) -> str:
        """Navigate the host to an entry. Returns the strategy taken."""
        try:
            config = DispatchConfig.from_settings(self.settings)
        except (TypeError, ValueError):
            logger.exception("Invalid dispatch settings")
            return STRATEGY_FAILED
        return Dispatcher(self.host, self.scheduler, config, self.pending).dispatch(entry)

    def update_settings(self, partial: dict) -> bool:
        """
        Merge a partial settings update.

        Returns:
            True when the change affects index membership and the index
            needs a rebuild

        Raises:
            ConfigError: The update is not a mapping or has an unusable index
                section; settings stay unchanged
        """
        updated = self.settings.merged(partial)
        IndexConfig.from_settings(updated)

        needs_rebuild = self.settings.affects_membership(updated)
        self.settings = updated
        if needs_rebuild:
            self._membership_version += 1
            logger.info("Settings change affects index contents, rebuild required")
        return needs_rebuild

    def close(self) -> None:
        """Release every pending navigation handler."""
        self.pending.clear()
