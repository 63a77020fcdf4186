"""
Query Router - Dispatches search terms to priority-ordered handlers.

Each handler declares a priority (lower = higher priority) and a matches()
method. The router finds the first matching handler and returns its results.
Fuzzy search is always the fallback (highest priority number).

QueryEngine wraps the router with the states a caller renders before any
handler runs: an empty term, and a term shorter than the configured minimum.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from tourfind.config import QueryConfig
from tourfind.index.assembler import SearchIndex
from tourfind.index.models import IndexEntry

WILDCARD = "*"

STATE_EMPTY = "empty"
STATE_TOO_SHORT = "too_short"
STATE_RESULTS = "results"

_NUMERIC = re.compile(r"^[+-]?\d+([.,]\d+)?$")


@dataclass
class SearchResult:
    """A single ranked match."""
    entry: IndexEntry
    score: float = 0.0
    matched_field: Optional[str] = None
    position: int = 0  # position of the entry in the index


@dataclass
class SearchOutcome:
    """What the caller should render for a term."""
    state: str
    handler: str = "none"
    results: list[SearchResult] = field(default_factory=list)


class SearchHandler(ABC):
    """Base class for all search handlers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Handler identifier."""
        ...

    @property
    @abstractmethod
    def priority(self) -> int:
        """Lower number = checked first. Fuzzy search should be ~1000."""
        ...

    @abstractmethod
    def matches(self, query: str) -> bool:
        """Return True if this handler should process the query."""
        ...

    @abstractmethod
    def get_results(self, query: str, index: SearchIndex) -> list[SearchResult]:
        """Return results for the query against an index."""
        ...


class QueryRouter:
    """Routes queries to the appropriate handler based on priority."""

    def __init__(self):
        self._handlers: list[SearchHandler] = []

    def register(self, handler: SearchHandler) -> None:
        """Register a handler and re-sort by priority."""
        self._handlers.append(handler)
        self._handlers.sort(key=lambda h: h.priority)

    def route(self, query: str, index: SearchIndex) -> tuple[str, list[SearchResult]]:
        """
        Find the first matching handler and return its results.

        Args:
            query: The search term
            index: Index snapshot to search

        Returns:
            Tuple of (handler_name, results_list).
            Returns ("none", []) if no handler matches.
        """
        if not query or not query.strip():
            return "none", []

        for handler in self._handlers:
            if handler.matches(query):
                return handler.name, handler.get_results(query, index)

        return "none", []


def escape_numeric(term: str) -> str:
    """Prefix numeric terms with the include-match marker."""
    stripped = term.strip()
    if _NUMERIC.match(stripped):
        return "'" + stripped
    return term


def default_router() -> QueryRouter:
    """Router with the wildcard, exact-label and fuzzy handlers."""
    from tourfind.search.handlers import ExactLabelHandler, FuzzyHandler, WildcardHandler

    router = QueryRouter()
    router.register(WildcardHandler())
    router.register(ExactLabelHandler())
    router.register(FuzzyHandler())
    return router


class QueryEngine:
    """Runs terms against an index snapshot."""

    def __init__(self, config: QueryConfig = QueryConfig(), router: Optional[QueryRouter] = None):
        self.config = config
        self.router = router or default_router()

    def run(self, term: Optional[str], index: SearchIndex) -> SearchOutcome:
        term = (term or "").strip()
        if not term:
            return SearchOutcome(state=STATE_EMPTY)

        if term != WILDCARD and len(term) < self.config.min_chars:
            return SearchOutcome(state=STATE_TOO_SHORT)

        if term != WILDCARD and not term.startswith("=") and index.config.use_extended_search:
            term = escape_numeric(term)

        handler, results = self.router.route(term, index)
        if term != WILDCARD:
            results = results[: self.config.max_results]
        return SearchOutcome(state=STATE_RESULTS, handler=handler, results=results)
