"""
Wildcard Handler - "Browse all" mode.

Triggers on the bare "*" term and returns every entry in index order with a
neutral score.
"""

from tourfind.index.assembler import SearchIndex
from tourfind.search.router import WILDCARD, SearchHandler, SearchResult


class WildcardHandler(SearchHandler):
    """Return the whole index for '*'."""

    name = "wildcard"
    priority = 100

    def matches(self, query: str) -> bool:
        return query.strip() == WILDCARD

    def get_results(self, query: str, index: SearchIndex) -> list[SearchResult]:
        return [
            SearchResult(entry=entry, score=0.0, position=position)
            for position, entry in enumerate(index.entries)
        ]
