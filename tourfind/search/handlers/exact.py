"""
Exact Label Handler - Whole-label lookups.

Triggers on "=" prefix and compares the rest of the term against entry
labels only (case-insensitive), bypassing fuzzy scoring.

Usage: =Conference Room
"""

from rapidfuzz.utils import default_process

from tourfind.index.assembler import SearchIndex
from tourfind.search.router import SearchHandler, SearchResult


class ExactLabelHandler(SearchHandler):
    """Match labels exactly via '=' prefix."""

    name = "exact"
    priority = 200

    def matches(self, query: str) -> bool:
        return query.strip().startswith("=")

    def get_results(self, query: str, index: SearchIndex) -> list[SearchResult]:
        wanted = default_process(query.strip()[1:])
        if not wanted:
            return []

        return [
            SearchResult(entry=entry, score=1.0, matched_field="label", position=position)
            for position, entry in enumerate(index.entries)
            if default_process(entry.label) == wanted
        ]
