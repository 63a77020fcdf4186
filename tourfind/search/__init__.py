"""
Search package - Query routing, handlers and result grouping.

Terms are dispatched to priority-ordered handlers (wildcard, exact label,
fuzzy), and the ranked results are grouped by element kind for rendering.
"""

from .grouping import group_results
from .router import QueryEngine, QueryRouter, SearchHandler, SearchOutcome, SearchResult

__all__ = [
    "QueryEngine",
    "QueryRouter",
    "SearchHandler",
    "SearchOutcome",
    "SearchResult",
    "group_results",
]
