"""
Fuzzy Handler - Weighted fuzzy search over all indexed fields.

Every field of every entry is scored with rapidfuzz (see search.extended);
an entry's score is the best weighted field score of its best OR-group,
multiplied by the entry's relevance boost. Ties keep index order.
"""

from typing import Optional

from loguru import logger

from tourfind.index.assembler import FIELDS, FieldRecord, SearchIndex
from tourfind.search.extended import Token, field_matches_inverse, parse_query, token_score
from tourfind.search.router import SearchHandler, SearchResult


class FuzzyHandler(SearchHandler):
    """Typo-tolerant search; the fallback for every term."""

    name = "fuzzy"
    priority = 1000

    def matches(self, query: str) -> bool:
        return True

    def get_results(self, query: str, index: SearchIndex) -> list[SearchResult]:
        groups = parse_query(query, extended=index.config.use_extended_search)
        if not groups:
            return []

        results = []
        for position, (entry, record) in enumerate(zip(index.entries, index.records)):
            try:
                scored = self._score_entry(groups, record, index)
            except Exception:
                logger.exception(f"Scoring failed for entry '{entry.label}', skipping")
                continue
            if scored is None:
                continue
            score, matched_field = scored
            results.append(SearchResult(
                entry=entry,
                score=score * entry.relevance_boost,
                matched_field=matched_field,
                position=position,
            ))

        results.sort(key=lambda r: (-r.score, r.position))
        return results

    def _score_entry(self, groups, record: FieldRecord, index: SearchIndex) -> Optional[tuple[float, str]]:
        best = None
        for tokens in groups:
            scored = self._score_group(tokens, record, index)
            if scored is not None and (best is None or scored[0] > best[0]):
                best = scored
        return best

    def _score_group(self, tokens: list[Token], record: FieldRecord, index: SearchIndex) -> Optional[tuple[float, str]]:
        total = 0.0
        counted = 0
        best_field = None
        best_field_score = -1.0

        for token in tokens:
            if token.inverse:
                if any(field_matches_inverse(token, value)
                       for name in FIELDS for value in record.values(name)):
                    return None
                continue

            token_best = None
            token_field = None
            for name in FIELDS:
                weight = index.weight(name)
                if weight <= 0:
                    continue
                for value in record.values(name):
                    score = token_score(token, value, index.config)
                    if score is None:
                        continue
                    weighted = score * weight
                    if token_best is None or weighted > token_best:
                        token_best = weighted
                        token_field = name

            if token_best is None:
                return None
            total += token_best
            counted += 1
            if token_best > best_field_score:
                best_field_score = token_best
                best_field = token_field

        if counted == 0:
            # Only inverse tokens: every surviving entry matches neutrally
            return 0.0, None
        return total / counted, best_field
