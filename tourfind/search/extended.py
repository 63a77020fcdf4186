"""
Extended query syntax and per-field scoring.

Syntax (whitespace = AND, " | " = OR):
  jscript      fuzzy match
  =scheme      exact match
  'python      include match
  ^java        prefix match
  .js$         suffix match
  !ruby        does not include
  !^go         does not start with
  !.py$        does not end with

Fuzzy similarity comes from rapidfuzz. The index threshold works on a
0 (perfect) .. 1 (anything) scale: a field matches when
  (1 - similarity) + location_penalty <= threshold
where location_penalty is match_start / distance unless location is ignored.
"""

from dataclasses import dataclass
from typing import Optional

from rapidfuzz import fuzz
from rapidfuzz.utils import default_process

from tourfind.config import IndexConfig

FUZZY = "fuzzy"
EXACT = "exact"
INCLUDE = "include"
PREFIX = "prefix"
SUFFIX = "suffix"
INVERSE_INCLUDE = "inverse_include"
INVERSE_PREFIX = "inverse_prefix"
INVERSE_SUFFIX = "inverse_suffix"

INVERSE_OPERATORS = (INVERSE_INCLUDE, INVERSE_PREFIX, INVERSE_SUFFIX)


@dataclass(frozen=True)
class Token:
    operator: str
    text: str

    @property
    def inverse(self) -> bool:
        return self.operator in INVERSE_OPERATORS


def parse_token(raw: str) -> Optional[Token]:
    if raw.startswith("!^") and len(raw) > 2:
        return Token(INVERSE_PREFIX, raw[2:])
    if raw.startswith("!") and raw.endswith("$") and len(raw) > 2:
        return Token(INVERSE_SUFFIX, raw[1:-1])
    if raw.startswith("!") and len(raw) > 1:
        return Token(INVERSE_INCLUDE, raw[1:])
    if raw.startswith("=") and len(raw) > 1:
        return Token(EXACT, raw[1:])
    if raw.startswith("'") and len(raw) > 1:
        return Token(INCLUDE, raw[1:])
    if raw.startswith("^") and len(raw) > 1:
        return Token(PREFIX, raw[1:])
    if raw.endswith("$") and len(raw) > 1:
        return Token(SUFFIX, raw[:-1])
    if raw in ("!", "=", "'", "^", "$"):
        return None
    return Token(FUZZY, raw)


def parse_query(query: str, extended: bool = True) -> list[list[Token]]:
    """Parse a query into OR-groups of AND-tokens."""
    query = query.strip()
    if not query:
        return []
    if not extended:
        return [[Token(FUZZY, query)]]

    groups = []
    for part in query.split(" | "):
        tokens = [t for t in (parse_token(raw) for raw in part.split()) if t is not None]
        if tokens:
            groups.append(tokens)
    return groups


def fuzzy_similarity(term: str, text: str, config: IndexConfig) -> Optional[float]:
    """Similarity in [0, 1] when the field matches under the index settings."""
    if len(term.strip()) < config.min_match_char_length or not text:
        return None

    similarity = fuzz.WRatio(term, text, processor=default_process) / 100.0
    penalty = 0.0
    if not config.ignore_location:
        alignment = fuzz.partial_ratio_alignment(term, text, processor=default_process)
        start = alignment.dest_start if alignment is not None else 0
        if config.distance > 0:
            penalty = start / config.distance
        elif start > 0:
            penalty = 1.0

    fuse_score = (1.0 - similarity) + penalty
    if fuse_score > config.threshold:
        return None
    return max(0.0, 1.0 - fuse_score)


def _literal_match(token: Token, text: str) -> bool:
    value = default_process(text)
    needle = default_process(token.text)
    if not needle:
        return False
    if token.operator == EXACT:
        return value == needle
    if token.operator in (INCLUDE, INVERSE_INCLUDE):
        return needle in value
    if token.operator in (PREFIX, INVERSE_PREFIX):
        return value.startswith(needle)
    if token.operator in (SUFFIX, INVERSE_SUFFIX):
        return value.endswith(needle)
    return False


def token_score(token: Token, text: str, config: IndexConfig) -> Optional[float]:
    """Score one non-inverse token against one field value."""
    if token.operator == FUZZY:
        return fuzzy_similarity(token.text, text, config)
    return 1.0 if _literal_match(token, text) else None


def field_matches_inverse(token: Token, text: str) -> bool:
    """True when the field violates an inverse token."""
    return bool(text) and _literal_match(token, text)
