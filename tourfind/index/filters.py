"""
Filter Pipeline - Decide whether a node becomes an index entry.

Stages run in order and any rejection short-circuits:
  1. Kind validity (unknown kinds pass, empty kinds fail)
  2. Label emptiness and minimum length
  3. Top-level value filter (configurable match mode)
  4. Kind whitelist/blacklist
  5. Label substring whitelist/blacklist
  6. Tag whitelist/blacklist
  7. Per-kind inclusion toggle

Each stage reads only its own inputs, so stages never depend on one
another having run.
"""

import re
import unicodedata
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from tourfind.config import ContentConfig, FilterConfig, ListRule
from tourfind.index.models import ElementKind

_QUOTES_BRACKETS = re.compile(r"[\"'`‘’“”()\[\]{}<>]")
_DASHES = re.compile(r"[‐‑‒–—―−﹘﹣－]")
_WHITESPACE = re.compile(r"\s+")


def normalize_value(text: Optional[str]) -> str:
    """
    Normalize text for value filtering.

    Lowercases, folds accents, strips quotes and brackets, unifies dash
    variants and collapses whitespace.
    """
    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", str(text))
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    folded = folded.casefold()
    folded = _QUOTES_BRACKETS.sub("", folded)
    folded = _DASHES.sub("-", folded)
    return _WHITESPACE.sub(" ", folded).strip()


def _value_matches(value: str, pattern: str, match_mode: str) -> bool:
    if match_mode == "regex":
        try:
            return re.search(pattern, value, re.IGNORECASE) is not None
        except re.error as e:
            logger.warning(f"Invalid value filter regex '{pattern}': {e}")
            return False
    pattern = normalize_value(pattern)
    if not pattern:
        return False
    if match_mode == "exact":
        return value == pattern
    if match_mode == "startswith":
        return value.startswith(pattern)
    return pattern in value


class FilterPipeline:
    """Ordered include/exclude predicate over (kind, label, tags, subtitle)."""

    def __init__(self, filters: FilterConfig = FilterConfig(), content: ContentConfig = ContentConfig()):
        self.filters = filters
        self.content = content
        self._stages: list[tuple[str, Callable[..., bool]]] = [
            ("kind_valid", self._kind_valid),
            ("label_rules", self._label_rules),
            ("value_filter", self._value_filter),
            ("kind_filter", self._kind_filter),
            ("label_filter", self._label_filter),
            ("tag_filter", self._tag_filter),
            ("content_toggle", self._content_toggle),
        ]

    def allows(self, kind: Any, label: Optional[str], tags: Iterable[str] = (), subtitle: Optional[str] = "") -> bool:
        """Return True if the node should be indexed. Never raises."""
        label = (label or "").strip()
        subtitle = (subtitle or "").strip()
        tags = tuple(t for t in tags or () if t)
        kind_name = kind.value if isinstance(kind, ElementKind) else str(kind or "").strip()

        for stage_name, stage in self._stages:
            try:
                allowed = stage(kind_name, label, tags, subtitle)
            except Exception:
                logger.exception(f"Filter stage '{stage_name}' failed, rejecting node")
                return False
            if not allowed:
                logger.debug(f"Rejected by {stage_name}: kind={kind_name} label='{label}'")
                return False
        return True

    def allows_index(self, position: int) -> bool:
        """Positional filter for top-level nodes."""
        rule = self.filters.media_index
        if rule.mode == "whitelist":
            return position in rule.allowed
        if rule.mode == "blacklist":
            return position not in rule.blacklisted
        return True

    # Stages

    def _kind_valid(self, kind_name, label, tags, subtitle) -> bool:
        if not kind_name:
            return False
        if not ElementKind.is_known(kind_name):
            logger.info(f"Unknown element kind '{kind_name}', allowing")
        return True

    def _label_rules(self, kind_name, label, tags, subtitle) -> bool:
        if not label:
            return self.filters.include_unlabeled
        return len(label) >= self.filters.min_label_length

    def _value_filter(self, kind_name, label, tags, subtitle) -> bool:
        mode = self.filters.mode
        if mode == "none":
            return True
        value = normalize_value(label or subtitle)
        match_mode = self.filters.match_mode

        if mode == "whitelist":
            if not self.filters.allowed_values:
                return True
            # Whitelists only accept exact, prefix or regex matches
            if match_mode == "contains":
                match_mode = "exact"
            return any(_value_matches(value, p, match_mode) for p in self.filters.allowed_values)

        if not value:
            return True
        return not any(_value_matches(value, p, match_mode) for p in self.filters.blacklisted_values)

    def _kind_filter(self, kind_name, label, tags, subtitle) -> bool:
        return _set_rule(self.filters.element_types, [kind_name])

    def _label_filter(self, kind_name, label, tags, subtitle) -> bool:
        rule = self.filters.labels
        if rule.mode == "none":
            return True
        text = label.lower()
        if rule.mode == "whitelist":
            if not rule.allowed:
                return True
            return any(term.lower() in text for term in rule.allowed)
        return not any(term.lower() in text for term in rule.blacklisted)

    def _tag_filter(self, kind_name, label, tags, subtitle) -> bool:
        return _set_rule(self.filters.tags, tags)

    def _content_toggle(self, kind_name, label, tags, subtitle) -> bool:
        return self.content.includes(kind_name)


def _set_rule(rule: ListRule, values: Iterable[str]) -> bool:
    """Case-insensitive set membership for whitelist/blacklist axes."""
    if rule.mode == "none":
        return True
    lowered = {v.strip().lower() for v in values if v}
    if rule.mode == "whitelist":
        if not rule.allowed:
            return True
        return bool(lowered & {a.lower() for a in rule.allowed})
    return not (lowered & {b.lower() for b in rule.blacklisted})
