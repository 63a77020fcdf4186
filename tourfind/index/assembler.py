"""
Index Assembler - Freeze reconciled entries into a queryable SearchIndex.

Each entry gets a relevance boost from the first rule it satisfies:
  external_match  entry was enriched from (or built from) an external row
  labeled         entry has its own label
  unlabeled       top-level entry without a label
  child           child element without a label

Field weights are normalized so the label field weighs 1.0. The alias
field (the structural label an external name replaced) mirrors the label
weight.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from tourfind.config import IndexConfig
from tourfind.index.models import IndexEntry

FIELDS = ("label", "alias_label", "subtitle", "tags", "parent_label")


@dataclass(frozen=True)
class FieldRecord:
    """Searchable text of one entry, per field."""

    label: str
    alias_label: str
    subtitle: str
    tags: tuple[str, ...]
    parent_label: str

    def values(self, field_name: str) -> tuple[str, ...]:
        value = getattr(self, field_name)
        if isinstance(value, tuple):
            return value
        return (value,) if value else ()


@dataclass(frozen=True)
class SearchIndex:
    """Immutable fuzzy-search structure over all entries of one build."""

    entries: tuple[IndexEntry, ...] = ()
    records: tuple[FieldRecord, ...] = ()
    weights: dict = field(default_factory=dict)
    config: IndexConfig = IndexConfig()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def weight(self, field_name: str) -> float:
        return self.weights.get(field_name, 0.0)


def relevance_boost(entry: IndexEntry, boosts: dict) -> float:
    if entry.external_row is not None:
        return boosts.get("external_match", 1.0)
    if entry.original_label.strip():
        return boosts.get("labeled", 1.0)
    if not entry.is_child:
        return boosts.get("unlabeled", 1.0)
    return boosts.get("child", 1.0)


def _normalized_weights(raw: dict) -> dict:
    label_weight = raw.get("label") or 1.0
    weights = {
        "label": 1.0,
        "subtitle": raw.get("subtitle", 0.0) / label_weight,
        "tags": raw.get("tags", 0.0) / label_weight,
        "parent_label": raw.get("parent_label", 0.0) / label_weight,
    }
    weights["alias_label"] = weights["label"]
    return weights


def assemble(entries: Iterable[IndexEntry], config: Optional[IndexConfig] = None) -> SearchIndex:
    """Build a SearchIndex; entries keep their input order."""
    config = config or IndexConfig()
    boosted = []
    records = []

    for entry in entries:
        entry = entry.with_changes(relevance_boost=relevance_boost(entry, config.boosts))
        boosted.append(entry)
        records.append(FieldRecord(
            label=entry.label,
            alias_label=entry.alias_label,
            subtitle=entry.subtitle,
            tags=entry.tags,
            parent_label=entry.parent_label,
        ))

    index = SearchIndex(
        entries=tuple(boosted),
        records=tuple(records),
        weights=_normalized_weights(config.weights),
        config=config,
    )
    logger.info(f"Assembled search index with {len(index)} entries")
    return index
