"""
Reconciliation Engine - Merge external dataset rows into the index.

For each row, in input order:
  1. Skip rows whose id or tag an earlier row already consumed
  2. Collect matching entries, each tagged with a confidence:
       exact identifier         3
       media/container id       2
       tag containment          2
       case-insensitive name    1
  3. No match: synthesize a standalone entry (if enabled)
  4. One or more matches: the highest confidence wins, earliest entry on a
     tie; enrich it (if the dataset is the primary source)
  5. Derived label/subtitle/tags go through the filter pipeline; a rejected
     row contributes nothing
  6. Consume the row's id/tag and the matched entry

Input order is load-bearing: reordering the dataset can change outcomes.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from loguru import logger

from tourfind.config import ExternalDataConfig
from tourfind.index.filters import FilterPipeline
from tourfind.index.models import ElementKind, EntrySource, ExternalRow, IndexEntry

CONFIDENCE_ID = 3
CONFIDENCE_MEDIA_ID = 2
CONFIDENCE_TAG = 2
CONFIDENCE_NAME = 1


@dataclass(frozen=True)
class Match:
    position: int
    confidence: int
    rule: str


def find_matches(row: ExternalRow, entries: list[IndexEntry], consumed: set) -> list[Match]:
    """All structural matches for a row, best first (stable on ties)."""
    row_id = (row.id or "").strip()
    row_tag = (row.tag or "").strip().lower()
    row_name = (row.name or "").strip().lower()

    matches = []
    for position, entry in enumerate(entries):
        if position in consumed or entry.is_standalone:
            continue
        best: Optional[Match] = None
        if row_id and entry.identifier == row_id:
            best = Match(position, CONFIDENCE_ID, "identifier")
        elif row_id and not entry.is_child and entry.media_identifier == row_id:
            rule = "container" if entry.is_container else "media_identifier"
            best = Match(position, CONFIDENCE_MEDIA_ID, rule)
        elif row_tag and row_tag in (t.lower() for t in entry.tags):
            best = Match(position, CONFIDENCE_TAG, "tag")
        elif row_name and entry.original_label.strip().lower() == row_name:
            best = Match(position, CONFIDENCE_NAME, "name")
        if best is not None:
            matches.append(best)

    # sorted() is stable, so equal confidences keep entry order
    return sorted(matches, key=lambda m: -m.confidence)


class Reconciler:
    """One reconciliation pass."""

    def __init__(self, config: ExternalDataConfig, pipeline: FilterPipeline = None):
        self.config = config
        self.pipeline = pipeline or FilterPipeline()

    def run(self, entries: Iterable[IndexEntry], rows: Iterable[ExternalRow]) -> list[IndexEntry]:
        result = list(entries)
        standalone: list[IndexEntry] = []
        consumed_entries: set = set()
        consumed_ids: set = set()
        consumed_tags: set = set()
        next_sequence = max((e.sequence_index for e in result), default=-1) + 1

        for row in rows:
            try:
                if row.is_empty:
                    continue
                if (row.id and row.id in consumed_ids) or (row.tag and row.tag.lower() in consumed_tags):
                    logger.debug(f"External row {row.row_index} already consumed, skipping")
                    continue

                matches = find_matches(row, result, consumed_entries)
                if not matches:
                    entry = self._standalone(row, next_sequence)
                    if entry is not None:
                        standalone.append(entry)
                        next_sequence += 1
                        self._consume(row, consumed_ids, consumed_tags)
                    continue

                if len(matches) > 1:
                    logger.warning(
                        f"External row {row.row_index} ({row.id or row.tag or row.name}) matches "
                        f"{len(matches)} entries; using {matches[0].rule} match "
                        f"'{result[matches[0].position].label}'"
                    )

                if not self.config.use_as_primary_source:
                    continue

                winner = matches[0]
                enriched = self._enrich(result[winner.position], row)
                if enriched is None:
                    continue
                result[winner.position] = enriched
                consumed_entries.add(winner.position)
                self._consume(row, consumed_ids, consumed_tags)
            except Exception:
                logger.exception(f"Failed to reconcile external row {row.row_index}, skipping")

        if standalone:
            logger.info(f"Added {len(standalone)} standalone entries from external data")
        return result + standalone

    @staticmethod
    def _consume(row: ExternalRow, ids: set, tags: set) -> None:
        if row.id:
            ids.add(row.id)
        if row.tag:
            tags.add(row.tag.lower())

    def _enrich(self, entry: IndexEntry, row: ExternalRow) -> Optional[IndexEntry]:
        label = row.name or entry.label
        subtitle = row.description or entry.subtitle
        tags = entry.tags
        if row.tag and row.tag.lower() not in (t.lower() for t in tags):
            tags = tags + (row.tag,)

        if not self.pipeline.allows(entry.kind, label, tags, subtitle):
            logger.debug(f"External row {row.row_index} rejected by filters")
            return None

        return entry.with_changes(
            label=label,
            subtitle=subtitle,
            tags=tags,
            external_row=row,
            alias_label=entry.label if row.name and row.name != entry.label else entry.alias_label,
        )

    def _standalone(self, row: ExternalRow, sequence: int) -> Optional[IndexEntry]:
        if not self.config.include_standalone:
            return None

        label = row.name or row.tag or row.id or ""
        subtitle = row.description or ""
        tags = (row.tag,) if row.tag else ()
        if not self.pipeline.allows(ElementKind.ELEMENT, label, tags, subtitle):
            return None

        return IndexEntry(
            kind=ElementKind.ELEMENT,
            source=EntrySource.EXTERNAL_ROW,
            label=label,
            original_label=label,
            subtitle=subtitle,
            tags=tags,
            identifier=row.id or f"external-{row.row_index}",
            sequence_index=sequence,
            external_row=row,
            is_standalone=True,
            host_ref=None,
            parent_identifier=row.parent_id,
        )


def reconcile(
    entries: Iterable[IndexEntry],
    rows: Iterable[ExternalRow],
    config: ExternalDataConfig = ExternalDataConfig(),
    pipeline: FilterPipeline = None,
) -> list[IndexEntry]:
    """Merge rows into entries; returns a new list (matched entries replaced)."""
    return Reconciler(config, pipeline).run(entries, rows)
