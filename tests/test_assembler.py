"""
Tests for index assembly: relevance boosts, field weights and ordering.
"""

from tourfind.config import IndexConfig
from tourfind.index.assembler import assemble, relevance_boost
from tourfind.index.models import ElementKind, EntrySource, ExternalRow, IndexEntry

BOOSTS = {"external_match": 1.5, "labeled": 1.0, "unlabeled": 0.8, "child": 0.6}


def _entry(label="", original="", parent=None, row=None, sequence=0):
    return IndexEntry(
        kind=ElementKind.HOTSPOT,
        source=EntrySource.PRIMARY,
        label=label or original or "Hotspot",
        original_label=original,
        identifier=f"e-{sequence}",
        sequence_index=sequence,
        parent_sequence_index=parent,
        external_row=row,
    )


class TestRelevanceBoost:
    def test_external_match_first(self):
        entry = _entry(original="", parent=0, row=ExternalRow(id="r1"))
        assert relevance_boost(entry, BOOSTS) == 1.5

    def test_labeled(self):
        assert relevance_boost(_entry(original="Door", parent=0), BOOSTS) == 1.0

    def test_unlabeled_top_level(self):
        assert relevance_boost(_entry(), BOOSTS) == 0.8

    def test_unlabeled_child(self):
        assert relevance_boost(_entry(parent=3), BOOSTS) == 0.6


class TestAssemble:
    def test_keeps_input_order_and_sets_boosts(self):
        entries = [_entry(original="B", sequence=5), _entry(sequence=1)]
        index = assemble(entries, IndexConfig())

        assert [e.sequence_index for e in index] == [5, 1]
        assert [e.relevance_boost for e in index] == [1.0, 0.8]
        assert len(index) == 2

    def test_does_not_mutate_input(self):
        entry = _entry(sequence=1)
        assemble([entry], IndexConfig())
        assert entry.relevance_boost == 1.0

    def test_weights_normalized_to_label(self):
        config = IndexConfig(weights={"label": 2.0, "subtitle": 1.0, "tags": 0.5, "parent_label": 0.0})
        index = assemble([], config)
        assert index.weight("label") == 1.0
        assert index.weight("alias_label") == 1.0
        assert index.weight("subtitle") == 0.5
        assert index.weight("tags") == 0.25
        assert index.weight("parent_label") == 0.0

    def test_records_carry_searchable_fields(self):
        entry = _entry(original="Door").with_changes(subtitle="Main", tags=("a", "b"), parent_label="Lobby")
        record = assemble([entry]).records[0]
        assert record.values("label") == ("Door",)
        assert record.values("tags") == ("a", "b")
        assert record.values("alias_label") == ()
        assert record.values("parent_label") == ("Lobby",)
