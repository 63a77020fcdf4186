"""
Tests for the TourSearch session: builds, rebuilds, settings updates and the
search/select round trip.
"""

import asyncio

import httpx
import pytest

from tourfind import TourSearch
from tourfind.config import Settings
from tourfind.errors import ConfigError
from tourfind.index.models import ElementKind, ExternalRow
from tourfind.search.router import STATE_RESULTS, STATE_TOO_SHORT
from tourfind.services.cache import DatasetCache

CSV_TEXT = "id,tag,name\nr1,room-1,Conference Room\nx1,,Lobby Map\n"


def _external(**overrides):
    values = {"enabled": True, "url": "https://example.com/rooms.csv", "cache_enabled": False}
    values.update(overrides)
    return Settings.from_dict({"external_data": values})


def _transport(calls=None):
    def handler(request):
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(200, text=CSV_TEXT, headers={"content-type": "text/csv"})

    return httpx.MockTransport(handler)


class TestBuild:
    def test_three_panoramas(self, three_panorama_host):
        session = TourSearch(three_panorama_host)
        index = session.build()
        assert [e.label for e in index] == ["Lobby", "Panorama 2", "Kitchen"]
        assert [e.sequence_index for e in index] == [0, 1, 2]
        assert not session.stale

    def test_kind_blacklist(self, tour_host):
        settings = Settings.from_dict({"filters": {"element_types": {"mode": "blacklist", "blacklisted": ["Text"]}}})
        index = TourSearch(tour_host, settings).build()
        assert not [e for e in index if e.kind == ElementKind.TEXT]

    def test_build_with_rows(self, tour_host):
        rows = [ExternalRow(id="r1", tag="room-1", name="Conference Room")]
        index = TourSearch(tour_host).build(rows)
        entry = next(e for e in index if e.label == "Conference Room")
        assert entry.relevance_boost == 1.5


class TestRebuild:
    def test_rebuild_merges_external_rows(self, tour_host):
        session = TourSearch(tour_host, _external(include_standalone=True), transport=_transport())
        index = asyncio.run(session.rebuild())
        labels = [e.label for e in index]

        assert "Conference Room" in labels
        assert "Room 1" not in labels
        assert labels[-1] == "Lobby Map"
        assert index is session.index

    def test_rebuild_without_external_data(self, tour_host):
        calls = []
        session = TourSearch(tour_host, transport=_transport(calls))
        index = asyncio.run(session.rebuild())
        assert len(index) == 10
        assert calls == []

    def test_concurrent_rebuilds_are_serialized(self, tour_host):
        calls = []
        session = TourSearch(tour_host, _external(), transport=_transport(calls))

        async def run():
            return await asyncio.gather(session.rebuild(), session.rebuild())

        first, second = asyncio.run(run())
        assert len(calls) == 2
        assert len(first) == len(second)
        assert session.index is second

    def test_contended_rebuilds_on_successive_loops(self, tour_host):
        calls = []
        session = TourSearch(tour_host, _external(), transport=_transport(calls))

        async def run():
            return await asyncio.gather(session.rebuild(), session.rebuild())

        asyncio.run(run())
        _, second = asyncio.run(run())
        assert len(calls) == 4
        assert session.index is second

    def test_failed_rebuild_keeps_previous_index(self, tour_host, log_records):
        session = TourSearch(tour_host)
        previous = session.build()
        session.settings = Settings.from_dict({"index": {"threshold": 7}})

        assert asyncio.run(session.rebuild()) is previous
        assert session.index is previous
        assert any("rebuild failed" in r["message"] for r in log_records)

    def test_cached_rows_are_reused(self, tour_host, tmp_db):
        calls = []
        cache = DatasetCache(tmp_db)
        settings = _external(cache_enabled=True, cache_timeout_minutes=10)
        session = TourSearch(tour_host, settings, cache=cache, transport=_transport(calls))

        asyncio.run(session.rebuild())
        asyncio.run(session.rebuild())
        assert len(calls) == 1
        cache.close()


class TestSettingsUpdates:
    def test_membership_change_marks_stale(self, tour_host):
        session = TourSearch(tour_host)
        session.build()

        assert session.update_settings({"filters": {"labels": {"mode": "blacklist", "blacklisted": ["exit"]}}})
        assert session.stale
        assert "Exit" in [e.label for e in session.index]

        asyncio.run(session.rebuild())
        assert not session.stale
        assert "Exit" not in [e.label for e in session.index]

    def test_presentation_change_does_not(self, tour_host):
        session = TourSearch(tour_host)
        session.build()
        assert not session.update_settings({"query": {"max_results": 2}})
        assert not session.stale
        assert len(session.search("*").results) == 10
        assert len(session.search("o").results) == 0
        assert len(session.search("oo").results) <= 2

    def test_invalid_update_is_rejected(self, tour_host):
        session = TourSearch(tour_host)
        before = session.settings
        with pytest.raises(ConfigError):
            session.update_settings({"index": {"threshold": -1}})
        assert session.settings is before

    @pytest.mark.parametrize("index", [
        {"distance": "x"},
        {"threshold": "high"},
        {"weights": "label"},
        {"boosts": {"child": None}},
    ])
    def test_unparseable_index_values_are_rejected(self, tour_host, index):
        session = TourSearch(tour_host)
        before = session.settings
        with pytest.raises(ConfigError):
            session.update_settings({"index": index})
        assert session.settings is before


class TestSearchAndSelect:
    def test_search_remembers_term(self, tour_host):
        session = TourSearch(tour_host)
        session.build()
        assert session.search("garden").state == STATE_RESULTS
        assert session.term == "garden"
        assert session.search().results[0].entry.label == "Garden"

    def test_too_short(self, tour_host):
        session = TourSearch(tour_host)
        session.build()
        assert session.search("g").state == STATE_TOO_SHORT

    def test_alias_label_still_matches(self, tour_host):
        session = TourSearch(tour_host)
        session.build([ExternalRow(tag="room-1", name="Conference Room")])
        labels = [r.entry.label for r in session.search("=Conference Room").results]
        assert labels == ["Conference Room"]
        assert session.search("Room 1").results[0].entry.label == "Conference Room"

    def test_grouped(self, tour_host):
        session = TourSearch(tour_host)
        session.build()
        groups = session.grouped("*")
        assert list(groups)[:3] == ["Panorama", "Hotspot", "Text"]
        assert [r.entry.label for r in groups["Panorama"]] == ["Lobby", "Garden", "Roof Terrace"]

    def test_search_on_empty_index(self, tour_host):
        outcome = TourSearch(tour_host).search("lobby")
        assert outcome.state == STATE_RESULTS
        assert outcome.results == []

    def test_select_navigates(self, tour_host):
        session = TourSearch(tour_host)
        session.build()
        garden = session.search("=Garden").results[0].entry
        assert session.select(garden) == "select"
        assert tour_host.playlist.selections == [1]

    def test_close_releases_pending_handlers(self, tour_host):
        session = TourSearch(tour_host)
        session.build()
        room = session.search("=Room 1").results[0].entry
        session.select(room)
        item = tour_host.playlist.items[0]
        assert item.bound() == 1

        session.close()
        assert item.bound() == 0
        assert len(session.pending) == 0
