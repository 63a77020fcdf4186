"""
Tests for traversal, overlay detection and sequence indexing.
"""

from types import SimpleNamespace

from conftest import FakeHost, FakeItem, hotspot, panorama, plain_item, text_overlay

from tourfind.config import ContentConfig, FilterConfig, ListRule, Settings
from tourfind.index.filters import FilterPipeline
from tourfind.index.models import CameraHint, ElementKind, EntrySource, SpatialHint
from tourfind.index.overlays import (
    detect_overlays,
    from_class_lookup,
    from_loose_reference,
    from_single_panorama,
)
from tourfind.index.traversal import camera_hint, spatial_hint, traverse


def _by_label(entries):
    return {e.label: e for e in entries}


class TestThreePanoramas:
    def test_three_panorama_entries(self, three_panorama_host):
        entries = traverse(three_panorama_host)

        assert [e.kind for e in entries] == [ElementKind.PANORAMA] * 3
        assert [e.sequence_index for e in entries] == [0, 1, 2]
        assert [e.label for e in entries] == ["Lobby", "Panorama 2", "Kitchen"]
        assert [e.item_index for e in entries] == [0, 1, 2]

    def test_fallback_label_keeps_original_blank(self, three_panorama_host):
        entry = traverse(three_panorama_host)[1]
        assert entry.original_label == ""
        assert entry.identifier == "pano-2"


class TestTourTraversal:
    def test_order_and_counts(self, tour_host):
        entries = traverse(tour_host)
        labels = [e.label for e in entries]

        assert labels[:4] == ["Lobby", "Garden", "Showroom", "Roof Terrace"]
        assert len(entries) == 10

    def test_secondary_items_follow_primary(self, tour_host):
        roof = _by_label(traverse(tour_host))["Roof Terrace"]
        assert roof.source == EntrySource.SECONDARY
        assert roof.sequence_index == 3
        assert roof.item_index == 0

    def test_sequence_indexes_are_unique(self, tour_host):
        entries = traverse(tour_host)
        sequences = [e.sequence_index for e in entries]
        assert len(set(sequences)) == len(sequences)

    def test_children_reference_parent(self, tour_host):
        entries = _by_label(traverse(tour_host))
        room = entries["Room 1"]
        fountain = entries["Fountain"]

        assert room.parent_sequence_index == entries["Lobby"].sequence_index
        assert room.parent_label == "Lobby"
        assert room.parent_identifier == "pano-lobby"
        assert room.item_index == 0
        assert fountain.parent_sequence_index == entries["Garden"].sequence_index
        assert room.sequence_index < fountain.sequence_index

    def test_child_sequences_sort_after_all_top_level(self, tour_host):
        entries = traverse(tour_host)
        top = [e.sequence_index for e in entries if not e.is_child]
        children = [e.sequence_index for e in entries if e.is_child]
        assert min(children) > max(top)

    def test_overlay_kinds_and_camera(self, tour_host):
        entries = _by_label(traverse(tour_host))
        assert entries["Room 1"].kind == ElementKind.HOTSPOT
        assert entries["Room 1"].camera_hint == CameraHint(10.0, -5.0, 90.0)
        assert entries["Exit"].camera_hint is None
        assert entries["Welcome"].kind == ElementKind.TEXT
        assert entries["Room 1"].tags == ("room-1",)

    def test_model_children(self, tour_host):
        entries = _by_label(traverse(tour_host))
        assert entries["Showroom"].kind == ElementKind.THREE_D_MODEL
        assert entries["Chair"].kind == ElementKind.THREE_D_MODEL_OBJECT
        assert entries["Chair"].spatial_hint == SpatialHint(1.0, 2.0, 3.0)
        assert entries["Chair"].host_ref == "obj-chair"
        assert entries["Info point"].kind == ElementKind.THREE_D_HOTSPOT
        assert entries["Info point"].camera_hint is None


class TestFiltering:
    def test_kind_blacklist_removes_text(self, tour_host):
        pipeline = FilterPipeline(FilterConfig(element_types=ListRule("blacklist", blacklisted=("Text",))))
        entries = traverse(tour_host, pipeline)
        assert not [e for e in entries if e.kind == ElementKind.TEXT]
        assert len(entries) == 9

    def test_overlays_of_filtered_panorama_are_kept(self, tour_host):
        pipeline = FilterPipeline(FilterConfig(labels=ListRule("blacklist", blacklisted=("lobby",))))
        labels = {e.label for e in traverse(tour_host, pipeline)}
        assert "Lobby" not in labels
        assert "Room 1" in labels

    def test_media_index_filter_skips_subtree(self, tour_host):
        pipeline = FilterPipeline(FilterConfig(media_index=ListRule("blacklist", blacklisted=(0,))))
        labels = {e.label for e in traverse(tour_host, pipeline)}
        assert "Lobby" not in labels
        assert "Room 1" not in labels
        assert "Garden" in labels

    def test_content_toggle(self, tour_host):
        content = ContentConfig.from_settings(Settings.from_dict({"include_content": {"hotspots": False}}))
        entries = traverse(tour_host, FilterPipeline(content=content), content=content)
        assert not [e for e in entries if e.kind == ElementKind.HOTSPOT]

    def test_panorama_class_wins_over_image_keywords(self):
        host = FakeHost([
            plain_item(panorama("pano-1", "Photo Studio")),
            plain_item(panorama("pano-2", "Projection Room")),
            plain_item(panorama("pano-img-3", "Lobby")),
        ])
        kinds = [(e.label, e.kind) for e in traverse(host)]
        assert kinds == [
            ("Photo Studio", ElementKind.PANORAMA),
            ("Projection Room", ElementKind.PANORAMA),
            ("Lobby", ElementKind.PANORAMA),
        ]

    def test_panorama_toggle_removes_keyword_labelled_panoramas(self):
        host = FakeHost([plain_item(panorama("pano-1", "Photo Studio", overlays=[hotspot("hs-1", "Desk")]))])
        content = ContentConfig.from_settings(Settings.from_dict({"include_content": {"panoramas": False}}))
        labels = [e.label for e in traverse(host, FilterPipeline(content=content), content=content)]
        assert labels == ["Desk"]


class TestContainers:
    def test_containers_are_appended_last(self, tour_host):
        content = ContentConfig(container_names=("Floorplan", "Gallery"))
        entries = traverse(tour_host, content=content)
        containers = entries[-2:]

        assert [c.label for c in containers] == ["Floorplan", "Gallery"]
        assert all(c.kind == ElementKind.CONTAINER and c.is_container for c in containers)
        assert containers[0].identifier == "container-Floorplan"
        assert containers[0].source == EntrySource.CONTAINER
        assert containers[0].sequence_index > max(e.sequence_index for e in entries[:-2])


class TestRobustness:
    def test_duplicate_identifiers_are_dropped(self):
        host = FakeHost([
            plain_item(panorama("pano-1", "A", overlays=[hotspot("shared", "Door")])),
            plain_item(panorama("pano-2", "B", overlays=[hotspot("shared", "Door again")])),
        ])
        entries = traverse(host)
        keys = [e.key() for e in entries]
        assert len(keys) == len(set(keys))
        assert "Door again" not in {e.label for e in entries}

    def test_item_without_media_is_skipped(self, log_records):
        host = FakeHost([{"id": "broken"}, plain_item(panorama("pano-1", "Lobby"))])
        entries = traverse(host)
        assert [e.label for e in entries] == ["Lobby"]
        assert entries[0].sequence_index == 1
        assert any("has no media" in r["message"] for r in log_records)

    def test_failing_item_does_not_stop_traversal(self):
        class BrokenItem:
            @property
            def media(self):
                raise RuntimeError("unloaded")

        host = FakeHost([BrokenItem(), plain_item(panorama("pano-1", "Lobby"))])
        assert [e.label for e in traverse(host)] == ["Lobby"]

    def test_empty_host(self):
        assert traverse(SimpleNamespace()) == []


class TestOverlayDetection:
    def test_accessor_preferred_over_property(self):
        accessor = [text_overlay("t-1", "From accessor")]
        media = SimpleNamespace(
            id="pano-1",
            overlays=[text_overlay("t-2", "From property")],
            get_overlays=lambda: accessor,
        )
        assert detect_overlays(FakeHost([]), FakeItem(media), media) == accessor

    def test_tag_groups_are_flattened_once(self):
        shared = hotspot("hs-1", "Door")
        other = hotspot("hs-2", "Window")

        class Host(FakeHost):
            def get_overlays_by_tags(self, media):
                return {"a": [shared], "b": [shared, other]}

        media = panorama("pano-1", "Lobby")
        assert detect_overlays(Host([]), None, media) == [shared, other]

    def test_class_lookup_by_owner(self):
        media = panorama("pano-1", "Lobby")
        mine = hotspot("hs-1", "Door", owner=media)
        theirs = hotspot("hs-2", "Window", owner={"id": "pano-2"})
        host = FakeHost([plain_item(media)], by_class={"HotspotPanoramaOverlay": [mine, theirs]})
        assert from_class_lookup(host, None, media) == [mine]

    def test_loose_reference(self):
        media = panorama("pano-1", "Lobby")
        mine = text_overlay("t-1", "Sign")
        mine["panorama_id"] = "pano-1"
        host = FakeHost([], by_class={"TextPanoramaOverlay": [mine]})
        assert from_loose_reference(host, None, media) == [mine]

    def test_single_panorama_takes_unowned_overlays(self):
        media = panorama("pano-1", "Lobby")
        loose = hotspot("hs-1", "Door")
        host = FakeHost([plain_item(media)], by_class={"HotspotPanoramaOverlay": [loose]})
        assert from_single_panorama(host, None, media) == [loose]

    def test_single_panorama_rule_needs_one_panorama(self):
        media = panorama("pano-1", "Lobby")
        host = FakeHost(
            [plain_item(media), plain_item(panorama("pano-2", "Hall"))],
            by_class={"HotspotPanoramaOverlay": [hotspot("hs-1", "Door")]},
        )
        assert from_single_panorama(host, None, media) is None

    def test_failing_strategy_falls_through(self):
        class Host(FakeHost):
            def get_overlays_by_tags(self, media):
                raise RuntimeError("not ready")

        media = panorama("pano-1", "Lobby")
        loose = hotspot("hs-1", "Door")
        host = Host([plain_item(media)], by_class={"HotspotPanoramaOverlay": [loose]})
        assert detect_overlays(host, None, media) == [loose]


class TestHints:
    def test_camera_from_first_item(self):
        overlay = {"items": [{"yaw": "12.5", "pitch": 3, "hfov": 70}]}
        assert camera_hint(overlay) == CameraHint(12.5, 3.0, 70.0)

    def test_no_camera(self):
        assert camera_hint({"yaw": 1}) is None

    def test_spatial_from_position_list(self):
        assert spatial_hint({"position": [1, 2, 3]}) == SpatialHint(1.0, 2.0, 3.0)

    def test_incomplete_spatial(self):
        assert spatial_hint({"x": 1, "y": 2}) is None
