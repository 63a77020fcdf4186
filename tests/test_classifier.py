"""
Tests for the element classifier.

Covers each rule in priority order, the Hotspot-to-Polygon relabel, and the
never-raises contract.
"""

from types import SimpleNamespace

from tourfind.index.classifier import classify, native_class, node_vertices
from tourfind.index.models import ElementKind

TRIANGLE = [[0, 0], [1, 0], [0, 1]]


class TestRulePriority:
    """Earlier rules win over later ones."""

    def test_projected_flag_wins_over_class(self):
        node = {"id": "ov-1", "class_name": "HotspotPanoramaOverlay", "projected": True}
        assert classify(node) == ElementKind.PROJECTED_IMAGE

    def test_projected_keyword_in_label(self):
        assert classify({"id": "ov-1"}, "Projected floor map") == ElementKind.PROJECTED_IMAGE

    def test_polygon_with_video_is_video(self):
        node = {"id": "poly-1", "vertices": TRIANGLE, "video": "clip.mp4"}
        assert classify(node) == ElementKind.VIDEO

    def test_polygon_with_image_is_image(self):
        node = {"id": "poly-1", "vertices": TRIANGLE, "image_url": "a.png"}
        assert classify(node) == ElementKind.IMAGE

    def test_bare_polygon(self):
        node = {"id": "poly-1", "class_name": "HotspotPanoramaOverlay", "vertices": TRIANGLE}
        assert classify(node) == ElementKind.POLYGON

    def test_two_vertices_is_not_a_polygon(self):
        node = {"id": "ov-1", "class_name": "HotspotPanoramaOverlay", "vertices": [[0, 0], [1, 1]]}
        assert classify(node) == ElementKind.HOTSPOT

    def test_image_keyword_in_identifier(self):
        assert classify({"id": "overlay_img_3"}) == ElementKind.IMAGE

    def test_sprite_identifier(self):
        assert classify({"id": "sprite-12", "class_name": "Model3DObject"}) == ElementKind.THREE_D_HOTSPOT

    def test_native_class(self):
        assert classify({"id": "a", "class_name": "WebFrameOverlay"}) == ElementKind.WEBFRAME
        assert classify({"id": "b", "class_name": "Model3D"}) == ElementKind.THREE_D_MODEL
        assert classify({"id": "c", "class_name": "Container"}) == ElementKind.CONTAINER

    def test_property_probe(self):
        assert classify({"id": "a", "url": "https://example.com"}) == ElementKind.WEBFRAME

    def test_empty_property_is_ignored(self):
        assert classify({"id": "a", "url": ""}) == ElementKind.ELEMENT

    def test_label_pattern(self):
        assert classify({"id": "a"}, "Goto kitchen") == ElementKind.HOTSPOT
        assert classify({"id": "b"}, "Video tour") == ElementKind.VIDEO

    def test_default_is_element(self, log_records):
        assert classify({"id": "mystery"}) == ElementKind.ELEMENT
        assert any("Unclassified" in r["message"] for r in log_records)


class TestHotspotRelabel:
    def test_hotspot_with_polygon_label_becomes_polygon(self):
        node = {"id": "hs-1", "class_name": "HotspotPanoramaOverlay"}
        assert classify(node, "Polygon area") == ElementKind.POLYGON

    def test_label_read_from_node_when_not_given(self):
        node = {"id": "hs-1", "class_name": "HotspotPanoramaOverlay", "label": "polygon zone"}
        assert classify(node) == ElementKind.POLYGON


class TestRobustness:
    def test_attribute_objects_are_supported(self):
        node = SimpleNamespace(id="pano-1", class_name="Panorama", label="Lobby")
        assert classify(node) == ElementKind.PANORAMA

    def test_accessor_objects_are_supported(self):
        class Node:
            def get_class_name(self):
                return "TextPanoramaOverlay"

            def get_id(self):
                return "t-1"

        assert native_class(Node()) == "TextPanoramaOverlay"
        assert classify(Node()) == ElementKind.TEXT

    def test_exploding_node_defaults_to_element(self):
        class Exploding:
            def __getattr__(self, name):
                raise RuntimeError("host detached")

        assert classify(Exploding()) == ElementKind.ELEMENT

    def test_none_node_is_element(self):
        assert classify(None) == ElementKind.ELEMENT

    def test_classification_is_idempotent(self):
        node = {"id": "ov-9", "class_name": "VideoPanoramaOverlay", "label": "Intro"}
        assert {classify(node) for _ in range(5)} == {ElementKind.VIDEO}

    def test_nested_polygon_vertices(self):
        assert len(node_vertices({"polygon": {"vertices": TRIANGLE}})) == 3
