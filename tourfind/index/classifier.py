"""
Element Classifier - Map a raw scene-graph node to an ElementKind.

Rules are tried in priority order and the first match wins:
  1. Projected flag or projected-image keyword   → ProjectedImage
  2. Polygon geometry (>= 3 vertices)            → Video / Image / Polygon
  3. Generic image keyword in id or label        → Image
  4. "sprite" in the identifier                  → ThreeDHotspot
  5. Known native class name                     → mapped kind
  6. Structural property probes                  → mapped kind
  7. Label substring patterns                    → mapped kind
  8. Default                                     → Element

A Hotspot whose label mentions "polygon" is reclassified Polygon. The label
wins over the class there, which is a heuristic rather than a guarantee.
"""

from typing import Any, Optional

from loguru import logger

from tourfind.index.models import ElementKind
from tourfind.utils.helpers import as_text, probe

PROJECTED_KEYWORDS = ("projected", "projection")
IMAGE_KEYWORDS = ("image", "img", "photo", "picture")

# Native class name -> kind
CLASS_MAP = {
    "Panorama": ElementKind.PANORAMA,
    "HDRPanorama": ElementKind.PANORAMA,
    "VideoPanorama": ElementKind.PANORAMA,
    "Video360": ElementKind.PANORAMA,
    "HotspotPanoramaOverlay": ElementKind.HOTSPOT,
    "PanoramaOverlay": ElementKind.HOTSPOT,
    "Video": ElementKind.VIDEO,
    "VideoPanoramaOverlay": ElementKind.VIDEO,
    "WebFrame": ElementKind.WEBFRAME,
    "WebFrameOverlay": ElementKind.WEBFRAME,
    "ImagePanoramaOverlay": ElementKind.IMAGE,
    "TextPanoramaOverlay": ElementKind.TEXT,
    "Container": ElementKind.CONTAINER,
    "Model3D": ElementKind.THREE_D_MODEL,
    "Model3DObject": ElementKind.THREE_D_MODEL_OBJECT,
    "InnerModel3DObject": ElementKind.THREE_D_MODEL_OBJECT,
    "Sprite3DObject": ElementKind.THREE_D_HOTSPOT,
    "SpriteModel3DObject": ElementKind.THREE_D_HOTSPOT,
}

# Native classes that are panoramas whatever their id or label says
PANORAMA_CLASSES = tuple(name for name, kind in CLASS_MAP.items() if kind is ElementKind.PANORAMA)

# Structural probes: property name -> kind, checked in order
PROPERTY_PROBES = (
    ("url", ElementKind.WEBFRAME),
    ("video", ElementKind.VIDEO),
    ("vertices", ElementKind.POLYGON),
    ("polygon", ElementKind.POLYGON),
    ("model3d", ElementKind.THREE_D_MODEL),
    ("sprite3d", ElementKind.THREE_D_HOTSPOT),
)

# Label substring -> kind, checked in order
LABEL_PATTERNS = (
    ("3d-model", ElementKind.THREE_D_MODEL),
    ("web", ElementKind.WEBFRAME),
    ("video", ElementKind.VIDEO),
    ("polygon", ElementKind.POLYGON),
    ("goto", ElementKind.HOTSPOT),
    ("info", ElementKind.HOTSPOT),
    ("text", ElementKind.TEXT),
)


def native_class(node: Any) -> str:
    """The host's class name for a node ('' when unknown)."""
    return as_text(probe(node, "class_name", "class", "type"))


def node_identifier(node: Any) -> str:
    return as_text(probe(node, "id", "identifier"))


def node_vertices(node: Any) -> list:
    vertices = probe(node, "vertices")
    if vertices is None:
        polygon = probe(node, "polygon")
        vertices = polygon if isinstance(polygon, (list, tuple)) else probe(polygon, "vertices")
    if isinstance(vertices, (list, tuple)):
        return list(vertices)
    return []


def _contains_any(text: str, keywords: tuple) -> bool:
    return any(keyword in text for keyword in keywords)


def _has(node: Any, name: str) -> bool:
    value = probe(node, name)
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, tuple, dict)) and not value:
        return False
    return True


def classify(node: Any, label: Optional[str] = None) -> ElementKind:
    """
    Classify a content node. Never raises.

    Args:
        node: Opaque host node (mapping or object)
        label: Pre-known label; read from the node when omitted

    Returns:
        ElementKind (Element when nothing matches)
    """
    try:
        kind = _classify(node, label)
    except Exception:
        logger.exception("Classifier failed on node, defaulting to Element")
        return ElementKind.ELEMENT

    if kind is ElementKind.HOTSPOT:
        text = (label if label is not None else as_text(probe(node, "label"))).lower()
        if "polygon" in text:
            return ElementKind.POLYGON
    return kind


def _classify(node: Any, label: Optional[str]) -> ElementKind:
    if label is None:
        label = as_text(probe(node, "label"))
    label_l = label.lower()
    ident_l = node_identifier(node).lower()
    cls_name = native_class(node)

    # 1. Projected images
    if probe(node, "projected") is True or _contains_any(ident_l, PROJECTED_KEYWORDS) \
            or _contains_any(label_l, PROJECTED_KEYWORDS):
        return ElementKind.PROJECTED_IMAGE

    # 2. Polygon geometry, possibly carrying media
    if len(node_vertices(node)) >= 3:
        if _has(node, "video"):
            return ElementKind.VIDEO
        if _has(node, "image") or _has(node, "image_url"):
            return ElementKind.IMAGE
        return ElementKind.POLYGON

    # 3. Generic image keywords
    if _contains_any(ident_l, IMAGE_KEYWORDS) or _contains_any(label_l, IMAGE_KEYWORDS):
        return ElementKind.IMAGE

    # 4. Sprites
    if "sprite" in ident_l:
        return ElementKind.THREE_D_HOTSPOT

    # 5. Native class
    if cls_name in CLASS_MAP:
        return CLASS_MAP[cls_name]

    # 6. Structural probes
    for prop, kind in PROPERTY_PROBES:
        if _has(node, prop):
            return kind

    # 7. Label patterns
    for pattern, kind in LABEL_PATTERNS:
        if pattern in label_l:
            return kind

    logger.info(f"Unclassified node (class='{cls_name}', id='{ident_l}'), using Element")
    return ElementKind.ELEMENT
