"""
Overlay detection - Find the overlays attached to a panorama-like node.

Hosts expose overlays in several shapes. Each strategy below returns None
when it does not apply (or finds nothing) and a list of overlays otherwise.
Strategies are tried in order and only the first non-empty result is used.
"""

from typing import Any, Callable, Optional

from loguru import logger

from tourfind.host import lookup_by_class, primary_collection, collection_items
from tourfind.utils.helpers import as_text, capability, probe

# Host classes that represent panorama overlays
OVERLAY_CLASSES = (
    "HotspotPanoramaOverlay",
    "PanoramaOverlay",
    "VideoPanoramaOverlay",
    "ImagePanoramaOverlay",
    "TextPanoramaOverlay",
    "WebFrameOverlay",
)

# Attribute names an overlay may use to point back at its media
OWNER_ATTRS = ("owner", "parent", "panorama")
LOOSE_OWNER_ATTRS = ("media_id", "panorama_id", "parent_id", "owner_id")

OverlayStrategy = Callable[[Any, Any, Any], Optional[list]]


def _as_list(value: Any) -> Optional[list]:
    if isinstance(value, (list, tuple)) and value:
        return list(value)
    return None


def from_direct_accessor(host, item, media) -> Optional[list]:
    """media.get_overlays()"""
    getter = capability(media, "get_overlays")
    if getter is None:
        return None
    return _as_list(getter())


def from_flat_property(host, item, media) -> Optional[list]:
    """media.overlays"""
    if isinstance(media, dict):
        return _as_list(media.get("overlays"))
    return _as_list(getattr(media, "overlays", None))


def from_tag_groups(host, item, media) -> Optional[list]:
    """host.get_overlays_by_tags(media) -> {tag: [overlay, ...]}"""
    getter = capability(host, "get_overlays_by_tags")
    if getter is None:
        return None
    groups = getter(media)
    if not isinstance(groups, dict):
        return None
    seen = set()
    result = []
    for overlays in groups.values():
        for overlay in overlays or ():
            if id(overlay) not in seen:
                seen.add(id(overlay))
                result.append(overlay)
    return result or None


def _overlays_by_class(host) -> list:
    found = []
    seen = set()
    for class_name in OVERLAY_CLASSES:
        for overlay in lookup_by_class(host, class_name):
            if id(overlay) not in seen:
                seen.add(id(overlay))
                found.append(overlay)
    return found


def _refers_to(value: Any, media: Any, media_id: str) -> bool:
    if value is None:
        return False
    if value is media:
        return True
    if not media_id:
        return False
    if isinstance(value, str):
        return value == media_id
    return as_text(probe(value, "id")) == media_id


def from_class_lookup(host, item, media) -> Optional[list]:
    """Global class lookup, keeping overlays owned by this media."""
    media_id = as_text(probe(media, "id"))
    owned = [
        overlay for overlay in _overlays_by_class(host)
        if any(_refers_to(probe(overlay, attr), media, media_id) for attr in OWNER_ATTRS)
    ]
    return owned or None


def from_loose_reference(host, item, media) -> Optional[list]:
    """Global class lookup, matching id-valued back references."""
    media_id = as_text(probe(media, "id"))
    if not media_id:
        return None
    owned = [
        overlay for overlay in _overlays_by_class(host)
        if any(as_text(probe(overlay, attr)) == media_id for attr in LOOSE_OWNER_ATTRS)
    ]
    return owned or None


def from_single_panorama(host, item, media) -> Optional[list]:
    """Single-panorama tours: every overlay without an owner belongs to it."""
    if len(collection_items(primary_collection(host))) != 1:
        return None
    unowned = [
        overlay for overlay in _overlays_by_class(host)
        if not any(probe(overlay, attr) is not None for attr in OWNER_ATTRS + LOOSE_OWNER_ATTRS)
    ]
    return unowned or None


STRATEGIES: tuple[OverlayStrategy, ...] = (
    from_direct_accessor,
    from_flat_property,
    from_tag_groups,
    from_class_lookup,
    from_loose_reference,
    from_single_panorama,
)


def detect_overlays(host: Any, item: Any, media: Any, strategies=STRATEGIES) -> list:
    """Return the overlays found by the first strategy that yields any."""
    for strategy in strategies:
        try:
            found = strategy(host, item, media)
        except Exception as e:
            logger.debug(f"Overlay strategy {strategy.__name__} failed: {e}")
            continue
        if found:
            logger.debug(f"Overlays found via {strategy.__name__}: {len(found)}")
            return found
    return []
