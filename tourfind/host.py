"""
Host collaborator contract.

The tour host is an opaque object graph. tourfind never imports it; it reads
it through duck-typed probes (see utils.helpers.probe/capability), so a host
may be plain dicts, attribute objects, or objects with get_<name>()
accessors. The Protocols below document the shapes that are read. Every
method marked optional may be absent; call sites fall back or no-op.

    host
      .playlist            primary collection
      .root_playlist       secondary collection (optional)
      .get_by_id(id)                      optional
      .get_by_class(class_name)           optional
      .get_overlays_by_tags(media)        optional, {tag: [overlay, ...]}
      .get_active_media()                 optional
      .set_camera(yaw, pitch, fov)        optional
      .focus_overlay(name)                optional
      .menu.toggle(name)                  optional

    collection
      .items               list of playlist items
      .select(index)
      .selected_index      optional

    item
      .id, .media
      .bind(event, callback) / .unbind(event, callback)   optional ("begin")

    media / overlay / 3D object
      .id, .class_name, .label, .subtitle, .tags, .data {label, subtitle, tags}
      .overlays / .get_overlays()         panorama-like media
      .objects                            3D model containers
      .yaw, .pitch, .hfov                 overlays (or .items[0])
      .x, .y, .z                          3D objects
      .activate()                         3D objects
      .visible                            containers
"""

from typing import Any, Optional

from tourfind.utils.helpers import as_tags, as_text, capability, probe

BEGIN_EVENT = "begin"


def primary_collection(host: Any) -> Any:
    return probe(host, "playlist", "primary_playlist", "primary")


def secondary_collection(host: Any) -> Any:
    secondary = probe(host, "root_playlist", "secondary_playlist", "secondary")
    if secondary is not None and secondary is primary_collection(host):
        return None
    return secondary


def collection_items(collection: Any) -> list:
    items = probe(collection, "items")
    if isinstance(items, (list, tuple)):
        return list(items)
    return []


def item_media(item: Any) -> Any:
    """Media payload of a playlist item, None when absent."""
    return probe(item, "media")


def read_payload(node: Any) -> tuple[str, str, tuple[str, ...]]:
    """(label, subtitle, tags) of a node, looking at its data block as a fallback."""
    data = probe(node, "data")
    label = as_text(probe(node, "label")) or as_text(probe(data, "label"))
    subtitle = as_text(probe(node, "subtitle")) or as_text(probe(data, "subtitle"))
    tags = as_tags(probe(node, "tags")) or as_tags(probe(data, "tags"))
    return label, subtitle, tags


def supports_begin_event(item: Any) -> bool:
    return capability(item, "bind") is not None and capability(item, "unbind") is not None


def lookup_by_id(host: Any, identifier: Optional[str]) -> Any:
    get_by_id = capability(host, "get_by_id")
    if get_by_id is None or not identifier:
        return None
    return get_by_id(identifier)


def lookup_by_class(host: Any, class_name: str) -> list:
    get_by_class = capability(host, "get_by_class")
    if get_by_class is None:
        return []
    found = get_by_class(class_name)
    return list(found) if isinstance(found, (list, tuple)) else []
