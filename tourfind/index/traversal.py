"""
Traversal Engine - Walk the tour and emit flat index entries.

Order is fixed: primary collection, then secondary collection, then
name-declared containers. Within a collection each top-level node is
routed by its native class:
  - 3D model containers recurse into their `objects`
  - everything else is treated as panorama-like and scanned for overlays

Sequence indexes:
  - top-level node:  collection index (+ primary length for secondary nodes)
  - child node:      child_base + parent_sequence * stride + child_index
    where child_base is the number of top-level nodes and stride is 1000
    (or larger when a parent has more children), so every key is unique
    and children sort by parent, then position
  - containers:      after every discovered key

A failure on one node is logged and drops only that node.
"""

from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from tourfind.config import ContentConfig, LabelConfig
from tourfind.host import (
    collection_items,
    item_media,
    primary_collection,
    read_payload,
    secondary_collection,
)
from tourfind.index.classifier import PANORAMA_CLASSES, classify, native_class
from tourfind.index.filters import FilterPipeline
from tourfind.index.labels import resolve_label
from tourfind.index.models import (
    CameraHint,
    ElementKind,
    EntrySource,
    IndexEntry,
    NodeContext,
    SpatialHint,
)
from tourfind.index.overlays import detect_overlays
from tourfind.utils.helpers import as_text, probe

CHILD_STRIDE = 1000
MODEL_CONTAINER_CLASSES = ("Model3D",)
THREE_D_CHILD_KINDS = (ElementKind.THREE_D_MODEL_OBJECT, ElementKind.THREE_D_HOTSPOT)


@dataclass
class _PendingChild:
    entry: IndexEntry
    parent_sequence: int
    child_index: int


def _float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def camera_hint(overlay: Any) -> Optional[CameraHint]:
    """Camera position for an overlay, read from the overlay or its first item."""
    sources = [overlay]
    items = probe(overlay, "items")
    if isinstance(items, (list, tuple)) and items:
        sources.append(items[0])

    for source in sources:
        yaw = _float(probe(source, "yaw"))
        pitch = _float(probe(source, "pitch"))
        if yaw is not None and pitch is not None:
            return CameraHint(yaw=yaw, pitch=pitch, fov=_float(probe(source, "hfov", "fov")))
    return None


def spatial_hint(obj: Any) -> Optional[SpatialHint]:
    """3D position of a model sub-object."""
    position = probe(obj, "position")
    source = position if position is not None else obj
    if isinstance(source, (list, tuple)) and len(source) >= 3:
        coords = [_float(v) for v in source[:3]]
    else:
        coords = [_float(probe(source, axis)) for axis in ("x", "y", "z")]
    if any(c is None for c in coords):
        return None
    return SpatialHint(*coords)


class Traversal:
    """One traversal pass over a host. Not reusable."""

    def __init__(
        self,
        host: Any,
        pipeline: FilterPipeline = None,
        labels: LabelConfig = LabelConfig(),
        content: ContentConfig = ContentConfig(),
    ):
        self.host = host
        self.pipeline = pipeline or FilterPipeline()
        self.labels = labels
        self.content = content

        self._entries: list[IndexEntry] = []
        self._children: list[_PendingChild] = []
        self._seen: set = set()

    def run(self) -> list[IndexEntry]:
        primary = collection_items(primary_collection(self.host))
        secondary = collection_items(secondary_collection(self.host))
        top_count = len(primary) + len(secondary)

        for source, items, offset in (
            (EntrySource.PRIMARY, primary, 0),
            (EntrySource.SECONDARY, secondary, len(primary)),
        ):
            for index, item in enumerate(items):
                try:
                    self._visit_item(source, index, offset + index, item)
                except Exception:
                    logger.exception(f"Failed to index {source.value} item {index}, skipping")

        self._place_children(top_count)
        self._append_containers()

        logger.info(
            f"Traversal indexed {len(self._entries)} entries "
            f"({len(primary)} primary, {len(secondary)} secondary items)"
        )
        return list(self._entries)

    # Top-level nodes

    def _visit_item(self, source: EntrySource, index: int, sequence: int, item: Any) -> None:
        media = item_media(item)
        if media is None:
            logger.warning(f"{source.value} item {index} has no media, skipping")
            return

        if not self.pipeline.allows_index(index):
            logger.debug(f"{source.value} item {index} excluded by media index filter")
            return

        label, subtitle, tags = read_payload(media)
        kind = classify(media, label)
        media_id = as_text(probe(media, "id"))
        item_id = as_text(probe(item, "id"))
        native = native_class(media)
        is_model = native in MODEL_CONTAINER_CLASSES or kind is ElementKind.THREE_D_MODEL
        if is_model:
            kind = ElementKind.THREE_D_MODEL
        elif native in PANORAMA_CLASSES:
            kind = ElementKind.PANORAMA

        parent = IndexEntry(
            kind=kind,
            source=source,
            label=resolve_label(label, subtitle, tags, NodeContext(kind, media_id, index), self.labels),
            original_label=label,
            subtitle=subtitle,
            tags=tags,
            identifier=media_id or item_id or f"{source.value}-{index}",
            sequence_index=sequence,
            host_ref=media_id or None,
            item_index=index,
            media_identifier=item_id or None,
        )
        if self.pipeline.allows(parent.kind, label, tags, subtitle):
            self._add(parent)

        if is_model:
            children = probe(media, "objects") or []
            self._visit_children(parent, children, self._model_object_kind)
        else:
            children = detect_overlays(self.host, item, media)
            self._visit_children(parent, children, classify)

    # Child nodes

    @staticmethod
    def _model_object_kind(obj: Any, label: str) -> ElementKind:
        kind = classify(obj, label)
        return kind if kind in THREE_D_CHILD_KINDS else ElementKind.THREE_D_MODEL_OBJECT

    def _visit_children(self, parent: IndexEntry, children: list, kind_of) -> None:
        if not isinstance(children, (list, tuple)):
            return
        for child_index, child in enumerate(children):
            try:
                self._visit_child(parent, child_index, child, kind_of)
            except Exception:
                logger.exception(f"Failed to index child {child_index} of '{parent.label}', skipping")

    def _visit_child(self, parent: IndexEntry, child_index: int, child: Any, kind_of) -> None:
        label, subtitle, tags = read_payload(child)
        kind = kind_of(child, label)
        child_id = as_text(probe(child, "id"))

        if not self.pipeline.allows(kind, label, tags, subtitle):
            return

        is_3d = kind in THREE_D_CHILD_KINDS
        entry = IndexEntry(
            kind=kind,
            source=parent.source,
            label=resolve_label(label, subtitle, tags, NodeContext(kind, child_id, child_index), self.labels),
            original_label=label,
            subtitle=subtitle,
            tags=tags,
            identifier=child_id or f"{parent.identifier}/{child_index}",
            parent_sequence_index=parent.sequence_index,
            camera_hint=None if is_3d else camera_hint(child),
            spatial_hint=spatial_hint(child) if is_3d else None,
            host_ref=child_id or None,
            item_index=parent.item_index,
            media_identifier=parent.media_identifier,
            parent_label=parent.label,
            parent_identifier=parent.identifier,
            parent_kind=parent.kind,
        )
        self._children.append(_PendingChild(entry, parent.sequence_index, child_index))

    def _place_children(self, top_count: int) -> None:
        if not self._children:
            return
        stride = max(CHILD_STRIDE, max(c.child_index for c in self._children) + 1)
        for pending in self._children:
            pending.entry.sequence_index = top_count + pending.parent_sequence * stride + pending.child_index
            self._add(pending.entry)

    # Containers

    def _append_containers(self) -> None:
        next_sequence = max((e.sequence_index for e in self._entries), default=-1) + 1
        for name in self.content.container_names:
            if not self.pipeline.allows(ElementKind.CONTAINER, name, (), ""):
                continue
            self._add(IndexEntry(
                kind=ElementKind.CONTAINER,
                source=EntrySource.CONTAINER,
                label=name,
                original_label=name,
                identifier=f"container-{name}",
                sequence_index=next_sequence,
                host_ref=name,
                media_identifier=name,
                is_container=True,
            ))
            next_sequence += 1

    def _add(self, entry: IndexEntry) -> None:
        key = entry.key()
        if key in self._seen:
            logger.debug(f"Duplicate entry {key} skipped")
            return
        self._seen.add(key)
        self._entries.append(entry)


def traverse(
    host: Any,
    pipeline: FilterPipeline = None,
    labels: LabelConfig = LabelConfig(),
    content: ContentConfig = ContentConfig(),
) -> list[IndexEntry]:
    """Walk the host and return index entries in sequence order."""
    return Traversal(host, pipeline, labels, content).run()
