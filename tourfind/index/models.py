"""
Index value objects.

IndexEntry is the single searchable unit. It is built by traversal,
possibly enriched by reconciliation, and frozen into a SearchIndex by the
assembler; after that it is shared read-only with the query side.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class ElementKind(str, Enum):
    """Closed classification of an index entry."""

    PANORAMA = "Panorama"
    HOTSPOT = "Hotspot"
    POLYGON = "Polygon"
    VIDEO = "Video"
    WEBFRAME = "Webframe"
    IMAGE = "Image"
    TEXT = "Text"
    PROJECTED_IMAGE = "ProjectedImage"
    ELEMENT = "Element"
    THREE_D_HOTSPOT = "ThreeDHotspot"
    THREE_D_MODEL = "ThreeDModel"
    THREE_D_MODEL_OBJECT = "ThreeDModelObject"
    CONTAINER = "Container"

    @classmethod
    def parse(cls, value: Any) -> "ElementKind":
        """Map a kind name (case-insensitive) to a member, Element if unknown."""
        if isinstance(value, ElementKind):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return cls.ELEMENT

    @classmethod
    def is_known(cls, value: Any) -> bool:
        if isinstance(value, ElementKind):
            return True
        if not isinstance(value, str):
            return False
        wanted = value.strip().lower()
        return any(member.value.lower() == wanted for member in cls)


# Overlay kinds that navigate through their parent panorama
OVERLAY_KINDS = frozenset({
    ElementKind.HOTSPOT,
    ElementKind.POLYGON,
    ElementKind.PROJECTED_IMAGE,
    ElementKind.IMAGE,
    ElementKind.TEXT,
    ElementKind.VIDEO,
    ElementKind.WEBFRAME,
})


class EntrySource(str, Enum):
    """Which traversal root produced an entry."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    EXTERNAL_ROW = "externalRow"
    CONTAINER = "container"


@dataclass(frozen=True)
class CameraHint:
    yaw: float
    pitch: float
    fov: Optional[float] = None


@dataclass(frozen=True)
class SpatialHint:
    x: float
    y: float
    z: float


# Header aliases accepted for each ExternalRow field (compared lowercased,
# with spaces, dashes and underscores removed)
_ROW_ALIASES = {
    "id": ("id", "identifier", "mediaid"),
    "tag": ("tag", "tags"),
    "name": ("name", "title", "label"),
    "description": ("description", "subtitle", "desc"),
    "image_url": ("imageurl", "image", "thumbnail"),
    "element_type": ("elementtype", "type", "kind"),
    "parent_id": ("parentid", "parent"),
}


def _header_key(name: str) -> str:
    return "".join(ch for ch in str(name).lower() if ch not in " -_")


@dataclass(frozen=True)
class ExternalRow:
    """A normalized record from the external spreadsheet/CSV dataset."""

    id: Optional[str] = None
    tag: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    element_type: Optional[str] = None
    parent_id: Optional[str] = None
    row_index: int = 0

    @classmethod
    def from_mapping(cls, data: dict, row_index: int = 0) -> "ExternalRow":
        """Build a row from a loosely-keyed mapping (CSV header or JSON object)."""
        by_key = {}
        for key, value in data.items():
            if key is None:
                continue
            by_key.setdefault(_header_key(key), value)

        values = {}
        for field_name, aliases in _ROW_ALIASES.items():
            for alias in aliases:
                raw = by_key.get(alias)
                if raw is None:
                    continue
                text = str(raw).strip()
                if text:
                    values[field_name] = text
                    break
        return cls(row_index=row_index, **values)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tag": self.tag,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "element_type": self.element_type,
            "parent_id": self.parent_id,
            "row_index": self.row_index,
        }

    @property
    def is_empty(self) -> bool:
        return not (self.id or self.tag or self.name)


@dataclass
class IndexEntry:
    """One searchable unit produced by the index pipeline."""

    kind: ElementKind
    source: EntrySource
    label: str
    original_label: str = ""
    subtitle: str = ""
    tags: tuple[str, ...] = ()
    identifier: Optional[str] = None
    sequence_index: int = 0
    parent_sequence_index: Optional[int] = None
    external_row: Optional[ExternalRow] = None
    camera_hint: Optional[CameraHint] = None
    spatial_hint: Optional[SpatialHint] = None
    relevance_boost: float = 1.0
    is_standalone: bool = False
    host_ref: Optional[str] = None

    # Navigation metadata
    item_index: Optional[int] = None
    media_identifier: Optional[str] = None
    parent_label: str = ""
    parent_identifier: Optional[str] = None
    parent_kind: Optional[ElementKind] = None
    is_container: bool = False
    alias_label: str = ""

    def key(self) -> tuple[str, Optional[str]]:
        """Deduplication key: one entry per (source, identifier)."""
        return (self.source.value, self.identifier)

    @property
    def is_child(self) -> bool:
        return self.parent_sequence_index is not None

    def with_changes(self, **changes) -> "IndexEntry":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Renderer-facing view of the entry."""
        return {
            "kind": self.kind.value,
            "source": self.source.value,
            "label": self.label,
            "subtitle": self.subtitle,
            "tags": list(self.tags),
            "identifier": self.identifier,
            "sequence_index": self.sequence_index,
            "parent_sequence_index": self.parent_sequence_index,
            "item_index": self.item_index,
            "parent_label": self.parent_label,
            "is_standalone": self.is_standalone,
            "is_container": self.is_container,
            "image_url": self.external_row.image_url if self.external_row else None,
        }


@dataclass
class NodeContext:
    """Context the label resolver sees for one node."""

    kind: ElementKind
    identifier: Optional[str] = None
    index: int = -1
