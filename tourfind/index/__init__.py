"""
Index package - Build the searchable entry list from a tour.

Pipeline: traversal (classifier, label resolver, filter pipeline) →
reconciliation with the external dataset → assembly into a SearchIndex.
"""

from .assembler import SearchIndex, assemble
from .classifier import classify
from .filters import FilterPipeline, normalize_value
from .labels import resolve_label
from .models import (
    CameraHint,
    ElementKind,
    EntrySource,
    ExternalRow,
    IndexEntry,
    SpatialHint,
)
from .reconcile import reconcile
from .traversal import traverse

__all__ = [
    "CameraHint",
    "ElementKind",
    "EntrySource",
    "ExternalRow",
    "FilterPipeline",
    "IndexEntry",
    "SearchIndex",
    "SpatialHint",
    "assemble",
    "classify",
    "normalize_value",
    "reconcile",
    "resolve_label",
    "traverse",
]
