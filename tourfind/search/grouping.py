"""
Result Grouper - Group ranked matches by element kind for rendering.

The group key is the entry's kind, unless grouping by external type is
enabled and the entry carries an external row with its own element type.
That override changes grouping and display only; filtering always used the
structural kind.

Within a group: sequence index, then label, then parent label.
Groups follow KIND_PRIORITY; other keys follow in discovery order.
"""

from typing import Iterable

from tourfind.config import ResultsConfig
from tourfind.search.router import SearchResult

KIND_PRIORITY = (
    "Panorama",
    "Hotspot",
    "Polygon",
    "Video",
    "Webframe",
    "Image",
    "Text",
    "ProjectedImage",
    "ThreeDModel",
    "ThreeDHotspot",
    "Element",
    "Container",
)


def group_key(result: SearchResult, config: ResultsConfig) -> str:
    entry = result.entry
    if config.group_by_external_type and entry.external_row is not None:
        override = (entry.external_row.element_type or "").strip()
        if override:
            return override
    return entry.kind.value


def group_results(
    results: Iterable[SearchResult],
    config: ResultsConfig = ResultsConfig(),
) -> dict[str, list[SearchResult]]:
    """Map group key -> ordered results, groups in priority order."""
    groups: dict[str, list[SearchResult]] = {}
    for result in results:
        groups.setdefault(group_key(result, config), []).append(result)

    for members in groups.values():
        members.sort(key=lambda r: (
            r.entry.sequence_index,
            r.entry.label.lower(),
            r.entry.parent_label.lower(),
        ))

    discovery = list(groups)

    def order(key: str) -> tuple[int, int]:
        if key in KIND_PRIORITY:
            return (0, KIND_PRIORITY.index(key))
        return (1, discovery.index(key))

    return {key: groups[key] for key in sorted(groups, key=order)}
