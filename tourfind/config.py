"""
Settings values for tourfind.

Settings wrap the merged settings dict as an immutable value: a build cycle
holds on to one Settings object, and merging a partial update produces a new
one. The typed views below are read from a Settings value by each subsystem;
unrecognized keys are ignored.
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from tourfind.errors import ConfigError
from tourfind.utils.helpers import (
    DEFAULT_SETTINGS,
    MEMBERSHIP_SECTIONS,
    _deep_merge,
    changed_sections,
    load_settings,
)

FILTER_MODES = ("none", "whitelist", "blacklist")
MATCH_MODES = ("exact", "startswith", "contains", "regex")
FETCH_MODES = ("auto", "csv", "json")


@dataclass(frozen=True)
class Settings:
    """Immutable settings value."""

    data: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS))

    @classmethod
    def from_dict(cls, overrides: Optional[Dict[str, Any]] = None) -> "Settings":
        return cls(_deep_merge(DEFAULT_SETTINGS, overrides or {}))

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "Settings":
        return cls(load_settings(path))

    def section(self, name: str) -> Dict[str, Any]:
        """Deep copy of one section, so callers cannot mutate the value."""
        value = self.data.get(name, {})
        return copy.deepcopy(value) if isinstance(value, dict) else {}

    def merged(self, partial: Dict[str, Any]) -> "Settings":
        """Deep-merge a partial update, returning a new Settings value."""
        if not isinstance(partial, dict):
            raise ConfigError(f"Settings update must be a mapping, got {type(partial).__name__}")
        return Settings(_deep_merge(self.data, partial))

    def affects_membership(self, other: "Settings") -> bool:
        """True when switching to `other` changes what the index contains."""
        return bool(changed_sections(self.data, other.data) & MEMBERSHIP_SECTIONS)


def _mode(value: Any, allowed: tuple, default: str, setting: str) -> str:
    text = str(value or default).strip().lower()
    if text not in allowed:
        logger.warning(f"Unknown {setting} '{value}', using '{default}'")
        return default
    return text


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = [value]
    return tuple(str(v) for v in value if str(v).strip())


def _int_tuple(value: Any) -> tuple[int, ...]:
    result = []
    for item in value or ():
        try:
            result.append(int(item))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer media index filter value: {item!r}")
    return tuple(result)


@dataclass(frozen=True)
class ListRule:
    """One whitelist/blacklist axis."""

    mode: str = "none"
    allowed: tuple = ()
    blacklisted: tuple = ()

    @classmethod
    def from_section(cls, section: Dict[str, Any], setting: str, numeric: bool = False) -> "ListRule":
        convert = _int_tuple if numeric else _str_tuple
        return cls(
            mode=_mode(section.get("mode"), FILTER_MODES, "none", setting),
            allowed=convert(section.get("allowed")),
            blacklisted=convert(section.get("blacklisted")),
        )


@dataclass(frozen=True)
class LabelConfig:
    only_subtitles: bool = False
    use_subtitle: bool = True
    use_tags: bool = True
    use_element_type: bool = True
    placeholder: str = "[Unnamed Item]"

    @classmethod
    def from_settings(cls, settings: Settings) -> "LabelConfig":
        s = settings.section("labels")
        return cls(
            only_subtitles=bool(s.get("only_subtitles", False)),
            use_subtitle=bool(s.get("use_subtitle", True)),
            use_tags=bool(s.get("use_tags", True)),
            use_element_type=bool(s.get("use_element_type", True)),
            placeholder=str(s.get("placeholder") or "[Unnamed Item]"),
        )


@dataclass(frozen=True)
class FilterConfig:
    """Declarative filter rule set, fixed for one build cycle."""

    mode: str = "none"
    match_mode: str = "contains"
    allowed_values: tuple[str, ...] = ()
    blacklisted_values: tuple[str, ...] = ()
    element_types: ListRule = ListRule()
    labels: ListRule = ListRule()
    tags: ListRule = ListRule()
    media_index: ListRule = ListRule()
    include_unlabeled: bool = True
    min_label_length: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "FilterConfig":
        s = settings.section("filters")
        return cls(
            mode=_mode(s.get("mode"), FILTER_MODES, "none", "filters.mode"),
            match_mode=_mode(s.get("match_mode"), MATCH_MODES, "contains", "filters.match_mode"),
            allowed_values=_str_tuple(s.get("allowed_values")),
            blacklisted_values=_str_tuple(s.get("blacklisted_values")),
            element_types=ListRule.from_section(s.get("element_types") or {}, "filters.element_types.mode"),
            labels=ListRule.from_section(s.get("labels") or {}, "filters.labels.mode"),
            tags=ListRule.from_section(s.get("tags") or {}, "filters.tags.mode"),
            media_index=ListRule.from_section(
                s.get("media_index") or {}, "filters.media_index.mode", numeric=True
            ),
            include_unlabeled=bool(s.get("include_unlabeled", True)),
            min_label_length=int(s.get("min_label_length") or 0),
        )


# include_content key for each element kind name
CONTENT_TOGGLES = {
    "Panorama": "panoramas",
    "Hotspot": "hotspots",
    "Polygon": "polygons",
    "Video": "videos",
    "Webframe": "webframes",
    "Image": "images",
    "Text": "text",
    "ProjectedImage": "projected_images",
    "Element": "elements",
    "ThreeDHotspot": "3d_hotspots",
    "ThreeDModel": "3d_models",
    "ThreeDModelObject": "3d_model_objects",
    "Container": "containers",
}


@dataclass(frozen=True)
class ContentConfig:
    enabled_kinds: frozenset = frozenset(CONTENT_TOGGLES)
    container_names: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContentConfig":
        s = settings.section("include_content")
        enabled = frozenset(
            kind for kind, key in CONTENT_TOGGLES.items() if bool(s.get(key, True))
        )
        return cls(enabled_kinds=enabled, container_names=_str_tuple(s.get("container_names")))

    def includes(self, kind_name: str) -> bool:
        # Kinds without a toggle are always included
        if kind_name not in CONTENT_TOGGLES:
            return True
        return kind_name in self.enabled_kinds


@dataclass(frozen=True)
class ExternalDataConfig:
    enabled: bool = False
    url: str = ""
    local_file: str = ""
    fetch_mode: str = "auto"
    use_as_primary_source: bool = True
    include_standalone: bool = False
    cache_enabled: bool = True
    cache_timeout_minutes: float = 60
    storage_key: str = "tourfind-external-data"
    timeout_seconds: float = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExternalDataConfig":
        s = settings.section("external_data")
        return cls(
            enabled=bool(s.get("enabled", False)),
            url=str(s.get("url") or ""),
            local_file=str(s.get("local_file") or ""),
            fetch_mode=_mode(s.get("fetch_mode"), FETCH_MODES, "auto", "external_data.fetch_mode"),
            use_as_primary_source=bool(s.get("use_as_primary_source", True)),
            include_standalone=bool(s.get("include_standalone", False)),
            cache_enabled=bool(s.get("cache_enabled", True)),
            cache_timeout_minutes=float(s.get("cache_timeout_minutes") or 0),
            storage_key=str(s.get("storage_key") or "tourfind-external-data"),
            timeout_seconds=float(s.get("timeout_seconds") or 10),
        )


@dataclass(frozen=True)
class IndexConfig:
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SETTINGS["index"]["weights"]))
    boosts: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SETTINGS["index"]["boosts"]))
    threshold: float = 0.4
    distance: int = 40
    min_match_char_length: int = 1
    ignore_location: bool = True
    use_extended_search: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "IndexConfig":
        s = settings.section("index")
        try:
            config = cls._parse(s)
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigError(f"Unusable [index] settings: {e}") from e
        if not 0.0 <= config.threshold <= 1.0:
            raise ConfigError(f"index.threshold must be between 0 and 1, got {config.threshold}")
        return config

    @classmethod
    def _parse(cls, s: Dict[str, Any]) -> "IndexConfig":
        weights = _deep_merge(DEFAULT_SETTINGS["index"]["weights"], s.get("weights") or {})
        boosts = _deep_merge(DEFAULT_SETTINGS["index"]["boosts"], s.get("boosts") or {})
        return cls(
            weights={k: float(v) for k, v in weights.items()},
            boosts={k: float(v) for k, v in boosts.items()},
            threshold=float(s.get("threshold", 0.4)),
            distance=max(0, int(s.get("distance", 40))),
            min_match_char_length=max(1, int(s.get("min_match_char_length", 1))),
            ignore_location=bool(s.get("ignore_location", True)),
            use_extended_search=bool(s.get("use_extended_search", True)),
        )


@dataclass(frozen=True)
class QueryConfig:
    min_chars: int = 2
    max_results: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueryConfig":
        s = settings.section("query")
        return cls(
            min_chars=max(0, int(s.get("min_chars", 2))),
            max_results=max(1, int(s.get("max_results", 50))),
        )


@dataclass(frozen=True)
class ResultsConfig:
    group_by_external_type: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResultsConfig":
        s = settings.section("results")
        return cls(group_by_external_type=bool(s.get("group_by_external_type", False)))


@dataclass(frozen=True)
class DispatchConfig:
    settle_delay_ms: int = 300
    camera_delay_ms: int = 300
    max_attempts: int = 3
    base_interval_ms: int = 100
    max_interval_ms: int = 1000
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatchConfig":
        s = settings.section("dispatch")
        return cls(
            settle_delay_ms=max(0, int(s.get("settle_delay_ms", 300))),
            camera_delay_ms=max(0, int(s.get("camera_delay_ms", 300))),
            max_attempts=max(1, int(s.get("max_attempts", 3))),
            base_interval_ms=max(0, int(s.get("base_interval_ms", 100))),
            max_interval_ms=max(0, int(s.get("max_interval_ms", 1000))),
            multiplier=max(1.0, float(s.get("multiplier", 2.0))),
        )
