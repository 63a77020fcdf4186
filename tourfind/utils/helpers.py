"""
Helper utilities for tourfind.

Provides common functions used across the index, search and dispatch layers:
- Settings loading with defaults
- Deep merge of partial settings
- Duck-typed probing of opaque host objects
"""

import copy
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import toml
from loguru import logger

# Default settings. Sections named in MEMBERSHIP_SECTIONS change what goes
# into the index; everything else only changes how it is queried or shown.
DEFAULT_SETTINGS: Dict[str, Any] = {
    "labels": {
        "only_subtitles": False,
        "use_subtitle": True,
        "use_tags": True,
        "use_element_type": True,
        "placeholder": "[Unnamed Item]",
    },
    "filters": {
        "mode": "none",
        "match_mode": "contains",
        "allowed_values": [],
        "blacklisted_values": [],
        "element_types": {"mode": "none", "allowed": [], "blacklisted": []},
        "labels": {"mode": "none", "allowed": [], "blacklisted": []},
        "tags": {"mode": "none", "allowed": [], "blacklisted": []},
        "media_index": {"mode": "none", "allowed": [], "blacklisted": []},
        "include_unlabeled": True,
        "min_label_length": 0,
    },
    "include_content": {
        "panoramas": True,
        "hotspots": True,
        "polygons": True,
        "videos": True,
        "webframes": True,
        "images": True,
        "text": True,
        "projected_images": True,
        "elements": True,
        "3d_hotspots": True,
        "3d_models": True,
        "3d_model_objects": True,
        "containers": True,
        "container_names": [],
    },
    "external_data": {
        "enabled": False,
        "url": "",
        "local_file": "",
        "fetch_mode": "auto",
        "use_as_primary_source": True,
        "include_standalone": False,
        "cache_enabled": True,
        "cache_timeout_minutes": 60,
        "storage_key": "tourfind-external-data",
        "timeout_seconds": 10,
    },
    "index": {
        "weights": {
            "label": 1.0,
            "subtitle": 0.8,
            "tags": 0.6,
            "parent_label": 0.3,
        },
        "boosts": {
            "external_match": 1.5,
            "labeled": 1.0,
            "unlabeled": 0.8,
            "child": 0.6,
        },
        "threshold": 0.4,
        "distance": 40,
        "min_match_char_length": 1,
        "ignore_location": True,
        "use_extended_search": True,
    },
    "query": {
        "min_chars": 2,
        "max_results": 50,
    },
    "results": {
        "group_by_external_type": False,
    },
    "dispatch": {
        "settle_delay_ms": 300,
        "camera_delay_ms": 300,
        "max_attempts": 3,
        "base_interval_ms": 100,
        "max_interval_ms": 1000,
        "multiplier": 2.0,
    },
}

MEMBERSHIP_SECTIONS = frozenset({
    "labels",
    "filters",
    "include_content",
    "external_data",
    "index",
})


def default_settings_path() -> Path:
    """Settings file location (XDG standard)."""
    return Path.home() / ".config" / "tourfind" / "settings.toml"


def load_settings(settings_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load settings from a TOML file.

    Args:
        settings_path: File to read. Defaults to ~/.config/tourfind/settings.toml

    Returns:
        Dictionary containing settings with defaults applied

    Example settings.toml:
        [filters.element_types]
        mode = "blacklist"
        blacklisted = ["Text"]

        [external_data]
        enabled = true
        url = "https://example.com/rooms.csv"
    """
    defaults = copy.deepcopy(DEFAULT_SETTINGS)
    settings_path = Path(settings_path) if settings_path else default_settings_path()

    if not settings_path.exists():
        logger.info(f"Settings file not found at {settings_path}, using defaults")
        return defaults

    try:
        loaded = toml.load(settings_path)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning(f"Could not load settings from {settings_path}: {e}")
        return defaults

    return _deep_merge(defaults, loaded)


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides

    Returns:
        Merged dictionary (override takes precedence). Neither input is mutated.
    """
    result = copy.deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def changed_sections(old: Dict, new: Dict) -> set:
    """Top-level section names whose contents differ between two settings dicts."""
    return {key for key in set(old) | set(new) if old.get(key) != new.get(key)}


_MISSING = object()


def probe(obj: Any, *names: str, default: Any = None) -> Any:
    """
    Read the first available property from an opaque host object.

    Host objects come in several shapes: plain mappings, objects with
    attributes, or objects exposing get_<name>() accessors. Each name is
    tried in all three shapes before moving on to the next name.
    """
    if obj is None:
        return default

    for name in names:
        if isinstance(obj, dict):
            value = obj.get(name, _MISSING)
        else:
            value = getattr(obj, name, _MISSING)
            if value is _MISSING:
                getter = getattr(obj, f"get_{name}", None)
                if callable(getter):
                    try:
                        value = getter()
                    except Exception as e:
                        logger.debug(f"Accessor get_{name}() failed: {e}")
                        value = _MISSING
        if value is not _MISSING and value is not None:
            return value

    return default


def capability(obj: Any, name: str):
    """Return a callable host capability, or None when the host lacks it."""
    if obj is None:
        return None
    attr = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
    return attr if callable(attr) else None


def as_text(value: Any) -> str:
    """Coerce a host value to a stripped string ('' for None)."""
    if value is None:
        return ""
    return str(value).strip()


def as_tags(value: Any) -> tuple[str, ...]:
    """Coerce a host tag payload (list or comma-separated string) to a tuple."""
    if not value:
        return ()
    if isinstance(value, str):
        items: Iterable = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        return ()
    return tuple(t for t in (as_text(item) for item in items) if t)
