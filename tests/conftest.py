"""
Shared test fixtures for the tourfind test suite.

Provides a small in-memory tour host (plain dicts for media and overlays,
light classes where the host needs behavior), temporary settings and
database files using real file I/O, and a loguru capture.
"""

import pytest
import toml
from loguru import logger


class FakeItem:
    """Playlist item that supports begin-event binding."""

    def __init__(self, media, item_id=None):
        self.id = item_id
        self.media = media
        self.listeners = {}

    def bind(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    def unbind(self, event, callback):
        callbacks = self.listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def fire(self, event="begin"):
        for callback in list(self.listeners.get(event, [])):
            callback()

    def bound(self, event="begin"):
        return len(self.listeners.get(event, []))


class FakeCollection:
    def __init__(self, items):
        self.items = list(items)
        self.selected_index = None
        self.selections = []

    def select(self, index):
        self.selections.append(index)


class FakeMenu:
    def __init__(self):
        self.toggled = []

    def toggle(self, name):
        self.toggled.append(name)


class FakeHost:
    """Tour host with id/class lookup and camera/focus capabilities."""

    def __init__(self, primary, secondary=None, by_id=None, by_class=None):
        self.playlist = FakeCollection(primary)
        self.root_playlist = FakeCollection(secondary) if secondary else None
        self.by_id = dict(by_id or {})
        self.by_class = dict(by_class or {})
        self.id_lookups = []
        self.camera_calls = []
        self.focused = []

    def get_by_id(self, identifier):
        self.id_lookups.append(identifier)
        return self.by_id.get(identifier)

    def get_by_class(self, class_name):
        return list(self.by_class.get(class_name, []))

    def set_camera(self, yaw, pitch, fov=None):
        self.camera_calls.append((yaw, pitch, fov))

    def focus_overlay(self, name):
        self.focused.append(name)


class ActivatableObject:
    """3D model sub-object with an activate() capability."""

    def __init__(self, identifier, label="", class_name="Model3DObject", owner=None):
        self.id = identifier
        self.label = label
        self.class_name = class_name
        self.owner = owner
        self.activations = 0

    def activate(self):
        self.activations += 1


def panorama(identifier, label="", overlays=None, **extra):
    media = {"id": identifier, "class_name": "Panorama", "label": label}
    if overlays is not None:
        media["overlays"] = overlays
    media.update(extra)
    return media


def hotspot(identifier, label="", tags=(), yaw=None, pitch=None, **extra):
    overlay = {"id": identifier, "class_name": "HotspotPanoramaOverlay", "label": label, "tags": list(tags)}
    if yaw is not None:
        overlay["yaw"] = yaw
        overlay["pitch"] = pitch
        overlay["hfov"] = 90
    overlay.update(extra)
    return overlay


def text_overlay(identifier, label=""):
    return {"id": identifier, "class_name": "TextPanoramaOverlay", "label": label}


def model(identifier, label="", objects=()):
    return {"id": identifier, "class_name": "Model3D", "label": label, "objects": list(objects)}


def plain_item(media, item_id=None):
    """Playlist item without event support."""
    return {"id": item_id, "media": media}


@pytest.fixture
def three_panorama_host():
    """Primary collection with three panoramas, the middle one unlabeled."""
    return FakeHost([
        plain_item(panorama("pano-1", "Lobby"), "item-1"),
        plain_item(panorama("pano-2", ""), "item-2"),
        plain_item(panorama("pano-3", "Kitchen"), "item-3"),
    ])


@pytest.fixture
def tour_host():
    """Two panoramas with overlays, a 3D model and a secondary collection."""
    lobby = panorama("pano-lobby", "Lobby", overlays=[
        hotspot("hs-room1", "Room 1", tags=["room-1"], yaw=10.0, pitch=-5.0),
        hotspot("hs-exit", "Exit"),
        text_overlay("txt-welcome", "Welcome"),
    ])
    garden = panorama("pano-garden", "Garden", overlays=[
        hotspot("hs-fountain", "Fountain", yaw=45.0, pitch=0.0),
    ])
    showroom = model("model-1", "Showroom", objects=[
        {"id": "obj-chair", "class_name": "Model3DObject", "label": "Chair", "x": 1, "y": 2, "z": 3},
        {"id": "sprite-info", "class_name": "Sprite3DObject", "label": "Info point"},
    ])
    return FakeHost(
        primary=[
            FakeItem(lobby, "item-lobby"),
            FakeItem(garden, "item-garden"),
            plain_item(showroom, "item-model"),
        ],
        secondary=[plain_item(panorama("pano-roof", "Roof Terrace"), "item-roof")],
    )


@pytest.fixture
def tmp_db(tmp_path):
    """Path for a real SQLite dataset cache."""
    return tmp_path / "dataset_cache.db"


@pytest.fixture
def tmp_settings(tmp_path):
    """Create a real settings TOML file with several sections."""
    settings_path = tmp_path / "settings.toml"
    data = {
        "filters": {"element_types": {"mode": "blacklist", "blacklisted": ["Text"]}},
        "query": {"min_chars": 3, "max_results": 10},
        "external_data": {"enabled": True, "url": "https://example.com/rooms.csv"},
    }
    settings_path.write_text(toml.dumps(data))
    return settings_path


@pytest.fixture
def log_records():
    """Collect loguru records emitted during a test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def messages(records, level):
    return [r["message"] for r in records if r["level"].name == level]
