"""
Dispatcher - Turn a chosen index entry into host navigation.

The host has no single "go to this item" call, so the strategy depends on
the entry:

  Panorama / ThreeDModel       select the item on its collection
  ThreeDModelObject/Hotspot    select the parent model, then activate the
                               object by id (with backoff), falling back to
                               a label search over the model's own objects,
                               then every object of a known 3D class;
                               runs on the item's "begin" event, or after a
                               settle delay when the host has no event hook
  overlay with camera hint     select the parent panorama and apply the
                               camera (now if already active, else on
                               "begin", else after a delay)
  overlay without camera hint  select the parent panorama, then focus the
                               overlay by name
  Container                    toggle visibility via the host menu, else
                               flip the container node's visible flag

Missing host capabilities degrade to a fallback or a logged no-op.
Nothing raises out of dispatch().
"""

from typing import Any, Optional

from loguru import logger

from tourfind.config import DispatchConfig
from tourfind.dispatch.handlers import PendingHandlers
from tourfind.dispatch.retry import RetryPolicy, retry_with_backoff
from tourfind.errors import HostCapabilityError
from tourfind.host import (
    BEGIN_EVENT,
    collection_items,
    item_media,
    lookup_by_class,
    lookup_by_id,
    primary_collection,
    read_payload,
    secondary_collection,
    supports_begin_event,
)
from tourfind.index.models import OVERLAY_KINDS, ElementKind, EntrySource, IndexEntry
from tourfind.utils.helpers import as_text, capability, probe

STRATEGY_NONE = "none"
STRATEGY_SELECT = "select"
STRATEGY_MODEL_OBJECT = "model_object"
STRATEGY_CAMERA = "camera"
STRATEGY_FOCUS = "focus"
STRATEGY_CONTAINER = "container"
STRATEGY_FAILED = "failed"

MODEL_OBJECT_CLASSES = (
    "Model3DObject",
    "InnerModel3DObject",
    "Sprite3DObject",
    "SpriteModel3DObject",
)

# Attributes an object may use to point back at its model
OWNER_ATTRS = ("owner", "parent", "model")


def _require(obj: Any, name: str):
    call = capability(obj, name)
    if call is None:
        raise HostCapabilityError(name)
    return call


class Dispatcher:
    """Navigation state machine for selected entries."""

    def __init__(
        self,
        host: Any,
        scheduler,
        config: DispatchConfig = DispatchConfig(),
        pending: Optional[PendingHandlers] = None,
    ):
        self.host = host
        self.scheduler = scheduler
        self.config = config
        self.policy = RetryPolicy.from_config(config)
        self.pending = pending if pending is not None else PendingHandlers()

    def dispatch(self, entry: IndexEntry) -> str:
        """
        Navigate to an entry.

        Returns:
            Name of the strategy taken ("failed" if it raised)
        """
        try:
            return self._route(entry)
        except Exception:
            logger.exception(f"Dispatch failed for '{entry.label}'")
            return STRATEGY_FAILED

    def _route(self, entry: IndexEntry) -> str:
        kind = entry.kind

        if entry.is_standalone or (entry.host_ref is None and entry.item_index is None):
            logger.info(f"'{entry.label}' has no tour target, nothing to navigate to")
            return STRATEGY_NONE

        if kind is ElementKind.CONTAINER or entry.is_container:
            self._toggle_container(entry)
            return STRATEGY_CONTAINER

        if kind in (ElementKind.THREE_D_MODEL_OBJECT, ElementKind.THREE_D_HOTSPOT):
            self._model_object(entry)
            return STRATEGY_MODEL_OBJECT

        if not entry.is_child:
            self._select(entry)
            return STRATEGY_SELECT

        if kind in OVERLAY_KINDS and entry.camera_hint is not None:
            self._overlay_with_camera(entry)
            return STRATEGY_CAMERA

        self._select(entry)
        self._focus_overlay(entry)
        return STRATEGY_FOCUS

    # Collection access

    def _collection(self, entry: IndexEntry) -> Any:
        if entry.source is EntrySource.SECONDARY:
            return secondary_collection(self.host)
        return primary_collection(self.host)

    def _item(self, entry: IndexEntry) -> Any:
        items = collection_items(self._collection(entry))
        if entry.item_index is None or not 0 <= entry.item_index < len(items):
            return None
        return items[entry.item_index]

    @staticmethod
    def _node_key(entry: IndexEntry) -> str:
        return f"{entry.source.value}:{entry.item_index}"

    def _select(self, entry: IndexEntry) -> bool:
        if entry.item_index is None:
            logger.warning(f"'{entry.label}' has no collection index to select")
            return False
        try:
            select = _require(self._collection(entry), "select")
        except HostCapabilityError as e:
            logger.warning(f"{e}; '{entry.label}' not shown")
            return False
        select(entry.item_index)
        return True

    def _is_active(self, entry: IndexEntry) -> bool:
        selected = probe(self._collection(entry), "selected_index")
        if selected is not None:
            return selected == entry.item_index
        get_active = capability(self.host, "get_active_media")
        if get_active is None:
            return False
        active_id = as_text(probe(get_active(), "id"))
        target = entry.parent_identifier if entry.is_child else entry.identifier
        return bool(active_id) and active_id == target

    # 3D objects

    def _model_object(self, entry: IndexEntry) -> None:
        item = self._item(entry)

        if self._is_active(entry):
            self._select(entry)
            self._activate_object(entry)
        elif supports_begin_event(item):
            self.pending.bind_once(self._node_key(entry), item, BEGIN_EVENT,
                                   lambda: self._activate_object(entry))
            self._select(entry)
        else:
            self._select(entry)
            self.scheduler.call_later(self.config.settle_delay_ms, lambda: self._activate_object(entry))

    def _activate_object(self, entry: IndexEntry) -> None:
        def after_id_attempts(success: bool) -> None:
            if success:
                return
            retry_with_backoff(
                self.scheduler,
                lambda: self._activate_by_label(entry),
                self.policy,
                on_complete=after_label_attempts,
                description=f"Label lookup for '{entry.label}'",
            )

        def after_label_attempts(success: bool) -> None:
            if not success:
                logger.warning(f"Could not activate 3D object '{entry.label}' ({entry.host_ref})")

        retry_with_backoff(
            self.scheduler,
            lambda: self._activate_by_id(entry),
            self.policy,
            on_complete=after_id_attempts,
            description=f"Activation of '{entry.host_ref}'",
        )

    def _activate_by_id(self, entry: IndexEntry) -> bool:
        return self._activate(lookup_by_id(self.host, entry.host_ref))

    def _activate_by_label(self, entry: IndexEntry) -> bool:
        wanted = (entry.original_label or entry.label).strip().lower()
        if not wanted:
            return False

        for candidates in self._label_candidates(entry):
            labels = [(obj, read_payload(obj)[0].lower()) for obj in candidates]
            exact = [obj for obj, label in labels if label == wanted]
            partial = [obj for obj, label in labels if label != wanted and wanted in label]
            for obj in exact + partial:
                if self._activate(obj):
                    return True
        return False

    def _label_candidates(self, entry: IndexEntry) -> tuple[list, list]:
        """(objects of the entry's model, every other known 3D object)."""
        model_id = entry.parent_identifier
        objects = probe(item_media(self._item(entry)), "objects")
        owned = list(objects) if isinstance(objects, (list, tuple)) else []
        others = []
        for class_name in MODEL_OBJECT_CLASSES:
            for obj in lookup_by_class(self.host, class_name):
                if any(obj is o for o in owned) or any(obj is o for o in others):
                    continue
                if model_id and any(self._refers_to(probe(obj, attr), model_id) for attr in OWNER_ATTRS):
                    owned.append(obj)
                else:
                    others.append(obj)
        return owned, others

    @staticmethod
    def _refers_to(value: Any, model_id: str) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return value == model_id
        return as_text(probe(value, "id")) == model_id

    def _activate(self, obj: Any) -> bool:
        if obj is None:
            return False
        activate = capability(obj, "activate")
        if activate is not None:
            activate()
            return True
        host_activate = capability(self.host, "activate_object")
        if host_activate is not None:
            host_activate(obj)
            return True
        return False

    # Overlays

    def _overlay_with_camera(self, entry: IndexEntry) -> None:
        if self._is_active(entry):
            self._apply_camera(entry)
            return

        item = self._item(entry)
        if supports_begin_event(item):
            self.pending.bind_once(self._node_key(entry), item, BEGIN_EVENT,
                                   lambda: self._apply_camera(entry))
            self._select(entry)
        else:
            self._select(entry)
            self.scheduler.call_later(self.config.camera_delay_ms, lambda: self._apply_camera(entry))

    def _apply_camera(self, entry: IndexEntry) -> None:
        hint = entry.camera_hint
        set_camera = capability(self.host, "set_camera")
        if set_camera is None or hint is None:
            logger.debug(f"Host cannot set camera, skipping for '{entry.label}'")
            return
        set_camera(hint.yaw, hint.pitch, hint.fov)

    def _focus_overlay(self, entry: IndexEntry) -> None:
        focus = capability(self.host, "focus_overlay")
        if focus is None:
            logger.debug(f"Host cannot focus overlays, skipping for '{entry.label}'")
            return
        focus(entry.original_label or entry.label)

    # Containers

    def _toggle_container(self, entry: IndexEntry) -> None:
        name = entry.host_ref or entry.label
        toggle = capability(probe(self.host, "menu"), "toggle")
        if toggle is not None:
            toggle(name)
            return

        node = lookup_by_id(self.host, name) or next(
            (c for c in lookup_by_class(self.host, "Container")
             if name in (as_text(probe(c, "name")), read_payload(c)[0])),
            None,
        )
        if node is None:
            logger.warning(f"Container '{name}' not found")
            return

        visible = not bool(probe(node, "visible", default=False))
        if isinstance(node, dict):
            node["visible"] = visible
        else:
            setattr(node, "visible", visible)
