"""
Pending one-shot handlers.

At most one handler is outstanding per node. Binding a new one unbinds the
previous handler first, and a handler unbinds itself before it runs, so
handlers never stack and never fire twice.
"""

from typing import Any, Callable, Optional

from loguru import logger

from tourfind.host import supports_begin_event


class HandlerToken:
    """Ownership of one bound handler."""

    def __init__(self, registry: "PendingHandlers", node_key: str, item: Any, event: str):
        self._registry = registry
        self.node_key = node_key
        self.item = item
        self.event = event
        self.active = True
        self.listener: Optional[Callable[..., None]] = None

    def cancel(self) -> None:
        """Unbind from the host and release the node's slot."""
        if not self.active:
            return
        self.active = False
        try:
            self.item.unbind(self.event, self.listener)
        except Exception as e:
            logger.debug(f"Unbinding '{self.event}' handler on {self.node_key} failed: {e}")
        self._registry._release(self)


class PendingHandlers:
    """Per-node registry of one-shot event handlers."""

    def __init__(self):
        self._slots: dict[str, HandlerToken] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, node_key: str) -> bool:
        return node_key in self._slots

    def bind_once(self, node_key: str, item: Any, event: str, callback: Callable[[], None]) -> Optional[HandlerToken]:
        """
        Bind a handler that fires at most once, replacing the node's previous one.

        Returns:
            The token, or None when the item cannot bind events
        """
        if not supports_begin_event(item):
            return None

        self.cancel(node_key)
        token = HandlerToken(self, node_key, item, event)

        def listener(*_args, **_kwargs) -> None:
            if not token.active:
                return
            token.cancel()
            try:
                callback()
            except Exception:
                logger.exception(f"One-shot '{event}' handler on {node_key} failed")

        token.listener = listener
        self._slots[node_key] = token
        try:
            item.bind(event, listener)
        except Exception:
            logger.exception(f"Binding '{event}' handler on {node_key} failed")
            token.active = False
            self._release(token)
            return None
        return token

    def cancel(self, node_key: str) -> None:
        token = self._slots.get(node_key)
        if token is not None:
            token.cancel()

    def clear(self) -> None:
        """Unbind every outstanding handler."""
        for token in list(self._slots.values()):
            token.cancel()

    def _release(self, token: HandlerToken) -> None:
        if self._slots.get(token.node_key) is token:
            del self._slots[token.node_key]
