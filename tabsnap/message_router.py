"""
Message routing between the extension, the coordinator and overlay hosts.

Inbound messages (``request_tab_data``, ``activate_tab``) are dispatched to
registered handlers. Outbound overlay messages are queued on an
OverlayChannel that the overlay host polls.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("TabSnap.MessageRouter")

# Coordinator -> overlay message types
ADVANCE_SELECTION = "advance_selection"
POPUP_SELECT_NEXT = "popup_select_next"
POPUP_SELECT_PREV = "popup_select_prev"
POPUP_COMMIT = "popup_commit"
SHOW_SWITCHER = "show_switcher"

OVERLAY_MESSAGE_TYPES = (
    ADVANCE_SELECTION,
    POPUP_SELECT_NEXT,
    POPUP_SELECT_PREV,
    POPUP_COMMIT,
    SHOW_SWITCHER,
)

MessageHandler = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


class MessageRouter:
    """Registry of request handlers keyed by message type."""

    def __init__(self):
        self.handlers: Dict[str, MessageHandler] = {}

    def register(self, message_type: str, handler: MessageHandler) -> None:
        """Register a handler; it returns a response dict or None."""
        self.handlers[message_type] = handler
        logger.debug(f"Registered message handler: {message_type}")

    def dispatch(self, message: Any) -> Optional[Dict[str, Any]]:
        """Route one message to its handler.

        Returns:
            The handler's response, or None for fire-and-forget messages and
            for malformed or unknown messages.
        """
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.warning(f"Dropping malformed message: {message!r}")
            return None

        handler = self.handlers.get(message["type"])
        if handler is None:
            logger.warning(f"No handler for message type {message['type']}")
            return None
        return handler(message)


class OverlayChannel:
    """Coordinator -> overlay message queue plus overlay presence tracking.

    The overlay host polls ``GET /overlay/messages`` and acknowledges each
    message by id. A host counts as present while it keeps polling; an
    overlay counts as open between ``connect`` and ``disconnect``.
    """

    def __init__(
        self, idle_timeout_s: float = 5.0, clock: Callable[[], float] = time.monotonic
    ):
        self.idle_timeout_s = idle_timeout_s
        self.clock = clock
        self._messages: List[Dict[str, Any]] = []
        self._message_id = 0
        self._last_poll: Optional[float] = None
        self._overlay_open = False
        self._lock = threading.Lock()

    def post(self, message_type: str, **payload: Any) -> int:
        if message_type not in OVERLAY_MESSAGE_TYPES:
            raise ValueError(f"Unknown overlay message type: {message_type}")
        with self._lock:
            self._message_id += 1
            message = {"id": self._message_id, "type": message_type}
            message.update(payload)
            self._messages.append(message)
        logger.debug(f"Posted overlay message {message['id']}: {message_type}")
        return message["id"]

    def poll(self) -> List[Dict[str, Any]]:
        """Return pending messages and mark the host as alive."""
        with self._lock:
            self._last_poll = self.clock()
            return list(self._messages)

    def acknowledge(self, message_id: int) -> bool:
        with self._lock:
            before = len(self._messages)
            self._messages = [m for m in self._messages if m["id"] != message_id]
            return len(self._messages) != before

    def connect(self) -> None:
        with self._lock:
            self._overlay_open = True
            self._last_poll = self.clock()
        logger.info("Overlay connected")

    def disconnect(self) -> None:
        with self._lock:
            self._overlay_open = False
            # Selection messages are meaningless once the overlay is gone
            self._messages = [m for m in self._messages if m["type"] == SHOW_SWITCHER]
        logger.info("Overlay disconnected")

    def host_alive(self) -> bool:
        with self._lock:
            return (
                self._last_poll is not None
                and self.clock() - self._last_poll <= self.idle_timeout_s
            )

    def overlay_open(self) -> bool:
        # A host that stopped polling cannot have an open overlay
        return self._overlay_open and self.host_alive()
