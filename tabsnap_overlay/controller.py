"""
Overlay controller: wires keyboard, coordinator messages and visibility into
the selection state machine for one overlay lifetime.

OverlayHost owns at most one live controller. Opening a new overlay hands
the previous controller's disposer to the new controller, which tears the old
one down before taking over.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from tabsnap.message_router import (
    ADVANCE_SELECTION,
    POPUP_COMMIT,
    POPUP_SELECT_NEXT,
    POPUP_SELECT_PREV,
    SHOW_SWITCHER,
)
from tabsnap.models import CandidateEntry

from .hotkeys import normalize_key_name, parse_shortcut_keys
from .selection import SelectionMachine

logger = logging.getLogger("TabSnap.Overlay")

NEXT_KEYS = ("arrowright", "tab")
PREV_KEYS = ("arrowleft",)


class OverlayController:
    """Input handling and lifecycle for one open overlay."""

    def __init__(
        self,
        on_activate: Callable[[int], Any],
        shortcut: Optional[str] = None,
        opened_by_hotkey: bool = True,
        drop_final_key: Optional[bool] = None,
        platform: Optional[str] = None,
        on_close: Optional[Callable[["OverlayController"], None]] = None,
        teardown_previous: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            on_activate: Effect called with the tab id on commit
            shortcut: Shortcut string of the switcher command, if known
            opened_by_hotkey: The overlay was opened while the shortcut is held
            drop_final_key: Override for the platform hotkey heuristic
            platform: sys.platform style name (tests)
            on_close: Called once when this overlay closes for any reason
            teardown_previous: Disposer of the overlay this one replaces
        """
        if teardown_previous is not None:
            teardown_previous()

        self.machine = SelectionMachine(on_activate)
        self.on_close = on_close
        self.trigger_keys = (
            parse_shortcut_keys(shortcut, drop_final_key, platform)
            if opened_by_hotkey
            else frozenset()
        )
        self.held_keys = set(self.trigger_keys)
        self.disposed = False
        self._close_notified = False

    @property
    def is_open(self) -> bool:
        return self.machine.is_open

    def open(self, candidates: List[CandidateEntry]) -> Callable[[], None]:
        """Open the overlay on candidates and return its disposer."""
        self.machine.open(candidates)
        logger.info(
            f"Overlay opened: {len(candidates)} candidates, holding {sorted(self.held_keys)}"
        )
        return self.dispose

    def dispose(self) -> None:
        """Tear the overlay down. Safe to call more than once."""
        if self.disposed:
            return
        self.disposed = True
        self.machine.cancel()
        self._notify_closed()

    def _notify_closed(self) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        if self.on_close is not None:
            self.on_close(self)

    def _after_transition(self) -> None:
        if not self.machine.is_open:
            self._notify_closed()

    def commit(self) -> Optional[int]:
        tab_id = self.machine.commit()
        self._after_transition()
        return tab_id

    def cancel(self) -> None:
        self.machine.cancel()
        self._after_transition()

    def on_key_down(self, key: str) -> None:
        """Handle a key press (DOM-style key names: "ArrowRight", "a", "Alt")."""
        if not self.machine.is_open:
            return
        name = normalize_key_name(key)

        if name in self.trigger_keys:
            # Re-pressing part of the combination keeps the hold going
            self.held_keys.add(name)
            return

        if name in NEXT_KEYS:
            self.machine.advance(1)
        elif name in PREV_KEYS:
            self.machine.advance(-1)
        elif name == "enter":
            self.commit()
        elif name == "escape":
            self.cancel()
        elif self.held_keys:
            # Typing while the combination is held is not a search
            return
        elif name == "backspace":
            query = self.machine.state.search_query
            self.machine.filter(query[:-1])
        elif len(key) == 1 and key.isprintable():
            self.machine.filter(self.machine.state.search_query + key)

    def on_key_up(self, key: str) -> None:
        """Releasing every held trigger key commits the selection."""
        name = normalize_key_name(key)
        if name not in self.held_keys:
            return
        self.held_keys.discard(name)
        if self.machine.is_open and not self.held_keys:
            logger.debug("All trigger keys released, committing")
            self.commit()

    def on_message(self, message: Dict[str, Any]) -> None:
        """Handle a coordinator -> overlay message."""
        message_type = message.get("type") if isinstance(message, dict) else None
        if message_type in (ADVANCE_SELECTION, POPUP_SELECT_NEXT, SHOW_SWITCHER):
            self.machine.advance(1)
        elif message_type == POPUP_SELECT_PREV:
            self.machine.advance(-1)
        elif message_type == POPUP_COMMIT:
            self.commit()
        else:
            logger.debug(f"Ignoring overlay message {message!r}")

    def on_visibility_change(self, hidden: bool) -> None:
        """The hosting surface was hidden: close without activating anything."""
        if hidden and self.machine.is_open:
            logger.info("Overlay hidden, cancelling selection")
            self.cancel()

    def get_render_data(self) -> Dict[str, Any]:
        """
        Get data needed for rendering.

        Returns:
            Dict with:
                - items: Visible candidates with label, thumbnail and favicon
                - selected: Index of the selected item (-1 if none)
                - query: Current search query
                - total_count: Number of candidates before filtering
                - help_text: Help text to display
        """
        state = self.machine.state
        if state is None:
            return {"items": [], "selected": -1, "query": "", "total_count": 0}

        items = []
        for entry in state.filtered:
            items.append(
                {
                    "id": entry.tab_id,
                    "label": entry.title or entry.url or "Untitled tab",
                    "thumbnail": entry.screenshot,
                    "favicon": entry.favicon_url,
                }
            )

        if not state.candidates:
            help_text = "No tabs to show"
        elif self.trigger_keys:
            help_text = "Release keys or press Enter to switch | Esc to cancel"
        else:
            help_text = "Type to filter | Enter to switch | Esc to cancel"

        return {
            "items": items,
            "selected": state.cursor if items else -1,
            "query": state.search_query,
            "total_count": len(state.candidates),
            "help_text": help_text,
        }


class OverlayHost:
    """Owns the current overlay controller of an overlay process."""

    def __init__(
        self,
        client,
        drop_final_key: Optional[bool] = None,
        platform: Optional[str] = None,
    ):
        """
        Args:
            client: TabSnapClient (or compatible) used to reach the coordinator
            drop_final_key: Hotkey heuristic override, see hotkeys module
            platform: sys.platform style name (tests)
        """
        self.client = client
        self.drop_final_key = drop_final_key
        self.platform = platform
        self.controller: Optional[OverlayController] = None
        self._dispose_current: Optional[Callable[[], None]] = None

    def open_overlay(self, opened_by_hotkey: bool = True) -> OverlayController:
        """Fetch fresh candidates and open a new overlay, replacing any open one."""
        data = self.client.request_tab_data()
        candidates = [
            entry
            for entry in (
                CandidateEntry.from_dict(raw) for raw in data.get("candidates") or []
            )
            if entry is not None
        ]

        # Detach first so tearing down the old overlay does not disconnect
        dispose_previous = self._dispose_current
        self.controller = None
        self._dispose_current = None

        # A local override wins over the coordinator's setting
        drop_final_key = self.drop_final_key
        if drop_final_key is None and isinstance(data.get("dropFinalKey"), bool):
            drop_final_key = data["dropFinalKey"]

        controller = OverlayController(
            on_activate=self.client.activate_tab,
            shortcut=data.get("shortcut"),
            opened_by_hotkey=opened_by_hotkey,
            drop_final_key=drop_final_key,
            platform=self.platform,
            on_close=self._on_controller_closed,
            teardown_previous=dispose_previous,
        )
        self.controller = controller
        self._dispose_current = controller.open(candidates)
        self.client.connect()
        return controller

    def _on_controller_closed(self, controller: OverlayController) -> None:
        if controller is not self.controller:
            return
        self.controller = None
        self._dispose_current = None
        self.client.disconnect()

    def close_overlay(self) -> None:
        if self._dispose_current is not None:
            self._dispose_current()

    def handle_message(self, message: Dict[str, Any]) -> None:
        if self.controller is not None and self.controller.is_open:
            self.controller.on_message(message)
        elif message.get("type") == SHOW_SWITCHER:
            self.open_overlay(opened_by_hotkey=True)
        else:
            logger.debug(f"No overlay open for message {message!r}")

    def poll_once(self) -> int:
        """Process pending coordinator messages. Returns how many were handled."""
        messages = self.client.poll_messages()
        for message in messages:
            try:
                self.handle_message(message)
            finally:
                self.client.acknowledge_message(message["id"])
        return len(messages)

    def on_key_down(self, key: str) -> None:
        if self.controller is not None:
            self.controller.on_key_down(key)

    def on_key_up(self, key: str) -> None:
        if self.controller is not None:
            self.controller.on_key_up(key)

    def on_visibility_change(self, hidden: bool) -> None:
        if self.controller is not None:
            self.controller.on_visibility_change(hidden)
