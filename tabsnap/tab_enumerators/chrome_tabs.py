"""Chrome tab storage and management."""

import time
import threading
import logging
from typing import Any, Callable, Dict, List, Optional

from ..models import LiveTabView
from .base import TabEnumerator


class ChromeTabManager(TabEnumerator):
    """Manages live tab data received from the extension.

    The extension pushes a full tab list on startup and whenever its tab set
    changes; single-tab events (activated/updated/removed) are applied in
    between so the view stays current without waiting for the next push.
    Tabs leave the view only through a full push or a removal event, never
    by age: a quiet browser sends nothing for long stretches.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """Initialize tab manager.

        Args:
            clock: Seconds clock, injectable for tests
        """
        self.clock = clock
        self.logger = logging.getLogger("TabSnap.ChromeTabs")
        self._windows: Dict[int, Dict[str, Any]] = {}  # keyed by windowId
        self._focused_window_id: Optional[int] = None
        self._shortcuts: Dict[str, str] = {}
        self._received_push = False
        self._lock = threading.Lock()

    def _new_window(self) -> Dict[str, Any]:
        return {"tabs": {}, "last_update": self.clock(), "timestamp": None}

    def update_tabs(
        self,
        tabs: List[Dict[str, Any]],
        timestamp: Optional[int] = None,
        focused_window_id: Optional[int] = None,
        shortcuts: Optional[Dict[str, str]] = None,
    ) -> int:
        """Replace the live view with a full push from the extension.

        Args:
            tabs: List of tab dictionaries from extension
            timestamp: Unix timestamp in milliseconds of the push
            focused_window_id: Window that currently has focus
            shortcuts: Command name to shortcut string, e.g. {"open_switcher": "Alt+Q"}

        Returns:
            Number of tabs accepted
        """
        windows: Dict[int, Dict[str, Any]] = {}
        accepted = 0
        for raw in tabs or []:
            tab = LiveTabView.from_dict(raw)
            if tab is None:
                self.logger.debug(f"Ignoring malformed tab payload: {raw!r}")
                continue
            window = windows.setdefault(tab.window_id, self._new_window())
            window["tabs"][tab.tab_id] = tab
            window["timestamp"] = timestamp
            accepted += 1

        with self._lock:
            self._windows = windows
            self._received_push = True
            if focused_window_id is not None:
                self._focused_window_id = focused_window_id
            if shortcuts:
                self._shortcuts.update(
                    {k: v for k, v in shortcuts.items() if isinstance(v, str)}
                )
        return accepted

    def upsert_tab(self, tab: LiveTabView) -> None:
        """Apply a single-tab event to the live view."""
        with self._lock:
            # A tab lives in exactly one window; drop it from any other
            for window_id, data in self._windows.items():
                if window_id != tab.window_id:
                    data["tabs"].pop(tab.tab_id, None)

            window = self._windows.setdefault(tab.window_id, self._new_window())
            if tab.active:
                for other in window["tabs"].values():
                    other.active = False
                self._focused_window_id = tab.window_id
            window["tabs"][tab.tab_id] = tab
            window["last_update"] = self.clock()

    def remove_tab(self, tab_id: int) -> bool:
        with self._lock:
            for window_id, data in self._windows.items():
                if data["tabs"].pop(tab_id, None) is None:
                    continue
                # Closing the last tab closes the window
                if not data["tabs"]:
                    del self._windows[window_id]
                    if window_id == self._focused_window_id:
                        self._focused_window_id = None
                return True
        return False

    def get_tab(self, tab_id: int) -> Optional[LiveTabView]:
        with self._lock:
            for data in self._windows.values():
                tab = data["tabs"].get(tab_id)
                if tab is not None:
                    return tab
        return None

    def _current_window_id(self) -> Optional[int]:
        if self._focused_window_id in self._windows:
            return self._focused_window_id
        if not self._windows:
            return None
        # Fall back to the most recently updated window
        return max(self._windows, key=lambda w: self._windows[w]["last_update"])

    def enumerate_live_tabs(self, scope: str = "current_window") -> List[LiveTabView]:
        """Get live tabs for the given scope.

        Args:
            scope: "current_window" or "all"

        Returns:
            List of LiveTabView objects
        """
        with self._lock:
            if scope == "all":
                return [
                    tab for data in self._windows.values() for tab in data["tabs"].values()
                ]
            if scope != "current_window":
                raise ValueError(f"Unknown tab scope: {scope}")

            window_id = self._current_window_id()
            if window_id is None:
                return []
            return list(self._windows[window_id]["tabs"].values())

    def get_active_tab(self) -> Optional[LiveTabView]:
        for tab in self.enumerate_live_tabs("current_window"):
            if tab.active:
                return tab
        return None

    def is_available(self) -> bool:
        """Check if the extension has reported its tabs at least once."""
        with self._lock:
            return self._received_push or bool(self._windows)

    def get_shortcut_for(self, command_name: str) -> Optional[str]:
        with self._lock:
            return self._shortcuts.get(command_name) or None
