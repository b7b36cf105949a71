import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from .assembler import assemble
from .capture_gate import CaptureGate
from .config_manager import ConfigManager
from .extension_bridge import CaptureSource, ExtensionBridge, ExtensionCaptureSource
from .message_router import (
    POPUP_SELECT_NEXT,
    SHOW_SWITCHER,
    MessageRouter,
    OverlayChannel,
)
from .models import CandidateEntry, LiveTabView
from .recency_store import RecencyStore
from .storage import JsonFileBackend, KeyValueBackend
from .tab_enumerators import ChromeTabManager


class TabSnapService:
    """Coordinator: reacts to tab events, captures snapshots, serves switcher data."""

    def __init__(
        self,
        config_path=None,
        backend: Optional[KeyValueBackend] = None,
        capture_source: Optional[CaptureSource] = None,
        tab_manager: Optional[ChromeTabManager] = None,
        resizer=None,
    ):
        """Initialize the TabSnap service.

        Args:
            config_path (str, optional): Path to the config file. If None, uses default location.
            backend: Snapshot storage. Defaults to a JSON file next to the config.
            capture_source: Capture provider. Defaults to capturing through the extension.
            tab_manager: Live tab view. Defaults to a ChromeTabManager.
            resizer: Optional replacement for the Pillow thumbnail resizer.
        """
        self.logger = logging.getLogger("TabSnap.Service")

        self.config_manager = ConfigManager(config_path)
        settings = self.config_manager.get_settings()

        self.bridge = ExtensionBridge(busy_markers=settings["busy_error_markers"])
        self.tab_manager = tab_manager or ChromeTabManager()
        self.overlay_channel = OverlayChannel(
            idle_timeout_s=settings["overlay_idle_timeout_s"]
        )

        if backend is None:
            backend = JsonFileBackend(self.config_manager.get_store_path())
        self.store = RecencyStore(
            backend,
            cap=settings["recency_cap"],
            compare_last_active=settings["compare_last_active_on_write"],
        )

        if capture_source is None:
            capture_source = ExtensionCaptureSource(
                self.bridge, timeout=settings["capture_timeout_s"]
            )
        self.capture_gate = CaptureGate(
            capture_source,
            self.store,
            resizer=resizer,
            capture_quality=settings["capture_quality"],
            thumbnail_width=settings["thumbnail_width"],
            thumbnail_quality=settings["thumbnail_quality"],
            max_retries=settings["capture_max_retries"],
            retry_delay_s=settings["capture_retry_delay_ms"] / 1000.0,
            busy_markers=settings["busy_error_markers"],
        )

        self.router = MessageRouter()
        self.router.register("request_tab_data", self._handle_request_tab_data)
        self.router.register("activate_tab", self._handle_activate_tab)

        # In-flight captures keyed by tab id: (cancel event, worker, url, window id)
        self._captures: Dict[int, Dict[str, Any]] = {}
        self._captures_lock = threading.Lock()

        self.running = False
        self.status = {
            "status": "stopped",
            "started_at": None,
            "captures_started": 0,
            "captures_cancelled": 0,
            "last_event": None,
        }

    def start(self):
        """Start accepting tab events."""
        if self.running:
            self.logger.warning("Service already running")
            return False

        self.running = True
        self.status["status"] = "running"
        self.status["started_at"] = datetime.now().isoformat()
        self.logger.info("Service started")
        return True

    def stop(self):
        """Stop the service and cancel outstanding captures."""
        if not self.running:
            self.logger.warning("Service not running")
            return False

        self.running = False
        self.status["status"] = "stopping"
        with self._captures_lock:
            for entry in self._captures.values():
                entry["cancel"].set()
        self.wait_for_captures(timeout=5)

        self.status["status"] = "stopped"
        self.logger.info("Service stopped")
        return True

    def update_settings(self, settings_dict):
        """Validate and persist settings, then apply them to live components.

        Raises:
            ConfigError: If the update is rejected.
        """
        self.config_manager.update_settings(settings_dict)
        settings = self.config_manager.get_settings()

        self.store.cap = settings["recency_cap"]
        self.store.compare_last_active = settings["compare_last_active_on_write"]
        self.overlay_channel.idle_timeout_s = settings["overlay_idle_timeout_s"]
        self.bridge.busy_markers = list(settings["busy_error_markers"])

        gate = self.capture_gate
        gate.capture_quality = settings["capture_quality"]
        gate.thumbnail_width = settings["thumbnail_width"]
        gate.thumbnail_quality = settings["thumbnail_quality"]
        gate.max_retries = settings["capture_max_retries"]
        gate.retry_delay_s = settings["capture_retry_delay_ms"] / 1000.0
        gate.busy_markers = list(settings["busy_error_markers"])
        if isinstance(gate.capture_source, ExtensionCaptureSource):
            gate.capture_source.timeout = settings["capture_timeout_s"]
        return settings

    def get_status(self):
        """Get the current service status.

        Returns:
            dict: Service status information
        """
        status = dict(self.status)
        status["snapshots"] = len(self.store.records())
        status["captures_in_flight"] = len(self._captures)
        status["tabs_available"] = self.tab_manager.is_available()
        status["overlay_open"] = self.overlay_channel.overlay_open()
        return status

    # ------------------------------------------------------------------
    # Tab lifecycle events
    # ------------------------------------------------------------------

    def on_tab_activated(self, tab: LiveTabView) -> bool:
        """Handle a tab becoming active. Returns True if a capture was scheduled."""
        self.status["last_event"] = "activated"
        tab.active = True
        self.tab_manager.upsert_tab(tab)
        self._cancel_window_captures(tab.window_id, keep_tab_id=tab.tab_id)
        # A tab still loading is captured once it reports complete
        if tab.status not in (None, "complete"):
            return False
        return self.schedule_capture(tab)

    def on_tab_updated(self, tab: LiveTabView, change_info: Dict[str, Any]) -> bool:
        """Handle a tab update. Returns True if a capture was scheduled."""
        self.status["last_event"] = "updated"
        self.tab_manager.upsert_tab(tab)

        # Navigating away invalidates any capture still running for the old page
        if "url" in change_info:
            with self._captures_lock:
                entry = self._captures.get(tab.tab_id)
            if entry is not None and entry["url"] != tab.url:
                self.cancel_capture(tab.tab_id)

        if change_info.get("status") == "complete" and tab.active:
            return self.schedule_capture(tab)
        return False

    def on_tab_removed(self, tab_id: int) -> None:
        """Handle a closed tab. Its stored record is left to eviction."""
        self.status["last_event"] = "removed"
        self.cancel_capture(tab_id)
        self.tab_manager.remove_tab(tab_id)

    def on_installed(self) -> None:
        """Extension installed or updated: start from an empty store."""
        self.status["last_event"] = "installed"
        self.store.clear()

    def on_command(self, command: str) -> str:
        """Handle an extension keyboard command.

        Returns:
            What was done: "advanced", "show_overlay", "open_popup" or "ignored".
        """
        if command != self.config_manager.get_setting("switcher_command"):
            self.logger.debug(f"Ignoring command {command}")
            return "ignored"

        if self.overlay_channel.overlay_open():
            self.overlay_channel.post(POPUP_SELECT_NEXT)
            return "advanced"
        if self.overlay_channel.host_alive():
            self.overlay_channel.post(SHOW_SWITCHER)
            return "show_overlay"

        self.bridge.request_open_popup()
        return "open_popup"

    # ------------------------------------------------------------------
    # Capture scheduling
    # ------------------------------------------------------------------

    def schedule_capture(self, tab: LiveTabView) -> bool:
        """Run the capture gate for tab on a worker thread.

        A newer capture for the same tab supersedes the one in flight.
        Nothing is scheduled once the service has stopped.
        """
        if not self.running:
            self.logger.debug(f"Service stopped, not capturing tab {tab.tab_id}")
            return False
        if not self.capture_gate.is_eligible(tab):
            self.logger.debug(f"Tab {tab.tab_id} not eligible for capture")
            return False

        cancel = threading.Event()
        worker = threading.Thread(
            target=self._run_capture,
            args=(tab, cancel),
            name=f"capture-{tab.tab_id}",
            daemon=True,
        )
        with self._captures_lock:
            previous = self._captures.get(tab.tab_id)
            if previous is not None:
                previous["cancel"].set()
                self.status["captures_cancelled"] += 1
            self._captures[tab.tab_id] = {
                "cancel": cancel,
                "worker": worker,
                "url": tab.url,
                "window_id": tab.window_id,
            }
            self.status["captures_started"] += 1

        worker.start()
        return True

    def _run_capture(self, tab: LiveTabView, cancel: threading.Event) -> None:
        try:
            self.capture_gate.capture(tab, cancel_event=cancel)
        finally:
            with self._captures_lock:
                entry = self._captures.get(tab.tab_id)
                if entry is not None and entry["cancel"] is cancel:
                    del self._captures[tab.tab_id]

    def cancel_capture(self, tab_id: int) -> bool:
        with self._captures_lock:
            entry = self._captures.get(tab_id)
            if entry is None:
                return False
            entry["cancel"].set()
            self.status["captures_cancelled"] += 1
        self.logger.info(f"Cancelled in-flight capture for tab {tab_id}")
        return True

    def _cancel_window_captures(self, window_id: int, keep_tab_id: int) -> int:
        """Cancel captures of other tabs in window_id: only its active tab is visible."""
        cancelled = []
        with self._captures_lock:
            for tab_id, entry in self._captures.items():
                if tab_id == keep_tab_id or entry["window_id"] != window_id:
                    continue
                if entry["cancel"].is_set():
                    continue
                entry["cancel"].set()
                self.status["captures_cancelled"] += 1
                cancelled.append(tab_id)
        for tab_id in cancelled:
            self.logger.info(f"Tab {keep_tab_id} activated, cancelled capture for tab {tab_id}")
        return len(cancelled)

    def wait_for_captures(self, timeout: Optional[float] = None) -> bool:
        """Join all capture workers. Returns False if any is still running."""
        with self._captures_lock:
            workers = [entry["worker"] for entry in self._captures.values()]
        for worker in workers:
            worker.join(timeout)
        return not any(worker.is_alive() for worker in workers)

    # ------------------------------------------------------------------
    # Switcher data and messages
    # ------------------------------------------------------------------

    def get_candidates(self) -> List[CandidateEntry]:
        """Assemble the candidate list for a switcher opened right now."""
        live_tabs = self.tab_manager.enumerate_live_tabs("current_window")
        active = next((tab for tab in live_tabs if tab.active), None)
        merged = self.store.get_all_merged_with_live(live_tabs)

        include_uncaptured = self.config_manager.get_setting("include_uncaptured_tabs")
        return assemble(
            active.tab_id if active else None,
            merged,
            max_candidates=self.config_manager.get_setting("max_candidates"),
            live_tabs=live_tabs if include_uncaptured else None,
        )

    def get_tab_data(self) -> Dict[str, Any]:
        command = self.config_manager.get_setting("switcher_command")
        response = {
            "type": "tab_data",
            "candidates": [entry.to_dict() for entry in self.get_candidates()],
        }
        shortcut = self.tab_manager.get_shortcut_for(command)
        if shortcut:
            response["shortcut"] = shortcut
        drop_final_key = self.config_manager.get_setting("hotkey_drop_final_key")
        if drop_final_key is not None:
            response["dropFinalKey"] = drop_final_key
        return response

    def activate_tab(self, tab_id: int) -> bool:
        """Queue an activation for the extension. False if the tab is not live."""
        tab = self.tab_manager.get_tab(tab_id)
        if tab is None:
            self.logger.warning(f"Activation requested for unknown tab {tab_id}")
            return False
        self.bridge.request_activation(tab.tab_id, tab.window_id)
        self.logger.info(f"Queued activation of tab {tab_id}")
        return True

    def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        return self.router.dispatch(message)

    def _handle_request_tab_data(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return self.get_tab_data()

    def _handle_activate_tab(self, message: Dict[str, Any]) -> None:
        tab_id = message.get("id")
        if isinstance(tab_id, bool) or not isinstance(tab_id, int):
            self.logger.warning(f"activate_tab without a numeric id: {message!r}")
            return None
        self.activate_tab(tab_id)
        return None
