"""Command queue between the coordinator and the browser extension.

The extension polls ``GET /extension-commands`` (every ~250ms), executes each
command and acknowledges it with ``DELETE /extension-commands/<id>``. Capture
commands additionally report their outcome to ``POST /capture-result``.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .errors import CaptureError, CaptureTimeoutError, TabBusyError


class CaptureSource(ABC):
    """Abstract source of visible-area captures for a browser window."""

    @abstractmethod
    def capture_visible_area(
        self,
        window_id: int,
        quality: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Capture the visible area of the window's active tab.

        Args:
            window_id: Browser window to capture
            quality: Lossy compression quality (1-100)
            cancel_event: Set when the caller no longer wants the result

        Returns:
            The captured image as a data URL

        Raises:
            TabBusyError: The tab is temporarily not capturable
            CaptureError: Any other capture failure
        """
        pass


class _PendingCapture:
    def __init__(self):
        self.done = threading.Event()
        self.data_url: Optional[str] = None
        self.error: Optional[str] = None


class ExtensionBridge:
    """Queues commands for the extension and collects capture results."""

    def __init__(self, busy_markers: Optional[List[str]] = None):
        self.logger = logging.getLogger("TabSnap.ExtensionBridge")
        self.busy_markers = list(busy_markers or [])
        self._commands: List[Dict[str, Any]] = []
        self._command_id = 0
        self._lock = threading.Lock()
        self._pending: Dict[int, _PendingCapture] = {}

    def queue_command(self, action: str, **payload: Any) -> int:
        """Append a command for the extension and return its id."""
        with self._lock:
            self._command_id += 1
            command = {
                "id": self._command_id,
                "action": action,
                "timestamp": time.time(),
            }
            command.update(payload)
            self._commands.append(command)
        self.logger.debug(f"Queued extension command {command['id']}: {action}")
        return command["id"]

    def pending_commands(self) -> List[Dict[str, Any]]:
        with self._lock:
            # Return a copy to avoid modification during iteration
            return list(self._commands)

    def acknowledge(self, command_id: int) -> bool:
        """Drop an executed command. Returns False if it was unknown."""
        with self._lock:
            before = len(self._commands)
            self._commands = [c for c in self._commands if c["id"] != command_id]
            return len(self._commands) != before

    def request_activation(self, tab_id: int, window_id: Optional[int] = None) -> int:
        return self.queue_command("activateTab", tabId=tab_id, windowId=window_id)

    def request_open_popup(self) -> int:
        return self.queue_command("openPopup")

    def request_capture(
        self,
        window_id: int,
        quality: int,
        timeout: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Ask the extension for a capture and block until it answers.

        Raises:
            TabBusyError: The extension reported a busy error
            CaptureTimeoutError: No answer within timeout, or cancelled
            CaptureError: The extension reported any other error
        """
        pending = _PendingCapture()
        with self._lock:
            self._command_id += 1
            request_id = self._command_id
            self._pending[request_id] = pending
            self._commands.append(
                {
                    "id": request_id,
                    "action": "captureVisibleTab",
                    "windowId": window_id,
                    "format": "jpeg",
                    "quality": quality,
                    "timestamp": time.time(),
                }
            )

        try:
            deadline = time.monotonic() + timeout
            # Wake up periodically so a cancel does not wait out the timeout
            while not pending.done.wait(min(0.05, max(0.0, deadline - time.monotonic()))):
                if cancel_event is not None and cancel_event.is_set():
                    raise CaptureTimeoutError(
                        f"Capture request {request_id} cancelled"
                    )
                if time.monotonic() >= deadline:
                    raise CaptureTimeoutError(
                        f"No capture result for window {window_id} after {timeout}s"
                    )
        finally:
            with self._lock:
                self._pending.pop(request_id, None)
                self._commands = [c for c in self._commands if c["id"] != request_id]

        if pending.error is not None:
            if any(marker in pending.error for marker in self.busy_markers):
                raise TabBusyError(pending.error)
            raise CaptureError(pending.error)
        if not pending.data_url:
            raise CaptureError("Extension returned an empty capture")
        return pending.data_url

    def resolve_capture(
        self,
        request_id: int,
        data_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Deliver the extension's answer to a waiting capture request.

        Returns:
            False if nobody is waiting for request_id any more.
        """
        with self._lock:
            pending = self._pending.get(request_id)
        if pending is None:
            self.logger.warning(f"Capture result for unknown request {request_id}")
            return False

        pending.data_url = data_url
        pending.error = error
        pending.done.set()
        return True


class ExtensionCaptureSource(CaptureSource):
    """CaptureSource that asks the extension to run captureVisibleTab."""

    def __init__(self, bridge: ExtensionBridge, timeout: float = 5.0):
        self.bridge = bridge
        self.timeout = timeout

    def capture_visible_area(
        self,
        window_id: int,
        quality: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        return self.bridge.request_capture(
            window_id, quality, self.timeout, cancel_event=cancel_event
        )
