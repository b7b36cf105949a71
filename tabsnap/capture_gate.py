"""Capture gate: decides whether a tab gets a snapshot and takes it.

The sequence for an eligible tab is capture -> resize -> store, with a bounded
retry when the browser reports the tab as temporarily busy (for example while
it is being dragged). Metadata is taken at the moment of activation, before
any waiting, so a slow capture still records when the tab was used.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from .errors import TabBusyError
from .extension_bridge import CaptureSource
from .imaging import resize_image
from .models import LiveTabView, SnapshotRecord
from .recency_store import RecencyStore

CAPTURABLE_SCHEMES = ("http://", "https://")


def now_ms() -> int:
    return int(time.time() * 1000)


def is_capturable_url(url: Optional[str]) -> bool:
    """Only regular web pages can be captured; internal pages are skipped."""
    return bool(url) and url.startswith(CAPTURABLE_SCHEMES)


class CaptureGate:
    """Runs the capture-resize-persist sequence for one tab at a time."""

    def __init__(
        self,
        capture_source: CaptureSource,
        store: RecencyStore,
        resizer: Optional[Callable[[str, int, int], str]] = None,
        capture_quality: int = 80,
        thumbnail_width: int = 300,
        thumbnail_quality: int = 70,
        max_retries: int = 3,
        retry_delay_s: float = 0.2,
        busy_markers: Optional[List[str]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the gate.

        Args:
            capture_source: Provider of visible-area captures.
            store: Where successful snapshots are written.
            resizer: ``(image, target_width, quality) -> image``. Defaults to
                the Pillow based :func:`resize_image`.
            capture_quality: Quality requested from the capture source.
            thumbnail_width: Width of the stored thumbnail.
            thumbnail_quality: Quality of the re-encoded thumbnail.
            max_retries: Retries after the first attempt on a busy tab.
            retry_delay_s: Fixed delay between busy retries.
            busy_markers: Error message fragments that mark a busy tab.
            clock: Milliseconds-since-epoch clock for lastActive.
        """
        self.capture_source = capture_source
        self.store = store
        self.resizer = resizer or resize_image
        self.capture_quality = capture_quality
        self.thumbnail_width = thumbnail_width
        self.thumbnail_quality = thumbnail_quality
        self.max_retries = max_retries
        self.retry_delay_s = retry_delay_s
        self.busy_markers = list(busy_markers or [])
        self.clock = clock
        self.logger = logging.getLogger("TabSnap.CaptureGate")

    def is_eligible(self, tab: LiveTabView) -> bool:
        return tab.tab_id is not None and is_capturable_url(tab.url)

    def is_busy_error(self, exc: Exception) -> bool:
        """Classify an exception as the transient 'tab busy' condition."""
        if isinstance(exc, TabBusyError):
            return True
        message = str(exc)
        return any(marker in message for marker in self.busy_markers)

    def capture(
        self, tab: LiveTabView, cancel_event: Optional[threading.Event] = None
    ) -> Optional[SnapshotRecord]:
        """Capture, resize and store a snapshot of tab.

        Never raises. Returns the stored record, or None when the tab was
        skipped, the capture was cancelled or failed, or retries ran out.
        """
        if not self.is_eligible(tab):
            self.logger.debug(f"Skipping tab {tab.tab_id}: not capturable ({tab.url})")
            return None

        try:
            return self._capture(tab, cancel_event)
        except Exception as e:
            self.logger.exception(f"Unexpected error capturing tab {tab.tab_id}: {e}")
            return None

    def _capture(
        self, tab: LiveTabView, cancel_event: Optional[threading.Event]
    ) -> Optional[SnapshotRecord]:
        cancel_event = cancel_event or threading.Event()

        # Metadata reflects the activation moment, not the capture moment
        record = SnapshotRecord(
            tab_id=tab.tab_id,
            last_active=self.clock(),
            title=tab.title,
            favicon_url=tab.favicon_url,
        )

        attempt = 0
        while True:
            if cancel_event.is_set():
                self.logger.info(f"Capture for tab {tab.tab_id} cancelled")
                return None

            try:
                image = self.capture_source.capture_visible_area(
                    tab.window_id, self.capture_quality, cancel_event=cancel_event
                )
                break
            except Exception as e:
                if not self.is_busy_error(e):
                    self.logger.error(f"Capture failed for tab {tab.tab_id}: {e}")
                    return None
                if attempt >= self.max_retries:
                    self.logger.warning(
                        f"Giving up on tab {tab.tab_id} after {attempt + 1} busy attempts: {e}"
                    )
                    return None

                attempt += 1
                self.logger.info(
                    f"Tab {tab.tab_id} busy, retry {attempt}/{self.max_retries} "
                    f"in {self.retry_delay_s * 1000:.0f}ms"
                )
                # wait() returns True as soon as the capture is cancelled
                if cancel_event.wait(self.retry_delay_s):
                    self.logger.info(f"Capture for tab {tab.tab_id} cancelled during retry")
                    return None

        try:
            thumbnail = self.resizer(image, self.thumbnail_width, self.thumbnail_quality)
        except Exception as e:
            self.logger.error(f"Failed to resize capture of tab {tab.tab_id}: {e}")
            return None

        if cancel_event.is_set():
            self.logger.info(f"Capture for tab {tab.tab_id} cancelled before write")
            return None

        record = record.with_screenshot(thumbnail)
        if not self.store.put(tab.tab_id, record):
            return None

        self.logger.debug(f"Snapshot saved for tab {tab.tab_id}")
        return record
