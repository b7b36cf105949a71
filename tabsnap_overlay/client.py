"""HTTP client for the TabSnap coordinator, used by the overlay host."""

import logging
import os
from typing import Any, Dict, List

import requests

logger = logging.getLogger("TabSnap.Overlay.Client")

# Use IP instead of localhost for faster connection
DEFAULT_API_URL = "http://127.0.0.1:5556/tabsnap"
DEFAULT_TIMEOUT = 1.0  # Fast timeout - don't block the overlay


class TabSnapClient:
    """Thin wrapper over the coordinator's HTTP API.

    Every call is best effort: connection problems are logged and an empty
    result is returned so the overlay degrades instead of crashing.
    """

    def __init__(self, api_url: str = None, timeout: float = DEFAULT_TIMEOUT, session=None):
        self.api_url = (api_url or os.environ.get("TABSNAP_API_URL") or DEFAULT_API_URL).rstrip("/")
        self.timeout = timeout
        # Persistent HTTP session avoids per-request connection overhead
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def health(self) -> bool:
        try:
            response = self.session.get(self._url("/health"), timeout=self.timeout)
            return response.ok
        except requests.RequestException as e:
            logger.debug(f"Coordinator health check failed: {e}")
            return False

    def request_tab_data(self) -> Dict[str, Any]:
        """Send request_tab_data and return {candidates, shortcut?}."""
        try:
            response = self.session.post(
                self._url("/message"),
                json={"type": "request_tab_data"},
                timeout=self.timeout,
            )
            if response.ok:
                data = response.json()
                if isinstance(data, dict):
                    return data
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch tab data: {e}")
        return {"candidates": []}

    def activate_tab(self, tab_id: int) -> None:
        """Fire-and-forget activate_tab message."""
        try:
            self.session.post(
                self._url("/message"),
                json={"type": "activate_tab", "id": tab_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Tab activate error: {e}")

    def connect(self) -> None:
        self._post_quietly("/overlay/connect")

    def disconnect(self) -> None:
        self._post_quietly("/overlay/disconnect")

    def poll_messages(self) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(
                self._url("/overlay/messages"), timeout=self.timeout
            )
            if response.ok:
                messages = response.json().get("messages", [])
                return [m for m in messages if isinstance(m, dict) and "id" in m]
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.debug(f"Polling overlay messages failed: {e}")
        return []

    def acknowledge_message(self, message_id: int) -> None:
        try:
            self.session.delete(
                self._url(f"/overlay/messages/{message_id}"), timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.debug(f"Acknowledging overlay message {message_id} failed: {e}")

    def _post_quietly(self, path: str) -> None:
        try:
            self.session.post(self._url(path), timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"POST {path} failed: {e}")
