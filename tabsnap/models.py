"""Record types shared by the capture, storage and switcher layers.

Wire shapes use the extension's camelCase keys (``lastActive``, ``favIconUrl``,
``windowId``) so that records can round-trip through JSON storage and HTTP
payloads without a translation table.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

STORAGE_KEY_PREFIX = "tab-"


def storage_key(tab_id: int) -> str:
    """Return the persisted key for a tab identity (``tab-<id>``)."""
    return f"{STORAGE_KEY_PREFIX}{tab_id}"


def _coerce_tab_id(value: Any) -> Optional[int]:
    # bool is an int subclass; a True/False id is never valid
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


@dataclass
class SnapshotRecord:
    """Stored snapshot of one tab, written by the capture gate."""

    tab_id: int
    last_active: int
    title: Optional[str] = None
    favicon_url: Optional[str] = None
    screenshot: Optional[str] = None

    def with_screenshot(self, screenshot: str) -> "SnapshotRecord":
        return replace(self, screenshot=screenshot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.tab_id,
            "lastActive": self.last_active,
            "title": self.title,
            "favIconUrl": self.favicon_url,
            "screenshot": self.screenshot,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SnapshotRecord"]:
        """Parse a stored record, returning None for malformed entries."""
        if not isinstance(data, dict):
            return None
        tab_id = _coerce_tab_id(data.get("id"))
        if tab_id is None:
            return None

        last_active = data.get("lastActive", 0)
        if isinstance(last_active, bool) or not isinstance(last_active, (int, float)):
            return None

        return cls(
            tab_id=tab_id,
            last_active=int(last_active),
            title=_optional_str(data.get("title")),
            favicon_url=_optional_str(data.get("favIconUrl")),
            screenshot=_optional_str(data.get("screenshot")),
        )


@dataclass
class LiveTabView:
    """A tab as currently reported by the browser. Never persisted."""

    tab_id: int
    window_id: int = -1
    title: Optional[str] = None
    favicon_url: Optional[str] = None
    url: Optional[str] = None
    active: bool = False
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.tab_id,
            "windowId": self.window_id,
            "title": self.title,
            "favIconUrl": self.favicon_url,
            "url": self.url,
            "active": self.active,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LiveTabView"]:
        """Parse an extension tab payload, returning None when it has no usable id."""
        if not isinstance(data, dict):
            return None
        tab_id = _coerce_tab_id(data.get("id"))
        if tab_id is None:
            return None

        window_id = _coerce_tab_id(data.get("windowId"))
        return cls(
            tab_id=tab_id,
            window_id=window_id if window_id is not None else -1,
            title=_optional_str(data.get("title")),
            favicon_url=_optional_str(data.get("favIconUrl")),
            url=_optional_str(data.get("url")),
            active=bool(data.get("active", False)),
            status=_optional_str(data.get("status")),
        )


@dataclass
class CandidateEntry:
    """One switcher candidate: stored snapshot overlaid with live metadata."""

    tab_id: int
    last_active: int = 0
    title: Optional[str] = None
    favicon_url: Optional[str] = None
    url: Optional[str] = None
    screenshot: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: SnapshotRecord, live: Optional[LiveTabView] = None
    ) -> "CandidateEntry":
        """Merge a record with its live tab; live title/favicon win when present."""
        if live is None:
            return cls(
                tab_id=record.tab_id,
                last_active=record.last_active,
                title=record.title,
                favicon_url=record.favicon_url,
                screenshot=record.screenshot,
            )
        return cls(
            tab_id=record.tab_id,
            last_active=record.last_active,
            title=live.title if live.title is not None else record.title,
            favicon_url=(
                live.favicon_url if live.favicon_url is not None else record.favicon_url
            ),
            url=live.url,
            screenshot=record.screenshot,
        )

    @classmethod
    def from_live(cls, live: LiveTabView) -> "CandidateEntry":
        """Entry for a live tab that has never been captured."""
        return cls(
            tab_id=live.tab_id,
            last_active=0,
            title=live.title,
            favicon_url=live.favicon_url,
            url=live.url,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.tab_id,
            "lastActive": self.last_active,
            "title": self.title,
            "favIconUrl": self.favicon_url,
            "url": self.url,
            "screenshot": self.screenshot,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["CandidateEntry"]:
        if not isinstance(data, dict):
            return None
        tab_id = _coerce_tab_id(data.get("id"))
        if tab_id is None:
            return None
        last_active = data.get("lastActive") or 0
        if isinstance(last_active, bool) or not isinstance(last_active, (int, float)):
            last_active = 0
        return cls(
            tab_id=tab_id,
            last_active=int(last_active),
            title=_optional_str(data.get("title")),
            favicon_url=_optional_str(data.get("favIconUrl")),
            url=_optional_str(data.get("url")),
            screenshot=_optional_str(data.get("screenshot")),
        )
