"""Base class for tab enumerators."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import LiveTabView


class TabEnumerator(ABC):
    """Abstract base class for live tab enumeration."""

    @abstractmethod
    def enumerate_live_tabs(self, scope: str = "current_window") -> List[LiveTabView]:
        """Get the tabs that are open right now.

        Args:
            scope: "current_window" for the focused browser window only,
                "all" for every known window

        Returns:
            List of live tab views in browser tab order
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this tab source currently has fresh data."""
        pass

    @abstractmethod
    def get_active_tab(self) -> Optional[LiveTabView]:
        """Get the active tab of the current window, if known."""
        pass

    def get_shortcut_for(self, command_name: str) -> Optional[str]:
        """Get the keyboard shortcut bound to an extension command."""
        return None
