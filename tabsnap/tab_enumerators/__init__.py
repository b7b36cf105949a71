"""Live tab enumeration from the browser extension."""

from .chrome_tabs import ChromeTabManager
from .base import TabEnumerator

__all__ = ["ChromeTabManager", "TabEnumerator"]
