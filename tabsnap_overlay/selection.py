"""
Selection state machine for the switcher overlay.

States are Closed (no state) and Open (a SelectionState). The machine never
talks to the coordinator itself: a commit calls the ``on_activate`` effect
with the selected tab id and the owner decides how to deliver it.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from tabsnap.models import CandidateEntry

logger = logging.getLogger("TabSnap.Overlay.Selection")


def matches_query(entry: CandidateEntry, query: str) -> bool:
    """Case-insensitive substring match against title or url."""
    q = query.strip().lower()
    if not q:
        return True
    return q in (entry.title or "").lower() or q in (entry.url or "").lower()


def filter_candidates(
    candidates: Sequence[CandidateEntry], query: str
) -> List[CandidateEntry]:
    return [entry for entry in candidates if matches_query(entry, query)]


@dataclass
class SelectionState:
    """Selection of one open overlay.

    ``cursor`` indexes ``filtered``. When a query filters everything out the
    cursor stays clamped to the previous non-empty view, so widening the
    query again lands on a valid entry.
    """

    candidates: List[CandidateEntry]
    cursor: int = 0
    search_query: str = ""
    filtered: List[CandidateEntry] = field(default_factory=list)
    last_nonempty_count: int = 0

    @classmethod
    def initial(cls, candidates: Sequence[CandidateEntry]) -> "SelectionState":
        candidates = list(candidates)
        # Index 0 is the current tab, so start on the previously used one
        cursor = 1 if len(candidates) >= 2 else 0
        return cls(
            candidates=candidates,
            cursor=cursor,
            filtered=list(candidates),
            last_nonempty_count=len(candidates),
        )

    def selected(self) -> Optional[CandidateEntry]:
        if 0 <= self.cursor < len(self.filtered):
            return self.filtered[self.cursor]
        return None


class SelectionMachine:
    """Closed/Open state machine driving one overlay's selection."""

    def __init__(self, on_activate: Callable[[int], None]):
        self.on_activate = on_activate
        self.state: Optional[SelectionState] = None
        self._committing = False

    @property
    def is_open(self) -> bool:
        return self.state is not None

    def open(self, candidates: Sequence[CandidateEntry]) -> SelectionState:
        """Closed -> Open. Opening again replaces the current selection."""
        self.state = SelectionState.initial(candidates)
        self._committing = False
        logger.debug(
            f"Opened with {len(self.state.candidates)} candidates, cursor={self.state.cursor}"
        )
        return self.state

    def advance(self, delta: int) -> None:
        """Move the cursor by delta (+1/-1), wrapping around the filtered view."""
        state = self.state
        if state is None:
            return
        n = len(state.filtered)
        if n == 0:
            return
        state.cursor = (state.cursor + delta + n) % n

    def filter(self, query: str) -> None:
        """Re-filter by query and re-clamp the cursor."""
        state = self.state
        if state is None:
            return

        state.search_query = query
        state.filtered = filter_candidates(state.candidates, query)
        n = len(state.filtered)
        if n:
            state.cursor = min(max(state.cursor, 0), n - 1)
            state.last_nonempty_count = n
        else:
            state.cursor = max(0, min(state.cursor, state.last_nonempty_count - 1))

    def commit(self) -> Optional[int]:
        """Open -> Closed, activating the selected entry if there is one.

        A commit that arrives while another is being delivered (e.g. the
        hotkey release and Enter both firing) is ignored.

        Returns:
            The activated tab id, or None if nothing was activated.
        """
        if self.state is None or self._committing:
            return None

        self._committing = True
        entry = self.state.selected()
        try:
            if entry is not None:
                logger.info(f"Committing selection: tab {entry.tab_id}")
                self.on_activate(entry.tab_id)
        finally:
            self.state = None
            self._committing = False
        return entry.tab_id if entry is not None else None

    def cancel(self) -> None:
        """Open -> Closed without any effect."""
        if self.state is not None:
            logger.debug("Selection cancelled")
        self.state = None
