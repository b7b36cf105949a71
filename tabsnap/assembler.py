"""Candidate list assembly for one switcher invocation."""

from typing import Iterable, List, Optional

from .models import CandidateEntry, LiveTabView


def assemble(
    active_tab_id: Optional[int],
    merged_entries: Iterable[CandidateEntry],
    max_candidates: int = 10,
    live_tabs: Optional[Iterable[LiveTabView]] = None,
) -> List[CandidateEntry]:
    """Order candidates for the switcher.

    The active tab always comes first, the rest follow by lastActive
    descending. Entries that were never captured count as lastActive 0.
    Truncation happens after sorting so the active tab is never dropped.

    Args:
        active_tab_id: Tab currently active in the window, if known.
        merged_entries: Output of RecencyStore.get_all_merged_with_live.
        max_candidates: Upper bound on the returned list length.
        live_tabs: When given, live tabs missing from merged_entries are
            added as uncaptured entries so every open tab is reachable.

    Returns:
        A new, ordered list of at most max_candidates entries.
    """
    entries = list(merged_entries)

    if live_tabs is not None:
        known = {entry.tab_id for entry in entries}
        for live in live_tabs:
            if live.tab_id not in known:
                entries.append(CandidateEntry.from_live(live))
                known.add(live.tab_id)

    # sorted() is stable, so equal timestamps keep their input order
    entries = sorted(
        entries,
        key=lambda entry: (
            entry.tab_id == active_tab_id,
            entry.last_active or 0,
        ),
        reverse=True,
    )
    return entries[: max(0, max_candidates)]
