from tabsnap.assembler import assemble
from tabsnap.models import CandidateEntry, LiveTabView


def entries(*pairs):
    return [CandidateEntry(tab_id=tab_id, last_active=ts) for tab_id, ts in pairs]


def ids(result):
    return [entry.tab_id for entry in result]


def test_active_first_then_descending_recency():
    merged = entries((1, 100), (2, 300), (3, 200))
    assert ids(assemble(1, merged)) == [1, 2, 3]


def test_active_tab_without_capture_is_anchored():
    merged = entries((1, 100), (2, 300), (9, 0))
    assert ids(assemble(9, merged)) == [9, 2, 1]


def test_truncates_after_sorting():
    merged = entries(*[(i, 1000 - i) for i in range(1, 20)]) + entries((99, 1))
    result = assemble(99, merged, max_candidates=5)

    assert ids(result) == [99, 1, 2, 3, 4]


def test_unknown_active_tab_just_sorts_by_recency():
    merged = entries((1, 100), (2, 300))
    assert ids(assemble(None, merged)) == [2, 1]


def test_live_tabs_without_records_sort_last():
    merged = entries((1, 100), (2, 300))
    live = [LiveTabView(tab_id=t, title=f"tab {t}") for t in (1, 2, 5, 6)]

    result = assemble(1, merged, live_tabs=live)

    assert ids(result) == [1, 2, 5, 6]
    assert result[2].last_active == 0
    assert result[2].title == "tab 5"


def test_does_not_mutate_input():
    merged = entries((1, 100), (2, 300))
    assemble(1, merged)
    assert ids(merged) == [1, 2]
