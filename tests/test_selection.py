import pytest

from tabsnap.models import CandidateEntry
from tabsnap_overlay.selection import SelectionMachine, SelectionState, filter_candidates


def candidates(*titles):
    return [
        CandidateEntry(tab_id=i + 1, title=title, url=f"https://{title.lower()}.test")
        for i, title in enumerate(titles)
    ]


def make_machine():
    activated = []
    return SelectionMachine(activated.append), activated


def test_initial_cursor_is_previous_tab():
    assert SelectionState.initial(candidates("A", "B", "C")).cursor == 1
    assert SelectionState.initial(candidates("A")).cursor == 0
    assert SelectionState.initial([]).cursor == 0


def test_advance_wraps_around():
    machine, _ = make_machine()
    machine.open(candidates("A", "B", "C"))

    for _ in range(5):
        machine.advance(1)

    # 1 + 5 mod 3
    assert machine.state.cursor == 0
    machine.advance(-1)
    assert machine.state.cursor == 2


@pytest.mark.parametrize("n", range(1, 6))
def test_advancing_once_per_candidate_returns_to_start(n):
    machine, _ = make_machine()
    machine.open(candidates(*"ABCDE"[:n]))
    start = machine.state.cursor

    for _ in range(n):
        machine.advance(1)

    assert machine.state.cursor == start
    assert machine.state.selected() is machine.state.filtered[start]


def test_advance_on_empty_list_is_noop():
    machine, _ = make_machine()
    machine.open([])
    machine.advance(1)
    assert machine.state.cursor == 0


def test_filter_matches_title_or_url_case_insensitive():
    entries = candidates("Mail", "Docs", "News")
    assert [e.title for e in filter_candidates(entries, "DOC")] == ["Docs"]
    assert [e.title for e in filter_candidates(entries, "news.test")] == ["News"]
    assert len(filter_candidates(entries, "  ")) == 3


def test_filter_clamps_cursor():
    machine, _ = make_machine()
    machine.open(candidates("Alpha", "Beta", "Gamma", "Delta"))
    machine.advance(1)
    machine.advance(1)
    assert machine.state.cursor == 3

    machine.filter("a")
    # Alpha, Beta, Gamma, Delta all contain "a"
    assert machine.state.cursor == 3
    machine.filter("ta")
    assert [e.title for e in machine.state.filtered] == ["Beta", "Delta"]
    assert machine.state.cursor == 1


def test_filter_to_nothing_keeps_cursor_in_previous_range():
    machine, activated = make_machine()
    machine.open(candidates("A", "B", "C"))
    machine.advance(1)

    machine.filter("zzz")

    assert machine.state.filtered == []
    assert machine.state.cursor == 2
    assert machine.state.selected() is None
    assert machine.commit() is None
    assert activated == []
    assert not machine.is_open


def test_commit_emits_selected_once():
    machine, activated = make_machine()
    machine.open(candidates("A", "B", "C"))

    assert machine.commit() == 2
    assert machine.commit() is None
    assert activated == [2]
    assert not machine.is_open


def test_reentrant_commit_is_ignored():
    activated = []

    def on_activate(tab_id):
        activated.append(tab_id)
        machine.commit()

    machine = SelectionMachine(on_activate)
    machine.open(candidates("A", "B"))

    machine.commit()

    assert activated == [2]


def test_cancel_emits_nothing():
    machine, activated = make_machine()
    machine.open(candidates("A", "B"))

    machine.cancel()

    assert activated == []
    assert not machine.is_open


def test_operations_on_closed_machine_do_nothing():
    machine, activated = make_machine()
    machine.advance(1)
    machine.filter("x")
    assert machine.commit() is None
    assert activated == []
