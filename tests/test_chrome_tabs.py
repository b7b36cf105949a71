import pytest

from tabsnap.models import LiveTabView
from tabsnap.tab_enumerators import ChromeTabManager


class SecondsClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def tab_payload(tab_id, window_id=1, active=False, url=None):
    return {
        "id": tab_id,
        "windowId": window_id,
        "title": f"Tab {tab_id}",
        "url": url or f"https://t{tab_id}.test",
        "active": active,
        "status": "complete",
    }


@pytest.fixture
def manager():
    return ChromeTabManager(clock=SecondsClock())


def test_update_tabs_accepts_only_well_formed(manager):
    accepted = manager.update_tabs(
        [tab_payload(1), {"title": "no id"}, "junk", tab_payload(2)],
        focused_window_id=1,
    )

    assert accepted == 2
    assert [t.tab_id for t in manager.enumerate_live_tabs()] == [1, 2]


def test_current_window_scope(manager):
    manager.update_tabs(
        [tab_payload(1, 1), tab_payload(2, 1, active=True), tab_payload(3, 2, active=True)],
        focused_window_id=1,
    )

    assert [t.tab_id for t in manager.enumerate_live_tabs("current_window")] == [1, 2]
    assert sorted(t.tab_id for t in manager.enumerate_live_tabs("all")) == [1, 2, 3]
    assert manager.get_active_tab().tab_id == 2


def test_unknown_scope_raises(manager):
    with pytest.raises(ValueError):
        manager.enumerate_live_tabs("everything")


def test_upsert_active_tab_moves_focus_and_deactivates_others(manager):
    manager.update_tabs([tab_payload(1, 1, active=True), tab_payload(2, 2)], focused_window_id=1)

    manager.upsert_tab(LiveTabView(tab_id=2, window_id=2, active=True))
    manager.upsert_tab(LiveTabView(tab_id=4, window_id=2, active=True))

    assert manager.get_active_tab().tab_id == 4
    assert manager.get_tab(2).active is False


def test_upsert_moves_tab_between_windows(manager):
    manager.update_tabs([tab_payload(1, 1), tab_payload(2, 1)], focused_window_id=1)

    manager.upsert_tab(LiveTabView(tab_id=2, window_id=5))

    assert [t.tab_id for t in manager.enumerate_live_tabs()] == [1]
    assert manager.get_tab(2).window_id == 5


def test_remove_tab(manager):
    manager.update_tabs([tab_payload(1)], focused_window_id=1)

    assert manager.remove_tab(1)
    assert not manager.remove_tab(1)
    assert manager.get_tab(1) is None


def test_quiet_period_keeps_tabs():
    clock = SecondsClock()
    manager = ChromeTabManager(clock=clock)
    manager.update_tabs([tab_payload(1), tab_payload(2, active=True)], focused_window_id=1)

    clock.now += 3600

    assert manager.is_available()
    assert [t.tab_id for t in manager.enumerate_live_tabs()] == [1, 2]
    assert manager.get_active_tab().tab_id == 2


def test_empty_push_still_counts_as_available(manager):
    assert not manager.is_available()

    manager.update_tabs([], focused_window_id=1)

    assert manager.is_available()
    assert manager.enumerate_live_tabs() == []


def test_closing_last_tab_drops_its_window(manager):
    manager.update_tabs(
        [tab_payload(1, 1, active=True), tab_payload(2, 2, active=True)],
        focused_window_id=1,
    )

    assert manager.remove_tab(1)

    assert [t.tab_id for t in manager.enumerate_live_tabs("current_window")] == [2]
    assert [t.tab_id for t in manager.enumerate_live_tabs("all")] == [2]


def test_full_push_replaces_closed_tabs(manager):
    manager.update_tabs([tab_payload(1), tab_payload(2)], focused_window_id=1)

    manager.update_tabs([tab_payload(2)], focused_window_id=1)

    assert manager.get_tab(1) is None
    assert [t.tab_id for t in manager.enumerate_live_tabs()] == [2]


def test_shortcuts(manager):
    manager.update_tabs([], shortcuts={"open_switcher": "Alt+Q", "bad": None})

    assert manager.get_shortcut_for("open_switcher") == "Alt+Q"
    assert manager.get_shortcut_for("bad") is None
    assert manager.get_shortcut_for("missing") is None
