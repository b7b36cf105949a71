from tabsnap.models import CandidateEntry
from tabsnap_overlay.controller import OverlayController, OverlayHost


def candidates(n=3):
    return [
        CandidateEntry(tab_id=i, title=f"Tab {i}", url=f"https://t{i}.test")
        for i in range(1, n + 1)
    ]


def open_controller(shortcut="Alt+Q", opened_by_hotkey=True, platform="linux", **kwargs):
    activated = []
    controller = OverlayController(
        activated.append,
        shortcut=shortcut,
        opened_by_hotkey=opened_by_hotkey,
        platform=platform,
        **kwargs,
    )
    controller.open(candidates())
    return controller, activated


class FakeClient:
    def __init__(self, candidates=None, shortcut="Alt+Q", messages=None):
        self.candidates = candidates if candidates is not None else [
            {"id": 1, "title": "One", "lastActive": 30},
            {"id": 2, "title": "Two", "lastActive": 20},
            {"id": 3, "title": "Three", "lastActive": 10},
        ]
        self.shortcut = shortcut
        self.messages = list(messages or [])
        self.activated = []
        self.acknowledged = []
        self.connects = 0
        self.disconnects = 0

    def request_tab_data(self):
        data = {"type": "tab_data", "candidates": list(self.candidates)}
        if self.shortcut:
            data["shortcut"] = self.shortcut
        return data

    def activate_tab(self, tab_id):
        self.activated.append(tab_id)

    def connect(self):
        self.connects += 1

    def disconnect(self):
        self.disconnects += 1

    def poll_messages(self):
        messages, self.messages = self.messages, []
        return messages

    def acknowledge_message(self, message_id):
        self.acknowledged.append(message_id)


def test_releasing_all_trigger_keys_commits():
    controller, activated = open_controller()

    controller.on_key_down("ArrowRight")
    controller.on_key_up("Alt")
    assert activated == []
    controller.on_key_up("q")

    assert activated == [3]
    assert not controller.is_open


def test_macos_commits_on_modifier_release_alone():
    controller, activated = open_controller(shortcut="⌥Q", platform="darwin")

    controller.on_key_up("Alt")

    assert activated == [2]


def test_enter_then_release_activates_once():
    controller, activated = open_controller()

    controller.on_key_down("Enter")
    controller.on_key_up("Alt")
    controller.on_key_up("q")

    assert activated == [2]


def test_escape_cancels_without_activation():
    controller, activated = open_controller()
    controller.on_key_down("Escape")
    controller.on_key_up("Alt")
    controller.on_key_up("q")

    assert activated == []
    assert not controller.is_open


def test_not_opened_by_hotkey_never_commits_on_release():
    controller, activated = open_controller(opened_by_hotkey=False)

    controller.on_key_up("Alt")
    assert controller.is_open
    assert activated == []


def test_typing_filters_only_when_no_keys_held():
    controller, activated = open_controller(opened_by_hotkey=False)

    controller.on_key_down("3")
    assert [e.tab_id for e in controller.machine.state.filtered] == [3]
    controller.on_key_down("Backspace")
    assert len(controller.machine.state.filtered) == 3

    held, _ = open_controller()
    held.on_key_down("3")
    assert held.machine.state.search_query == ""


def test_pressing_trigger_key_again_keeps_hold():
    controller, activated = open_controller()
    controller.on_key_up("q")
    controller.on_key_down("q")
    controller.on_key_up("Alt")

    assert controller.is_open
    controller.on_key_up("q")
    assert activated == [2]


def test_messages_drive_selection():
    controller, activated = open_controller(opened_by_hotkey=False)

    controller.on_message({"type": "advance_selection"})
    assert controller.machine.state.cursor == 2
    controller.on_message({"type": "popup_select_prev"})
    controller.on_message({"type": "popup_select_prev"})
    assert controller.machine.state.cursor == 0
    controller.on_message({"type": "bogus"})
    controller.on_message({"type": "popup_commit"})

    assert activated == [1]


def test_hidden_overlay_cancels():
    controller, activated = open_controller()
    controller.on_visibility_change(True)
    controller.on_key_up("Alt")
    controller.on_key_up("q")

    assert activated == []


def test_on_close_called_once_per_overlay():
    closed = []
    controller, _ = open_controller(on_close=closed.append)

    controller.commit()
    controller.dispose()

    assert closed == [controller]


def test_new_controller_tears_down_previous():
    first, first_activated = open_controller()
    second, second_activated = open_controller(teardown_previous=first.dispose)

    # Stale key-up from the first overlay's hold must not activate anything
    first.on_key_up("Alt")
    first.on_key_up("q")
    assert first_activated == []
    assert not first.is_open
    assert second.is_open


def test_render_data():
    controller, _ = open_controller()
    render = controller.get_render_data()

    assert render["selected"] == 1
    assert [item["id"] for item in render["items"]] == [1, 2, 3]
    assert render["items"][0]["label"] == "Tab 1"
    assert render["total_count"] == 3


def test_host_opens_on_show_switcher_and_acknowledges():
    client = FakeClient(messages=[{"id": 7, "type": "show_switcher"}])
    host = OverlayHost(client, platform="linux")

    assert host.poll_once() == 1
    assert client.acknowledged == [7]
    assert host.controller is not None
    assert client.connects == 1
    assert host.controller.trigger_keys == {"alt", "q"}


def test_host_forwards_advance_to_open_overlay():
    client = FakeClient()
    host = OverlayHost(client, platform="linux")
    host.open_overlay()

    client.messages = [
        {"id": 1, "type": "advance_selection"},
        {"id": 2, "type": "show_switcher"},
    ]
    host.poll_once()
    host.on_key_up("Alt")
    host.on_key_up("q")

    # cursor 1 -> 2 -> 0 (wrap), then release commits
    assert client.activated == [1]
    assert host.controller is None
    assert client.disconnects == 1


def test_host_reopen_replaces_controller():
    client = FakeClient()
    host = OverlayHost(client, platform="linux")
    first = host.open_overlay()
    second = host.open_overlay()

    assert not first.is_open
    assert host.controller is second
    assert client.disconnects == 0

    host.close_overlay()
    assert host.controller is None
    assert client.disconnects == 1


def test_host_skips_malformed_candidates():
    client = FakeClient(candidates=[{"id": 1, "title": "ok"}, {"title": "no id"}, "junk"])
    host = OverlayHost(client, platform="linux")

    controller = host.open_overlay()

    assert [e.tab_id for e in controller.machine.state.candidates] == [1]


def test_coordinator_setting_drops_final_key():
    client = FakeClient()
    client.request_tab_data = lambda: {
        "candidates": [{"id": 1}, {"id": 2}],
        "shortcut": "Alt+Q",
        "dropFinalKey": True,
    }
    host = OverlayHost(client, platform="linux")

    assert host.open_overlay().trigger_keys == {"alt"}

    local = OverlayHost(client, drop_final_key=False, platform="linux")
    assert local.open_overlay().trigger_keys == {"alt", "q"}


def test_symbol_shortcut_with_named_key_commits_on_modifier_release():
    controller, activated = open_controller(shortcut="⌃⇧Space", platform="darwin")

    controller.on_key_up("Shift")
    assert controller.is_open
    controller.on_key_up("Control")

    assert activated == [2]
