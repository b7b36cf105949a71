import pytest

from tabsnap.message_router import (
    ADVANCE_SELECTION,
    SHOW_SWITCHER,
    MessageRouter,
    OverlayChannel,
)


class SecondsClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_dispatch_to_registered_handler():
    router = MessageRouter()
    router.register("ping", lambda message: {"pong": message.get("n")})

    assert router.dispatch({"type": "ping", "n": 3}) == {"pong": 3}


@pytest.mark.parametrize("message", [None, "ping", {"no": "type"}, {"type": 5}, {"type": "nobody"}])
def test_malformed_and_unknown_messages_are_dropped(message):
    router = MessageRouter()
    router.register("ping", lambda message: {"pong": True})

    assert router.dispatch(message) is None


def test_channel_queue_and_acknowledge():
    channel = OverlayChannel(clock=SecondsClock())
    first = channel.post(SHOW_SWITCHER)
    second = channel.post(ADVANCE_SELECTION)

    assert [m["id"] for m in channel.poll()] == [first, second]
    assert channel.acknowledge(first)
    assert not channel.acknowledge(first)
    assert [m["type"] for m in channel.poll()] == [ADVANCE_SELECTION]


def test_channel_rejects_unknown_type():
    with pytest.raises(ValueError):
        OverlayChannel().post("reload_everything")


def test_disconnect_discards_selection_messages():
    channel = OverlayChannel(clock=SecondsClock())
    channel.connect()
    channel.post(ADVANCE_SELECTION)
    channel.post(SHOW_SWITCHER)

    channel.disconnect()

    assert [m["type"] for m in channel.poll()] == [SHOW_SWITCHER]
    assert not channel.overlay_open()


def test_overlay_open_requires_polling_host():
    clock = SecondsClock()
    channel = OverlayChannel(idle_timeout_s=5.0, clock=clock)
    assert not channel.host_alive()

    channel.connect()
    assert channel.overlay_open()

    clock.now = 6.0
    assert not channel.host_alive()
    assert not channel.overlay_open()

    channel.poll()
    assert channel.overlay_open()
