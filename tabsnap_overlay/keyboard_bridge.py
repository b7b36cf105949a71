"""Feeds global key events from pynput into the overlay host."""

import logging
import threading
from typing import Any, Optional

logger = logging.getLogger("TabSnap.Overlay.Keyboard")

# pynput Key names -> DOM style key names understood by the controller
_SPECIAL_KEYS = {
    "alt": "Alt",
    "alt_l": "Alt",
    "alt_r": "Alt",
    "alt_gr": "Alt",
    "cmd": "Meta",
    "cmd_l": "Meta",
    "cmd_r": "Meta",
    "ctrl": "Control",
    "ctrl_l": "Control",
    "ctrl_r": "Control",
    "shift": "Shift",
    "shift_l": "Shift",
    "shift_r": "Shift",
    "right": "ArrowRight",
    "left": "ArrowLeft",
    "up": "ArrowUp",
    "down": "ArrowDown",
    "enter": "Enter",
    "esc": "Escape",
    "backspace": "Backspace",
    "tab": "Tab",
    "space": " ",
}


def key_name(key: Any) -> Optional[str]:
    """DOM style name for a pynput key, or None if it has no useful name.

    With Control held, pynput reports letters as control characters
    (Ctrl+Q gives "\\x11"); those are named by their virtual key code.
    """
    char = getattr(key, "char", None)
    if char and char.isprintable():
        return char
    name = getattr(key, "name", None)
    if name:
        return _SPECIAL_KEYS.get(name, name)
    vk = getattr(key, "vk", None)
    if isinstance(vk, int) and _is_letter_or_digit_code(vk):
        return chr(vk).lower()
    if char and len(char) == 1 and 1 <= ord(char) <= 26:
        return chr(ord(char) + ord("a") - 1)
    return None


def _is_letter_or_digit_code(vk: int) -> bool:
    # Windows uses upper case codes, X11 keysyms are the characters themselves
    return 0x30 <= vk <= 0x39 or 0x41 <= vk <= 0x5A or 0x61 <= vk <= 0x7A


class KeyboardBridge:
    """Runs a pynput listener and forwards presses/releases to an OverlayHost."""

    def __init__(self, host):
        self.host = host
        self._listener = None
        # Host state is touched from the listener thread and the poll loop
        self.lock = threading.RLock()

    def _on_press(self, key) -> None:
        name = key_name(key)
        if name is None:
            return
        with self.lock:
            self.host.on_key_down(name)

    def _on_release(self, key) -> None:
        name = key_name(key)
        if name is None:
            return
        with self.lock:
            self.host.on_key_up(name)

    def start(self) -> bool:
        try:
            from pynput import keyboard
        except Exception as e:
            logger.error(f"pynput keyboard import failed: {e}")
            return False

        try:
            self._listener = keyboard.Listener(
                on_press=self._on_press, on_release=self._on_release
            )
            self._listener.start()
        except Exception as e:
            logger.error(f"Keyboard listener failed to start: {e}")
            return False

        logger.info("Keyboard listener started")
        return True

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
