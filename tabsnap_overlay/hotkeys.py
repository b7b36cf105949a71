"""Hotkey parsing for the hold-to-switch commit.

The browser reports a command shortcut as a display string, which differs per
platform: ``"Alt+Q"`` or ``"Ctrl+Shift+Y"`` elsewhere, ``"⌥Q"`` or ``"⇧⌘Y"`` on
macOS. The overlay needs the set of keys the user is still holding so that
releasing all of them commits the selection.

On macOS the key-up of the final (non-modifier) key of the combination is not
reliably delivered, so that key is left out of the held set by default.
``drop_final_key`` makes this configurable instead of a fixed platform rule.
"""

import sys
from typing import FrozenSet, List, Optional

# Symbols and spelled-out names mapped to canonical modifier names
MODIFIER_ALIASES = {
    "⌘": "meta",
    "command": "meta",
    "cmd": "meta",
    "meta": "meta",
    "super": "meta",
    "⌥": "alt",
    "option": "alt",
    "alt": "alt",
    "⇧": "shift",
    "shift": "shift",
    "⌃": "control",
    "ctrl": "control",
    "control": "control",
    "macctrl": "control",
}

MODIFIER_SYMBOLS = "⌘⌥⇧⌃"


def is_macos(platform: Optional[str] = None) -> bool:
    return (platform or sys.platform) == "darwin"


def normalize_key_name(key: str) -> str:
    """Canonical lower-case name for a key from a shortcut or a key event."""
    if key == " ":
        return "space"
    name = key.strip()
    lowered = name.lower()
    if lowered in MODIFIER_ALIASES:
        return MODIFIER_ALIASES[lowered]
    if name in MODIFIER_ALIASES:
        return MODIFIER_ALIASES[name]
    return lowered


def split_shortcut(shortcut: str) -> List[str]:
    """Split a shortcut string into its key tokens.

    ``"Ctrl+Shift+Y"`` splits on ``+``. Symbol style ``"⌃⇧Space"`` yields each
    leading modifier symbol and then the remainder as one key, so named keys
    such as ``Space`` or ``F2`` stay whole.
    """
    if "+" in shortcut:
        return [part.strip() for part in shortcut.split("+") if part.strip()]

    shortcut = shortcut.strip()
    keys = []
    index = 0
    while index < len(shortcut) and shortcut[index] in MODIFIER_SYMBOLS:
        keys.append(shortcut[index])
        index += 1
    rest = shortcut[index:].strip()
    if rest:
        keys.append(rest)
    return keys


def parse_shortcut_keys(
    shortcut: Optional[str],
    drop_final_key: Optional[bool] = None,
    platform: Optional[str] = None,
) -> FrozenSet[str]:
    """Keys that must all be released to commit a hotkey-opened overlay.

    Args:
        shortcut: Shortcut string as reported by the browser, or None.
        drop_final_key: Leave the last key out of the set. None picks the
            platform default (True on macOS).
        platform: ``sys.platform`` style name, for tests.

    Returns:
        Normalized key names; empty when there is no shortcut.
    """
    if not shortcut:
        return frozenset()

    keys = split_shortcut(shortcut)
    if drop_final_key is None:
        drop_final_key = is_macos(platform)
    if drop_final_key and len(keys) > 1:
        keys = keys[:-1]

    return frozenset(normalize_key_name(key) for key in keys)
