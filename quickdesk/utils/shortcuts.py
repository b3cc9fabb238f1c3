"""Keyboard shortcut normalization."""

from quickdesk.utils.constants import PROTECTED_SHORTCUTS

MODIFIERS = ("alt", "ctrl", "shift")
_ALIASES = {"control": "ctrl", "option": "alt"}


def normalize_shortcut(combination: str) -> str:
    """Normalize a modifier+key combination.

    Modifiers are lower-cased, de-duplicated and sorted alphabetically, and the
    main key goes last, so "Shift+Ctrl+K" becomes "ctrl+shift+k". An empty
    string stays empty.

    Raises:
        ValueError: if there is no main key, more than one, or no modifier
            (function keys excepted).
    """
    combination = (combination or "").strip().lower()
    if not combination:
        return ""

    parts = [_ALIASES.get(p.strip(), p.strip()) for p in combination.split("+")]
    modifiers = sorted({p for p in parts if p in MODIFIERS})
    keys = [p for p in parts if p and p not in MODIFIERS]

    if len(keys) != 1:
        raise ValueError(f"Shortcut '{combination}' must have exactly one main key")

    key = keys[0]
    if not modifiers and not _is_function_key(key):
        raise ValueError(f"Shortcut '{combination}' needs at least one modifier")

    return "+".join([*modifiers, key])


def is_protected(shortcut: str) -> bool:
    """True when a normalized shortcut belongs to the browser or OS."""
    return shortcut in PROTECTED_SHORTCUTS


def _is_function_key(key: str) -> bool:
    return key.startswith("f") and key[1:].isdigit()
