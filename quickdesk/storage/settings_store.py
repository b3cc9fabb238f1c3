"""Settings - a nested configuration object merged with defaults on every read."""

import copy
import json
import logging
from typing import Any

from quickdesk.db.kv_store import KeyValueStore
from quickdesk.storage.errors import InvalidSettingsError
from quickdesk.utils.constants import (
    DEFAULT_SETTINGS,
    LEGACY_THEME_ALIASES,
    NESTED_SETTINGS,
    RETENTION_MAX_DAYS,
    RETENTION_MIN_DAYS,
    SETTINGS_STORAGE_KEY,
    THEMES,
)
from quickdesk.utils.time_utils import days_to_ms

logger = logging.getLogger(__name__)

# Top-level keys written by versions that predate the settings object
LEGACY_KEYS = ("editorTheme", "previewVisible")


class SettingsStore:
    """Reads and writes the settings object in the synced partition."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def get_settings(self) -> dict[str, Any]:
        """Stored settings merged over the defaults (nested groups included)."""
        try:
            stored = await self.kv.get(SETTINGS_STORAGE_KEY, "synced") or {}
            legacy = {key: await self.kv.get(key, "synced") for key in LEGACY_KEYS}
        except json.JSONDecodeError as e:
            logger.error(f"Error loading settings, using defaults: {e}")
            return copy.deepcopy(DEFAULT_SETTINGS)

        if not isinstance(stored, dict):
            logger.warning("Stored settings are not an object, using defaults")
            stored = {}

        merged = _merge(DEFAULT_SETTINGS, stored)

        # Values saved under the old top-level keys fill gaps only
        if legacy["editorTheme"] and "editorTheme" not in stored:
            merged["editorTheme"] = legacy["editorTheme"]
        if legacy["previewVisible"] is not None and "previewVisible" not in merged:
            merged["previewVisible"] = legacy["previewVisible"]

        if not _valid_retention(merged.get("reminderRetentionDays")):
            merged["reminderRetentionDays"] = DEFAULT_SETTINGS["reminderRetentionDays"]

        return merged

    async def save_settings(self, new_settings: dict[str, Any]) -> dict[str, Any]:
        """Merge ``new_settings`` into the current settings and persist them.

        Raises:
            InvalidSettingsError: if the retention period is outside 1-30 days.
        """
        current = await self.get_settings()
        merged = _merge(current, new_settings)

        if not _valid_retention(merged.get("reminderRetentionDays")):
            raise InvalidSettingsError(
                f"Invalid retention period ({RETENTION_MIN_DAYS}-{RETENTION_MAX_DAYS} days)."
            )

        await self.kv.set(SETTINGS_STORAGE_KEY, merged, "synced")
        return merged

    async def retention_ms(self) -> int:
        """How long acknowledged reminders are kept, in milliseconds."""
        settings = await self.get_settings()
        return days_to_ms(settings["reminderRetentionDays"])

    async def load_theme(self) -> str:
        """Saved theme, upgrading retired theme names in place."""
        settings = await self.get_settings()
        theme = settings.get("editorTheme") or THEMES[0]

        if theme in LEGACY_THEME_ALIASES:
            theme = LEGACY_THEME_ALIASES[theme]
            await self.save_settings({"editorTheme": theme})

        return theme

    async def set_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise InvalidSettingsError(f'Invalid theme "{theme}".')
        await self.save_settings({"editorTheme": theme})
        return theme


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = {**copy.deepcopy(base), **copy.deepcopy(override)}
    for key in NESTED_SETTINGS:
        nested = override.get(key)
        merged[key] = {**base.get(key, {}), **(nested if isinstance(nested, dict) else {})}
    return merged


def _valid_retention(days: Any) -> bool:
    return (
        isinstance(days, int)
        and not isinstance(days, bool)
        and RETENTION_MIN_DAYS <= days <= RETENTION_MAX_DAYS
    )
