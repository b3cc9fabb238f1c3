"""Tests for the settings store."""

import asyncio

import pytest

from quickdesk.storage.errors import InvalidSettingsError
from quickdesk.storage.settings_store import SettingsStore
from quickdesk.utils.constants import DAY_MS, DEFAULT_SETTINGS, SETTINGS_STORAGE_KEY


def test_defaults_when_nothing_stored(open_kv):
    async def scenario():
        async with open_kv() as kv:
            settings = await SettingsStore(kv).get_settings()

            assert settings == DEFAULT_SETTINGS
            assert settings is not DEFAULT_SETTINGS

    asyncio.run(scenario())


def test_nested_groups_merge_with_defaults(open_kv):
    """A partial nested group keeps the defaults it does not override."""

    async def scenario():
        async with open_kv() as kv:
            await kv.set(
                SETTINGS_STORAGE_KEY,
                {"toolbarButtons": {"emoji": False}, "uiSettings": {"uiFontSize": 16}},
            )

            settings = await SettingsStore(kv).get_settings()

            assert settings["toolbarButtons"]["emoji"] is False
            assert settings["toolbarButtons"]["link"] is True
            assert settings["uiSettings"] == {"iconSize": 1.0, "uiFontSize": 16, "editorFontSize": 14}
            assert settings["reminderRetentionDays"] == 7

    asyncio.run(scenario())


def test_save_validates_retention(open_kv):
    async def scenario():
        async with open_kv() as kv:
            store = SettingsStore(kv)

            for days in (0, 31, "7", True):
                with pytest.raises(InvalidSettingsError):
                    await store.save_settings({"reminderRetentionDays": days})

            saved = await store.save_settings({"reminderRetentionDays": 30})
            assert saved["reminderRetentionDays"] == 30
            assert await store.retention_ms() == 30 * DAY_MS

    asyncio.run(scenario())


def test_invalid_stored_retention_falls_back(open_kv):
    async def scenario():
        async with open_kv() as kv:
            await kv.set(SETTINGS_STORAGE_KEY, {"reminderRetentionDays": 400})

            assert await SettingsStore(kv).retention_ms() == 7 * DAY_MS

    asyncio.run(scenario())


def test_legacy_theme_key_fills_gap(open_kv):
    async def scenario():
        async with open_kv() as kv:
            await kv.set("editorTheme", "forest")

            settings = await SettingsStore(kv).get_settings()

            assert settings["editorTheme"] == "forest"

    asyncio.run(scenario())


def test_light_theme_is_upgraded(open_kv):
    async def scenario():
        async with open_kv() as kv:
            store = SettingsStore(kv)
            await kv.set(SETTINGS_STORAGE_KEY, {"editorTheme": "light"})

            assert await store.load_theme() == "padrao"
            assert (await kv.get(SETTINGS_STORAGE_KEY))["editorTheme"] == "padrao"

            assert await store.set_theme("lumen") == "lumen"
            with pytest.raises(InvalidSettingsError):
                await store.set_theme("neon")

    asyncio.run(scenario())
