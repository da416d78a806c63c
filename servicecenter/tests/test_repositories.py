from __future__ import annotations

import pytest

from database.base import Database
from database.repositories import (
    SETTING_COMPLAINT_SHEET_URL,
    SETTING_MASTER_WEBHOOK_URL,
    KeyValueRepository,
    SessionRepository,
    SettingsRepository,
)


@pytest.mark.asyncio
async def test_settings_seed_and_clear(database: Database) -> None:
    settings = SettingsRepository(KeyValueRepository(database))
    await settings.set(SETTING_MASTER_WEBHOOK_URL, "https://stored.example.test")

    await settings.seed({SETTING_MASTER_WEBHOOK_URL: "", SETTING_COMPLAINT_SHEET_URL: "https://sheet.example.test"})
    assert await settings.webhook_url() == "https://stored.example.test"
    assert (await settings.all())[SETTING_COMPLAINT_SHEET_URL] == "https://sheet.example.test"

    await settings.set(SETTING_MASTER_WEBHOOK_URL, "  ")
    assert await settings.webhook_url() == ""


@pytest.mark.asyncio
async def test_unreadable_session_is_discarded(database: Database) -> None:
    kv = KeyValueRepository(database)
    sessions = SessionRepository(kv)

    await kv.set("currentUser", '{"id": "x", "name": "X", "role": "Janitor"}')
    assert await sessions.load() is None

    await kv.set("currentUser", "not json")
    assert await sessions.load() is None
