from __future__ import annotations

import json
import logging
from typing import Any

from database.base import Database
from database.models import SessionUser, UserRole

LOGGER = logging.getLogger(__name__)

SETTING_MASTER_WEBHOOK_URL = "masterWebhookUrl"
SETTING_COMPLAINT_SHEET_URL = "complaintSheetUrl"
SETTING_UPDATE_SHEET_URL = "updateSheetUrl"


def _json_load(value: str | None, default: Any) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=True, separators=(",", ":"))


class KeyValueRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, key: str) -> str | None:
        row = await self.db.fetchone("SELECT value FROM key_value_store WHERE key = ?;", [key])
        return None if row is None else str(row["value"])

    async def set(self, key: str, value: str) -> None:
        await self.db.execute(
            """
            INSERT INTO key_value_store(key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP;
            """,
            [key, value],
        )

    async def delete(self, key: str) -> None:
        await self.db.execute("DELETE FROM key_value_store WHERE key = ?;", [key])


class SessionRepository:
    """Keeps the logged-in user in a single fixed slot."""

    def __init__(self, kv: KeyValueRepository, storage_key: str = "currentUser") -> None:
        self.kv = kv
        self.storage_key = storage_key

    async def save(self, user: SessionUser) -> None:
        await self.kv.set(
            self.storage_key,
            _json_dump({"id": user.id, "name": user.name, "role": user.role.value}),
        )

    async def load(self) -> SessionUser | None:
        payload = _json_load(await self.kv.get(self.storage_key), None)
        if not isinstance(payload, dict):
            return None
        try:
            return SessionUser(id=str(payload["id"]), name=str(payload["name"]), role=UserRole(payload["role"]))
        except (KeyError, ValueError):
            LOGGER.warning("Discarding unreadable stored session under %s", self.storage_key)
            return None

    async def clear(self) -> None:
        await self.kv.delete(self.storage_key)


class SettingsRepository:
    def __init__(self, kv: KeyValueRepository) -> None:
        self.kv = kv

    async def get(self, key: str) -> str:
        return (await self.kv.get(key)) or ""

    async def set(self, key: str, value: str) -> None:
        cleaned = value.strip()
        if cleaned:
            await self.kv.set(key, cleaned)
        else:
            await self.kv.delete(key)

    async def all(self) -> dict[str, str]:
        return {
            key: await self.get(key)
            for key in (SETTING_MASTER_WEBHOOK_URL, SETTING_COMPLAINT_SHEET_URL, SETTING_UPDATE_SHEET_URL)
        }

    async def seed(self, values: dict[str, str]) -> None:
        # Configured values win over whatever a previous run stored.
        for key, value in values.items():
            if value:
                await self.set(key, value)

    async def webhook_url(self) -> str:
        return await self.get(SETTING_MASTER_WEBHOOK_URL)
