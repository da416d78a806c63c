from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any

import aiohttp

from core.config import WebhookConfig
from services.toasts import ToastFeed
from utils.constants import ACTION_HEALTH_CHECK

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], aiohttp.ClientSession]
UrlProvider = Callable[[], Awaitable[str]]


class WebhookStatus(str, Enum):
    UNKNOWN = "Unknown"
    CONNECTED = "Connected"
    ERROR = "Error"


def _default_session() -> aiohttp.ClientSession:
    # Outbound calls are never cut short; a hung request simply never reports back.
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))


class WebhookNotifier:
    """Best-effort POSTs of ``{"action": ..., "data": {...}}`` to the master webhook.

    ``notify`` schedules the send on the running loop and returns at once.
    Delivery is not retried and failures never reach the caller; any HTTP
    response, whatever its status code, counts as delivered. Only
    ``check_health`` reports problems, through ``status`` and an error toast.
    """

    def __init__(
        self,
        config: WebhookConfig,
        url_provider: UrlProvider,
        toasts: ToastFeed,
        session_factory: SessionFactory = _default_session,
    ) -> None:
        self.config = config
        self.url_provider = url_provider
        self.toasts = toasts
        self.session_factory = session_factory
        self.status = WebhookStatus.UNKNOWN
        self._pending: set[asyncio.Task[None]] = set()

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "X-App-Source": self.config.app_source}

    @staticmethod
    def _label(action: str) -> str:
        return action.replace("_", " ").lower()

    def notify(self, action: str, data: Mapping[str, Any]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self.send(action, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def send(self, action: str, data: Mapping[str, Any]) -> None:
        body = {"action": action, "data": dict(data)}
        url = await self.url_provider()
        if not url:
            LOGGER.info(
                "Master webhook not configured, simulating %s: %s",
                action,
                json.dumps(body, default=str),
                extra={"action": action},
            )
            self.toasts.success(f'Automation for "{self._label(action)}" is in simulation mode.')
            return

        try:
            async with self.session_factory() as session:
                async with session.post(url, json=body, headers=self._headers()) as response:
                    status_code = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning("Webhook delivery failed. action=%s error=%s", action, exc, extra={"action": action})
            return

        if status_code >= 400:
            LOGGER.warning(
                "Webhook answered %s for action=%s; reporting as sent", status_code, action, extra={"action": action}
            )
        else:
            LOGGER.info("Webhook delivered. action=%s status=%s", action, status_code, extra={"action": action})
        self.status = WebhookStatus.CONNECTED
        self.toasts.success(f'Automation for "{self._label(action)}" triggered!')

    async def check_health(self, url_override: str | None = None) -> WebhookStatus:
        url = url_override if url_override is not None else await self.url_provider()
        if not url:
            self.toasts.error("Please enter a Master Webhook URL first.")
            self.status = WebhookStatus.UNKNOWN
            return self.status

        try:
            async with self.session_factory() as session:
                async with session.post(
                    url, json={"action": ACTION_HEALTH_CHECK}, headers=self._headers()
                ) as response:
                    ok = response.ok
                    status_code = response.status
                    text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            LOGGER.warning("Webhook health check failed: %s", exc)
            return self._health_failed("Connection failed. Ensure the automation scenario is ON.")

        if "Accepted" in text and len(text) < 50:
            return self._health_failed(
                "The webhook accepted the check but did not reply. Add a webhook response step."
            )
        try:
            reply = json.loads(text)
        except json.JSONDecodeError:
            return self._health_failed(f'Webhook returned "{text[:80]}" instead of JSON.')
        if not ok:
            return self._health_failed(f"Webhook responded with status: {status_code}")
        if not isinstance(reply, dict) or reply.get("status") != "ok":
            return self._health_failed(f"Webhook responded, but status was not 'ok'. Got: {reply!r}")

        self.status = WebhookStatus.CONNECTED
        self.toasts.success("Success! Automation system is online and ready.")
        return self.status

    def _health_failed(self, message: str) -> WebhookStatus:
        LOGGER.warning("Webhook health check: %s", message)
        self.toasts.error(message)
        self.status = WebhookStatus.ERROR
        return self.status

    async def drain(self) -> None:
        """Wait for in-flight sends; used at shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
