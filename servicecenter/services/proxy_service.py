from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp

from core.config import N8nConfig
from core.errors import UpstreamError

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], aiohttp.ClientSession]

# "read" is kept as an alias for the complaint sheet.
READ_ALIASES = {"read": "read-complaint"}


@dataclass(slots=True)
class ProxyResult:
    status: int
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body or b"null")


def _default_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None))


class N8nProxy:
    """Forwards dashboard calls to the automation server.

    Read actions map to their own read webhook and are POSTed without a body.
    Anything else is treated as a submission and its JSON body is POSTed to
    the submit webhook. Upstream status and body come back untouched.
    """

    def __init__(self, config: N8nConfig, session_factory: SessionFactory = _default_session) -> None:
        self.config = config
        self.session_factory = session_factory

    def read_path(self, action: str | None) -> str | None:
        if action is None:
            return None
        return self.config.read_paths.get(READ_ALIASES.get(action, action))

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _post(self, url: str, payload: Any | None, failure: str) -> ProxyResult:
        try:
            async with self.session_factory() as session:
                kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json"}}
                if payload is not None:
                    kwargs["data"] = json.dumps(payload)
                async with session.post(url, **kwargs) as response:
                    body = await response.read()
                    status = response.status
        except aiohttp.ClientError as exc:
            LOGGER.error("Upstream call failed. url=%s error=%s", url, exc)
            raise UpstreamError(user_message=failure, detail=str(exc)) from exc

        LOGGER.info("Upstream answered. url=%s status=%s bytes=%s", url, status, len(body))
        return ProxyResult(status=status, body=body)

    async def read(self, action: str) -> ProxyResult:
        path = self.read_path(action)
        if path is None:
            raise UpstreamError(user_message=f"Unknown read action: {action}")
        return await self._post(self._url(path), None, "Failed to read data from n8n")

    async def submit(self, payload: Any) -> ProxyResult:
        return await self._post(self._url(self.config.submit_path), payload, "Webhook failed")

    async def forward(self, action: str | None, body: bytes) -> ProxyResult:
        path = self.read_path(action)
        if path is not None:
            return await self._post(self._url(path), None, "Failed to read data from n8n")
        payload = json.loads(body) if body else {}
        return await self.submit(payload)
