from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from uuid import uuid4

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Toast:
    id: str
    message: str
    kind: str


class ToastFeed:
    """Short user-facing confirmations, read once by the dashboard."""

    def __init__(self, max_items: int = 50) -> None:
        self._items: deque[Toast] = deque(maxlen=max_items)

    def _push(self, message: str, kind: str) -> Toast:
        toast = Toast(id=str(uuid4()), message=message, kind=kind)
        self._items.append(toast)
        LOGGER.debug("Toast %s: %s", kind, message)
        return toast

    def success(self, message: str) -> Toast:
        return self._push(message, "success")

    def error(self, message: str) -> Toast:
        return self._push(message, "error")

    def drain(self) -> list[Toast]:
        items = list(self._items)
        self._items.clear()
        return items
