from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from core.errors import ExtractionError

DRAFT_FIELDS = {
    "customerName": "customer_name",
    "phone": "phone",
    "address": "address",
    "complaint": "complaint",
    "serviceCategory": "service_category",
}


@dataclass(slots=True)
class ExtractionInput:
    text: str | None = None
    image: bytes | None = None
    mime_type: str | None = None


class DraftExtractor(Protocol):
    """Reads free text or a photo of a message and returns ticket fields.

    Implementations return a mapping keyed by the camelCase names in
    ``DRAFT_FIELDS`` and raise ``ExtractionError`` when the input cannot be
    understood.
    """

    async def extract(self, source: ExtractionInput) -> Mapping[str, Any]: ...


def coerce_draft(raw: Any) -> dict[str, str]:
    """Keep only known string fields; the caller still confirms the prefilled form."""
    if not isinstance(raw, Mapping):
        raise ExtractionError(user_message="The extractor returned something other than an object.")
    draft: dict[str, str] = {}
    for wire_name, field_name in DRAFT_FIELDS.items():
        value = raw.get(wire_name, raw.get(field_name))
        if value is None:
            continue
        text = str(value).strip()
        if text:
            draft[field_name] = text
    if not draft:
        raise ExtractionError()
    return draft
