from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from core.app import ServiceCenterApp
from core.errors import UpstreamError, error_envelope
from utils.decorators import get_service_center

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.api_route("/api/n8n-proxy", methods=["GET", "POST"])
async def n8n_proxy(
    request: Request,
    action: str | None = None,
    service_center: ServiceCenterApp = Depends(get_service_center),
) -> Response:
    body = await request.body()
    try:
        result = await service_center.proxy.forward(action, body)
    except UpstreamError as exc:
        return JSONResponse(status_code=500, content=error_envelope(exc.user_message, error=exc.detail))
    except json.JSONDecodeError as exc:
        LOGGER.warning("Proxy received a body that is not JSON: %s", exc)
        return JSONResponse(status_code=500, content=error_envelope("Internal error", error=str(exc)))
    return Response(content=result.body, status_code=result.status, media_type="application/json")
