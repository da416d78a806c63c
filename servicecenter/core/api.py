from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response

from core.app import ServiceCenterApp
from core.errors import handle_unexpected_error, install_error_handlers
from views import dashboard, proxy

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def create_api_app(service_center: ServiceCenterApp) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await service_center.setup()
        try:
            yield
        finally:
            await service_center.close()

    app = FastAPI(title="Service Center Dashboard API", version="1.0.0", lifespan=lifespan)
    app.state.service_center = service_center
    install_error_handlers(app)

    @app.middleware("http")
    async def permissive_cors(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            try:
                response = await call_next(request)
            except Exception as exc:
                response = await handle_unexpected_error(request, exc)
        response.headers.update(CORS_HEADERS)
        return response

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(proxy.router)
    app.include_router(dashboard.router)
    return app
