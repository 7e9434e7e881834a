from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from pairing.codes import CodePool
from pairing.registry import RoomRegistry
from relay.messaging.router import MessageRouter
from relay.server.settings import RelayServerSettings
from relay.server.websocket import websocket_endpoint
from shared.build_info import APP_VERSION, GIT_COMMIT
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION, "commit": GIT_COMMIT})


async def status(request: Request) -> JSONResponse:
    registry: RoomRegistry = request.app.state.registry
    router: MessageRouter = request.app.state.router
    return JSONResponse(
        {
            "status": "ok",
            "rooms": registry.room_count,
            "free_codes": registry.code_pool.free_count,
            "minted_codes": registry.code_pool.minted_count,
            "connections": router.connection_count,
        },
    )


def create_app(
    settings: RelayServerSettings | None = None,
    registry: RoomRegistry | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = RelayServerSettings()

    if registry is None:
        registry = RoomRegistry(
            CodePool(size=settings.code_pool_size, max_attempts=settings.code_max_attempts),
            room_ttl_seconds=settings.room_ttl_seconds,
        )

    router = MessageRouter(registry)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, router, settings)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        registry.start_reaper()
        yield
        await registry.stop_reaper()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.router = router

    logger.info("relay server ready", free_codes=registry.code_pool.free_count)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory relay.server.app:get_app)."""
    settings = RelayServerSettings()
    setup_logging(json_mode=settings.log_format == "json", level=settings.log_level)
    return create_app(settings=settings)
