from __future__ import annotations

import contextlib
import time
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from relay.messaging.protocol import ConnectionProtocol
from relay.messaging.types import ErrorCode, parse_client_message

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Callable

    from relay.messaging.router import MessageRouter
    from relay.server.settings import RelayServerSettings


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_text(self) -> str:
        try:
            return await self._websocket.receive_text()
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


def _origin_allowed(websocket: WebSocket, settings: RelayServerSettings) -> bool:
    if not settings.ws_allowed_origin:
        return True
    return websocket.headers.get("origin", "") == settings.ws_allowed_origin


class MessageThrottle:
    """Per-connection limit of ``rate`` messages/second with ``burst`` slack.

    Tracks a single theoretical arrival time instead of a token count: each
    accepted message pushes it one interval later, and a message is refused
    while it sits more than ``burst - 1`` intervals ahead of now.
    """

    def __init__(self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic) -> None:
        self._interval = 1.0 / rate
        self._slack = self._interval * (burst - 1) + 1e-9  # float drift over a full burst
        self._clock = clock
        self._due = clock()

    def allow(self) -> bool:
        now = self._clock()
        due = max(self._due, now)
        if due - now > self._slack:
            return False
        self._due = due + self._interval
        return True


async def websocket_endpoint(
    websocket: WebSocket,
    router: MessageRouter,
    settings: RelayServerSettings,
) -> None:
    if not _origin_allowed(websocket, settings):
        await websocket.close(code=4003, reason="forbidden_origin")
        return

    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    throttle = MessageThrottle(settings.rate_limit_per_second, settings.rate_limit_burst)
    decode_errors = 0

    try:
        while True:
            raw = await connection.receive_text()

            # Parse before throttling so malformed floods still hit the strike counter.
            try:
                message = parse_client_message(raw, max_bytes=settings.max_message_bytes)
            except (ValueError, ValidationError) as e:
                decode_errors += 1
                logger.warning("invalid message", error=str(e), strikes=decode_errors)
                await router.send_error(connection, ErrorCode.INVALID_MESSAGE, str(e))
                if decode_errors >= settings.max_decode_errors:
                    logger.info("too many invalid messages, disconnecting")
                    await connection.close(code=4004, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0

            if not throttle.allow():
                await router.send_error(connection, ErrorCode.RATE_LIMITED, "Too many messages")
                continue
            await router.handle_message(connection, message)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    except Exception:  # pragma: no cover - unexpected failure in routing
        logger.exception("unexpected error in relay websocket")
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
