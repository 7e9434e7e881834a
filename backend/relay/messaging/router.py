"""Dispatch client messages to the room registry."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from pairing.codes import CodePoolExhaustedError, is_valid_code
from pairing.models import Association, JoinResult, JoinStatus, LeaveResult
from relay.messaging.types import (
    CreateRoomMessage,
    ErrorCode,
    ErrorMessage,
    JoinResultMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    PeerLeftMessage,
    PingMessage,
    PongMessage,
    RelayedMessage,
    RelayMessage,
    RoomCreatedMessage,
    RoomLeftMessage,
    StartGameMessage,
)

if TYPE_CHECKING:
    from pairing.models import Role
    from pairing.registry import RoomRegistry
    from relay.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

ClientMessage = CreateRoomMessage | JoinRoomMessage | RelayMessage | LeaveRoomMessage | PingMessage


class MessageRouter:
    """
    Translate client messages into registry calls and perform the sends.

    Owns the live connections and, for each, the room and role it holds.
    The registry only ever sees connection ids; this class maps them back
    to connections when a result says something must be delivered.
    """

    def __init__(self, registry: RoomRegistry) -> None:
        self._registry = registry
        self._connections: dict[str, ConnectionProtocol] = {}
        self._associations: dict[str, Association] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def association_of(self, connection_id: str) -> Association | None:
        return self._associations.get(connection_id)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._leave(connection)
        self._connections.pop(connection.connection_id, None)

    async def handle_message(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        if isinstance(message, CreateRoomMessage):
            await self._handle_create_room(connection, message)
        elif isinstance(message, JoinRoomMessage):
            await self._handle_join_room(connection, message.code, message.role)
        elif isinstance(message, RelayMessage):
            await self._handle_relay(connection, message)
        elif isinstance(message, LeaveRoomMessage):
            result = await self._leave(connection)
            await connection.send_message(RoomLeftMessage(code=result.code).model_dump(mode="json"))
        elif isinstance(message, PingMessage):
            await connection.send_message(PongMessage().model_dump(mode="json"))

    async def send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        await connection.send_message(ErrorMessage(code=code, message=message).model_dump(mode="json"))

    async def _handle_create_room(self, connection: ConnectionProtocol, message: CreateRoomMessage) -> None:
        if connection.connection_id in self._associations:
            await self.send_error(connection, ErrorCode.ALREADY_IN_ROOM, "Leave the current room first")
            return
        try:
            code = self._registry.create_room()
        except CodePoolExhaustedError:
            logger.exception("room creation failed", connection_id=connection.connection_id)
            await self.send_error(connection, ErrorCode.ROOM_UNAVAILABLE, "No room codes available")
            return

        await connection.send_message(RoomCreatedMessage(code=code).model_dump(mode="json"))
        if message.role is not None:
            await self._handle_join_room(connection, code, message.role)

    async def _handle_join_room(self, connection: ConnectionProtocol, code: str, role: Role) -> None:
        connection_id = connection.connection_id
        if connection_id in self._associations:
            await self.send_error(connection, ErrorCode.ALREADY_IN_ROOM, "Leave the current room first")
            return

        if is_valid_code(code):
            result = self._registry.join_room(code, role, connection_id)
        else:
            result = JoinResult(JoinStatus.ROOM_DOES_NOT_EXIST)

        if result.ok:
            self._associations[connection_id] = Association(code=code, role=role)
        else:
            logger.info("join rejected", code=code, role=role, reason=result.status)

        await connection.send_message(
            JoinResultMessage(code=code, role=role, status=result.status).model_dump(mode="json"),
        )

        if result.start_targets is not None:
            start = StartGameMessage(code=code).model_dump(mode="json")
            for target in result.start_targets:
                await self._send_to(target, start)

    async def _handle_relay(self, connection: ConnectionProtocol, message: RelayMessage) -> None:
        association = self._associations.get(connection.connection_id)
        delivery = self._registry.relay(association, message.data)
        if delivery is None:
            logger.debug("relay dropped", connection_id=connection.connection_id)
            return
        await self._send_to(
            delivery.target,
            RelayedMessage(from_role=delivery.from_role, data=delivery.payload).model_dump(mode="json"),
        )

    async def _leave(self, connection: ConnectionProtocol) -> LeaveResult:
        association = self._associations.pop(connection.connection_id, None)
        result = self._registry.disconnect(association, connection.connection_id)
        if result.remaining is not None and result.role is not None:
            await self._send_to(result.remaining, PeerLeftMessage(role=result.role).model_dump(mode="json"))
        return result

    async def _send_to(self, connection_id: str, message: dict[str, Any]) -> None:
        """Fire-and-forget send; a peer that has gone away is not our caller's problem."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        with contextlib.suppress(ConnectionError, RuntimeError, OSError):
            await connection.send_message(message)
