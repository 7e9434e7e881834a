"""Typed messages for the relay WebSocket protocol (JSON text frames)."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from pairing.models import JoinStatus, Role

DEFAULT_MAX_MESSAGE_BYTES = 64 * 1024


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    RELAY = "relay"
    LEAVE_ROOM = "leave_room"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    JOIN_RESULT = "join_result"
    START_GAME = "start_game"
    RELAY = "relay"
    PEER_LEFT = "peer_left"
    ROOM_LEFT = "room_left"
    PONG = "pong"
    ERROR = "error"


class ErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    ALREADY_IN_ROOM = "already_in_room"
    ROOM_UNAVAILABLE = "room_unavailable"
    RATE_LIMITED = "rate_limited"


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    role: Role | None = None  # join the new room straight away in this role


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    code: str = Field(min_length=1, max_length=16)
    role: Role

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class RelayMessage(BaseModel):
    type: Literal[ClientMessageType.RELAY] = ClientMessageType.RELAY
    data: Any = None


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage | JoinRoomMessage | RelayMessage | LeaveRoomMessage | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(
    raw: str,
    max_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
) -> CreateRoomMessage | JoinRoomMessage | RelayMessage | LeaveRoomMessage | PingMessage:
    """Parse and validate a raw JSON frame into a typed client message.

    Raises ValueError (including json.JSONDecodeError) or
    pydantic.ValidationError.
    """
    byte_len = len(raw.encode("utf-8"))
    if byte_len > max_bytes:
        raise ValueError(f"Message too large ({byte_len} bytes, max {max_bytes})")
    return _client_message_adapter.validate_python(json.loads(raw))


class RoomCreatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    code: str


class JoinResultMessage(BaseModel):
    type: Literal[ServerMessageType.JOIN_RESULT] = ServerMessageType.JOIN_RESULT
    code: str
    role: Role
    status: JoinStatus


class StartGameMessage(BaseModel):
    type: Literal[ServerMessageType.START_GAME] = ServerMessageType.START_GAME
    code: str


class RelayedMessage(BaseModel):
    type: Literal[ServerMessageType.RELAY] = ServerMessageType.RELAY
    from_role: Role
    data: Any = None


class PeerLeftMessage(BaseModel):
    type: Literal[ServerMessageType.PEER_LEFT] = ServerMessageType.PEER_LEFT
    role: Role


class RoomLeftMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_LEFT] = ServerMessageType.ROOM_LEFT
    code: str | None = None


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str
