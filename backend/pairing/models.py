"""Room session models for two-role pairing."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum


class Role(StrEnum):
    GENERATOR = "generator"
    DISCRIMINATOR = "discriminator"

    @property
    def peer(self) -> Role:
        """The other role in the room."""
        return Role.DISCRIMINATOR if self is Role.GENERATOR else Role.GENERATOR


class JoinStatus(StrEnum):
    ROOM_DOES_NOT_EXIST = "room_does_not_exist"
    ROLE_ALREADY_FILLED = "role_already_filled"
    SUCCESS = "success"


class DisconnectOutcome(StrEnum):
    NOT_IN_ROOM = "not_in_room"
    LEFT = "left"
    ROOM_CLOSED = "room_closed"


@dataclass(frozen=True)
class Association:
    """Which room and role a connection currently occupies."""

    code: str
    role: Role


@dataclass(frozen=True)
class JoinResult:
    status: JoinStatus
    # Set only on the join that completes the pair: (generator, discriminator).
    start_targets: tuple[str, str] | None = None

    @property
    def ok(self) -> bool:
        return self.status == JoinStatus.SUCCESS


@dataclass(frozen=True)
class Delivery:
    """A relayed payload addressed to the peer connection."""

    target: str
    from_role: Role
    payload: object


@dataclass(frozen=True)
class LeaveResult:
    outcome: DisconnectOutcome
    code: str | None = None
    role: Role | None = None
    remaining: str | None = None  # connection id still in the room, if any


@dataclass
class RoomSession:
    """Pairing state for one room.

    Holds one slot per role; each slot is either empty or the opaque
    connection id of its occupant. ``started`` flips once, on the join
    that fills the second slot.
    """

    code: str
    generator: str | None = None
    discriminator: str | None = None
    started: bool = False
    created_at: float = field(default_factory=time.monotonic)

    def occupant(self, role: Role) -> str | None:
        if role is Role.GENERATOR:
            return self.generator
        return self.discriminator

    def set_occupant(self, role: Role, connection_id: str | None) -> None:
        if role is Role.GENERATOR:
            self.generator = connection_id
        else:
            self.discriminator = connection_id

    @property
    def is_full(self) -> bool:
        return self.generator is not None and self.discriminator is not None

    @property
    def is_empty(self) -> bool:
        return self.generator is None and self.discriminator is None

    @property
    def occupant_count(self) -> int:
        return (self.generator is not None) + (self.discriminator is not None)
