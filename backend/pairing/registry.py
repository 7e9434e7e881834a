"""Room registry: code -> RoomSession, with pairing and relay resolution."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

import structlog

from pairing.codes import CodePool
from pairing.models import (
    Delivery,
    DisconnectOutcome,
    JoinResult,
    JoinStatus,
    LeaveResult,
    Role,
    RoomSession,
)

if TYPE_CHECKING:
    from pairing.models import Association

logger = structlog.get_logger()

_REAPER_INTERVAL_SECONDS = 30


class RoomRegistry:
    """Owns every live room session and the code pool they draw from.

    Purely state management, no I/O: every method runs to completion without
    awaiting, so on a single event loop each call is atomic with respect to
    the others. The dispatcher calls in and performs the sends the results
    describe.
    """

    def __init__(
        self,
        code_pool: CodePool | None = None,
        room_ttl_seconds: float = 600,
    ) -> None:
        self._pool = code_pool if code_pool is not None else CodePool()
        self._sessions: dict[str, RoomSession] = {}
        self._room_ttl_seconds = room_ttl_seconds
        self._reaper_task: asyncio.Task[None] | None = None

    @property
    def code_pool(self) -> CodePool:
        return self._pool

    @property
    def room_count(self) -> int:
        return len(self._sessions)

    def __contains__(self, code: object) -> bool:
        return code in self._sessions

    def get_session(self, code: str) -> RoomSession | None:
        return self._sessions.get(code)

    def create_room(self) -> str:
        """Allocate a code and register an empty, unstarted session under it."""
        code = self._pool.acquire()
        self._sessions[code] = RoomSession(code=code)
        logger.info("room created", code=code)
        return code

    def join_room(self, code: str, role: Role, connection_id: str) -> JoinResult:
        session = self._sessions.get(code)
        if session is None:
            return JoinResult(JoinStatus.ROOM_DOES_NOT_EXIST)
        if session.occupant(role) is not None:
            return JoinResult(JoinStatus.ROLE_ALREADY_FILLED)

        session.set_occupant(role, connection_id)
        logger.info("role joined", code=code, role=role)

        if session.is_full and not session.started:
            session.started = True
            logger.info("room paired", code=code)
            return JoinResult(
                JoinStatus.SUCCESS,
                start_targets=(session.generator, session.discriminator),  # type: ignore[arg-type]
            )
        return JoinResult(JoinStatus.SUCCESS)

    def relay(self, association: Association | None, payload: object) -> Delivery | None:
        """Resolve where a payload from ``association`` should go.

        Returns None when the message is dropped: the sender is not in a
        room, the room is gone, or nobody holds the other role yet.
        """
        if association is None:
            return None
        session = self._sessions.get(association.code)
        if session is None:
            return None
        target = session.occupant(association.role.peer)
        if target is None:
            return None
        return Delivery(target=target, from_role=association.role, payload=payload)

    def disconnect(self, association: Association | None, connection_id: str) -> LeaveResult:
        """Vacate the connection's slot, closing the room when it empties.

        The slot is only cleared if it still holds ``connection_id``, so a
        stale association can never evict a newer occupant.
        """
        if association is None:
            return LeaveResult(DisconnectOutcome.NOT_IN_ROOM)

        code, role = association.code, association.role
        session = self._sessions.get(code)
        if session is None:
            return LeaveResult(DisconnectOutcome.NOT_IN_ROOM, code=code, role=role)

        if session.occupant(role) != connection_id:
            logger.debug("stale disconnect ignored", code=code, role=role)
            return LeaveResult(DisconnectOutcome.NOT_IN_ROOM, code=code, role=role)

        session.set_occupant(role, None)
        logger.info("role left", code=code, role=role)

        if session.is_empty:
            self._close(code)
            return LeaveResult(DisconnectOutcome.ROOM_CLOSED, code=code, role=role)

        return LeaveResult(
            DisconnectOutcome.LEFT,
            code=code,
            role=role,
            remaining=session.occupant(role.peer),
        )

    def _close(self, code: str) -> None:
        if self._sessions.pop(code, None) is not None:
            self._pool.release(code)
            logger.info("room closed", code=code)

    def reap_stale_rooms(self, now: float | None = None) -> list[str]:
        """Close rooms that nobody joined within the TTL. Returns their codes."""
        if now is None:
            now = time.monotonic()
        expired = [
            code
            for code, session in self._sessions.items()
            if session.is_empty and now - session.created_at > self._room_ttl_seconds
        ]
        for code in expired:
            self._close(code)
            logger.info("room expired", code=code)
        return expired

    def start_reaper(self) -> None:
        """Start the periodic stale-room reaper task."""
        if self._reaper_task is not None:
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:  # pragma: no cover - long-running background loop
        while True:
            await asyncio.sleep(_REAPER_INTERVAL_SECONDS)
            self.reap_stale_rooms()
