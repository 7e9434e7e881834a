"""Abstract client connection used by the message router."""

import json
from abc import ABC, abstractmethod
from typing import Any


class ConnectionProtocol(ABC):
    """
    Transport-neutral view of a client connection.

    The router only sees this interface, so routing and pairing can be
    tested with in-memory connections instead of real WebSockets.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Opaque handle the pairing core stores in room slots."""
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None: ...

    @abstractmethod
    async def receive_text(self) -> str: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """Send a message to the client as a JSON text frame."""
        await self.send_text(json.dumps(data))
