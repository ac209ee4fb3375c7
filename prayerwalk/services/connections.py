"""Registry of live client sockets, keyed by user id"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ClientConnection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry(ABC):
    """Where ingestion looks up the socket to answer a user on"""

    @abstractmethod
    def register(self, user_id: str, connection: ClientConnection) -> None: ...

    @abstractmethod
    def unregister(self, user_id: str, connection: ClientConnection) -> None: ...

    @abstractmethod
    def get(self, user_id: str) -> ClientConnection | None: ...

    async def send(self, user_id: str, message: dict[str, Any]) -> bool:
        """Send to the user's socket. Returns False if the user is not connected or the send failed"""
        connection = self.get(user_id)
        if connection is None:
            return False
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send to user {user_id}: {e}")
            self.unregister(user_id, connection)
            return False


class InMemoryConnectionRegistry(ConnectionRegistry):
    """Single-process registry. One socket per user, a reconnect replaces the old one."""

    def __init__(self):
        self._connections: dict[str, ClientConnection] = {}

    def register(self, user_id: str, connection: ClientConnection) -> None:
        self._connections[user_id] = connection
        logger.info(f"User connected: {user_id}")

    def unregister(self, user_id: str, connection: ClientConnection) -> None:
        # A stale socket must not evict its replacement
        if self._connections.get(user_id) is connection:
            del self._connections[user_id]
            logger.info(f"User disconnected: {user_id}")

    def get(self, user_id: str) -> ClientConnection | None:
        return self._connections.get(user_id)

    def __len__(self) -> int:
        return len(self._connections)
