"""Connection lifecycle: registry plus room membership."""
from __future__ import annotations

import logging

from needboard.core.region import Region
from needboard.realtime.connection import Connection
from needboard.realtime.registry import SessionRegistry
from needboard.realtime.rooms import RoomRouter

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Admits authenticated connections and tears them down.

    Owns the order of operations: evict any older session for the same user and
    pull it out of its room, then register and join the new one.
    """

    def __init__(self, registry: SessionRegistry | None = None, router: RoomRouter | None = None) -> None:
        self.registry = registry or SessionRegistry()
        self.router = router or RoomRouter()

    async def connect(self, connection: Connection, region: Region) -> None:
        evicted = await self.registry.register(connection.username, connection)
        if evicted is not None:
            self.router.leave(evicted)
        self.router.join(connection, region)
        logger.info("User connected: %s in %s", connection.username, region.key)

    def disconnect(self, connection: Connection) -> None:
        """Forget a connection whose transport has gone away.

        Stale callbacks from an evicted connection only drop that connection's own
        room membership; a newer registration for the same user is left alone.
        """
        connection.mark_dead()
        self.router.leave(connection)
        if self.registry.unregister(connection.username, connection):
            logger.info("User disconnected: %s", connection.username)

    def lookup(self, username: str) -> Connection | None:
        return self.registry.lookup(username)

    async def drop(self, username: str, code: int) -> bool:
        """Close and forget ``username``'s live session, if there is one."""
        connection = self.registry.lookup(username)
        if connection is None:
            return False
        await connection.close(code)
        self.disconnect(connection)
        logger.info("Dropped live session for %s with code %d", username, code)
        return True
