"""Moving users, and their live connection, between regions."""
from __future__ import annotations

import logging

from needboard.core.region import Region
from needboard.realtime.connection import Connection
from needboard.realtime.hub import ConnectionHub
from needboard.repositories.store import Store
from needboard.services.interactions import RegionMismatch

logger = logging.getLogger(__name__)

ROOM_CHANGED_EVENT = "room-changed"


class MigrationCoordinator:
    """Persists a user's new region and moves their connection to the matching room.

    Only membership and the profile are touched here. Fetching the new room's
    history is left to the client, which is told via a ``room-changed`` event.
    """

    def __init__(self, store: Store, hub: ConnectionHub) -> None:
        self._store = store
        self._hub = hub

    async def migrate(self, connection: Connection, new_region: Region) -> bool:
        """Move ``connection`` to ``new_region``.

        Re-persisting the same region is harmless, and migrating into the room the
        connection is already in changes nothing else.

        Returns:
            True if room membership changed.
        """
        self._store.set_user_region(connection.username, new_region)
        # join() updates connection.region and swaps rooms under one lock.
        moved = self._hub.router.join(connection, new_region)
        if moved:
            await connection.send(ROOM_CHANGED_EVENT, new_region.as_dict())
        return moved

    async def relocate(self, username: str, new_region: Region) -> bool:
        """Relocate a user, migrating their live connection when they have one."""
        connection = self._hub.lookup(username)
        if connection is None:
            self._store.set_user_region(username, new_region)
            logger.info("Updated location for offline user %s to %s", username, new_region.key)
            return False
        return await self.migrate(connection, new_region)

    async def on_region_mismatch(self, event: RegionMismatch) -> None:
        await self.relocate(event.username, event.target)
