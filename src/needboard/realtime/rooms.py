"""Region rooms and fan-out delivery."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any

from needboard.core.region import Region
from needboard.realtime.connection import Connection

logger = logging.getLogger(__name__)


class RoomRouter:
    """Maps each region to the live connections subscribed to it.

    Membership tables are private and only touched under ``_lock``; every
    mutation is in-memory and never awaits. ``broadcast`` copies the member set
    under the lock and sends outside it, so joins and leaves during a broadcast
    neither break the iteration nor block on the network.
    """

    def __init__(self) -> None:
        self._rooms: dict[Region, set[Connection]] = {}
        self._lock = Lock()

    def join(self, connection: Connection, region: Region) -> bool:
        """Subscribe ``connection`` to ``region``, leaving its previous room first.

        Returns False if nothing changed (already a member, or the connection is dead).
        """
        with self._lock:
            if not connection.alive:
                return False
            current = connection.region
            members = self._rooms.get(current) if current is not None else None
            if current == region and members is not None and connection in members:
                return False
            if members is not None:
                self._discard(current, connection)
            self._rooms.setdefault(region, set()).add(connection)
            connection.region = region
        if current is not None and current != region:
            logger.info("%s moved from room %s to %s", connection.username, current.key, region.key)
        else:
            logger.info("%s joined room %s", connection.username, region.key)
        return True

    def leave(self, connection: Connection) -> Region | None:
        """Unsubscribe ``connection`` from its room. The connection keeps its region."""
        with self._lock:
            region = connection.region
            if region is None or connection not in self._rooms.get(region, ()):
                return None
            self._discard(region, connection)
        logger.debug("%s left room %s", connection.username, region.key)
        return region

    def region_of(self, connection: Connection) -> Region | None:
        """Return the room the connection is in, or None when unjoined."""
        with self._lock:
            region = connection.region
            if region is not None and connection in self._rooms.get(region, ()):
                return region
            return None

    def members_of(self, region: Region) -> frozenset[Connection]:
        with self._lock:
            return frozenset(self._rooms.get(region, ()))

    def rooms(self) -> dict[Region, int]:
        """Live member count per non-empty room."""
        with self._lock:
            return {region: len(members) for region, members in self._rooms.items()}

    async def broadcast(self, region: Region, event: str, data: dict[str, Any]) -> int:
        """Deliver an event to every live member of ``region``.

        Returns:
            Number of members the event was delivered to.
        """
        delivered = 0
        for connection in self.members_of(region):
            if not connection.alive:
                continue
            if await connection.send(event, data):
                delivered += 1
        logger.debug("Broadcast %s to room %s reached %d member(s)", event, region.key, delivered)
        return delivered

    def _discard(self, region: Region, connection: Connection) -> None:
        members = self._rooms.get(region)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._rooms[region]
