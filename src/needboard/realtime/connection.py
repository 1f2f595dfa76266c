"""Live connection handles."""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Protocol

from needboard.core.region import Region

logger = logging.getLogger(__name__)

_CONNECTION_IDS = itertools.count(1)


class Transport(Protocol):
    """The part of a WebSocket a connection needs."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class Connection:
    """One authenticated realtime session.

    A connection starts alive and unjoined. ``close`` marks it dead before
    touching the transport, so anything still holding a reference (an in-flight
    submission, a broadcast snapshot) sees it as gone straight away.
    """

    def __init__(
        self,
        username: str,
        transport: Transport,
        *,
        region: Region | None = None,
    ) -> None:
        self.id = next(_CONNECTION_IDS)
        self.username = username
        self.region = region
        self.transport = transport
        self.alive = True
        # Serializes this connection's submissions so they persist and broadcast in order.
        self.lock = asyncio.Lock()

    def __repr__(self) -> str:
        state = "alive" if self.alive else "dead"
        return f"<Connection #{self.id} {self.username} {state}>"

    def mark_dead(self) -> None:
        self.alive = False

    async def send(self, event: str, data: dict[str, Any]) -> bool:
        """Send one event frame; returns False when nothing was delivered."""
        if not self.alive:
            return False
        try:
            await self.transport.send_json({"event": event, "data": data})
        except Exception as exc:  # transport already gone; caller carries on
            logger.warning("Send of %s to %r failed: %s", event, self, exc)
            return False
        return True

    async def close(self, code: int = 1000) -> None:
        """Mark dead and close the transport. Safe to call more than once."""
        was_alive = self.alive
        self.mark_dead()
        if not was_alive:
            return
        try:
            await self.transport.close(code=code)
        except Exception as exc:
            logger.debug("Closing %r raised %s", self, exc)
