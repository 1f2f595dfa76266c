"""Single-active-session bookkeeping."""
from __future__ import annotations

import logging
from threading import Lock

from needboard.realtime.connection import Connection

logger = logging.getLogger(__name__)

# WebSocket close code used when a newer session replaces this one.
SESSION_REPLACED_CODE = 4000
# Close code for sessions ended by a moderator (policy violation).
BANNED_CLOSE_CODE = 1008


class SessionRegistry:
    """Tracks at most one live connection per user identity."""

    def __init__(self) -> None:
        self._sessions: dict[str, Connection] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def register(self, identity: str, connection: Connection) -> Connection | None:
        """Install ``connection`` for ``identity``, evicting any previous one.

        The previous connection is marked dead inside the critical section so it can
        never be observed alongside the new one, then its transport is closed.

        Returns:
            The evicted connection, or None.
        """
        with self._lock:
            previous = self._sessions.get(identity)
            if previous is connection:
                return None
            if previous is not None:
                previous.mark_dead()
            self._sessions[identity] = connection

        if previous is None:
            return None
        logger.info("User %s already connected; closing %r", identity, previous)
        # Already dead, so Connection.close() would skip the transport.
        try:
            await previous.transport.close(code=SESSION_REPLACED_CODE)
        except Exception as exc:
            logger.debug("Closing evicted %r raised %s", previous, exc)
        return previous

    def unregister(self, identity: str, connection: Connection) -> bool:
        """Remove ``connection`` only if it is still the one on file."""
        with self._lock:
            if self._sessions.get(identity) is not connection:
                return False
            del self._sessions[identity]
        logger.debug("Removed session for %s", identity)
        return True

    def lookup(self, identity: str) -> Connection | None:
        with self._lock:
            return self._sessions.get(identity)
