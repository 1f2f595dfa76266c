"""Recording user interactions with messages.

Recording an interaction is also the trigger for implicit relocation: when the
target message lives in a different region than the acting user, a
:class:`RegionMismatch` event goes out to every subscriber (in practice the
migration coordinator). Keeping the trigger here, rather than calling the router
inline, means it can be observed and tested on its own.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from needboard.core.errors import MessageNotFoundError
from needboard.core.region import Region
from needboard.models import Interaction
from needboard.repositories.store import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionMismatch:
    """A user acted on a message posted in another region."""

    username: str
    message_id: int
    interaction_type: str
    previous: Region | None
    target: Region


@dataclass(frozen=True)
class InteractionResult:
    interaction: Interaction
    region: Region
    relocated: bool


RegionMismatchListener = Callable[[RegionMismatch], Awaitable[None]]


class InteractionService:
    """Persists interactions and emits region-mismatch events."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._listeners: list[RegionMismatchListener] = []

    def subscribe(self, listener: RegionMismatchListener) -> None:
        self._listeners.append(listener)

    async def record(self, username: str, message_id: int, type_: str) -> InteractionResult:
        """Record ``username`` acting on ``message_id``.

        Raises:
            MessageNotFoundError: If the message does not exist.
            StoreError: If the interaction could not be written.
        """
        target = self._store.get_message_region(message_id)
        if target is None:
            raise MessageNotFoundError(message_id)

        interaction = self._store.insert_interaction(username, message_id, type_)
        current = self._store.get_user_region(username)
        if current == target:
            return InteractionResult(interaction, target, relocated=False)

        event = RegionMismatch(
            username=username,
            message_id=message_id,
            interaction_type=type_,
            previous=current,
            target=target,
        )
        logger.info(
            "%s interaction by %s on message %d moves them to %s",
            type_,
            username,
            message_id,
            target.key,
        )
        await self._emit(event)
        return InteractionResult(interaction, target, relocated=True)

    async def _emit(self, event: RegionMismatch) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as exc:
                logger.error("Region mismatch listener failed for %s: %s", event.username, exc, exc_info=True)
