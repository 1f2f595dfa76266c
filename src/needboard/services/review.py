"""Moderator disposition of the review ledger."""
from __future__ import annotations

import logging

from needboard.core.errors import ReviewEntryNotFoundError
from needboard.core.region import Region
from needboard.core.settings import settings
from needboard.models import FlaggedMessage, Message
from needboard.models.flagged import (
    FLAG_STATUS_APPROVED,
    FLAG_STATUS_PENDING,
    FLAG_STATUS_REJECTED,
)
from needboard.realtime.hub import ConnectionHub
from needboard.realtime.registry import BANNED_CLOSE_CODE
from needboard.repositories.store import Store
from needboard.services.pipeline import MessagePipeline

logger = logging.getLogger(__name__)

FALSE_REJECTION_REASON = "User reported false rejection"


class ReviewService:
    """Lists, approves and rejects flagged messages, and bans their authors."""

    def __init__(self, store: Store, pipeline: MessagePipeline, hub: ConnectionHub) -> None:
        self._store = store
        self._pipeline = pipeline
        self._hub = hub

    def list_pending(self, limit: int | None = None) -> list[FlaggedMessage]:
        return self._store.list_flagged(FLAG_STATUS_PENDING, limit or settings.review_page_limit)

    def report_false_rejection(
        self,
        username: str,
        body: str,
        region: Region,
        reason: str | None = None,
    ) -> FlaggedMessage:
        """File a user's dispute of an automatic rejection for moderator review."""
        entry = self._store.insert_flagged(
            username,
            body,
            reason or FALSE_REJECTION_REASON,
            region,
            FLAG_STATUS_PENDING,
        )
        logger.info("User %s reported a false rejection (entry %d)", username, entry.id)
        return entry

    async def approve(self, entry_id: int, reviewer: str) -> Message | None:
        """Post the flagged text as a top-level message in its original region.

        Entries for uncertain admits already point at a live message; those are
        only marked approved.

        Returns:
            The newly posted message, or None when nothing new was posted.

        Raises:
            ReviewEntryNotFoundError: If the entry does not exist.
        """
        entry = self._get(entry_id)
        if entry.message_id is not None:
            self._store.set_flagged_status(entry_id, FLAG_STATUS_APPROVED, reviewer)
            logger.info("%s approved live message %d (entry %d)", reviewer, entry.message_id, entry_id)
            return None

        region = Region.of(entry.state, entry.lga)
        message = self._store.insert_message(region, entry.username, entry.body, None, None)
        self._store.set_flagged_status(entry_id, FLAG_STATUS_APPROVED, reviewer)
        logger.info("%s approved flagged message %d as message %d", reviewer, entry_id, message.id)
        await self._pipeline.publish(message)
        return message

    def reject(self, entry_id: int, reviewer: str) -> None:
        self._get(entry_id)
        self._store.set_flagged_status(entry_id, FLAG_STATUS_REJECTED, reviewer)
        logger.info("%s rejected flagged message %d", reviewer, entry_id)

    async def ban(self, username: str, reviewer: str) -> bool:
        """Ban a user and end their live session.

        Returns:
            True if a live session was dropped.
        """
        self._store.set_user_banned(username, True)
        logger.info("%s banned %s", reviewer, username)
        return await self._hub.drop(username, BANNED_CLOSE_CODE)

    def unban(self, username: str, reviewer: str) -> None:
        self._store.set_user_banned(username, False)
        logger.info("%s unbanned %s", reviewer, username)

    def _get(self, entry_id: int) -> FlaggedMessage:
        entry = self._store.get_flagged(entry_id)
        if entry is None:
            raise ReviewEntryNotFoundError(entry_id)
        return entry
