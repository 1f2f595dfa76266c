"""Message admission, persistence and delivery."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from needboard.core.errors import MessageNotFoundError, NotMessageAuthorError, StoreError
from needboard.core.region import Region
from needboard.core.settings import settings
from needboard.models import Message
from needboard.models.flagged import FLAG_STATUS_PENDING, FLAG_STATUS_REJECTED
from needboard.models.interaction import INTERACTION_REPLY
from needboard.realtime.connection import Connection
from needboard.realtime.rooms import RoomRouter
from needboard.repositories.store import Attachment, Store
from needboard.schemas.message import MessageDeleted, MessageOut, MessageRejected
from needboard.services.admission import Verdict, classify
from needboard.services.interactions import InteractionService

logger = logging.getLogger(__name__)

MESSAGE_POSTED_EVENT: Final = "message-posted"
MESSAGE_REJECTED_EVENT: Final = "message-rejected"
MESSAGE_ERROR_EVENT: Final = "message-error"
MESSAGE_DELETED_EVENT: Final = "message-deleted"

UPLOADS_URL_PREFIX: Final = "/uploads/"

OUTCOME_DELIVERED: Final = "delivered"
OUTCOME_REJECTED: Final = "rejected"
OUTCOME_FAILED: Final = "failed"


@dataclass(frozen=True)
class SubmissionOutcome:
    """What happened to one submission."""

    status: str
    message: Message | None = None
    verdict: Verdict | None = None
    error: str | None = None
    delivered_to: int = 0


def message_payload(message: Message) -> dict[str, object]:
    return MessageOut.model_validate(message).model_dump(mode="json")


class MessagePipeline:
    """Classify, persist, then broadcast.

    Nothing reaches a room before the store has accepted it, and each
    connection's submissions are handled one at a time in arrival order.
    """

    def __init__(
        self,
        store: Store,
        router: RoomRouter,
        interactions: InteractionService,
        *,
        upload_dir: str | Path | None = None,
    ) -> None:
        self._store = store
        self._router = router
        self._interactions = interactions
        self._upload_dir = Path(upload_dir if upload_dir is not None else settings.upload_dir)

    async def submit(
        self,
        connection: Connection,
        body: str,
        parent_id: int | None = None,
        attachment: Attachment | None = None,
    ) -> SubmissionOutcome:
        """Run one message through the pipeline on behalf of ``connection``."""
        async with connection.lock:
            return await self._submit(connection, body, parent_id, attachment)

    async def _submit(
        self,
        connection: Connection,
        body: str,
        parent_id: int | None,
        attachment: Attachment | None,
    ) -> SubmissionOutcome:
        username = connection.username
        region = connection.region
        if region is None:
            return await self._fail(connection, "You are not in a room yet")

        verdict: Verdict | None = None
        if parent_id is None:
            verdict = classify(body)
            if not verdict.admitted:
                logger.info("Message rejected for %s in %s: %s", username, region.key, verdict.code)
                self._flag(username, body, verdict.reason, region, FLAG_STATUS_REJECTED)
                rejection = MessageRejected(
                    reason=verdict.reason or "",
                    code=verdict.code or "",
                    original_body=body,
                )
                await connection.send(MESSAGE_REJECTED_EVENT, rejection.model_dump())
                return SubmissionOutcome(OUTCOME_REJECTED, verdict=verdict)
        else:
            if not body.strip() and attachment is None:
                return await self._fail(connection, "Reply is empty")
            try:
                parent = self._store.get_message(parent_id)
            except StoreError as exc:
                logger.error("Failed to look up parent %d for %s: %s", parent_id, username, exc)
                return await self._fail(connection, "Failed to save message", str(exc))
            if parent is None:
                return await self._fail(connection, "Parent message not found")

        try:
            message = self._store.insert_message(region, username, body, parent_id, attachment)
        except StoreError as exc:
            logger.error("Failed to persist message from %s: %s", username, exc)
            return await self._fail(connection, "Failed to save message", str(exc))
        logger.info(
            "Message %d saved from %s in %s%s",
            message.id,
            username,
            region.key,
            f" (reply to {parent_id})" if parent_id is not None else "",
        )

        if verdict is not None and verdict.uncertain:
            self._flag(username, body, verdict.reason, region, FLAG_STATUS_PENDING, message.id)

        if parent_id is not None:
            await self._record_reply(username, parent_id)

        payload = message_payload(message)
        delivered = await self._router.broadcast(region, MESSAGE_POSTED_EVENT, payload)
        # A reply across regions moves the sender out of the room it was posted to.
        if connection not in self._router.members_of(region):
            if await connection.send(MESSAGE_POSTED_EVENT, payload):
                delivered += 1
        return SubmissionOutcome(OUTCOME_DELIVERED, message=message, verdict=verdict, delivered_to=delivered)

    async def publish(self, message: Message) -> int:
        """Broadcast an already-persisted message to its region's room."""
        region = Region.of(message.state, message.lga)
        return await self._router.broadcast(region, MESSAGE_POSTED_EVENT, message_payload(message))

    async def delete(self, requester: str, message_id: int) -> list[int]:
        """Hard-delete a message and every reply beneath it.

        Returns:
            Ids of all removed messages, root first.

        Raises:
            MessageNotFoundError: If the message does not exist.
            NotMessageAuthorError: If ``requester`` did not write it.
        """
        root = self._store.get_message(message_id)
        if root is None:
            raise MessageNotFoundError(message_id)
        if root.username != requester:
            raise NotMessageAuthorError(message_id, requester)

        subtree = self._collect_subtree(root)
        # Deepest parents first so no reply outlives its parent row.
        for message in reversed(subtree):
            self._store.delete_messages_by_parent(message.id)
        self._store.delete_message(root.id)

        for message in subtree:
            if message.attachment_url:
                self._remove_attachment(message.attachment_url)

        ids = [message.id for message in subtree]
        logger.info("%s deleted message %d with %d repl(ies)", requester, root.id, len(ids) - 1)
        event = MessageDeleted(id=root.id, ids=ids)
        await self._router.broadcast(Region.of(root.state, root.lga), MESSAGE_DELETED_EVENT, event.model_dump())
        return ids

    def _collect_subtree(self, root: Message) -> list[Message]:
        """Breadth-first walk of the reply tree below ``root``, root included."""
        ordered = [root]
        seen = {root.id}
        pending = deque([root.id])
        while pending:
            parent_id = pending.popleft()
            for reply in self._store.list_replies(parent_id):
                if reply.id in seen:
                    continue
                seen.add(reply.id)
                ordered.append(reply)
                pending.append(reply.id)
        return ordered

    async def _record_reply(self, username: str, parent_id: int) -> None:
        try:
            await self._interactions.record(username, parent_id, INTERACTION_REPLY)
        except (StoreError, MessageNotFoundError) as exc:
            logger.error("Failed to log reply interaction for %s on %d: %s", username, parent_id, exc)

    def _flag(
        self,
        username: str,
        body: str,
        reason: str | None,
        region: Region,
        status: str,
        message_id: int | None = None,
    ) -> None:
        try:
            self._store.insert_flagged(username, body, reason, region, status, message_id)
        except StoreError as exc:
            logger.error("Failed to store %s review entry for %s: %s", status, username, exc)

    def _remove_attachment(self, url: str) -> None:
        # Only files served from our own upload directory are ours to remove.
        if not url.startswith(UPLOADS_URL_PREFIX):
            return
        path = self._upload_dir / Path(url).name
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove attachment file %s: %s", path, exc)

    async def _fail(self, connection: Connection, reason: str, error: str | None = None) -> SubmissionOutcome:
        await connection.send(MESSAGE_ERROR_EVENT, {"reason": reason})
        return SubmissionOutcome(OUTCOME_FAILED, error=error or reason)
