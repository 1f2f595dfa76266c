"""Persistence contract consumed by the realtime core, and its SQLAlchemy adapter.

The pipeline, interaction and migration services only ever talk to :class:`Store`.
:class:`SqlAlchemyStore` implements it against either SQLite or PostgreSQL; every
method runs in its own session and commits before returning.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from needboard.core.errors import StoreError
from needboard.core.region import Region
from needboard.db.time import utcnow
from needboard.models import FlaggedMessage, Interaction, Message, UserProfile

__all__ = ["Attachment", "InteractionRecord", "Store", "SqlAlchemyStore"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """Reference to an already-uploaded file."""

    url: str
    type: str | None = None


@dataclass(frozen=True)
class InteractionRecord:
    """One entry of a user's interaction history, joined with the message it targets."""

    id: int
    type: str
    created_at: datetime
    message_id: int
    body: str
    author: str
    state: str
    lga: str
    parent_id: int | None


class Store(Protocol):
    """Operations the realtime core needs from durable storage."""

    def insert_message(
        self,
        region: Region,
        author: str,
        body: str,
        parent_id: int | None,
        attachment: Attachment | None,
    ) -> Message: ...

    def get_message(self, message_id: int) -> Message | None: ...

    def list_replies(self, parent_id: int) -> list[Message]: ...

    def delete_message(self, message_id: int) -> None: ...

    def delete_messages_by_parent(self, parent_id: int) -> list[int]: ...

    def insert_interaction(self, user: str, message_id: int, type_: str) -> Interaction: ...

    def list_user_interactions(self, user: str, limit: int) -> list[InteractionRecord]: ...

    def insert_flagged(
        self,
        user: str,
        body: str,
        reason: str | None,
        region: Region,
        status: str,
        message_id: int | None = None,
    ) -> FlaggedMessage: ...

    def get_flagged(self, entry_id: int) -> FlaggedMessage | None: ...

    def list_flagged(self, status: str, limit: int) -> list[FlaggedMessage]: ...

    def set_flagged_status(self, entry_id: int, status: str, reviewer: str) -> None: ...

    def get_user_region(self, user: str) -> Region | None: ...

    def set_user_region(self, user: str, region: Region) -> None: ...

    def is_user_banned(self, user: str) -> bool: ...

    def get_user_profile(self, user: str) -> UserProfile | None: ...

    def set_user_banned(self, user: str, banned: bool) -> None: ...

    def get_message_region(self, message_id: int) -> Region | None: ...

    def list_region_messages(self, region: Region, limit: int) -> list[Message]: ...

    def search_region_messages(self, region: Region, query: str, limit: int) -> list[Message]: ...


class SqlAlchemyStore:
    """Store implementation over a SQLAlchemy ``sessionmaker``."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as err:
            db.rollback()
            raise StoreError(str(err)) from err
        finally:
            db.close()

    # --- messages ------------------------------------------------------------------
    def insert_message(
        self,
        region: Region,
        author: str,
        body: str,
        parent_id: int | None,
        attachment: Attachment | None,
    ) -> Message:
        """Insert a message and return the persisted row with its generated id."""
        message = Message(
            username=author,
            state=region.state,
            lga=region.lga,
            body=body,
            parent_id=parent_id,
            attachment_url=attachment.url if attachment else None,
            attachment_type=attachment.type if attachment else None,
            created_at=utcnow(),
        )
        with self._session() as db:
            db.add(message)
            db.flush()
        return message

    def get_message(self, message_id: int) -> Message | None:
        with self._session() as db:
            return db.get(Message, message_id)

    def list_replies(self, parent_id: int) -> list[Message]:
        """Return the direct replies of a message in posting order."""
        with self._session() as db:
            rows = db.scalars(
                select(Message).where(Message.parent_id == parent_id).order_by(Message.id)
            )
            return list(rows)

    def delete_message(self, message_id: int) -> None:
        with self._session() as db:
            db.execute(delete(Interaction).where(Interaction.message_id == message_id))
            db.execute(delete(Message).where(Message.id == message_id))

    def delete_messages_by_parent(self, parent_id: int) -> list[int]:
        """Delete the direct replies of ``parent_id`` and return their ids."""
        with self._session() as db:
            ids = list(db.scalars(select(Message.id).where(Message.parent_id == parent_id)))
            if ids:
                db.execute(delete(Interaction).where(Interaction.message_id.in_(ids)))
                db.execute(delete(Message).where(Message.id.in_(ids)))
            return ids

    def get_message_region(self, message_id: int) -> Region | None:
        with self._session() as db:
            row = db.execute(
                select(Message.state, Message.lga).where(Message.id == message_id)
            ).first()
        if row is None:
            return None
        return Region.of(row.state, row.lga)

    def list_region_messages(self, region: Region, limit: int) -> list[Message]:
        """Return a room's history, oldest first."""
        with self._session() as db:
            rows = db.scalars(
                select(Message)
                .where(Message.state == region.state, Message.lga == region.lga)
                .order_by(Message.created_at, Message.id)
                .limit(limit)
            )
            return list(rows)

    def search_region_messages(self, region: Region, query: str, limit: int) -> list[Message]:
        """Case-insensitive substring search over a room's top-level messages, newest first."""
        pattern = f"%{query.lower()}%"
        with self._session() as db:
            rows = db.scalars(
                select(Message)
                .where(
                    Message.state == region.state,
                    Message.lga == region.lga,
                    Message.parent_id.is_(None),
                    func.lower(Message.body).like(pattern),
                )
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(limit)
            )
            return list(rows)

    # --- interactions -------------------------------------------------------------
    def insert_interaction(self, user: str, message_id: int, type_: str) -> Interaction:
        interaction = Interaction(
            username=user,
            message_id=message_id,
            type=type_,
            created_at=utcnow(),
        )
        with self._session() as db:
            db.add(interaction)
            db.flush()
        return interaction

    def list_user_interactions(self, user: str, limit: int) -> list[InteractionRecord]:
        """Return a user's interactions with the messages they target, newest first."""
        with self._session() as db:
            rows = db.execute(
                select(
                    Interaction.id,
                    Interaction.type,
                    Interaction.created_at,
                    Message.id.label("message_id"),
                    Message.body,
                    Message.username.label("author"),
                    Message.state,
                    Message.lga,
                    Message.parent_id,
                )
                .join(Message, Message.id == Interaction.message_id)
                .where(Interaction.username == user)
                .order_by(Interaction.created_at.desc(), Interaction.id.desc())
                .limit(limit)
            ).all()
        return [InteractionRecord(**row._asdict()) for row in rows]

    # --- review ledger ------------------------------------------------------------
    def insert_flagged(
        self,
        user: str,
        body: str,
        reason: str | None,
        region: Region,
        status: str,
        message_id: int | None = None,
    ) -> FlaggedMessage:
        entry = FlaggedMessage(
            message_id=message_id,
            username=user,
            body=body,
            rejection_reason=reason,
            state=region.state,
            lga=region.lga,
            status=status,
            created_at=utcnow(),
        )
        with self._session() as db:
            db.add(entry)
            db.flush()
        return entry

    def get_flagged(self, entry_id: int) -> FlaggedMessage | None:
        with self._session() as db:
            return db.get(FlaggedMessage, entry_id)

    def list_flagged(self, status: str, limit: int) -> list[FlaggedMessage]:
        with self._session() as db:
            rows = db.scalars(
                select(FlaggedMessage)
                .where(FlaggedMessage.status == status)
                .order_by(FlaggedMessage.created_at.desc(), FlaggedMessage.id.desc())
                .limit(limit)
            )
            return list(rows)

    def set_flagged_status(self, entry_id: int, status: str, reviewer: str) -> None:
        with self._session() as db:
            db.execute(
                update(FlaggedMessage)
                .where(FlaggedMessage.id == entry_id)
                .values(status=status, reviewed_by=reviewer, reviewed_at=utcnow())
            )

    # --- user profiles ------------------------------------------------------------
    def get_user_region(self, user: str) -> Region | None:
        """Return the stored region, or None when the user has no location on file."""
        with self._session() as db:
            profile = db.get(UserProfile, user)
        if profile is None or (profile.state is None and profile.lga is None):
            return None
        return Region.of(profile.state, profile.lga)

    def set_user_region(self, user: str, region: Region) -> None:
        """Upsert the user's profile with a new region."""
        with self._session() as db:
            profile = db.get(UserProfile, user)
            if profile is None:
                profile = UserProfile(username=user, created_at=utcnow())
                db.add(profile)
            profile.state = region.state
            profile.lga = region.lga
        logger.debug("Stored region %s for %s", region.key, user)

    def is_user_banned(self, user: str) -> bool:
        with self._session() as db:
            banned = db.scalar(select(UserProfile.banned).where(UserProfile.username == user))
        return bool(banned)

    def get_user_profile(self, user: str) -> UserProfile | None:
        with self._session() as db:
            return db.get(UserProfile, user)

    def set_user_banned(self, user: str, banned: bool) -> None:
        """Set the ban flag, creating a bare profile for users never seen before."""
        with self._session() as db:
            profile = db.get(UserProfile, user)
            if profile is None:
                profile = UserProfile(username=user, created_at=utcnow())
                db.add(profile)
            profile.banned = banned
        logger.info("%s %s", "Banned" if banned else "Unbanned", user)
