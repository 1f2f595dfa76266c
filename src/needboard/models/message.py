# src/needboard/models/message.py
"""SQLAlchemy model for board messages and their reply tree."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from needboard.db.session import Base
from needboard.db.time import utcnow


class Message(Base):
    """A request posted to a region's room.

    Replies reference their parent through ``parent_id``; the tree is a plain
    adjacency list so depth is unbounded and traversal happens in the service layer.
    """

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    # Region at time of posting, already trimmed.
    state: Mapped[str] = mapped_column(Text, nullable=False, default="")
    lga: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    attachment_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    attachment_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
