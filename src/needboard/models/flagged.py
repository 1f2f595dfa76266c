# src/needboard/models/flagged.py
"""Review ledger of messages that failed or need moderation."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from needboard.db.session import Base
from needboard.db.time import utcnow

FLAG_STATUS_PENDING = "pending"
FLAG_STATUS_REJECTED = "rejected"
FLAG_STATUS_APPROVED = "approved"


class FlaggedMessage(Base):
    """Append-only ledger row; only the review columns change after insert."""

    __tablename__ = "flagged_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True)
    lga: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set when the flagged text is already live (uncertain admits).
    message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # pending = awaiting a moderator, rejected = auto or manual refusal, approved = posted.
    status: Mapped[str] = mapped_column(Text, nullable=False, default=FLAG_STATUS_PENDING, index=True)
    reviewed_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
