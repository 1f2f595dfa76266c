# src/needboard/models/user.py
"""SQLAlchemy model for user profiles."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from needboard.db.session import Base
from needboard.db.time import utcnow


class UserProfile(Base):
    """Durable per-user state; the authoritative home of a user's current region."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(Text, primary_key=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True)
    lga: Mapped[str | None] = mapped_column(Text, nullable=True)
    banned: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
