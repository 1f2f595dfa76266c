# src/needboard/models/__init__.py
"""SQLAlchemy models for the Needboard application."""

from .flagged import FlaggedMessage
from .interaction import Interaction
from .message import Message
from .user import UserProfile

__all__ = [
    "FlaggedMessage",
    "Interaction",
    "Message",
    "UserProfile",
]
