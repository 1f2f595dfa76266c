"""
Pydantic schemas for API request/response models and realtime event payloads.
"""

from .message import (
    DeleteFrame,
    FeedResponse,
    MessageDeleted,
    MessageOut,
    MessageRejected,
    SubmitFrame,
)
from .review import FlaggedMessageOut, RejectionReport
from .user import (
    InteractionCreate,
    InteractionHistoryItem,
    InteractionResponse,
    Location,
    LocationUpdate,
    ProfileResponse,
)

__all__ = [
    "DeleteFrame", "FeedResponse", "MessageDeleted", "MessageOut", "MessageRejected", "SubmitFrame",
    "FlaggedMessageOut", "RejectionReport",
    "InteractionCreate", "InteractionHistoryItem", "InteractionResponse", "Location", "LocationUpdate",
    "ProfileResponse",
]
