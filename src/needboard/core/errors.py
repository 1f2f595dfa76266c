"""Domain exceptions shared by the realtime core and the API layer."""

from __future__ import annotations


class NeedboardError(Exception):
    """Base class for all Needboard domain errors."""


class AuthenticationError(NeedboardError):
    """Raised when a bearer token is missing, malformed or expired."""


class StoreError(NeedboardError):
    """Raised when a persistence call fails."""


class MessageNotFoundError(NeedboardError):
    """Raised when a message id does not resolve to a stored message."""

    def __init__(self, message_id: int) -> None:
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


class NotMessageAuthorError(NeedboardError):
    """Raised when someone other than the author tries to delete a message."""

    def __init__(self, message_id: int, requester: str) -> None:
        super().__init__(f"{requester} is not the author of message {message_id}")
        self.message_id = message_id
        self.requester = requester


class ReviewEntryNotFoundError(NeedboardError):
    """Raised when a review ledger entry does not exist."""

    def __init__(self, entry_id: int) -> None:
        super().__init__(f"Flagged message {entry_id} not found")
        self.entry_id = entry_id
