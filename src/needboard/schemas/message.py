"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageOut(BaseModel):
    """A stored message as sent to clients, both in feeds and in ``message-posted``."""

    id: int
    username: str
    body: str
    parent_id: int | None = None
    attachment_url: str | None = None
    attachment_type: str | None = None
    state: str
    lga: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageRejected(BaseModel):
    """Unicast to the submitter when the admission filter refuses a post."""

    reason: str
    code: str
    original_body: str


class MessageDeleted(BaseModel):
    """Broadcast when a message and its replies are removed."""

    id: int
    ids: list[int]


class SubmitFrame(BaseModel):
    """Client frame asking to post a message or reply."""

    body: str = Field(..., max_length=5000)
    parent_id: int | None = None
    attachment_url: str | None = None
    attachment_type: str | None = None


class DeleteFrame(BaseModel):
    id: int


class FeedResponse(BaseModel):
    state: str
    lga: str
    messages: list[MessageOut]
