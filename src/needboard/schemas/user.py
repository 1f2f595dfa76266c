"""User location and interaction schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Location(BaseModel):
    """A region as reported back to clients."""

    state: str
    lga: str


class LocationUpdate(BaseModel):
    """A state/LGA pair supplied by a client; surrounding whitespace is trimmed."""

    state: str = Field(..., min_length=1, max_length=100)
    lga: str = Field(..., min_length=1, max_length=100)

    model_config = ConfigDict(str_strip_whitespace=True)


class InteractionCreate(BaseModel):
    message_id: int
    type: str = Field(..., min_length=1, max_length=32)


class InteractionResponse(BaseModel):
    ok: bool = True
    relocated: bool
    new_location: Location


class InteractionHistoryItem(BaseModel):
    """An interaction together with the message it targeted."""

    id: int
    type: str
    created_at: datetime
    message_id: int
    body: str
    author: str
    state: str
    lga: str
    parent_id: int | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    username: str
    state: str | None = None
    lga: str | None = None
    created_at: datetime | None = None
    interactions: list[InteractionHistoryItem] = Field(default_factory=list)
