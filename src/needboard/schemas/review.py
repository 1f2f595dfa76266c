"""Review ledger schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FlaggedMessageOut(BaseModel):
    """Review ledger entry returned to moderators."""

    id: int
    username: str
    body: str
    rejection_reason: str | None
    state: str | None
    lga: str | None
    message_id: int | None = None
    status: str
    reviewed_by: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RejectionReport(BaseModel):
    """A user disputing an automatic rejection."""

    body: str = Field(..., min_length=1, max_length=5000)
    reason: str | None = None
