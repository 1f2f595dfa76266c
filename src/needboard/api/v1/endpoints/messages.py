"""Message history and deletion endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from needboard.api.v1.dependencies import BoardDep, CurrentClaimsDep, resolve_region
from needboard.core.errors import MessageNotFoundError, NotMessageAuthorError
from needboard.core.settings import settings
from needboard.schemas.message import FeedResponse, MessageOut

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/feed", response_model=FeedResponse)
async def get_feed(board: BoardDep, claims: CurrentClaimsDep) -> FeedResponse:
    """Return the history of the caller's current room, oldest first.

    The region comes from the stored profile rather than the token, so a client
    re-fetching after a ``room-changed`` event sees its new room.
    """
    region = resolve_region(board, claims)
    if region is None:
        return FeedResponse(state="", lga="", messages=[])
    messages = board.store.list_region_messages(region, settings.feed_limit)
    return FeedResponse(
        state=region.state,
        lga=region.lga,
        messages=[MessageOut.model_validate(message) for message in messages],
    )


@router.get("/search", response_model=list[MessageOut])
async def search_messages(
    board: BoardDep,
    claims: CurrentClaimsDep,
    q: str = Query("", description="Case-insensitive text to look for"),
) -> list[MessageOut]:
    """Search top-level messages in the caller's room, newest first."""
    region = resolve_region(board, claims)
    if region is None or not q.strip():
        return []
    messages = board.store.search_region_messages(region, q.strip(), settings.search_limit)
    return [MessageOut.model_validate(message) for message in messages]


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    board: BoardDep,
    claims: CurrentClaimsDep,
) -> dict[str, object]:
    """Delete one of the caller's messages together with all replies beneath it."""
    try:
        ids = await board.pipeline.delete(claims.username, message_id)
    except MessageNotFoundError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        ) from err
    except NotMessageAuthorError as err:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to delete this message",
        ) from err
    return {"ok": True, "deleted": ids}
