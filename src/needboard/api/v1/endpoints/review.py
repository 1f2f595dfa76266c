"""Review ledger endpoints: user reports and moderator disposition."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from needboard.api.v1.dependencies import (
    AdminClaimsDep,
    BoardDep,
    CurrentClaimsDep,
    resolve_region,
)
from needboard.core.errors import ReviewEntryNotFoundError
from needboard.core.region import Region
from needboard.schemas.message import MessageOut
from needboard.schemas.review import FlaggedMessageOut, RejectionReport

router = APIRouter(prefix="/review", tags=["review"])


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Flagged message not found",
    )


@router.post("/report", status_code=status.HTTP_201_CREATED)
async def report_rejection(
    payload: RejectionReport,
    board: BoardDep,
    claims: CurrentClaimsDep,
) -> dict[str, object]:
    """Dispute an automatic rejection; the text goes to the moderator queue."""
    region = resolve_region(board, claims) or Region.of(None, None)
    entry = board.review.report_false_rejection(claims.username, payload.body, region, payload.reason)
    return {
        "ok": True,
        "id": entry.id,
        "message": "Your report has been submitted for review",
    }


@router.get("/flagged", response_model=list[FlaggedMessageOut])
async def list_flagged(
    board: BoardDep,
    admin: AdminClaimsDep,
    limit: int = Query(100, ge=1, le=500),
) -> list[FlaggedMessageOut]:
    """List ledger entries awaiting a moderator, newest first."""
    return [FlaggedMessageOut.model_validate(entry) for entry in board.review.list_pending(limit)]


@router.post("/{entry_id}/approve")
async def approve_flagged(
    entry_id: int,
    board: BoardDep,
    admin: AdminClaimsDep,
) -> dict[str, object]:
    """Approve an entry, posting it to its room unless it is already live."""
    try:
        message = await board.review.approve(entry_id, admin.username)
    except ReviewEntryNotFoundError as err:
        raise _not_found() from err
    posted = MessageOut.model_validate(message).model_dump(mode="json") if message else None
    return {"ok": True, "message": posted}


@router.post("/{entry_id}/reject")
async def reject_flagged(
    entry_id: int,
    board: BoardDep,
    admin: AdminClaimsDep,
) -> dict[str, bool]:
    """Mark an entry as rejected."""
    try:
        board.review.reject(entry_id, admin.username)
    except ReviewEntryNotFoundError as err:
        raise _not_found() from err
    return {"ok": True}


@router.post("/users/{username}/ban")
async def ban_user(
    username: str,
    board: BoardDep,
    admin: AdminClaimsDep,
) -> dict[str, object]:
    """Ban a user; any live connection they hold is closed."""
    disconnected = await board.review.ban(username, admin.username)
    return {"ok": True, "message": f"User {username} has been banned", "disconnected": disconnected}


@router.post("/users/{username}/unban")
async def unban_user(
    username: str,
    board: BoardDep,
    admin: AdminClaimsDep,
) -> dict[str, object]:
    """Lift a ban so the user can connect again."""
    board.review.unban(username, admin.username)
    return {"ok": True, "message": f"User {username} has been unbanned"}
