"""Profile, location and interaction endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from needboard.api.v1.dependencies import BoardDep, CurrentClaimsDep
from needboard.core.errors import MessageNotFoundError
from needboard.core.region import Region
from needboard.core.settings import settings
from needboard.schemas.user import (
    InteractionCreate,
    InteractionHistoryItem,
    InteractionResponse,
    Location,
    LocationUpdate,
    ProfileResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


@router.get("/users/me/profile", response_model=ProfileResponse)
async def get_profile(board: BoardDep, claims: CurrentClaimsDep) -> ProfileResponse:
    """Return the caller's stored profile and their most recent interactions."""
    profile = board.store.get_user_profile(claims.username)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    history = board.store.list_user_interactions(claims.username, settings.profile_history_limit)
    return ProfileResponse(
        username=profile.username,
        state=profile.state,
        lga=profile.lga,
        created_at=profile.created_at,
        interactions=[InteractionHistoryItem.model_validate(record) for record in history],
    )


@router.post("/users/me/location", response_model=Location)
async def update_location(
    payload: LocationUpdate,
    board: BoardDep,
    claims: CurrentClaimsDep,
) -> Location:
    """Move the caller to a new region, including any live connection."""
    region = Region.of(payload.state, payload.lga)
    await board.migration.relocate(claims.username, region)
    logger.info("Updated location for %s to %s", claims.username, region.key)
    return Location(state=region.state, lga=region.lga)


@router.post("/interactions", response_model=InteractionResponse)
async def record_interaction(
    payload: InteractionCreate,
    board: BoardDep,
    claims: CurrentClaimsDep,
) -> InteractionResponse:
    """Record a share/send/etc. on a message.

    Acting on a message from another region moves the caller into that region.
    """
    try:
        result = await board.interactions.record(claims.username, payload.message_id, payload.type)
    except MessageNotFoundError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        ) from err
    return InteractionResponse(
        relocated=result.relocated,
        new_location=Location(state=result.region.state, lga=result.region.lga),
    )
