"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from needboard.core.errors import AuthenticationError
from needboard.core.region import Region
from needboard.core.security import TokenClaims, decode_access_token
from needboard.services.board import Board, get_board

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()


def get_board_dep() -> Board:
    """Return the process-wide board."""
    return get_board()


BoardDep = Annotated[Board, Depends(get_board_dep)]


def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> TokenClaims:
    """Get the authenticated identity from the bearer token.

    Raises:
        HTTPException: If the token is invalid or expired.
    """
    try:
        return decode_access_token(credentials.credentials)
    except AuthenticationError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(err),
        ) from err


CurrentClaimsDep = Annotated[TokenClaims, Depends(get_current_claims)]


def get_admin_claims(claims: CurrentClaimsDep) -> TokenClaims:
    """Require an admin token."""
    if not claims.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return claims


AdminClaimsDep = Annotated[TokenClaims, Depends(get_admin_claims)]


def resolve_region(board: Board, claims: TokenClaims) -> Region | None:
    """Return the user's stored region, falling back to the token's location claims."""
    region = board.store.get_user_region(claims.username)
    if region is not None:
        return region
    if claims.state is None and claims.lga is None:
        return None
    return Region.of(claims.state, claims.lga)
