"""Bearer token helpers built on python-jose."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from needboard.core.errors import AuthenticationError
from needboard.core.settings import settings

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified access token."""

    username: str
    role: str = ROLE_USER
    state: str | None = None
    lga: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def create_access_token(
    username: str,
    *,
    role: str = ROLE_USER,
    state: str | None = None,
    lga: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Create JWT access token for user authentication."""
    to_encode: dict[str, object] = {"sub": username, "role": role}
    if state is not None:
        to_encode["state"] = state
    if lga is not None:
        to_encode["lga"] = lga
    minutes = settings.access_token_expire_minutes if expires_minutes is None else expires_minutes
    to_encode["exp"] = datetime.now(UTC) + timedelta(minutes=minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str | None) -> TokenClaims:
    """Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: If the token is absent, invalid, expired or has no subject.
    """
    if not token:
        raise AuthenticationError("No token provided")
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise AuthenticationError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Could not validate credentials")
    return TokenClaims(
        username=str(subject),
        role=str(payload.get("role") or ROLE_USER),
        state=payload.get("state"),
        lga=payload.get("lga"),
    )
