# storefront/core/auth.py
from typing import Any

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from storefront.core.config import get_settings

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support "guest" mode (unauthenticated).
bearer_scheme = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    """
    Authenticated shopper as seen by the cart layer: only the id
    (storage namespace) and contact details.
    """

    id: str
    email: str | None = None
    name: str | None = None


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired or no secret is configured.
    """
    settings = get_settings()
    if not settings.SUPABASE_JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication is not configured",
        )
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    """
    Resolve the shopper from a Supabase JWT.

    Returns:
        Identity if authenticated, else None for guests.

    Raises:
        HTTPException(401): if token is malformed or missing 'sub'.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub",
        )

    metadata = payload.get("user_metadata") or {}
    name = " ".join(
        part for part in (metadata.get("first_name"), metadata.get("last_name")) if part
    )
    return Identity(id=str(sub), email=payload.get("email"), name=name or None)


def require_identity(identity: Identity | None = Depends(get_current_identity)) -> Identity:
    """
    Enforce authentication. Guests are rejected with 401.
    """
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return identity


def get_device_id(
    x_device_id: str = Header(..., min_length=1, max_length=64),
) -> str:
    """
    Client device id (the browser whose local storage we mirror).
    """
    device_id = x_device_id.strip()
    if not device_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Device-Id cannot be empty",
        )
    return device_id
